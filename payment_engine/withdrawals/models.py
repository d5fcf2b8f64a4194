from django.db import models
from django.db.models import Q
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog

from wallet.models import Wallet

User = get_user_model()


class WithdrawalRequest(models.Model):
    """
    A freelancer's request to pay out part of the available balance.

    The amount is reserved (taken out of ``available_balance``) when the request
    is created and stays reserved while the request is open.
    """
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    REJECTED = 'rejected'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (PROCESSING, 'Processing'),
        (COMPLETED, 'Completed'),
        (REJECTED, 'Rejected'),
    )
    OPEN_STATUSES = (PENDING, PROCESSING)

    requester = models.ForeignKey(User, on_delete=models.PROTECT, related_name='withdrawal_requests')
    wallet = models.ForeignKey(Wallet, on_delete=models.PROTECT, related_name='withdrawal_requests')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    bank_name = models.CharField(max_length=100)
    account_number = models.CharField(max_length=50)
    account_holder_name = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    operator_notes = models.TextField(blank=True)
    processed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='processed_withdrawals',
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='withdrawal_amount_positive'),
        ]

    def __str__(self):
        return f"Withdrawal #{self.pk} of {self.amount} by {self.requester} ({self.status})"

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES

    @property
    def bank_details(self):
        return {
            'bank_name': self.bank_name,
            'account_number': self.account_number,
            'account_holder_name': self.account_holder_name,
        }


auditlog.register(WithdrawalRequest, exclude_fields=['account_number'])
