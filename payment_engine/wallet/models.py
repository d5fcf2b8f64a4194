from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog

User = get_user_model()


class Wallet(models.Model):
    """
    Running balances of one user. Only the wallet ledger writes these fields,
    always together with a ledger entry (or a withdrawal reservation).
    """
    user = models.OneToOneField(User, on_delete=models.PROTECT, related_name='wallet')
    available_balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    pending_balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_earned = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(available_balance__gte=0), name='wallet_available_non_negative'),
            models.CheckConstraint(condition=Q(pending_balance__gte=0), name='wallet_pending_non_negative'),
            models.CheckConstraint(condition=Q(total_earned__gte=0), name='wallet_total_earned_non_negative'),
        ]

    def __str__(self):
        return f"Wallet({self.user}: available={self.available_balance}, pending={self.pending_balance})"


class WalletTransaction(models.Model):
    """
    Immutable ledger entry justifying one balance change.

    ``balance`` names the bucket the entry moved; ``balance_after`` is that
    bucket's value right after the change. A ``release`` entry moves funds from
    pending to available and is recorded against the available bucket.
    """
    CREDIT = 'credit'
    RELEASE = 'release'
    WITHDRAWAL = 'withdrawal'
    FEE = 'fee'

    TYPE_CHOICES = (
        (CREDIT, 'Credit'),
        (RELEASE, 'Release'),
        (WITHDRAWAL, 'Withdrawal'),
        (FEE, 'Fee'),
    )

    AVAILABLE = 'available'
    PENDING = 'pending'

    BALANCE_CHOICES = (
        (AVAILABLE, 'Available'),
        (PENDING, 'Pending'),
    )

    REF_ESCROW = 'escrow'
    REF_ESCROW_RELEASE = 'escrow_release'
    REF_ESCROW_REFUND = 'escrow_refund'
    REF_WITHDRAWAL = 'withdrawal'
    REF_MANUAL = 'manual'

    REFERENCE_CHOICES = (
        (REF_ESCROW, 'Escrow payment'),
        (REF_ESCROW_RELEASE, 'Escrow release'),
        (REF_ESCROW_REFUND, 'Escrow refund'),
        (REF_WITHDRAWAL, 'Withdrawal'),
        (REF_MANUAL, 'Manual adjustment'),
    )

    wallet = models.ForeignKey(Wallet, on_delete=models.PROTECT, related_name='transactions')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    balance = models.CharField(max_length=20, choices=BALANCE_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.CharField(max_length=255, blank=True)
    reference_type = models.CharField(max_length=30, choices=REFERENCE_CHOICES)
    reference_id = models.PositiveBigIntegerField(null=True, blank=True)
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['wallet', 'created_at'], name='wallet_tx_wallet_time_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='wallet_tx_reference_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='wallet_tx_amount_positive'),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} ({self.balance}) on wallet #{self.wallet_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Ledger entries are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Ledger entries cannot be deleted.")


auditlog.register(Wallet)
