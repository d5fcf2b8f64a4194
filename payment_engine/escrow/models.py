from django.db import models
from django.db.models import F, Q
from django.contrib.auth import get_user_model
from django.utils import timezone
from auditlog.registry import auditlog

from contracts.models import Contract

User = get_user_model()


class EscrowQuerySet(models.QuerySet):
    def for_user(self, user):
        if user.is_operator:
            return self
        return self.filter(Q(client=user) | Q(freelancer=user))

    def compare_and_set(self, *, pk, from_status, version, to_status, actor):
        """
        Move one escrow from ``from_status`` to ``to_status`` only if nobody else
        changed it since it was read. Returns True when this call won.
        """
        now = timezone.now()
        updated = self.filter(pk=pk, status=from_status, version=version).update(
            status=to_status,
            version=F('version') + 1,
            last_actor=actor,
            last_transition_at=now,
            updated_at=now,
        )
        return updated == 1


class EscrowTransaction(models.Model):
    PENDING_PAYMENT = 'pending_payment'
    PAYMENT_RECEIVED = 'payment_received'
    WORK_COMPLETED = 'work_completed'
    FUNDS_RELEASED = 'funds_released'
    DISPUTED = 'disputed'
    REFUNDED = 'refunded'

    STATUS_CHOICES = (
        (PENDING_PAYMENT, 'Pending Payment'),
        (PAYMENT_RECEIVED, 'Payment Received'),
        (WORK_COMPLETED, 'Work Completed'),
        (FUNDS_RELEASED, 'Funds Released'),
        (DISPUTED, 'Disputed'),
        (REFUNDED, 'Refunded'),
    )
    TERMINAL_STATUSES = frozenset({FUNDS_RELEASED, REFUNDED})

    contract = models.OneToOneField(Contract, on_delete=models.PROTECT, related_name='escrow')
    project_id = models.PositiveBigIntegerField(db_index=True)
    client = models.ForeignKey(User, related_name='client_escrows', on_delete=models.PROTECT)
    freelancer = models.ForeignKey(User, related_name='freelancer_escrows', on_delete=models.PROTECT)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING_PAYMENT)
    version = models.PositiveIntegerField(default=0)
    last_actor = models.ForeignKey(
        User,
        related_name='+',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    last_transition_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EscrowQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='escrow_amount_positive'),
        ]

    def __str__(self):
        return f"Escrow #{self.pk} for contract #{self.contract_id} ({self.amount}, {self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def diagnostics(self):
        """State detail shown to operators alongside errors."""
        return {
            'escrow_id': self.pk,
            'current_status': self.status,
            'last_actor': str(self.last_actor) if self.last_actor_id else None,
            'last_transition_at': self.last_transition_at.isoformat() if self.last_transition_at else None,
        }


class EscrowTransition(models.Model):
    """Append-only history of applied escrow transitions."""

    escrow = models.ForeignKey(EscrowTransaction, on_delete=models.PROTECT, related_name='transitions')
    action = models.CharField(max_length=30)
    from_status = models.CharField(max_length=20, choices=EscrowTransaction.STATUS_CHOICES)
    to_status = models.CharField(max_length=20, choices=EscrowTransaction.STATUS_CHOICES)
    actor = models.ForeignKey(User, on_delete=models.PROTECT, related_name='escrow_transitions')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.escrow_id}: {self.from_status} -> {self.to_status} by {self.actor}"


auditlog.register(EscrowTransaction, exclude_fields=['version'])
