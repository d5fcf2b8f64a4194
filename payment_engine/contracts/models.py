from django.db import models
from django.db.models import Q
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog

User = get_user_model()


class Contract(models.Model):
    """
    An agreed engagement between a client and a freelancer, created once per
    accepted proposal. Status changes are driven by the payment engine; the
    amount never changes after creation.
    """
    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = (
        (STATUS_ACTIVE, 'Active'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    )

    proposal_id = models.PositiveBigIntegerField(null=True, blank=True, unique=True)
    project_id = models.PositiveBigIntegerField(db_index=True)
    client = models.ForeignKey(User, related_name='client_contracts', on_delete=models.PROTECT)
    freelancer = models.ForeignKey(User, related_name='freelancer_contracts', on_delete=models.PROTECT)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['project_id', 'freelancer'],
                condition=~Q(status='cancelled'),
                name='one_open_contract_per_project_freelancer',
            ),
            models.CheckConstraint(condition=Q(amount__gt=0), name='contract_amount_positive'),
        ]

    def __str__(self):
        return f"Contract #{self.pk} ({self.client} -> {self.freelancer}, {self.amount})"

    def is_party(self, user):
        return user.pk in (self.client_id, self.freelancer_id)


auditlog.register(Contract)
