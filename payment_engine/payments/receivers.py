from django.dispatch import receiver

from .events import payment_event
from .tasks import notify_users

MESSAGES = {
    'contract.created': "A contract #{contract_id} was created for {amount}.",
    'escrow.payment_received': "Client confirmed payment for escrow #{escrow_id}.",
    'escrow.work_completed': "Work was marked as completed for escrow #{escrow_id}.",
    'escrow.funds_released': "{amount} has been released to the freelancer wallet for escrow #{escrow_id}.",
    'escrow.disputed': "A dispute was raised on escrow #{escrow_id}.",
    'escrow.refunded': "Escrow #{escrow_id} was refunded to the client.",
    'withdrawal.requested': "Withdrawal request #{withdrawal_id} of {amount} was received.",
    'withdrawal.processing': "Withdrawal request #{withdrawal_id} is being processed.",
    'withdrawal.completed': "Withdrawal #{withdrawal_id} of {amount} was completed.",
    'withdrawal.rejected': "Withdrawal #{withdrawal_id} was rejected and {amount} returned to your balance.",
}


@receiver(payment_event)
def queue_notification(sender, event, payload, **kwargs):
    template = MESSAGES.get(event)
    recipients = payload.get('notify') or []
    if not template or not recipients:
        return
    notify_users.delay(list(recipients), f"[{event}]", template.format(**payload))
