import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from payments.amounts import to_amount
from payments.exceptions import (
    InvalidAmount,
    InvalidTransition,
    NotFound,
    Unauthorized,
    WithdrawalAlreadyPending,
)
from wallet.ledger import WalletLedger
from wallet.models import WalletTransaction
from .models import WithdrawalRequest

logger = logging.getLogger(__name__)

MARK_PROCESSING = 'mark_processing'
COMPLETE = 'complete'
REJECT = 'reject'

TRANSITIONS = {
    (WithdrawalRequest.PENDING, MARK_PROCESSING): WithdrawalRequest.PROCESSING,
    (WithdrawalRequest.PENDING, COMPLETE): WithdrawalRequest.COMPLETED,
    (WithdrawalRequest.PROCESSING, COMPLETE): WithdrawalRequest.COMPLETED,
    (WithdrawalRequest.PENDING, REJECT): WithdrawalRequest.REJECTED,
    (WithdrawalRequest.PROCESSING, REJECT): WithdrawalRequest.REJECTED,
}

BANK_FIELDS = ('bank_name', 'account_number', 'account_holder_name')


class WithdrawalWorkflow:
    """
    Payout requests against the available balance, arbitrated by operators.

    Creating a request reserves the amount; completing it writes the
    ``withdrawal`` ledger entry; rejecting it hands the reservation back.
    """
    def __init__(self, ledger=None):
        self.ledger = ledger or WalletLedger()

    def request_withdrawal(self, freelancer, amount, bank_details):
        if freelancer.user_type != 'freelancer':
            raise Unauthorized("Only freelancers can withdraw.")

        amount = to_amount(amount)
        minimum = settings.WITHDRAWAL_MIN_AMOUNT
        if amount < minimum:
            raise InvalidAmount(f"Minimum withdrawal is {minimum} {settings.PAYMENTS_CURRENCY}.")

        missing = [field for field in BANK_FIELDS if not (bank_details.get(field) or '').strip()]
        if missing:
            raise ValidationError({field: "This field is required." for field in missing})

        threshold = settings.WITHDRAWAL_AUTO_APPROVE_BELOW
        auto_approve = threshold is not None and amount < threshold

        with transaction.atomic():
            wallet = self.ledger.lock_wallet(freelancer)

            if threshold is not None and not auto_approve:
                open_large = WithdrawalRequest.objects.filter(
                    wallet=wallet,
                    status__in=WithdrawalRequest.OPEN_STATUSES,
                    amount__gte=threshold,
                ).exists()
                if open_large:
                    raise WithdrawalAlreadyPending()

            details = {field: bank_details[field].strip() for field in BANK_FIELDS}

            if auto_approve:
                request = WithdrawalRequest.objects.create(
                    requester=freelancer,
                    wallet=wallet,
                    amount=amount,
                    status=WithdrawalRequest.COMPLETED,
                    operator_notes="Auto-approved",
                    processed_at=timezone.now(),
                    **details,
                )
                self.ledger.debit_available(
                    freelancer,
                    amount,
                    WalletTransaction.REF_WITHDRAWAL,
                    request.pk,
                    description=f"Withdrawal completed to {details['bank_name']}",
                )
            else:
                self.ledger.reserve(freelancer, amount)
                request = WithdrawalRequest.objects.create(
                    requester=freelancer,
                    wallet=wallet,
                    amount=amount,
                    **details,
                )

        logger.info(
            "Withdrawal requested",
            extra={'withdrawal_id': request.pk, 'amount': str(amount), 'status': request.status},
        )
        return request

    def mark_processing(self, request_id, actor):
        with transaction.atomic():
            request = self._advance(request_id, actor, MARK_PROCESSING)
            request.save(update_fields=['status', 'updated_at'])
        return request

    def complete(self, request_id, actor, notes=''):
        with transaction.atomic():
            request = self._advance(request_id, actor, COMPLETE)
            request.operator_notes = notes or 'Approved by operator'
            request.processed_by = actor
            request.processed_at = timezone.now()
            request.save(update_fields=['status', 'operator_notes', 'processed_by', 'processed_at', 'updated_at'])
            self.ledger.record_withdrawal(
                request.requester,
                request.amount,
                request.pk,
                description=f"Withdrawal completed to {request.bank_name}",
            )
        return request

    def reject(self, request_id, actor, notes):
        if not (notes or '').strip():
            raise ValidationError({'notes': "A rejection reason is required."})

        with transaction.atomic():
            request = self._advance(request_id, actor, REJECT)
            request.operator_notes = notes.strip()
            request.processed_by = actor
            request.processed_at = timezone.now()
            request.save(update_fields=['status', 'operator_notes', 'processed_by', 'processed_at', 'updated_at'])
            self.ledger.release_reservation(request.requester, request.amount)
        return request

    def _advance(self, request_id, actor, action):
        if not actor.is_operator:
            raise Unauthorized("Only operators can resolve withdrawal requests.")

        try:
            request = WithdrawalRequest.objects.select_for_update().get(pk=request_id)
        except WithdrawalRequest.DoesNotExist:
            raise NotFound("Withdrawal request not found.")

        next_status = TRANSITIONS.get((request.status, action))
        if next_status is None:
            raise InvalidTransition(
                f"Withdrawal is already '{request.status}'.",
                current_status=request.status,
                already_applied=TRANSITIONS.get((WithdrawalRequest.PENDING, action)) == request.status,
                withdrawal_id=request.pk,
            )

        logger.info(
            "Withdrawal transition",
            extra={
                'withdrawal_id': request.pk,
                'from_status': request.status,
                'to_status': next_status,
                'operator_id': actor.pk,
            },
        )
        request.status = next_status
        return request
