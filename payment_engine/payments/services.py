import logging

from django.conf import settings
from django.db import IntegrityError, transaction

from contracts.models import Contract
from escrow import state_machine
from escrow.models import EscrowTransaction, EscrowTransition
from wallet.ledger import WalletLedger
from wallet.models import WalletTransaction
from withdrawals.services import WithdrawalWorkflow
from .amounts import to_amount
from .events import emit
from .exceptions import (
    ContractAlreadyExists,
    InvalidTransition,
    NotFound,
    PaymentsDisabled,
    Unauthorized,
)

logger = logging.getLogger(__name__)


class PaymentEngine:
    """
    Single entry point for everything that moves money.

    Each escrow action runs in one ``transaction.atomic()`` block: the escrow row
    is locked first, the transition is resolved against the state machine, the
    status is written with a compare-and-set, and the ledger side effect (which
    locks the wallet row) is applied before commit. Domain events are emitted
    only once the block commits.
    """

    def __init__(self, ledger=None, withdrawals=None):
        self.ledger = ledger or WalletLedger()
        self.withdrawals = withdrawals or WithdrawalWorkflow(self.ledger)

    def _ensure_enabled(self):
        if not settings.PAYMENTS_ENABLED:
            raise PaymentsDisabled()

    # Contracts

    def accept_proposal(self, *, project_id, client, freelancer, amount,
                        proposal_id=None, start_date=None, end_date=None):
        self._ensure_enabled()
        amount = to_amount(amount)

        if client.user_type != 'client':
            raise Unauthorized("Only clients can accept proposals.")
        if freelancer.user_type != 'freelancer':
            raise Unauthorized("Proposals can only be accepted for freelancers.")

        if proposal_id is not None and Contract.objects.filter(proposal_id=proposal_id).exists():
            raise ContractAlreadyExists(proposal_id=proposal_id)

        try:
            with transaction.atomic():
                contract = Contract.objects.create(
                    proposal_id=proposal_id,
                    project_id=project_id,
                    client=client,
                    freelancer=freelancer,
                    amount=amount,
                    start_date=start_date,
                    end_date=end_date,
                )
                escrow = EscrowTransaction.objects.create(
                    contract=contract,
                    project_id=project_id,
                    client=client,
                    freelancer=freelancer,
                    amount=amount,
                )
        except IntegrityError:
            raise ContractAlreadyExists(proposal_id=proposal_id, project_id=project_id)

        logger.info(
            "Contract created",
            extra={'contract_id': contract.pk, 'escrow_id': escrow.pk, 'amount': str(amount)},
        )
        emit(
            'contract.created',
            contract_id=contract.pk,
            escrow_id=escrow.pk,
            amount=str(amount),
            notify=[client.pk, freelancer.pk],
        )
        return contract

    # Escrow

    def get_escrow(self, escrow_id, user):
        escrow = EscrowTransaction.objects.for_user(user).filter(pk=escrow_id).first()
        if escrow is None:
            raise NotFound("Escrow not found.")
        return escrow

    def get_escrow_for_contract(self, contract_id, user):
        escrow = EscrowTransaction.objects.for_user(user).filter(contract_id=contract_id).first()
        if escrow is None:
            raise NotFound("Escrow not found for this contract.")
        return escrow

    def confirm_payment(self, escrow_id, actor):
        return self._apply(escrow_id, state_machine.CONFIRM_PAYMENT, actor)

    def mark_work_completed(self, escrow_id, actor):
        return self._apply(escrow_id, state_machine.MARK_WORK_COMPLETED, actor)

    def release_funds(self, escrow_id, actor):
        return self._apply(escrow_id, state_machine.RELEASE_FUNDS, actor)

    def dispute(self, escrow_id, actor):
        return self._apply(escrow_id, state_machine.DISPUTE, actor)

    def refund(self, escrow_id, actor):
        return self._apply(escrow_id, state_machine.REFUND, actor)

    def _apply(self, escrow_id, action, actor):
        self._ensure_enabled()

        with transaction.atomic():
            try:
                escrow = EscrowTransaction.objects.select_for_update().get(pk=escrow_id)
            except EscrowTransaction.DoesNotExist:
                raise NotFound("Escrow not found.")

            transition = state_machine.resolve(escrow, action, actor)
            from_status = escrow.status

            won = EscrowTransaction.objects.compare_and_set(
                pk=escrow.pk,
                from_status=from_status,
                version=escrow.version,
                to_status=transition.next_status,
                actor=actor,
            )
            if not won:
                escrow.refresh_from_db()
                raise InvalidTransition(
                    "Escrow was changed by another request. Refresh and try again.",
                    already_applied=escrow.transitions.filter(action=action).exists(),
                    **escrow.diagnostics(),
                )

            EscrowTransition.objects.create(
                escrow=escrow,
                action=action,
                from_status=from_status,
                to_status=transition.next_status,
                actor=actor,
            )
            self._settle(escrow, action)
            escrow.refresh_from_db()

        logger.info(
            "Escrow transition applied",
            extra={
                'escrow_id': escrow.pk,
                'action': action,
                'from_status': from_status,
                'to_status': escrow.status,
                'actor_id': actor.pk,
            },
        )
        emit(
            transition.event,
            escrow_id=escrow.pk,
            contract_id=escrow.contract_id,
            amount=str(escrow.amount),
            from_status=from_status,
            to_status=escrow.status,
            actor_id=actor.pk,
            notify=[escrow.client_id, escrow.freelancer_id],
        )
        return escrow

    def _settle(self, escrow, action):
        """Ledger and contract effects of one applied transition."""
        if action == state_machine.CONFIRM_PAYMENT:
            self.ledger.credit(
                escrow.freelancer,
                escrow.amount,
                WalletTransaction.REF_ESCROW,
                escrow.pk,
                to_pending=True,
                description=f"Payment received for contract #{escrow.contract_id}",
            )
        elif action == state_machine.RELEASE_FUNDS:
            self.ledger.move_from_pending_to_available(
                escrow.freelancer,
                escrow.amount,
                WalletTransaction.REF_ESCROW_RELEASE,
                escrow.pk,
                description=f"Funds released for contract #{escrow.contract_id}",
            )
            self._close_contract(escrow, Contract.STATUS_COMPLETED)
        elif action == state_machine.REFUND:
            self.ledger.debit_pending(
                escrow.freelancer,
                escrow.amount,
                WalletTransaction.REF_ESCROW_REFUND,
                escrow.pk,
                description=f"Escrow refunded to client for contract #{escrow.contract_id}",
            )
            self._close_contract(escrow, Contract.STATUS_CANCELLED)

    def _close_contract(self, escrow, status):
        Contract.objects.filter(pk=escrow.contract_id, status=Contract.STATUS_ACTIVE).update(status=status)

    # Withdrawals

    def request_withdrawal(self, freelancer, amount, bank_details):
        self._ensure_enabled()
        request = self.withdrawals.request_withdrawal(freelancer, amount, bank_details)
        self._emit_withdrawal('withdrawal.requested', request)
        if request.status == request.COMPLETED:
            self._emit_withdrawal('withdrawal.completed', request)
        return request

    def mark_withdrawal_processing(self, request_id, actor):
        self._ensure_enabled()
        request = self.withdrawals.mark_processing(request_id, actor)
        self._emit_withdrawal('withdrawal.processing', request)
        return request

    def complete_withdrawal(self, request_id, actor, notes=''):
        self._ensure_enabled()
        request = self.withdrawals.complete(request_id, actor, notes)
        self._emit_withdrawal('withdrawal.completed', request)
        return request

    def reject_withdrawal(self, request_id, actor, notes):
        self._ensure_enabled()
        request = self.withdrawals.reject(request_id, actor, notes)
        self._emit_withdrawal('withdrawal.rejected', request)
        return request

    def _emit_withdrawal(self, event, request):
        emit(
            event,
            withdrawal_id=request.pk,
            amount=str(request.amount),
            status=request.status,
            notify=[request.requester_id],
        )
