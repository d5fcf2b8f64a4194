"""
Typed failures of the payment engine.

Every exception is a DRF ``APIException`` so views can let them propagate and
get a structured ``{"detail": ..., "code": ...}`` response. ``context`` carries
diagnostic detail (current status, last actor, ...) that the exception handler
only exposes to operators.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class PaymentError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Payment operation failed."
    default_code = 'payment_error'

    def __init__(self, detail=None, code=None, **context):
        super().__init__(detail=detail, code=code)
        self.context = context


class InvalidTransition(PaymentError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This action is not allowed in the current state. Refresh and try again."
    default_code = 'invalid_transition'

    @property
    def current_status(self):
        return self.context.get('current_status')

    @property
    def already_applied(self):
        return bool(self.context.get('already_applied', False))


class Unauthorized(PaymentError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to perform this action."
    default_code = 'unauthorized'


class InsufficientFunds(PaymentError):
    default_detail = "Insufficient available balance."
    default_code = 'insufficient_funds'


class InsufficientPendingFunds(PaymentError):
    # Pending balance can only run short if the ledger is inconsistent.
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal ledger error. The operation was not applied."
    default_code = 'insufficient_pending_funds'


class InvalidAmount(PaymentError):
    default_detail = "Amount must be a positive value with at most two decimal places."
    default_code = 'invalid_amount'


class NotFound(PaymentError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = 'not_found'


class ContractAlreadyExists(PaymentError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "A contract already exists for this proposal or engagement."
    default_code = 'contract_exists'


class WithdrawalAlreadyPending(PaymentError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "You already have a withdrawal request awaiting operator approval."
    default_code = 'withdrawal_pending'


class LedgerInconsistency(PaymentError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Wallet balances do not reconcile with the ledger."
    default_code = 'ledger_inconsistency'


class PaymentsDisabled(PaymentError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Payment features are currently disabled."
    default_code = 'payments_disabled'
