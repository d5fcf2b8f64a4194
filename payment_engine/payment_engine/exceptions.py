import logging

from rest_framework.views import exception_handler

from payments.exceptions import PaymentError

logger = logging.getLogger('payments')


def payment_exception_handler(exc, context):
    """
    DRF's handler plus a stable ``code`` for payment errors. Operators also get
    the diagnostic context carried by the exception (current status, last
    actor, already-applied flag).
    """
    response = exception_handler(exc, context)
    if response is None or not isinstance(exc, PaymentError):
        return response

    response.data = {'detail': str(exc.detail), 'code': exc.get_codes()}

    request = context.get('request')
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated and getattr(user, 'is_operator', False):
        if exc.context:
            response.data['diagnostics'] = exc.context

    if response.status_code >= 500:
        logger.error(
            f"Payment error {exc.get_codes()} on {getattr(request, 'path', '?')}",
            extra={key: str(value) for key, value in exc.context.items()},
        )
    return response
