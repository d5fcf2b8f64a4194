"""
Domain events of the payment engine.

Events are published after the surrounding transaction commits, through
``send_robust`` so a failing subscriber can never undo or block a payment.
"""
import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# kwargs: event (str), payload (dict)
payment_event = Signal()


def emit(event, **payload):
    transaction.on_commit(lambda: _dispatch(event, payload))


def _dispatch(event, payload):
    responses = payment_event.send_robust(sender=event, event=event, payload=payload)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.warning(
                f"Subscriber {getattr(receiver, '__name__', receiver)} failed for {event}: {response}",
                extra={'event': event},
            )
