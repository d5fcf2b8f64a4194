from django.conf import settings
from rest_framework.permissions import BasePermission

from .exceptions import PaymentsDisabled


class PaymentsEnabled(BasePermission):
    """Turns every payment route into a 503 while ``PAYMENTS_ENABLED`` is off."""

    def has_permission(self, request, view):
        if not settings.PAYMENTS_ENABLED:
            raise PaymentsDisabled()
        return True
