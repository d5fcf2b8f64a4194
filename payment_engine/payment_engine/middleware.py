import logging
from django.utils import timezone

logger = logging.getLogger('audit')

class UserActivityLoggingMiddleWare:
    """Writes one audit line per request: who called what, and how it ended."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            actor = f"{user.email} ({getattr(user, 'user_type', '') or 'staff'})"
        else:
            actor = "Anonymous"

        logger.info(
            f"[{timezone.now().isoformat()}] {actor} - {request.method} "
            f"{request.get_full_path()} -> {response.status_code} - IP: {self.get_client_ip(request)}"
        )

        return response

    def get_client_ip(self, request):
        forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if forwarded_for:
            return forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
