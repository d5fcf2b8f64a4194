import logging

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

User = get_user_model()


@shared_task(ignore_result=True)
def notify_users(user_ids, subject, message):
    recipients = list(User.objects.filter(pk__in=user_ids).values_list('email', flat=True))
    if not recipients:
        return 0

    sent = send_mail(
        subject=subject,
        message=f"{message}\n\nThe {settings.SITE_NAME} Team",
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=recipients,
        fail_silently=False,
    )
    logger.info(f"Notification '{subject}' sent to {len(recipients)} recipient(s)")
    return sent
