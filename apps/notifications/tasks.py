import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMultiAlternatives

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(ConnectionError,),
    retry_backoff=10,
    retry_kwargs={"max_retries": 3},
)
def send_email(self, to, subject, text, html=None):
    """
    Deliver one prebuilt email. Returns the number of messages sent.
    """
    msg = EmailMultiAlternatives(
        subject=subject,
        body=text,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to],
    )
    if html:
        msg.attach_alternative(html, "text/html")
    sent = msg.send()
    logger.info("Sent email '%s' to %s", subject, to)
    return sent
