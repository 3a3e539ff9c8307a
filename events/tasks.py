# events/tasks.py
import logging

from celery import shared_task

from .models import Event, Registration
from .emails import send_ticket_email
from .webhooks import post_event_announcement

logger = logging.getLogger("cos.events")


@shared_task
def send_ticket_email_task(registration_id: int):
    """
    Async wrapper for sending the ticket email.
    """
    try:
        reg = Registration.objects.select_related("event", "participant", "team").get(id=registration_id)
    except Registration.DoesNotExist:
        return

    # Cancelled before the worker picked it up
    if reg.status != Registration.STATUS_CONFIRMED:
        return

    try:
        send_ticket_email(reg)
    except Exception as e:
        # Avoid crashing worker if email fails
        logger.warning(f"Failed to send ticket email for reg {reg.id}: {e}")


@shared_task
def announce_event_published_task(event_id: int):
    """
    Async wrapper for the Discord announcement.
    """
    try:
        event = Event.objects.select_related("organizer").get(id=event_id)
    except Event.DoesNotExist:
        return False

    return post_event_announcement(event)
