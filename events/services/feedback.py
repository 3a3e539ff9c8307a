# events/services/feedback.py
"""
Attendee feedback.

Only a participant whose registration is confirmed and checked in can rate
the event, once per registration. The author may revise it for a day after
submitting.
"""
import logging
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from ..exceptions import Conflict, InvalidState, NotFound, PermissionDenied, ValidationError
from ..models import Event, Feedback, Registration
from ..sanitizers import sanitize_text

logger = logging.getLogger('cos.events')

FEEDBACK_EDIT_WINDOW = timedelta(hours=24)
MAX_COMMENT_LENGTH = 2000


def clean_rating(rating) -> int:
    try:
        if isinstance(rating, bool):
            raise TypeError(rating)
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError({"rating": "Rating must be a whole number."})
    if not Feedback.RATING_MIN <= rating <= Feedback.RATING_MAX:
        raise ValidationError(
            {"rating": f"Rating must be between {Feedback.RATING_MIN} and {Feedback.RATING_MAX}."}
        )
    return rating


def _attended_registration(event_id, participant) -> Registration:
    if not Event.objects.filter(pk=event_id).exists():
        raise NotFound("Event not found.")

    reg = (
        Registration.objects
        .select_for_update()
        .filter(event_id=event_id, participant=participant)
        .first()
    )
    if reg is None or reg.status != Registration.STATUS_CONFIRMED:
        raise PermissionDenied("You are not registered for this event.")
    if not reg.attended:
        raise PermissionDenied("Feedback opens once you have been checked in.")
    return reg


def submit_feedback(event_id, participant, rating, comment="", is_anonymous=True) -> Feedback:
    rating = clean_rating(rating)
    comment = sanitize_text(comment, max_length=MAX_COMMENT_LENGTH)

    with transaction.atomic():
        reg = _attended_registration(event_id, participant)
        if Feedback.objects.filter(registration=reg).exists():
            raise Conflict("You have already submitted feedback for this event.")

        feedback = Feedback.objects.create(
            registration=reg,
            event_id=reg.event_id,
            rating=rating,
            comment=comment,
            is_anonymous=bool(is_anonymous),
        )

    logger.info(
        f"Feedback submitted: feedback={feedback.id}, event={event_id}, "
        f"reg={reg.id}, rating={rating}"
    )
    return feedback


def update_feedback(event_id, participant, rating=None, comment=None, is_anonymous=None) -> Feedback:
    """Revise the caller's feedback. Fields left as None keep their value."""
    if rating is not None:
        rating = clean_rating(rating)

    with transaction.atomic():
        feedback = (
            Feedback.objects
            .select_for_update()
            .filter(event_id=event_id, registration__participant=participant)
            .first()
        )
        if feedback is None:
            raise NotFound("You have not submitted feedback for this event.")

        if timezone.now() - feedback.created_at > FEEDBACK_EDIT_WINDOW:
            raise InvalidState("Feedback can only be changed within 24 hours of submitting it.")

        if rating is not None:
            feedback.rating = rating
        if comment is not None:
            feedback.comment = sanitize_text(comment, max_length=MAX_COMMENT_LENGTH)
        if is_anonymous is not None:
            feedback.is_anonymous = bool(is_anonymous)
        feedback.save()

    logger.info(f"Feedback updated: feedback={feedback.id}, event={event_id}, rating={feedback.rating}")
    return feedback


def feedback_status(event_id, participant):
    """The caller's feedback for the event, or None."""
    if not Event.objects.filter(pk=event_id).exists():
        raise NotFound("Event not found.")
    return Feedback.objects.filter(event_id=event_id, registration__participant=participant).first()
