# notifications/services.py
import logging

from .models import Notification

logger = logging.getLogger("cos.notifications")


def notify(user, kind, title, body="", event=None, team=None):
    """
    Create an in-app notification.

    Fire-and-forget: a failure is logged and None is returned, the caller's
    state transition is never affected.
    """
    try:
        return Notification.objects.create(
            user=user,
            type=kind,
            title=title,
            body=body,
            event=event,
            team=team,
        )
    except Exception:
        logger.exception(
            f"Failed to create notification: user={getattr(user, 'id', user)}, kind={kind}"
        )
        return None


def notify_many(users, kind, title, body="", event=None, team=None):
    created = 0
    for user in users:
        if notify(user, kind, title, body=body, event=event, team=team) is not None:
            created += 1
    return created
