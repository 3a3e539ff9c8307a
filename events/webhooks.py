# events/webhooks.py
"""
Discord announcement for newly published events.
"""
import logging

import requests
from django.conf import settings

logger = logging.getLogger('cos.events')

DISCORD_BLURPLE = 0x5865F2


def build_event_embed(event) -> dict:
    organizer = event.organizer
    start = event.event_start_date.strftime("%b %d, %Y %I:%M %p") if event.event_start_date else "TBA"

    return {
        "embeds": [{
            "title": f"New Event: {event.title}",
            "description": event.description or "No description provided",
            "color": DISCORD_BLURPLE,
            "fields": [
                {"name": "Start Date", "value": start, "inline": True},
                {"name": "Venue", "value": event.venue or "TBA", "inline": True},
                {"name": "Type", "value": event.event_type, "inline": True},
                {
                    "name": "Max Participants",
                    "value": str(event.max_participants) if event.max_participants else "Unlimited",
                    "inline": True,
                },
                {"name": "Fee", "value": f"₹{event.fee}" if event.fee else "Free", "inline": True},
                {"name": "Tags", "value": ", ".join(event.tags) if event.tags else "None", "inline": True},
            ],
            "footer": {"text": f"Organized by {organizer.display_name}"},
            "timestamp": event.created_at.isoformat() if event.created_at else None,
        }]
    }


def post_event_announcement(event) -> bool:
    """
    Post the event embed to the organizer's Discord webhook.

    Returns False when nothing was sent. Network errors are logged here and
    never reach the caller.
    """
    webhook_url = getattr(event.organizer, "discord_webhook", None)
    if not webhook_url:
        return False

    try:
        response = requests.post(
            webhook_url,
            json=build_event_embed(event),
            timeout=getattr(settings, "DISCORD_WEBHOOK_TIMEOUT", 5),
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Discord announcement failed for event {event.id}: {e}")
        return False

    logger.info(f"Discord announcement posted for event {event.id}")
    return True
