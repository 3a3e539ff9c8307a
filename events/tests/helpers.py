from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from events.models import Event, MerchItem, MerchVariant

User = get_user_model()


def make_user(username, role=User.ROLE_PARTICIPANT, **extra):
    extra.setdefault("email", f"{username}@example.com")
    return User.objects.create_user(username=username, password="pass1234", role=role, **extra)


def make_event(organizer, **overrides):
    """A published NORMAL event starting next week, free and unlimited by default."""
    fields = {
        "title": "Test Event",
        "description": "Event used in tests",
        "status": Event.STATUS_PUBLISHED,
        "event_start_date": timezone.now() + timedelta(days=7),
        "venue": "Main Hall",
    }
    fields.update(overrides)
    return Event.objects.create(organizer=organizer, **fields)


def make_merch_event(organizer, stock=5, merchandise_fee="300.00", **overrides):
    """A published MERCH event selling one TSHIRT variant (M / Black)."""
    overrides.setdefault("title", "Club T-Shirt Drop")
    event = make_event(
        organizer,
        event_type=Event.TYPE_MERCH,
        merchandise_fee=Decimal(merchandise_fee),
        **overrides,
    )
    item = MerchItem.objects.create(event=event, sku="TSHIRT", name="Club T-Shirt", purchase_limit_per_user=3)
    MerchVariant.objects.create(item=item, size="M", color="Black", stock=stock)
    return event


def make_team_event(organizer, **overrides):
    overrides.setdefault("title", "Hackathon")
    overrides.setdefault("allow_teams", True)
    overrides.setdefault("min_team_size", 2)
    overrides.setdefault("max_team_size", 4)
    return make_event(organizer, **overrides)


def tshirt_stock(event):
    return MerchVariant.objects.get(item__event=event, item__sku="TSHIRT", size="M", color="Black").stock


TSHIRT_ORDER = {"sku": "TSHIRT", "size": "M", "color": "Black", "quantity": 1}
