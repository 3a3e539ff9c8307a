# events/state_machine.py
"""
Event lifecycle.

    DRAFT → PUBLISHED → ONGOING → CLOSED → COMPLETED
      └───────┴───────────┴─────────┴──→ CANCELLED

Any transition not in VALID_TRANSITIONS is rejected. Edits are limited to an
explicit allow-list per status (EDITABLE_FIELDS).
"""
from typing import Tuple
import logging

from django.db import transaction

from .exceptions import Conflict, InvalidState, ValidationError
from .models import Event, MerchItem, MerchVariant
from .policies import EventPolicy, ensure
from .sanitizers import sanitize_event_fields
from .services import dispatch
from .services.ledger import lock_event

logger = logging.getLogger('cos.events')


# Valid state transitions: from_status -> list of allowed to_statuses
VALID_TRANSITIONS = {
    Event.STATUS_DRAFT: [Event.STATUS_PUBLISHED, Event.STATUS_CANCELLED],
    Event.STATUS_PUBLISHED: [Event.STATUS_ONGOING, Event.STATUS_CLOSED, Event.STATUS_CANCELLED],
    Event.STATUS_ONGOING: [Event.STATUS_CLOSED, Event.STATUS_COMPLETED, Event.STATUS_CANCELLED],
    Event.STATUS_CLOSED: [Event.STATUS_COMPLETED, Event.STATUS_CANCELLED],
    Event.STATUS_COMPLETED: [],
    Event.STATUS_CANCELLED: [],
}

AUTHORING_FIELDS = frozenset({
    'title',
    'description',
    'event_type',
    'eligibility',
    'registration_deadline',
    'event_start_date',
    'event_end_date',
    'venue',
    'max_participants',
    'fee',
    'merchandise_fee',
    'tags',
    'allow_teams',
    'min_team_size',
    'max_team_size',
    'form_schema',
    'items',
})

# Fields an organizer may change, per status. Missing status = not editable.
EDITABLE_FIELDS = {
    Event.STATUS_DRAFT: AUTHORING_FIELDS,
    Event.STATUS_PUBLISHED: frozenset({'description', 'registration_deadline', 'max_participants'}),
}

DEFAULT_MIN_TEAM_SIZE = 2
DEFAULT_MAX_TEAM_SIZE = 4


def can_transition(event: Event, new_status: str) -> Tuple[bool, str]:
    """
    Check if an event can transition to a new status.

    Returns (can_transition: bool, reason: str)
    """
    current_status = event.status

    if new_status == current_status:
        return True, "Same status"

    if new_status not in dict(Event.STATUS_CHOICES):
        return False, f"Invalid status: {new_status}"

    allowed = VALID_TRANSITIONS.get(current_status, [])

    if new_status not in allowed:
        return False, f"Cannot transition from '{current_status}' to '{new_status}'"

    return True, ""


def transition(event: Event, new_status: str, actor=None, save: bool = True) -> Tuple[bool, str]:
    """
    Attempt to transition an event to a new status.

    Returns (success: bool, message: str)
    """
    can, reason = can_transition(event, new_status)

    if not can:
        logger.warning(
            f"Invalid state transition attempted: event={event.id}, "
            f"from={event.status}, to={new_status}, actor={getattr(actor, 'id', 'unknown')}. "
            f"Reason: {reason}"
        )
        return False, reason

    old_status = event.status
    event.status = new_status

    if save:
        event.save(update_fields=['status', 'updated_at'])

    logger.info(
        f"Event state transition: event={event.id}, "
        f"from={old_status}, to={new_status}, actor={getattr(actor, 'id', 'unknown')}"
    )

    return True, f"Transitioned from '{old_status}' to '{new_status}'"


def get_allowed_transitions(event: Event) -> list:
    return VALID_TRANSITIONS.get(event.status, [])


def is_terminal_status(status: str) -> bool:
    return not VALID_TRANSITIONS.get(status)


# ─────────────────────────────────────────────────────────────
# Validation helpers
# ─────────────────────────────────────────────────────────────

def _validate_event(event: Event) -> None:
    errors = {}

    if not (event.title or '').strip():
        errors['title'] = "Title is required."

    if not event.event_start_date:
        errors['event_start_date'] = "Start date is required."
    elif event.event_end_date and event.event_end_date < event.event_start_date:
        errors['event_end_date'] = "End date must be after the start date."

    if event.event_type not in dict(Event.TYPE_CHOICES):
        errors['event_type'] = f"Invalid event type: {event.event_type}"

    if event.allow_teams:
        if event.is_merch:
            errors['allow_teams'] = "Merchandise events do not support teams."
        low, high = event.min_team_size, event.max_team_size
        if not low or low < 1:
            errors['min_team_size'] = "Minimum team size must be at least 1."
        elif not high or high < low:
            errors['max_team_size'] = "Maximum team size must be at least the minimum."

    if event.fee is not None and event.fee < 0:
        errors['fee'] = "Fee cannot be negative."
    if event.merchandise_fee is not None and event.merchandise_fee < 0:
        errors['merchandise_fee'] = "Merchandise fee cannot be negative."

    if not isinstance(event.eligibility, list):
        errors['eligibility'] = "Expected a list of participant types."
    if not isinstance(event.form_schema, list):
        errors['form_schema'] = "Expected a list of form fields."

    if errors:
        raise ValidationError(errors)


def _replace_items(event: Event, items) -> None:
    """Replace the merchandise catalogue wholesale (DRAFT only)."""
    if not isinstance(items, list):
        raise ValidationError({'items': "Expected a list of items."})

    seen = set()
    for item in items:
        sku = (item.get('sku') or '').strip()
        if not sku or not item.get('name'):
            raise ValidationError({'items': "Every item needs a sku and a name."})
        if sku in seen:
            raise ValidationError({'items': f"Duplicate sku '{sku}'."})
        seen.add(sku)

    MerchItem.objects.filter(event=event).delete()

    for item in items:
        merch_item = MerchItem.objects.create(
            event=event,
            sku=item['sku'].strip(),
            name=item['name'],
            purchase_limit_per_user=item.get('purchase_limit_per_user'),
        )
        for variant in item.get('variants') or []:
            stock = variant.get('stock', 0)
            if not isinstance(stock, int) or stock < 0:
                raise ValidationError({'items': f"Stock for '{merch_item.sku}' must be a non-negative integer."})
            MerchVariant.objects.create(
                item=merch_item,
                size=variant.get('size') or '-',
                color=variant.get('color') or '-',
                stock=stock,
            )


def _apply_team_defaults(event: Event) -> None:
    if event.allow_teams:
        event.min_team_size = event.min_team_size or DEFAULT_MIN_TEAM_SIZE
        event.max_team_size = event.max_team_size or max(DEFAULT_MAX_TEAM_SIZE, event.min_team_size)
    else:
        event.min_team_size = None
        event.max_team_size = None


# ─────────────────────────────────────────────────────────────
# Operations
# ─────────────────────────────────────────────────────────────

def create_event(organizer, data: dict) -> Event:
    ensure(EventPolicy.can_create_event(organizer))

    unknown = set(data) - AUTHORING_FIELDS
    if unknown:
        raise ValidationError({field: "Unknown field." for field in sorted(unknown)})

    data = sanitize_event_fields(data)
    fields = {k: v for k, v in data.items() if k != 'items'}
    items = data.get('items')

    with transaction.atomic():
        event = Event(organizer=organizer, status=Event.STATUS_DRAFT, **fields)

        if event.is_merch:
            event.form_schema = []
        _apply_team_defaults(event)
        _validate_event(event)
        event.save()

        if event.is_merch and items:
            _replace_items(event, items)

        logger.info(f"Event created: event={event.id}, organizer={organizer.id}, type={event.event_type}")

    return event


def update_event(event_id, changes: dict, actor) -> Event:
    with transaction.atomic():
        event = lock_event(event_id)
        ensure(EventPolicy.can_manage_event(actor, event))

        allowed = EDITABLE_FIELDS.get(event.status)
        if allowed is None:
            logger.warning(f"Edit refused: event={event.id}, status={event.status}, actor={actor.id}")
            raise InvalidState(f"Events in {event.status} status cannot be edited.")

        disallowed = sorted(set(changes) - allowed)
        if disallowed:
            raise ValidationError({
                field: f"This field cannot be changed while the event is {event.status}."
                for field in disallowed
            })

        changes = sanitize_event_fields(changes)

        if 'form_schema' in changes:
            ok, reason = EventPolicy.can_edit_form(event)
            if not ok:
                raise InvalidState(reason)

        if event.status == Event.STATUS_PUBLISHED and 'max_participants' in changes:
            new_max = changes['max_participants']
            old_max = event.max_participants
            if new_max is not None and (old_max is None or new_max < old_max):
                raise ValidationError({'max_participants': "Participant limit can only be increased."})

        for field, value in changes.items():
            if field != 'items':
                setattr(event, field, value)

        if event.status == Event.STATUS_DRAFT:
            _apply_team_defaults(event)
        _validate_event(event)
        event.save()

        if 'items' in changes and event.is_merch:
            _replace_items(event, changes['items'])

        logger.info(f"Event updated: event={event.id}, fields={sorted(changes)}, actor={actor.id}")

        if event.status == Event.STATUS_PUBLISHED and changes:
            dispatch.event_updated(event, changes.keys())

    return event


def publish_event(event_id, actor) -> Event:
    with transaction.atomic():
        event = lock_event(event_id)
        ensure(EventPolicy.can_manage_event(actor, event))

        if event.status == Event.STATUS_PUBLISHED:
            raise Conflict("Event is already published.")

        if not event.title or not event.event_start_date:
            raise ValidationError({'event': "Title and start date are required to publish."})

        if event.is_merch and not MerchVariant.objects.filter(item__event=event).exists():
            raise ValidationError({'items': "Merchandise events need at least one item with a variant."})

        ok, reason = transition(event, Event.STATUS_PUBLISHED, actor=actor)
        if not ok:
            raise InvalidState(reason)

        dispatch.event_published(event)

    return event


def change_status(event_id, new_status: str, actor) -> Event:
    if new_status == Event.STATUS_PUBLISHED:
        return publish_event(event_id, actor)

    with transaction.atomic():
        event = lock_event(event_id)
        ensure(EventPolicy.can_manage_event(actor, event))

        ok, reason = transition(event, new_status, actor=actor)
        if not ok:
            raise InvalidState(reason)

    return event
