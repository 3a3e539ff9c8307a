# events/services/ledger.py
"""
Capacity ledger: event seats and merchandise variant stock.

Seats are not a counter. A seat is held by every registration that is not
CANCELLED, so reserving one means counting those rows while holding the
event row lock and inserting the new row in the same transaction.
Releasing a seat is implicit (the row becomes CANCELLED or is deleted).

Stock is a real counter on MerchVariant and is only ever changed through a
single conditional UPDATE, so no reader can observe a negative value.
"""
import logging

from django.db import transaction
from django.db.models import F

from ..exceptions import CapacityExceeded, InsufficientStock, NotFound
from ..models import Event, MerchVariant, Registration

logger = logging.getLogger('cos.events')


def lock_event(event_id) -> Event:
    """
    Fetch the event row with SELECT ... FOR UPDATE.

    Must be called inside transaction.atomic(). This is always the first
    lock taken by a write path (event -> team -> registration).
    """
    try:
        return Event.objects.select_for_update().get(pk=event_id)
    except Event.DoesNotExist:
        raise NotFound("Event not found.")


def seats_taken(event: Event) -> int:
    return Registration.objects.filter(event=event).exclude(
        status=Registration.STATUS_CANCELLED
    ).count()


def seats_left(event: Event):
    """Remaining seats, or None when the event is unlimited."""
    if event.max_participants is None:
        return None
    return max(0, event.max_participants - seats_taken(event))


def reserve_seat(event: Event, seats: int = 1) -> None:
    """
    Check that `seats` more registrations fit under max_participants.

    The caller holds the event lock (lock_event) and inserts the rows
    before the transaction commits; that pairing is what makes the
    reservation atomic.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("reserve_seat() must run inside transaction.atomic()")

    if event.max_participants is None:
        return

    taken = seats_taken(event)
    if taken + seats > event.max_participants:
        logger.warning(
            f"Seat reservation refused: event={event.id}, "
            f"requested={seats}, taken={taken}, max={event.max_participants}"
        )
        if seats == 1:
            raise CapacityExceeded("Event is full.")
        left = max(0, event.max_participants - taken)
        raise CapacityExceeded(f"Event is full. Only {left} spots left.")


def find_variant(event: Event, sku: str, size: str, color: str) -> MerchVariant:
    try:
        return MerchVariant.objects.select_related('item').get(
            item__event=event,
            item__sku=sku,
            size=size,
            color=color,
        )
    except MerchVariant.DoesNotExist:
        raise NotFound(f"No variant {size}/{color} for item '{sku}'.")


def reserve_stock(event: Event, sku: str, size: str, color: str, quantity: int) -> None:
    """Decrement variant stock by `quantity` if, and only if, enough is left."""
    variant = find_variant(event, sku, size, color)

    updated = MerchVariant.objects.filter(
        pk=variant.pk,
        stock__gte=quantity,
    ).update(stock=F('stock') - quantity)

    if not updated:
        logger.warning(
            f"Stock reservation refused: event={event.id}, sku={sku}, "
            f"variant={size}/{color}, requested={quantity}"
        )
        raise InsufficientStock(f"Insufficient stock for {sku} ({size}/{color}).")

    logger.info(
        f"Stock reserved: event={event.id}, sku={sku}, variant={size}/{color}, qty={quantity}"
    )


def release_stock(event: Event, sku: str, size: str, color: str, quantity: int) -> None:
    """
    Re-credit stock for an approved order that is being cancelled.

    Callers guarantee this runs once per order: the order's APPROVED status
    is checked and changed under the registration row lock in the same
    transaction.
    """
    variant = find_variant(event, sku, size, color)
    MerchVariant.objects.filter(pk=variant.pk).update(stock=F('stock') + quantity)

    logger.info(
        f"Stock released: event={event.id}, sku={sku}, variant={size}/{color}, qty={quantity}"
    )
