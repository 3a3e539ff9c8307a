# events/services/registration.py
"""
Registration state machine.

    PENDING ──approve──> CONFIRMED ──cancel──> CANCELLED
       │                                          ^
       └──reject──> REJECTED ─────────────────────┘ (superseded by a new row)

Free registrations are created CONFIRMED. Every write path runs in one
transaction and takes row locks in the order event -> registration.
"""
import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..exceptions import (
    Conflict,
    InsufficientStock,
    InvalidState,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from ..models import Event, MerchItem, Registration, RegistrationOrder
from ..policies import EventPolicy, ensure, ensure_can_register
from ..tickets import issue_ticket, new_ticket_id, parse_qr_payload
from . import dispatch
from .ledger import lock_event, release_stock, reserve_seat, reserve_stock

logger = logging.getLogger('cos.events')


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def validate_form_response(event: Event, form_response) -> dict:
    """Check answers against the organizer's form schema."""
    if form_response is None:
        form_response = {}
    if not isinstance(form_response, dict):
        raise ValidationError({"form_response": "Expected an object keyed by field id."})

    errors = {}
    for field in event.form_schema or []:
        key = field.get("field_id") or field.get("label")
        if not key:
            continue
        value = form_response.get(key)
        if value in (None, "", []):
            if field.get("required"):
                errors[key] = "This field is required."
            continue
        options = field.get("options") or []
        if field.get("type") == "select" and options and value not in options:
            errors[key] = f"'{value}' is not a valid choice."

    if errors:
        raise ValidationError({"form_response": errors})
    return form_response


def clear_previous_registration(event: Event, participant) -> None:
    """
    Remove a REJECTED/CANCELLED row so a fresh one can take its place.

    Any other existing row means the participant is already registered.
    """
    existing = (
        Registration.objects
        .select_for_update()
        .filter(event=event, participant=participant)
        .first()
    )
    if existing is None:
        return

    if existing.status not in Registration.SUPERSEDABLE_STATUSES:
        raise Conflict("You have already registered for this event.")

    logger.info(
        f"Superseding registration: reg={existing.id}, event={event.id}, "
        f"participant={participant.id}, old_status={existing.status}"
    )
    existing.delete()


def lock_form(event: Event) -> None:
    if not event.form_locked:
        Event.objects.filter(pk=event.pk).update(form_locked=True)
        event.form_locked = True
        logger.info(f"Form locked: event={event.id}")


def create_registration(event, participant, registration_type, status, form_response=None, team=None):
    """Insert a registration row. Confirmed rows get their QR payload immediately."""
    reg = Registration(
        event=event,
        participant=participant,
        team=team,
        registration_type=registration_type,
        status=status,
        ticket_id=new_ticket_id(),
        form_response=form_response or {},
    )
    if status == Registration.STATUS_CONFIRMED:
        issue_ticket(reg)

    try:
        with transaction.atomic():
            reg.save()
    except IntegrityError:
        logger.warning(f"Duplicate registration blocked: event={event.id}, participant={participant.id}")
        raise Conflict("You have already registered for this event.")
    return reg


def _locked_registration(registration_id):
    """Lock event then registration, in that order."""
    try:
        event_id = Registration.objects.values_list('event_id', flat=True).get(pk=registration_id)
    except Registration.DoesNotExist:
        raise NotFound("Registration not found.")

    event = lock_event(event_id)
    # The row may have been superseded by a re-registration while we waited
    try:
        reg = (
            Registration.objects
            .select_for_update()
            .select_related('participant', 'team')
            .get(pk=registration_id)
        )
    except Registration.DoesNotExist:
        raise NotFound("Registration not found.")
    reg.event = event
    return event, reg


def _parse_order(order: dict):
    size = order.get("size")
    color = order.get("color")
    variant = order.get("variant")
    if isinstance(variant, dict):
        size = variant.get("size", size)
        color = variant.get("color", color)

    quantity = order.get("quantity")
    if not size or not color or quantity is None:
        raise ValidationError({"order": "Order details (sku, size, color, quantity) are required."})
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError({"order": "Quantity must be a whole number."})
    if quantity < 1:
        raise ValidationError({"order": "Quantity must be at least 1."})
    return size, color, quantity


# ─────────────────────────────────────────────────────────────
# Sign-up
# ─────────────────────────────────────────────────────────────

def register_individual(event_id, participant, form_response=None, now=None) -> Registration:
    with transaction.atomic():
        event = lock_event(event_id)

        if event.is_merch:
            raise InvalidState("This is a merchandise event. Use the merchandise registration endpoint.")

        ensure_can_register(event, participant, now=now)
        form_response = validate_form_response(event, form_response)
        clear_previous_registration(event, participant)
        reserve_seat(event)

        fee = event.fee or Decimal("0")
        needs_payment = fee > 0
        reg = create_registration(
            event,
            participant,
            Event.TYPE_NORMAL,
            Registration.STATUS_PENDING if needs_payment else Registration.STATUS_CONFIRMED,
            form_response=form_response,
        )
        if needs_payment:
            RegistrationOrder.objects.create(
                registration=reg,
                sku=RegistrationOrder.SKU_REGISTRATION_FEE,
                name="Event Registration",
                quantity=1,
                price=fee,
                amount_paid=fee,
            )

        lock_form(event)

        logger.info(
            f"Registration created: reg={reg.id}, event={event.id}, "
            f"participant={participant.id}, status={reg.status}"
        )
        dispatch.registration_created(reg)

    return reg


def register_merchandise(event_id, participant, order=None, form_response=None, now=None) -> Registration:
    """
    Register for a MERCH event, optionally ordering one item variant.

    Stock is only checked here, never decremented; the decrement happens at
    payment approval. Without an order (or without a sku) this is a plain
    registration-fee order. A free claim is confirmed at once and its line
    is kept with payment status NOT_REQUIRED; it never touches stock.
    """
    order = order or {}
    sku = order.get("sku")

    with transaction.atomic():
        event = lock_event(event_id)

        if not event.is_merch:
            raise InvalidState("This event is not a merchandise event.")

        ensure_can_register(event, participant, now=now)
        form_response = validate_form_response(event, form_response)
        clear_previous_registration(event, participant)
        reserve_seat(event)

        registration_fee = event.fee or Decimal("0")
        merchandise_fee = event.merchandise_fee or Decimal("0")

        if not sku:
            total = registration_fee
            order_fields = {
                "sku": RegistrationOrder.SKU_REGISTRATION_FEE,
                "name": "Event Registration",
                "quantity": 1,
                "price": registration_fee,
            }
        else:
            size, color, quantity = _parse_order(order)

            item = MerchItem.objects.filter(event=event, sku=sku).first()
            if item is None:
                raise ValidationError({"order": "Invalid item selected."})

            variant = item.variants.filter(size=size, color=color).first()
            if variant is None:
                raise ValidationError({"order": "Invalid variant selected."})

            if quantity > variant.stock:
                raise InsufficientStock("Selected quantity exceeds available stock.")

            if item.purchase_limit_per_user and quantity > item.purchase_limit_per_user:
                raise ValidationError(
                    {"order": f"You can only purchase up to {item.purchase_limit_per_user} units of this item."}
                )

            total = registration_fee + merchandise_fee * quantity
            order_fields = {
                "sku": item.sku,
                "name": item.name,
                "size": size,
                "color": color,
                "quantity": quantity,
                "price": merchandise_fee,
            }

        needs_payment = total > 0
        reg = create_registration(
            event,
            participant,
            Event.TYPE_MERCH,
            Registration.STATUS_PENDING if needs_payment else Registration.STATUS_CONFIRMED,
            form_response=form_response,
        )
        if needs_payment:
            RegistrationOrder.objects.create(registration=reg, amount_paid=total, **order_fields)
        elif sku:
            RegistrationOrder.objects.create(
                registration=reg,
                amount_paid=total,
                payment_status=RegistrationOrder.PAYMENT_NOT_REQUIRED,
                **order_fields,
            )

        lock_form(event)

        logger.info(
            f"Merch registration created: reg={reg.id}, event={event.id}, participant={participant.id}, "
            f"sku={order_fields['sku']}, qty={order_fields['quantity']}, total={total}, status={reg.status}"
        )
        dispatch.registration_created(reg)

    return reg


# ─────────────────────────────────────────────────────────────
# Payment
# ─────────────────────────────────────────────────────────────

def upload_payment_proof(registration_id, participant, proof_ref: str) -> Registration:
    if not proof_ref:
        raise ValidationError({"payment_proof": "Payment proof is required."})

    with transaction.atomic():
        _, reg = _locked_registration(registration_id)

        if reg.participant_id != participant.id:
            raise PermissionDenied("You can only upload payment proof for your own registrations.")

        if reg.status == Registration.STATUS_CANCELLED:
            raise InvalidState("Registration has been cancelled.")

        order = reg.current_order
        if order is None or not order.needs_payment:
            raise InvalidState("This registration has no payment due.")

        if order.payment_status == RegistrationOrder.PAYMENT_APPROVED:
            raise Conflict("Payment has already been approved.")

        order.payment_proof = proof_ref
        order.payment_status = RegistrationOrder.PAYMENT_PENDING
        order.proof_uploaded_at = timezone.now()
        order.rejection_reason = None
        order.save(update_fields=['payment_proof', 'payment_status', 'proof_uploaded_at', 'rejection_reason'])

        # A new proof reopens a rejected registration for review
        if reg.status == Registration.STATUS_REJECTED:
            reg.status = Registration.STATUS_PENDING
            reg.save(update_fields=['status', 'updated_at'])

        logger.info(f"Payment proof uploaded: reg={reg.id}, participant={participant.id}")

    return reg


def approve_payment(registration_id, actor) -> Registration:
    with transaction.atomic():
        event, reg = _locked_registration(registration_id)
        ensure(EventPolicy.can_manage_event(actor, event))

        order = reg.current_order
        if order is None or not order.needs_payment:
            raise InvalidState("This registration has no payment to approve.")

        if order.payment_status == RegistrationOrder.PAYMENT_APPROVED:
            raise Conflict("Payment has already been approved.")

        if reg.status == Registration.STATUS_CANCELLED:
            raise InvalidState("Registration has been cancelled.")

        if not order.payment_proof:
            raise InvalidState("No payment proof has been uploaded yet.")

        if order.is_merchandise:
            # Raises InsufficientStock and rolls the whole approval back
            reserve_stock(event, order.sku, order.size, order.color, order.quantity)

        now = timezone.now()
        order.payment_status = RegistrationOrder.PAYMENT_APPROVED
        order.reviewed_at = now
        order.reviewed_by = actor
        order.save(update_fields=['payment_status', 'reviewed_at', 'reviewed_by'])

        reg.status = Registration.STATUS_CONFIRMED
        issue_ticket(reg)
        reg.save(update_fields=['status', 'qr_payload', 'updated_at'])

        logger.info(
            f"Payment approved: reg={reg.id}, event={event.id}, sku={order.sku}, "
            f"qty={order.quantity}, actor={actor.id}"
        )
        dispatch.payment_reviewed(reg, approved=True)

    return reg


def reject_payment(registration_id, actor, reason: str = "") -> Registration:
    with transaction.atomic():
        event, reg = _locked_registration(registration_id)
        ensure(EventPolicy.can_manage_event(actor, event))

        order = reg.current_order
        if order is None or not order.needs_payment:
            raise InvalidState("This registration has no payment to reject.")

        if order.payment_status == RegistrationOrder.PAYMENT_APPROVED:
            raise Conflict("Cannot reject an approved payment.")

        if reg.status == Registration.STATUS_CANCELLED:
            raise InvalidState("Registration has been cancelled.")

        order.payment_status = RegistrationOrder.PAYMENT_REJECTED
        order.rejection_reason = reason or "Payment proof rejected by organizer"
        order.reviewed_at = timezone.now()
        order.reviewed_by = actor
        order.save(update_fields=['payment_status', 'rejection_reason', 'reviewed_at', 'reviewed_by'])

        reg.status = Registration.STATUS_REJECTED
        reg.save(update_fields=['status', 'updated_at'])

        logger.info(f"Payment rejected: reg={reg.id}, event={event.id}, actor={actor.id}")
        dispatch.payment_reviewed(reg, approved=False)

    return reg


# ─────────────────────────────────────────────────────────────
# Cancel / check-in
# ─────────────────────────────────────────────────────────────

def cancel(registration_id, actor) -> Registration:
    """
    Cancel a registration.

    Participants may cancel their own, except an approved merchandise order,
    which only the organizer can cancel. Cancelling an approved merchandise
    order puts its stock back.
    """
    with transaction.atomic():
        event, reg = _locked_registration(registration_id)

        is_manager, _ = EventPolicy.can_manage_event(actor, event)
        is_owner = reg.participant_id == actor.id
        if not (is_owner or is_manager):
            raise PermissionDenied("You cannot cancel this registration.")

        if reg.status == Registration.STATUS_CANCELLED:
            raise Conflict("Registration is already cancelled.")

        order = reg.current_order
        holds_stock = (
            order is not None
            and order.is_merchandise
            and order.payment_status == RegistrationOrder.PAYMENT_APPROVED
        )

        if holds_stock and not is_manager:
            raise InvalidState(
                "Cannot cancel an approved merchandise order. Please contact the organizer."
            )

        old_status = reg.status
        reg.status = Registration.STATUS_CANCELLED
        reg.save(update_fields=['status', 'updated_at'])

        if holds_stock:
            release_stock(event, order.sku, order.size, order.color, order.quantity)

        logger.info(
            f"Registration cancelled: reg={reg.id}, event={event.id}, "
            f"from={old_status}, actor={actor.id}, stock_released={holds_stock}"
        )
        dispatch.registration_cancelled(reg, actor)

    return reg


def check_in(event_id, actor, qr_payload):
    """
    Mark a ticket as attended.

    Returns (registration, already_checked_in). A repeat scan is not an error
    and leaves attended_at untouched.
    """
    ticket_id = parse_qr_payload(qr_payload)

    try:
        event = Event.objects.get(pk=event_id)
    except Event.DoesNotExist:
        raise NotFound("Event not found.")

    ensure(EventPolicy.can_manage_event(actor, event))

    try:
        reg = Registration.objects.select_related('participant', 'team').get(event=event, ticket_id=ticket_id)
    except Registration.DoesNotExist:
        raise NotFound("Registration not found or invalid ticket.")

    if reg.status == Registration.STATUS_CANCELLED:
        raise InvalidState("Registration has been cancelled.")

    if reg.status != Registration.STATUS_CONFIRMED:
        raise InvalidState("Registration is not confirmed.")

    now = timezone.now()
    updated = Registration.objects.filter(pk=reg.pk, attended=False).update(
        attended=True,
        attended_at=now,
        updated_at=now,
    )
    reg.refresh_from_db(fields=['attended', 'attended_at', 'updated_at'])

    if updated:
        logger.info(f"Checked in: reg={reg.id}, event={event.id}, actor={actor.id}")
    return reg, not updated
