# events/tickets.py
"""
Ticket artefacts: ticket ids, QR payloads and QR images.
"""
import json
import uuid
from io import BytesIO

import qrcode
from django.utils import timezone

from .exceptions import ValidationError


def new_ticket_id() -> str:
    return str(uuid.uuid4())


def build_qr_payload(registration, issued_at=None) -> str:
    """Compact JSON string encoded into the ticket QR."""
    issued_at = issued_at or timezone.now()
    return json.dumps(
        {
            "ticketId": registration.ticket_id,
            "eventId": registration.event_id,
            "participantId": registration.participant_id,
            "teamId": registration.team_id,
            "issuedAt": issued_at.isoformat(),
        },
        separators=(",", ":"),
    )


def issue_ticket(registration) -> None:
    """
    Attach a QR payload to a registration that is being confirmed.

    The ticket id itself is assigned at creation and never changes. Does not
    save; callers persist it together with the status change.
    """
    if not registration.ticket_id:
        registration.ticket_id = new_ticket_id()
    registration.qr_payload = build_qr_payload(registration)


def parse_qr_payload(raw) -> str:
    """
    Extract the ticket id from a scanned payload.

    Accepts the JSON string (or an already decoded dict). Older tickets
    carried the id under "registrationId".
    """
    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError:
            raise ValidationError({"qr_payload": "Invalid QR code format."})

    if not isinstance(data, dict):
        raise ValidationError({"qr_payload": "Invalid QR code format."})

    ticket_id = data.get("ticketId") or data.get("registrationId")
    if not ticket_id:
        raise ValidationError({"qr_payload": "QR code has no ticket id."})
    return str(ticket_id)


def render_qr_png(payload: str) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
