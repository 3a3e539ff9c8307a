# events/emails.py
from django.core.mail import EmailMessage
from django.conf import settings

from .tickets import render_qr_png


def send_ticket_email(registration):
    """
    E-mail a confirmed participant their ticket, with the QR attached as PNG.
    """
    user = registration.participant
    event = registration.event

    if not getattr(user, "email", None):
        # No email set, nothing to send
        return

    if not registration.qr_payload:
        return

    subject = f"Your ticket for {event.title}"
    team_line = f"  Team: {registration.team.team_name}\n" if registration.team_id else ""

    message = (
        f"Hi {user.display_name},\n\n"
        f"Your registration is confirmed for:\n"
        f"  {event.title}\n"
        f"  Venue: {event.venue or 'TBA'}\n"
        f"  Starts: {event.event_start_date}\n"
        f"{team_line}"
        f"  Ticket ID: {registration.ticket_id}\n\n"
        f"Show the attached QR code at the entrance.\n\n"
        f"Thank you,\n"
        f"Events Team"
    )

    email = EmailMessage(
        subject=subject,
        body=message,
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
        to=[user.email],
    )
    email.attach(f"ticket-{registration.ticket_id}.png", render_qr_png(registration.qr_payload), "image/png")
    email.send(fail_silently=True)
