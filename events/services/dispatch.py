# events/services/dispatch.py
"""
Side effects of registration and team transitions.

Everything here is queued with transaction.on_commit, so nothing is sent for
a transition that rolls back, and every callback swallows (and logs) its own
failure so a committed transition is never reported as failed.
"""
import logging

from django.db import transaction

from notifications.models import Notification
from notifications.services import notify, notify_many

from ..models import Registration

logger = logging.getLogger('cos.events')


def _after_commit(label, func, *args, **kwargs):
    def run():
        try:
            func(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Side effect '{label}' failed: {e}")

    transaction.on_commit(run)


def _queue_ticket_email(registration_id):
    from ..tasks import send_ticket_email_task
    send_ticket_email_task.delay(registration_id)


def _queue_announcement(event_id):
    from ..tasks import announce_event_published_task
    announce_event_published_task.delay(event_id)


def ticket_issued(registration):
    _after_commit(f"ticket-email:{registration.id}", _queue_ticket_email, registration.id)


def _notify_organizer_of_registration(event, body, team=None):
    _after_commit(
        f"notify-organizer:{event.id}",
        notify, event.organizer, Notification.TYPE_REGISTRATION, "New registration", body,
        event=event, team=team,
    )


def registration_created(registration):
    event = registration.event
    if registration.status == Registration.STATUS_CONFIRMED:
        title = f"Registered for {event.title}"
        body = f"Your ticket ID is {registration.ticket_id}."
        ticket_issued(registration)
        _notify_organizer_of_registration(
            event, f"{registration.participant.display_name} registered for {event.title}.",
        )
    else:
        title = f"Registration received for {event.title}"
        body = "Upload your payment proof so the organizer can confirm your registration."

    _after_commit(
        f"notify-registration:{registration.id}",
        notify, registration.participant, Notification.TYPE_REGISTRATION, title, body, event=event,
    )


def payment_reviewed(registration, approved: bool):
    event = registration.event
    if approved:
        title = f"Payment approved for {event.title}"
        body = f"Your ticket ID is {registration.ticket_id}."
        ticket_issued(registration)
    else:
        order = registration.current_order
        reason = order.rejection_reason if order else ""
        title = f"Payment rejected for {event.title}"
        body = f"Reason: {reason}" if reason else "Please contact the organizer."

    _after_commit(
        f"notify-payment:{registration.id}",
        notify, registration.participant, Notification.TYPE_PAYMENT, title, body, event=event,
    )


def registration_cancelled(registration, actor):
    if actor.id == registration.participant_id:
        return
    event = registration.event
    _after_commit(
        f"notify-cancel:{registration.id}",
        notify, registration.participant, Notification.TYPE_REGISTRATION,
        f"Registration cancelled for {event.title}",
        "The organizer cancelled your registration.",
        event=event,
    )


def team_member_joined(team, user):
    others = [m.user for m in team.accepted_members().select_related('user') if m.user_id != user.id]
    _after_commit(
        f"notify-team-join:{team.id}",
        notify_many, others, Notification.TYPE_TEAM_JOIN,
        f"{user.display_name} joined {team.team_name}",
        event=team.event, team=team,
    )


def team_member_left(team, user):
    _after_commit(
        f"notify-team-leave:{team.id}",
        notify, team.team_leader, Notification.TYPE_TEAM_LEAVE,
        f"{user.display_name} left {team.team_name}",
        event=team.event, team=team,
    )


def team_invited(team, user):
    _after_commit(
        f"notify-team-invite:{team.id}",
        notify, user, Notification.TYPE_TEAM_INVITE,
        f"You are invited to join {team.team_name}",
        f"{team.team_leader.display_name} invited you to their team for {team.event.title}.",
        event=team.event, team=team,
    )


def team_registered(team, registrations):
    for reg in registrations:
        ticket_issued(reg)
    _after_commit(
        f"notify-team-registered:{team.id}",
        notify_many, [reg.participant for reg in registrations], Notification.TYPE_REGISTRATION,
        f"{team.team_name} is registered for {team.event.title}",
        "Your team is complete and your ticket has been issued.",
        event=team.event, team=team,
    )
    _notify_organizer_of_registration(
        team.event, f"Team {team.team_name} registered for {team.event.title} ({len(registrations)} members).", team=team,
    )


def team_cancelled(team, members):
    others = [u for u in members if u.id != team.team_leader_id]
    _after_commit(
        f"notify-team-cancel:{team.id}",
        notify_many, others, Notification.TYPE_TEAM_LEAVE,
        f"{team.team_name} was cancelled",
        "The team leader cancelled the team.",
        event=team.event, team=team,
    )


def event_published(event):
    if not getattr(event.organizer, 'discord_webhook', None):
        return
    _after_commit(f"discord:{event.id}", _queue_announcement, event.id)


def event_updated(event, fields):
    participants = [
        reg.participant
        for reg in event.registrations.filter(status__in=Registration.ACTIVE_STATUSES).select_related('participant')
    ]
    if not participants:
        return
    _after_commit(
        f"notify-event-update:{event.id}",
        notify_many, participants, Notification.TYPE_EVENT_UPDATE,
        f"{event.title} was updated",
        f"Updated: {', '.join(sorted(fields))}.",
        event=event,
    )
