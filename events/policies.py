# events/policies.py
"""
Centralized policy layer for events and registrations.

Every check returns (allowed: bool, reason: str) so views and services can
decide how to surface a refusal. Nothing here writes to the database.
"""
from typing import Tuple

from django.utils import timezone

from .exceptions import InvalidState, PermissionDenied
from .models import Event, Registration, Team


# can_register() refusal reasons
REASON_NOT_OPEN = "Event is not open for registration"
REASON_DEADLINE_PASSED = "Registration deadline has passed"
REASON_NOT_ELIGIBLE = "You are not eligible for this event"
REASON_TEAM_ONLY = "This event requires team registration"

# Reasons that mean "you personally may not" rather than "not now"
_FORBIDDEN_REASONS = {REASON_NOT_ELIGIBLE}


class EventPolicy:
    """
    Permission and eligibility checks for events.
    All methods return bool or (bool, str) with reason.
    """

    @staticmethod
    def is_system_admin(user) -> bool:
        if not user or not user.is_authenticated:
            return False
        return user.is_system_admin

    @staticmethod
    def is_event_organizer(user, event: Event) -> bool:
        """Check if user is the organizer who owns the event."""
        if not user or not user.is_authenticated or event is None:
            return False
        return event.organizer_id == user.id

    # ─────────────────────────────────────────────────────────────
    # Event authoring
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_create_event(user) -> Tuple[bool, str]:
        if not user or not user.is_authenticated:
            return False, "Authentication required"

        if user.is_organizer or EventPolicy.is_system_admin(user):
            return True, ""

        return False, "Only organizers can create events"

    @staticmethod
    def can_manage_event(user, event: Event) -> Tuple[bool, str]:
        """Edit, publish, review payments, scan tickets."""
        if not user or not user.is_authenticated:
            return False, "Authentication required"

        if EventPolicy.is_system_admin(user):
            return True, ""

        if EventPolicy.is_event_organizer(user, event):
            return True, ""

        return False, "You do not have permission to manage this event"

    @staticmethod
    def can_edit_form(event: Event) -> Tuple[bool, str]:
        if event.form_locked:
            return False, "Form is locked because registrations already exist"
        return True, ""

    # ─────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_register(event: Event, participant, now=None, via_team: bool = False) -> Tuple[bool, str]:
        """
        Pure eligibility check for a new registration.

        `now` defaults to the current wall-clock time; the deadline is never
        reserved ahead of the request. Team-only events refuse individual
        sign-up unless `via_team` is set by the team flow.
        """
        now = now or timezone.now()

        if event.status != Event.STATUS_PUBLISHED:
            return False, REASON_NOT_OPEN

        deadline = event.effective_deadline
        if deadline and now > deadline:
            return False, REASON_DEADLINE_PASSED

        if event.eligibility:
            if getattr(participant, 'participant_type', None) not in event.eligibility:
                return False, REASON_NOT_ELIGIBLE

        if event.allow_teams and not via_team:
            return False, REASON_TEAM_ONLY

        return True, ""

    @staticmethod
    def can_cancel_registration(user, registration: Registration) -> Tuple[bool, str]:
        if not user or not user.is_authenticated:
            return False, "Authentication required"

        if registration.participant_id == user.id:
            return True, ""

        can_manage, _ = EventPolicy.can_manage_event(user, registration.event)
        if can_manage:
            return True, ""

        return False, "You cannot cancel this registration"

    @staticmethod
    def can_view_registration(user, registration: Registration) -> Tuple[bool, str]:
        return EventPolicy.can_cancel_registration(user, registration)

    # ─────────────────────────────────────────────────────────────
    # Teams
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def is_team_leader(user, team: Team) -> bool:
        if not user or not user.is_authenticated or team is None:
            return False
        return team.team_leader_id == user.id

    @staticmethod
    def can_view_team(user, team: Team) -> Tuple[bool, str]:
        if not user or not user.is_authenticated:
            return False, "Authentication required"

        if team.members.filter(user=user).exists():
            return True, ""

        can_manage, _ = EventPolicy.can_manage_event(user, team.event)
        if can_manage:
            return True, ""

        return False, "You are not a member of this team"


def ensure_can_register(event: Event, participant, now=None, via_team: bool = False) -> None:
    """Raise the matching domain error when can_register() refuses."""
    ok, reason = EventPolicy.can_register(event, participant, now=now, via_team=via_team)
    if ok:
        return
    if reason in _FORBIDDEN_REASONS:
        raise PermissionDenied(reason)
    raise InvalidState(reason)


def ensure(check: Tuple[bool, str]) -> None:
    """Turn a (allowed, reason) policy result into PermissionDenied."""
    ok, reason = check
    if not ok:
        raise PermissionDenied(reason)
