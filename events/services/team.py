# events/services/team.py
"""
Team state machine.

    FORMING ──last member accepted──> COMPLETE ──batch registration──> REGISTERED
       ^                                 │
       └──────── member leaves ──────────┘
    FORMING / COMPLETE ──leader cancels──> CANCELLED

COMPLETE is reached and left inside the same transaction: the batch of
member registrations is created, or nothing is.
"""
import logging
import secrets

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..exceptions import (
    CapacityExceeded,
    Conflict,
    InvalidState,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from ..models import Registration, Team, TeamMember
from ..policies import EventPolicy, ensure_can_register
from . import dispatch
from .ledger import lock_event, reserve_seat
from .registration import (
    clear_previous_registration,
    create_registration,
    lock_form,
    validate_form_response,
)

logger = logging.getLogger('cos.events')

INVITE_CODE_BYTES = 4
INVITE_CODE_ATTEMPTS = 10


def new_invite_code() -> str:
    return secrets.token_hex(INVITE_CODE_BYTES).upper()


def _locked_team(team_id=None, invite_code=None):
    """Lock event then team, in that order."""
    lookup = {'pk': team_id} if team_id is not None else {'invite_code': (invite_code or '').strip().upper()}
    try:
        ref = Team.objects.values('pk', 'event_id').get(**lookup)
    except Team.DoesNotExist:
        raise NotFound("Team not found." if team_id is not None else "Invalid invite code.")

    event = lock_event(ref['event_id'])
    team = Team.objects.select_for_update().select_related('team_leader').get(pk=ref['pk'])
    team.event = event
    return event, team


def ensure_free_for_team(event, user, exclude_team=None) -> None:
    """A participant holds at most one active team and no individual registration per event."""
    memberships = TeamMember.objects.filter(
        team__event=event,
        team__status__in=Team.ACTIVE_STATUSES,
        user=user,
        status=TeamMember.STATUS_ACCEPTED,
    )
    if exclude_team is not None:
        memberships = memberships.exclude(team=exclude_team)
    if memberships.exists():
        raise Conflict("You are already part of a team for this event.")

    if Registration.objects.filter(
        event=event,
        participant=user,
        status__in=Registration.ACTIVE_STATUSES,
    ).exists():
        raise Conflict("You already have an individual registration for this event.")


def _validate_team_size(event, team_size) -> int:
    try:
        team_size = int(team_size)
    except (TypeError, ValueError):
        raise ValidationError({"team_size": "Team size must be a whole number."})

    low = event.min_team_size or 1
    high = event.max_team_size or low
    if team_size < low or team_size > high:
        raise ValidationError({"team_size": f"Team size must be between {low} and {high}."})
    return team_size


def _save_with_invite_code(team) -> None:
    for _ in range(INVITE_CODE_ATTEMPTS):
        team.invite_code = new_invite_code()
        if Team.objects.filter(invite_code=team.invite_code).exists():
            continue
        try:
            with transaction.atomic():
                team.save()
            return
        except IntegrityError:
            logger.warning(f"Invite code collision on {team.invite_code}, retrying")
    raise Conflict("Could not allocate an invite code. Please try again.")


def _register_team(event, team):
    """
    Batch registration: one CONFIRMED registration per accepted member.

    Runs inside the caller's transaction with event and team locked; any
    failure propagates and rolls back the member change that triggered it.
    """
    now = timezone.now()
    team.status = Team.STATUS_COMPLETE
    team.completed_at = now
    team.save(update_fields=['status', 'completed_at', 'updated_at'])

    members = list(team.accepted_members().select_related('user'))
    if len(members) != team.team_size:
        raise InvalidState("Team does not have the required number of members.")

    for member in members:
        clear_previous_registration(event, member.user)

    reserve_seat(event, seats=len(members))

    registrations = [
        create_registration(
            event,
            member.user,
            event.event_type,
            Registration.STATUS_CONFIRMED,
            form_response=team.form_response,
            team=team,
        )
        for member in members
    ]

    team.status = Team.STATUS_REGISTERED
    team.registered_at = now
    team.save(update_fields=['status', 'registered_at', 'updated_at'])
    lock_form(event)

    logger.info(
        f"Team registered: team={team.id}, event={event.id}, "
        f"registrations={[reg.id for reg in registrations]}"
    )
    dispatch.team_registered(team, registrations)
    return registrations


def _accept_member(event, team, user, now=None, via_invite=False):
    existing = team.members.filter(user=user).first()
    if existing is not None:
        if existing.status == TeamMember.STATUS_ACCEPTED:
            raise Conflict("You are already part of this team.")
        if existing.status == TeamMember.STATUS_PENDING and not via_invite:
            raise Conflict("You have a pending invite for this team. Respond to the invite instead.")

    if team.accepted_count >= team.team_size:
        raise CapacityExceeded("This team is already full.")

    if team.status != Team.STATUS_FORMING:
        raise InvalidState("This team is no longer accepting members.")

    ensure_can_register(event, user, now=now, via_team=True)
    ensure_free_for_team(event, user, exclude_team=team)

    joined_at = timezone.now()
    if existing is not None:
        existing.status = TeamMember.STATUS_ACCEPTED
        existing.joined_at = joined_at
        existing.save(update_fields=['status', 'joined_at'])
    else:
        try:
            with transaction.atomic():
                TeamMember.objects.create(
                    team=team,
                    user=user,
                    status=TeamMember.STATUS_ACCEPTED,
                    joined_at=joined_at,
                )
        except IntegrityError:
            raise Conflict("You are already part of this team.")

    logger.info(f"Team member accepted: team={team.id}, user={user.id}")
    dispatch.team_member_joined(team, user)

    if team.accepted_count == team.team_size:
        _register_team(event, team)

    return team


# ─────────────────────────────────────────────────────────────
# Operations
# ─────────────────────────────────────────────────────────────

def create_team(event_id, leader, team_name, team_size, form_response=None, now=None) -> Team:
    team_name = (team_name or '').strip()
    if not team_name:
        raise ValidationError({"team_name": "Team name is required."})

    with transaction.atomic():
        event = lock_event(event_id)

        if not event.allow_teams:
            raise InvalidState("This event does not support team registration.")

        ensure_can_register(event, leader, now=now, via_team=True)
        team_size = _validate_team_size(event, team_size)
        form_response = validate_form_response(event, form_response)
        ensure_free_for_team(event, leader)

        team = Team(
            event=event,
            team_name=team_name,
            team_leader=leader,
            team_size=team_size,
            form_response=form_response,
        )
        _save_with_invite_code(team)

        TeamMember.objects.create(
            team=team,
            user=leader,
            status=TeamMember.STATUS_ACCEPTED,
            joined_at=timezone.now(),
        )

        logger.info(
            f"Team created: team={team.id}, event={event.id}, leader={leader.id}, "
            f"size={team_size}, code={team.invite_code}"
        )

        if team_size == 1:
            _register_team(event, team)

    return team


def join_team(invite_code, user, now=None) -> Team:
    with transaction.atomic():
        event, team = _locked_team(invite_code=invite_code)
        return _accept_member(event, team, user, now=now)


def leave_team(team_id, user) -> Team:
    with transaction.atomic():
        event, team = _locked_team(team_id=team_id)

        if team.team_leader_id == user.id:
            raise InvalidState("Team leader cannot leave. Please cancel the team instead.")

        if team.status == Team.STATUS_REGISTERED:
            raise InvalidState("Cannot leave team after registration is complete.")

        if team.status == Team.STATUS_CANCELLED:
            raise InvalidState("This team has been cancelled.")

        membership = team.members.filter(user=user).first()
        if membership is None:
            raise NotFound("You are not a member of this team.")

        was_accepted = membership.status == TeamMember.STATUS_ACCEPTED
        membership.delete()

        if team.status == Team.STATUS_COMPLETE:
            team.status = Team.STATUS_FORMING
            team.completed_at = None
            team.save(update_fields=['status', 'completed_at', 'updated_at'])

        logger.info(f"Team member left: team={team.id}, user={user.id}")
        if was_accepted:
            dispatch.team_member_left(team, user)

    return team


def cancel_team(team_id, user) -> Team:
    with transaction.atomic():
        event, team = _locked_team(team_id=team_id)

        if team.team_leader_id != user.id:
            raise PermissionDenied("Only the team leader can cancel the team.")

        if team.status == Team.STATUS_REGISTERED:
            raise InvalidState(
                "Cannot cancel team after registration. Please cancel individual registrations instead."
            )

        if team.status == Team.STATUS_CANCELLED:
            raise Conflict("Team is already cancelled.")

        members = [m.user for m in team.members.select_related('user')]
        team.status = Team.STATUS_CANCELLED
        team.save(update_fields=['status', 'updated_at'])

        logger.info(f"Team cancelled: team={team.id}, event={event.id}, leader={user.id}")
        dispatch.team_cancelled(team, members)

    return team


def invite_member(team_id, leader, user) -> TeamMember:
    with transaction.atomic():
        event, team = _locked_team(team_id=team_id)

        if not EventPolicy.is_team_leader(leader, team):
            raise PermissionDenied("Only the team leader can invite members.")

        if team.status != Team.STATUS_FORMING:
            raise InvalidState("This team is no longer accepting members.")

        if user.id == leader.id:
            raise ValidationError({"user": "You cannot invite yourself."})

        existing = team.members.filter(user=user).first()
        if existing is not None and existing.status == TeamMember.STATUS_ACCEPTED:
            raise Conflict("User is already part of this team.")
        if existing is not None and existing.status == TeamMember.STATUS_PENDING:
            raise Conflict("User already has a pending invite for this team.")

        if team.accepted_count >= team.team_size:
            raise CapacityExceeded("This team is already full.")

        ensure_free_for_team(event, user, exclude_team=team)

        if existing is not None:
            existing.status = TeamMember.STATUS_PENDING
            existing.joined_at = None
            existing.save(update_fields=['status', 'joined_at'])
            membership = existing
        else:
            membership = TeamMember.objects.create(team=team, user=user, status=TeamMember.STATUS_PENDING)

        logger.info(f"Team invite sent: team={team.id}, user={user.id}, leader={leader.id}")
        dispatch.team_invited(team, user)

    return membership


def respond_to_invite(team_id, user, accept: bool, now=None) -> Team:
    with transaction.atomic():
        event, team = _locked_team(team_id=team_id)

        membership = team.members.filter(user=user, status=TeamMember.STATUS_PENDING).first()
        if membership is None:
            raise NotFound("No pending invite for this team.")

        if accept:
            return _accept_member(event, team, user, now=now, via_invite=True)

        membership.status = TeamMember.STATUS_DECLINED
        membership.save(update_fields=['status'])
        logger.info(f"Team invite declined: team={team.id}, user={user.id}")

    return team
