# events/services/lifecycle.py
"""
Entry points used by the HTTP views.

Commands resolve the request into the right state-machine call; queries
return the read models with the permission checks applied. Views never
touch the ledger or the state machines directly.
"""
from django.contrib.auth import get_user_model
from django.db.models import Count, Q

from .. import state_machine
from ..exceptions import NotFound, ValidationError
from ..models import Event, Feedback, Registration, RegistrationOrder, Team
from ..policies import EventPolicy, ensure
from . import feedback as feedbacks
from . import registration as registrations
from . import team as teams

User = get_user_model()


# ─────────────────────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────────────────────

def get_event(event_id) -> Event:
    try:
        return Event.objects.select_related('organizer').get(pk=event_id)
    except Event.DoesNotExist:
        raise NotFound("Event not found.")


def get_managed_event(event_id, actor) -> Event:
    event = get_event(event_id)
    ensure(EventPolicy.can_manage_event(actor, event))
    return event


def get_registration(registration_id) -> Registration:
    try:
        return (
            Registration.objects
            .select_related('event', 'participant', 'team', 'order')
            .get(pk=registration_id)
        )
    except Registration.DoesNotExist:
        raise NotFound("Registration not found.")


def get_team(team_id) -> Team:
    try:
        return Team.objects.select_related('event', 'team_leader').get(pk=team_id)
    except Team.DoesNotExist:
        raise NotFound("Team not found.")


def resolve_user(user_id=None, username=None, email=None):
    """Find the invitee for a team invite by id, username or e-mail."""
    lookup = {}
    if user_id:
        lookup['pk'] = user_id
    elif username:
        lookup['username'] = username
    elif email:
        lookup['email__iexact'] = email
    else:
        raise ValidationError({"user": "Provide user_id, username or email."})

    user = User.objects.filter(**lookup).first()
    if user is None:
        raise NotFound("User not found.")
    return user


# ─────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────

def register(event_id, participant, form_response=None, order=None) -> Registration:
    """Route a sign-up to the individual or merchandise flow by event type."""
    event = get_event(event_id)
    if event.is_merch:
        return registrations.register_merchandise(
            event.id, participant, order=order, form_response=form_response,
        )
    if order:
        raise ValidationError({"order": "Orders are only accepted for merchandise events."})
    return registrations.register_individual(event.id, participant, form_response=form_response)


upload_payment_proof = registrations.upload_payment_proof
approve_payment = registrations.approve_payment
reject_payment = registrations.reject_payment
cancel_registration = registrations.cancel
check_in = registrations.check_in

submit_feedback = feedbacks.submit_feedback
update_feedback = feedbacks.update_feedback
feedback_status = feedbacks.feedback_status

create_team = teams.create_team
join_team = teams.join_team
leave_team = teams.leave_team
cancel_team = teams.cancel_team
invite_member = teams.invite_member
respond_to_invite = teams.respond_to_invite

create_event = state_machine.create_event
update_event = state_machine.update_event
publish_event = state_machine.publish_event
change_event_status = state_machine.change_status


# ─────────────────────────────────────────────────────────────
# Read models
# ─────────────────────────────────────────────────────────────

def _with_seat_counts(qs):
    return qs.annotate(
        current_registrations=Count(
            'registrations',
            filter=~Q(registrations__status=Registration.STATUS_CANCELLED),
        )
    )


def public_events(event_type=None, eligibility=None, search=None):
    qs = Event.objects.filter(status__in=Event.PUBLIC_STATUSES).select_related('organizer')

    if event_type:
        qs = qs.filter(event_type=event_type.upper())
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))

    qs = _with_seat_counts(qs).order_by('event_start_date', 'id')

    if eligibility:
        # JSON containment is not portable to SQLite; filter in Python
        return [e for e in qs if not e.eligibility or eligibility in e.eligibility]
    return qs


def public_event(event_id) -> Event:
    event = (
        _with_seat_counts(Event.objects.select_related('organizer'))
        .prefetch_related('items__variants')
        .filter(pk=event_id)
        .first()
    )
    if event is None or event.status not in Event.PUBLIC_STATUSES:
        raise NotFound("Event not found.")
    return event


def organizer_events(actor):
    return _with_seat_counts(Event.objects.filter(organizer=actor)).order_by('-created_at')


def event_registrations(event_id, actor, status=None):
    event = get_managed_event(event_id, actor)
    qs = (
        Registration.objects
        .filter(event=event)
        .select_related('participant', 'team', 'order')
        .order_by('-created_at')
    )
    if status:
        qs = qs.filter(status=status.upper())
    return qs


def payment_approvals(event_id, actor, payment_status=None):
    event = get_managed_event(event_id, actor)
    qs = (
        Registration.objects
        .filter(event=event, order__isnull=False)
        .exclude(order__payment_status=RegistrationOrder.PAYMENT_NOT_REQUIRED)
        .select_related('participant', 'order')
        .order_by('-created_at')
    )
    if payment_status:
        payment_status = payment_status.upper()
        if payment_status not in dict(RegistrationOrder.PAYMENT_CHOICES):
            raise ValidationError({"status": f"Invalid payment status: {payment_status}"})
        qs = qs.filter(order__payment_status=payment_status)
    return qs


def attendance_list(event_id, actor):
    event = get_managed_event(event_id, actor)
    return (
        Registration.objects
        .filter(event=event, status=Registration.STATUS_CONFIRMED)
        .select_related('participant', 'team')
        .order_by('-attended', 'participant__username')
    )


def my_registrations(user):
    return (
        Registration.objects
        .filter(participant=user)
        .select_related('event', 'team', 'order')
        .order_by('-created_at')
    )


def owned_registration(registration_id, user) -> Registration:
    reg = get_registration(registration_id)
    ensure(EventPolicy.can_view_registration(user, reg))
    return reg


def my_teams(user):
    return (
        Team.objects
        .filter(members__user=user)
        .exclude(status=Team.STATUS_CANCELLED)
        .select_related('event', 'team_leader')
        .prefetch_related('members__user')
        .distinct()
        .order_by('-created_at')
    )


def team_for(team_id, user) -> Team:
    team = get_team(team_id)
    ensure(EventPolicy.can_view_team(user, team))
    return team


def team_preview(invite_code) -> Team:
    team = (
        Team.objects
        .select_related('event', 'team_leader')
        .filter(invite_code=(invite_code or '').strip().upper())
        .first()
    )
    if team is None:
        raise NotFound("Invalid invite code.")
    return team


def event_feedback(event_id, actor, rating=None):
    event = get_managed_event(event_id, actor)
    qs = Feedback.objects.filter(event=event).select_related('registration__participant')
    if rating not in (None, ''):
        qs = qs.filter(rating=feedbacks.clean_rating(rating))
    return qs
