from django.test import TestCase

from events.exceptions import (
    CapacityExceeded,
    Conflict,
    InvalidState,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from events.models import Registration, Team, TeamMember
from events.services import team as teams
from events.tickets import parse_qr_payload
from .helpers import make_event, make_team_event, make_user


class TeamFormationTests(TestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.leader = make_user("leader")
        self.members = [make_user(f"member{i}") for i in range(4)]
        self.event = make_team_event(self.organizer)

    def _team(self, size=3, **kwargs):
        return teams.create_team(self.event.id, self.leader, "Byte Me", size, **kwargs)

    def test_create_team(self):
        team = self._team()

        self.assertEqual(team.status, Team.STATUS_FORMING)
        self.assertEqual(len(team.invite_code), 8)
        self.assertEqual(team.accepted_count, 1)
        self.assertTrue(team.members.filter(user=self.leader, status=TeamMember.STATUS_ACCEPTED).exists())
        self.assertFalse(Registration.objects.filter(event=self.event).exists())

    def test_full_team_registers_every_member(self):
        team = self._team(form_response={"college": "IIIT"})

        teams.join_team(team.invite_code, self.members[0])
        team = teams.join_team(team.invite_code.lower(), self.members[1])

        self.assertEqual(team.status, Team.STATUS_REGISTERED)
        self.assertIsNotNone(team.registered_at)

        regs = Registration.objects.filter(event=self.event, team=team)
        self.assertEqual(regs.count(), 3)
        self.assertEqual(
            set(regs.values_list("participant_id", flat=True)),
            {self.leader.id, self.members[0].id, self.members[1].id},
        )
        self.assertEqual(len(set(regs.values_list("ticket_id", flat=True))), 3)
        for reg in regs:
            self.assertEqual(reg.status, Registration.STATUS_CONFIRMED)
            self.assertEqual(reg.form_response, {"college": "IIIT"})
            self.assertEqual(parse_qr_payload(reg.qr_payload), reg.ticket_id)

    def test_join_registered_team(self):
        team = self._team(size=2)
        teams.join_team(team.invite_code, self.members[0])

        with self.assertRaises(CapacityExceeded):
            teams.join_team(team.invite_code, self.members[1])

    def test_join_twice(self):
        team = self._team()
        teams.join_team(team.invite_code, self.members[0])

        with self.assertRaises(Conflict):
            teams.join_team(team.invite_code, self.members[0])

    def test_invalid_invite_code(self):
        with self.assertRaises(NotFound):
            teams.join_team("NOPE0000", self.members[0])

    def test_one_team_per_event(self):
        team = self._team()
        other = teams.create_team(self.event.id, self.members[0], "Other", 2)

        with self.assertRaises(Conflict):
            teams.join_team(other.invite_code, self.leader)
        with self.assertRaises(Conflict):
            teams.create_team(self.event.id, self.leader, "Second", 2)
        self.assertEqual(team.accepted_count, 1)

    def test_team_size_must_fit_event_limits(self):
        with self.assertRaises(ValidationError):
            self._team(size=5)
        with self.assertRaises(ValidationError):
            self._team(size=1)

    def test_solo_team_registers_immediately(self):
        self.event.min_team_size = 1
        self.event.save()

        team = self._team(size=1)

        self.assertEqual(team.status, Team.STATUS_REGISTERED)
        self.assertTrue(
            Registration.objects.filter(event=self.event, participant=self.leader, team=team).exists()
        )

    def test_event_without_teams(self):
        event = make_event(self.organizer, title="Solo talk")

        with self.assertRaises(InvalidState):
            teams.create_team(event.id, self.leader, "Byte Me", 2)

    def test_team_larger_than_remaining_seats(self):
        self.event.max_participants = 2
        self.event.save()
        team = self._team()
        teams.join_team(team.invite_code, self.members[0])

        with self.assertRaises(CapacityExceeded):
            teams.join_team(team.invite_code, self.members[1])

        team.refresh_from_db()
        self.assertEqual(team.status, Team.STATUS_FORMING)
        self.assertEqual(team.accepted_count, 2)
        self.assertFalse(Registration.objects.filter(event=self.event).exists())


class TeamMembershipTests(TestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.leader = make_user("leader")
        self.alice = make_user("alice")
        self.bob = make_user("bob")
        self.event = make_team_event(self.organizer)
        self.team = teams.create_team(self.event.id, self.leader, "Byte Me", 3)

    def test_member_leaves(self):
        teams.join_team(self.team.invite_code, self.alice)

        team = teams.leave_team(self.team.id, self.alice)

        self.assertEqual(team.status, Team.STATUS_FORMING)
        self.assertFalse(team.members.filter(user=self.alice).exists())

    def test_leader_cannot_leave(self):
        with self.assertRaises(InvalidState):
            teams.leave_team(self.team.id, self.leader)

    def test_stranger_cannot_leave(self):
        with self.assertRaises(NotFound):
            teams.leave_team(self.team.id, self.bob)

    def test_cannot_leave_registered_team(self):
        teams.join_team(self.team.invite_code, self.alice)
        teams.join_team(self.team.invite_code, self.bob)

        with self.assertRaises(InvalidState):
            teams.leave_team(self.team.id, self.alice)

    def test_leader_cancels(self):
        teams.join_team(self.team.invite_code, self.alice)

        team = teams.cancel_team(self.team.id, self.leader)
        self.assertEqual(team.status, Team.STATUS_CANCELLED)

        with self.assertRaises(Conflict):
            teams.cancel_team(self.team.id, self.leader)

        # Members of a cancelled team are free to form another
        fresh = teams.create_team(self.event.id, self.alice, "Phoenix", 2)
        self.assertEqual(fresh.status, Team.STATUS_FORMING)

    def test_member_cannot_cancel(self):
        teams.join_team(self.team.invite_code, self.alice)

        with self.assertRaises(PermissionDenied):
            teams.cancel_team(self.team.id, self.alice)

    def test_cannot_cancel_registered_team(self):
        teams.join_team(self.team.invite_code, self.alice)
        teams.join_team(self.team.invite_code, self.bob)

        with self.assertRaises(InvalidState):
            teams.cancel_team(self.team.id, self.leader)

    def test_cannot_join_cancelled_team(self):
        teams.cancel_team(self.team.id, self.leader)

        with self.assertRaises(InvalidState):
            teams.join_team(self.team.invite_code, self.alice)


class TeamInviteTests(TestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.leader = make_user("leader")
        self.alice = make_user("alice")
        self.bob = make_user("bob")
        self.event = make_team_event(self.organizer)
        self.team = teams.create_team(self.event.id, self.leader, "Byte Me", 2)

    def test_invite_and_accept(self):
        membership = teams.invite_member(self.team.id, self.leader, self.alice)
        self.assertEqual(membership.status, TeamMember.STATUS_PENDING)

        team = teams.respond_to_invite(self.team.id, self.alice, accept=True)

        self.assertEqual(team.status, Team.STATUS_REGISTERED)
        self.assertTrue(Registration.objects.filter(event=self.event, participant=self.alice).exists())

    def test_decline_and_reinvite(self):
        teams.invite_member(self.team.id, self.leader, self.alice)
        team = teams.respond_to_invite(self.team.id, self.alice, accept=False)

        self.assertEqual(team.status, Team.STATUS_FORMING)
        self.assertEqual(
            team.members.get(user=self.alice).status,
            TeamMember.STATUS_DECLINED,
        )

        membership = teams.invite_member(self.team.id, self.leader, self.alice)
        self.assertEqual(membership.status, TeamMember.STATUS_PENDING)

    def test_pending_invitee_must_respond_instead_of_join(self):
        teams.invite_member(self.team.id, self.leader, self.alice)

        with self.assertRaises(Conflict):
            teams.join_team(self.team.invite_code, self.alice)

    def test_respond_without_invite(self):
        with self.assertRaises(NotFound):
            teams.respond_to_invite(self.team.id, self.bob, accept=True)

    def test_only_leader_invites(self):
        with self.assertRaises(PermissionDenied):
            teams.invite_member(self.team.id, self.alice, self.bob)

    def test_cannot_invite_self(self):
        with self.assertRaises(ValidationError):
            teams.invite_member(self.team.id, self.leader, self.leader)

    def test_duplicate_invite(self):
        teams.invite_member(self.team.id, self.leader, self.alice)

        with self.assertRaises(Conflict):
            teams.invite_member(self.team.id, self.leader, self.alice)
