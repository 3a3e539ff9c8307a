from decimal import Decimal
from unittest import mock

from rest_framework.test import APITestCase, APIClient
from rest_framework import status

from events.services import registration as registrations
from events.services import team as teams
from events import state_machine
from notifications.models import Notification
from notifications.services import notify
from .helpers import make_event, make_team_event, make_user


@mock.patch("events.tasks.send_ticket_email_task.delay")
class RegistrationNotificationTests(APITestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.alice = make_user("alice")
        self.event = make_event(self.organizer, title="Demo Day")

    def test_confirmed_registration(self, mock_email):
        with self.captureOnCommitCallbacks(execute=True):
            reg = registrations.register_individual(self.event.id, self.alice)

        note = Notification.objects.get(user=self.alice)
        self.assertEqual(note.type, Notification.TYPE_REGISTRATION)
        self.assertEqual(note.title, "Registered for Demo Day")
        self.assertIn(reg.ticket_id, note.body)
        mock_email.assert_called_once_with(reg.id)

    def test_organizer_hears_about_confirmed_registration(self, mock_email):
        with self.captureOnCommitCallbacks(execute=True):
            registrations.register_individual(self.event.id, self.alice)

        note = Notification.objects.get(user=self.organizer)
        self.assertEqual(note.type, Notification.TYPE_REGISTRATION)
        self.assertEqual(note.title, "New registration")
        self.assertEqual(note.event_id, self.event.id)

    def test_organizer_not_told_about_unpaid_registration(self, mock_email):
        paid = make_event(self.organizer, title="Gala", fee=Decimal("500"))

        with self.captureOnCommitCallbacks(execute=True):
            registrations.register_individual(paid.id, self.alice)

        self.assertFalse(Notification.objects.filter(user=self.organizer).exists())

    def test_nothing_sent_before_commit(self, mock_email):
        with self.captureOnCommitCallbacks(execute=False):
            registrations.register_individual(self.event.id, self.alice)

        self.assertFalse(Notification.objects.exists())
        mock_email.assert_not_called()

    def test_payment_rejection(self, mock_email):
        paid = make_event(self.organizer, title="Gala", fee=Decimal("500"))
        reg = registrations.register_individual(paid.id, self.alice)
        registrations.upload_payment_proof(reg.id, self.alice, "payments/proof.png")

        with self.captureOnCommitCallbacks(execute=True):
            registrations.reject_payment(reg.id, self.organizer, reason="Amount does not match")

        note = Notification.objects.get(user=self.alice, type=Notification.TYPE_PAYMENT)
        self.assertEqual(note.title, "Payment rejected for Gala")
        self.assertIn("Amount does not match", note.body)
        mock_email.assert_not_called()

    def test_payment_approval_sends_ticket(self, mock_email):
        paid = make_event(self.organizer, title="Gala", fee=Decimal("500"))
        reg = registrations.register_individual(paid.id, self.alice)
        registrations.upload_payment_proof(reg.id, self.alice, "payments/proof.png")

        with self.captureOnCommitCallbacks(execute=True):
            registrations.approve_payment(reg.id, self.organizer)

        self.assertTrue(Notification.objects.filter(user=self.alice, type=Notification.TYPE_PAYMENT).exists())
        mock_email.assert_called_once_with(reg.id)

    def test_organizer_cancellation_notifies_participant(self, mock_email):
        reg = registrations.register_individual(self.event.id, self.alice)

        with self.captureOnCommitCallbacks(execute=True):
            registrations.cancel(reg.id, self.organizer)

        self.assertTrue(Notification.objects.filter(user=self.alice, title__startswith="Registration cancelled").exists())

    def test_self_cancellation_is_silent(self, mock_email):
        reg = registrations.register_individual(self.event.id, self.alice)

        with self.captureOnCommitCallbacks(execute=True):
            registrations.cancel(reg.id, self.alice)

        self.assertFalse(Notification.objects.exists())

    def test_published_event_edit_notifies_registrants(self, mock_email):
        event = state_machine.create_event(self.organizer, {
            "title": "Meetup",
            "event_start_date": self.event.event_start_date,
        })
        state_machine.publish_event(event.id, self.organizer)
        registrations.register_individual(event.id, self.alice)

        with self.captureOnCommitCallbacks(execute=True):
            state_machine.update_event(event.id, {"description": "Room changed"}, self.organizer)

        note = Notification.objects.get(user=self.alice, type=Notification.TYPE_EVENT_UPDATE)
        self.assertEqual(note.event_id, event.id)


@mock.patch("events.tasks.send_ticket_email_task.delay")
class TeamNotificationTests(APITestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.leader = make_user("leader", first_name="Lena")
        self.alice = make_user("alice", first_name="Alice")
        self.event = make_team_event(self.organizer)
        self.team = teams.create_team(self.event.id, self.leader, "Byte Me", 3)

    def test_invite(self, mock_email):
        with self.captureOnCommitCallbacks(execute=True):
            teams.invite_member(self.team.id, self.leader, self.alice)

        note = Notification.objects.get(user=self.alice)
        self.assertEqual(note.type, Notification.TYPE_TEAM_INVITE)
        self.assertEqual(note.team_id, self.team.id)

    def test_join_notifies_existing_members(self, mock_email):
        with self.captureOnCommitCallbacks(execute=True):
            teams.join_team(self.team.invite_code, self.alice)

        note = Notification.objects.get(user=self.leader)
        self.assertEqual(note.type, Notification.TYPE_TEAM_JOIN)
        self.assertEqual(note.title, "Alice joined Byte Me")
        self.assertFalse(Notification.objects.filter(user=self.alice).exists())

    def test_registered_team_gets_tickets(self, mock_email):
        bob = make_user("bob")
        teams.join_team(self.team.invite_code, self.alice)

        with self.captureOnCommitCallbacks(execute=True):
            teams.join_team(self.team.invite_code, bob)

        self.assertEqual(mock_email.call_count, 3)
        notes = Notification.objects.filter(type=Notification.TYPE_REGISTRATION, team=self.team)
        self.assertEqual(notes.exclude(user=self.organizer).count(), 3)

        organizer_note = notes.get(user=self.organizer)
        self.assertEqual(organizer_note.title, "New registration")
        self.assertIn("Byte Me", organizer_note.body)


class NotificationServiceTests(APITestCase):
    def setUp(self):
        self.alice = make_user("alice")

    def test_notify_never_raises(self):
        with mock.patch("notifications.services.Notification.objects.create", side_effect=RuntimeError("db down")):
            self.assertIsNone(notify(self.alice, Notification.TYPE_PAYMENT, "Hello"))


class NotificationApiTests(APITestCase):
    def setUp(self):
        self.client = APIClient()
        self.alice = make_user("alice")
        self.bob = make_user("bob")
        self.notes = [
            notify(self.alice, Notification.TYPE_REGISTRATION, f"Note {i}")
            for i in range(3)
        ]
        notify(self.bob, Notification.TYPE_REGISTRATION, "Not yours")
        self.client.force_authenticate(user=self.alice)

    def test_list_only_mine(self):
        resp = self.client.get("/api/notifications/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.content)
        self.assertEqual(len(resp.data), 3)

    def test_mark_some_read(self):
        resp = self.client.post("/api/notifications/", {"ids": [self.notes[0].id]}, format="json")
        self.assertEqual(resp.data["marked_read"], 1)

        resp = self.client.get("/api/notifications/?unread=true")
        self.assertEqual(len(resp.data), 2)

        resp = self.client.get("/api/notifications/unread-count/")
        self.assertEqual(resp.data["unread"], 2)

    def test_mark_all_read(self):
        resp = self.client.post("/api/notifications/", {}, format="json")
        self.assertEqual(resp.data["marked_read"], 3)
        self.assertEqual(Notification.objects.filter(user=self.bob, is_read=False).count(), 1)

    def test_requires_auth(self):
        self.client.force_authenticate(user=None)
        resp = self.client.get("/api/notifications/")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_filter_by_type(self):
        notify(self.alice, Notification.TYPE_PAYMENT, "Payment approved")

        resp = self.client.get("/api/notifications/?type=payment")
        self.assertEqual(len(resp.data), 1)
        self.assertEqual(resp.data[0]["title"], "Payment approved")

    def test_ids_must_be_a_list_of_ids(self):
        resp = self.client.post("/api/notifications/", {"ids": "all"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.data["success"])
