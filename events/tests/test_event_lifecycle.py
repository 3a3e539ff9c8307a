from datetime import timedelta
from decimal import Decimal
from unittest import mock

import requests
from django.test import TestCase
from django.utils import timezone

from events import state_machine
from events.exceptions import Conflict, InvalidState, PermissionDenied, ValidationError
from events.models import Event, MerchVariant
from events.policies import EventPolicy
from events.services import registration as registrations
from events.webhooks import build_event_embed, post_event_announcement
from .helpers import make_user


def event_data(**overrides):
    data = {
        "title": "Intro to Rust",
        "description": "Hands-on workshop",
        "event_start_date": timezone.now() + timedelta(days=10),
        "venue": "Lab 2",
        "max_participants": 40,
        "tags": ["workshop", "rust"],
    }
    data.update(overrides)
    return data


class CreateEventTests(TestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.participant = make_user("alice")

    def test_organizer_creates_draft(self):
        event = state_machine.create_event(self.organizer, event_data())

        self.assertEqual(event.status, Event.STATUS_DRAFT)
        self.assertEqual(event.organizer, self.organizer)
        self.assertEqual(event.event_type, Event.TYPE_NORMAL)

    def test_participant_cannot_create(self):
        with self.assertRaises(PermissionDenied):
            state_machine.create_event(self.participant, event_data())

    def test_team_size_defaults(self):
        event = state_machine.create_event(self.organizer, event_data(allow_teams=True))

        self.assertEqual(event.min_team_size, 2)
        self.assertEqual(event.max_team_size, 4)

    def test_merchandise_events_have_no_teams(self):
        with self.assertRaises(ValidationError):
            state_machine.create_event(
                self.organizer,
                event_data(event_type=Event.TYPE_MERCH, allow_teams=True),
            )

    def test_authored_text_is_sanitized(self):
        event = state_machine.create_event(self.organizer, event_data(
            title="  Intro\nto   Rust ",
            description="<p>Bring a laptop</p><script>alert(1)</script>",
            tags=["Rust", "rust", " workshop ", ""],
        ))

        self.assertEqual(event.title, "Intro to Rust")
        self.assertNotIn("<script>", event.description)
        self.assertIn("<p>Bring a laptop</p>", event.description)
        self.assertEqual(event.tags, ["Rust", "workshop"])

    def test_end_before_start(self):
        start = timezone.now() + timedelta(days=3)
        with self.assertRaises(ValidationError):
            state_machine.create_event(
                self.organizer,
                event_data(event_start_date=start, event_end_date=start - timedelta(hours=1)),
            )

    def test_merch_event_with_catalogue(self):
        items = [{
            "sku": "HOODIE",
            "name": "Club Hoodie",
            "variants": [
                {"size": "M", "color": "Grey", "stock": 10},
                {"size": "L", "color": "Grey", "stock": 4},
            ],
        }]
        event = state_machine.create_event(
            self.organizer,
            event_data(event_type=Event.TYPE_MERCH, merchandise_fee=Decimal("899"), items=items),
        )

        self.assertEqual(MerchVariant.objects.filter(item__event=event).count(), 2)

    def test_duplicate_sku(self):
        items = [{"sku": "CAP", "name": "Cap"}, {"sku": "CAP", "name": "Cap again"}]
        with self.assertRaises(ValidationError):
            state_machine.create_event(self.organizer, event_data(event_type=Event.TYPE_MERCH, items=items))


class EventStatusTests(TestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.other = make_user("other", role="organizer")
        self.alice = make_user("alice")
        self.event = state_machine.create_event(self.organizer, event_data())

    def test_publish(self):
        event = state_machine.publish_event(self.event.id, self.organizer)
        self.assertEqual(event.status, Event.STATUS_PUBLISHED)

        with self.assertRaises(Conflict):
            state_machine.publish_event(self.event.id, self.organizer)

    def test_only_owner_publishes(self):
        with self.assertRaises(PermissionDenied):
            state_machine.publish_event(self.event.id, self.other)

    def test_merch_event_needs_stock_to_publish(self):
        merch = state_machine.create_event(self.organizer, event_data(event_type=Event.TYPE_MERCH))

        with self.assertRaises(ValidationError):
            state_machine.publish_event(merch.id, self.organizer)

    def test_full_lifecycle(self):
        state_machine.publish_event(self.event.id, self.organizer)
        for status in (Event.STATUS_ONGOING, Event.STATUS_CLOSED, Event.STATUS_COMPLETED):
            event = state_machine.change_status(self.event.id, status, self.organizer)
            self.assertEqual(event.status, status)

        self.assertTrue(state_machine.is_terminal_status(Event.STATUS_COMPLETED))
        with self.assertRaises(InvalidState):
            state_machine.change_status(self.event.id, Event.STATUS_ONGOING, self.organizer)

    def test_cancel_from_draft(self):
        event = state_machine.change_status(self.event.id, Event.STATUS_CANCELLED, self.organizer)
        self.assertEqual(event.status, Event.STATUS_CANCELLED)

        with self.assertRaises(InvalidState):
            state_machine.publish_event(self.event.id, self.organizer)

    def test_draft_cannot_skip_to_ongoing(self):
        with self.assertRaises(InvalidState):
            state_machine.change_status(self.event.id, Event.STATUS_ONGOING, self.organizer)

    def test_allowed_transitions(self):
        self.assertEqual(
            state_machine.get_allowed_transitions(self.event),
            [Event.STATUS_PUBLISHED, Event.STATUS_CANCELLED],
        )

    def test_registration_closes_with_status(self):
        state_machine.publish_event(self.event.id, self.organizer)
        state_machine.change_status(self.event.id, Event.STATUS_CLOSED, self.organizer)

        with self.assertRaises(InvalidState):
            registrations.register_individual(self.event.id, self.alice)


class EditEventTests(TestCase):
    def setUp(self):
        self.organizer = make_user("organizer", role="organizer")
        self.alice = make_user("alice")
        self.event = state_machine.create_event(self.organizer, event_data())

    def test_draft_is_fully_editable(self):
        event = state_machine.update_event(
            self.event.id,
            {"title": "Advanced Rust", "fee": Decimal("99.00"), "form_schema": []},
            self.organizer,
        )
        self.assertEqual(event.title, "Advanced Rust")
        self.assertEqual(event.fee, Decimal("99.00"))

    def test_published_allow_list(self):
        state_machine.publish_event(self.event.id, self.organizer)

        event = state_machine.update_event(self.event.id, {"description": "Now with snacks"}, self.organizer)
        self.assertEqual(event.description, "Now with snacks")

        with self.assertRaises(ValidationError) as ctx:
            state_machine.update_event(self.event.id, {"title": "Renamed", "fee": Decimal("10")}, self.organizer)
        self.assertIn("title", ctx.exception.detail)
        self.assertIn("fee", ctx.exception.detail)

    def test_capacity_can_only_grow_once_published(self):
        state_machine.publish_event(self.event.id, self.organizer)

        event = state_machine.update_event(self.event.id, {"max_participants": 60}, self.organizer)
        self.assertEqual(event.max_participants, 60)

        with self.assertRaises(ValidationError):
            state_machine.update_event(self.event.id, {"max_participants": 10}, self.organizer)

    def test_closed_event_is_frozen(self):
        state_machine.publish_event(self.event.id, self.organizer)
        state_machine.change_status(self.event.id, Event.STATUS_CLOSED, self.organizer)

        with self.assertRaises(InvalidState):
            state_machine.update_event(self.event.id, {"description": "Late edit"}, self.organizer)

    def test_stranger_cannot_edit(self):
        with self.assertRaises(PermissionDenied):
            state_machine.update_event(self.event.id, {"title": "Hijacked"}, self.alice)

    def test_form_locks_after_first_registration(self):
        state_machine.publish_event(self.event.id, self.organizer)
        registrations.register_individual(self.event.id, self.alice)

        self.event.refresh_from_db()
        ok, reason = EventPolicy.can_edit_form(self.event)
        self.assertFalse(ok)
        self.assertTrue(reason)


class DiscordAnnouncementTests(TestCase):
    def setUp(self):
        self.organizer = make_user(
            "organizer",
            role="organizer",
            organizer_name="Coding Club",
            discord_webhook="https://discord.com/api/webhooks/123/abc",
        )
        self.event = state_machine.create_event(self.organizer, event_data(fee=Decimal("49")))

    def test_embed(self):
        embed = build_event_embed(self.event)["embeds"][0]

        self.assertEqual(embed["title"], "New Event: Intro to Rust")
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        self.assertEqual(fields["Venue"], "Lab 2")
        self.assertEqual(fields["Max Participants"], "40")
        self.assertEqual(fields["Tags"], "workshop, rust")
        self.assertEqual(embed["footer"]["text"], "Organized by Coding Club")

    @mock.patch("events.webhooks.requests.post")
    def test_post_announcement(self, mock_post):
        self.assertTrue(post_event_announcement(self.event))

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://discord.com/api/webhooks/123/abc")
        self.assertIn("embeds", kwargs["json"])

    @mock.patch("events.webhooks.requests.post", side_effect=requests.ConnectionError("down"))
    def test_webhook_failure_is_not_raised(self, mock_post):
        self.assertFalse(post_event_announcement(self.event))

    @mock.patch("events.webhooks.requests.post")
    def test_no_webhook_configured(self, mock_post):
        self.organizer.discord_webhook = ""
        self.organizer.save()
        self.event.refresh_from_db()

        self.assertFalse(post_event_announcement(self.event))
        mock_post.assert_not_called()

    @mock.patch("events.tasks.announce_event_published_task.delay")
    def test_publish_queues_announcement_after_commit(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            state_machine.publish_event(self.event.id, self.organizer)

        mock_delay.assert_not_called()
        for callback in callbacks:
            callback()
        mock_delay.assert_called_once_with(self.event.id)

    @mock.patch("events.tasks.announce_event_published_task.delay")
    def test_failed_publish_sends_nothing(self, mock_delay):
        other = make_user("other", role="organizer")

        with self.captureOnCommitCallbacks(execute=True):
            with self.assertRaises(PermissionDenied):
                state_machine.publish_event(self.event.id, other)

        mock_delay.assert_not_called()
