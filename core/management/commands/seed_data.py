from decimal import Decimal

from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from events import state_machine
from events.models import Event
from events.services import registration as registrations
from events.services import team as teams

User = get_user_model()


class Command(BaseCommand):
    help = "Seeds the database with sample organizers, participants, events, teams and registrations"

    def _user(self, username, password, **defaults):
        defaults.setdefault("email", f"{username}@example.com")
        user, created = User.objects.get_or_create(username=username, defaults=defaults)
        if created or not user.check_password(password):
            user.set_password(password)
            user.save()
        return user

    def _event(self, organizer, data):
        event = Event.objects.filter(organizer=organizer, title=data["title"]).first()
        if event is None:
            event = state_machine.create_event(organizer, data)
            self.stdout.write(f"Created event: {event.title}")
        if event.status == Event.STATUS_DRAFT:
            event = state_machine.publish_event(event.id, organizer)
        return event

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("🌱 Seeding data...")

        # 1. Users
        self._user("admin", "admin", role=User.ROLE_ADMIN, is_staff=True, is_superuser=True)
        organizer = self._user(
            "codingclub",
            "password",
            role=User.ROLE_ORGANIZER,
            organizer_name="Coding Club",
        )
        alice = self._user("alice", "password", participant_type=User.PARTICIPANT_IIIT, first_name="Alice")
        bob = self._user("bob", "password", participant_type=User.PARTICIPANT_IIIT, first_name="Bob")
        carol = self._user("carol", "password", participant_type=User.PARTICIPANT_NON_IIIT, first_name="Carol")

        now = timezone.now()

        # 2. Events
        talk = self._event(organizer, {
            "title": "AI Revolution Summit",
            "description": "<p>A deep dive into large language models and the future of generative AI.</p>",
            "event_start_date": now + timezone.timedelta(days=5),
            "event_end_date": now + timezone.timedelta(days=5, hours=4),
            "venue": "Innovation Hub, Hall A",
            "max_participants": 120,
            "tags": ["ai", "talk"],
        })
        self._event(organizer, {
            "title": "Tech Mixer Night",
            "description": "Networking evening for developers and designers.",
            "event_start_date": now + timezone.timedelta(days=2),
            "venue": "Downtown Cafe",
            "fee": Decimal("199.00"),
            "eligibility": [User.PARTICIPANT_IIIT],
            "form_schema": [
                {"field_id": "roll", "label": "Roll number", "type": "text", "required": True},
            ],
        })
        hackathon = self._event(organizer, {
            "title": "Hackathon: Build for Good",
            "description": "48-hour coding marathon to solve social issues.",
            "event_start_date": now + timezone.timedelta(days=12),
            "event_end_date": now + timezone.timedelta(days=14),
            "venue": "Online",
            "allow_teams": True,
            "min_team_size": 2,
            "max_team_size": 3,
            "max_participants": 60,
        })
        self._event(organizer, {
            "title": "Club Hoodie Drop",
            "event_type": Event.TYPE_MERCH,
            "description": "Limited run of the club hoodie.",
            "event_start_date": now + timezone.timedelta(days=20),
            "merchandise_fee": Decimal("899.00"),
            "items": [{
                "sku": "HOODIE",
                "name": "Club Hoodie",
                "purchase_limit_per_user": 2,
                "variants": [
                    {"size": "M", "color": "Black", "stock": 25},
                    {"size": "L", "color": "Black", "stock": 25},
                ],
            }],
        })

        # 3. Registrations and a team
        for user in (alice, carol):
            if not talk.registrations.filter(participant=user).exists():
                registrations.register_individual(talk.id, user)

        if not hackathon.teams.exists():
            team = teams.create_team(hackathon.id, alice, "Null Pointers", 2)
            teams.join_team(team.invite_code, bob)
            self.stdout.write(f"Registered team: {team.team_name} ({team.invite_code})")

        self.stdout.write(self.style.SUCCESS("✅ Seeding complete!"))
