from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from events.models import Event, MerchVariant, Registration, Team


class SeedDataCommandTests(TestCase):
    def test_seed_is_repeatable(self):
        out = StringIO()
        call_command("seed_data", stdout=out)
        call_command("seed_data", stdout=out)

        self.assertIn("Seeding complete", out.getvalue())
        self.assertEqual(Event.objects.filter(status=Event.STATUS_PUBLISHED).count(), 4)
        self.assertEqual(MerchVariant.objects.count(), 2)

        team = Team.objects.get(team_name="Null Pointers")
        self.assertEqual(team.status, Team.STATUS_REGISTERED)
        self.assertEqual(Registration.objects.filter(team=team).count(), 2)
        self.assertEqual(Registration.objects.filter(event__title="AI Revolution Summit").count(), 2)
