# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_PARTICIPANT = "participant"
    ROLE_ORGANIZER = "organizer"
    ROLE_ADMIN = "admin"

    ROLE_CHOICES = (
        (ROLE_PARTICIPANT, "Participant"),
        (ROLE_ORGANIZER, "Organizer"),
        (ROLE_ADMIN, "Admin"),
    )

    # Eligibility tags an event can restrict itself to
    PARTICIPANT_IIIT = "IIIT"
    PARTICIPANT_NON_IIIT = "NON_IIIT"

    PARTICIPANT_TYPE_CHOICES = (
        (PARTICIPANT_IIIT, "IIIT"),
        (PARTICIPANT_NON_IIIT, "Non-IIIT"),
    )

    role = models.CharField(
        max_length=30,
        choices=ROLE_CHOICES,
        default=ROLE_PARTICIPANT,
    )

    # Participant profile
    participant_type = models.CharField(
        max_length=16,
        choices=PARTICIPANT_TYPE_CHOICES,
        blank=True,
        null=True,
    )
    college = models.CharField(max_length=255, blank=True, null=True)
    contact_number = models.CharField(max_length=20, blank=True, null=True)

    # Organizer profile
    organizer_name = models.CharField(max_length=255, blank=True, null=True)
    discord_webhook = models.URLField(
        max_length=512,
        blank=True,
        null=True,
        help_text="New events are announced here when published",
    )

    def __str__(self):
        return self.username

    @property
    def display_name(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.organizer_name or self.username

    @property
    def is_organizer(self):
        return self.role == self.ROLE_ORGANIZER

    @property
    def is_system_admin(self):
        return self.is_superuser or self.role == self.ROLE_ADMIN
