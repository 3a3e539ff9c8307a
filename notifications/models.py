# notifications/models.py
from django.db import models
from django.conf import settings


class Notification(models.Model):
    TYPE_REGISTRATION = "REGISTRATION"
    TYPE_PAYMENT = "PAYMENT"
    TYPE_TEAM_JOIN = "TEAM_JOIN"
    TYPE_TEAM_LEAVE = "TEAM_LEAVE"
    TYPE_TEAM_INVITE = "TEAM_INVITE"
    TYPE_EVENT_UPDATE = "EVENT_UPDATE"

    TYPE_CHOICES = [
        (TYPE_REGISTRATION, "Registration"),
        (TYPE_PAYMENT, "Payment"),
        (TYPE_TEAM_JOIN, "Team Join"),
        (TYPE_TEAM_LEAVE, "Team Leave"),
        (TYPE_TEAM_INVITE, "Team Invite"),
        (TYPE_EVENT_UPDATE, "Event Update"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    type = models.CharField(max_length=64, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    # Optional references
    event = models.ForeignKey(
        "events.Event",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    team = models.ForeignKey(
        "events.Team",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user", "is_read"], name="notif_user_read_idx"),
            models.Index(fields=["type"], name="notif_type_idx"),
        ]

    def __str__(self):
        return f"{self.user} - {self.type} - {self.title}"
