import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                (
                    "event_type",
                    models.CharField(
                        choices=[("NORMAL", "Normal"), ("MERCH", "Merchandise")],
                        default="NORMAL",
                        max_length=16,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("DRAFT", "Draft"),
                            ("PUBLISHED", "Published"),
                            ("ONGOING", "Ongoing"),
                            ("CLOSED", "Closed"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="DRAFT",
                        max_length=16,
                    ),
                ),
                ("eligibility", models.JSONField(blank=True, default=list)),
                ("registration_deadline", models.DateTimeField(blank=True, null=True)),
                ("event_start_date", models.DateTimeField()),
                ("event_end_date", models.DateTimeField(blank=True, null=True)),
                ("venue", models.CharField(blank=True, max_length=255, null=True)),
                ("max_participants", models.PositiveIntegerField(blank=True, null=True)),
                ("fee", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("merchandise_fee", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("allow_teams", models.BooleanField(default=False)),
                ("min_team_size", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("max_team_size", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("form_schema", models.JSONField(blank=True, default=list)),
                (
                    "form_locked",
                    models.BooleanField(default=False, help_text="Set permanently once the first registration exists"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "organizer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="organized_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["organizer", "created_at"], name="event_org_created_idx"),
                    models.Index(fields=["status", "event_start_date"], name="event_status_start_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MerchItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sku", models.CharField(max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("purchase_limit_per_user", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="events.event",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("event", "sku"), name="uniq_merch_item_event_sku"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MerchVariant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("size", models.CharField(default="-", max_length=16)),
                ("color", models.CharField(default="-", max_length=32)),
                ("stock", models.PositiveIntegerField(default=0)),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="variants",
                        to="events.merchitem",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("item", "size", "color"), name="uniq_merch_variant"),
                    models.CheckConstraint(
                        condition=models.Q(("stock__gte", 0)),
                        name="merch_variant_stock_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Team",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("team_name", models.CharField(max_length=100)),
                ("team_size", models.PositiveSmallIntegerField()),
                ("invite_code", models.CharField(editable=False, max_length=16, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("FORMING", "Forming"),
                            ("COMPLETE", "Complete"),
                            ("REGISTERED", "Registered"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="FORMING",
                        max_length=16,
                    ),
                ),
                ("form_response", models.JSONField(blank=True, default=dict)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("registered_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="teams",
                        to="events.event",
                    ),
                ),
                (
                    "team_leader",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="led_teams",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["event", "status"], name="team_event_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TeamMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("ACCEPTED", "Accepted"), ("DECLINED", "Declined")],
                        default="PENDING",
                        max_length=16,
                    ),
                ),
                ("joined_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "team",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="members",
                        to="events.team",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="team_memberships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("team", "user"), name="uniq_team_member"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Registration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "registration_type",
                    models.CharField(
                        choices=[("NORMAL", "Normal"), ("MERCH", "Merchandise")],
                        default="NORMAL",
                        max_length=16,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("CONFIRMED", "Confirmed"),
                            ("REJECTED", "Rejected"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="PENDING",
                        max_length=16,
                    ),
                ),
                ("ticket_id", models.CharField(editable=False, max_length=64, unique=True)),
                ("qr_payload", models.TextField(blank=True, null=True)),
                ("form_response", models.JSONField(blank=True, default=dict)),
                ("attended", models.BooleanField(default=False)),
                ("attended_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to="events.event",
                    ),
                ),
                (
                    "participant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "team",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="registrations",
                        to="events.team",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("event", "participant"),
                        name="uniq_registration_event_participant",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["event", "status"], name="reg_event_status_idx"),
                    models.Index(fields=["participant", "created_at"], name="reg_participant_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RegistrationOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sku", models.CharField(max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("size", models.CharField(default="-", max_length=16)),
                ("color", models.CharField(default="-", max_length=32)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("amount_paid", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("APPROVED", "Approved"), ("REJECTED", "Rejected")],
                        default="PENDING",
                        max_length=16,
                    ),
                ),
                ("payment_proof", models.CharField(blank=True, max_length=1024, null=True)),
                ("proof_uploaded_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True, null=True)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "registration",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="order",
                        to="events.registration",
                    ),
                ),
                (
                    "reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["payment_status"], name="order_payment_status_idx"),
                ],
            },
        ),
    ]
