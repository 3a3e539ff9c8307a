# events/models.py
from django.db import models
from django.conf import settings


class Event(models.Model):
    STATUS_DRAFT = "DRAFT"
    STATUS_PUBLISHED = "PUBLISHED"
    STATUS_ONGOING = "ONGOING"
    STATUS_CLOSED = "CLOSED"
    STATUS_COMPLETED = "COMPLETED"
    STATUS_CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_PUBLISHED, "Published"),
        (STATUS_ONGOING, "Ongoing"),
        (STATUS_CLOSED, "Closed"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # Visible in public listings
    PUBLIC_STATUSES = (STATUS_PUBLISHED, STATUS_ONGOING, STATUS_CLOSED, STATUS_COMPLETED)

    TYPE_NORMAL = "NORMAL"
    TYPE_MERCH = "MERCH"

    TYPE_CHOICES = [
        (TYPE_NORMAL, "Normal"),
        (TYPE_MERCH, "Merchandise"),
    ]

    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='organized_events'
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    event_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_NORMAL)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    # Participant-type tags (users.User.PARTICIPANT_*); empty = open to all
    eligibility = models.JSONField(default=list, blank=True)

    registration_deadline = models.DateTimeField(blank=True, null=True)
    event_start_date = models.DateTimeField()
    event_end_date = models.DateTimeField(blank=True, null=True)
    venue = models.CharField(max_length=255, blank=True, null=True)

    # None = unlimited seats
    max_participants = models.PositiveIntegerField(blank=True, null=True)
    fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    merchandise_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    tags = models.JSONField(default=list, blank=True)

    # Team-based registration
    allow_teams = models.BooleanField(default=False)
    min_team_size = models.PositiveSmallIntegerField(blank=True, null=True)
    max_team_size = models.PositiveSmallIntegerField(blank=True, null=True)

    # NORMAL events: organizer-defined registration form
    form_schema = models.JSONField(default=list, blank=True)
    form_locked = models.BooleanField(
        default=False,
        help_text="Set permanently once the first registration exists",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['organizer', 'created_at'], name='event_org_created_idx'),
            models.Index(fields=['status', 'event_start_date'], name='event_status_start_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def is_merch(self):
        return self.event_type == self.TYPE_MERCH

    @property
    def effective_deadline(self):
        """Registration deadline, falling back to the event start."""
        return self.registration_deadline or self.event_start_date


class MerchItem(models.Model):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='items')
    sku = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    purchase_limit_per_user = models.PositiveIntegerField(blank=True, null=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['event', 'sku'], name='uniq_merch_item_event_sku'),
        ]

    def __str__(self):
        return f"{self.sku} ({self.event.title})"


class MerchVariant(models.Model):
    item = models.ForeignKey(MerchItem, on_delete=models.CASCADE, related_name='variants')
    size = models.CharField(max_length=16, default='-')
    color = models.CharField(max_length=32, default='-')
    # Decremented only when a payment is approved
    stock = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['item', 'size', 'color'], name='uniq_merch_variant'),
            models.CheckConstraint(condition=models.Q(stock__gte=0), name='merch_variant_stock_non_negative'),
        ]

    def __str__(self):
        return f"{self.item.sku} {self.size}/{self.color} ({self.stock} left)"


class Team(models.Model):
    STATUS_FORMING = "FORMING"
    STATUS_COMPLETE = "COMPLETE"
    STATUS_REGISTERED = "REGISTERED"
    STATUS_CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (STATUS_FORMING, "Forming"),
        (STATUS_COMPLETE, "Complete"),
        (STATUS_REGISTERED, "Registered"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    ACTIVE_STATUSES = (STATUS_FORMING, STATUS_COMPLETE, STATUS_REGISTERED)

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='teams')
    team_name = models.CharField(max_length=100)
    team_leader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='led_teams',
    )
    team_size = models.PositiveSmallIntegerField()
    invite_code = models.CharField(max_length=16, unique=True, editable=False)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_FORMING)

    # Leader's answers, copied onto every member's registration
    form_response = models.JSONField(default=dict, blank=True)

    completed_at = models.DateTimeField(blank=True, null=True)
    registered_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['event', 'status'], name='team_event_status_idx'),
        ]

    def __str__(self):
        return f"{self.team_name} ({self.event.title})"

    def accepted_members(self):
        return self.members.filter(status=TeamMember.STATUS_ACCEPTED).order_by('created_at', 'id')

    @property
    def accepted_count(self):
        return self.accepted_members().count()

    @property
    def is_full(self):
        return self.accepted_count >= self.team_size


class TeamMember(models.Model):
    STATUS_PENDING = "PENDING"
    STATUS_ACCEPTED = "ACCEPTED"
    STATUS_DECLINED = "DECLINED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_ACCEPTED, "Accepted"),
        (STATUS_DECLINED, "Declined"),
    ]

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='team_memberships',
    )
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    joined_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(fields=['team', 'user'], name='uniq_team_member'),
        ]

    def __str__(self):
        return f"{self.user.username} in {self.team.team_name} ({self.status})"


class Registration(models.Model):
    STATUS_PENDING = "PENDING"
    STATUS_CONFIRMED = "CONFIRMED"
    STATUS_REJECTED = "REJECTED"
    STATUS_CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # Rows a participant can still act on
    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)
    # Rows that may be replaced by a fresh registration
    SUPERSEDABLE_STATUSES = (STATUS_REJECTED, STATUS_CANCELLED)

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='registrations')
    participant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='registrations',
    )
    team = models.ForeignKey(
        Team,
        on_delete=models.SET_NULL,
        related_name='registrations',
        blank=True,
        null=True,
    )
    registration_type = models.CharField(max_length=16, choices=Event.TYPE_CHOICES, default=Event.TYPE_NORMAL)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)

    ticket_id = models.CharField(max_length=64, unique=True, editable=False)
    qr_payload = models.TextField(blank=True, null=True)
    form_response = models.JSONField(default=dict, blank=True)

    attended = models.BooleanField(default=False)
    attended_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['event', 'participant'], name='uniq_registration_event_participant'),
        ]
        indexes = [
            models.Index(fields=['event', 'status'], name='reg_event_status_idx'),
            models.Index(fields=['participant', 'created_at'], name='reg_participant_created_idx'),
        ]

    def __str__(self):
        return f"{self.participant.username} - {self.event.title} ({self.status})"

    @property
    def current_order(self):
        """The attached order, or None for registrations that needed no payment."""
        try:
            return self.order
        except RegistrationOrder.DoesNotExist:
            return None


class RegistrationOrder(models.Model):
    """
    Payment-bearing part of a registration (registration fee and/or merchandise).

    Stock is only touched when an organizer approves the payment proof.
    """
    SKU_REGISTRATION_FEE = "REGISTRATION_FEE"

    PAYMENT_PENDING = "PENDING"
    PAYMENT_APPROVED = "APPROVED"
    PAYMENT_REJECTED = "REJECTED"
    # Free merchandise claim: the line is kept so the organizer knows what to hand out
    PAYMENT_NOT_REQUIRED = "NOT_REQUIRED"

    PAYMENT_CHOICES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_APPROVED, "Approved"),
        (PAYMENT_REJECTED, "Rejected"),
        (PAYMENT_NOT_REQUIRED, "Not required"),
    ]

    registration = models.OneToOneField(Registration, on_delete=models.CASCADE, related_name='order')
    sku = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    size = models.CharField(max_length=16, default='-')
    color = models.CharField(max_length=32, default='-')
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    payment_status = models.CharField(max_length=16, choices=PAYMENT_CHOICES, default=PAYMENT_PENDING)

    # Stored-file reference handed over by the storage layer
    payment_proof = models.CharField(max_length=1024, blank=True, null=True)
    proof_uploaded_at = models.DateTimeField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True, null=True)
    reviewed_at = models.DateTimeField(blank=True, null=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='reviewed_orders',
        blank=True,
        null=True,
    )

    class Meta:
        indexes = [
            models.Index(fields=['payment_status'], name='order_payment_status_idx'),
        ]

    def __str__(self):
        return f"{self.sku} x{self.quantity} ({self.payment_status})"

    @property
    def is_merchandise(self):
        return self.sku != self.SKU_REGISTRATION_FEE

    @property
    def needs_payment(self):
        return self.payment_status != self.PAYMENT_NOT_REQUIRED


class Feedback(models.Model):
    """
    An attendee's rating of an event.

    One per registration, and only once the participant has been checked in.
    Anonymous feedback hides the author from the organizer.
    """
    RATING_MIN = 1
    RATING_MAX = 5

    registration = models.OneToOneField(Registration, on_delete=models.CASCADE, related_name='feedback')
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='feedback')
    rating = models.PositiveSmallIntegerField()
    comment = models.TextField(blank=True, default='')
    is_anonymous = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(rating__gte=1) & models.Q(rating__lte=5),
                name='feedback_rating_range',
            ),
        ]
        indexes = [
            models.Index(fields=['event', 'created_at'], name='feedback_event_created_idx'),
            models.Index(fields=['event', 'rating'], name='feedback_event_rating_idx'),
        ]

    def __str__(self):
        return f"{self.event.title}: {self.rating}/5"

    @property
    def participant(self):
        return self.registration.participant
