from django.contrib import admin
from .models import (
    Event, Feedback, MerchItem, MerchVariant, Team, TeamMember, Registration, RegistrationOrder
)


class MerchItemInline(admin.TabularInline):
    model = MerchItem
    extra = 0


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ('title', 'event_type', 'status', 'organizer', 'event_start_date', 'max_participants')
    list_filter = ('status', 'event_type', 'allow_teams', 'event_start_date')
    search_fields = ('title', 'description', 'organizer__username')
    date_hierarchy = 'event_start_date'
    inlines = [MerchItemInline]


@admin.register(MerchVariant)
class MerchVariantAdmin(admin.ModelAdmin):
    list_display = ('item', 'size', 'color', 'stock')
    list_filter = ('item__event',)
    search_fields = ('item__sku', 'item__name')


class TeamMemberInline(admin.TabularInline):
    model = TeamMember
    extra = 0


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ('team_name', 'event', 'team_leader', 'team_size', 'status', 'invite_code')
    list_filter = ('status',)
    search_fields = ('team_name', 'invite_code', 'team_leader__username')
    inlines = [TeamMemberInline]


class RegistrationOrderInline(admin.StackedInline):
    model = RegistrationOrder
    extra = 0
    readonly_fields = ('reviewed_at', 'reviewed_by')


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ('participant', 'event', 'registration_type', 'status', 'attended', 'created_at')
    list_filter = ('status', 'registration_type', 'attended')
    search_fields = ('participant__username', 'event__title', 'ticket_id')
    readonly_fields = ('ticket_id', 'qr_payload')
    inlines = [RegistrationOrderInline]


@admin.register(Feedback)
class FeedbackAdmin(admin.ModelAdmin):
    list_display = ('event', 'registration', 'rating', 'is_anonymous', 'created_at')
    list_filter = ('rating', 'is_anonymous')
    search_fields = ('event__title', 'comment', 'registration__participant__username')
