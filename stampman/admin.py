"""Stampman admin.

The ledger, unlock events and redemptions are append-only: they are shown
read-only and can only be written through StampService.
"""

from django.contrib import admin
from django.utils.html import format_html

from stampman.models import (
    Business,
    BusinessLocation,
    Campaign,
    CampaignFiring,
    Customer,
    IdempotencyRecord,
    RedemptionRecord,
    RewardUnlockEvent,
    ScannerToken,
    ScheduledMessage,
    StampLedgerEntry,
)


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# Business Admin
# ===========================================


class BusinessLocationInline(admin.TabularInline):
    model = BusinessLocation
    extra = 0
    fields = ["name", "is_active", "created_at"]
    readonly_fields = ["created_at"]


class ScannerTokenInline(admin.TabularInline):
    model = ScannerToken
    extra = 0
    fields = ["name", "token_prefix", "location", "is_active", "usage_count", "last_used_at", "expires_at"]
    readonly_fields = ["token_prefix", "usage_count", "last_used_at"]
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        # Secrets are only shown once, at creation through the service.
        return False


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "stamps_required",
        "reward_description",
        "owner",
        "is_active",
        "customer_count",
    ]
    list_filter = ["is_active"]
    search_fields = ["name", "reward_description"]
    raw_id_fields = ["owner"]
    readonly_fields = ["id", "created_at", "updated_at"]
    inlines = [BusinessLocationInline, ScannerTokenInline]

    fieldsets = [
        (None, {"fields": ["id", "name", "owner", "is_active"]}),
        ("Reward", {"fields": ["stamps_required", "reward_description"]}),
        ("Timestamps", {"fields": ["created_at", "updated_at"], "classes": ["collapse"]}),
    ]

    def customer_count(self, obj):
        return obj.customers.count()

    customer_count.short_description = "Customers"


# ===========================================
# Customer Admin
# ===========================================


class StampLedgerInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = StampLedgerEntry
    extra = 0
    fields = ["created_at", "quantity", "stamps_before", "stamps_after", "rewards_unlocked", "actor"]
    readonly_fields = fields
    ordering = ["-created_at"]
    max_num = 20
    verbose_name_plural = "Sellos (últimos 20)"


class RewardUnlockInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = RewardUnlockEvent
    extra = 0
    fields = ["unlocked_at", "reward_description", "redeemed_at"]
    readonly_fields = fields


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = [
        "name",
        "business",
        "phone",
        "progress",
        "total_rewards_earned",
        "last_stamp_at",
        "is_active",
    ]
    list_filter = ["business", "is_active"]
    search_fields = ["name", "phone"]
    list_select_related = ["business"]
    raw_id_fields = ["business"]
    readonly_fields = [
        "id",
        "stamps_count",
        "total_rewards_earned",
        "last_stamp_at",
        "version",
        "enrolled_at",
    ]
    inlines = [StampLedgerInline, RewardUnlockInline]

    fieldsets = [
        (None, {"fields": ["id", "business", "name", "phone", "is_active"]}),
        ("Card", {"fields": ["stamps_count", "total_rewards_earned", "last_stamp_at"]}),
        ("System", {"fields": ["version", "enrolled_at"], "classes": ["collapse"]}),
    ]

    def progress(self, obj):
        return f"{obj.stamps_count}/{obj.business.stamps_required}"

    progress.short_description = "Stamps"


# ===========================================
# Ledger Admin (read-only)
# ===========================================


@admin.register(StampLedgerEntry)
class StampLedgerEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["created_at", "customer", "business", "quantity", "stamps_after", "rewards_unlocked", "actor"]
    list_filter = ["business"]
    search_fields = ["idempotency_key", "customer__name", "actor"]
    list_select_related = ["customer", "business"]


@admin.register(RewardUnlockEvent)
class RewardUnlockEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["unlocked_at", "customer", "business", "reward_description", "redeemed_badge"]
    list_filter = ["business", "redeemed_at"]
    search_fields = ["customer__name"]
    list_select_related = ["customer", "business"]

    def redeemed_badge(self, obj):
        if obj.is_redeemed:
            return format_html('<span style="color: gray;">{}</span>', "canjeado")
        return format_html('<span style="color: green;">{}</span>', "disponible")

    redeemed_badge.short_description = "Status"


@admin.register(RedemptionRecord)
class RedemptionRecordAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["redeemed_at", "customer", "business", "actor", "stamps_at_redemption"]
    list_filter = ["business"]
    list_select_related = ["customer", "business"]


# ===========================================
# Scanner Admin
# ===========================================


@admin.register(ScannerToken)
class ScannerTokenAdmin(admin.ModelAdmin):
    list_display = ["name", "token_prefix", "business", "location", "is_active", "usage_count", "last_used_at"]
    list_filter = ["is_active", "business"]
    search_fields = ["name", "token_prefix"]
    readonly_fields = ["id", "token_prefix", "usage_count", "last_used_at", "created_by", "created_at"]
    fields = ["id", "business", "location", "name", "token_prefix", "is_active", "expires_at",
              "usage_count", "last_used_at", "created_by", "created_at"]

    def has_add_permission(self, request):
        return False


# ===========================================
# Campaign Admin
# ===========================================


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ["name", "business", "trigger_type", "status", "sent_count", "failed_count"]
    list_filter = ["status", "trigger_type", "business"]
    search_fields = ["name", "message_template"]
    readonly_fields = ["id", "sent_count", "failed_count", "created_at", "updated_at"]


@admin.register(CampaignFiring)
class CampaignFiringAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["fired_at", "campaign", "customer", "fired_for_event_id"]
    list_filter = ["campaign"]
    search_fields = ["fired_for_event_id"]


@admin.register(ScheduledMessage)
class ScheduledMessageAdmin(admin.ModelAdmin):
    list_display = ["created_at", "campaign", "recipient_phone", "status", "attempts", "sent_at"]
    list_filter = ["status", "campaign"]
    search_fields = ["recipient_phone", "provider_message_id"]
    readonly_fields = [
        "firing",
        "campaign",
        "customer",
        "recipient_phone",
        "body",
        "attempts",
        "error_message",
        "provider_message_id",
        "created_at",
        "claimed_at",
        "sent_at",
    ]


@admin.register(IdempotencyRecord)
class IdempotencyRecordAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["created_at", "business", "key", "operation"]
    list_filter = ["operation"]
    search_fields = ["key"]
