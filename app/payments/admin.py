"""
Payment admin configuration.

Registers vendor accounts, payment records and webhook events with the
Django admin. Records are read-only here: status changes go through the
orchestrator and the webhook processor, never through admin forms.
"""

from django.contrib import admin

from payments.models import PaymentIntentRecord, VendorAccount, WebhookEvent
from payments.money import Money

__all__ = [
    "VendorAccountAdmin",
    "PaymentIntentRecordAdmin",
    "WebhookEventAdmin",
]


@admin.register(VendorAccount)
class VendorAccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for VendorAccount.

    Provides visibility into provider onboarding status.
    """

    list_display = [
        "provider_account_id",
        "provider_kind",
        "onboarding_status",
        "transfers_enabled",
        "is_active",
        "last_refreshed_at",
    ]
    list_filter = ["provider_kind", "onboarding_status", "is_active"]
    search_fields = ["id", "provider_account_id"]
    readonly_fields = [
        "id",
        "provider_account_id",
        "provider_kind",
        "onboarding_status",
        "details_submitted",
        "charges_enabled",
        "transfers_enabled",
        "requirements",
        "disabled_reason",
        "last_refreshed_at",
        "created_at",
        "updated_at",
        "version",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "provider_account_id", "provider_kind", "is_active"),
            },
        ),
        (
            "Status",
            {
                "fields": (
                    "onboarding_status",
                    "details_submitted",
                    "charges_enabled",
                    "transfers_enabled",
                    "requirements",
                    "disabled_reason",
                    "last_refreshed_at",
                ),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata", "version"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Deactivate instead; payment records reference the account."""
        return False


@admin.register(PaymentIntentRecord)
class PaymentIntentRecordAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentIntentRecord.

    State changes should be made through the service layer, not admin.
    """

    list_display = [
        "provider_transaction_id",
        "provider_kind",
        "gross_display",
        "commission_display",
        "status",
        "vendor_account",
        "created_at",
    ]
    list_filter = ["status", "provider_kind", "currency", "created_at"]
    search_fields = [
        "id",
        "provider_transaction_id",
        "idempotency_key",
        "vendor_account__provider_account_id",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    list_select_related = ["vendor_account"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "provider_transaction_id",
                    "provider_kind",
                    "status",
                    "vendor_account",
                ),
            },
        ),
        (
            "Amounts",
            {
                "fields": (
                    "gross_amount",
                    "commission_amount",
                    "payout_amount",
                    "currency",
                ),
            },
        ),
        (
            "Conversion",
            {
                "fields": ("original_amount", "original_currency", "exchange_rate"),
                "classes": ("collapse",),
            },
        ),
        (
            "Idempotency",
            {
                "fields": ("idempotency_key", "request_fingerprint"),
                "classes": ("collapse",),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": ("succeeded_at", "failed_at", "canceled_at"),
                "classes": ("collapse",),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failure_reason",),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("description", "metadata", "version"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    @admin.display(description="Gross")
    def gross_display(self, obj: PaymentIntentRecord) -> str:
        return str(Money(obj.gross_amount, obj.currency))

    @admin.display(description="Commission")
    def commission_display(self, obj: PaymentIntentRecord) -> str:
        return str(Money(obj.commission_amount, obj.currency))

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payment records (audit trail)."""
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "provider_event_id",
        "provider_kind",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["provider_kind", "status", "event_type", "created_at"]
    search_fields = ["id", "provider_event_id", "object_id"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "provider_kind",
        "provider_event_id",
        "event_type",
        "provider_event_type",
        "object_id",
        "payment_intent",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "provider_kind",
                    "provider_event_id",
                    "event_type",
                    "provider_event_type",
                    "status",
                ),
            },
        ),
        (
            "Target",
            {
                "fields": ("object_id", "payment_intent"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False
