import uuid

import django.db.models.deletion
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="VendorAccount",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True, default=dict, help_text="Arbitrary JSON metadata"
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "provider_account_id",
                    models.CharField(
                        help_text="Provider-assigned account id (acct_xxx or merchant id)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "provider_kind",
                    models.CharField(
                        choices=[
                            ("connect", "Stripe Connect"),
                            ("gateway", "Regional Gateway"),
                        ],
                        db_index=True,
                        help_text="Provider that owns this account",
                        max_length=20,
                    ),
                ),
                (
                    "onboarding_status",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("details_submitted", "Details Submitted"),
                            ("charges_enabled", "Charges Enabled"),
                            ("transfers_enabled", "Transfers Enabled"),
                            ("restricted", "Restricted"),
                        ],
                        db_index=True,
                        default="created",
                        help_text="Readiness derived from the latest provider snapshot",
                        max_length=20,
                    ),
                ),
                ("details_submitted", models.BooleanField(default=False)),
                ("charges_enabled", models.BooleanField(default=False)),
                ("transfers_enabled", models.BooleanField(default=False)),
                (
                    "requirements",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Outstanding requirements reported by the provider",
                    ),
                ),
                (
                    "disabled_reason",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Deactivated accounts are kept for history but never paid",
                    ),
                ),
                ("last_refreshed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Vendor Account",
                "verbose_name_plural": "Vendor Accounts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PaymentIntentRecord",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True, default=dict, help_text="Arbitrary JSON metadata"
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "provider_transaction_id",
                    models.CharField(
                        help_text="Provider payment id (pi_xxx or gateway payment id)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "provider_kind",
                    models.CharField(
                        choices=[
                            ("connect", "Stripe Connect"),
                            ("gateway", "Regional Gateway"),
                        ],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Caller-supplied or derived key; one record per key",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "request_fingerprint",
                    models.CharField(
                        help_text="SHA-256 of the request's material fields",
                        max_length=64,
                    ),
                ),
                ("gross_amount", models.PositiveBigIntegerField()),
                ("commission_amount", models.PositiveBigIntegerField(default=0)),
                ("payout_amount", models.PositiveBigIntegerField(default=0)),
                ("currency", models.CharField(max_length=3)),
                (
                    "original_amount",
                    models.PositiveBigIntegerField(blank=True, null=True),
                ),
                (
                    "original_currency",
                    models.CharField(blank=True, default="", max_length=3),
                ),
                (
                    "exchange_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=12,
                        help_text="Rate applied when the request currency differed",
                        max_digits=24,
                        null=True,
                    ),
                ),
                (
                    "description",
                    models.CharField(blank=True, default="", max_length=500),
                ),
                (
                    "client_secret",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Provider handle the client uses to confirm the payment",
                        max_length=255,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("created", "Created"),
                            ("requires_action", "Requires Action"),
                            ("processing", "Processing"),
                            ("succeeded", "Succeeded"),
                            ("failed", "Failed"),
                            ("canceled", "Canceled"),
                        ],
                        db_index=True,
                        default="created",
                        help_text="Current status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("succeeded_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "vendor_account",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payout destination; empty for platform-only payments",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_intents",
                        to="payments.vendoraccount",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Intent",
                "verbose_name_plural": "Payment Intents",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="payments_pa_status_6b1c2e_idx",
                    ),
                    models.Index(
                        fields=["provider_kind", "status"],
                        name="payments_pa_provide_9f3a41_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "provider_kind",
                    models.CharField(
                        choices=[
                            ("connect", "Stripe Connect"),
                            ("gateway", "Regional Gateway"),
                        ],
                        max_length=20,
                    ),
                ),
                ("provider_event_id", models.CharField(max_length=255)),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Canonical event type",
                        max_length=50,
                    ),
                ),
                (
                    "provider_event_type",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                (
                    "object_id",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Verified webhook payload (JSON)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                ("retry_count", models.PositiveSmallIntegerField(default=0)),
                (
                    "payment_intent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="webhook_events",
                        to="payments.paymentintentrecord",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="payments_we_status_4d2e8a_idx",
                    ),
                    models.Index(
                        fields=["status", "retry_count"],
                        name="payments_we_status_c71b05_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("provider_kind", "provider_event_id"),
                        name="unique_provider_event",
                    )
                ],
            },
        ),
    ]
