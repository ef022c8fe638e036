"""
DRF serializers for payments app.

This module provides serializers for:
- Payment creation and commission quotes
- Payment records and status polling
- Vendor account registration and readiness
- Client configuration (publishable keys only)

Related files:
    - models/: PaymentIntentRecord, VendorAccount
    - views.py: Payment API views

Usage:
    serializer = CreatePaymentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payment_request = serializer.to_payment_request()
"""

from __future__ import annotations

from rest_framework import serializers

from payments.money import CURRENCY_EXPONENTS
from payments.services.payment_orchestrator import PaymentRequest
from payments.state_machines import ProviderKind


class CreatePaymentSerializer(serializers.Serializer):
    """
    Request body for creating a payment.

    A vendor_account_id makes it a split payment unless platform_only is
    set. The idempotency key may also arrive in the Idempotency-Key header.
    """

    amount = serializers.IntegerField(
        min_value=1, help_text="Gross amount in minor units"
    )
    currency = serializers.CharField(max_length=3)
    vendor_account_id = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    platform_only = serializers.BooleanField(required=False, default=False)
    description = serializers.CharField(
        max_length=500, required=False, allow_blank=True, default=""
    )
    idempotency_key = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    provider = serializers.ChoiceField(
        choices=ProviderKind.choices, required=False, allow_null=True, default=None
    )
    metadata = serializers.DictField(required=False, default=dict)

    def validate_currency(self, value: str) -> str:
        code = value.strip().lower()
        if code not in CURRENCY_EXPONENTS:
            raise serializers.ValidationError(f"Unsupported currency: {value}")
        return code

    def validate(self, attrs: dict) -> dict:
        if not attrs.get("vendor_account_id") and not attrs.get("platform_only"):
            raise serializers.ValidationError(
                "Either vendor_account_id or platform_only is required"
            )
        return attrs

    def to_payment_request(self, idempotency_key: str | None = None) -> PaymentRequest:
        data = self.validated_data
        return PaymentRequest(
            amount=data["amount"],
            currency=data["currency"],
            vendor_account_id=data.get("vendor_account_id") or None,
            platform_only=data.get("platform_only", False),
            description=data.get("description", ""),
            idempotency_key=idempotency_key or data.get("idempotency_key") or None,
            provider=data.get("provider"),
            metadata=data.get("metadata", {}),
        )


class PaymentQuoteSerializer(serializers.Serializer):
    """Commission quote for a payment plan."""

    provider = serializers.CharField(source="provider_kind")
    gross_amount = serializers.IntegerField(source="gross.amount")
    commission_amount = serializers.IntegerField(source="commission.amount")
    payout_amount = serializers.IntegerField(source="payout.amount")
    currency = serializers.CharField(source="gross.currency")
    original_amount = serializers.IntegerField(source="requested.amount")
    original_currency = serializers.CharField(source="requested.currency")
    exchange_rate = serializers.DecimalField(
        max_digits=24, decimal_places=12, allow_null=True
    )
    platform_only = serializers.BooleanField(source="is_platform_only")


class PaymentIntentSerializer(serializers.Serializer):
    """
    Payment record returned to the caller.

    client_secret is the handle the client uses to confirm the payment.
    """

    id = serializers.UUIDField(read_only=True)
    provider = serializers.CharField(source="provider_kind", read_only=True)
    provider_transaction_id = serializers.CharField(read_only=True)
    idempotency_key = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    gross_amount = serializers.IntegerField(read_only=True)
    commission_amount = serializers.IntegerField(read_only=True)
    payout_amount = serializers.IntegerField(read_only=True)
    currency = serializers.CharField(read_only=True)
    original_amount = serializers.IntegerField(read_only=True, allow_null=True)
    original_currency = serializers.CharField(read_only=True)
    exchange_rate = serializers.DecimalField(
        max_digits=24, decimal_places=12, read_only=True, allow_null=True
    )
    vendor_account_id = serializers.CharField(
        source="vendor_account.provider_account_id",
        read_only=True,
        allow_null=True,
        default=None,
    )
    client_secret = serializers.CharField(read_only=True)
    failure_reason = serializers.CharField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)


class PaymentStatusSerializer(serializers.Serializer):
    """Polled payment status with a human-readable message."""

    provider_transaction_id = serializers.CharField()
    status = serializers.CharField()
    message = serializers.CharField()
    failure_reason = serializers.CharField(allow_blank=True)


class RegisterVendorSerializer(serializers.Serializer):
    provider_account_id = serializers.CharField(max_length=255)
    provider = serializers.ChoiceField(choices=ProviderKind.choices)
    metadata = serializers.DictField(required=False, default=dict)


class VendorAccountSerializer(serializers.Serializer):
    """
    Vendor account readiness.

    Pass payout_eligibility_threshold in the context to compute
    payout_eligible.
    """

    provider_account_id = serializers.CharField(read_only=True)
    provider = serializers.CharField(source="provider_kind", read_only=True)
    onboarding_status = serializers.CharField(read_only=True)
    details_submitted = serializers.BooleanField(read_only=True)
    charges_enabled = serializers.BooleanField(read_only=True)
    transfers_enabled = serializers.BooleanField(read_only=True)
    requirements = serializers.ListField(child=serializers.CharField(), read_only=True)
    disabled_reason = serializers.CharField(read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    payout_eligible = serializers.SerializerMethodField()
    last_refreshed_at = serializers.DateTimeField(read_only=True, allow_null=True)

    def get_payout_eligible(self, obj) -> bool:
        threshold = self.context.get("payout_eligibility_threshold")
        return bool(threshold) and obj.is_payout_eligible(threshold)


class ClientConfigSerializer(serializers.Serializer):
    """Publishable configuration for browser and mobile clients."""

    default_provider = serializers.CharField()
    providers = serializers.DictField(child=serializers.DictField())
