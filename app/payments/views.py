"""
DRF views for payments app.

This module provides API views for:
- Payment submission and commission quotes
- Payment status polling
- Vendor account registration and readiness
- Client configuration (publishable keys)

Related files:
    - services/: PaymentOrchestrator, VendorAccountRegistry
    - serializers.py: Request/response serializers
    - webhooks/views.py: Provider webhook endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/payments/ - Submit a payment
    POST /api/v1/payments/payments/quote/ - Commission quote
    GET /api/v1/payments/payments/{id}/status/ - Poll provider status
    POST /api/v1/payments/vendors/ - Register vendor account
    GET /api/v1/payments/vendors/{id}/status/ - Refresh vendor readiness
    GET /api/v1/payments/client-config/ - Publishable keys

Security:
    - All endpoints require authentication except client-config
    - Secret keys never appear in any response
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiExample, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError, ConflictError
from payments.exceptions import (
    IdempotencyConflictError,
    PaymentNotFoundError,
    PaymentValidationError,
    ProviderError,
    ProviderTimeoutError,
    VendorNotPayoutEligibleError,
)
from payments.services.container import get_payment_services
from payments.state_machines import PaymentIntentStatus

from .serializers import (
    ClientConfigSerializer,
    CreatePaymentSerializer,
    PaymentIntentSerializer,
    PaymentQuoteSerializer,
    PaymentStatusSerializer,
    RegisterVendorSerializer,
    VendorAccountSerializer,
)

logger = logging.getLogger(__name__)


IDEMPOTENCY_HEADER = "Idempotency-Key"

# Most specific first; the first isinstance match wins
ERROR_STATUS_CODES: list[tuple[type[BaseApplicationError], int]] = [
    (PaymentNotFoundError, status.HTTP_404_NOT_FOUND),
    (PaymentValidationError, status.HTTP_400_BAD_REQUEST),
    (VendorNotPayoutEligibleError, status.HTTP_409_CONFLICT),
    (IdempotencyConflictError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ProviderTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
]

STATUS_MESSAGES: dict[str, str] = {
    PaymentIntentStatus.CREATED: "Awaiting payment method",
    PaymentIntentStatus.REQUIRES_ACTION: "Customer action required",
    PaymentIntentStatus.PROCESSING: "Payment is processing",
    PaymentIntentStatus.SUCCEEDED: "Payment completed successfully",
    PaymentIntentStatus.FAILED: "Payment failed",
    PaymentIntentStatus.CANCELED: "Payment canceled",
}


def error_response(error: BaseApplicationError) -> Response:
    """Render a domain error as {"error", "error_code", "details"}."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            http_status = code
            break

    if http_status >= 500:
        logger.error(
            f"Payment request failed: {error.error_code}",
            extra={"error_code": error.error_code, "details": error.details},
        )
    return Response(error.to_dict(), status=http_status)


def status_message(payment_status: str) -> str:
    return STATUS_MESSAGES.get(payment_status, "Unknown status")


# =============================================================================
# Payments
# =============================================================================


class CreatePaymentView(APIView):
    """
    Submit a split or platform-only payment.

    POST /api/v1/payments/payments/

    The Idempotency-Key header (or idempotency_key body field) makes
    retries safe: the same key and body return the original payment.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Create payment",
        description=(
            "Compute the commission split, confirm the vendor can receive "
            "payouts and submit the payment to the provider. Returns the "
            "payment record including the client secret."
        ),
        tags=["Payments"],
        request=CreatePaymentSerializer,
        responses={
            201: PaymentIntentSerializer,
            400: OpenApiResponse(description="Invalid amount, rate or currency"),
            409: OpenApiResponse(
                description="Vendor not payout eligible or idempotency key reused"
            ),
            502: OpenApiResponse(description="Provider rejected the payment"),
            504: OpenApiResponse(
                description="Provider timed out; retry with the same key"
            ),
        },
        examples=[
            OpenApiExample(
                "Split payment",
                value={
                    "amount": 10000,
                    "currency": "usd",
                    "vendor_account_id": "acct_1Nv0FGQ9RKHgCVdK",
                    "description": "Order #1042",
                },
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        serializer = CreatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment_request = serializer.to_payment_request(
            idempotency_key=request.headers.get(IDEMPOTENCY_HEADER)
        )

        try:
            record = get_payment_services().orchestrator.submit(payment_request)
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            PaymentIntentSerializer(record).data, status=status.HTTP_201_CREATED
        )


class PaymentQuoteView(APIView):
    """
    Commission quote without submitting anything.

    POST /api/v1/payments/payments/quote/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Quote commission split",
        description=(
            "Return the gross, commission and payout amounts the payment "
            "would use, after any currency conversion."
        ),
        tags=["Payments"],
        request=CreatePaymentSerializer,
        responses={
            200: PaymentQuoteSerializer,
            400: OpenApiResponse(description="Invalid amount, rate or currency"),
            409: OpenApiResponse(description="Vendor not payout eligible"),
        },
    )
    def post(self, request):
        serializer = CreatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            plan = get_payment_services().orchestrator.quote(
                serializer.to_payment_request()
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PaymentQuoteSerializer(plan).data)


class PaymentStatusView(APIView):
    """
    Poll the provider for a payment's current status.

    GET /api/v1/payments/payments/{provider_transaction_id}/status/

    Applies whatever the provider reports, so this doubles as manual
    reconciliation after a timeout.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get payment status",
        tags=["Payments"],
        responses={
            200: OpenApiResponse(
                response=PaymentStatusSerializer,
                examples=[
                    OpenApiExample(
                        "Succeeded",
                        value={
                            "provider_transaction_id": "pi_3Nv0GhQ9RKHgCVdK",
                            "status": "succeeded",
                            "message": "Payment completed successfully",
                            "failure_reason": "",
                        },
                    ),
                ],
            ),
            404: OpenApiResponse(description="Unknown payment"),
            502: OpenApiResponse(description="Provider error"),
            504: OpenApiResponse(description="Provider timed out"),
        },
    )
    def get(self, request, provider_transaction_id: str):
        try:
            record = get_payment_services().orchestrator.refresh_payment_status(
                provider_transaction_id
            )
        except BaseApplicationError as e:
            return error_response(e)

        data = {
            "provider_transaction_id": record.provider_transaction_id,
            "status": record.status,
            "message": status_message(record.status),
            "failure_reason": record.failure_reason,
        }
        return Response(PaymentStatusSerializer(data).data)


# =============================================================================
# Vendors
# =============================================================================


def _vendor_data(account, registry) -> dict:
    return VendorAccountSerializer(
        account,
        context={
            "payout_eligibility_threshold": registry.config.payout_eligibility_threshold
        },
    ).data


class RegisterVendorView(APIView):
    """
    Register a provider-assigned vendor account.

    POST /api/v1/payments/vendors/

    Registering an already known account returns it unchanged.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Register vendor account",
        tags=["Vendors"],
        request=RegisterVendorSerializer,
        responses={
            201: VendorAccountSerializer,
            400: OpenApiResponse(
                description="Unknown provider or account registered elsewhere"
            ),
        },
    )
    def post(self, request):
        serializer = RegisterVendorSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        registry = get_payment_services().vendor_registry

        try:
            account = registry.register(
                serializer.validated_data["provider_account_id"],
                serializer.validated_data["provider"],
                metadata=serializer.validated_data.get("metadata"),
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            _vendor_data(account, registry), status=status.HTTP_201_CREATED
        )


class VendorStatusView(APIView):
    """
    Refresh a vendor's readiness from the provider.

    GET /api/v1/payments/vendors/{provider_account_id}/status/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get vendor readiness",
        tags=["Vendors"],
        responses={
            200: VendorAccountSerializer,
            404: OpenApiResponse(description="Vendor account not registered"),
            502: OpenApiResponse(description="Provider error"),
        },
    )
    def get(self, request, provider_account_id: str):
        registry = get_payment_services().vendor_registry
        try:
            account = registry.refresh_status(provider_account_id)
        except BaseApplicationError as e:
            return error_response(e)

        return Response(_vendor_data(account, registry))


# =============================================================================
# Client Configuration
# =============================================================================


class ClientConfigView(APIView):
    """
    Publishable configuration for clients.

    GET /api/v1/payments/client-config/

    Only publishable keys are returned; secret keys and webhook secrets
    stay on the server.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Get client configuration",
        tags=["Payments"],
        responses={200: ClientConfigSerializer},
    )
    def get(self, request):
        services = get_payment_services()
        providers = {
            kind: {
                "publishable_key": adapter.publishable_key,
                "settlement_currency": adapter.settlement_currency or "",
            }
            for kind, adapter in services.adapters.items()
        }
        data = {
            "default_provider": services.config.default_provider,
            "providers": providers,
        }
        return Response(ClientConfigSerializer(data).data)
