"""
Pytest fixtures for payments API tests.

Vendor account, payment record and service fixtures live in
payments/conftest.py.

Usage:
    def test_status(api_client, created_record):
        response = api_client.get(
            reverse("payments:payment_status", args=[created_record.provider_transaction_id])
        )
"""

import pytest

from payments.tests.factories import UserFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def api_client(user):
    """DRF client authenticated as the test user."""
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=user)
    return client
