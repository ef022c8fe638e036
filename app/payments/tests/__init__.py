"""
Tests for payments app.

This package contains test modules for:
- test_money.py, test_commission.py: Money arithmetic and commission splits
- test_models.py: PaymentIntentRecord, VendorAccount, WebhookEvent
- test_locks.py, test_stores.py: Per-key locks and compare-and-swap writes
- test_tasks.py: Celery tasks
- test_views.py: API endpoint tests

Usage:
    pytest payments/tests/
    pytest payments/tests/test_views.py
"""
