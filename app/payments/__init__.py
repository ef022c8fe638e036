"""
Payments app: split payments between the platform and its vendors.

This app handles:
- Commission splitting with a minimum platform fee
- Routing payments through Stripe Connect or a regional gateway
- Vendor account registration and payout readiness
- Verified, exactly-once webhook processing

Usage:
    from payments.services import PaymentRequest, get_payment_services

    services = get_payment_services()
    record = services.orchestrator.submit(
        PaymentRequest(amount=10000, currency="usd", vendor_account_id="acct_123")
    )
"""
