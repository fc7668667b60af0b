from memberhub.db.models.user import User
from memberhub.services.payments import PaymentGatewayConfigError, PriceInfo, format_amount


def test_checkout_session_for_community(client, payments, headers):
    res = client.post(
        "/api/checkout-sessions",
        json={"priceId": "price_solas_monthly", "communitySlug": "solas-nua", "circleSpaceId": 2222222},
        headers={**headers(), "Origin": "https://app.example.com"},
    )

    assert res.status_code == 200
    assert res.json() == {"sessionId": "cs_test_new", "url": "https://checkout.stripe.test/cs_test_new"}

    [checkout] = payments.checkouts
    assert checkout["price_id"] == "price_solas_monthly"
    assert checkout["customer_email"] == "aoife@example.com"
    assert checkout["client_reference_id"] == "user_1"
    assert checkout["success_url"] == (
        "https://app.example.com/payment-success?session_id={CHECKOUT_SESSION_ID}"
        "&spaceId=2222222&communitySlug=solas-nua"
    )
    assert checkout["cancel_url"] == "https://app.example.com/subscribe/solas-nua?cancelled=true"
    assert checkout["metadata"] == {
        "userId": "user_1",
        "spaceId": "2222222",
        "priceId": "price_solas_monthly",
        "communitySlug": "solas-nua",
    }


def test_checkout_session_falls_back_to_app_url(client, payments, headers):
    client.post(
        "/api/checkout-sessions",
        json={"priceId": "price_solas_annual", "communitySlug": "solas-nua", "circleSpaceId": 2222222},
        headers=headers(),
    )

    assert payments.checkouts[0]["cancel_url"] == "https://members.test/subscribe/solas-nua?cancelled=true"


def test_checkout_session_requires_all_fields(client, payments, headers):
    res = client.post("/api/checkout-sessions", json={"priceId": "price_solas_monthly"}, headers=headers())

    assert res.status_code == 400
    assert "required" in res.json()["error"]
    assert payments.checkouts == []


def test_checkout_session_gateway_misconfigured(client, payments, monkeypatch, headers):
    def unconfigured(**kwargs):
        raise PaymentGatewayConfigError("STRIPE_SECRET_KEY is not configured")

    monkeypatch.setattr(payments, "create_checkout_session", unconfigured)

    res = client.post(
        "/api/checkout-sessions",
        json={"priceId": "price_solas_monthly", "communitySlug": "solas-nua", "circleSpaceId": 2222222},
        headers=headers(),
    )

    assert res.status_code == 500


def test_billing_portal(client, db, payments, headers):
    db.add(User(id="user_1", email="aoife@example.com", stripe_customer_id="cus_1"))
    db.commit()

    res = client.post("/api/billing-portal", headers=headers())

    assert res.status_code == 200
    assert res.json() == {"success": True, "data": {"portalUrl": "https://billing.stripe.test/portal"}}
    assert payments.portals == [("cus_1", "https://members.test/account")]


def test_billing_portal_without_customer(client, db, payments, headers):
    db.add(User(id="user_1", email="aoife@example.com"))
    db.commit()

    res = client.post("/api/billing-portal", headers=headers())

    assert res.status_code == 404
    assert res.json() == {"success": False, "error": "Billing information not found for this user."}
    assert payments.portals == []


def test_stripe_price(client, payments, headers):
    payments.prices["price_solas_monthly"] = PriceInfo(
        id="price_solas_monthly", amount=1500, currency="eur", interval="month"
    )

    res = client.get("/api/stripe-price", params={"priceId": "price_solas_monthly"}, headers=headers())

    assert res.status_code == 200
    assert res.json() == {
        "success": True,
        "data": {"amount": 1500, "currency": "eur", "interval": "month", "formattedAmount": "€15.00"},
    }


def test_stripe_price_errors(client, headers):
    missing_param = client.get("/api/stripe-price", headers=headers())
    unknown = client.get("/api/stripe-price", params={"priceId": "price_nope"}, headers=headers())
    unauthenticated = client.get("/api/stripe-price", params={"priceId": "price_nope"})

    assert missing_param.status_code == 400
    assert unknown.status_code == 404
    assert unknown.json()["success"] is False
    assert unauthenticated.status_code == 401


def test_format_amount():
    assert format_amount(1500, "eur") == "€15.00"
    assert format_amount(999, "usd") == "$9.99"
    assert format_amount(500, "gbp") == "£5.00"
    assert format_amount(1000, "sek") == "10.00 SEK"
