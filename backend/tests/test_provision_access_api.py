from sqlalchemy import select

from memberhub.db.models.subscription import PlanType, Subscription, SubscriptionStatus
from memberhub.db.models.user import User

BODY = {"sessionId": "cs_test_1", "spaceId": 2222222, "communitySlug": "solas-nua"}


def test_paid_checkout_grants_access(client, db, payments, fake_circle, solas, headers):
    payments.add_session()

    res = client.post("/api/provision-access", json=BODY, headers=headers())

    assert res.status_code == 200
    assert res.json() == {"success": True, "redirectUrl": "/platform-space/2222222"}

    db.expire_all()
    subscription = db.execute(select(Subscription)).scalar_one()
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.plan_type == PlanType.MONTHLY
    user = db.get(User, "user_1")
    assert user.email == "aoife@example.com"
    assert (user.circle_member_id, 2222222) in fake_circle.space_members


def test_requires_internal_token(client, solas):
    res = client.post("/api/provision-access", json=BODY, headers={"X-User-Id": "user_1"})
    assert res.status_code == 401

    res = client.post(
        "/api/provision-access",
        json=BODY,
        headers={"Authorization": "Bearer wrong", "X-User-Id": "user_1"},
    )
    assert res.status_code == 401


def test_requires_user_email(client, identity, solas, headers):
    identity.add("user_no_email", None)

    res = client.post("/api/provision-access", json=BODY, headers=headers("user_no_email"))

    assert res.status_code == 400


def test_missing_parameters(client, solas, headers):
    res = client.post("/api/provision-access", json={"sessionId": "cs_test_1"}, headers=headers())

    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Missing required parameters"}


def test_price_from_another_community_is_rejected(client, db, payments, fake_circle, solas, headers):
    payments.add_session(price_id="price_indc_monthly")

    res = client.post("/api/provision-access", json=BODY, headers=headers())

    assert res.status_code == 400
    assert res.json()["error"] == "Could not determine plan type from Stripe price ID."
    db.expire_all()
    assert db.execute(select(Subscription)).scalars().all() == []
    assert fake_circle.calls == []


def test_session_of_another_user_is_rejected(client, payments, solas, headers):
    payments.add_session(user_id="user_2")

    res = client.post("/api/provision-access", json=BODY, headers=headers())

    assert res.status_code == 400
    assert res.json()["error"] == "Invalid session or user mismatch."


def test_circle_failure_returns_500_and_records_status(client, db, payments, fake_circle, solas, headers):
    payments.add_session()
    fake_circle.fail("POST", "/api/admin/v2/community_members", 500, {"message": "Internal error"})

    res = client.post("/api/provision-access", json=BODY, headers=headers())

    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Error provisioning community access"}
    db.expire_all()
    assert db.execute(select(Subscription)).scalar_one().status == SubscriptionStatus.PROVISIONING_FAILED
