"""
Stripe-driven reconciliation of local subscriptions and Circle access.

Stripe delivers webhooks at least once and possibly out of order. Writes are
skipped when nothing changed, and Circle access is revoked only on the delivery
that actually moves a subscription into an ended status. Circle failures are
recorded on the subscription and never fail the webhook; database errors
propagate so Stripe retries.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from memberhub.core.logging import get_logger
from memberhub.db.models.subscription import (
    ENDED_STATUSES,
    GATEWAY_STATUSES,
    Subscription,
    SubscriptionStatus,
    can_transition,
)
from memberhub.services.circle import CircleAdminClient, CircleAPIError, CircleConfigError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    success: bool
    message: str
    changed: bool = False


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def reconcile_subscription(
    db: Session,
    circle: CircleAdminClient,
    stripe_subscription_id: str,
    new_status: SubscriptionStatus,
    end_date: Optional[datetime] = None,
) -> ReconciliationResult:
    logger.info(
        f"Handling subscription change for {stripe_subscription_id} to {new_status.value}"
        + (f" (ends: {end_date.isoformat()})" if end_date else "")
    )

    subscription = db.execute(
        select(Subscription)
        .options(joinedload(Subscription.user), joinedload(Subscription.community))
        .where(Subscription.stripe_subscription_id == stripe_subscription_id)
    ).scalar_one_or_none()

    if subscription is None:
        logger.warning(f"Webhook received for unknown subscription {stripe_subscription_id}. Ignoring.")
        return ReconciliationResult(success=True, message="Subscription not found locally, ignoring.")

    status_changed = subscription.status != new_status
    end_date_changed = _as_utc(subscription.end_date) != _as_utc(end_date)

    if not status_changed and not end_date_changed:
        logger.info(
            f"Subscription {subscription.id} already reflects {new_status.value}, no update needed"
        )
        return ReconciliationResult(success=True, message="No change.")

    if status_changed:
        if not can_transition(subscription.status, new_status):
            # Stripe is authoritative; apply it but leave a trace
            logger.warning(
                f"Unexpected transition for subscription {subscription.id}: "
                f"{subscription.status.value} -> {new_status.value}"
            )
        subscription.status = new_status
    if end_date_changed:
        subscription.end_date = end_date
    db.commit()
    logger.info(
        f"Updated subscription {subscription.id} to {new_status.value}, end_date {end_date}"
    )

    if not (status_changed and new_status in ENDED_STATUSES):
        return ReconciliationResult(success=True, message="Subscription change processed.", changed=True)

    email = subscription.user.email
    space_id = subscription.community.circle_space_id
    logger.info(f"Subscription ended, revoking Circle access for {email} from space {space_id}")
    try:
        circle.remove_space_member(email, space_id)
    except (CircleAPIError, CircleConfigError) as e:
        logger.error(f"Failed to revoke Circle access for {email} from space {space_id}: {e}")
        subscription.status = SubscriptionStatus.ACCESS_REVOCATION_FAILED
        db.commit()
        return ReconciliationResult(
            success=True, message="DB updated, Circle revocation failed.", changed=True
        )

    logger.info(f"Revoked Circle access for {email} from space {space_id}")
    return ReconciliationResult(success=True, message="Subscription change processed.", changed=True)


def _subscription_ref(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id")
    return None


def handle_stripe_event(db: Session, circle: CircleAdminClient, event: dict) -> Optional[ReconciliationResult]:
    """Dispatch a verified Stripe event. Returns None for events that need no action."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "customer.subscription.deleted":
        return reconcile_subscription(db, circle, obj["id"], SubscriptionStatus.CANCELED)

    if event_type == "customer.subscription.updated":
        raw_status = obj.get("status")
        try:
            status = SubscriptionStatus(raw_status)
        except ValueError:
            status = None
        if status not in GATEWAY_STATUSES:
            logger.info(f"Ignoring subscription update with status: {raw_status}")
            return None

        cancel_at = obj.get("cancel_at") if obj.get("cancel_at_period_end") else None
        end_date = datetime.fromtimestamp(cancel_at, tz=timezone.utc) if cancel_at else None
        return reconcile_subscription(db, circle, obj["id"], status, end_date)

    if event_type == "invoice.payment_failed":
        subscription_id = _subscription_ref(obj.get("subscription"))
        if not subscription_id:
            # Newer API versions nest it under the invoice parent
            details = (obj.get("parent") or {}).get("subscription_details") or {}
            subscription_id = _subscription_ref(details.get("subscription"))
        if not subscription_id:
            logger.warning(f"Invoice payment failed event without a subscription ID: {obj.get('id')}")
            return None
        return reconcile_subscription(db, circle, subscription_id, SubscriptionStatus.PAST_DUE)

    logger.info(f"Unhandled Stripe event type: {event_type}")
    return None
