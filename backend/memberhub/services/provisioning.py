"""
Provisioning workflow: turn a paid Stripe checkout into Circle space access.

Steps, in order, each committed on its own so intermediate state survives a
later failure for diagnosis:

1. upsert the local user (failure aborts everything)
2. upsert the (user, community) subscription as active
3. resolve the Circle member id (cached id, search by email, or create)
4. add the member to the community's space

Any failure after step 1 runs the compensating step, which moves an active
subscription to provisioning_failed. Callers always get a ProvisioningResult.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from memberhub.core.logging import get_logger
from memberhub.db.models.subscription import PlanType, Subscription, SubscriptionStatus
from memberhub.db.models.user import User
from memberhub.services.circle import CircleAdminClient, CircleAPIError
from memberhub.services.community_service import get_community_by_slug
from memberhub.services.payments import PaymentGatewayError, StripeGateway

logger = get_logger(__name__)

PROVISIONING_ERROR = "Error provisioning community access"


class CheckoutVerificationError(ValueError):
    """A checkout confirmation that must be rejected before any write."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProvisioningError(RuntimeError):
    pass


@dataclass(frozen=True)
class ProvisioningRequest:
    user_id: str
    email: str
    name: Optional[str]
    community_id: int
    space_id: int
    stripe_subscription_id: str
    stripe_customer_id: str
    plan_type: PlanType


@dataclass(frozen=True)
class ProvisioningResult:
    success: bool
    error: Optional[str] = None


def verify_checkout(
    db: Session,
    payments: StripeGateway,
    user_id: str,
    email: str,
    name: Optional[str],
    session_id: str,
    space_id: int,
    community_slug: str,
) -> ProvisioningRequest:
    """Check a completed checkout against the caller and the community catalogue."""
    try:
        session = payments.retrieve_checkout_session(session_id)
    except PaymentGatewayError as e:
        if e.not_found:
            raise CheckoutVerificationError("Invalid session or user mismatch.") from e
        raise

    if session.client_reference_id != user_id:
        logger.warning(f"Checkout session {session_id} does not belong to user {user_id}")
        raise CheckoutVerificationError("Invalid session or user mismatch.")

    if session.payment_status != "paid":
        raise CheckoutVerificationError(
            "Payment status is not valid. Provisioning requires paid status."
        )

    if not session.subscription_id or not session.customer_id or not session.price_id:
        raise CheckoutVerificationError(
            "Missing critical subscription/customer/price data from Stripe session."
        )

    community = get_community_by_slug(db, community_slug)
    if community is None or community.circle_space_id != space_id:
        raise CheckoutVerificationError("Community data mismatch or community not found.")

    plan_type = community.plan_type_for_price(session.price_id)
    if plan_type is None:
        raise CheckoutVerificationError("Could not determine plan type from Stripe price ID.")

    return ProvisioningRequest(
        user_id=user_id,
        email=email,
        name=name,
        community_id=community.id,
        space_id=space_id,
        stripe_subscription_id=session.subscription_id,
        stripe_customer_id=session.customer_id,
        plan_type=plan_type,
    )


def upsert_user(
    db: Session,
    user_id: str,
    email: str,
    name: Optional[str],
    stripe_customer_id: Optional[str] = None,
) -> User:
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email, name=name)
        db.add(user)
    else:
        user.email = email
        user.name = name
    if stripe_customer_id is not None:
        user.stripe_customer_id = stripe_customer_id
    db.commit()
    logger.info(f"User record {user_id} upserted")
    return user


def _find_subscription(db: Session, user_id: str, community_id: int) -> Optional[Subscription]:
    return db.execute(
        select(Subscription).where(
            Subscription.user_id == user_id,
            Subscription.community_id == community_id,
        )
    ).scalar_one_or_none()


def upsert_subscription(
    db: Session,
    user_id: str,
    community_id: int,
    stripe_subscription_id: str,
    plan_type: PlanType,
) -> Subscription:
    """Activate the (user, community) subscription, creating it if needed."""
    subscription = _find_subscription(db, user_id, community_id)
    if subscription is None:
        subscription = Subscription(user_id=user_id, community_id=community_id)
        db.add(subscription)
    elif subscription.status != SubscriptionStatus.ACTIVE:
        logger.info(
            f"Reactivating subscription {subscription.id} from {subscription.status.value}"
        )

    _activate(subscription, stripe_subscription_id, plan_type)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent confirmation inserted the row first; update that one instead
        db.rollback()
        subscription = _find_subscription(db, user_id, community_id)
        if subscription is None:
            raise
        _activate(subscription, stripe_subscription_id, plan_type)
        db.commit()

    logger.info(f"Subscription {subscription.id} active for user {user_id}, community {community_id}")
    return subscription


def _activate(subscription: Subscription, stripe_subscription_id: str, plan_type: PlanType) -> None:
    subscription.status = SubscriptionStatus.ACTIVE
    subscription.stripe_subscription_id = stripe_subscription_id
    subscription.plan_type = plan_type
    subscription.start_date = datetime.now(timezone.utc)
    # Clears any scheduled cancellation
    subscription.end_date = None


def resolve_circle_member(db: Session, circle: CircleAdminClient, user: User) -> int:
    """Return the user's Circle member id, searching or creating the member when not cached."""
    if user.circle_member_id:
        logger.info(f"Using stored Circle member id {user.circle_member_id} for {user.email}")
        return user.circle_member_id

    member_id = circle.find_member_id(user.email)
    if member_id is not None:
        logger.info(f"Found existing Circle member {member_id} for {user.email}")
    else:
        logger.info(f"Circle member {user.email} not found, creating")
        member_id = circle.create_member(user.email, user.name, skip_invitation=True)
        if not member_id:
            raise ProvisioningError(f"Circle did not return a member id for {user.email}")
        logger.info(f"Created Circle member {member_id} for {user.email}")

    user.circle_member_id = member_id
    db.commit()
    return member_id


def attach_to_space(circle: CircleAdminClient, member_id: int, space_id: int, email: str) -> None:
    try:
        circle.add_space_member(member_id, space_id, email)
    except CircleAPIError as e:
        if e.is_already_member:
            logger.warning(f"Circle member {member_id} already in space {space_id}, continuing")
            return
        raise
    logger.info(f"Added Circle member {member_id} to space {space_id}")


def mark_provisioning_failed(db: Session, user_id: str, community_id: int) -> bool:
    """
    Compensating step: move an active subscription to provisioning_failed.

    Leaves any other status alone so a more specific failure is not clobbered.
    Best effort; a failure here is logged and reported as False.
    """
    try:
        db.rollback()
        subscription = _find_subscription(db, user_id, community_id)
        if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
            return False
        subscription.status = SubscriptionStatus.PROVISIONING_FAILED
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not mark subscription for {user_id}/{community_id} as failed: {e}")
        return False

    logger.warning(f"Subscription {subscription.id} marked {SubscriptionStatus.PROVISIONING_FAILED.value}")
    return True


def provision_access(
    db: Session,
    circle: CircleAdminClient,
    request: ProvisioningRequest,
) -> ProvisioningResult:
    """Run the provisioning workflow. Never raises."""
    logger.info(
        f"Provisioning access for {request.email} (ID: {request.user_id}) to space {request.space_id}"
    )

    try:
        user = upsert_user(
            db, request.user_id, request.email, request.name, request.stripe_customer_id
        )
    except Exception:
        db.rollback()
        logger.exception(f"Failed to upsert user {request.user_id}")
        return ProvisioningResult(success=False, error=PROVISIONING_ERROR)

    try:
        upsert_subscription(
            db,
            request.user_id,
            request.community_id,
            request.stripe_subscription_id,
            request.plan_type,
        )
        member_id = resolve_circle_member(db, circle, user)
        attach_to_space(circle, member_id, request.space_id, request.email)
    except Exception:
        logger.exception(f"Error provisioning access for {request.email} to space {request.space_id}")
        mark_provisioning_failed(db, request.user_id, request.community_id)
        return ProvisioningResult(success=False, error=PROVISIONING_ERROR)

    logger.info(f"Provisioning completed for {request.email} to space {request.space_id}")
    return ProvisioningResult(success=True)
