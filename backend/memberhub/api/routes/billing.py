"""Billing routes for Stripe integration."""
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from memberhub.api.deps import get_current_identity, get_current_user_id, get_payments, get_settings
from memberhub.core.config import Settings
from memberhub.core.logging import get_logger
from memberhub.db.models.user import User
from memberhub.db.session import get_db
from memberhub.schemas.billing import CheckoutSessionIn, CheckoutSessionOut, PriceOut
from memberhub.services.identity import UserProfile
from memberhub.services.payments import (
    PaymentGatewayConfigError,
    PaymentGatewayError,
    StripeGateway,
    format_amount,
)

router = APIRouter(prefix="/api", tags=["billing"])
logger = get_logger(__name__)


@router.post("/checkout-sessions")
def create_checkout_session(
    payload: CheckoutSessionIn,
    identity: UserProfile = Depends(get_current_identity),
    payments: StripeGateway = Depends(get_payments),
    settings: Settings = Depends(get_settings),
    origin: Optional[str] = Header(default=None),
):
    if not payload.price_id or not payload.community_slug or not payload.circle_space_id:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Price ID (string), Community Slug (string), and Circle Space ID (number) are required"
            },
        )

    base_url = (origin or settings.APP_URL).rstrip("/")
    slug = quote(payload.community_slug)
    try:
        session_id, url = payments.create_checkout_session(
            price_id=payload.price_id,
            customer_email=identity.email,
            success_url=(
                f"{base_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}"
                f"&spaceId={payload.circle_space_id}&communitySlug={slug}"
            ),
            cancel_url=f"{base_url}/subscribe/{slug}?cancelled=true",
            client_reference_id=identity.id,
            # Stripe metadata values must be strings
            metadata={
                "userId": identity.id,
                "spaceId": str(payload.circle_space_id),
                "priceId": payload.price_id,
                "communitySlug": payload.community_slug,
            },
        )
    except (PaymentGatewayConfigError, PaymentGatewayError) as e:
        logger.error(f"Error creating checkout session for {identity.id}: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})

    return CheckoutSessionOut(session_id=session_id, url=url)


@router.post("/billing-portal")
def create_billing_portal_session(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    payments: StripeGateway = Depends(get_payments),
    settings: Settings = Depends(get_settings),
):
    user = db.get(User, user_id)
    if user is None or not user.stripe_customer_id:
        logger.error(f"Stripe customer id not found for user {user_id}")
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": "Billing information not found for this user."},
        )

    return_url = f"{settings.APP_URL}/account"
    logger.info(f"Creating billing portal session for customer {user.stripe_customer_id}")
    try:
        portal_url = payments.create_billing_portal_session(user.stripe_customer_id, return_url)
    except PaymentGatewayConfigError as e:
        logger.error(str(e))
        return JSONResponse(status_code=500, content={"success": False, "error": "Billing service unavailable."})
    except PaymentGatewayError as e:
        logger.error(f"Error creating billing portal session: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {"success": True, "data": {"portalUrl": portal_url}}


@router.get("/stripe-price")
def get_stripe_price(
    price_id: Optional[str] = Query(default=None, alias="priceId"),
    user_id: str = Depends(get_current_user_id),
    payments: StripeGateway = Depends(get_payments),
):
    if not price_id:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Missing or invalid priceId parameter"},
        )

    try:
        price = payments.retrieve_price(price_id)
    except PaymentGatewayConfigError as e:
        logger.error(str(e))
        return JSONResponse(status_code=500, content={"success": False, "error": "Stripe configuration error."})
    except PaymentGatewayError as e:
        logger.error(f"Error retrieving price {price_id} from Stripe: {e}")
        return JSONResponse(
            status_code=404 if e.not_found else 500,
            content={"success": False, "error": str(e)},
        )

    data = PriceOut(
        amount=price.amount,
        currency=price.currency,
        interval=price.interval,
        formatted_amount=format_amount(price.amount, price.currency),
    )
    return {"success": True, "data": data.model_dump(by_alias=True)}
