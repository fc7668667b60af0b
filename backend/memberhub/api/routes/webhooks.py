"""
Webhook receivers for Stripe and Clerk.

Error semantics:
- missing/invalid signature → 400, never processed
- our misconfiguration (missing secret) → 500
- database error while processing → 500 so the sender retries
- Circle failures are recorded locally and acknowledged with 200

Processing runs in the threadpool; the session and Circle clients are blocking.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from memberhub.api.deps import get_circle_admin, get_identity_provider, get_payments
from memberhub.core.logging import get_logger
from memberhub.db.session import get_db
from memberhub.services.circle import CircleAdminClient
from memberhub.services.identity import ClerkIdentityProvider, IdentityConfigError, IdentityWebhookError
from memberhub.services.payments import PaymentGatewayConfigError, StripeGateway, WebhookSignatureError
from memberhub.services.reconciliation import handle_stripe_event
from memberhub.services.user_sync import MissingEmailError, handle_user_created

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])
logger = get_logger(__name__)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    payments: StripeGateway = Depends(get_payments),
    circle: CircleAdminClient = Depends(get_circle_admin),
):
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        event = payments.parse_webhook(payload, sig_header)
    except PaymentGatewayConfigError as e:
        logger.error(f"Stripe webhook configuration error: {e}")
        return JSONResponse(status_code=500, content={"error": "Webhook configuration error."})
    except WebhookSignatureError as e:
        logger.error(str(e))
        return JSONResponse(status_code=400, content={"error": str(e)})

    logger.info(f"Stripe webhook event received: {event.get('type')} ({event.get('id')})")
    try:
        await run_in_threadpool(handle_stripe_event, db, circle, event)
    except Exception:
        db.rollback()
        logger.exception(f"Error processing webhook event {event.get('id')} ({event.get('type')})")
        return JSONResponse(status_code=500, content={"error": "Webhook processing error"})

    return {"received": True}


@router.post("/clerk")
async def clerk_webhook(
    request: Request,
    db: Session = Depends(get_db),
    identity: ClerkIdentityProvider = Depends(get_identity_provider),
    circle: CircleAdminClient = Depends(get_circle_admin),
):
    payload = await request.body()

    try:
        event = identity.parse_webhook(payload, request.headers)
    except IdentityWebhookError as e:
        logger.error(str(e))
        return JSONResponse(status_code=400, content={"error": str(e)})
    except IdentityConfigError as e:
        logger.error(f"Clerk webhook configuration error: {e}")
        return JSONResponse(status_code=500, content={"error": "Missing webhook secret"})

    event_type = event.get("type")
    if event_type != "user.created":
        logger.info(f"Skipping non-user.created event: {event_type}")
        return {"success": True, "skipped": event_type}

    try:
        await run_in_threadpool(handle_user_created, db, circle, event.get("data") or {})
    except MissingEmailError as e:
        logger.error(str(e))
        return JSONResponse(status_code=400, content={"error": "User has no email address"})
    except Exception:
        db.rollback()
        logger.exception("Database error in Clerk webhook handler")
        return JSONResponse(status_code=500, content={"error": "Database error"})

    return {"success": True}
