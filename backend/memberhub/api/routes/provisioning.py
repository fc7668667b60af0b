"""Checkout confirmation: verify the Stripe session and provision Circle access."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from memberhub.api.deps import get_circle_admin, get_current_identity, get_payments
from memberhub.core.logging import get_logger
from memberhub.db.session import get_db
from memberhub.schemas.billing import ProvisionAccessIn
from memberhub.services.circle import CircleAdminClient
from memberhub.services.identity import UserProfile
from memberhub.services.payments import PaymentGatewayConfigError, PaymentGatewayError, StripeGateway
from memberhub.services.provisioning import CheckoutVerificationError, provision_access, verify_checkout

router = APIRouter(prefix="/api", tags=["provisioning"])
logger = get_logger(__name__)


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.post("/provision-access")
def provision_access_route(
    payload: ProvisionAccessIn,
    identity: UserProfile = Depends(get_current_identity),
    db: Session = Depends(get_db),
    payments: StripeGateway = Depends(get_payments),
    circle: CircleAdminClient = Depends(get_circle_admin),
):
    if not payload.session_id or not payload.space_id or not payload.community_slug:
        return _failure(400, "Missing required parameters")

    try:
        request = verify_checkout(
            db,
            payments,
            user_id=identity.id,
            email=identity.email,
            name=identity.name,
            session_id=payload.session_id,
            space_id=payload.space_id,
            community_slug=payload.community_slug,
        )
    except CheckoutVerificationError as e:
        logger.warning(f"Rejected checkout confirmation for {identity.id}: {e.message}")
        return _failure(e.status_code, e.message)
    except PaymentGatewayConfigError as e:
        logger.error(str(e))
        return _failure(500, "Payment processing is currently unavailable. Please contact support.")
    except PaymentGatewayError as e:
        logger.error(f"Error verifying checkout session {payload.session_id}: {e}")
        return _failure(500, "An unknown error occurred while setting up your access.")

    result = provision_access(db, circle, request)
    if not result.success:
        return _failure(
            500, result.error or "Failed to provision community access. Please contact support."
        )

    return {"success": True, "redirectUrl": f"/platform-space/{payload.space_id}"}
