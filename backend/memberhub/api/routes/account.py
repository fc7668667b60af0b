"""Account endpoint for the signed-in user."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from memberhub.api.deps import get_current_user_id
from memberhub.core.logging import get_logger
from memberhub.db.models.subscription import Subscription
from memberhub.db.models.user import User
from memberhub.db.session import get_db
from memberhub.schemas.account import AccountOut, UserOut

router = APIRouter(prefix="/api", tags=["account"])
logger = get_logger(__name__)


@router.get("/account", response_model=AccountOut)
def get_account(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> AccountOut:
    user = db.execute(
        select(User)
        .options(selectinload(User.subscriptions).selectinload(Subscription.community))
        .where(User.id == user_id)
    ).scalar_one_or_none()
    if user is None:
        logger.error(f"User {user_id} authenticated but not found in DB")
        raise HTTPException(status_code=404, detail="User data not found. Please contact support.")

    out = UserOut.model_validate(user)
    # Most recent first
    out.subscriptions.sort(key=lambda s: (s.created_at is not None, s.created_at), reverse=True)
    return AccountOut(user=out, has_billing_account=bool(user.stripe_customer_id))
