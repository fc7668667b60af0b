"""Admin routes: user overview and community configuration."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from memberhub.api.deps import require_admin
from memberhub.core.logging import get_logger
from memberhub.db.models.subscription import Subscription
from memberhub.db.models.user import User
from memberhub.db.session import get_db
from memberhub.schemas.account import UserOut
from memberhub.schemas.communities import CommunityConfigUpdate, CommunityOut
from memberhub.services.community_service import (
    CommunityConflictError,
    CommunityNotFoundError,
    update_configuration,
)
from memberhub.services.identity import UserProfile

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = get_logger(__name__)


@router.get("/users", response_model=List[UserOut])
def list_users(
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> List[UserOut]:
    users = db.execute(
        select(User)
        .options(selectinload(User.subscriptions).selectinload(Subscription.community))
        .order_by(User.created_at.desc())
    ).scalars().all()

    result = []
    for user in users:
        out = UserOut.model_validate(user)
        out.subscriptions.sort(key=lambda s: s.community.name)
        result.append(out)
    return result


@router.patch("/communities/{community_id}", response_model=CommunityOut)
def update_community(
    community_id: int,
    payload: CommunityConfigUpdate,
    admin: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> CommunityOut:
    try:
        community = update_configuration(
            db,
            community_id,
            circle_space_id=payload.circle_space_id,
            stripe_price_id_monthly=payload.stripe_price_id_monthly,
            stripe_price_id_annual=payload.stripe_price_id_annual,
        )
    except CommunityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CommunityConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"Admin {admin.id} updated community {community_id} config")
    return CommunityOut.model_validate(community)
