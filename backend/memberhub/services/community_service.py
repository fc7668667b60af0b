"""Community catalogue queries and admin configuration."""
from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from memberhub.core.logging import get_logger
from memberhub.db.models.community import Community

logger = get_logger(__name__)


class CommunityNotFoundError(LookupError):
    pass


class CommunityConflictError(ValueError):
    pass


def list_communities(db: Session) -> Sequence[Community]:
    return db.execute(select(Community).order_by(Community.name.asc())).scalars().all()


def get_community_by_slug(db: Session, slug: str) -> Optional[Community]:
    return db.execute(select(Community).where(Community.slug == slug)).scalar_one_or_none()


def update_configuration(
    db: Session,
    community_id: int,
    circle_space_id: int,
    stripe_price_id_monthly: Optional[str],
    stripe_price_id_annual: Optional[str],
) -> Community:
    """Point a community at a Circle space and its Stripe prices. Empty price ids are stored as NULL."""
    community = db.get(Community, community_id)
    if community is None:
        raise CommunityNotFoundError(f"Community {community_id} not found")

    community.circle_space_id = circle_space_id
    community.stripe_price_id_monthly = stripe_price_id_monthly or None
    community.stripe_price_id_annual = stripe_price_id_annual or None
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise CommunityConflictError(
            "Failed to update: the Circle space id is already in use by another community."
        ) from e

    logger.info(f"Updated community {community_id} configuration (space {circle_space_id})")
    return community


def upsert_community(db: Session, slug: str, **fields) -> Community:
    """Create a community by slug, or refresh its Circle/Stripe ids if it exists."""
    community = get_community_by_slug(db, slug)
    if community is None:
        community = Community(slug=slug, **fields)
        db.add(community)
    else:
        for key in ("circle_space_id", "stripe_price_id_monthly", "stripe_price_id_annual"):
            if key in fields:
                setattr(community, key, fields[key])
    db.commit()
    return community
