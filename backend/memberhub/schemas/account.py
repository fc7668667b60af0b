"""Pydantic schemas for account and admin user listings."""
from datetime import datetime
from typing import Optional

from memberhub.db.models.subscription import PlanType, SubscriptionStatus
from memberhub.schemas.common import CamelModel


class SubscriptionCommunityOut(CamelModel):
    name: str
    slug: str
    circle_space_id: int


class SubscriptionOut(CamelModel):
    id: int
    status: SubscriptionStatus
    plan_type: Optional[PlanType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    community: SubscriptionCommunityOut


class UserOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    circle_member_id: Optional[int] = None
    created_at: Optional[datetime] = None
    subscriptions: list[SubscriptionOut] = []


class AccountOut(CamelModel):
    user: UserOut
    has_billing_account: bool
