"""Subscription database model and its status state machine."""
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import TIMESTAMP, Enum, ForeignKey, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from memberhub.db.base import Base


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    CANCELED = "canceled"
    PROVISIONING_FAILED = "provisioning_failed"
    ACCESS_REVOCATION_FAILED = "access_revocation_failed"


class PlanType(str, enum.Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


# Statuses Stripe reports on customer.subscription.updated that we act on
GATEWAY_STATUSES = frozenset(
    {
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.PAST_DUE,
        SubscriptionStatus.UNPAID,
        SubscriptionStatus.CANCELED,
    }
)

# Statuses that mean Circle access must be removed
ENDED_STATUSES = frozenset({SubscriptionStatus.CANCELED, SubscriptionStatus.UNPAID})

TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    SubscriptionStatus.ACTIVE: frozenset(
        {
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.UNPAID,
            SubscriptionStatus.CANCELED,
            SubscriptionStatus.PROVISIONING_FAILED,
            SubscriptionStatus.ACCESS_REVOCATION_FAILED,
        }
    ),
    SubscriptionStatus.PAST_DUE: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.UNPAID, SubscriptionStatus.CANCELED}
    ),
    SubscriptionStatus.UNPAID: frozenset(
        {
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.CANCELED,
            SubscriptionStatus.ACCESS_REVOCATION_FAILED,
        }
    ),
    SubscriptionStatus.CANCELED: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.ACCESS_REVOCATION_FAILED}
    ),
    SubscriptionStatus.PROVISIONING_FAILED: frozenset(
        {
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.UNPAID,
            SubscriptionStatus.CANCELED,
        }
    ),
    SubscriptionStatus.ACCESS_REVOCATION_FAILED: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.UNPAID, SubscriptionStatus.CANCELED}
    ),
}


def can_transition(current: SubscriptionStatus, new: SubscriptionStatus) -> bool:
    """Whether moving from ``current`` to ``new`` is an expected transition."""
    return current == new or new in TRANSITIONS[current]


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Subscription(Base):
    """A user's Stripe-backed subscription to one community."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "community_id", name="uq_subscriptions_user_community"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    community_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("communities.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(
            SubscriptionStatus,
            name="subscription_status",
            native_enum=False,
            length=40,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    stripe_subscription_id: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    plan_type: Mapped[PlanType | None] = mapped_column(
        Enum(
            PlanType,
            name="plan_type",
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=True,
    )

    start_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="subscriptions")
    community: Mapped["Community"] = relationship("Community", back_populates="subscriptions")
