"""Community database model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import TIMESTAMP, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from memberhub.db.base import Base


class Community(Base):
    """A purchasable community, backed by one Circle space."""

    __tablename__ = "communities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    circle_space_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    stripe_price_id_monthly: Mapped[str | None] = mapped_column(Text, nullable=True)
    stripe_price_id_annual: Mapped[str | None] = mapped_column(Text, nullable=True)

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
    subscriptions: Mapped[list["Subscription"]] = relationship(
        "Subscription",
        back_populates="community",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def plan_type_for_price(self, price_id: str | None) -> "PlanType | None":
        """Map a Stripe price id onto this community's configured plans."""
        from memberhub.db.models.subscription import PlanType

        if not price_id:
            return None
        if price_id == self.stripe_price_id_monthly:
            return PlanType.MONTHLY
        if price_id == self.stripe_price_id_annual:
            return PlanType.ANNUAL
        return None
