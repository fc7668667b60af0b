"""Pydantic schemas for the community catalogue and admin configuration."""
from typing import Optional

from pydantic import Field, field_validator

from memberhub.schemas.common import CamelModel


class CommunityOut(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    circle_space_id: int
    stripe_price_id_monthly: Optional[str] = None
    stripe_price_id_annual: Optional[str] = None


class CommunityConfigUpdate(CamelModel):
    """Admin update of a community's Circle space and Stripe prices."""

    circle_space_id: int = Field(gt=0)
    stripe_price_id_monthly: Optional[str] = None
    stripe_price_id_annual: Optional[str] = None

    @field_validator("stripe_price_id_monthly", "stripe_price_id_annual")
    @classmethod
    def validate_price_id(cls, v: Optional[str]) -> Optional[str]:
        """Stripe price ids start with price_; empty means unset."""
        if v is None or v.strip() == "":
            return None
        v = v.strip()
        if not v.startswith("price_"):
            raise ValueError("Stripe price id must start with 'price_'")
        return v


class SpaceDataOut(CamelModel):
    access_token: str
    space_details: dict
    posts: list[dict]
