"""Pydantic schemas for checkout, billing portal, pricing and provisioning."""
from typing import Optional

from memberhub.schemas.common import CamelModel


class CheckoutSessionIn(CamelModel):
    price_id: Optional[str] = None
    community_slug: Optional[str] = None
    circle_space_id: Optional[int] = None


class CheckoutSessionOut(CamelModel):
    session_id: str
    url: str


class PriceOut(CamelModel):
    amount: int
    currency: str
    interval: Optional[str] = None
    formatted_amount: str


class ProvisionAccessIn(CamelModel):
    session_id: Optional[str] = None
    space_id: Optional[int] = None
    community_slug: Optional[str] = None
