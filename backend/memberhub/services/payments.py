"""Stripe payment gateway wrapper."""
import json
from dataclasses import dataclass
from typing import Any, Optional

import stripe

from memberhub.core.logging import get_logger

logger = get_logger(__name__)


class PaymentGatewayConfigError(RuntimeError):
    pass


class PaymentGatewayError(RuntimeError):
    def __init__(self, message: str, not_found: bool = False):
        super().__init__(message)
        self.not_found = not_found


class WebhookSignatureError(ValueError):
    pass


@dataclass(frozen=True)
class CheckoutSessionInfo:
    id: str
    client_reference_id: Optional[str]
    payment_status: Optional[str]
    customer_id: Optional[str]
    subscription_id: Optional[str]
    price_id: Optional[str]


@dataclass(frozen=True)
class PriceInfo:
    id: str
    amount: int
    currency: str
    interval: Optional[str]


CURRENCY_SYMBOLS = {"usd": "$", "eur": "€", "gbp": "£", "cad": "CA$", "aud": "A$"}


def format_amount(amount: int, currency: str) -> str:
    """Format an amount in minor units, e.g. 1000 usd -> $10.00."""
    symbol = CURRENCY_SYMBOLS.get(currency.lower())
    value = f"{amount / 100:,.2f}"
    return f"{symbol}{value}" if symbol else f"{value} {currency.upper()}"


def _stripe_id(value: Any) -> Optional[str]:
    """Stripe fields hold either a bare id or an expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return getattr(value, "id", None)


def _first_price_id(session: Any) -> Optional[str]:
    line_items = getattr(session, "line_items", None)
    items = getattr(line_items, "data", None) or []
    if not items:
        return None
    return _stripe_id(getattr(items[0], "price", None))


class StripeGateway:
    """Thin wrapper over the Stripe SDK; every call passes its own api key."""

    def __init__(self, api_key: Optional[str], webhook_secret: Optional[str] = None):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def _require_key(self) -> str:
        if not self.api_key:
            raise PaymentGatewayConfigError("STRIPE_SECRET_KEY is not configured")
        return self.api_key

    def create_checkout_session(
        self,
        price_id: str,
        customer_email: str,
        success_url: str,
        cancel_url: str,
        client_reference_id: str,
        metadata: dict[str, str],
    ) -> tuple[str, str]:
        api_key = self._require_key()
        try:
            session = stripe.checkout.Session.create(
                api_key=api_key,
                mode="subscription",
                payment_method_types=["card"],
                customer_email=customer_email,
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=client_reference_id,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Could not create checkout session: {e.user_message or e}") from e
        return session.id, session.url

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionInfo:
        api_key = self._require_key()
        try:
            session = stripe.checkout.Session.retrieve(
                session_id,
                api_key=api_key,
                expand=["customer", "subscription", "line_items.data.price"],
            )
        except stripe.InvalidRequestError as e:
            raise PaymentGatewayError(f"Checkout session not found: {session_id}", not_found=True) from e
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Could not retrieve checkout session: {e}") from e

        return CheckoutSessionInfo(
            id=session.id,
            client_reference_id=getattr(session, "client_reference_id", None),
            payment_status=getattr(session, "payment_status", None),
            customer_id=_stripe_id(getattr(session, "customer", None)),
            subscription_id=_stripe_id(getattr(session, "subscription", None)),
            price_id=_first_price_id(session),
        )

    def create_billing_portal_session(self, customer_id: str, return_url: str) -> str:
        api_key = self._require_key()
        try:
            portal = stripe.billing_portal.Session.create(
                api_key=api_key,
                customer=customer_id,
                return_url=return_url,
            )
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Could not create billing portal session: {e}") from e
        return portal.url

    def retrieve_price(self, price_id: str) -> PriceInfo:
        api_key = self._require_key()
        try:
            price = stripe.Price.retrieve(price_id, api_key=api_key)
        except stripe.InvalidRequestError as e:
            raise PaymentGatewayError(str(e.user_message or e), not_found=True) from e
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Failed to retrieve price information: {e}") from e

        recurring = getattr(price, "recurring", None)
        return PriceInfo(
            id=price.id,
            amount=getattr(price, "unit_amount", None) or 0,
            currency=getattr(price, "currency", None) or "usd",
            interval=getattr(recurring, "interval", None) if recurring else None,
        )

    def parse_webhook(self, payload: bytes, sig_header: Optional[str]) -> dict:
        """Verify the Stripe-Signature header and return the event as a plain dict."""
        if not self.webhook_secret:
            raise PaymentGatewayConfigError("STRIPE_WEBHOOK_SECRET is not configured")
        if not sig_header:
            raise WebhookSignatureError("Missing signature")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise WebhookSignatureError(f"Invalid webhook payload: {e}") from e

        try:
            stripe.WebhookSignature.verify_header(
                body, sig_header, self.webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Webhook signature verification failed: {e}") from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid webhook payload: {e}") from e
