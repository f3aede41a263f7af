"""
Stripe gateway client.

Wraps hosted checkout session creation and webhook signature verification.
One instance is built from configuration and injected into route handlers
through ``get_gateway``.
"""

import json
from typing import Any, Dict, List, Optional

import stripe
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import get_config
from errors import GatewayError
from log import get_logger

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class CheckoutSession(BaseModel):
    """What the web client needs to redirect to the hosted payment page."""
    id: str
    url: Optional[str] = None


class EventData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    object: Dict[str, Any] = Field(default_factory=dict)


class GatewayEvent(BaseModel):
    """Verified webhook event, reduced to the fields the order flow reads."""
    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    data: EventData = Field(default_factory=EventData)

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.data.object.get("metadata") or {}

    @property
    def amount_total(self) -> Optional[int]:
        return self.data.object.get("amount_total")


class StripeGateway:
    """Hosted checkout and webhook verification backed by the Stripe API."""

    def __init__(self, api_key: str, webhook_secret: str, tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def create_checkout_session(self, line_items: List[Dict[str, Any]], success_url: str, cancel_url: str,
                                allowed_countries: List[str], metadata: Dict[str, str]) -> CheckoutSession:
        session = stripe.checkout.Session.create(
            api_key=self.api_key,
            payment_method_types=["card"],
            shipping_address_collection={"allowed_countries": allowed_countries},
            line_items=line_items,
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        logger.info(f"Created checkout session {session.id}")
        return CheckoutSession(id=session.id, url=session.url)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> GatewayEvent:
        """Verify ``payload`` against the ``Stripe-Signature`` header and parse it.

        Raises:
            GatewayError: If the signature is missing or invalid, or the payload is not an event.
        """
        if not signature:
            raise GatewayError("Missing Stripe-Signature header")
        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            raise GatewayError("Webhook error: payload is not valid UTF-8") from e
        try:
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            raise GatewayError(f"Webhook error: {e}") from e
        try:
            return GatewayEvent.model_validate(json.loads(body))
        except (ValueError, ValidationError) as e:
            raise GatewayError(f"Webhook error: invalid payload ({e.__class__.__name__})") from e


_gateway: Optional[StripeGateway] = None


def get_gateway() -> StripeGateway:
    """Return the process-wide gateway, building it from configuration on first use."""
    global _gateway
    if _gateway is None:
        config = get_config()
        if not config.stripe_secret_key or not config.webhook_endpoint_secret:
            raise RuntimeError("STRIPE_SECRET_KEY and WEBHOOK_ENDPOINT_SECRET must be set")
        _gateway = StripeGateway(config.stripe_secret_key, config.webhook_endpoint_secret)
    return _gateway
