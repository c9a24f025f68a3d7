import logging
from typing import Optional

import stripe
from pydantic import ValidationError

from zapshift.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, CHECKOUT_CURRENCY
from zapshift.errors import GatewayError, NotFound, UpstreamUnavailable
from zapshift.schemas import CheckoutSession, CreatedSession, SessionMetadata

logger = logging.getLogger(__name__)

stripe.api_key = STRIPE_SECRET_KEY


def _as_dict(obj) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


def _translate(exc: stripe.StripeError, reference: str = None):
    if isinstance(exc, stripe.APIConnectionError):
        return UpstreamUnavailable("Could not reach the payment provider")
    if isinstance(exc, stripe.InvalidRequestError) and exc.code == "resource_missing":
        return NotFound(f"Checkout session {reference} not found")
    return GatewayError(f"Payment provider error: {exc.user_message or exc}")


def _parse_metadata(raw) -> Optional[SessionMetadata]:
    try:
        return SessionMetadata.model_validate(_as_dict(raw))
    except ValidationError:
        return None


class StripeGateway:
    """Creates and reads Stripe Checkout sessions."""

    def __init__(self, currency: str = CHECKOUT_CURRENCY):
        self.currency = currency

    def create_session(
        self,
        cost: int,
        description: str,
        customer_email: str,
        metadata: SessionMetadata,
        success_url: str,
        cancel_url: str,
    ) -> CreatedSession:
        try:
            session = stripe.checkout.Session.create(
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "unit_amount": cost * 100,
                            "product_data": {"name": description},
                        },
                        "quantity": 1,
                    }
                ],
                mode="payment",
                metadata=metadata.to_stripe(),
                customer_email=customer_email,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as exc:
            logger.error("Checkout session creation failed for parcel %s: %s", metadata.parcel_id, exc)
            raise _translate(exc) from exc

        data = _as_dict(session)
        logger.info("Created checkout session %s for parcel %s", data["id"], metadata.parcel_id)
        return CreatedSession(session_id=data["id"], redirect_url=data.get("url"))

    def retrieve_session(self, reference: str) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.retrieve(reference)
        except stripe.StripeError as exc:
            logger.warning("Checkout session %s could not be retrieved: %s", reference, exc)
            raise _translate(exc, reference) from exc

        data = _as_dict(session)
        logger.debug("Session retrieved: %s", data.get("id"))
        intent = data.get("payment_intent")
        if isinstance(intent, dict) or hasattr(intent, "to_dict"):
            intent = _as_dict(intent).get("id")
        return CheckoutSession(
            session_id=data.get("id") or reference,
            payment_status=data.get("payment_status") or "unpaid",
            amount_total=data.get("amount_total"),
            currency=data.get("currency"),
            customer_email=data.get("customer_email")
            or _as_dict(data.get("customer_details")).get("email"),
            metadata=_parse_metadata(data.get("metadata")),
            payment_intent=intent,
        )

    def construct_event(self, payload: bytes, signature: str):
        """Verify a webhook delivery. Raises ValueError or SignatureVerificationError."""
        return stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)


def get_gateway() -> StripeGateway:
    return StripeGateway()
