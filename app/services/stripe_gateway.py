import json
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

import stripe

from app.schemas.checkout import CheckoutIntent, PaymentLinkIntent

logger = logging.getLogger(__name__)


@dataclass
class StripeConfig:
    secret_key: str         # sk_live_... / sk_test_...
    webhook_secret: str     # whsec_... for the checkout endpoint
    site_base_url: str      # customer site; redirect targets are built from it
    currency: str = "eur"


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    redirect_url: str


class PaymentGatewayError(RuntimeError):
    pass


class SignatureInvalid(ValueError):
    pass


# processor limits on session metadata
METADATA_MAX_KEYS = 50
METADATA_KEY_LENGTH = 40
METADATA_VALUE_LENGTH = 500


def check_metadata(metadata: dict[str, str]) -> None:
    if len(metadata) > METADATA_MAX_KEYS:
        raise ValueError(f"too many metadata fields ({len(metadata)})")
    for key, value in metadata.items():
        if len(key) > METADATA_KEY_LENGTH or len(value) > METADATA_VALUE_LENGTH:
            raise ValueError(f"metadata field {key} is too long for the payment provider")


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(cents: int | None) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(Decimal("0.01"))


class StripeGateway:
    def __init__(self, cfg: StripeConfig):
        self.cfg = cfg

    def _site(self, path: str) -> str:
        return self.cfg.site_base_url.rstrip("/") + path

    def _create_session(
        self,
        *,
        product_name: str,
        description: str,
        amount: Decimal,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
    ) -> CheckoutSession:
        if Decimal(amount) <= 0:
            raise ValueError("amount to charge must be positive")
        check_metadata(metadata)
        params = dict(
            mode="payment",
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": self.cfg.currency,
                    "product_data": {"name": product_name, "description": description},
                    "unit_amount": to_minor_units(amount),
                },
                "quantity": 1,
            }],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            payment_intent_data={"metadata": metadata},
        )
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = stripe.checkout.Session.create(api_key=self.cfg.secret_key, **params)
        except stripe.StripeError as e:
            logger.error("stripe session creation failed: %s", e)
            raise PaymentGatewayError(f"Stripe error: {e.user_message or e}") from e
        logger.info("stripe session %s created for %s %s", session["id"], amount, self.cfg.currency)
        return CheckoutSession(session_id=session["id"], redirect_url=session["url"])

    def create_checkout_session(self, intent: CheckoutIntent, amount: Decimal, *, product_name: str) -> CheckoutSession:
        """Open a hosted checkout for a new stay. Nothing is written locally until the webhook."""
        nights = (intent.end_time.date() - intent.start_time.date()).days
        label = "Deposit (30%)" if intent.payment_option == "deposit" else "Full payment"
        return self._create_session(
            product_name=f"{product_name} - {label}",
            description=f"{nights} night(s), {intent.start_time.date()} to {intent.end_time.date()}, {intent.guests} guest(s)",
            amount=amount,
            metadata=intent.to_metadata(),
            success_url=self._site("/checkout/success?session_id={CHECKOUT_SESSION_ID}"),
            cancel_url=self._site("/checkout?canceled=true"),
            customer_email=intent.client_email,
        )

    def create_link_checkout_session(self, intent: PaymentLinkIntent, token: str, *, customer_email: str | None, description: str) -> CheckoutSession:
        return self._create_session(
            product_name="Booking balance payment",
            description=description,
            amount=intent.amount_due,
            metadata=intent.to_metadata(),
            success_url=self._site(f"/payment/{token}?success=true&session_id={{CHECKOUT_SESSION_ID}}"),
            cancel_url=self._site(f"/payment/{token}?canceled=true"),
            customer_email=customer_email,
        )

    def retrieve_session(self, session_id: str) -> dict:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.cfg.secret_key)
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Stripe error: {e.user_message or e}") from e
        return session.to_dict() if hasattr(session, "to_dict") else dict(session)

    def verify_webhook(self, raw_body: bytes, signature_header: str | None) -> dict:
        """Check the Stripe-Signature header against the raw body; return the event as a plain dict."""
        if not signature_header:
            raise SignatureInvalid("missing Stripe-Signature header")
        if not self.cfg.webhook_secret:
            raise SignatureInvalid("webhook secret not configured")
        try:
            stripe.Webhook.construct_event(raw_body, signature_header, self.cfg.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("rejected webhook with bad signature")
            raise SignatureInvalid(str(e)) from e
        except ValueError as e:
            raise SignatureInvalid(f"malformed payload: {e}") from e
        return json.loads(raw_body)
