# provider.py - Stripe gateway
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import stripe

from transformo.errors import AuthenticationError, TransientError, ValidationError

logger = logging.getLogger(__name__)

PLAN_MONTHLY = "monthly"
PLAN_YEARLY = "yearly"


class SubscriptionProvider(Protocol):
    def verify_event(self, payload: bytes, signature: str | None) -> dict[str, Any]: ...

    def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]: ...


@dataclass
class StripeConfig:
    """Stripe settings pulled from the Flask config."""
    api_key: str
    webhook_secret: str
    webhook_tolerance: int = 300
    timeout: float = 10.0
    max_network_retries: int = 2
    monthly_price_id: str = ""
    yearly_price_id: str = ""
    trial_period_days: int = 7
    base_url: str = "http://localhost:3000"

    @classmethod
    def from_app_config(cls, config: Mapping[str, Any]) -> "StripeConfig":
        return cls(
            api_key=config.get("STRIPE_SECRET_KEY", ""),
            webhook_secret=config.get("STRIPE_WEBHOOK_SECRET", ""),
            webhook_tolerance=config.get("STRIPE_WEBHOOK_TOLERANCE", 300),
            timeout=config.get("STRIPE_TIMEOUT_SECONDS", 10.0),
            max_network_retries=config.get("STRIPE_MAX_RETRIES", 2),
            monthly_price_id=config.get("STRIPE_MONTHLY_PRICE_ID", ""),
            yearly_price_id=config.get("STRIPE_YEARLY_PRICE_ID", ""),
            trial_period_days=config.get("TRIAL_PERIOD_DAYS", 7),
            base_url=config.get("BASE_URL", "http://localhost:3000"),
        )

    def price_for_plan(self, plan: str) -> str:
        price_id = {PLAN_MONTHLY: self.monthly_price_id, PLAN_YEARLY: self.yearly_price_id}.get(plan)
        if price_id is None:
            raise ValidationError(f"Unknown plan: {plan}")
        if not price_id:
            raise ValidationError(f"Price ID not configured for {plan} plan")
        return price_id


def _to_plain_dict(obj) -> dict[str, Any]:
    """Recursively convert a Stripe resource into plain dicts and lists."""
    if hasattr(obj, "to_dict_recursive"):
        return obj.to_dict_recursive()
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


def _translate_stripe_error(operation: str, exc: stripe.StripeError) -> Exception:
    """Map library errors onto the retry taxonomy."""
    if isinstance(exc, stripe.InvalidRequestError):
        return ValidationError(f"Stripe rejected {operation}: {exc.user_message or exc}")
    if isinstance(exc, stripe.AuthenticationError):
        return TransientError(f"Stripe credentials rejected during {operation}")
    # Connection errors (including timeouts), rate limits and API errors
    return TransientError(f"Stripe unavailable during {operation}: {exc}")


class StripeGateway:
    """
    Thin wrapper over the Stripe library. Every outbound call is bounded by the
    configured HTTP timeout; a timeout surfaces as TransientError so the caller
    fails instead of continuing with partial data.
    """

    def __init__(self, config: StripeConfig):
        self.config = config
        stripe.api_key = config.api_key
        stripe.max_network_retries = config.max_network_retries
        stripe.default_http_client = stripe.RequestsClient(timeout=config.timeout)

        logger.info(
            "Stripe client initialized",
            extra={
                "api_key_prefix": config.api_key[:8] + "..." if config.api_key else None,
                "max_retries": config.max_network_retries,
                "timeout": config.timeout,
            },
        )

    # ==================== WEBHOOKS ====================

    def verify_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """
        Verify the signature over the exact bytes received, then parse them.
        """
        if not signature:
            raise AuthenticationError("Missing Stripe signature")
        if not self.config.webhook_secret:
            raise TransientError("Webhook secret not configured", status_code=500)

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise AuthenticationError("Webhook body is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.config.webhook_secret,
                self.config.webhook_tolerance,
            )
        except stripe.SignatureVerificationError as exc:
            raise AuthenticationError("Invalid signature") from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise ValidationError("Webhook body is not valid JSON") from exc

        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise ValidationError("Webhook event missing id or type")
        return event

    # ==================== SUBSCRIPTIONS ====================

    def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        try:
            subscription = stripe.Subscription.retrieve(subscription_id, expand=["items.data.price"])
        except stripe.StripeError as exc:
            logger.error(
                "Failed to retrieve subscription",
                extra={"subscription_id": subscription_id, "error_type": type(exc).__name__},
            )
            raise _translate_stripe_error("subscription retrieval", exc) from exc
        return _to_plain_dict(subscription)

    def has_active_subscription(self, customer_id: str) -> bool:
        try:
            existing = stripe.Subscription.list(customer=customer_id, status="active", limit=1)
        except stripe.StripeError as exc:
            raise _translate_stripe_error("subscription listing", exc) from exc
        return len(existing.data) > 0

    def cancel_at_period_end(self, subscription_id: str) -> None:
        """Queue cancellation; the local record changes when the webhook arrives."""
        try:
            stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
        except stripe.StripeError as exc:
            raise _translate_stripe_error("subscription cancellation", exc) from exc

        logger.info("Subscription set to cancel at period end", extra={"subscription_id": subscription_id})

    # ==================== CUSTOMERS & SESSIONS ====================

    def ensure_customer(
        self,
        business_id: str,
        business_name: str,
        email: str | None,
        existing_customer_id: str | None = None,
    ) -> str:
        """Return the tenant's Stripe customer id, creating the customer if needed."""
        if existing_customer_id:
            return existing_customer_id

        try:
            customer = stripe.Customer.create(
                email=email,
                name=business_name,
                metadata={"business_id": business_id},
            )
        except stripe.StripeError as exc:
            raise _translate_stripe_error("customer creation", exc) from exc

        logger.info("Stripe customer created", extra={"business_id": business_id, "customer_id": customer.id})
        return customer.id

    def delete_customer(self, customer_id: str) -> None:
        try:
            stripe.Customer.delete(customer_id)
        except stripe.StripeError as exc:
            logger.error("Failed to clean up Stripe customer", extra={"customer_id": customer_id})
            raise _translate_stripe_error("customer deletion", exc) from exc

    def create_checkout_session(self, customer_id: str, business_id: str, user_id: str, plan: str) -> str:
        price_id = self.config.price_for_plan(plan)
        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                billing_address_collection="required",
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                subscription_data={
                    "trial_period_days": self.config.trial_period_days,
                    "metadata": {"business_id": business_id, "created_by": user_id},
                },
                success_url=f"{self.config.base_url}/billing?success=true&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.config.base_url}/billing?canceled=true",
                metadata={"business_id": business_id, "user_id": user_id},
                allow_promotion_codes=True,
                customer_update={"address": "auto", "name": "auto"},
            )
        except stripe.StripeError as exc:
            raise _translate_stripe_error("checkout session creation", exc) from exc

        if not session.url:
            raise TransientError("Failed to create checkout session URL")

        logger.info(
            "Checkout session created",
            extra={"business_id": business_id, "plan": plan, "session_id": session.id},
        )
        return session.url

    def create_portal_session(self, customer_id: str) -> str:
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=f"{self.config.base_url}/billing",
            )
        except stripe.StripeError as exc:
            raise _translate_stripe_error("portal session creation", exc) from exc
        return session.url
