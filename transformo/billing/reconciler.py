"""
Webhook reconciliation: applies verified Stripe events to local subscription records.

Every delivery goes through the same four steps: verify the signature over the
raw body, skip events already in the ledger, dispatch to the handler for the
event type, and only then append the event to the ledger. A handler that raises
leaves the ledger untouched so the provider's redelivery retries the mutation.

Handlers are keyed overwrites by provider subscription id, so re-running one
after a crash between dispatch and ledger write is harmless.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from transformo.billing.provider import SubscriptionProvider
from transformo.billing.records import as_utc, from_unix, snapshot_from_stripe
from transformo.billing.status import SubscriptionStatus
from transformo.billing.stores import EventLedger, SubscriptionStore, TenantDirectory
from transformo.errors import DuplicateSubscriptionError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
INVOICE_PAID = "invoice.paid"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

OUTCOME_PROCESSED = "processed"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_IGNORED = "ignored"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WebhookResult:
    event_id: str
    event_type: str
    outcome: str

    def to_dict(self) -> dict:
        return {"event_id": self.event_id, "event_type": self.event_type, "outcome": self.outcome}


def invoice_subscription_id(invoice: dict) -> str | None:
    """Subscription referenced by an invoice, across old and new API shapes."""
    subscription = invoice.get("subscription")
    if subscription is None:
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        subscription = details.get("subscription")
    if isinstance(subscription, dict):
        return subscription.get("id")
    return subscription


class WebhookReconciler:
    def __init__(
        self,
        provider: SubscriptionProvider,
        subscriptions: SubscriptionStore,
        ledger: EventLedger,
        tenants: TenantDirectory,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.provider = provider
        self.subscriptions = subscriptions
        self.ledger = ledger
        self.tenants = tenants
        self.clock = clock

        self.event_handlers: dict[str, Callable[[dict, dict], None]] = {
            CHECKOUT_COMPLETED: self.handle_checkout_completed,
            INVOICE_PAID: self.handle_invoice_paid,
            INVOICE_PAYMENT_FAILED: self.handle_invoice_payment_failed,
            SUBSCRIPTION_UPDATED: self.handle_subscription_updated,
            SUBSCRIPTION_DELETED: self.handle_subscription_deleted,
        }

    def process(self, payload: bytes, signature: str | None) -> WebhookResult:
        event = self.provider.verify_event(payload, signature)
        return self.apply(event)

    def apply(self, event: dict) -> WebhookResult:
        """Apply an already verified event."""
        event_id = event["id"]
        event_type = event["type"]
        log_extra = {"event_id": event_id, "event_type": event_type}

        if self.ledger.exists(event_id):
            logger.info("Duplicate webhook event skipped", extra=log_extra)
            return WebhookResult(event_id, event_type, OUTCOME_DUPLICATE)

        handler = self.event_handlers.get(event_type)
        if handler is None:
            outcome = OUTCOME_IGNORED
            logger.info("Unhandled webhook event type acknowledged", extra=log_extra)
        else:
            outcome = OUTCOME_PROCESSED
            data_object = (event.get("data") or {}).get("object")
            if not isinstance(data_object, dict):
                raise ValidationError("Webhook event has no data object", payload=log_extra)
            try:
                handler(data_object, event)
            except NotFoundError as exc:
                if event_type == CHECKOUT_COMPLETED:
                    raise
                # Retrying would never find it either
                logger.warning(
                    "Webhook references a subscription we do not hold",
                    extra={**log_extra, "reason": exc.message},
                )

        self.ledger.append(event_id, event_type, event, self.clock())
        logger.info("Webhook event recorded", extra={**log_extra, "outcome": outcome})
        return WebhookResult(event_id, event_type, outcome)

    # ==================== HANDLERS ====================

    def handle_checkout_completed(self, session: dict, event: dict) -> None:
        subscription_id = session.get("subscription")
        customer_id = session.get("customer")
        business_id = (session.get("metadata") or {}).get("business_id")

        missing = [
            name for name, value in (
                ("subscription", subscription_id),
                ("customer", customer_id),
                ("metadata.business_id", business_id),
            )
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Checkout session missing required fields: {', '.join(missing)}",
                payload={"session_id": session.get("id"), "missing": missing},
            )

        snapshot = snapshot_from_stripe(self.provider.retrieve_subscription(subscription_id))

        if not self.tenants.exists(business_id):
            raise NotFoundError(
                f"Business {business_id} not found for checkout session",
                payload={"business_id": business_id, "subscription_id": subscription_id},
            )

        try:
            self.subscriptions.insert(snapshot.to_record(business_id))
        except DuplicateSubscriptionError:
            existing = self.subscriptions.get_by_business_id(business_id)
            if existing is not None and existing.provider_subscription_id == snapshot.subscription_id:
                logger.info(
                    "Checkout already applied",
                    extra={"business_id": business_id, "subscription_id": subscription_id},
                )
                return
            logger.error(
                "Second checkout for a business that already holds a subscription",
                extra={"business_id": business_id, "subscription_id": subscription_id},
            )
            raise

        logger.info(
            "Subscription created from checkout",
            extra={"business_id": business_id, "subscription_id": subscription_id, "status": snapshot.status},
        )

    def handle_invoice_paid(self, invoice: dict, event: dict) -> None:
        subscription_id = invoice_subscription_id(invoice)
        if not subscription_id:
            logger.info("Invoice has no subscription, nothing to reconcile", extra={"invoice_id": invoice.get("id")})
            return

        snapshot = snapshot_from_stripe(self.provider.retrieve_subscription(subscription_id))
        self._update(subscription_id, snapshot.billing_fields())

    def handle_invoice_payment_failed(self, invoice: dict, event: dict) -> None:
        subscription_id = invoice_subscription_id(invoice)
        if not subscription_id:
            logger.info("Invoice has no subscription, nothing to reconcile", extra={"invoice_id": invoice.get("id")})
            return

        snapshot = snapshot_from_stripe(self.provider.retrieve_subscription(subscription_id))
        self._update(subscription_id, {"status": snapshot.status})

    def handle_subscription_updated(self, subscription: dict, event: dict) -> None:
        snapshot = snapshot_from_stripe(subscription)
        self._update(snapshot.subscription_id, snapshot.all_fields())

    def handle_subscription_deleted(self, subscription: dict, event: dict) -> None:
        subscription_id = subscription.get("id")
        if not subscription_id:
            raise ValidationError("Deleted subscription event has no subscription id")

        canceled_at = from_unix(event.get("created")) or as_utc(self.clock())
        self._update(
            subscription_id,
            {"status": SubscriptionStatus.CANCELED.value, "canceled_at": canceled_at},
        )

    def _update(self, subscription_id: str, fields: dict[str, Any]) -> None:
        changed = self.subscriptions.update_by_provider_subscription_id(subscription_id, fields)
        if changed == 0:
            raise NotFoundError(
                f"No current record for subscription {subscription_id}",
                payload={"subscription_id": subscription_id},
            )
        logger.info(
            "Subscription record updated",
            extra={"subscription_id": subscription_id, "fields": sorted(fields)},
        )
