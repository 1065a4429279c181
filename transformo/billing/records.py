from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from transformo.errors import ValidationError


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a datetime to aware UTC. Naive values are assumed to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_unix(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass(frozen=True)
class SubscriptionRecord:
    """Locally persisted view of one tenant's subscription."""

    business_id: str
    provider_subscription_id: str
    provider_customer_id: str
    status: str
    price_id: str
    current_period_start: datetime
    current_period_end: datetime
    trial_end: datetime | None = None
    cancel_at_period_end: bool = False
    canceled_at: datetime | None = None

    def to_dict(self) -> dict:
        def iso(value):
            return value.isoformat() if value else None

        return {
            "business_id": self.business_id,
            "provider_subscription_id": self.provider_subscription_id,
            "provider_customer_id": self.provider_customer_id,
            "status": self.status,
            "price_id": self.price_id,
            "current_period_start": iso(self.current_period_start),
            "current_period_end": iso(self.current_period_end),
            "trial_end": iso(self.trial_end),
            "cancel_at_period_end": self.cancel_at_period_end,
            "canceled_at": iso(self.canceled_at),
        }


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """The provider's view of a subscription at the time it was read."""

    subscription_id: str
    customer_id: str
    status: str
    price_id: str
    current_period_start: datetime
    current_period_end: datetime
    trial_end: datetime | None
    cancel_at_period_end: bool
    canceled_at: datetime | None

    def billing_fields(self) -> dict:
        """Fields refreshed whenever an invoice settles."""
        return {
            "status": self.status,
            "current_period_start": self.current_period_start,
            "current_period_end": self.current_period_end,
            "trial_end": self.trial_end,
        }

    def all_fields(self) -> dict:
        return {
            **self.billing_fields(),
            "price_id": self.price_id,
            "cancel_at_period_end": self.cancel_at_period_end,
            "canceled_at": self.canceled_at,
        }

    def to_record(self, business_id: str) -> SubscriptionRecord:
        return SubscriptionRecord(
            business_id=business_id,
            provider_subscription_id=self.subscription_id,
            provider_customer_id=self.customer_id,
            status=self.status,
            price_id=self.price_id,
            current_period_start=self.current_period_start,
            current_period_end=self.current_period_end,
            trial_end=self.trial_end,
            cancel_at_period_end=self.cancel_at_period_end,
            canceled_at=self.canceled_at,
        )


def _reference_id(value):
    # Stripe sends either a bare id or an expanded object
    if isinstance(value, Mapping):
        return value.get("id")
    return value


def snapshot_from_stripe(subscription: Mapping) -> SubscriptionSnapshot:
    """
    Parse a Stripe subscription object.

    Newer API versions carry the billing period on the subscription item,
    older ones on the subscription itself; the item wins when both exist.
    """
    subscription_id = subscription.get("id")
    customer_id = _reference_id(subscription.get("customer"))
    status = subscription.get("status")

    items = (subscription.get("items") or {}).get("data") or []
    item = items[0] if items else {}
    price = item.get("price") or subscription.get("plan") or {}
    price_id = _reference_id(price)

    period_start = item.get("current_period_start", subscription.get("current_period_start"))
    period_end = item.get("current_period_end", subscription.get("current_period_end"))

    missing = [
        name for name, value in (
            ("id", subscription_id),
            ("customer", customer_id),
            ("status", status),
            ("price", price_id),
            ("current_period_start", period_start),
            ("current_period_end", period_end),
        )
        if not value
    ]
    if missing:
        raise ValidationError(
            f"Subscription object missing required fields: {', '.join(missing)}",
            payload={"subscription_id": subscription_id, "missing": missing},
        )

    return SubscriptionSnapshot(
        subscription_id=subscription_id,
        customer_id=customer_id,
        status=status,
        price_id=price_id,
        current_period_start=from_unix(period_start),
        current_period_end=from_unix(period_end),
        trial_end=from_unix(subscription.get("trial_end")),
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end", False)),
        canceled_at=from_unix(subscription.get("canceled_at")),
    )
