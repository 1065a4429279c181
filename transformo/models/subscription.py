# subscription.py
from datetime import datetime, timezone
import uuid

from sqlalchemy import CheckConstraint, Index

from transformo.billing.records import SubscriptionRecord, as_utc
from transformo.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


class Subscription(db.Model):
    """
    One row per business, written only by webhook reconciliation.

    `status` deliberately has no check constraint: a status the provider adds
    later must still be stored so access evaluation can fail closed on it.
    """

    __tablename__ = "subscriptions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    business_id = db.Column(
        db.String(36),
        db.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    # Stripe IDs, immutable once set
    stripe_subscription_id = db.Column(db.String(255), unique=True, nullable=False)
    stripe_customer_id = db.Column(db.String(255), nullable=False, index=True)

    status = db.Column(db.String(50), nullable=False, index=True)
    price_id = db.Column(db.String(255), nullable=False)

    current_period_start = db.Column(db.DateTime(timezone=True), nullable=False)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=False)
    trial_end = db.Column(db.DateTime(timezone=True), nullable=True)

    # Orthogonal to status: an active or trialing subscription may be queued to cancel
    cancel_at_period_end = db.Column(db.Boolean, default=False, nullable=False)
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    business = db.relationship("Business", back_populates="subscription")

    __table_args__ = (
        CheckConstraint(
            "current_period_start < current_period_end",
            name="subscriptions_period_dates_check",
        ),
        CheckConstraint(
            "trial_end IS NULL OR trial_end <= current_period_end",
            name="subscriptions_trial_end_check",
        ),
        Index("idx_subscriptions_business_status", "business_id", "status"),
        Index("idx_subscriptions_current_period_end", "current_period_end"),
    )

    @classmethod
    def from_record(cls, record: SubscriptionRecord) -> "Subscription":
        return cls(
            business_id=record.business_id,
            stripe_subscription_id=record.provider_subscription_id,
            stripe_customer_id=record.provider_customer_id,
            status=record.status,
            price_id=record.price_id,
            current_period_start=record.current_period_start,
            current_period_end=record.current_period_end,
            trial_end=record.trial_end,
            cancel_at_period_end=record.cancel_at_period_end,
            canceled_at=record.canceled_at,
        )

    def to_record(self) -> SubscriptionRecord:
        return SubscriptionRecord(
            business_id=self.business_id,
            provider_subscription_id=self.stripe_subscription_id,
            provider_customer_id=self.stripe_customer_id,
            status=self.status,
            price_id=self.price_id,
            current_period_start=as_utc(self.current_period_start),
            current_period_end=as_utc(self.current_period_end),
            trial_end=as_utc(self.trial_end),
            cancel_at_period_end=bool(self.cancel_at_period_end),
            canceled_at=as_utc(self.canceled_at),
        )

    def __repr__(self):
        return f"<Subscription {self.stripe_subscription_id} business={self.business_id} status={self.status}>"
