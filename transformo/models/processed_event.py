from datetime import datetime, timezone
import uuid

from sqlalchemy import Index

from transformo.extensions import db


class ProcessedEvent(db.Model):
    """
    Append-only ledger of provider events that were applied successfully.

    A row for a given `provider_event_id` is the only idempotency signal.
    Rows are never updated or deleted.
    """

    __tablename__ = "stripe_events"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    provider_event_id = db.Column("stripe_event_id", db.String(255), nullable=False, unique=True)
    event_type = db.Column(db.String(255), nullable=False)
    payload = db.Column("event_data", db.JSON, nullable=True)
    api_version = db.Column(db.String(50), nullable=True)
    received_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_stripe_events_event_type", "event_type"),
        Index("idx_stripe_events_received_at", "received_at"),
    )

    def __repr__(self) -> str:
        return f"<ProcessedEvent(provider_event_id='{self.provider_event_id}', event_type='{self.event_type}')>"
