"""
Storage ports consumed by the billing core, and their SQLAlchemy adapters.

Every subscription mutation is one conditional UPDATE keyed by the provider
subscription id, never a read followed by a separate write, so concurrent
webhook deliveries cannot lose each other's updates.
"""

import logging
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from transformo.billing.records import SubscriptionRecord
from transformo.errors import DuplicateSubscriptionError, TransientError
from transformo.extensions import db
from transformo.models import Business, ProcessedEvent, Subscription

logger = logging.getLogger(__name__)


class SubscriptionStore(Protocol):
    def insert(self, record: SubscriptionRecord) -> None: ...

    def update_by_provider_subscription_id(self, subscription_id: str, fields: dict[str, Any]) -> int: ...

    def get_by_business_id(self, business_id: str) -> SubscriptionRecord | None: ...


class EventLedger(Protocol):
    def exists(self, event_id: str) -> bool: ...

    def append(self, event_id: str, event_type: str, payload: Any, received_at: datetime) -> bool: ...


class TenantDirectory(Protocol):
    def exists(self, business_id: str) -> bool: ...


class SqlSubscriptionStore:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def insert(self, record: SubscriptionRecord) -> None:
        self.session.add(Subscription.from_record(record))
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateSubscriptionError(
                f"Subscription row already exists for business {record.business_id}",
                payload={
                    "business_id": record.business_id,
                    "subscription_id": record.provider_subscription_id,
                },
            ) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransientError(f"Failed to create subscription record: {exc}") from exc

    def update_by_provider_subscription_id(self, subscription_id: str, fields: dict[str, Any]) -> int:
        """
        Apply `fields` to the row for `subscription_id` and return the number of
        rows changed. A snapshot whose period end is older than the stored one
        matches nothing, so the period never moves backwards.
        """
        stmt = update(Subscription).where(Subscription.stripe_subscription_id == subscription_id)

        new_period_end = fields.get("current_period_end")
        if new_period_end is not None:
            stmt = stmt.where(Subscription.current_period_end <= new_period_end)

        try:
            result = self.session.execute(stmt.values(**fields))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransientError(f"Failed to update subscription {subscription_id}: {exc}") from exc

        return result.rowcount

    def get_by_business_id(self, business_id: str) -> SubscriptionRecord | None:
        try:
            row = self.session.execute(
                db.select(Subscription).filter_by(business_id=business_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransientError(f"Failed to load subscription for business {business_id}: {exc}") from exc

        return row.to_record() if row else None


class SqlEventLedger:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def exists(self, event_id: str) -> bool:
        try:
            found = self.session.execute(
                db.select(ProcessedEvent.id).filter_by(provider_event_id=event_id)
            ).first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransientError(f"Failed to check event ledger: {exc}") from exc
        return found is not None

    def append(self, event_id: str, event_type: str, payload: Any, received_at: datetime) -> bool:
        """Record a processed event. Returns False if it was already recorded."""
        api_version = payload.get("api_version") if isinstance(payload, dict) else None
        self.session.add(
            ProcessedEvent(
                provider_event_id=event_id,
                event_type=event_type,
                payload=payload,
                api_version=api_version,
                received_at=received_at,
            )
        )
        try:
            self.session.commit()
        except IntegrityError:
            # A concurrent delivery of the same event got there first
            self.session.rollback()
            logger.info("Event already recorded by concurrent delivery", extra={"event_id": event_id})
            return False
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransientError(f"Failed to record event {event_id}: {exc}") from exc
        return True


class SqlTenantDirectory:
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def exists(self, business_id: str) -> bool:
        try:
            return self.session.get(Business, business_id) is not None
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransientError(f"Failed to look up business {business_id}: {exc}") from exc
