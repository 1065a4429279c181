from datetime import datetime, timezone
import uuid

from transformo.extensions import db


class Business(db.Model):
    """The tenant: billing unit owning one subscription and its content."""

    __tablename__ = "businesses"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_name = db.Column(db.String(255), nullable=False)
    stripe_customer_id = db.Column(db.String(255), unique=True, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    subscription = db.relationship("Subscription", back_populates="business", uselist=False)

    def to_dict(self):
        return {
            "id": self.id,
            "business_name": self.business_name,
            "stripe_customer_id": self.stripe_customer_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Business {self.id} {self.business_name!r}>"
