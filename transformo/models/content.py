from datetime import datetime, timezone
import uuid

from transformo.extensions import db


class Content(db.Model):
    """A recorded or uploaded piece of source media and its generation state."""

    __tablename__ = "content"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_id = db.Column(
        db.String(36),
        db.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content_title = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(50), nullable=False, default="processing")
    content_generation_status = db.Column(db.String(50), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    assets = db.relationship(
        "ContentAsset",
        back_populates="content",
        order_by="ContentAsset.created_at",
        cascade="all, delete-orphan",
    )


class ContentAsset(db.Model):
    """A generated, schedulable output (post, email, video) of a content item."""

    __tablename__ = "content_assets"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    content_id = db.Column(
        db.String(36),
        db.ForeignKey("content.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content_type = db.Column(db.String(50), nullable=False)
    asset_status = db.Column(db.String(50), nullable=True)
    asset_scheduled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    content = db.relationship("Content", back_populates="assets")
