from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from transformo.content.status import (
    ContentVisibilityState,
    can_schedule,
    classify,
    filter_by_state,
    status_actions,
)
from transformo.errors import ValidationError
from transformo.extensions import db
from transformo.middleware.subscription_required import current_business_id, subscription_required
from transformo.models import Content

content_bp = Blueprint("content", __name__, url_prefix="/api/content")


def _serialize(content, assets):
    state = classify(content, assets)
    return {
        "id": content.id,
        "content_title": content.content_title,
        "state": state.value,
        "label": state.label,
        "actions": status_actions(state),
        "can_schedule": can_schedule(assets),
        "asset_count": len(assets),
        "created_at": content.created_at.isoformat() if content.created_at else None,
    }


@content_bp.route("", methods=["GET"])
@jwt_required()
@subscription_required
def list_content():
    items = db.session.execute(
        db.select(Content)
        .filter_by(business_id=current_business_id())
        .order_by(Content.created_at.desc())
    ).scalars().all()
    pairs = [(content, list(content.assets)) for content in items]

    state = request.args.get("state")
    if state:
        try:
            pairs = filter_by_state(pairs, ContentVisibilityState(state))
        except ValueError as exc:
            raise ValidationError(f"Unknown content state: {state}") from exc

    return jsonify({"content": [_serialize(content, assets) for content, assets in pairs]}), 200
