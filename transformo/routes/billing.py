import logging
from dataclasses import asdict
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity, jwt_required
from sqlalchemy.exc import SQLAlchemyError

from transformo.billing.access import evaluate
from transformo.billing.plans import plan_name, yearly_savings
from transformo.billing.provider import PLAN_MONTHLY, PLAN_YEARLY
from transformo.billing.stores import SqlSubscriptionStore
from transformo.errors import NotFoundError, TransientError, ValidationError
from transformo.extensions import db, get_stripe_gateway
from transformo.models import Business

logger = logging.getLogger(__name__)

billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


def _current_business() -> Business:
    business_id = get_jwt().get("business_id")
    business = db.session.get(Business, business_id) if business_id else None
    if business is None:
        raise NotFoundError("Business profile not found")
    return business


@billing_bp.route("/subscription", methods=["GET"])
@jwt_required()
def get_subscription():
    business = _current_business()
    record = SqlSubscriptionStore().get_by_business_id(business.id)
    decision = evaluate(record, datetime.now(timezone.utc))

    return jsonify({
        "subscription": record.to_dict() if record else None,
        "plan_name": plan_name(
            record.price_id if record else None,
            current_app.config["STRIPE_MONTHLY_PRICE_ID"],
            current_app.config["STRIPE_YEARLY_PRICE_ID"],
        ),
        "access": decision.to_dict(),
        "yearly_savings": asdict(yearly_savings()),
    }), 200


@billing_bp.route("/checkout", methods=["POST"])
@jwt_required()
def create_checkout():
    data = request.get_json(silent=True) or {}
    plan = data.get("plan")
    if plan not in (PLAN_MONTHLY, PLAN_YEARLY):
        raise ValidationError("Plan must be 'monthly' or 'yearly'")

    business = _current_business()
    gateway = get_stripe_gateway()

    customer_id = gateway.ensure_customer(
        business.id,
        business.business_name,
        get_jwt().get("email"),
        existing_customer_id=business.stripe_customer_id,
    )

    if customer_id != business.stripe_customer_id:
        business.stripe_customer_id = customer_id
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            # Do not leave an orphaned customer behind in Stripe
            gateway.delete_customer(customer_id)
            raise TransientError("Failed to save customer information") from exc

    if gateway.has_active_subscription(customer_id):
        return jsonify({
            "error": "You already have an active subscription. Please manage it from the billing page.",
            "code": "SUBSCRIPTION_EXISTS",
        }), 409

    checkout_url = gateway.create_checkout_session(customer_id, business.id, str(get_jwt_identity()), plan)
    return jsonify({"checkout_url": checkout_url}), 200


@billing_bp.route("/portal", methods=["POST"])
@jwt_required()
def create_portal():
    business = _current_business()
    if not business.stripe_customer_id:
        raise NotFoundError("No billing account found")

    return jsonify({"portal_url": get_stripe_gateway().create_portal_session(business.stripe_customer_id)}), 200


@billing_bp.route("/cancel", methods=["POST"])
@jwt_required()
def cancel_subscription():
    business = _current_business()
    record = SqlSubscriptionStore().get_by_business_id(business.id)
    if record is None:
        raise NotFoundError("No subscription found")

    get_stripe_gateway().cancel_at_period_end(record.provider_subscription_id)

    logger.info(
        "Cancellation requested",
        extra={"business_id": business.id, "subscription_id": record.provider_subscription_id},
    )
    # The local record changes when customer.subscription.updated arrives
    return jsonify({"message": "Subscription will be canceled at the end of the current period"}), 202
