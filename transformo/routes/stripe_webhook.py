import logging

import sentry_sdk
from flask import Blueprint, current_app, jsonify, request

from transformo.billing.reconciler import WebhookReconciler
from transformo.billing.stores import SqlEventLedger, SqlSubscriptionStore, SqlTenantDirectory
from transformo.errors import AuthenticationError, TransformoError, ValidationError
from transformo.extensions import get_stripe_gateway

logger = logging.getLogger(__name__)

stripe_webhook_bp = Blueprint("stripe_webhook", __name__, url_prefix="/api/stripe/webhooks")

SIGNATURE_HEADER = "Stripe-Signature"


def build_reconciler() -> WebhookReconciler:
    return WebhookReconciler(
        provider=get_stripe_gateway(),
        subscriptions=SqlSubscriptionStore(),
        ledger=SqlEventLedger(),
        tenants=SqlTenantDirectory(),
    )


@stripe_webhook_bp.route("", methods=["POST"])
def receive_webhook():
    """
    Stripe retries anything that is not 2xx, so only a processed or
    already-recorded event is acknowledged.
    """
    # Signature is computed over these exact bytes
    payload = request.get_data(cache=False)
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        result = build_reconciler().process(payload, signature)
    except AuthenticationError as e:
        logger.warning("Webhook signature rejected", extra={"reason": e.message})
        return jsonify({"error": e.message}), e.status_code
    except ValidationError as e:
        logger.error("Webhook payload rejected", extra={"reason": e.message, "details": e.payload})
        sentry_sdk.capture_exception(e)
        return jsonify({"error": e.message}), e.status_code
    except TransformoError as e:
        logger.error("Webhook processing failed", extra={"reason": e.message, "details": e.payload})
        return jsonify({"error": e.message}), e.status_code

    return jsonify({"received": True, **result.to_dict()}), 200


@stripe_webhook_bp.route("/health", methods=["GET"])
def webhook_health():
    secret_configured = bool(current_app.config.get("STRIPE_WEBHOOK_SECRET"))
    return jsonify({
        "status": "ok" if secret_configured else "misconfigured",
        "webhook_secret_configured": secret_configured,
    }), 200 if secret_configured else 503
