from functools import wraps
from typing import Any, Callable
from urllib.parse import quote
import logging

from flask import current_app, jsonify, make_response, request
from flask_jwt_extended import get_jwt

from transformo.billing.gate import RequestGate
from transformo.billing.stores import SqlSubscriptionStore

logger = logging.getLogger(__name__)

SUBSCRIPTION_STATUS_HEADER = "X-Subscription-Status"
ACCESS_LEVEL_HEADER = "X-Access-Level"


def current_business_id() -> str | None:
    return get_jwt().get("business_id")


def build_request_gate() -> RequestGate:
    return RequestGate(
        SqlSubscriptionStore(),
        trial_start_path=current_app.config["TRIAL_START_PATH"],
        billing_path=current_app.config["BILLING_PATH"],
    )


def redirect_with_origin(redirect_path: str) -> str:
    """Carry the path the tenant was trying to reach so the client can return there."""
    if request.path == redirect_path:
        return redirect_path
    return f"{redirect_path}?redirect={quote(request.path)}"


def subscription_required(fn: Callable) -> Callable:
    """
    Decorator to enforce subscription access on API endpoints.
    Must be used after @jwt_required so the token claims are available.
    """
    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        business_id = current_business_id()
        if not business_id:
            logger.warning("Token without business_id reached a subscription-protected endpoint")
            return jsonify({
                "error": "Business profile not found",
                "code": "BUSINESS_REQUIRED",
            }), 403

        result = build_request_gate().check(business_id)

        if not result.allow:
            decision = result.decision
            response = make_response(jsonify({
                "error": "Active subscription required",
                "message": decision.message,
                "code": "SUBSCRIPTION_REQUIRED",
                "status": decision.status.value,
                "redirect_path": redirect_with_origin(result.redirect_path),
            }), 402)
            response.headers[ACCESS_LEVEL_HEADER] = result.access_level
            return response

        response = make_response(fn(*args, **kwargs))
        response.headers[ACCESS_LEVEL_HEADER] = result.access_level
        if result.decision is not None:
            response.headers[SUBSCRIPTION_STATUS_HEADER] = result.decision.status.value
        return response

    return wrapper
