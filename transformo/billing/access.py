"""
Access evaluation: maps a persisted subscription record to an access decision.

`evaluate` is pure and total. Every status, including values the provider may
introduce later, produces a decision. Unknown statuses fail closed; this is the
opposite posture to the request gate, which fails open on internal errors.
"""

import math
from datetime import datetime, timedelta

from transformo.billing.records import SubscriptionRecord, as_utc
from transformo.billing.status import (
    AccessDecision,
    AccessStatus,
    BannerType,
    SubscriptionStatus,
)

GRACE_PERIOD_DAYS = 7
TRIAL_BANNER_DAYS = 3

_DAY_SECONDS = timedelta(days=1).total_seconds()


def days_until(end: datetime, now: datetime) -> int:
    """Whole days until `end`, rounded up and never negative."""
    remaining = (as_utc(end) - as_utc(now)).total_seconds()
    return max(0, math.ceil(remaining / _DAY_SECONDS))


def evaluate(record: SubscriptionRecord | None, now: datetime) -> AccessDecision:
    if record is None:
        return AccessDecision(
            has_access=False,
            status=AccessStatus.NO_SUBSCRIPTION,
            message="Start your 7-day free trial to access all features",
        )

    status = SubscriptionStatus.parse(record.status)
    now = as_utc(now)

    if status is SubscriptionStatus.TRIALING:
        return _evaluate_trial(record, now)

    if status is SubscriptionStatus.ACTIVE:
        return AccessDecision(
            has_access=True,
            status=AccessStatus.ACTIVE,
            message="Subscription active",
        )

    if status is SubscriptionStatus.PAST_DUE:
        grace_end = as_utc(record.current_period_end) + timedelta(days=GRACE_PERIOD_DAYS)
        if now < grace_end:
            days_left = days_until(grace_end, now)
            return AccessDecision(
                has_access=True,
                status=AccessStatus.PAST_DUE,
                days_left=days_left,
                show_banner=True,
                banner_type=BannerType.GRACE_PERIOD,
                message=(
                    f"Payment failed. Update your payment method within {days_left} days "
                    "to maintain access."
                ),
            )
        return _denied("Access suspended due to payment failure. Please update your payment method.")

    if status is SubscriptionStatus.CANCELED:
        period_end = as_utc(record.current_period_end)
        if now < period_end:
            days_left = days_until(period_end, now)
            return AccessDecision(
                has_access=True,
                status=AccessStatus.CANCELED,
                days_left=days_left,
                show_banner=True,
                banner_type=BannerType.EXPIRED,
                message=f"Subscription canceled. Access ends in {days_left} days.",
            )
        return _denied("Subscription expired. Please subscribe to continue using the platform.")

    if status in (SubscriptionStatus.INCOMPLETE, SubscriptionStatus.INCOMPLETE_EXPIRED):
        return _denied("Payment incomplete. Please complete your subscription setup.")

    if status is SubscriptionStatus.UNPAID:
        return _denied("Subscription unpaid. Please update your payment method.")

    # Unrecognized status: fail closed
    return _denied("Subscription status unknown. Please contact support.")


def _evaluate_trial(record: SubscriptionRecord, now: datetime) -> AccessDecision:
    if record.cancel_at_period_end:
        # Read as a cancellation notice, not as a trial countdown
        access_end = record.trial_end or record.current_period_end
        days_left = days_until(access_end, now)
        return AccessDecision(
            has_access=True,
            status=AccessStatus.TRIALING,
            days_left=days_left,
            show_banner=True,
            banner_type=BannerType.EXPIRED,
            message=f"Trial canceled. Access ends in {days_left} days.",
        )

    if record.trial_end is None:
        return AccessDecision(
            has_access=True,
            status=AccessStatus.TRIALING,
            message="Free trial active",
        )

    days_left = days_until(record.trial_end, now)
    show_banner = days_left <= TRIAL_BANNER_DAYS
    return AccessDecision(
        has_access=True,
        status=AccessStatus.TRIALING,
        days_left=days_left,
        show_banner=show_banner,
        banner_type=BannerType.TRIAL if show_banner else None,
        message=(
            f"{days_left} days left in your free trial"
            if days_left > 0
            else "Your free trial has ended"
        ),
    )


def _denied(message: str) -> AccessDecision:
    return AccessDecision(
        has_access=False,
        status=AccessStatus.ACCESS_DENIED,
        message=message,
    )
