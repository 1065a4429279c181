from datetime import datetime, timedelta, timezone

import pytest

from transformo.billing.access import days_until, evaluate
from transformo.billing.records import SubscriptionRecord
from transformo.billing.status import AccessStatus, BannerType

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_record(status, period_end=None, trial_end=None, cancel_at_period_end=False):
    period_end = period_end or NOW + timedelta(days=20)
    return SubscriptionRecord(
        business_id="biz_123",
        provider_subscription_id="sub_123",
        provider_customer_id="cus_123",
        status=status,
        price_id="price_monthly",
        current_period_start=period_end - timedelta(days=30),
        current_period_end=period_end,
        trial_end=trial_end,
        cancel_at_period_end=cancel_at_period_end,
    )


def test_no_record_means_no_subscription():
    """A tenant that never checked out is routed to start a trial"""
    decision = evaluate(None, NOW)

    assert decision.has_access is False
    assert decision.status == AccessStatus.NO_SUBSCRIPTION
    assert decision.show_banner is False
    assert "free trial" in decision.message


@pytest.mark.parametrize("period_end", [NOW - timedelta(days=400), NOW, NOW + timedelta(days=400)])
def test_active_always_has_access_without_banner(period_end):
    decision = evaluate(make_record("active", period_end=period_end), NOW)

    assert decision.has_access is True
    assert decision.status == AccessStatus.ACTIVE
    assert decision.show_banner is False


def test_trial_two_days_left_shows_banner():
    decision = evaluate(make_record("trialing", trial_end=NOW + timedelta(days=2)), NOW)

    assert decision.has_access is True
    assert decision.days_left == 2
    assert decision.show_banner is True
    assert decision.banner_type == BannerType.TRIAL
    assert decision.message == "2 days left in your free trial"


def test_trial_early_on_hides_banner():
    decision = evaluate(make_record("trialing", trial_end=NOW + timedelta(days=10)), NOW)

    assert decision.has_access is True
    assert decision.days_left == 10
    assert decision.show_banner is False
    assert decision.banner_type is None


def test_trial_partial_day_rounds_up():
    decision = evaluate(make_record("trialing", trial_end=NOW + timedelta(days=3, hours=1)), NOW)

    assert decision.days_left == 4
    assert decision.show_banner is False
    assert decision.banner_type is None


def test_trial_past_end_still_trialing_shows_ended_message():
    """Stripe has not flipped the status yet; access stays, days never go negative"""
    decision = evaluate(make_record("trialing", trial_end=NOW - timedelta(hours=5)), NOW)

    assert decision.has_access is True
    assert decision.days_left == 0
    assert decision.show_banner is True
    assert decision.message == "Your free trial has ended"


def test_trial_without_trial_end():
    decision = evaluate(make_record("trialing"), NOW)

    assert decision.has_access is True
    assert decision.days_left is None
    assert decision.show_banner is False


def test_trial_cancellation_reads_as_cancellation_notice():
    record = make_record("trialing", trial_end=NOW + timedelta(days=5), cancel_at_period_end=True)

    decision = evaluate(record, NOW)

    assert decision.has_access is True
    assert decision.status == AccessStatus.TRIALING
    assert decision.banner_type == BannerType.EXPIRED
    assert decision.show_banner is True
    assert decision.days_left == 5
    assert "ends in 5 days" in decision.message


def test_past_due_within_grace_window():
    decision = evaluate(make_record("past_due", period_end=NOW - timedelta(days=3)), NOW)

    assert decision.has_access is True
    assert decision.status == AccessStatus.PAST_DUE
    assert decision.days_left == 4
    assert decision.banner_type == BannerType.GRACE_PERIOD
    assert "within 4 days" in decision.message


def test_past_due_after_grace_window():
    decision = evaluate(make_record("past_due", period_end=NOW - timedelta(days=8)), NOW)

    assert decision.has_access is False
    assert decision.status == AccessStatus.ACCESS_DENIED


def test_past_due_grace_ends_exactly_now():
    decision = evaluate(make_record("past_due", period_end=NOW - timedelta(days=7)), NOW)

    assert decision.has_access is False


def test_canceled_keeps_access_until_period_end():
    decision = evaluate(make_record("canceled", period_end=NOW + timedelta(days=3, hours=2)), NOW)

    assert decision.has_access is True
    assert decision.status == AccessStatus.CANCELED
    assert decision.days_left == 4
    assert decision.banner_type == BannerType.EXPIRED


def test_canceled_after_period_end():
    decision = evaluate(make_record("canceled", period_end=NOW - timedelta(seconds=1)), NOW)

    assert decision.has_access is False
    assert decision.status == AccessStatus.ACCESS_DENIED


@pytest.mark.parametrize("status", ["incomplete", "incomplete_expired", "unpaid"])
def test_unsettled_statuses_are_denied(status):
    decision = evaluate(make_record(status), NOW)

    assert decision.has_access is False
    assert decision.status == AccessStatus.ACCESS_DENIED


@pytest.mark.parametrize("status", ["paused", "", "ACTIVE", "something_new"])
def test_unknown_status_fails_closed(status):
    decision = evaluate(make_record(status), NOW)

    assert decision.has_access is False
    assert decision.status == AccessStatus.ACCESS_DENIED


def test_naive_now_is_treated_as_utc():
    decision = evaluate(make_record("trialing", trial_end=NOW + timedelta(days=2)), NOW.replace(tzinfo=None))

    assert decision.days_left == 2


def test_days_until_never_negative():
    assert days_until(NOW - timedelta(days=3), NOW) == 0
    assert days_until(NOW + timedelta(seconds=1), NOW) == 1


def test_decision_serializes_enums_as_values():
    data = evaluate(make_record("past_due", period_end=NOW - timedelta(days=1)), NOW).to_dict()

    assert data["status"] == "past_due"
    assert data["banner_type"] == "grace_period"
    assert data["has_access"] is True
