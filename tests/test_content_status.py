from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from transformo.content.status import (
    ContentVisibilityState,
    can_schedule,
    classify,
    filter_by_state,
    status_actions,
    status_label,
)

SCHEDULED_AT = datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc)


def content(status="completed", generation_status="completed"):
    return SimpleNamespace(status=status, content_generation_status=generation_status)


def asset(sent=False, scheduled=False, approved=True):
    return SimpleNamespace(
        asset_status="Sent" if sent else None,
        asset_scheduled_at=SCHEDULED_AT if scheduled or sent else None,
        approved=approved,
    )


@pytest.mark.parametrize(
    "item",
    [content(status="processing"), content(generation_status="generating"), content(status="processing", generation_status="failed")],
)
def test_processing(item):
    assert classify(item, [asset()]) == ContentVisibilityState.PROCESSING


def test_generation_failure_is_failed():
    assert classify(content(generation_status="failed"), [asset()]) == ContentVisibilityState.FAILED


def test_completed_without_assets_is_failed():
    """Generation reported success but produced nothing"""
    assert classify(content(), []) == ContentVisibilityState.FAILED


def test_all_sent_is_completed():
    assets = [asset(sent=True), asset(sent=True), asset(sent=True)]

    assert classify(content(), assets) == ContentVisibilityState.COMPLETED


def test_some_sent_is_partially_published():
    assets = [asset(sent=True), asset(scheduled=True), asset()]

    assert classify(content(), assets) == ContentVisibilityState.PARTIALLY_PUBLISHED


def test_scheduled_nothing_sent():
    assets = [asset(scheduled=True), asset(scheduled=True), asset()]

    assert classify(content(), assets) == ContentVisibilityState.SCHEDULED


def test_unscheduled_assets_are_draft():
    assert classify(content(), [asset(), asset()]) == ContentVisibilityState.DRAFT


def test_unknown_statuses_fall_through_to_draft():
    assert classify(content(status="archived", generation_status=None), [asset()]) == ContentVisibilityState.DRAFT


def test_drafts_view_includes_failed_content():
    draft = (content(), [asset()])
    failed = (content(generation_status="failed"), [])
    scheduled = (content(), [asset(scheduled=True)])

    assert filter_by_state([draft, failed, scheduled], ContentVisibilityState.DRAFT) == [draft, failed]
    assert filter_by_state([draft, failed, scheduled], ContentVisibilityState.FAILED) == [failed]
    assert filter_by_state([draft, failed, scheduled], ContentVisibilityState.SCHEDULED) == [scheduled]


def test_can_schedule_requires_every_asset_approved():
    assert can_schedule([asset(), asset()]) is True
    assert can_schedule([asset(), asset(approved=False)]) is False
    assert can_schedule([]) is False


def test_status_actions():
    assert status_actions(ContentVisibilityState.PROCESSING) == {
        "can_edit": False,
        "can_delete": False,
        "can_navigate": False,
        "can_schedule": False,
        "can_retry": False,
    }
    assert status_actions(ContentVisibilityState.FAILED)["can_retry"] is True
    assert status_actions(ContentVisibilityState.DRAFT)["can_schedule"] is True
    assert status_actions(ContentVisibilityState.COMPLETED)["can_edit"] is False
    assert status_actions(ContentVisibilityState.COMPLETED)["can_navigate"] is True


def test_status_actions_returns_a_copy():
    status_actions(ContentVisibilityState.DRAFT)["can_edit"] = False

    assert status_actions(ContentVisibilityState.DRAFT)["can_edit"] is True


def test_status_labels():
    assert status_label(ContentVisibilityState.PARTIALLY_PUBLISHED) == "Partially Published"
    assert status_label("draft") == "Draft"
    assert status_label("mystery") == "mystery"
