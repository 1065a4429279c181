"""
Visibility state of a content item, derived from the item and its generated assets.

Pure and total: every combination of content and assets maps to exactly one state.
"""

from collections.abc import Iterable, Sequence
from enum import Enum

PROCESSING = "processing"
COMPLETED = "completed"
GENERATING = "generating"
FAILED = "failed"
SENT = "Sent"


class ContentVisibilityState(str, Enum):
    PROCESSING = "processing"
    FAILED = "failed"
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PARTIALLY_PUBLISHED = "partially-published"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").title()


def classify(content, assets: Sequence) -> ContentVisibilityState:
    if content.status == PROCESSING or content.content_generation_status == GENERATING:
        return ContentVisibilityState.PROCESSING

    if content.content_generation_status == FAILED or (content.status == COMPLETED and not assets):
        return ContentVisibilityState.FAILED

    scheduled = [asset for asset in assets if asset.asset_scheduled_at]
    sent = [asset for asset in assets if asset.asset_status == SENT]

    if assets and len(sent) == len(assets):
        return ContentVisibilityState.COMPLETED

    if 0 < len(sent) < len(assets):
        return ContentVisibilityState.PARTIALLY_PUBLISHED

    if scheduled and not sent:
        return ContentVisibilityState.SCHEDULED

    return ContentVisibilityState.DRAFT


def filter_by_state(items: Iterable, target: ContentVisibilityState) -> list:
    """
    Keep the (content, assets) pairs shown on the view for `target`.
    The drafts view also lists failed content.
    """
    wanted = {target}
    if target is ContentVisibilityState.DRAFT:
        wanted.add(ContentVisibilityState.FAILED)
    return [(content, assets) for content, assets in items if classify(content, assets) in wanted]


def can_schedule(assets: Sequence) -> bool:
    if not assets:
        return False
    return all(asset.approved is True for asset in assets)


_NO_ACTIONS = {
    "can_edit": False,
    "can_delete": False,
    "can_navigate": False,
    "can_schedule": False,
    "can_retry": False,
}

_STATUS_ACTIONS = {
    ContentVisibilityState.PROCESSING: _NO_ACTIONS,
    ContentVisibilityState.FAILED: {**_NO_ACTIONS, "can_delete": True, "can_retry": True},
    # Scheduling a draft still needs every asset approved, see can_schedule
    ContentVisibilityState.DRAFT: {**_NO_ACTIONS, "can_edit": True, "can_delete": True, "can_navigate": True, "can_schedule": True},
    ContentVisibilityState.SCHEDULED: {**_NO_ACTIONS, "can_edit": True, "can_delete": True, "can_navigate": True},
    ContentVisibilityState.PARTIALLY_PUBLISHED: {
        **_NO_ACTIONS,
        "can_edit": True,
        "can_delete": True,
        "can_navigate": True,
        "can_retry": True,
    },
    ContentVisibilityState.COMPLETED: {**_NO_ACTIONS, "can_navigate": True},
}


def status_actions(state: ContentVisibilityState) -> dict[str, bool]:
    return dict(_STATUS_ACTIONS.get(state, _NO_ACTIONS))


def status_label(state) -> str:
    try:
        return ContentVisibilityState(state).label
    except ValueError:
        return str(state)
