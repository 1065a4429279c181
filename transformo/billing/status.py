from dataclasses import dataclass, asdict
from enum import Enum


class SubscriptionStatus(str, Enum):
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    UNPAID = "unpaid"

    @classmethod
    def parse(cls, value) -> "SubscriptionStatus | None":
        """Return the matching status, or None for anything unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return None


class AccessStatus(str, Enum):
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    NO_SUBSCRIPTION = "no_subscription"
    ACCESS_DENIED = "access_denied"


class BannerType(str, Enum):
    TRIAL = "trial"
    GRACE_PERIOD = "grace_period"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AccessDecision:
    has_access: bool
    status: AccessStatus
    message: str
    days_left: int | None = None
    show_banner: bool = False
    banner_type: BannerType | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["banner_type"] = self.banner_type.value if self.banner_type else None
        return data
