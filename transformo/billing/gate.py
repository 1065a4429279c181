import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from transformo.billing.access import evaluate
from transformo.billing.status import AccessDecision, AccessStatus
from transformo.billing.stores import SubscriptionStore

logger = logging.getLogger(__name__)

DEFAULT_TRIAL_START_PATH = "/trial-setup"
DEFAULT_BILLING_PATH = "/billing"

ACCESS_FULL = "full"
ACCESS_TRIAL = "trial"
ACCESS_GRACE = "grace"
ACCESS_DENIED = "denied"

_ACCESS_LEVELS = {
    AccessStatus.TRIALING: ACCESS_TRIAL,
    AccessStatus.PAST_DUE: ACCESS_GRACE,
    AccessStatus.CANCELED: ACCESS_GRACE,
}


@dataclass(frozen=True)
class GateResult:
    allow: bool
    redirect_path: str | None = None
    decision: AccessDecision | None = None

    @property
    def access_level(self) -> str:
        """Coarse level for clients: full, trial, grace or denied."""
        if not self.allow:
            return ACCESS_DENIED
        if self.decision is None:
            # Failed open
            return ACCESS_FULL
        return _ACCESS_LEVELS.get(self.decision.status, ACCESS_FULL)


class RequestGate:
    """
    Decides whether a tenant may reach a protected page or endpoint.

    Reads only the locally stored subscription; never calls Stripe.

    Internal faults (store down, corrupt row) ALLOW the request and are logged.
    Locking a paying tenant out over our own outage is worse than briefly
    serving an unpaid one. This is the opposite of `evaluate`, which denies
    unknown statuses; keep the two postures separate.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        trial_start_path: str = DEFAULT_TRIAL_START_PATH,
        billing_path: str = DEFAULT_BILLING_PATH,
    ):
        self.store = store
        self.clock = clock
        self.trial_start_path = trial_start_path
        self.billing_path = billing_path

    def check(self, business_id: str) -> GateResult:
        try:
            record = self.store.get_by_business_id(business_id)
            decision = evaluate(record, self.clock())
        except Exception:
            logger.exception("Subscription check failed, allowing request", extra={"business_id": business_id})
            return GateResult(allow=True)

        if decision.has_access:
            return GateResult(allow=True, decision=decision)

        if decision.status is AccessStatus.NO_SUBSCRIPTION:
            redirect_path = self.trial_start_path
        else:
            redirect_path = self.billing_path

        logger.info(
            "Subscription check denied access",
            extra={"business_id": business_id, "status": decision.status.value, "redirect_path": redirect_path},
        )
        return GateResult(allow=False, redirect_path=redirect_path, decision=decision)
