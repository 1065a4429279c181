from dataclasses import dataclass

MONTHLY_PRICE = 29
YEARLY_PRICE = 290

MONTHLY_PLAN_NAME = "Monthly Plan"
YEARLY_PLAN_NAME = "Yearly Plan"
UNKNOWN_PLAN_NAME = "Unknown Plan"


def plan_name(price_id: str | None, monthly_price_id: str, yearly_price_id: str) -> str:
    if price_id and price_id == monthly_price_id:
        return MONTHLY_PLAN_NAME
    if price_id and price_id == yearly_price_id:
        return YEARLY_PLAN_NAME
    return UNKNOWN_PLAN_NAME


@dataclass(frozen=True)
class YearlySavings:
    monthly_total: int
    yearly_price: int
    savings: int
    percent_savings: int


def yearly_savings() -> YearlySavings:
    monthly_total = MONTHLY_PRICE * 12
    savings = monthly_total - YEARLY_PRICE
    return YearlySavings(
        monthly_total=monthly_total,
        yearly_price=YEARLY_PRICE,
        savings=savings,
        percent_savings=round(savings / monthly_total * 100),
    )
