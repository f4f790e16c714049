"""
Tiered mileage reimbursement.

The base rate applies until the employee's year-to-date reimbursable
distance reaches the rate's threshold; distance beyond it is paid at the
reduced rate. A period that straddles the threshold is split.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RateTier:
    rate_per_km: float
    threshold_km: Optional[float] = None
    rate_after_threshold: Optional[float] = None

    @property
    def is_tiered(self) -> bool:
        return self.threshold_km is not None and self.rate_after_threshold is not None


def calculate_reimbursement(period_km: float, ytd_before_km: float, tier: Optional[RateTier]) -> float:
    """
    Price ``period_km`` given the reimbursable km already accrued this year.

    Returns:
        Amount rounded to cents; 0 when there is no rate or no distance
    """
    if tier is None or tier.rate_per_km <= 0 or period_km <= 0:
        return 0.0

    if not tier.is_tiered:
        return round(period_km * tier.rate_per_km, 2)

    if ytd_before_km >= tier.threshold_km:
        amount = period_km * tier.rate_after_threshold
    elif ytd_before_km + period_km <= tier.threshold_km:
        amount = period_km * tier.rate_per_km
    else:
        base_km = tier.threshold_km - ytd_before_km
        amount = base_km * tier.rate_per_km + (period_km - base_km) * tier.rate_after_threshold

    return round(amount, 2)
