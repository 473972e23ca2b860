from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol


logger = logging.getLogger(__name__)


class PolicyLike(Protocol):
    minimum_cross_product_sales: int | None
    requires_plan_name_contains: str | None


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    unmet_requirements: list[str] = field(default_factory=list)
    required_sales: int = 0
    cross_product_sales: int = 0
    required_plan_marker: str | None = None

    @property
    def sales_remaining(self) -> int:
        return max(0, self.required_sales - self.cross_product_sales)


def evaluate_eligibility(
    product_id: str | None,
    policy: PolicyLike | None,
    affiliate_plan_name: str | None,
    affiliate_cross_product_sales: int | None,
) -> EligibilityResult:
    """Decide whether an affiliate may activate coupons of ``product_id``.

    ``affiliate_cross_product_sales`` must already exclude sales of
    ``product_id`` itself. Plan and sales checks are independent and each
    failing check adds its own message, so callers can show partial progress.
    """
    sales = max(0, int(affiliate_cross_product_sales or 0))
    if policy is None:
        return EligibilityResult(eligible=True, cross_product_sales=sales)

    unmet: list[str] = []

    marker = str(policy.requires_plan_name_contains or "").strip().upper()
    if marker and marker not in str(affiliate_plan_name or "").upper():
        unmet.append(f"requires {marker} plan")

    minimum = max(0, int(policy.minimum_cross_product_sales or 0))
    if sales < minimum:
        unmet.append(f"requires {minimum - sales} more sales of other products")

    if unmet:
        logger.debug("eligibility.unmet product_id=%s unmet=%s", product_id, unmet)

    return EligibilityResult(
        eligible=not unmet,
        unmet_requirements=unmet,
        required_sales=minimum,
        cross_product_sales=sales,
        required_plan_marker=marker or None,
    )
