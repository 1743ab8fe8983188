"""Plan tiers and their daily limits."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from keygate.core.errors import InvalidArgument


class PlanTier(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


@dataclass(frozen=True)
class PlanLimits:
    searches: int
    api_calls: int


PLAN_LIMITS: dict[PlanTier, PlanLimits] = {
    PlanTier.BASIC: PlanLimits(searches=50, api_calls=200),
    PlanTier.STANDARD: PlanLimits(searches=100, api_calls=500),
    PlanTier.PREMIUM: PlanLimits(searches=200, api_calls=1000),
    PlanTier.ENTERPRISE: PlanLimits(searches=1000, api_calls=5000),
}


def parse_plan_tier(value: str | PlanTier | None) -> PlanTier:
    if isinstance(value, PlanTier):
        return value
    if not value:
        raise InvalidArgument("Plan tier is required")
    try:
        return PlanTier(value.strip().lower())
    except ValueError:
        supported = ", ".join(t.value for t in PlanTier)
        raise InvalidArgument(f"Unsupported plan tier '{value}'. Supported: {supported}") from None


def limits_for(plan_tier: str | PlanTier) -> PlanLimits:
    return PLAN_LIMITS[parse_plan_tier(plan_tier)]
