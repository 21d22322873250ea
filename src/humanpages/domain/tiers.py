"""Trust tier policy.

Every mutating operation is metered against a rolling window that depends
on the agent's tier. A valid per-call payment proof bypasses the window and
is billed at `PER_CALL_PRICES` instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from humanpages.domain.enums import ActivationMethod, AgentTier, QuotaKind


@dataclass(frozen=True)
class RateWindow:
    """`limit` operations per rolling `period`."""

    limit: int
    period: timedelta

    def describe(self) -> str:
        days = self.period.days
        if days >= 1:
            unit = "day" if days == 1 else f"{days} days"
        else:
            minutes = int(self.period.total_seconds() // 60)
            unit = "minute" if minutes == 1 else f"{minutes} minutes"
        return f"{self.limit} per {unit}"


@dataclass(frozen=True)
class TierPolicy:
    tier: AgentTier
    duration: timedelta
    windows: dict[QuotaKind, RateWindow]

    def window(self, kind: QuotaKind) -> RateWindow:
        if kind == QuotaKind.MESSAGE:
            return MESSAGE_WINDOW
        return self.windows[kind]


MESSAGE_WINDOW = RateWindow(limit=10, period=timedelta(minutes=1))

BASIC_POLICY = TierPolicy(
    tier=AgentTier.BASIC,
    duration=timedelta(days=30),
    windows={
        QuotaKind.JOB_OFFER: RateWindow(limit=1, period=timedelta(days=2)),
        QuotaKind.LISTING: RateWindow(limit=1, period=timedelta(days=7)),
        QuotaKind.PROFILE_VIEW: RateWindow(limit=10, period=timedelta(days=1)),
    },
)

PRO_POLICY = TierPolicy(
    tier=AgentTier.PRO,
    duration=timedelta(days=60),
    windows={
        QuotaKind.JOB_OFFER: RateWindow(limit=15, period=timedelta(days=1)),
        QuotaKind.LISTING: RateWindow(limit=5, period=timedelta(days=1)),
        QuotaKind.PROFILE_VIEW: RateWindow(limit=50, period=timedelta(days=1)),
    },
)

TIER_POLICIES: dict[AgentTier, TierPolicy] = {
    AgentTier.BASIC: BASIC_POLICY,
    AgentTier.PRO: PRO_POLICY,
}

#: Tier granted by each activation path.
ACTIVATION_TIERS: dict[ActivationMethod, AgentTier] = {
    ActivationMethod.SOCIAL: AgentTier.BASIC,
    ActivationMethod.PAYMENT: AgentTier.PRO,
    ActivationMethod.PROMO: AgentTier.PRO,
}

#: USDC billed per call when a payment proof replaces the tier allowance.
PER_CALL_PRICES: dict[QuotaKind, Decimal] = {
    QuotaKind.PROFILE_VIEW: Decimal("0.05"),
    QuotaKind.JOB_OFFER: Decimal("0.25"),
    QuotaKind.LISTING: Decimal("0.50"),
}

ACTIVATION_CODE_PREFIX = "HP-"
ACTIVATION_CODE_TTL = timedelta(hours=24)

PAYMENT_ACTIVATION_TTL = timedelta(hours=1)
PAYMENT_ACTIVATION_PRICE = Decimal("5")
PAYMENT_ACTIVATION_NETWORK = "base"
PAYMENT_ACTIVATION_CURRENCY = "USDC"

PROMO_TOTAL_SLOTS = 100

LISTING_MIN_BUDGET = Decimal("5")
LISTING_MAX_HORIZON = timedelta(days=90)


def policy_for(tier: AgentTier | str) -> TierPolicy | None:
    """Return the policy for `tier`, or None for an unactivated agent."""
    return TIER_POLICIES.get(AgentTier(tier))
