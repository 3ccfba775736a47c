"""
Vesting data model.

Accounting records, the global schedule, allocation tiers and the events
emitted by the vesting contract. All amounts are integers in token base
units.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from ..constants import BASIS_POINTS, PRIVATE_UNLOCK_BPS, SEED_UNLOCK_BPS


class AllocationTier(IntEnum):
    """Allocation category, decides the immediate unlock of a tranche."""

    SEED = 0
    PRIVATE = 1

    # Alias kept for callers that number tiers rather than name them
    TIER2 = 1

    @property
    def unlock_bps(self) -> int:
        return _TIER_UNLOCK_BPS[self]

    def immediate_unlock(self, amount: int) -> int:
        """Portion of ``amount`` released at the cliff, floored."""
        return amount * self.unlock_bps // BASIS_POINTS


_TIER_UNLOCK_BPS: dict[AllocationTier, int] = {
    AllocationTier.SEED: SEED_UNLOCK_BPS,
    AllocationTier.PRIVATE: PRIVATE_UNLOCK_BPS,
}


class BeneficiaryStatus(Enum):
    """Where a beneficiary sits on the release timeline."""

    UNALLOCATED = "unallocated"
    CLIFF_PENDING = "cliff_pending"
    VESTING = "vesting"
    FULLY_VESTED = "fully_vested"
    CLAIMED = "claimed"


@dataclass
class BeneficiaryRecord:
    """
    Per-beneficiary accounting.

    ``cliff_unlocked`` and ``locked`` accumulate across tranches, ``withdrawn``
    only grows. Invariant: ``withdrawn <= cliff_unlocked + locked``.
    """

    cliff_unlocked: int = 0
    withdrawn: int = 0
    locked: int = 0
    tier: AllocationTier | None = None

    @property
    def total_allocation(self) -> int:
        return self.cliff_unlocked + self.locked

    @property
    def outstanding(self) -> int:
        return self.total_allocation - self.withdrawn

    @property
    def is_allocated(self) -> bool:
        return self.total_allocation > 0

    def copy(self) -> "BeneficiaryRecord":
        return BeneficiaryRecord(
            cliff_unlocked=self.cliff_unlocked,
            withdrawn=self.withdrawn,
            locked=self.locked,
            tier=self.tier,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "cliff_unlocked": self.cliff_unlocked,
            "withdrawn": self.withdrawn,
            "locked": self.locked,
            "tier": None if self.tier is None else int(self.tier),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BeneficiaryRecord":
        tier = data.get("tier")
        return cls(
            cliff_unlocked=int(data.get("cliff_unlocked", 0)),
            withdrawn=int(data.get("withdrawn", 0)),
            locked=int(data.get("locked", 0)),
            tier=None if tier is None else AllocationTier(tier),
        )


@dataclass
class GlobalSchedule:
    """Vesting start date; 0 means not configured yet."""

    vesting_start_date: int = 0

    @property
    def is_configured(self) -> bool:
        return self.vesting_start_date > 0


# ==================== Events ====================


@dataclass(frozen=True)
class ScheduleSet:
    start_date: int


@dataclass(frozen=True)
class AllocationsAdded:
    """
    One intake batch, in call order.

    ``identities`` holds the lowercased addresses the records are keyed by,
    not the casing the caller passed; ``amounts`` and ``tiers`` are the
    caller's values with tiers coerced to ``AllocationTier``.
    """

    identities: tuple[str, ...]
    amounts: tuple[int, ...]
    tiers: tuple[AllocationTier, ...]


@dataclass(frozen=True)
class Withdrawal:
    beneficiary: str
    amount: int


VestingEvent = ScheduleSet | AllocationsAdded | Withdrawal


@dataclass
class TrancheInput:
    """One validated ``(identity, amount, tier)`` row of an intake batch."""

    identity: str
    amount: int
    tier: AllocationTier
    immediate_unlock: int = field(init=False)

    def __post_init__(self) -> None:
        self.immediate_unlock = self.tier.immediate_unlock(self.amount)

    @property
    def locked(self) -> int:
        return self.amount - self.immediate_unlock
