"""
VestLedger Contracts.

This module provides the contract implementations:
- ERC20: Fungible token ledger that holds custody balances
- Vesting: Tiered cliff-then-linear release of allocated tokens
"""

from .erc20 import ERC20Factory, ERC20Token, TokenEvent
from .vesting import (
    VestingContract,
    compute_releasable_amount,
    compute_vested_amount,
)
from .vesting_models import (
    AllocationsAdded,
    AllocationTier,
    BeneficiaryRecord,
    BeneficiaryStatus,
    GlobalSchedule,
    ScheduleSet,
    Withdrawal,
)
from .vesting_registry import AllocationRegistry

__all__ = [
    # Token
    "ERC20Token",
    "ERC20Factory",
    "TokenEvent",
    # Vesting
    "VestingContract",
    "AllocationRegistry",
    "AllocationTier",
    "BeneficiaryRecord",
    "BeneficiaryStatus",
    "GlobalSchedule",
    "compute_vested_amount",
    "compute_releasable_amount",
    # Events
    "ScheduleSet",
    "AllocationsAdded",
    "Withdrawal",
]
