"""
VestLedger Constants

This module contains all magic numbers used throughout the codebase,
organized by category for better maintainability and understanding.

NOTE: Changes to schedule constants (marked with [SCHEDULE]) alter the
release curve of every beneficiary. Existing ledgers must be migrated
before modifying these values.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_MINUTE: Final[int] = 60
SECONDS_PER_HOUR: Final[int] = 3600  # 60 * 60
SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24
SECONDS_PER_30_DAYS: Final[int] = 2592000  # 60 * 60 * 24 * 30

SECONDS_10_MINUTES: Final[int] = 600
SECONDS_10_HOURS: Final[int] = 36000

# =============================================================================
# RELEASE SCHEDULE [SCHEDULE - DO NOT CHANGE ON A LIVE LEDGER]
# =============================================================================

# Delay after the start date before anything can be claimed
CLIFF_DURATION: Final[int] = SECONDS_10_MINUTES

# Linear ramp of the locked portion, measured from the end of the cliff
VESTING_DURATION: Final[int] = SECONDS_10_HOURS

# Granularity of the ramp; 0 = continuous
RELEASE_INTERVAL: Final[int] = 0

# =============================================================================
# ALLOCATION TIERS
# =============================================================================

BASIS_POINTS: Final[int] = 10_000

SEED_UNLOCK_BPS: Final[int] = 1_000  # 10%
PRIVATE_UNLOCK_BPS: Final[int] = 1_500  # 15%

# =============================================================================
# TOKEN CONSTANTS
# =============================================================================

TOKEN_DECIMALS: Final[int] = 18
TOKEN_UNIT: Final[int] = 10**TOKEN_DECIMALS

UINT256_MAX: Final[int] = 2**256 - 1

ZERO_ADDRESS: Final[str] = "0x" + "0" * 40
