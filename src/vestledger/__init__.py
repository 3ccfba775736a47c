"""
VestLedger - Token Allocation and Time-Release Ledger

An administrator registers beneficiaries with a token amount and an
allocation tier. Each beneficiary may then claim a growing share of the
allocation according to a cliff-then-linear release schedule.

Main Components:
- Schedule Configuration: one-time global vesting start date
- Allocation Registry: beneficiary accounting records
- Intake Engine: tiered immediate unlock and custody pull
- Release Engine: time-based releasable amount and payout
"""

__version__ = "0.1.0"
__author__ = "VestLedger Development Team"

__all__ = []
