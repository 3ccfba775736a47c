"""
VestLedger Core Module

Core functionality for the vesting ledger:
- Token and vesting contracts
- Typed exceptions
- Configuration and structured logging
"""

__all__ = []
