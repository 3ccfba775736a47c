"""
Ledger-specific exception hierarchy for VestLedger.

Provides typed exceptions for token and vesting operations so callers can
assert on the exact failure kind instead of a generic error.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class LedgerError(Exception):
    """Base exception for all ledger-related errors.

    Attributes:
        message: Human-readable error description
        reason: Stable machine-readable failure code
        details: Additional context about the error
        recoverable: Whether the operation can be retried later
    """

    default_reason = "ledger_error"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Token Errors ====================


class TokenError(LedgerError):
    """Raised by the token ledger when a balance or allowance operation fails.

    Examples: transfer exceeding balance, insufficient allowance, zero address.
    """

    default_reason = "token_error"


# ==================== Vesting Errors ====================


class VestingError(LedgerError):
    """Base class for vesting contract failures."""

    default_reason = "vesting_error"


class AccessDeniedError(VestingError):
    """Raised when a non-administrator calls an admin-only operation."""

    default_reason = "access_denied"


class AlreadyConfiguredError(VestingError):
    """Raised on any attempt to set the start date a second time."""

    default_reason = "already_configured"


class InvalidParameterError(VestingError):
    """Raised when an argument is rejected.

    The ``reason`` attribute identifies the rejected condition, e.g.
    ``length_mismatch``, ``zero_identity`` or ``zero_amount``.
    """

    default_reason = "invalid_parameter"


class ScheduleNotReadyError(VestingError):
    """Raised when withdrawing before the start date has been configured."""

    default_reason = "schedule_not_ready"


class CliffNotReachedError(VestingError):
    """Raised when withdrawing before the cliff has elapsed."""

    default_reason = "cliff_not_reached"

    def __init__(
        self,
        message: str,
        cliff_end: Optional[int] = None,
        now: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.cliff_end = cliff_end
        self.now = now
        # Waiting for the cliff makes the call succeed later
        self.recoverable = True


class NothingToWithdrawError(VestingError):
    """Raised when the releasable amount is zero."""

    default_reason = "nothing_to_withdraw"


class InsufficientReserveError(VestingError):
    """Raised when the token ledger cannot complete a transfer."""

    default_reason = "insufficient_reserve"
