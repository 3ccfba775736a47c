"""
Token Vesting Contract.

Holds tokens in custody for beneficiaries and releases them on a
cliff-then-linear schedule:
- The owner sets a global start date exactly once
- The owner adds tranches; each tranche's tier decides how much unlocks
  at the cliff, the rest vests linearly over ``vesting_duration``
- Beneficiaries withdraw whatever has vested and not yet been paid out

Security considerations:
- Integer arithmetic only, every division floors
- ``withdrawn`` is committed before the token push, so a token that calls
  back into ``withdraw`` sees nothing left to release
- Every operation runs in a registry transaction and leaves no partial
  state when it fails
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Callable, Sequence

from ..config import ConfigManager, VestingConfig, load_config
from ..constants import UINT256_MAX, ZERO_ADDRESS
from ..exceptions import (
    AccessDeniedError,
    AlreadyConfiguredError,
    CliffNotReachedError,
    InsufficientReserveError,
    InvalidParameterError,
    NothingToWithdrawError,
    ScheduleNotReadyError,
    TokenError,
    VestingError,
)
from ..interfaces import TokenLedger
from ..logging_config import setup_logging_from_config
from .vesting_models import (
    AllocationTier,
    AllocationsAdded,
    BeneficiaryRecord,
    BeneficiaryStatus,
    ScheduleSet,
    TrancheInput,
    VestingEvent,
    Withdrawal,
)
from .vesting_registry import AllocationRegistry

logger = logging.getLogger(__name__)


# ==================== Release Curve ====================


def compute_vested_amount(
    record: BeneficiaryRecord, start_date: int, now: int, config: VestingConfig
) -> int:
    """
    Total amount vested for ``record`` at ``now``, including what was
    already withdrawn.

    Nothing vests before ``start_date + cliff_duration``. At the cliff the
    immediate unlock becomes available and the locked portion ramps
    linearly to fully vested over ``vesting_duration``. With a non-zero
    ``release_interval`` the elapsed time is floored to whole intervals.
    """
    if start_date <= 0:
        return 0
    cliff_end = start_date + config.cliff_duration
    if now < cliff_end:
        return 0

    elapsed = now - cliff_end
    if elapsed >= config.vesting_duration:
        vested_locked = record.locked
    else:
        if config.release_interval:
            elapsed -= elapsed % config.release_interval
        vested_locked = record.locked * elapsed // config.vesting_duration

    return record.cliff_unlocked + vested_locked


def compute_releasable_amount(
    record: BeneficiaryRecord, start_date: int, now: int, config: VestingConfig
) -> int:
    """Vested amount not yet withdrawn; never negative."""
    vested = compute_vested_amount(record, start_date, now, config)
    return max(0, vested - record.withdrawn)


# ==================== Contract ====================


class VestingContract:
    """
    Vesting ledger bound to a single token.

    Args:
        token: Token ledger that holds custody (must implement TokenLedger)
        owner: Administrator address
        config: Release schedule settings (defaults from constants)
        time_provider: Callable returning the current unix time
        address: Custody address; derived from the owner if omitted

    Raises:
        InvalidParameterError: If ``token`` is not a token contract or
            ``owner`` is the zero address
        ValueError: If ``config`` is invalid
    """

    def __init__(
        self,
        token: TokenLedger,
        owner: str,
        config: VestingConfig | None = None,
        time_provider: Callable[[], int] | None = None,
        address: str = "",
    ) -> None:
        if isinstance(token, str) or not isinstance(token, TokenLedger):
            raise InvalidParameterError(
                "Vesting: token must reference a token contract, not an arbitrary address",
                reason="invalid_token",
                details={"token": repr(token)},
            )
        if not isinstance(owner, str) or self._is_zero_identity(owner):
            raise InvalidParameterError(
                "Vesting: owner is zero address", reason="zero_identity"
            )

        self.config = config or VestingConfig()
        self.config.validate()

        self.token = token
        self.owner = self._normalize(owner)
        self.registry = AllocationRegistry()
        self._time_provider = time_provider or (lambda: int(time.time()))

        if not address:
            addr_input = f"vesting:{self.owner}:{token.address}:{time.time()}".encode()
            address = f"0x{hashlib.sha3_256(addr_input).digest()[-20:].hex()}"
        self.address = self._normalize(address)

        logger.info(
            "Vesting contract deployed",
            extra={
                "event": "vesting.deployed",
                "address": self.address,
                "token": token.address,
                "owner": self.owner[:10],
                "cliff_duration": self.config.cliff_duration,
                "vesting_duration": self.config.vesting_duration,
                "release_interval": self.config.release_interval,
            }
        )

    @classmethod
    def from_config(
        cls,
        token: TokenLedger,
        owner: str,
        manager: ConfigManager | None = None,
        time_provider: Callable[[], int] | None = None,
        address: str = "",
    ) -> "VestingContract":
        """
        Deploy a contract using a loaded configuration.

        The schedule comes from ``manager.vesting`` and the package logger
        is configured from ``manager.logging``. Without a manager the
        environment's configuration is loaded (``VESTLEDGER_ENVIRONMENT``,
        config files, ``VESTLEDGER_*`` variables).
        """
        manager = manager or load_config()
        setup_logging_from_config(manager.logging)
        return cls(
            token=token,
            owner=owner,
            config=manager.vesting,
            time_provider=time_provider,
            address=address,
        )

    # ==================== Properties ====================

    @property
    def events(self) -> list[VestingEvent]:
        return self.registry.events

    @property
    def vesting_start_date(self) -> int:
        return self.registry.schedule.vesting_start_date

    def cliff_end(self) -> int | None:
        """Timestamp from which withdrawals are allowed, None if unconfigured."""
        if not self.registry.schedule.is_configured:
            return None
        return self.vesting_start_date + self.config.cliff_duration

    def vesting_end(self) -> int | None:
        """Timestamp at which every locked amount is fully vested."""
        cliff_end = self.cliff_end()
        if cliff_end is None:
            return None
        return cliff_end + self.config.vesting_duration

    # ==================== Schedule Configuration ====================

    def set_start_date(self, caller: str, timestamp: int) -> int:
        """
        Set the global vesting start date (owner only, once).

        Args:
            caller: Address calling (must be owner)
            timestamp: Unix time the schedule starts at, must be > 0

        Returns:
            The configured start date

        Raises:
            AccessDeniedError: If caller is not the owner
            AlreadyConfiguredError: If the start date was already set
            InvalidParameterError: If timestamp is zero or not an integer
        """
        self._require_owner(caller, "set_start_date")
        self._require_unconfigured()
        if not isinstance(timestamp, int) or isinstance(timestamp, bool) or timestamp < 0:
            raise self._reject(
                InvalidParameterError(
                    "Vesting: start date must be a non-negative integer timestamp",
                    reason="invalid_timestamp",
                )
            )
        if timestamp == 0:
            raise self._reject(
                InvalidParameterError(
                    "Vesting: start date must be greater than 0",
                    reason="zero_timestamp",
                )
            )

        with self.registry.transaction():
            self.registry.configure_schedule(timestamp)
            self.registry.emit(ScheduleSet(start_date=timestamp))

        logger.info(
            "Vesting start date set",
            extra={
                "event": "vesting.schedule_set",
                "start_date": timestamp,
                "cliff_end": self.cliff_end(),
            }
        )
        return timestamp

    def schedule_start_after(self, caller: str, delay: int, now: int | None = None) -> int:
        """
        Set the start date ``delay`` seconds from now (owner only, once).

        Same checks as ``set_start_date``; ``delay`` must be > 0.
        """
        self._require_owner(caller, "schedule_start_after")
        self._require_unconfigured()
        if not isinstance(delay, int) or isinstance(delay, bool) or delay <= 0:
            raise self._reject(
                InvalidParameterError(
                    "Vesting: start delay must be greater than 0",
                    reason="zero_timestamp",
                )
            )
        return self.set_start_date(caller, self._resolve_now(now) + delay)

    # ==================== Intake ====================

    def add_investors(
        self,
        caller: str,
        investors: Sequence[str],
        amounts: Sequence[int],
        tiers: Sequence[AllocationTier | int | str],
    ) -> AllocationsAdded:
        """
        Record a batch of tranches and pull their total from the owner.

        The owner must have approved the contract address for at least
        ``sum(amounts)`` on the token beforehand.

        Args:
            caller: Address calling (must be owner)
            investors: Beneficiary addresses
            amounts: Tranche amounts in token base units
            tiers: Allocation tier per tranche

        Returns:
            The emitted AllocationsAdded event

        Raises:
            AccessDeniedError: If caller is not the owner
            InvalidParameterError: On length mismatch, empty batch, zero
                identity, zero or out-of-range amount, unknown tier
            TokenError: If the token rejects the pull (allowance or balance)
            InsufficientReserveError: If the token reports failure by return value
        """
        self._require_owner(caller, "add_investors")
        tranches = self._validate_batch(investors, amounts, tiers)
        total = sum(tranche.amount for tranche in tranches)
        if total > UINT256_MAX:
            raise self._reject(
                InvalidParameterError(
                    "Vesting: batch total exceeds uint256", reason="invalid_amount"
                )
            )

        event = AllocationsAdded(
            identities=tuple(tranche.identity for tranche in tranches),
            amounts=tuple(tranche.amount for tranche in tranches),
            tiers=tuple(tranche.tier for tranche in tranches),
        )

        with self.registry.transaction():
            # Custody is funded before any record grows
            if not self.token.transfer_from(self.address, self.owner, self.address, total):
                raise self._reject(
                    InsufficientReserveError(
                        "Vesting: token refused to transfer allocation into custody",
                        details={"amount": total},
                    )
                )

            for tranche in tranches:
                self.registry.apply_tranche(tranche)
            self.registry.emit(event)

        logger.info(
            "Investors added",
            extra={
                "event": "vesting.allocations_added",
                "count": len(tranches),
                "total": total,
            }
        )
        return event

    def _validate_batch(
        self,
        investors: Sequence[str],
        amounts: Sequence[int],
        tiers: Sequence[AllocationTier | int | str],
    ) -> list[TrancheInput]:
        if not (len(investors) == len(amounts) == len(tiers)):
            raise self._reject(
                InvalidParameterError(
                    "Vesting: investors, amounts and tiers must have the same length",
                    reason="length_mismatch",
                    details={
                        "investors": len(investors),
                        "amounts": len(amounts),
                        "tiers": len(tiers),
                    },
                )
            )
        if not investors:
            raise self._reject(
                InvalidParameterError("Vesting: empty investor batch", reason="empty_batch")
            )

        tranches = []
        for index, (identity, amount, tier) in enumerate(zip(investors, amounts, tiers)):
            if not isinstance(identity, str):
                raise self._reject(
                    InvalidParameterError(
                        f"Vesting: investor at index {index} is not an address",
                        reason="invalid_identity",
                        details={"index": index},
                    )
                )
            if self._is_zero_identity(identity):
                raise self._reject(
                    InvalidParameterError(
                        f"Vesting: investor at index {index} is zero address",
                        reason="zero_identity",
                        details={"index": index},
                    )
                )
            if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0 or amount > UINT256_MAX:
                raise self._reject(
                    InvalidParameterError(
                        f"Vesting: amount at index {index} must be a uint256 integer",
                        reason="invalid_amount",
                        details={"index": index},
                    )
                )
            if amount == 0:
                raise self._reject(
                    InvalidParameterError(
                        f"Vesting: amount at index {index} is zero",
                        reason="zero_amount",
                        details={"index": index},
                    )
                )
            tranches.append(
                TrancheInput(
                    identity=self._normalize(identity),
                    amount=amount,
                    tier=self._coerce_tier(tier, index),
                )
            )
        return tranches

    def _coerce_tier(self, tier: AllocationTier | int | str, index: int) -> AllocationTier:
        try:
            if isinstance(tier, str):
                return AllocationTier[tier.upper()]
            if isinstance(tier, bool):
                raise ValueError(tier)
            return AllocationTier(tier)
        except (KeyError, ValueError):
            raise self._reject(
                InvalidParameterError(
                    f"Vesting: unknown allocation tier {tier!r} at index {index}",
                    reason="unknown_tier",
                    details={"index": index},
                )
            ) from None

    # ==================== Release ====================

    def withdraw(self, caller: str, now: int | None = None) -> int:
        """
        Pay the caller everything vested and not yet withdrawn.

        Args:
            caller: Beneficiary address (msg.sender)
            now: Unix time of the call; defaults to the time provider

        Returns:
            Amount paid out

        Raises:
            ScheduleNotReadyError: If the start date is not set
            CliffNotReachedError: If the cliff has not elapsed yet
            NothingToWithdrawError: If nothing is releasable
            InsufficientReserveError: If the token cannot complete the payout
        """
        beneficiary = self._normalize(caller) if isinstance(caller, str) else ""
        now = self._resolve_now(now)

        schedule = self.registry.schedule
        if not schedule.is_configured:
            raise self._reject(
                ScheduleNotReadyError("Vesting: start date has not been set")
            )

        cliff_end = self.cliff_end()
        if now < cliff_end:
            raise self._reject(
                CliffNotReachedError(
                    "Vesting: wait until the cliff period has ended",
                    cliff_end=cliff_end,
                    now=now,
                    details={"seconds_remaining": cliff_end - now},
                )
            )

        record = self.registry.get(beneficiary)
        releasable = compute_releasable_amount(
            record, schedule.vesting_start_date, now, self.config
        )
        if releasable <= 0:
            raise self._reject(
                NothingToWithdrawError(
                    "Vesting: no tokens available to withdraw",
                    details={"beneficiary": beneficiary, "withdrawn": record.withdrawn},
                )
            )

        with self.registry.transaction():
            # Committed before the external call; a re-entrant withdraw sees it
            self.registry.record_withdrawal(beneficiary, releasable)

            try:
                paid = self.token.transfer(self.address, beneficiary, releasable)
            except TokenError as exc:
                raise self._reject(
                    InsufficientReserveError(
                        f"Vesting: custody cannot cover payout: {exc.message}",
                        details={"amount": releasable},
                    )
                ) from exc
            if not paid:
                raise self._reject(
                    InsufficientReserveError(
                        "Vesting: token refused payout", details={"amount": releasable}
                    )
                )

            self.registry.emit(Withdrawal(beneficiary=beneficiary, amount=releasable))

        logger.info(
            "Tokens withdrawn",
            extra={
                "event": "vesting.withdrawal",
                "beneficiary": beneficiary[:10],
                "amount": releasable,
                "withdrawn_total": record.withdrawn + releasable,
            }
        )
        return releasable

    # ==================== View Functions ====================

    def beneficiary(self, identity: str) -> BeneficiaryRecord:
        """Copy of the beneficiary's record; all zero if never allocated."""
        return self.registry.get(self._normalize(identity))

    def vested_amount(self, identity: str, now: int | None = None) -> int:
        record = self.beneficiary(identity)
        return compute_vested_amount(
            record, self.vesting_start_date, self._resolve_now(now), self.config
        )

    def releasable_amount(self, identity: str, now: int | None = None) -> int:
        """Amount ``withdraw`` would pay at ``now``; 0 instead of raising."""
        record = self.beneficiary(identity)
        return compute_releasable_amount(
            record, self.vesting_start_date, self._resolve_now(now), self.config
        )

    def status_of(self, identity: str, now: int | None = None) -> BeneficiaryStatus:
        record = self.beneficiary(identity)
        if not record.is_allocated:
            return BeneficiaryStatus.UNALLOCATED

        now = self._resolve_now(now)
        cliff_end = self.cliff_end()
        if cliff_end is None or now < cliff_end:
            return BeneficiaryStatus.CLIFF_PENDING
        if now - cliff_end < self.config.vesting_duration:
            return BeneficiaryStatus.VESTING
        if record.withdrawn == record.total_allocation:
            return BeneficiaryStatus.CLAIMED
        return BeneficiaryStatus.FULLY_VESTED

    def total_allocated(self) -> int:
        return sum(r.total_allocation for r in self.registry.records.values())

    def total_withdrawn(self) -> int:
        return sum(r.withdrawn for r in self.registry.records.values())

    def outstanding_liability(self) -> int:
        """Tokens the contract still owes across all beneficiaries."""
        return self.total_allocated() - self.total_withdrawn()

    def custody_balance(self) -> int:
        return self.token.balance_of(self.address)

    def check_custody_invariant(self) -> bool:
        """True when custody exactly matches the outstanding liability."""
        custody = self.custody_balance()
        liability = self.outstanding_liability()
        if custody != liability:
            logger.warning(
                "Custody mismatch",
                extra={
                    "event": "vesting.custody_mismatch",
                    "custody": custody,
                    "liability": liability,
                }
            )
            return False
        return True

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        """Normalize address to lowercase."""
        return address.lower()

    def _is_zero_identity(self, address: str) -> bool:
        return not address or self._normalize(address) == ZERO_ADDRESS

    def _require_owner(self, caller: str, operation: str) -> None:
        if not isinstance(caller, str) or self._normalize(caller) != self.owner:
            raise self._reject(
                AccessDeniedError(
                    "Vesting: caller is not the owner",
                    details={"operation": operation},
                )
            )

    def _require_unconfigured(self) -> None:
        if self.registry.schedule.is_configured:
            raise self._reject(
                AlreadyConfiguredError(
                    "Vesting: start date can only be set once",
                    details={"vesting_start_date": self.vesting_start_date},
                )
            )

    def _resolve_now(self, now: int | None) -> int:
        if now is None:
            now = self._time_provider()
        if not isinstance(now, int) or isinstance(now, bool):
            raise InvalidParameterError(
                "Vesting: current time must be an integer timestamp",
                reason="invalid_timestamp",
                details={"now": repr(now)},
            )
        if now < 0:
            raise InvalidParameterError(
                "Vesting: current time cannot be negative", reason="invalid_timestamp"
            )
        return now

    def _reject(self, error: VestingError) -> VestingError:
        logger.warning(
            "Vesting call rejected: %s",
            error.message,
            extra={"event": "vesting.rejected", "reason": error.reason},
        )
        return error

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        """Serialize contract state to dictionary."""
        return {
            "address": self.address,
            "owner": self.owner,
            "token": self.token.address,
            "config": {
                "cliff_duration": self.config.cliff_duration,
                "vesting_duration": self.config.vesting_duration,
                "release_interval": self.config.release_interval,
            },
            **self.registry.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        token: TokenLedger,
        time_provider: Callable[[], int] | None = None,
    ) -> "VestingContract":
        """
        Restore a contract from ``to_dict`` output, bound to ``token``.

        Raises:
            InvalidParameterError: If ``token`` is not the token the
                snapshot was taken against
        """
        if isinstance(token, TokenLedger) and data.get("token") and (
            token.address.lower() != data["token"].lower()
        ):
            raise InvalidParameterError(
                "Vesting: snapshot belongs to a different token",
                reason="invalid_token",
                details={"expected": data["token"], "got": token.address},
            )
        contract = cls(
            token=token,
            owner=data["owner"],
            config=VestingConfig(**data.get("config", {})),
            time_provider=time_provider,
            address=data["address"],
        )
        contract.registry = AllocationRegistry.from_dict(data)
        return contract
