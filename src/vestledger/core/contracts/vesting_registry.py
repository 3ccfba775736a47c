"""
Allocation registry.

Owns the beneficiary records and the global schedule. Every mutation goes
through a method here that records how to undo itself in the innermost open
``transaction()``. A failed call reverts only its own changes, so work done
by a nested call that completed (and may already have moved tokens) stays.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from .vesting_models import BeneficiaryRecord, GlobalSchedule, TrancheInput, VestingEvent

logger = logging.getLogger(__name__)


class AllocationRegistry:
    """Keyed table of beneficiary records plus the schedule and event log."""

    def __init__(self) -> None:
        self.records: dict[str, BeneficiaryRecord] = {}
        self.schedule = GlobalSchedule()
        self.events: list[VestingEvent] = []
        self._journals: list[list[Callable[[], None]]] = []

    def get(self, identity: str) -> BeneficiaryRecord:
        """Return a copy of the record, empty for unknown identities."""
        record = self.records.get(identity)
        return record.copy() if record else BeneficiaryRecord()

    def __contains__(self, identity: str) -> bool:
        return identity in self.records

    def __len__(self) -> int:
        return len(self.records)

    def identities(self) -> list[str]:
        return list(self.records)

    # ==================== Mutation ====================

    def configure_schedule(self, start_date: int) -> None:
        previous = self.schedule.vesting_start_date
        self.schedule.vesting_start_date = start_date

        def undo() -> None:
            self.schedule.vesting_start_date = previous

        self._journal(undo)

    def emit(self, event: VestingEvent) -> None:
        self.events.append(event)

        def undo() -> None:
            # Remove this exact event; later ones belong to completed nested calls
            for index in range(len(self.events) - 1, -1, -1):
                if self.events[index] is event:
                    del self.events[index]
                    return

        self._journal(undo)

    def apply_tranche(self, tranche: TrancheInput) -> BeneficiaryRecord:
        """Accumulate one tranche onto the beneficiary, creating it on first use."""
        created = tranche.identity not in self.records
        record = self.records.setdefault(tranche.identity, BeneficiaryRecord())
        previous_tier = record.tier
        record.cliff_unlocked += tranche.immediate_unlock
        record.locked += tranche.locked
        record.tier = tranche.tier

        def undo() -> None:
            record.cliff_unlocked -= tranche.immediate_unlock
            record.locked -= tranche.locked
            if record.tier is tranche.tier:
                record.tier = previous_tier
            if created and not record.is_allocated and record.withdrawn == 0:
                self.records.pop(tranche.identity, None)

        self._journal(undo)
        return record

    def record_withdrawal(self, identity: str, amount: int) -> BeneficiaryRecord:
        record = self.records[identity]
        if record.withdrawn + amount > record.total_allocation:
            raise AssertionError(
                f"withdrawal of {amount} would exceed allocation of {identity}"
            )
        record.withdrawn += amount

        def undo() -> None:
            record.withdrawn -= amount

        self._journal(undo)
        return record

    def _journal(self, undo: Callable[[], None]) -> None:
        if self._journals:
            self._journals[-1].append(undo)

    @contextmanager
    def transaction(self) -> Iterator["AllocationRegistry"]:
        """
        Revert this block's own mutations if it raises.

        Re-entrant: a nested transaction that completes keeps its changes
        even if the enclosing one later fails, and a nested transaction that
        fails leaves the enclosing one's pending changes intact.
        """
        journal: list[Callable[[], None]] = []
        self._journals.append(journal)
        try:
            yield self
        except BaseException:
            for undo in reversed(journal):
                undo()
            logger.debug(
                "Registry transaction rolled back",
                extra={
                    "event": "vesting.rollback",
                    "depth": len(self._journals),
                    "reverted": len(journal),
                },
            )
            raise
        finally:
            self._journals.pop()

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        return {
            "vesting_start_date": self.schedule.vesting_start_date,
            "records": {k: v.to_dict() for k, v in self.records.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AllocationRegistry":
        registry = cls()
        registry.schedule.vesting_start_date = int(data.get("vesting_start_date", 0))
        registry.records = {
            k: BeneficiaryRecord.from_dict(v) for k, v in data.get("records", {}).items()
        }
        return registry
