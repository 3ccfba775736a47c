"""
Property-based tests for vesting ledger invariants.

Covers the one-shot schedule, owner-only administration, allocation
conservation, cliff gating, bounded monotonic claims and custody matching
outstanding liability.

Uses Hypothesis for property-based testing with random inputs.
"""

import pytest
from hypothesis import assume, given, settings, strategies as st
from hypothesis.stateful import RuleBasedStateMachine, invariant, precondition, rule

from vestledger.core.config import VestingConfig
from vestledger.core.constants import BASIS_POINTS
from vestledger.core.contracts.erc20 import ERC20Factory
from vestledger.core.contracts.vesting import VestingContract
from vestledger.core.contracts.vesting_models import AllocationTier
from vestledger.core.exceptions import (
    AccessDeniedError,
    AlreadyConfiguredError,
    CliffNotReachedError,
    InvalidParameterError,
    NothingToWithdrawError,
)

from ledger_helpers import ALICE, BOB, CAROL, GENESIS_TIME, OWNER, FakeClock, ether

pytestmark = pytest.mark.property

SUPPLY = ether(10**9)
CONFIG = VestingConfig(cliff_duration=600, vesting_duration=36_000, release_interval=0)

# ============================================================================
# STRATEGIES
# ============================================================================

beneficiaries = st.sampled_from([ALICE, BOB, CAROL])
tiers = st.sampled_from([AllocationTier.SEED, AllocationTier.PRIVATE])
amounts = st.integers(min_value=1, max_value=ether(1_000_000))
tranches = st.lists(st.tuples(beneficiaries, amounts, tiers), min_size=1, max_size=8)
outsiders = st.text(alphabet="0123456789abcdef", min_size=40, max_size=40).map(
    lambda h: "0x" + h
).filter(lambda a: a != OWNER)


def _deploy(config=CONFIG):
    clock = FakeClock()
    token = ERC20Factory().create_token(OWNER, "MyToken", "MTK", initial_supply=SUPPLY)
    vesting = VestingContract(token=token, owner=OWNER, config=config, time_provider=clock)
    return vesting, token, clock


def _add(vesting, token, batch):
    investors, values, tier_list = (list(column) for column in zip(*batch))
    token.approve(OWNER, vesting.address, sum(values))
    return vesting.add_investors(OWNER, investors, values, tier_list)


# ============================================================================
# SCHEDULE AND ACCESS CONTROL
# ============================================================================


class TestScheduleProperties:
    @given(
        first=st.integers(min_value=1, max_value=2**40),
        later=st.lists(st.integers(min_value=0, max_value=2**40), min_size=1, max_size=5),
    )
    @settings(max_examples=50)
    def test_start_date_set_at_most_once(self, first, later):
        vesting, _, _ = _deploy()
        vesting.set_start_date(OWNER, first)
        for timestamp in later:
            with pytest.raises(AlreadyConfiguredError):
                vesting.set_start_date(OWNER, timestamp)
        assert vesting.vesting_start_date == first

    @given(caller=outsiders, timestamp=st.integers(min_value=0, max_value=2**40), batch=tranches)
    @settings(max_examples=50)
    def test_non_owner_always_denied(self, caller, timestamp, batch):
        vesting, token, _ = _deploy()
        with pytest.raises(AccessDeniedError):
            vesting.set_start_date(caller, timestamp)

        investors, values, tier_list = (list(column) for column in zip(*batch))
        token.approve(OWNER, vesting.address, sum(values))
        with pytest.raises(AccessDeniedError):
            vesting.add_investors(caller, investors, values, tier_list)
        # Mismatched lengths still report the caller first
        with pytest.raises(AccessDeniedError):
            vesting.add_investors(caller, investors, values, [])

        assert not vesting.registry.schedule.is_configured
        assert vesting.total_allocated() == 0
        assert token.balance_of(OWNER) == SUPPLY


# ============================================================================
# INTAKE
# ============================================================================


class TestAllocationProperties:
    @given(batch=tranches)
    @settings(max_examples=100)
    def test_allocation_conservation(self, batch):
        vesting, token, _ = _deploy()
        before = {identity: vesting.beneficiary(identity) for identity, _, _ in batch}

        _add(vesting, token, batch)

        expected_unlocked = {identity: 0 for identity in before}
        expected_locked = {identity: 0 for identity in before}
        for identity, amount, tier in batch:
            unlocked = amount * tier.unlock_bps // BASIS_POINTS
            expected_unlocked[identity] += unlocked
            expected_locked[identity] += amount - unlocked

        for identity, record in before.items():
            after = vesting.beneficiary(identity)
            assert after.cliff_unlocked - record.cliff_unlocked == expected_unlocked[identity]
            assert after.locked - record.locked == expected_locked[identity]
            assert after.withdrawn == 0

        pulled = sum(amount for _, amount, _ in batch)
        assert token.balance_of(OWNER) == SUPPLY - pulled
        assert vesting.custody_balance() == pulled
        assert vesting.check_custody_invariant()

    @given(batch=tranches, missing=st.integers(min_value=1, max_value=3))
    @settings(max_examples=50)
    def test_short_tier_list_changes_nothing(self, batch, missing):
        vesting, token, _ = _deploy()
        investors, values, tier_list = (list(column) for column in zip(*batch))
        token.approve(OWNER, vesting.address, sum(values))

        with pytest.raises(InvalidParameterError):
            vesting.add_investors(OWNER, investors, values, tier_list[: max(0, len(tier_list) - missing)])

        assert vesting.total_allocated() == 0
        assert token.balance_of(OWNER) == SUPPLY
        assert vesting.events == []


# ============================================================================
# RELEASE
# ============================================================================


class TestReleaseProperties:
    @given(
        batch=tranches,
        offset=st.integers(min_value=-10**6, max_value=10**6),
        interval=st.sampled_from([0, 1, 60, 3600]),
    )
    @settings(max_examples=100)
    def test_cliff_gating(self, batch, offset, interval):
        config = VestingConfig(cliff_duration=600, vesting_duration=36_000, release_interval=interval)
        vesting, token, clock = _deploy(config)
        vesting.set_start_date(OWNER, GENESIS_TIME + 60)
        _add(vesting, token, batch)

        identity = batch[0][0]
        now = vesting.cliff_end() + offset
        if offset < 0:
            with pytest.raises(CliffNotReachedError):
                vesting.withdraw(identity, now=now)
        else:
            releasable = vesting.releasable_amount(identity, now=now)
            try:
                assert vesting.withdraw(identity, now=now) == releasable
            except NothingToWithdrawError:
                # Dust amounts floor to a zero immediate unlock
                assert releasable == 0

    @given(
        batch=tranches,
        steps=st.lists(st.integers(min_value=0, max_value=5_000), min_size=1, max_size=15),
        interval=st.sampled_from([0, 60]),
    )
    @settings(max_examples=100)
    def test_withdrawn_monotonic_and_bounded(self, batch, steps, interval):
        config = VestingConfig(cliff_duration=600, vesting_duration=36_000, release_interval=interval)
        vesting, token, clock = _deploy(config)
        vesting.set_start_date(OWNER, GENESIS_TIME)
        _add(vesting, token, batch)

        identity = batch[0][0]
        clock.now = vesting.cliff_end()
        previous = 0
        for step in steps:
            clock.advance(step)
            try:
                paid = vesting.withdraw(identity)
            except NothingToWithdrawError:
                paid = 0
            record = vesting.beneficiary(identity)
            assert record.withdrawn == previous + paid
            assert record.withdrawn >= previous
            assert record.withdrawn <= record.total_allocation
            previous = record.withdrawn

        assert token.balance_of(identity) == previous
        assert vesting.check_custody_invariant()

    @given(batch=tranches, offset=st.integers(min_value=0, max_value=50_000))
    @settings(max_examples=100)
    def test_second_withdraw_at_same_time_is_noop(self, batch, offset):
        vesting, token, _ = _deploy()
        vesting.set_start_date(OWNER, GENESIS_TIME)
        _add(vesting, token, batch)

        identity = batch[0][0]
        now = vesting.cliff_end() + offset
        assume(vesting.releasable_amount(identity, now=now) > 0)
        vesting.withdraw(identity, now=now)
        with pytest.raises(NothingToWithdrawError):
            vesting.withdraw(identity, now=now)

    @given(batch=tranches)
    @settings(max_examples=50)
    def test_everything_claimable_after_vesting_end(self, batch):
        vesting, token, _ = _deploy()
        vesting.set_start_date(OWNER, GENESIS_TIME)
        _add(vesting, token, batch)

        end = vesting.vesting_end()
        for identity in {identity for identity, _, _ in batch}:
            vesting.withdraw(identity, now=end)
            assert token.balance_of(identity) == vesting.beneficiary(identity).total_allocation

        assert vesting.custody_balance() == 0
        assert vesting.outstanding_liability() == 0

    @given(
        record_amount=amounts,
        tier=tiers,
        earlier=st.integers(min_value=0, max_value=40_000),
        gap=st.integers(min_value=0, max_value=40_000),
    )
    def test_vested_amount_never_decreases(self, record_amount, tier, earlier, gap):
        vesting, token, _ = _deploy()
        vesting.set_start_date(OWNER, GENESIS_TIME)
        _add(vesting, token, [(ALICE, record_amount, tier)])

        start = vesting.cliff_end()
        first = vesting.vested_amount(ALICE, now=start + earlier)
        second = vesting.vested_amount(ALICE, now=start + earlier + gap)
        assert first <= second <= record_amount


# ============================================================================
# STATEFUL TESTING
# ============================================================================


class VestingLedgerMachine(RuleBasedStateMachine):
    """
    Stateful property-based testing for the vesting ledger.

    Interleaves intake, time passing and withdrawals and checks that custody
    always equals outstanding liability.
    """

    def __init__(self):
        super().__init__()
        self.vesting, self.token, self.clock = _deploy(
            VestingConfig(cliff_duration=600, vesting_duration=36_000, release_interval=60)
        )
        self.vesting.set_start_date(OWNER, GENESIS_TIME + 60)
        self.paid = {ALICE: 0, BOB: 0, CAROL: 0}
        self.last_withdrawn = dict(self.paid)

    @rule(identity=beneficiaries, amount=amounts, tier=tiers)
    def add_tranche(self, identity, amount, tier):
        assume(self.token.balance_of(OWNER) >= amount)
        _add(self.vesting, self.token, [(identity, amount, tier)])

    @rule(seconds=st.integers(min_value=1, max_value=10_000))
    def advance_time(self, seconds):
        self.clock.advance(seconds)

    @precondition(lambda self: self.clock.now >= self.vesting.cliff_end())
    @rule(identity=beneficiaries)
    def withdraw(self, identity):
        expected = self.vesting.releasable_amount(identity)
        try:
            paid = self.vesting.withdraw(identity)
        except NothingToWithdrawError:
            assert expected == 0
            return
        assert paid == expected
        self.paid[identity] += paid

    @invariant()
    def custody_matches_liability(self):
        assert self.vesting.check_custody_invariant()

    @invariant()
    def withdrawn_bounded_and_monotonic(self):
        for identity in self.paid:
            record = self.vesting.beneficiary(identity)
            assert record.withdrawn == self.paid[identity]
            assert record.withdrawn >= self.last_withdrawn[identity]
            assert record.withdrawn <= record.total_allocation
            assert self.token.balance_of(identity) == record.withdrawn
            self.last_withdrawn[identity] = record.withdrawn


TestVestingLedgerState = VestingLedgerMachine.TestCase
TestVestingLedgerState.settings = settings(max_examples=30, stateful_step_count=25)
