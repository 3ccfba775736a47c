import sys
from pathlib import Path

import pytest

# Ensure the src directory and the shared helpers are on the path before
# collection runs.
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from vestledger.core.config import VestingConfig
from vestledger.core.contracts.erc20 import ERC20Factory
from vestledger.core.contracts.vesting import VestingContract

from ledger_helpers import OWNER, FakeClock, ether


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token():
    """Token with 100000 whole tokens minted to the owner."""
    factory = ERC20Factory()
    return factory.create_token(
        creator=OWNER,
        name="MyToken",
        symbol="MTK",
        initial_supply=ether(100_000),
    )


@pytest.fixture
def vesting_config():
    return VestingConfig()


@pytest.fixture
def vesting(token, clock, vesting_config):
    return VestingContract(token=token, owner=OWNER, config=vesting_config, time_provider=clock)


@pytest.fixture
def started(vesting, clock):
    """Vesting contract whose schedule starts 60 seconds from now."""
    vesting.set_start_date(OWNER, clock.now + 60)
    return vesting
