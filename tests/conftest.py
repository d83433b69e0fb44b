import pytest

from erc20sync.infra.retry import RetryPolicy
from fakes import HOURLY_BLOCKS, OTHER, THIRD, WALLET, ChainTransfer, FakeChain, tx_hash


@pytest.fixture()
def fast_retry() -> RetryPolicy:
    return RetryPolicy(timeout=5.0, max_attempts=3, initial_delay=0, max_delay=0)


@pytest.fixture()
def sample_transfers() -> list[ChainTransfer]:
    return [
        ChainTransfer(tx_hash(1), OTHER, WALLET, 1_000_000, 10, 3),
        ChainTransfer(tx_hash(2), WALLET, OTHER, 2_500_000, 12, 0),
        ChainTransfer(tx_hash(3), WALLET, WALLET, 500_000, 12, 1),
        ChainTransfer(tx_hash(4), OTHER, THIRD, 7, 15, 0),
        ChainTransfer(tx_hash(5), OTHER, WALLET, 3_000_000, 40, 2),
    ]


@pytest.fixture()
def chain(sample_transfers) -> FakeChain:
    return FakeChain(list(HOURLY_BLOCKS), sample_transfers)
