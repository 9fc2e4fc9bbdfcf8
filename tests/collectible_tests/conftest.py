"""
Shared fixtures for the collectible ledger tests.
"""

import pytest

from collectible.core.chain import Chain
from collectible.core.config import (
    DEFAULT_COLLECTION_SIZE as COLLECTION_SIZE,
    DEFAULT_MAX_MINTS_PER_USER as MAX_MINTS_PER_USER,
    DEFAULT_PRICE_WEI as PRICE,
    LedgerConfig,
)

STARTING_FUNDS = 10 * 10**18


def make_address(index: int) -> str:
    return "0x" + f"{index:040x}"


@pytest.fixture
def ledger_config():
    """Default deploy-time settings (0.05 ether, 5 per account, 26 tokens)."""
    return LedgerConfig(
        price_wei=PRICE,
        max_mints_per_user=MAX_MINTS_PER_USER,
        collection_size=COLLECTION_SIZE,
    )


@pytest.fixture
def chain():
    return Chain()


@pytest.fixture
def owner():
    """Ledger administrator (the deployer)."""
    return make_address(0xA11CE)


@pytest.fixture
def addrs(chain):
    """Ten funded user accounts."""
    accounts = [make_address(i + 1) for i in range(10)]
    for account in accounts:
        chain.fund(account, STARTING_FUNDS)
    return accounts


@pytest.fixture
def nft(chain, owner, addrs, ledger_config):
    """Freshly deployed collectible ledger with a funded administrator."""
    chain.fund(owner, STARTING_FUNDS)
    return chain.deploy_collectible(owner, config=ledger_config)


@pytest.fixture
def minted_nft(nft, addrs):
    """
    Ledger after addrs[i] minted i + 1 tokens for i in 0..4.

    Ids: addrs[0] -> 1, addrs[1] -> 2-3, addrs[2] -> 4-6,
    addrs[3] -> 7-10, addrs[4] -> 11-15. Token counter is 16.
    """
    for i in range(MAX_MINTS_PER_USER):
        nft.mint(addrs[i], i + 1, value=PRICE * (i + 1))
    return nft
