"""
Tests for the allow-list pre-sale.
"""

import pytest

from collectible.core.config import DEFAULT_PRICE_WEI as PRICE
from collectible.core.ledger_exceptions import (
    ArrayLengthMismatchError,
    EthValueTooLowError,
    InvalidQuotaError,
    MaxWhitelistMintLimitExceededError,
    NotAuthorizedError,
    NotWhitelistedOrAlreadyMintedError,
    ZeroAddressError,
    ZeroQuantityError,
)


def test_mints_one_token(minted_nft, owner, addrs):
    minted_nft.set_allow_list(owner, [addrs[8]], [1])
    first = minted_nft.token_counter()

    minted_nft.whitelist_mint(addrs[8], 1, value=PRICE)

    assert minted_nft.owner_of(first) == addrs[8]
    assert minted_nft.allow_list_quota(addrs[8]) == 0


def test_mints_multiple_tokens(minted_nft, owner, addrs):
    minted_nft.set_allow_list(owner, [addrs[8]], [3])
    first = minted_nft.token_counter()

    minted_nft.whitelist_mint(addrs[8], 3, value=PRICE * 3)

    for token_id in range(first, first + 3):
        assert minted_nft.owner_of(token_id) == addrs[8]
    assert minted_nft.explicit_owner_at(first + 1) is None
    assert minted_nft.balance_of(addrs[8]) == 3


def test_shares_the_public_allocator(nft, owner, addrs):
    nft.mint(addrs[0], 2, value=PRICE * 2)
    nft.set_allow_list(owner, [addrs[1]], [2])

    start = nft.whitelist_mint(addrs[1], 2, value=PRICE * 2)
    after = nft.mint(addrs[0], 1, value=PRICE)

    assert start == 3
    assert after == 5
    assert nft.owner_of(4) == addrs[1]


def test_does_not_consume_public_cap(nft, owner, addrs):
    nft.set_allow_list(owner, [addrs[0]], [2])
    nft.whitelist_mint(addrs[0], 2, value=PRICE * 2)

    assert nft.number_minted_by(addrs[0]) == 0
    nft.mint(addrs[0], 5, value=PRICE * 5)
    assert nft.balance_of(addrs[0]) == 7


def test_rejects_account_not_on_list(minted_nft, addrs):
    with pytest.raises(NotWhitelistedOrAlreadyMintedError):
        minted_nft.whitelist_single_mint(addrs[7], value=PRICE)


def test_rejects_account_that_already_minted(minted_nft, owner, addrs):
    minted_nft.set_allow_list(owner, [addrs[8]], [1])
    minted_nft.whitelist_single_mint(addrs[8], value=PRICE)

    with pytest.raises(NotWhitelistedOrAlreadyMintedError):
        minted_nft.whitelist_single_mint(addrs[8], value=PRICE)


def test_rejects_mint_beyond_quota(minted_nft, owner, addrs):
    minted_nft.set_allow_list(owner, [addrs[8]], [1])

    with pytest.raises(MaxWhitelistMintLimitExceededError):
        minted_nft.whitelist_mint(addrs[8], 2, value=PRICE * 2)

    assert minted_nft.allow_list_quota(addrs[8]) == 1


def test_rejects_zero_quantity(minted_nft, owner, addrs):
    minted_nft.set_allow_list(owner, [addrs[8]], [1])

    with pytest.raises(ZeroQuantityError):
        minted_nft.whitelist_mint(addrs[8], 0, value=PRICE)


def test_rejects_underpayment_and_keeps_quota(nft, owner, addrs, chain):
    nft.set_allow_list(owner, [addrs[0]], [2])
    balance_before = chain.balance_of(addrs[0])

    with pytest.raises(EthValueTooLowError):
        nft.whitelist_mint(addrs[0], 2, value=PRICE)

    assert nft.allow_list_quota(addrs[0]) == 2
    assert chain.balance_of(addrs[0]) == balance_before


def test_refunds_overpayment(nft, owner, addrs):
    nft.set_allow_list(owner, [addrs[0]], [1])

    nft.whitelist_mint(addrs[0], 1, value=PRICE * 3)

    assert nft.treasury_balance() == PRICE


def test_partial_quota_use(nft, owner, addrs):
    nft.set_allow_list(owner, [addrs[0]], [3])

    nft.whitelist_mint(addrs[0], 2, value=PRICE * 2)
    assert nft.allow_list_quota(addrs[0]) == 1

    nft.whitelist_single_mint(addrs[0], value=PRICE)
    with pytest.raises(NotWhitelistedOrAlreadyMintedError):
        nft.whitelist_single_mint(addrs[0], value=PRICE)


class TestSetAllowList:
    """Administrator allow-list management"""

    def test_overwrites_existing_quota(self, nft, owner, addrs):
        nft.set_allow_list(owner, [addrs[0], addrs[1]], [3, 1])
        nft.set_allow_list(owner, [addrs[0]], [1])

        assert nft.allow_list_quota(addrs[0]) == 1
        assert nft.allow_list_quota(addrs[1]) == 1

    def test_rejects_non_owner(self, nft, addrs):
        with pytest.raises(NotAuthorizedError):
            nft.set_allow_list(addrs[0], [addrs[0]], [5])

        assert nft.allow_list_quota(addrs[0]) == 0

    def test_rejects_length_mismatch(self, nft, owner, addrs):
        with pytest.raises(ArrayLengthMismatchError):
            nft.set_allow_list(owner, [addrs[0], addrs[1]], [1])

    def test_invalid_entry_rolls_back_whole_update(self, nft, owner, addrs):
        with pytest.raises(InvalidQuotaError):
            nft.set_allow_list(owner, [addrs[0], addrs[1]], [2, -1])

        assert nft.allow_list_quota(addrs[0]) == 0

    def test_rejects_zero_address(self, nft, owner):
        with pytest.raises(ZeroAddressError):
            nft.set_allow_list(owner, ["0x" + "0" * 40], [1])
