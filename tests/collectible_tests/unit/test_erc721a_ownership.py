"""
Tests for sparse ownership records, backward-scan resolution and the
successor repair performed by transfers.
"""

import pytest

from collectible.core.config import DEFAULT_PRICE_WEI as PRICE
from collectible.core.contracts.erc721a import ERC721AToken
from collectible.core.ledger_exceptions import (
    CollectionSoldOutError,
    QueryForNonExistentTokenError,
    ZeroAddressError,
    ZeroQuantityError,
)

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c4" * 20


@pytest.fixture
def token():
    """Bare ledger without a hosting chain."""
    return ERC721AToken(name="Bare", symbol="BARE", owner=ALICE, collection_size=100)


class TestOwnerOf:
    """Backward-scan ownership resolution"""

    def test_returns_the_right_token_owner(self, minted_nft, addrs):
        assert minted_nft.owner_of(1) == addrs[0]
        assert minted_nft.owner_of(2) == addrs[1]
        assert minted_nft.owner_of(5) == addrs[2]
        assert minted_nft.owner_of(15) == addrs[4]

    def test_only_batch_heads_are_explicit(self, minted_nft, addrs):
        assert minted_nft.owners == {
            1: addrs[0],
            2: addrs[1],
            4: addrs[2],
            7: addrs[3],
            11: addrs[4],
        }

    @pytest.mark.parametrize("token_id", [0, -1, 16, 120])
    def test_rejects_invalid_token(self, minted_nft, token_id):
        with pytest.raises(QueryForNonExistentTokenError) as excinfo:
            minted_nft.owner_of(token_id)
        assert excinfo.value.reason == "QueryForNonExistentToken"

    def test_empty_ledger_has_no_tokens(self, token):
        with pytest.raises(QueryForNonExistentTokenError):
            token.owner_of(1)

    def test_every_minted_id_resolves(self, minted_nft):
        owners = [minted_nft.owner_of(i) for i in range(1, minted_nft.token_counter())]
        assert len(owners) == 15


class TestBalances:
    """Balance table"""

    def test_returns_token_amount_for_each_owner(self, minted_nft, addrs):
        for i in range(5):
            assert minted_nft.balance_of(addrs[i]) == i + 1

    def test_unknown_account_has_zero_balance(self, minted_nft):
        assert minted_nft.balance_of(CAROL) == 0

    def test_rejects_zero_address(self, minted_nft):
        with pytest.raises(ZeroAddressError):
            minted_nft.balance_of("0x" + "0" * 40)

    def test_balances_sum_to_total_supply(self, minted_nft):
        assert sum(minted_nft.balances.values()) == minted_nft.token_counter() - 1


class TestInternalMint:
    """Allocator and single-record batch mint"""

    def test_batch_writes_one_record(self, token):
        start = token._mint(ALICE, 50)

        assert start == 1
        assert token.owners == {1: ALICE}
        assert token.next_token_id == 51
        assert token.balance_of(ALICE) == 50
        assert token.owner_of(50) == ALICE

    def test_ids_are_sequential_across_batches(self, token):
        assert token._mint(ALICE, 3) == 1
        assert token._mint(BOB, 2) == 4
        assert token.owner_of(3) == ALICE
        assert token.owner_of(4) == BOB

    def test_rejects_zero_quantity(self, token):
        with pytest.raises(ZeroQuantityError):
            token._mint(ALICE, 0)

    def test_rejects_zero_address(self, token):
        with pytest.raises(ZeroAddressError):
            token._mint("0x" + "0" * 40, 1)

    def test_enforces_collection_size(self, token):
        token._mint(ALICE, 100)
        with pytest.raises(CollectionSoldOutError):
            token._mint(BOB, 1)

    def test_unlimited_collection(self):
        unbounded = ERC721AToken(name="Open", symbol="OPEN")
        unbounded._mint(ALICE, 1_000)
        assert unbounded.total_supply() == 1_000

    def test_addresses_are_normalized(self, token):
        token._mint(ALICE.upper().replace("0X", "0x"), 1)
        assert token.owner_of(1) == ALICE


class TestRepairStep:
    """Transfers pin the successor id to the previous owner"""

    def test_first_token_of_batch_keeps_rest_with_minter(self, nft, addrs):
        # ids 1-9 go to other accounts so the batch under test starts at 10
        nft.mint(addrs[0], 5, value=PRICE * 5)
        nft.mint(addrs[1], 4, value=PRICE * 4)
        start = nft.mint(addrs[2], 5, value=PRICE * 5)
        assert start == 10

        nft.transfer_from(addrs[2], addrs[2], addrs[3], 10)

        assert nft.owner_of(10) == addrs[3]
        for token_id in range(11, 15):
            assert nft.owner_of(token_id) == addrs[2]
        assert nft.explicit_owner_at(11) == addrs[2]
        assert nft.balance_of(addrs[2]) == 4
        assert nft.balance_of(addrs[3]) == 1

    def test_middle_token_splits_batch(self, token):
        token._mint(ALICE, 5)

        token.transfer_from(ALICE, ALICE, BOB, 3)

        assert [token.owner_of(i) for i in range(1, 6)] == [ALICE, ALICE, BOB, ALICE, ALICE]
        assert token.owners == {1: ALICE, 3: BOB, 4: ALICE}

    def test_last_minted_token_writes_no_successor(self, token):
        token._mint(ALICE, 3)

        token.transfer_from(ALICE, ALICE, BOB, 3)

        assert 4 not in token.owners
        assert token.owners == {1: ALICE, 3: BOB}

    def test_existing_successor_record_is_untouched(self, token):
        token._mint(ALICE, 2)
        token._mint(CAROL, 2)

        token.transfer_from(ALICE, ALICE, BOB, 2)

        assert token.explicit_owner_at(3) == CAROL
        assert token.owner_of(4) == CAROL

    def test_transfer_back_and_forth(self, token):
        token._mint(ALICE, 4)

        token.transfer_from(ALICE, ALICE, BOB, 2)
        token.transfer_from(BOB, BOB, ALICE, 2)
        token.transfer_from(ALICE, ALICE, CAROL, 1)

        assert [token.owner_of(i) for i in range(1, 5)] == [CAROL, ALICE, ALICE, ALICE]
        assert token.balance_of(ALICE) == 3
        assert token.balance_of(BOB) == 0
        assert token.balance_of(CAROL) == 1

    def test_successor_of_later_mint_is_not_written_early(self, token):
        token._mint(ALICE, 1)
        token.transfer_from(ALICE, ALICE, BOB, 1)
        token._mint(CAROL, 2)

        assert token.owner_of(2) == CAROL
        assert token.owner_of(3) == CAROL
