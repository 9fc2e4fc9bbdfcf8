"""
Collectible sale contract.

Adds the issuance policy on top of the batch-minting ledger:
- Public sale with a fixed price and a per-account cap
- Allow-list pre-sale with per-account quotas
- Refund of overpayment inside the same operation
- Administrator-only allow-list management and treasury withdrawal

Both sale phases draw ids from the same allocator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from ..chain import ZERO_ADDRESS, atomic
from ..ledger_exceptions import (
    ArrayLengthMismatchError,
    EthValueTooLowError,
    InvalidQuotaError,
    MaxUserMintLimitWasReachedError,
    MaxWhitelistMintLimitExceededError,
    NotAuthorizedError,
    NotWhitelistedOrAlreadyMintedError,
    ZeroAddressError,
    ZeroQuantityError,
)
from ..ledger_metrics import record_mint, update_treasury_balance
from .erc721a import ERC721AToken

if TYPE_CHECKING:
    from ..chain import Chain

logger = logging.getLogger(__name__)

PHASE_PUBLIC = "public"
PHASE_ALLOWLIST = "allowlist"


@dataclass
class CollectibleToken(ERC721AToken):
    """
    Collectible collection with public and allow-list sales.

    The administrator is ``owner``. Payments are taken from the caller's
    native balance on the hosting chain and held under the ledger address
    until ``withdraw``.
    """

    # Issuance constants
    price: int = 0
    max_mints_per_user: int = 0

    # Sale state
    mint_counter: dict[str, int] = field(default_factory=dict)  # account -> public mints
    allow_list: dict[str, int] = field(default_factory=dict)  # account -> remaining quota

    # ==================== View Functions ====================

    def contract_owner(self) -> str:
        """Ledger administrator."""
        return self.owner

    def number_minted_by(self, account: str) -> int:
        """Tokens minted by ``account`` through the public sale."""
        return self.mint_counter.get(self._normalize(account), 0)

    def allow_list_quota(self, account: str) -> int:
        return self.allow_list.get(self._normalize(account), 0)

    def treasury_balance(self) -> int:
        """Native currency accumulated by sales and not yet withdrawn."""
        if self.chain is None:
            return 0
        return self.chain.balance_of(self.address)

    # ==================== Sales ====================

    @atomic
    def mint(self, caller: str, quantity: int, value: int = 0) -> int:
        """
        Public batch mint.

        Args:
            caller: Message sender, receives the tokens
            quantity: Number of tokens to mint
            value: Payment in wei; anything above ``price * quantity`` is returned

        Returns:
            First minted token ID
        """
        caller_norm = self._normalize(caller)
        if quantity <= 0:
            raise ZeroQuantityError("quantity must be greater than 0")

        minted = self.mint_counter.get(caller_norm, 0)
        if minted + quantity > self.max_mints_per_user:
            raise MaxUserMintLimitWasReachedError(
                f"{caller_norm[:10]} minted {minted}, cap is {self.max_mints_per_user}",
                details={"minted": minted, "requested": quantity, "cap": self.max_mints_per_user},
            )
        self._require_supply(quantity)

        self._collect_payment(caller_norm, quantity, value)

        start = self._mint(caller_norm, quantity)
        self.journal.set_item(self.mint_counter, caller_norm, minted + quantity)

        record_mint(PHASE_PUBLIC, quantity)
        return start

    @atomic
    def whitelist_mint(self, caller: str, quantity: int, value: int = 0) -> int:
        """
        Allow-list (pre-sale) batch mint.

        Args:
            caller: Message sender, must hold an allow-list quota
            quantity: Number of tokens to mint, at most the remaining quota
            value: Payment in wei; anything above ``price * quantity`` is returned

        Returns:
            First minted token ID
        """
        caller_norm = self._normalize(caller)
        if quantity <= 0:
            raise ZeroQuantityError("quantity must be greater than 0")

        quota = self.allow_list.get(caller_norm, 0)
        if quota <= 0:
            raise NotWhitelistedOrAlreadyMintedError(
                f"{caller_norm[:10]} has no allow-list quota left"
            )
        if quantity > quota:
            raise MaxWhitelistMintLimitExceededError(
                f"{caller_norm[:10]} requested {quantity}, quota is {quota}",
                details={"requested": quantity, "quota": quota},
            )
        self._require_supply(quantity)

        self._collect_payment(caller_norm, quantity, value)

        self.journal.set_item(self.allow_list, caller_norm, quota - quantity)
        start = self._mint(caller_norm, quantity)

        record_mint(PHASE_ALLOWLIST, quantity)
        return start

    def whitelist_single_mint(self, caller: str, value: int = 0) -> int:
        """Allow-list mint of exactly one token."""
        return self.whitelist_mint(caller, 1, value)

    # ==================== Admin Functions ====================

    @atomic
    def set_allow_list(
        self, caller: str, accounts: Sequence[str], quotas: Sequence[int]
    ) -> bool:
        """
        Overwrite allow-list quotas.

        Args:
            caller: Must be the administrator
            accounts: Accounts to update
            quotas: New remaining quota for each account (same order)

        Returns:
            True if successful
        """
        self._require_owner(caller)
        if len(accounts) != len(quotas):
            raise ArrayLengthMismatchError(
                f"{len(accounts)} accounts but {len(quotas)} quotas"
            )

        for account, quota in zip(accounts, quotas):
            account_norm = self._normalize(account)
            if account_norm == ZERO_ADDRESS:
                raise ZeroAddressError("cannot allow-list the zero address")
            if quota < 0:
                raise InvalidQuotaError(f"negative quota {quota} for {account_norm[:10]}")
            self.journal.set_item(self.allow_list, account_norm, int(quota))

        logger.info(
            "Allow-list updated",
            extra={
                "event": "collectible.allowlist_updated",
                "collection": self.symbol,
                "accounts": len(accounts),
            },
        )
        return True

    @atomic
    def withdraw(self, caller: str) -> int:
        """
        Move the whole treasury to the administrator.

        Args:
            caller: Must be the administrator

        Returns:
            Amount withdrawn in wei
        """
        self._require_owner(caller)
        amount = self.treasury_balance()
        if amount and self.chain is not None:
            self.chain.transfer_value(self.address, self.owner, amount)

        update_treasury_balance(self.address, self.treasury_balance())
        logger.info(
            "Treasury withdrawn",
            extra={
                "event": "collectible.withdraw",
                "collection": self.symbol,
                "amount": amount,
                "to": self.owner[:10],
            },
        )
        return amount

    # ==================== Helpers ====================

    def _require_owner(self, caller: str) -> None:
        """Require caller is the ledger administrator."""
        if self._normalize(caller) != self.owner:
            raise NotAuthorizedError(f"{self._normalize(caller)[:10]} is not the administrator")

    def _collect_payment(self, payer: str, quantity: int, value: int) -> None:
        """Take ``value`` from the payer and hand back what exceeds the price."""
        required = self.price * quantity
        if value < required:
            raise EthValueTooLowError(
                f"sent {value} wei, {required} required",
                details={"value": value, "required": required},
            )
        if self.chain is None:
            return

        self.chain.transfer_value(payer, self.address, value)
        refund = value - required
        if refund:
            self.chain.transfer_value(self.address, payer, refund)
            logger.debug(
                "Overpayment refunded",
                extra={"event": "collectible.refund", "to": payer[:10], "amount": refund},
            )
        update_treasury_balance(self.address, self.treasury_balance())

    # ==================== Serialization ====================

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            {
                "price": self.price,
                "max_mints_per_user": self.max_mints_per_user,
                "mint_counter": dict(self.mint_counter),
                "allow_list": dict(self.allow_list),
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict, chain: "Chain" | None = None) -> "CollectibleToken":
        token = super().from_dict(data, chain=chain)
        token.price = int(data.get("price", 0))
        token.max_mints_per_user = int(data.get("max_mints_per_user", 0))
        token.mint_counter = {k: int(v) for k, v in data.get("mint_counter", {}).items()}
        token.allow_list = {k: int(v) for k, v in data.get("allow_list", {}).items()}
        return token
