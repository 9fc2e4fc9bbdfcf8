"""
Execution host for collectible ledgers.

The chain holds native-currency balances, knows which addresses are
contract-like accounts, deploys ledgers, and serializes every state-changing
ledger operation. Each operation is applied all-or-nothing: writes made
inside an ``atomic`` call go through an undo journal, and a failure replays
the journal backwards so only the entries the operation touched are restored.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from collectible.core.config import LedgerConfig, load_config
from collectible.core.ledger_exceptions import (
    InsufficientFundsError,
    ZeroAddressError,
    get_error_context,
)
from collectible.core.ledger_metrics import record_revert

if TYPE_CHECKING:
    from collectible.core.contracts.collectible import CollectibleToken

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40

F = TypeVar("F", bound=Callable[..., Any])


def normalize_address(address: str) -> str:
    """Normalize address to lowercase."""
    return address.lower()


_MISSING = object()


class UndoJournal:
    """
    Undo log for the operation in progress.

    Writes go through ``set_item``, ``pop_item``, ``set_attr`` and ``extend``,
    which apply the change and, while an operation is open, remember how to
    reverse it. Nested operations (a receiver hook re-entering a ledger) share
    the journal of the outermost one.
    """

    def __init__(self) -> None:
        self.entries: list[Callable[[], None]] = []
        self.depth = 0

    @property
    def is_outermost(self) -> bool:
        return self.depth == 1

    def begin(self) -> int:
        self.depth += 1
        return len(self.entries)

    def end(self) -> None:
        self.depth -= 1
        if self.depth == 0:
            self.entries.clear()

    def rollback_to(self, mark: int) -> None:
        """Undo every write recorded after ``mark``, newest first."""
        while len(self.entries) > mark:
            self.entries.pop()()

    def _record(self, undo: Callable[[], None]) -> None:
        if self.depth:
            self.entries.append(undo)

    def set_item(self, table: dict, key: Any, value: Any) -> None:
        previous = table.get(key, _MISSING)
        table[key] = value
        self._record(functools.partial(_restore_item, table, key, previous))

    def pop_item(self, table: dict, key: Any) -> None:
        if key not in table:
            return
        previous = table.pop(key)
        self._record(functools.partial(_restore_item, table, key, previous))

    def set_attr(self, obj: Any, name: str, value: Any) -> None:
        previous = getattr(obj, name)
        setattr(obj, name, value)
        self._record(functools.partial(setattr, obj, name, previous))

    def extend(self, items: list, new_items: list) -> None:
        length = len(items)
        items.extend(new_items)
        self._record(functools.partial(_truncate, items, length))


def _restore_item(table: dict, key: Any, previous: Any) -> None:
    if previous is _MISSING:
        table.pop(key, None)
    else:
        table[key] = previous


def _truncate(items: list, length: int) -> None:
    del items[length:]


def atomic(method: F) -> F:
    """
    Run a ledger operation as a single all-or-nothing unit.

    Every journaled write made by the call (ledger tables, cursor, events and,
    when hosted, native balances) is undone if an exception escapes; the
    exception is re-raised unchanged. Only the outermost operation counts and
    logs the revert.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        lock = self.chain.lock if self.chain is not None else self._lock
        with lock:
            journal = self.journal
            mark = journal.begin()
            try:
                return method(self, *args, **kwargs)
            except Exception as exc:
                journal.rollback_to(mark)
                if not journal.is_outermost:
                    logger.debug(
                        "Nested ledger operation reverted: %s",
                        method.__name__,
                        extra={"event": "collectible.nested_revert", "operation": method.__name__},
                    )
                    raise
                context = get_error_context(exc)
                record_revert(context.get("revert_reason", context["error_type"]))
                logger.warning(
                    "Ledger operation reverted: %s",
                    method.__name__,
                    extra={"event": "collectible.revert", "operation": method.__name__, **context},
                )
                raise
            finally:
                journal.end()

    return wrapper  # type: ignore[return-value]


class Chain:
    """In-process host providing native currency and contract accounts."""

    def __init__(self, network: str = "development") -> None:
        self.network = network
        self.balances: dict[str, int] = {}
        self.contracts: dict[str, Any] = {}
        self.nonces: dict[str, int] = {}
        self.lock = threading.RLock()
        self.journal = UndoJournal()

    # ==================== Native Currency ====================

    def balance_of(self, address: str) -> int:
        return self.balances.get(normalize_address(address), 0)

    def fund(self, address: str, amount: int) -> int:
        """
        Credit native currency to an account (development faucet).

        Args:
            address: Account to credit
            amount: Amount in wei

        Returns:
            New balance of the account
        """
        if amount < 0:
            raise ValueError("fund amount must not be negative")
        addr = normalize_address(address)
        if addr == ZERO_ADDRESS:
            raise ZeroAddressError("cannot fund the zero address")
        with self.lock:
            self.journal.set_item(self.balances, addr, self.balances.get(addr, 0) + amount)
            return self.balances[addr]

    def transfer_value(self, from_addr: str, to_addr: str, amount: int) -> None:
        """
        Move native currency between two accounts.

        Raises:
            InsufficientFundsError: If the sender cannot cover ``amount``
        """
        if amount < 0:
            raise ValueError("transfer amount must not be negative")
        if amount == 0:
            return
        from_norm = normalize_address(from_addr)
        to_norm = normalize_address(to_addr)
        with self.lock:
            available = self.balances.get(from_norm, 0)
            if available < amount:
                raise InsufficientFundsError(
                    f"{from_norm[:10]} has {available} wei, needs {amount}",
                    details={"address": from_norm, "available": available, "required": amount},
                )
            self.journal.set_item(self.balances, from_norm, available - amount)
            self.journal.set_item(self.balances, to_norm, self.balances.get(to_norm, 0) + amount)

    # ==================== Contract Accounts ====================

    def derive_contract_address(self, sender: str) -> str:
        """Deterministically derive a contract address from sender and nonce."""
        sender_norm = normalize_address(sender)
        nonce = self.nonces.get(sender_norm, 0)
        self.nonces[sender_norm] = nonce + 1
        digest = hashlib.sha256(f"{sender_norm}:{nonce}".encode("utf-8")).hexdigest()
        return f"0x{digest[:40]}"

    def register_contract(self, address: str, code: Any) -> str:
        """
        Mark an address as a contract-like account.

        ``code`` is the object that receives calls addressed to the account,
        for example an ERC721 receiver implementing ``on_erc721_received``.
        """
        addr = normalize_address(address)
        with self.lock:
            self.contracts[addr] = code
        return addr

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self.contracts

    def get_contract(self, address: str) -> Any | None:
        return self.contracts.get(normalize_address(address))

    def deploy_collectible(
        self,
        deployer: str,
        config: LedgerConfig | None = None,
        **overrides: Any,
    ) -> "CollectibleToken":
        """
        Deploy a collectible ledger administered by ``deployer``.

        Args:
            deployer: Account that becomes the ledger administrator
            config: Deploy-time settings (loaded from the environment if omitted)
            **overrides: Constructor fields replacing the configured values
                (``price``, ``max_mints_per_user``, ``collection_size``, ...)

        Returns:
            The deployed ledger
        """
        from collectible.core.contracts.collectible import CollectibleToken

        if normalize_address(deployer) == ZERO_ADDRESS:
            raise ZeroAddressError("deployer cannot be the zero address")

        config = config or load_config()
        params: dict[str, Any] = {
            "name": config.name,
            "symbol": config.symbol,
            "price": config.price_wei,
            "max_mints_per_user": config.max_mints_per_user,
            "collection_size": config.collection_size,
        }
        params.update(overrides)

        with self.lock:
            ledger = CollectibleToken(
                address=self.derive_contract_address(deployer),
                owner=normalize_address(deployer),
                chain=self,
                **params,
            )
            self.register_contract(ledger.address, ledger)

        logger.info(
            "Collectible ledger deployed",
            extra={
                "event": "collectible.deployed",
                "address": ledger.address,
                "name": ledger.name,
                "symbol": ledger.symbol,
                "collection_size": ledger.collection_size,
                "deployer": ledger.owner[:10],
            },
        )
        return ledger
