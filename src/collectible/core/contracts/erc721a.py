"""
Batch-minting ERC721 ownership ledger.

This module provides an ERC721 implementation in which minting any number of
tokens writes a single ownership record:
- Sequential token ids starting at 1, bounded by the collection size
- Sparse ownership records, resolved by scanning backward
- Transfers (transferFrom, safeTransferFrom) with the successor repair step
- Per-token and operator approvals

Only batch heads and transfer targets carry an explicit record. Every other
minted id belongs to the owner of the nearest record at or below it, so a
transfer that overwrites a record must first pin the next id to the previous
owner, or the rest of that batch would follow the token to its new owner.

Security features:
- Owner verification on all transfers
- Approval validation
- Zero address checks
- Safe transfer receiver checks
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..chain import ZERO_ADDRESS, UndoJournal, atomic, normalize_address
from ..ledger_exceptions import (
    ApprovalToCurrentOwnerError,
    ApproveToCallerError,
    CallerNotOwnerNorApprovedError,
    CollectionSoldOutError,
    QueryForNonExistentTokenError,
    TransferFromIncorrectAddressError,
    ZeroAddressError,
    ZeroQuantityError,
)
from ..ledger_metrics import record_transfer
from .receiver import check_on_erc721_received

if TYPE_CHECKING:
    from ..chain import Chain

logger = logging.getLogger(__name__)

# ERC721 function selectors exposed by the ledger
ERC721_SELECTORS = {
    "balanceOf(address)": "70a08231",
    "ownerOf(uint256)": "6352211e",
    "safeTransferFrom(address,address,uint256)": "42842e0e",
    "safeTransferFrom(address,address,uint256,bytes)": "b88d4fde",
    "transferFrom(address,address,uint256)": "23b872dd",
    "approve(address,uint256)": "095ea7b3",
    "setApprovalForAll(address,bool)": "a22cb465",
    "getApproved(uint256)": "081812fc",
    "isApprovedForAll(address,address)": "e985e9c5",
}


def _interface_id(selectors: dict[str, str]) -> str:
    """ERC165 interface id: XOR of the interface's function selectors."""
    value = 0
    for selector in selectors.values():
        value ^= int(selector, 16)
    return f"{value:08x}"


# ERC165 interface ids
INTERFACE_ID_ERC165 = _interface_id({"supportsInterface(bytes4)": "01ffc9a7"})
INTERFACE_ID_ERC721 = _interface_id(ERC721_SELECTORS)
SUPPORTED_INTERFACES = frozenset({INTERFACE_ID_ERC165, INTERFACE_ID_ERC721})

# Event signatures
TRANSFER_EVENT = hashlib.sha3_256(b"Transfer(address,address,uint256)").digest()
APPROVAL_EVENT = hashlib.sha3_256(b"Approval(address,address,uint256)").digest()
APPROVAL_FOR_ALL_EVENT = hashlib.sha3_256(
    b"ApprovalForAll(address,address,bool)"
).digest()

EVENT_TOPICS = {
    "Transfer": TRANSFER_EVENT,
    "Approval": APPROVAL_EVENT,
    "ApprovalForAll": APPROVAL_FOR_ALL_EVENT,
}


@dataclass
class NFTEvent:
    """Represents an ERC721 event."""

    event_type: str  # "Transfer", "Approval", "ApprovalForAll"
    from_address: str
    to_address: str
    token_id: int
    approved: bool = False  # For ApprovalForAll
    timestamp: float = field(default_factory=time.time)

    @property
    def topic(self) -> bytes:
        """Signature hash identifying the event type."""
        return EVENT_TOPICS[self.event_type]


@dataclass
class ERC721AToken:
    """
    ERC721 ledger with constant-cost batch minting.

    State:
    - ``owners``: sparse token id -> owner records
    - ``balances``: owner -> token count, maintained incrementally
    - ``token_approvals`` / ``operator_approvals``: transfer authorizations
    - ``next_token_id``: allocator cursor, only advanced by ``_mint``
    """

    # Collection metadata
    name: str = ""
    symbol: str = ""

    # Contract address
    address: str = ""

    # Owner (for admin functions)
    owner: str = ""

    # Supply ceiling (0 = unlimited)
    collection_size: int = 0

    # Hosting chain (native currency, contract accounts)
    chain: "Chain" | None = field(default=None, repr=False, compare=False)

    # Token state
    owners: dict[int, str] = field(default_factory=dict)  # tokenId -> owner (sparse)
    balances: dict[str, int] = field(default_factory=dict)  # owner -> count
    token_approvals: dict[int, str] = field(default_factory=dict)  # tokenId -> approved
    operator_approvals: dict[str, dict[str, bool]] = field(
        default_factory=dict
    )  # owner -> operator -> approved

    next_token_id: int = 1

    # Events
    events: list[NFTEvent] = field(default_factory=list)

    _lock: Any = field(default_factory=threading.RLock, init=False, repr=False, compare=False)
    _journal: UndoJournal = field(default_factory=UndoJournal, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Initialize NFT contract."""
        if not self.address:
            addr_input = f"{self.name}{self.symbol}{time.time()}".encode()
            addr_hash = hashlib.sha3_256(addr_input).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.address = self._normalize(self.address)
        self.owner = self._normalize(self.owner)

    # ==================== View Functions ====================

    def token_counter(self) -> int:
        """Next token id to be minted (1 on a fresh ledger)."""
        return self.next_token_id

    def total_supply(self) -> int:
        """Get total number of minted tokens."""
        return self.next_token_id - 1

    def total_minted(self) -> int:
        """Tokens ever minted; equals ``total_supply`` since tokens are never burned."""
        return self.next_token_id - 1

    def balance_of(self, owner: str) -> int:
        """
        Get number of NFTs owned by an address.

        Args:
            owner: Owner address

        Returns:
            Number of NFTs owned

        Raises:
            ZeroAddressError: If ``owner`` is the zero address
        """
        owner_norm = self._normalize(owner)
        if owner_norm == ZERO_ADDRESS:
            raise ZeroAddressError("balance query for the zero address")
        return self.balances.get(owner_norm, 0)

    def owner_of(self, token_id: int) -> str:
        """
        Get the owner of an NFT.

        Args:
            token_id: Token ID

        Returns:
            Owner address

        Raises:
            QueryForNonExistentTokenError: If token doesn't exist
        """
        return self._ownership_of(token_id)

    def explicit_owner_at(self, token_id: int) -> str | None:
        """Raw ownership record stored at ``token_id`` (None for implicit ids)."""
        return self.owners.get(token_id)

    def get_approved(self, token_id: int) -> str:
        """
        Get approved address for a token.

        Args:
            token_id: Token ID

        Returns:
            Approved address (zero if none)
        """
        self._require_minted(token_id)
        return self.token_approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        """
        Check if operator is approved for all tokens of owner.

        Args:
            owner: Token owner
            operator: Operator address

        Returns:
            True if approved for all
        """
        owner_norm = self._normalize(owner)
        operator_norm = self._normalize(operator)
        return self.operator_approvals.get(owner_norm, {}).get(operator_norm, False)

    def supports_interface(self, interface_id: str | bytes) -> bool:
        """ERC165 interface detection."""
        if isinstance(interface_id, bytes):
            interface_id = interface_id.hex()
        interface_id = interface_id.lower().removeprefix("0x")
        return interface_id in SUPPORTED_INTERFACES

    def events_of_type(self, event_type: str) -> list[NFTEvent]:
        return [event for event in self.events if event.event_type == event_type]

    # ==================== State-Changing Functions ====================

    @atomic
    def approve(self, caller: str, to: str, token_id: int) -> bool:
        """
        Approve an address to transfer a specific token.

        Args:
            caller: Message sender
            to: Address to approve
            token_id: Token ID

        Returns:
            True if successful
        """
        owner = self.owner_of(token_id)
        caller_norm = self._normalize(caller)
        to_norm = self._normalize(to)

        if to_norm == owner:
            raise ApprovalToCurrentOwnerError(
                f"token {token_id} is already owned by {to_norm[:10]}"
            )

        if caller_norm != owner and not self.is_approved_for_all(owner, caller_norm):
            raise CallerNotOwnerNorApprovedError(
                f"{caller_norm[:10]} may not approve token {token_id}"
            )

        self._approve(to_norm, token_id, owner)

        return True

    @atomic
    def set_approval_for_all(
        self, caller: str, operator: str, approved: bool
    ) -> bool:
        """
        Set or revoke operator approval for all tokens.

        Args:
            caller: Token owner
            operator: Operator address
            approved: Approval status

        Returns:
            True if successful
        """
        caller_norm = self._normalize(caller)
        operator_norm = self._normalize(operator)

        if operator_norm == caller_norm:
            raise ApproveToCallerError("cannot set approval status for self")

        approvals = self.operator_approvals.get(caller_norm)
        if approvals is None:
            approvals = {}
            self.journal.set_item(self.operator_approvals, caller_norm, approvals)
        self.journal.set_item(approvals, operator_norm, bool(approved))

        self._emit_approval_for_all(caller_norm, operator_norm, bool(approved))

        return True

    @atomic
    def transfer_from(
        self, caller: str, from_addr: str, to_addr: str, token_id: int
    ) -> bool:
        """
        Transfer an NFT.

        Args:
            caller: Message sender
            from_addr: Current owner
            to_addr: New owner
            token_id: Token ID

        Returns:
            True if successful
        """
        self._transfer(caller, from_addr, to_addr, token_id)
        record_transfer(safe=False)
        return True

    @atomic
    def safe_transfer_from(
        self,
        caller: str,
        from_addr: str,
        to_addr: str,
        token_id: int,
        data: bytes = b"",
    ) -> bool:
        """
        Safely transfer an NFT (checks contract recipients).

        The ownership change is applied first; if the recipient rejects it the
        whole transfer is rolled back.

        Args:
            caller: Message sender
            from_addr: Current owner
            to_addr: New owner
            token_id: Token ID
            data: Optional data for receiver

        Returns:
            True if successful
        """
        self._transfer(caller, from_addr, to_addr, token_id)
        check_on_erc721_received(
            self.chain,
            self._normalize(caller),
            self._normalize(from_addr),
            self._normalize(to_addr),
            token_id,
            data,
        )
        record_transfer(safe=True)
        return True

    def _transfer(
        self, caller: str, from_addr: str, to_addr: str, token_id: int
    ) -> None:
        """Internal transfer logic."""
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)
        caller_norm = self._normalize(caller)

        # Verify ownership
        owner = self.owner_of(token_id)
        if owner != from_norm:
            raise TransferFromIncorrectAddressError(
                f"token {token_id} is not owned by {from_norm[:10]}"
            )

        # Verify authorization
        if not (
            caller_norm == owner
            or self.token_approvals.get(token_id) == caller_norm
            or self.is_approved_for_all(owner, caller_norm)
        ):
            raise CallerNotOwnerNorApprovedError(
                f"{caller_norm[:10]} may not transfer token {token_id}"
            )

        # Validate recipient
        if to_norm == ZERO_ADDRESS:
            raise ZeroAddressError("transfer to the zero address")

        # Pin the successor to the previous owner before overwriting this record
        next_id = token_id + 1
        if next_id < self.next_token_id and next_id not in self.owners:
            self.journal.set_item(self.owners, next_id, owner)

        # Clear approval
        self._approve(ZERO_ADDRESS, token_id, owner)

        # Update ownership
        self.journal.set_item(self.owners, token_id, to_norm)

        # Update balances
        self.journal.set_item(self.balances, from_norm, self.balances.get(from_norm, 0) - 1)
        self.journal.set_item(self.balances, to_norm, self.balances.get(to_norm, 0) + 1)

        # Emit event
        self._emit_transfer(from_norm, to_norm, token_id)

        logger.debug(
            "ERC721A transfer",
            extra={
                "event": "collectible.transfer",
                "collection": self.symbol,
                "token_id": token_id,
                "from": from_norm[:10],
                "to": to_norm[:10],
            }
        )

    # ==================== Minting ====================

    def _mint(self, to: str, quantity: int) -> int:
        """
        Mint ``quantity`` consecutive tokens to ``to`` with one ownership record.

        Callers are responsible for running inside an atomic operation.

        Args:
            to: Recipient address
            quantity: Number of tokens

        Returns:
            First minted token ID

        Raises:
            ZeroAddressError: If minting to the zero address
            ZeroQuantityError: If quantity is not positive
            CollectionSoldOutError: If the collection size would be exceeded
        """
        to_norm = self._normalize(to)
        if to_norm == ZERO_ADDRESS:
            raise ZeroAddressError("mint to the zero address")
        if quantity <= 0:
            raise ZeroQuantityError("quantity must be greater than 0")
        self._require_supply(quantity)

        start = self.next_token_id
        self.journal.set_item(self.owners, start, to_norm)
        self.journal.set_item(self.balances, to_norm, self.balances.get(to_norm, 0) + quantity)
        self.journal.set_attr(self, "next_token_id", start + quantity)

        # Emit transfer from zero address for every id; only one record was written
        self._emit(
            *(
                NFTEvent(
                    event_type="Transfer",
                    from_address=ZERO_ADDRESS,
                    to_address=to_norm,
                    token_id=token_id,
                )
                for token_id in range(start, start + quantity)
            )
        )

        logger.info(
            "ERC721A batch mint",
            extra={
                "event": "collectible.mint",
                "collection": self.symbol,
                "first_token_id": start,
                "quantity": quantity,
                "to": to_norm[:10],
            }
        )

        return start

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return normalize_address(address)

    def _exists(self, token_id: int) -> bool:
        return 1 <= token_id < self.next_token_id

    def _require_minted(self, token_id: int) -> None:
        """Require token exists."""
        if not self._exists(token_id):
            raise QueryForNonExistentTokenError(f"token {token_id} does not exist")

    def _require_supply(self, quantity: int) -> None:
        if self.collection_size and self.total_supply() + quantity > self.collection_size:
            raise CollectionSoldOutError(
                f"minting {quantity} would exceed collection size {self.collection_size}",
                details={"minted": self.total_supply(), "requested": quantity},
            )

    def _ownership_of(self, token_id: int) -> str:
        """Resolve the owner by scanning down to the nearest explicit record."""
        self._require_minted(token_id)

        for current in range(token_id, 0, -1):
            owner = self.owners.get(current)
            if owner is not None:
                return owner

        # Id 1 is always the head of the first batch
        raise QueryForNonExistentTokenError(f"unable to determine the owner of token {token_id}")

    def _approve(self, to: str, token_id: int, owner: str) -> None:
        if to == ZERO_ADDRESS:
            self.journal.pop_item(self.token_approvals, token_id)
        else:
            self.journal.set_item(self.token_approvals, token_id, to)
        self._emit_approval(owner, to, token_id)

    def _emit(self, *events: NFTEvent) -> None:
        self.journal.extend(self.events, list(events))

    def _emit_transfer(self, from_addr: str, to_addr: str, token_id: int) -> None:
        """Emit Transfer event."""
        self._emit(
            NFTEvent(
                event_type="Transfer",
                from_address=from_addr,
                to_address=to_addr,
                token_id=token_id,
            )
        )

    def _emit_approval(self, owner: str, approved: str, token_id: int) -> None:
        """Emit Approval event."""
        self._emit(
            NFTEvent(
                event_type="Approval",
                from_address=owner,
                to_address=approved,
                token_id=token_id,
            )
        )

    def _emit_approval_for_all(
        self, owner: str, operator: str, approved: bool
    ) -> None:
        """Emit ApprovalForAll event."""
        self._emit(
            NFTEvent(
                event_type="ApprovalForAll",
                from_address=owner,
                to_address=operator,
                token_id=0,
                approved=approved,
            )
        )

    # ==================== Journal ====================

    @property
    def journal(self) -> UndoJournal:
        """Undo journal shared with the hosting chain (own journal when unhosted)."""
        return self.chain.journal if self.chain is not None else self._journal

    # ==================== Serialization ====================

    def to_dict(self) -> dict:
        """Serialize ledger state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "address": self.address,
            "owner": self.owner,
            "collection_size": self.collection_size,
            "owners": dict(self.owners),
            "balances": dict(self.balances),
            "token_approvals": dict(self.token_approvals),
            "operator_approvals": {
                k: dict(v) for k, v in self.operator_approvals.items()
            },
            "next_token_id": self.next_token_id,
        }

    @classmethod
    def from_dict(cls, data: dict, chain: "Chain" | None = None) -> "ERC721AToken":
        """Deserialize ledger state from dictionary."""
        token = cls(
            name=data.get("name", ""),
            symbol=data.get("symbol", ""),
            address=data.get("address", ""),
            owner=data.get("owner", ""),
            collection_size=int(data.get("collection_size", 0)),
            chain=chain,
        )
        token.owners = {int(k): v for k, v in data.get("owners", {}).items()}
        token.balances = {k: int(v) for k, v in data.get("balances", {}).items()}
        token.token_approvals = {
            int(k): v for k, v in data.get("token_approvals", {}).items()
        }
        token.operator_approvals = {
            k: dict(v) for k, v in data.get("operator_approvals", {}).items()
        }
        token.next_token_id = int(data.get("next_token_id", 1))
        return token
