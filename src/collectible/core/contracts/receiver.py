"""
ERC721 receiver protocol used by safe transfers.

A contract-like recipient accepts a safe transfer by returning
``ERC721_RECEIVED`` from ``on_erc721_received``. Plain accounts are never
checked.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..ledger_exceptions import TransferToNonERC721ReceiverImplementerError

if TYPE_CHECKING:
    from ..chain import Chain

logger = logging.getLogger(__name__)

# bytes4(keccak256("onERC721Received(address,address,uint256,bytes)"))
ERC721_RECEIVED = bytes.fromhex("150b7a02")


@runtime_checkable
class ERC721Receiver(Protocol):
    """Contract-like account able to accept ERC721 tokens."""

    def on_erc721_received(
        self, operator: str, from_address: str, token_id: int, data: bytes
    ) -> bytes:
        ...


def check_on_erc721_received(
    chain: "Chain" | None,
    operator: str,
    from_address: str,
    to_address: str,
    token_id: int,
    data: bytes = b"",
) -> None:
    """
    Verify that ``to_address`` accepts a safe transfer.

    Args:
        chain: Host used to look up contract accounts (no check without one)
        operator: Account performing the transfer
        from_address: Previous owner
        to_address: Recipient
        token_id: Token being transferred
        data: Opaque payload forwarded to the recipient

    Raises:
        TransferToNonERC721ReceiverImplementerError: If the recipient is a
            contract that does not return ``ERC721_RECEIVED``
    """
    if chain is None or not chain.is_contract(to_address):
        return

    receiver = chain.get_contract(to_address)
    if not isinstance(receiver, ERC721Receiver):
        raise TransferToNonERC721ReceiverImplementerError(
            f"{to_address[:10]} does not implement on_erc721_received",
            details={"to": to_address, "token_id": token_id},
        )

    try:
        retval = receiver.on_erc721_received(operator, from_address, token_id, data)
    except TransferToNonERC721ReceiverImplementerError:
        raise
    except Exception as exc:
        raise TransferToNonERC721ReceiverImplementerError(
            f"{to_address[:10]} rejected token {token_id}: {exc}",
            details={"to": to_address, "token_id": token_id},
        ) from exc

    if retval != ERC721_RECEIVED:
        raise TransferToNonERC721ReceiverImplementerError(
            f"{to_address[:10]} returned unexpected value for token {token_id}",
            details={"to": to_address, "token_id": token_id},
        )

    logger.debug(
        "ERC721 receiver accepted transfer",
        extra={"event": "collectible.receiver_accepted", "to": to_address[:10], "token_id": token_id},
    )
