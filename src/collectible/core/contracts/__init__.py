"""
Collectible contracts.

This module provides:
- ERC721AToken: ERC721 ledger with single-record batch minting
- CollectibleToken: sale policy (public sale, allow-list, withdraw)
- ERC721 receiver protocol for safe transfers
"""

from .collectible import CollectibleToken
from .erc721a import ERC721AToken, NFTEvent
from .receiver import ERC721_RECEIVED, ERC721Receiver, check_on_erc721_received

__all__ = [
    "ERC721AToken",
    "CollectibleToken",
    "NFTEvent",
    "ERC721Receiver",
    "ERC721_RECEIVED",
    "check_on_erc721_received",
]
