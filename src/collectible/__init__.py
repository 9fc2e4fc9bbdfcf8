"""
Collectible - batch-minting collectible issuance ledger

Main Components:
- Ledger: ERC721 ownership tables with constant-cost batch minting
- Sale policy: public sale, allow-list pre-sale, treasury withdrawal
- Host: native-currency chain with atomic, serialized operations
"""

__version__ = "0.1.0"

__all__ = []
