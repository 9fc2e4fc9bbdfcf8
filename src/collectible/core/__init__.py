"""
Collectible Core Module

Core functionality for the collectible ledger including:
- Hosting chain and atomic operations
- Configuration, logging and metrics
- Ledger exception hierarchy
"""

__all__ = []
