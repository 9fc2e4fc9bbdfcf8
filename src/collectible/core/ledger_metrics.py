"""
Issuance instrumentation for the collectible ledger.

Provides Prometheus metrics that track minted tokens, transfers, reverted
operations and the ledger treasury, with helper functions that are safe to
call from inside ledger operations.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

tokens_minted_counter = Counter(
    "collectible_tokens_minted_total", "Total tokens issued by the ledger", ["phase"]
)

transfer_counter = Counter(
    "collectible_transfers_total", "Total token transfers between accounts", ["kind"]
)

revert_counter = Counter(
    "collectible_reverts_total",
    "Total ledger operations aborted and rolled back",
    ["reason"],
)

treasury_balance_gauge = Gauge(
    "collectible_treasury_balance_wei", "Current native-currency balance of a ledger", ["address"]
)


def record_mint(phase: str, quantity: int) -> None:
    """Increment the minted-token counter for a sale phase."""
    if quantity <= 0:
        return

    tokens_minted_counter.labels(phase=phase).inc(quantity)


def record_transfer(safe: bool) -> None:
    transfer_counter.labels(kind="safe" if safe else "plain").inc()


def record_revert(reason: str) -> None:
    revert_counter.labels(reason=reason).inc()


def update_treasury_balance(address: str, balance: int) -> None:
    """Refresh the treasury gauge after a payment or withdrawal."""
    if not address:
        return

    treasury_balance_gauge.labels(address=address).set(balance)
