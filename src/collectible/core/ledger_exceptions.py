"""
Ledger-specific exception hierarchy for the collectible ledger.

Every failure of a ledger operation is a typed exception carrying the revert
``reason`` an external caller sees (``"ZeroQuantity"``, ``"EthValueTooLow"``,
...). Failures are raised synchronously and abort the whole operation; none
of them are retried by the ledger.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class LedgerError(Exception):
    """Base exception for all ledger errors.

    Attributes:
        message: Human-readable error description
        reason: Revert name surfaced to the caller
        details: Additional context about the error
        recoverable: Whether the operation can be retried as-is
    """

    reason = "LedgerError"
    recoverable = False

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        message = message or self.reason
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Input Validation Errors ====================


class InputValidationError(LedgerError):
    """Raised when an argument is malformed or out of range."""
    pass


class ZeroQuantityError(InputValidationError):
    """Raised when a mint requests zero (or fewer) tokens."""
    reason = "ZeroQuantity"


class ZeroAddressError(InputValidationError):
    """Raised when the empty account is used where a real account is required."""
    reason = "ZeroAddress"


class QueryForNonExistentTokenError(InputValidationError):
    """Raised when a token identifier is outside the minted range."""
    reason = "QueryForNonExistentToken"


class ArrayLengthMismatchError(InputValidationError):
    """Raised when paired account/quota lists differ in length."""
    reason = "ArrayLengthMismatch"


class InvalidQuotaError(InputValidationError):
    """Raised when an allow-list quota is negative."""
    reason = "InvalidQuota"


# ==================== Policy Errors ====================


class PolicyViolationError(LedgerError):
    """Raised when an issuance rule (price, caps, supply) is violated."""
    pass


class MaxUserMintLimitWasReachedError(PolicyViolationError):
    """Raised when a public mint would exceed the per-account cap."""
    reason = "MaxUserMintLimitWasReached"


class MaxWhitelistMintLimitExceededError(PolicyViolationError):
    """Raised when a pre-sale mint asks for more than the remaining quota."""
    reason = "MaxWhitelistMintLimitExceeded"


class EthValueTooLowError(PolicyViolationError):
    """Raised when the payment does not cover price times quantity."""
    reason = "EthValueTooLow"


class CollectionSoldOutError(PolicyViolationError):
    """Raised when a mint would go past the collection size."""
    reason = "CollectionSoldOut"


# ==================== Authorization Errors ====================


class AuthorizationError(LedgerError):
    """Raised when the caller lacks the right to perform an operation."""
    pass


class CallerNotOwnerNorApprovedError(AuthorizationError):
    reason = "CallerNotOwnerNorApproved"


class ApprovalToCurrentOwnerError(AuthorizationError):
    reason = "ApprovalToCurrentOwner"


class ApproveToCallerError(AuthorizationError):
    reason = "ApproveToCaller"


class NotAuthorizedError(AuthorizationError):
    """Raised when a non-administrator calls an administrator-only operation."""
    reason = "NotAuthorized"


# ==================== State Consistency Errors ====================


class StateConsistencyError(LedgerError):
    """Raised when the request disagrees with the current ledger state."""
    pass


class TransferFromIncorrectAddressError(StateConsistencyError):
    reason = "TransferFromIncorrectAddress"


class NotWhitelistedOrAlreadyMintedError(StateConsistencyError):
    reason = "NotWhitelistedOrAlreadyMinted"


class TransferToNonERC721ReceiverImplementerError(StateConsistencyError):
    """Raised when a contract recipient does not accept a safe transfer."""
    reason = "TransferToNonERC721ReceiverImplementer"


# ==================== Host Errors ====================


class HostError(LedgerError):
    """Raised by the hosting chain (native currency movements, deployment)."""
    pass


class InsufficientFundsError(HostError):
    """Raised when an account cannot cover a native-currency transfer."""
    reason = "InsufficientFunds"
    recoverable = True  # Can retry after funding the account


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and revert reason
    """
    context = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, LedgerError):
        context["revert_reason"] = exc.reason
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    return context
