"""
Domain-specific exceptions for the ledger app.

Membership and group lookups reuse the groups app exceptions
(``GroupNotFoundError``, ``NotMemberError``); everything raised here is
about expenses, balances and settlements.
"""


class LedgerServiceError(Exception):
    """Base exception for all ledger service errors."""
    pass


class BalanceNotFoundError(LedgerServiceError):
    """Raised when no balance exists in the requested direction."""
    pass


class LedgerValidationError(LedgerServiceError):
    """Raised when input is rejected before anything is written."""
    pass


class InvalidExpenseError(LedgerValidationError):
    pass


class InvalidSplitError(LedgerValidationError):
    """Raised when a split map is empty, negative or does not sum to the amount."""
    pass


class InvalidSettlementError(LedgerValidationError):
    pass


class SettlementExceedsBalanceError(LedgerValidationError):
    """Raised when a settlement is larger than the outstanding balance."""
    pass


class LedgerConflictError(LedgerServiceError):
    """Raised when a ledger transaction keeps failing due to contention."""
    pass


class BalancePairConflictError(LedgerServiceError):
    """Raised when another transaction created the same balance pair first."""
    pass
