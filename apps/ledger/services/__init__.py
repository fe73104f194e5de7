"""
Ledger app services layer.

Expenses, settlements and balances of a group. Every operation that
touches balances runs through BalanceStore.transact, so a balance change
and the record that caused it are always committed together.
"""

from .exceptions import (
    LedgerServiceError,
    BalanceNotFoundError,
    LedgerValidationError,
    InvalidExpenseError,
    InvalidSplitError,
    InvalidSettlementError,
    SettlementExceedsBalanceError,
    LedgerConflictError,
    BalancePairConflictError,
)

from .balance_store import BalanceStore

from .expense_management import (
    add_group_expense,
    get_group_expenses,
)

from .settlement_management import (
    record_settlement,
    get_group_settlements,
)

from .simplification import (
    Transfer,
    net_positions,
    simplify_debts,
    calculate_simplified_debts,
    get_group_balances,
    get_net_positions,
)


__all__ = [
    # Exceptions
    'LedgerServiceError',
    'BalanceNotFoundError',
    'LedgerValidationError',
    'InvalidExpenseError',
    'InvalidSplitError',
    'InvalidSettlementError',
    'SettlementExceedsBalanceError',
    'LedgerConflictError',
    'BalancePairConflictError',

    # Balance Store
    'BalanceStore',

    # Expenses
    'add_group_expense',
    'get_group_expenses',

    # Settlements
    'record_settlement',
    'get_group_settlements',

    # Simplification
    'Transfer',
    'net_positions',
    'simplify_debts',
    'calculate_simplified_debts',
    'get_group_balances',
    'get_net_positions',
]
