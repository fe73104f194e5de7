"""
Expense management service.

Records group expenses and folds each one into the pairwise balances in
the same transaction.
"""

import logging
from datetime import date as date_type
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID

from django.conf import settings
from django.db.models import QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.groups.services import get_group_for_member
from apps.ledger.models import Expense, ExpenseCategory, ExpenseSplit, SplitType
from apps.ledger.notifications import notify_large_expense

from .balance_store import BalanceStore
from .exceptions import InvalidExpenseError, InvalidSplitError
from .money import quantize
from .splitting import (
    apply_expense,
    calculate_equal_splits,
    canonical_id,
    calculate_payer_excluded_splits,
    splits_to_cents,
    touched_pairs,
)

logger = logging.getLogger(__name__)


def _build_splits(*, amount, split_type, splits, member_ids, payer_id) -> Dict[str, Decimal]:
    """Return the explicit split map, generating it when none was given."""
    if splits is not None:
        try:
            return {canonical_id(user_id): quantize(share) for user_id, share in splits.items()}
        except (ValueError, ArithmeticError):
            raise InvalidSplitError("Splits must map user ids to amounts")

    try:
        if split_type == SplitType.EQUAL:
            return calculate_equal_splits(amount, member_ids)
        if split_type == SplitType.PAYER_EXCLUDED:
            return calculate_payer_excluded_splits(amount, member_ids, payer_id)
    except ValueError as e:
        raise InvalidSplitError(str(e))

    raise InvalidSplitError("Custom splits require an explicit split map")


def _validate_splits(*, amount: Decimal, splits: Dict[str, Decimal], member_ids) -> None:
    if not splits:
        raise InvalidSplitError("Split map cannot be empty")

    outsiders = [user_id for user_id in splits if user_id not in member_ids]
    if outsiders:
        raise InvalidSplitError(f"Split users are not group members: {', '.join(outsiders)}")

    if any(share < 0 for share in splits.values()):
        raise InvalidSplitError("Split amounts cannot be negative")

    if amount > 0 and not any(share > 0 for share in splits.values()):
        raise InvalidSplitError("At least one split amount must be positive")

    difference = abs(sum(splits.values(), Decimal('0.00')) - amount)
    if difference > settings.LEDGER_SPLIT_TOLERANCE:
        raise InvalidSplitError(
            f"Splits sum to {sum(splits.values())} but the expense amount is {amount}"
        )


def add_group_expense(
    *,
    group_id: UUID,
    user: User,
    description: str,
    amount: Decimal,
    category: str = ExpenseCategory.OTHER,
    date: Optional[date_type] = None,
    paid_by: Optional[UUID] = None,
    split_type: str = SplitType.EQUAL,
    splits: Optional[Dict[str, Decimal]] = None,
) -> Expense:
    """
    Record an expense and update the group's balances.

    Every participant other than the payer ends up owing the payer their
    share, netted against whatever the payer already owed them. The
    expense, its split rows and every balance change are committed
    together or not at all.

    When ``splits`` is omitted the map is generated from the group's
    members: ``equal`` divides among everyone, ``payer_excluded`` among
    everyone but the payer. ``custom`` always needs an explicit map.

    Args:
        group_id: UUID of the group
        user: Member recording the expense
        description: What was paid for
        amount: Total amount paid (>= 0)
        category: One of ExpenseCategory
        date: Day of the expense (default today)
        paid_by: UUID of the paying member (default ``user``)
        split_type: One of SplitType
        splits: Optional ``{user_id: owed amount}`` map

    Returns:
        Created Expense instance

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
        InvalidExpenseError: If description, amount, category or payer is invalid
        InvalidSplitError: If the split map is rejected
        LedgerConflictError: If the balances could not be updated
    """
    if not description or not description.strip():
        raise InvalidExpenseError("Description is required")

    amount = quantize(amount)
    if amount < 0:
        raise InvalidExpenseError("Amount cannot be negative")

    if category not in ExpenseCategory.values:
        raise InvalidExpenseError(f"Unknown category: {category}")

    if split_type not in SplitType.values:
        raise InvalidExpenseError(f"Unknown split type: {split_type}")

    group = get_group_for_member(group_id=group_id, user=user)
    member_ids = [str(member_id) for member_id in group.member_ids()]

    try:
        payer_id = canonical_id(paid_by or user.id)
    except ValueError:
        raise InvalidExpenseError("The payer must be a user id")
    if payer_id not in member_ids:
        raise InvalidExpenseError("The payer is not a member of this group")

    splits = _build_splits(
        amount=amount,
        split_type=split_type,
        splits=splits,
        member_ids=member_ids,
        payer_id=payer_id,
    )
    _validate_splits(amount=amount, splits=splits, member_ids=member_ids)

    split_cents = splits_to_cents(splits)
    expense_date = date or timezone.localdate()

    def record(store):
        old = store.snapshot(touched_pairs(split_cents, payer_id), lock=True)
        new = apply_expense(old, split_cents, payer_id)

        expense = Expense.objects.create(
            group=group,
            description=description.strip(),
            amount=amount,
            category=category,
            date=expense_date,
            paid_by_id=payer_id,
            split_type=split_type,
        )
        ExpenseSplit.objects.bulk_create([
            ExpenseSplit(expense=expense, user_id=user_id, amount=share)
            for user_id, share in splits.items()
        ])
        store.apply(old, new)

        notify_large_expense(expense, member_ids)
        return expense

    expense = BalanceStore(group).transact(record)

    logger.info(
        "Expense %s of %s recorded in group %s (paid by %s, %d splits)",
        expense.id, amount, group.id, payer_id, len(splits),
    )
    return expense


def get_group_expenses(*, group_id: UUID, user: User) -> QuerySet[Expense]:
    """
    Get a group's expenses, newest first.

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
    """
    group = get_group_for_member(group_id=group_id, user=user)

    return (
        Expense.objects
        .filter(group=group)
        .select_related('paid_by', 'group')
        .prefetch_related('splits')
        .order_by('-created_at')
    )
