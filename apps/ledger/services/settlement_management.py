"""
Settlement management service.

A settlement records money paid outside the system and reduces the
matching balance by the same amount, atomically.
"""

import logging
from datetime import date as date_type
from decimal import Decimal
from typing import Optional
from uuid import UUID

from django.db.models import QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.groups.services import get_group_for_member
from apps.ledger.models import Settlement, SettlementStatus

from .balance_store import BalanceStore
from .exceptions import (
    BalanceNotFoundError,
    InvalidSettlementError,
    SettlementExceedsBalanceError,
)
from .money import from_cents, quantize, to_cents
from .splitting import canonical_id, pair_key, to_directed, to_signed

logger = logging.getLogger(__name__)


def record_settlement(
    *,
    group_id: UUID,
    user: User,
    from_user_id: UUID,
    to_user_id: UUID,
    amount: Decimal,
    date: Optional[date_type] = None,
    notes: str = '',
) -> Settlement:
    """
    Record that ``from_user`` paid ``to_user`` and reduce their balance.

    The balance ``from_user -> to_user`` is re-read under a row lock inside
    the transaction, so two concurrent settlements cannot both spend the
    same debt. Paying the full balance removes it; paying more than it is
    rejected.

    Args:
        group_id: UUID of the group
        user: Member recording the settlement
        from_user_id: UUID of the paying debtor
        to_user_id: UUID of the creditor
        amount: Amount paid (> 0)
        date: Day of the payment (default today)
        notes: Optional free text

    Returns:
        Created Settlement instance

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
        InvalidSettlementError: If amount or users are invalid
        BalanceNotFoundError: If from_user does not owe to_user
        SettlementExceedsBalanceError: If amount is larger than the balance
        LedgerConflictError: If the balance could not be updated
    """
    amount = quantize(amount)
    if amount <= 0:
        raise InvalidSettlementError("Settlement amount must be positive")

    try:
        from_user_id, to_user_id = canonical_id(from_user_id), canonical_id(to_user_id)
    except ValueError:
        raise InvalidSettlementError("Settlement users must be user ids")
    if from_user_id == to_user_id:
        raise InvalidSettlementError("Cannot settle a balance with yourself")

    group = get_group_for_member(group_id=group_id, user=user)
    amount_cents = to_cents(amount)
    key = pair_key(from_user_id, to_user_id)

    def settle(store):
        old = store.snapshot([key], lock=True)
        if key not in old:
            raise BalanceNotFoundError("No balance found between these users")

        debtor, creditor, owed = to_directed(key, old[key])
        if (debtor, creditor) != (from_user_id, to_user_id):
            raise BalanceNotFoundError("No balance found between these users")

        if amount_cents > owed:
            raise SettlementExceedsBalanceError(
                f"Settlement amount {amount} exceeds the balance of {from_cents(owed)}"
            )

        remaining = owed - amount_cents
        new = {key: to_signed(debtor, creditor, remaining)[1]} if remaining else {}
        store.apply(old, new)

        return Settlement.objects.create(
            group=group,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=amount,
            date=date or timezone.localdate(),
            notes=notes,
            status=SettlementStatus.COMPLETED,
        )

    settlement = BalanceStore(group).transact(settle)

    logger.info(
        "Settlement %s of %s recorded in group %s (%s -> %s)",
        settlement.id, amount, group.id, from_user_id, to_user_id,
    )
    return settlement


def get_group_settlements(*, group_id: UUID, user: User) -> QuerySet[Settlement]:
    """
    Get a group's settlements, newest first.

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
    """
    group = get_group_for_member(group_id=group_id, user=user)

    return (
        Settlement.objects
        .filter(group=group)
        .select_related('from_user', 'to_user')
        .order_by('-created_at')
    )
