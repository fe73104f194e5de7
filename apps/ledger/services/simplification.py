"""
Debt simplification.

Collapses a group's pairwise balances into net positions and proposes a
short list of transfers that settles everybody. The greedy matching is a
heuristic: it never produces more than ``debtors + creditors - 1``
transfers, but it is not guaranteed to find the global minimum.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Tuple
from uuid import UUID

from apps.accounts.models import User
from apps.groups.services import get_group_for_member
from apps.ledger.models import Balance

from .balance_store import BalanceStore
from .money import SETTLE_EPSILON_CENTS, from_cents, to_cents


class Transfer(NamedTuple):
    from_user: str
    to_user: str
    amount: int


def net_positions(balances: Iterable[Tuple[str, str, int]]) -> Dict[str, int]:
    """
    Net position of every user appearing in ``balances``.

    Args:
        balances: ``(from_user, to_user, cents)`` triples

    Returns:
        ``{user_id: cents}``, positive when the user is owed money, in order
        of first appearance; users at exactly zero are left out
    """
    net: Dict[str, int] = {}
    for from_user, to_user, cents in balances:
        from_user, to_user = str(from_user), str(to_user)
        net[from_user] = net.get(from_user, 0) - cents
        net[to_user] = net.get(to_user, 0) + cents

    return {user_id: amount for user_id, amount in net.items() if amount}


def simplify_debts(net: Dict[str, int]) -> List[Transfer]:
    """
    Greedy settlement plan for the given net positions.

    Debtors and creditors are each sorted by magnitude, largest first
    (ties keep their original order). The head debtor pays the head
    creditor the smaller of the two magnitudes; whoever is left with less
    than one cent is dropped and matching continues with the next one.
    The lists are not re-sorted between steps.

    Args:
        net: ``{user_id: cents}``, summing to zero

    Returns:
        List of Transfer in the order they were produced
    """
    debtors = [[user_id, -amount] for user_id, amount in net.items() if amount < 0]
    creditors = [[user_id, amount] for user_id, amount in net.items() if amount > 0]

    # sorted() is stable
    debtors = sorted(debtors, key=lambda entry: -entry[1])
    creditors = sorted(creditors, key=lambda entry: -entry[1])

    transfers = []
    d = c = 0
    while d < len(debtors) and c < len(creditors):
        debtor, creditor = debtors[d], creditors[c]
        amount = min(debtor[1], creditor[1])

        transfers.append(Transfer(debtor[0], creditor[0], amount))

        debtor[1] -= amount
        creditor[1] -= amount

        if debtor[1] < SETTLE_EPSILON_CENTS:
            d += 1
        if creditor[1] < SETTLE_EPSILON_CENTS:
            c += 1

    return transfers


def _balance_triples(balances: Iterable[Balance]):
    return [
        (b.from_user_id, b.to_user_id, to_cents(b.amount))
        for b in balances
    ]


def get_group_balances(*, group_id: UUID, user: User) -> List[Balance]:
    """
    Get all current balances of a group.

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
    """
    group = get_group_for_member(group_id=group_id, user=user)
    return BalanceStore(group).all()


def get_net_positions(*, group_id: UUID, user: User) -> Dict[str, Decimal]:
    """
    Net position of every group member with a non-zero balance.

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
    """
    balances = get_group_balances(group_id=group_id, user=user)
    net = net_positions(_balance_triples(balances))
    return {user_id: from_cents(cents) for user_id, cents in net.items()}


def calculate_simplified_debts(*, group_id: UUID, user: User) -> List[dict]:
    """
    Suggested transfers that settle all debts of a group.

    Read only: nothing is recorded until members submit settlements.

    Args:
        group_id: UUID of the group
        user: Requesting member

    Returns:
        List of ``{'from_user', 'to_user', 'amount'}`` dicts with Decimal amounts

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
    """
    balances = get_group_balances(group_id=group_id, user=user)
    transfers = simplify_debts(net_positions(_balance_triples(balances)))

    return [
        {
            'from_user': transfer.from_user,
            'to_user': transfer.to_user,
            'amount': from_cents(transfer.amount),
        }
        for transfer in transfers
    ]
