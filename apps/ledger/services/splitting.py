"""
Expense splitting algorithms.

Pure functions with no database access. Balances are handled here in a
canonical signed form keyed by the unordered user pair:

    pair_key(a, b) == pair_key(b, a) == "<lower id>:<higher id>"

and the signed amount (integer cents) is positive when the lower id owes
the higher id, negative when the higher id owes the lower id. A pair with
no debt has no entry at all.

Example:
    Alice pays 90.00 split equally among Alice, Bob and Carol::

        >>> splits = {'alice': 3000, 'bob': 3000, 'carol': 3000}
        >>> apply_expense({}, splits, 'alice')
        {'alice:bob': -3000, 'alice:carol': -3000}

    i.e. Bob owes Alice 30.00 and Carol owes Alice 30.00.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Tuple
from uuid import UUID

from .money import from_cents, to_cents


def canonical_id(user_id) -> str:
    """
    Normalise a user id (UUID or any UUID string form) to its canonical text.

    Raises:
        ValueError: If ``user_id`` is not a UUID
    """
    return str(UUID(str(user_id)))


def pair_key(user_a, user_b) -> str:
    """Canonical key of the unordered pair ``{user_a, user_b}``."""
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}:{high}"


def to_signed(from_user, to_user, cents: int) -> Tuple[str, int]:
    """
    Convert a directed debt to its canonical ``(pair_key, signed)`` form.

    Args:
        from_user: Debtor id
        to_user: Creditor id
        cents: Positive amount owed

    Returns:
        Tuple of pair key and signed amount
    """
    key = pair_key(from_user, to_user)
    low = key.split(':', 1)[0]
    return key, cents if str(from_user) == low else -cents


def to_directed(key: str, signed: int) -> Tuple[str, str, int]:
    """Inverse of :func:`to_signed`: returns ``(from_user, to_user, cents)``."""
    low, high = key.split(':', 1)
    if signed > 0:
        return low, high, signed
    return high, low, -signed


def apply_expense(
    balances: Dict[str, int],
    splits: Dict[str, int],
    payer,
) -> Dict[str, int]:
    """
    Apply one expense to a snapshot of pair balances.

    Every participant other than the payer with a positive share now owes
    the payer that share. Against an existing debt in the opposite
    direction the share first reduces it, flipping the direction when the
    share is larger and removing the pair when both are equal; against a
    debt in the same direction (or none) it adds up.

    In the signed representation all of these cases collapse into a plain
    addition, which is what makes the operation order-independent within
    one expense.

    Args:
        balances: ``{pair_key: signed cents}`` snapshot, not modified
        splits: ``{user_id: owed cents}``
        payer: Id of the user who paid

    Returns:
        New ``{pair_key: signed cents}`` map without zero entries
    """
    payer = str(payer)
    result = dict(balances)

    for user_id, share in splits.items():
        user_id = str(user_id)
        if user_id == payer or share <= 0:
            continue

        key, delta = to_signed(user_id, payer, share)
        updated = result.get(key, 0) + delta
        if updated:
            result[key] = updated
        else:
            result.pop(key, None)

    return result


def touched_pairs(splits: Dict[str, int], payer) -> List[str]:
    """Pair keys an expense can change, in split order."""
    payer = str(payer)
    return [
        pair_key(user_id, payer)
        for user_id, share in splits.items()
        if str(user_id) != payer and share > 0
    ]


def splits_to_cents(splits: Dict[str, Decimal]) -> Dict[str, int]:
    return {str(user_id): to_cents(amount) for user_id, amount in splits.items()}


def calculate_equal_splits(total: Decimal, participants: Iterable) -> Dict[str, Decimal]:
    """
    Split ``total`` equally with cent precision (no rounding errors).

    Algorithm:
        1. Convert to cents
        2. Base share: ``total_cents // N``
        3. The first ``total_cents % N`` participants get one extra cent

    Args:
        total: Amount to split
        participants: User ids in the order remainder cents are handed out

    Returns:
        ``{user_id: Decimal}`` summing exactly to ``total``

    Raises:
        ValueError: If participants is empty
    """
    participants = [str(p) for p in participants]
    if not participants:
        raise ValueError("At least one participant required")

    total_cents = to_cents(total)
    base, remainder = divmod(total_cents, len(participants))

    return {
        user_id: from_cents(base + 1 if i < remainder else base)
        for i, user_id in enumerate(participants)
    }


def calculate_payer_excluded_splits(
    total: Decimal,
    participants: Iterable,
    payer,
) -> Dict[str, Decimal]:
    """
    Split ``total`` among everyone except the payer.

    The payer keeps an explicit zero share so the split still lists every
    participant.

    Raises:
        ValueError: If nobody other than the payer participates
    """
    payer = str(payer)
    participants = [str(p) for p in participants]
    others = [p for p in participants if p != payer]
    if not others:
        raise ValueError("At least one participant besides the payer required")

    shares = calculate_equal_splits(total, others)
    return {
        user_id: Decimal('0.00') if user_id == payer else shares[user_id]
        for user_id in participants
    }
