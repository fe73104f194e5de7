"""
Balance store.

Repository over the ``balances`` table of one group. Reads return the
canonical signed snapshot used by the splitting algorithms and writes
apply the difference between two snapshots, so the service layer never
manipulates Balance rows directly.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from django.conf import settings
from django.db import IntegrityError, OperationalError, transaction

from apps.groups.models import Group
from apps.groups.services import GroupNotFoundError
from apps.ledger.models import Balance

from .exceptions import BalancePairConflictError, LedgerConflictError
from .money import from_cents, to_cents
from .splitting import pair_key, to_directed, to_signed

logger = logging.getLogger(__name__)


class BalanceStore:
    """
    Balance persistence for a single group.

    Example::

        store = BalanceStore(group)

        def work(store):
            keys = [pair_key(alice.id, bob.id)]
            old = store.snapshot(keys, lock=True)
            new = apply_expense(old, {str(bob.id): 1000}, alice.id)
            store.apply(old, new)

        store.transact(work)
    """

    def __init__(self, group: Group):
        self.group = group

    def _queryset(self):
        return Balance.objects.filter(group_id=self.group.id)

    def get(self, user_a, user_b) -> Optional[Balance]:
        """Balance record of the unordered pair, or None."""
        return self._queryset().filter(pair_key=pair_key(user_a, user_b)).first()

    def snapshot(self, pair_keys: Iterable[str], lock: bool = False) -> Dict[str, int]:
        """
        Read the given pairs into ``{pair_key: signed cents}``.

        Args:
            pair_keys: Pairs to read; missing pairs are simply absent
            lock: Lock the rows with select_for_update (must be in a transaction)

        Returns:
            Canonical signed snapshot
        """
        queryset = self._queryset().filter(pair_key__in=list(pair_keys)).order_by('pair_key')
        if lock:
            queryset = queryset.select_for_update()

        snapshot = {}
        for balance in queryset:
            key, signed = to_signed(balance.from_user_id, balance.to_user_id, to_cents(balance.amount))
            snapshot[key] = signed
        return snapshot

    def all(self) -> List[Balance]:
        return list(self._queryset().select_related('from_user', 'to_user'))

    def apply(self, old: Dict[str, int], new: Dict[str, int]) -> None:
        """
        Write the difference between two snapshots.

        Pairs that dropped to zero are deleted, changed pairs are updated
        in place (including a change of direction) and new pairs are
        created. Must run inside the caller's transaction.
        """
        # New pairs are created in the order they appear in ``new``
        keys = list(new) + [key for key in old if key not in new]
        changed = [key for key in keys if old.get(key, 0) != new.get(key, 0)]
        if not changed:
            return

        rows = {b.pair_key: b for b in self._queryset().filter(pair_key__in=changed)}

        for key in changed:
            signed = new.get(key, 0)
            row = rows.get(key)

            if not signed:
                if row is not None:
                    row.delete()
                continue

            from_user, to_user, cents = to_directed(key, signed)
            if row is not None:
                row.from_user_id = from_user
                row.to_user_id = to_user
                row.amount = from_cents(cents)
                row.save(update_fields=['from_user', 'to_user', 'amount', 'updated_at'])
            else:
                self._create(key, from_user, to_user, cents)

    def _create(self, key, from_user, to_user, cents):
        # Own savepoint: a duplicate pair must not break the outer transaction
        try:
            with transaction.atomic():
                Balance.objects.create(
                    group_id=self.group.id,
                    from_user_id=from_user,
                    to_user_id=to_user,
                    amount=from_cents(cents),
                    pair_key=key,
                )
        except IntegrityError as exc:
            if self._queryset().filter(pair_key=key).exists():
                raise BalancePairConflictError(
                    f"Balance {key} was created by a concurrent transaction"
                ) from exc
            raise

    def transact(self, fn: Callable[['BalanceStore'], object], max_retries: Optional[int] = None):
        """
        Run ``fn(store)`` atomically, retrying when a concurrent writer wins a balance pair.

        Each attempt is its own transaction and starts by locking the group
        row, so an attempt never runs against a group deleted meanwhile.
        Domain exceptions and integrity errors other than a lost pair race
        roll back and propagate unchanged.

        Args:
            fn: Callable receiving this store
            max_retries: Attempts before giving up (default LEDGER_TRANSACTION_RETRIES)

        Returns:
            Whatever ``fn`` returns

        Raises:
            GroupNotFoundError: If the group no longer exists
            LedgerConflictError: If every attempt failed with a database conflict
        """
        attempts = max_retries or settings.LEDGER_TRANSACTION_RETRIES

        for attempt in range(1, attempts + 1):
            try:
                with transaction.atomic():
                    if not Group.objects.select_for_update().filter(id=self.group.id).exists():
                        raise GroupNotFoundError(f"Group with ID {self.group.id} not found")
                    return fn(self)

            except (BalancePairConflictError, OperationalError) as exc:
                logger.warning(
                    "Ledger transaction conflict in group %s (attempt %d/%d): %s",
                    self.group.id, attempt, attempts, exc,
                )
                if attempt == attempts:
                    raise LedgerConflictError(
                        f"Ledger update failed after {attempts} attempts"
                    ) from exc

        # Should never reach here
        raise LedgerConflictError("Unexpected error in ledger transaction")
