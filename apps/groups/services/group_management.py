"""
Group management service.

Handles group CRUD operations with proper transaction safety.
"""

import logging
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.db.models import Prefetch, QuerySet

from apps.accounts.models import User
from apps.groups.models import Group, GroupMembership, GroupRole
from apps.ledger.models import Balance, Expense, ExpenseSplit, Settlement

from .exceptions import (
    GroupNotFoundError,
    InsufficientPermissionsError,
)

logger = logging.getLogger(__name__)


@transaction.atomic
def create_group(
    *,
    name: str,
    owner: User,
    description: str = '',
) -> Group:
    """
    Create a new group and add the creator as owner.

    The group and the owner membership are written in one transaction,
    so a group never exists without its creator as a member.

    Args:
        name: Group name
        owner: User who will own the group
        description: Optional group description

    Returns:
        Created Group instance
    """
    group = Group.objects.create(
        name=name,
        owner=owner,
        description=description,
    )

    GroupMembership.objects.create(
        user=owner,
        group=group,
        role=GroupRole.OWNER
    )

    logger.info("Group %s created by %s", group.id, owner.id)
    return group


def get_group_by_id(*, group_id: UUID) -> Group:
    """
    Get a group by ID with optimized queries.

    Uses select_related and prefetch_related to minimize database queries.

    Args:
        group_id: UUID of the group

    Returns:
        Group instance

    Raises:
        GroupNotFoundError: If group doesn't exist
    """
    try:
        return (
            Group.objects
            .select_related('owner')
            .prefetch_related(
                Prefetch(
                    'memberships',
                    queryset=GroupMembership.objects.select_related('user')
                )
            )
            .get(id=group_id)
        )
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")


def get_user_groups(*, user: User) -> QuerySet[Group]:
    """Groups the user belongs to, newest first."""
    return (
        Group.objects
        .filter(memberships__user=user)
        .select_related('owner')
        .prefetch_related('memberships__user')
        .distinct()
    )


@transaction.atomic
def update_group(
    *,
    group_id: UUID,
    user: User,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Group:
    """
    Update group details (admin only).

    Uses select_for_update to prevent concurrent modifications.

    Args:
        group_id: UUID of the group
        user: User performing the update (must be admin)
        name: New name (optional)
        description: New description (optional)

    Returns:
        Updated Group instance

    Raises:
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If user is not admin
    """
    try:
        group = (
            Group.objects
            .select_for_update()
            .get(id=group_id)
        )
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    if not group.is_admin(user):
        raise InsufficientPermissionsError("Only group admins can update the group")

    update_fields = ['updated_at']

    if name is not None:
        group.name = name
        update_fields.append('name')

    if description is not None:
        group.description = description
        update_fields.append('description')

    group.save(update_fields=update_fields)

    return group


@transaction.atomic
def delete_group(*, group_id: UUID, user: User) -> None:
    """
    Delete a group and everything recorded in it (owner only).

    The group row is locked first, so no expense or settlement can be
    committed against the group while its ledger is being removed. Either
    every record below is deleted or none is:
    - expense splits and expenses
    - balances
    - settlements
    - memberships
    - the group itself

    Args:
        group_id: UUID of the group
        user: User requesting deletion (must be owner)

    Raises:
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If user is not the owner
    """
    try:
        group = (
            Group.objects
            .select_for_update()
            .get(id=group_id)
        )
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    if group.owner_id != user.id:
        raise InsufficientPermissionsError("Only the group owner can delete the group")

    splits_deleted, _ = ExpenseSplit.objects.filter(expense__group=group).delete()
    expenses_deleted, _ = Expense.objects.filter(group=group).delete()
    balances_deleted, _ = Balance.objects.filter(group=group).delete()
    settlements_deleted, _ = Settlement.objects.filter(group=group).delete()
    GroupMembership.objects.filter(group=group).delete()
    group.delete()

    logger.info(
        "Group %s deleted by %s (%d expenses, %d splits, %d balances, %d settlements)",
        group_id, user.id, expenses_deleted, splits_deleted, balances_deleted, settlements_deleted,
    )
