"""
Membership management service.

Handles group membership operations with concurrency protection.
"""

import logging
from uuid import UUID

from django.db import transaction, IntegrityError
from django.db.models import QuerySet

from apps.accounts.models import User
from apps.groups.models import Group, GroupMembership, GroupRole

from .exceptions import (
    GroupNotFoundError,
    UserNotFoundError,
    AlreadyMemberError,
    NotMemberError,
    OwnerCannotLeaveError,
    CannotRemoveOwnerError,
    CannotChangeOwnerRoleError,
    InsufficientPermissionsError,
)

logger = logging.getLogger(__name__)


def get_group_for_member(*, group_id: UUID, user: User, lock: bool = False) -> Group:
    """
    Load a group and verify that ``user`` belongs to it.

    Args:
        group_id: UUID of the group
        user: User who must be a member
        lock: Read the group row with select_for_update

    Returns:
        Group instance

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
    """
    queryset = Group.objects.all()
    if lock:
        queryset = queryset.select_for_update()

    try:
        group = queryset.get(id=group_id)
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    if not group.has_member(user):
        raise NotMemberError(f"User is not a member of {group.name}")

    return group


@transaction.atomic
def add_member(
    *,
    group_id: UUID,
    added_by: User,
    email: str
) -> GroupMembership:
    """
    Add a registered user to a group by email.

    Uses row-level locking on the group to serialize concurrent additions.

    Args:
        group_id: UUID of the group
        added_by: Member performing the addition
        email: Email of the user to add

    Returns:
        Created GroupMembership instance

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If added_by is not a member
        UserNotFoundError: If no user has this email
        AlreadyMemberError: If user is already a member
    """
    group = get_group_for_member(group_id=group_id, user=added_by, lock=True)

    try:
        user = User.objects.get(email__iexact=email.strip())
    except User.DoesNotExist:
        raise UserNotFoundError(f"No user found with email {email}")

    if group.has_member(user):
        raise AlreadyMemberError(f"User is already a member of {group.name}")

    try:
        membership = GroupMembership.objects.create(
            user=user,
            group=group,
            role=GroupRole.MEMBER
        )
    except IntegrityError:
        raise AlreadyMemberError(f"User is already a member of {group.name}")

    logger.info("User %s added to group %s by %s", user.id, group.id, added_by.id)
    return membership


@transaction.atomic
def leave_group(*, group_id: UUID, user: User) -> None:
    """
    Leave a group.

    Owner cannot leave their own group - they must delete it instead.

    Args:
        group_id: UUID of the group
        user: User leaving the group

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If user is not a member
        OwnerCannotLeaveError: If user is the owner
    """
    try:
        group = Group.objects.get(id=group_id)
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    if group.owner_id == user.id:
        raise OwnerCannotLeaveError("Group owner cannot leave. Delete the group instead.")

    try:
        membership = (
            GroupMembership.objects
            .select_for_update()
            .get(user=user, group=group)
        )
    except GroupMembership.DoesNotExist:
        raise NotMemberError(f"User is not a member of {group.name}")

    membership.delete()
    logger.info("User %s left group %s", user.id, group.id)


@transaction.atomic
def remove_member(
    *,
    group_id: UUID,
    user_id: UUID,
    removed_by: User
) -> None:
    """
    Remove a member from a group.

    Owners and admins may remove anyone but the owner; any member may
    remove themselves.

    Args:
        group_id: UUID of the group
        user_id: UUID of the user to remove
        removed_by: User performing the removal

    Raises:
        GroupNotFoundError: If group doesn't exist
        NotMemberError: If target user is not a member
        CannotRemoveOwnerError: If trying to remove the owner
        InsufficientPermissionsError: If removed_by is neither admin nor the target
    """
    try:
        group = Group.objects.get(id=group_id)
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    if str(group.owner_id) == str(user_id):
        raise CannotRemoveOwnerError("Cannot remove the group owner")

    is_self = str(removed_by.id) == str(user_id)
    if not is_self and not group.is_admin(removed_by):
        raise InsufficientPermissionsError("Only group admins can remove other members")

    try:
        membership = (
            GroupMembership.objects
            .select_for_update()
            .get(group=group, user_id=user_id)
        )
    except GroupMembership.DoesNotExist:
        raise NotMemberError("User is not a member of this group")

    membership.delete()
    logger.info("User %s removed from group %s by %s", user_id, group.id, removed_by.id)


@transaction.atomic
def update_member_role(
    *,
    group_id: UUID,
    user_id: UUID,
    new_role: str,
    updated_by: User
) -> GroupMembership:
    """
    Promote a member to admin or demote an admin to member (owner only).

    Args:
        group_id: UUID of the group
        user_id: UUID of the user whose role to update
        new_role: New role ('admin' or 'member')
        updated_by: User performing the update (must be the owner)

    Returns:
        Updated GroupMembership instance

    Raises:
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If updated_by is not the owner
        NotMemberError: If target user is not a member
        CannotChangeOwnerRoleError: If trying to change the owner's role
        ValueError: If new_role is invalid
    """
    valid_roles = [GroupRole.ADMIN, GroupRole.MEMBER]
    if new_role not in valid_roles:
        raise ValueError(f"Invalid role. Must be one of: {valid_roles}")

    try:
        group = Group.objects.get(id=group_id)
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    if group.owner_id != updated_by.id:
        raise InsufficientPermissionsError("Only the group owner can change member roles")

    if str(group.owner_id) == str(user_id):
        raise CannotChangeOwnerRoleError("Cannot change the owner's role")

    try:
        membership = (
            GroupMembership.objects
            .select_for_update()
            .get(group=group, user_id=user_id)
        )
    except GroupMembership.DoesNotExist:
        raise NotMemberError("User is not a member of this group")

    membership.role = new_role
    membership.save(update_fields=['role'])

    logger.info("User %s is now %s in group %s", user_id, new_role, group.id)
    return membership


def get_group_members(*, group_id: UUID) -> QuerySet[GroupMembership]:
    """
    Get all members of a group with optimized queries.

    Args:
        group_id: UUID of the group

    Returns:
        QuerySet of GroupMembership instances in join order

    Raises:
        GroupNotFoundError: If group doesn't exist
    """
    if not Group.objects.filter(id=group_id).exists():
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    return (
        GroupMembership.objects
        .filter(group_id=group_id)
        .select_related('user')
        .order_by('joined_at')
    )
