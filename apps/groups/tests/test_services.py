"""
Service layer unit tests for groups app.

Tests cover:
- Group CRUD and permissions
- Membership changes
- Cascade delete of a group's ledger
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from unittest.mock import patch

from apps.groups.models import Group, GroupMembership, GroupRole
from apps.groups.services import (
    create_group,
    get_group_by_id,
    get_user_groups,
    update_group,
    delete_group,
    add_member,
    leave_group,
    remove_member,
    update_member_role,
    get_group_members,
    get_group_for_member,
)
from apps.groups.services.exceptions import (
    GroupNotFoundError,
    UserNotFoundError,
    AlreadyMemberError,
    NotMemberError,
    InsufficientPermissionsError,
    OwnerCannotLeaveError,
    CannotRemoveOwnerError,
    CannotChangeOwnerRoleError,
)
from apps.ledger.models import Balance, Expense, ExpenseSplit, Settlement
from apps.ledger.services import add_group_expense, record_settlement


# =============================================================================
# Group Management Service Tests
# =============================================================================

@pytest.mark.django_db
class TestGroupManagement:
    """Tests for group_management.py service functions."""

    def test_create_group_success(self, group_owner):
        """Creating a group also creates owner membership."""
        group = create_group(
            name="Trip to Lisbon",
            owner=group_owner,
            description="Summer trip"
        )

        assert group.name == "Trip to Lisbon"
        assert group.owner == group_owner
        assert group.description == "Summer trip"

        membership = GroupMembership.objects.get(group=group, user=group_owner)
        assert membership.role == GroupRole.OWNER

    def test_get_group_by_id_success(self, group):
        """Can retrieve group by ID."""
        retrieved = get_group_by_id(group_id=group.id)

        assert retrieved.id == group.id
        assert retrieved.name == group.name

    def test_get_group_by_id_not_found(self):
        """Raises GroupNotFoundError if group doesn't exist."""
        with pytest.raises(GroupNotFoundError):
            get_group_by_id(group_id=uuid4())

    def test_get_user_groups(self, group, group_owner, member_user):
        """Only groups the user belongs to are returned."""
        create_group(name="Someone else's group", owner=member_user)

        groups = list(get_user_groups(user=group_owner))

        assert groups == [group]

    def test_update_group_success(self, group, group_owner):
        """Owner can update group details."""
        updated = update_group(
            group_id=group.id,
            user=group_owner,
            name="Flat 5C",
            description="Moved"
        )

        assert updated.name == "Flat 5C"
        assert updated.description == "Moved"

    def test_update_group_by_admin(self, group_with_members, admin_user):
        updated = update_group(group_id=group_with_members.id, user=admin_user, name="Renamed")

        assert updated.name == "Renamed"

    def test_update_group_insufficient_permissions(self, group_with_members, member_user):
        """Regular member cannot update group."""
        with pytest.raises(InsufficientPermissionsError):
            update_group(
                group_id=group_with_members.id,
                user=member_user,
                name="Hacked"
            )

    def test_delete_group_not_found(self, group_owner):
        with pytest.raises(GroupNotFoundError):
            delete_group(group_id=uuid4(), user=group_owner)

    def test_delete_group_by_non_owner(self, group_with_members, admin_user):
        """Only the owner can delete, even admins cannot."""
        with pytest.raises(InsufficientPermissionsError):
            delete_group(group_id=group_with_members.id, user=admin_user)

        assert Group.objects.filter(id=group_with_members.id).exists()


@pytest.mark.django_db
class TestDeleteGroupCascade:
    """Deleting a group removes its whole ledger."""

    @pytest.fixture
    def group_with_ledger(self, group_with_members, group_owner, admin_user, member_user):
        add_group_expense(
            group_id=group_with_members.id,
            user=group_owner,
            description="Groceries",
            amount=Decimal('90.00'),
        )
        record_settlement(
            group_id=group_with_members.id,
            user=member_user,
            from_user_id=member_user.id,
            to_user_id=group_owner.id,
            amount=Decimal('10.00'),
        )
        return group_with_members

    def test_delete_group_removes_everything(self, group_with_ledger, group_owner):
        group_id = group_with_ledger.id
        assert Expense.objects.filter(group_id=group_id).exists()
        assert Balance.objects.filter(group_id=group_id).exists()
        assert Settlement.objects.filter(group_id=group_id).exists()

        delete_group(group_id=group_id, user=group_owner)

        assert not Group.objects.filter(id=group_id).exists()
        assert not GroupMembership.objects.filter(group_id=group_id).exists()
        assert not Expense.objects.filter(group_id=group_id).exists()
        assert not ExpenseSplit.objects.filter(expense__group_id=group_id).exists()
        assert not Balance.objects.filter(group_id=group_id).exists()
        assert not Settlement.objects.filter(group_id=group_id).exists()

    def test_delete_group_leaves_other_groups_alone(self, group_with_ledger, group_owner, member_user):
        other = create_group(name="Other", owner=group_owner)
        add_member(group_id=other.id, added_by=group_owner, email=member_user.email)
        add_group_expense(
            group_id=other.id,
            user=group_owner,
            description="Taxi",
            amount=Decimal('20.00'),
        )

        delete_group(group_id=group_with_ledger.id, user=group_owner)

        assert Expense.objects.filter(group=other).count() == 1
        assert Balance.objects.filter(group=other).count() == 1

    def test_delete_group_is_all_or_nothing(self, group_with_ledger, group_owner):
        """A failure on the last step leaves the ledger untouched."""
        group_id = group_with_ledger.id

        with patch.object(Group, 'delete', side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                delete_group(group_id=group_id, user=group_owner)

        assert Group.objects.filter(id=group_id).exists()
        assert Expense.objects.filter(group_id=group_id).count() == 1
        assert ExpenseSplit.objects.filter(expense__group_id=group_id).count() == 3
        assert Balance.objects.filter(group_id=group_id).count() == 2
        assert Settlement.objects.filter(group_id=group_id).count() == 1
        assert GroupMembership.objects.filter(group_id=group_id).count() == 3


# =============================================================================
# Membership Management Service Tests
# =============================================================================

@pytest.mark.django_db
class TestMembershipManagement:
    """Tests for membership_management.py service functions."""

    def test_add_member_by_email(self, group, group_owner, member_user):
        membership = add_member(group_id=group.id, added_by=group_owner, email=member_user.email)

        assert membership.user == member_user
        assert membership.role == GroupRole.MEMBER
        assert group.has_member(member_user)

    def test_add_member_email_is_case_insensitive(self, group, group_owner, member_user):
        add_member(group_id=group.id, added_by=group_owner, email='MEMBER@example.com')

        assert group.has_member(member_user)

    def test_add_member_unknown_email(self, group, group_owner):
        with pytest.raises(UserNotFoundError):
            add_member(group_id=group.id, added_by=group_owner, email='nobody@example.com')

    def test_add_member_already_member(self, group_with_members, group_owner, member_user):
        with pytest.raises(AlreadyMemberError):
            add_member(group_id=group_with_members.id, added_by=group_owner, email=member_user.email)

    def test_add_member_requires_membership(self, group, group_other_user, member_user):
        """Outsiders cannot add people to a group."""
        with pytest.raises(NotMemberError):
            add_member(group_id=group.id, added_by=group_other_user, email=member_user.email)

    def test_add_member_group_not_found(self, group_owner, member_user):
        with pytest.raises(GroupNotFoundError):
            add_member(group_id=uuid4(), added_by=group_owner, email=member_user.email)

    def test_leave_group(self, group_with_members, member_user):
        leave_group(group_id=group_with_members.id, user=member_user)

        assert not group_with_members.has_member(member_user)

    def test_owner_cannot_leave(self, group, group_owner):
        with pytest.raises(OwnerCannotLeaveError):
            leave_group(group_id=group.id, user=group_owner)

    def test_leave_group_not_member(self, group, group_other_user):
        with pytest.raises(NotMemberError):
            leave_group(group_id=group.id, user=group_other_user)

    def test_admin_removes_member(self, group_with_members, admin_user, member_user):
        remove_member(group_id=group_with_members.id, user_id=member_user.id, removed_by=admin_user)

        assert not group_with_members.has_member(member_user)

    def test_member_removes_self(self, group_with_members, member_user):
        remove_member(group_id=group_with_members.id, user_id=member_user.id, removed_by=member_user)

        assert not group_with_members.has_member(member_user)

    def test_member_cannot_remove_others(self, group_with_members, member_user, admin_user):
        with pytest.raises(InsufficientPermissionsError):
            remove_member(group_id=group_with_members.id, user_id=admin_user.id, removed_by=member_user)

        assert group_with_members.has_member(admin_user)

    def test_cannot_remove_owner(self, group_with_members, admin_user, group_owner):
        with pytest.raises(CannotRemoveOwnerError):
            remove_member(group_id=group_with_members.id, user_id=group_owner.id, removed_by=admin_user)

    def test_remove_non_member(self, group, group_owner, group_other_user):
        with pytest.raises(NotMemberError):
            remove_member(group_id=group.id, user_id=group_other_user.id, removed_by=group_owner)

    def test_get_group_members_in_join_order(self, group_with_members, group_owner, admin_user, member_user):
        members = list(get_group_members(group_id=group_with_members.id))

        assert [m.user for m in members] == [group_owner, admin_user, member_user]

    def test_get_group_members_not_found(self):
        with pytest.raises(GroupNotFoundError):
            get_group_members(group_id=uuid4())

    def test_get_group_for_member(self, group, group_owner, group_other_user):
        assert get_group_for_member(group_id=group.id, user=group_owner) == group

        with pytest.raises(NotMemberError):
            get_group_for_member(group_id=group.id, user=group_other_user)

    def test_owner_promotes_member_to_admin(self, group_with_members, group_owner, member_user):
        membership = update_member_role(
            group_id=group_with_members.id,
            user_id=member_user.id,
            new_role=GroupRole.ADMIN,
            updated_by=group_owner,
        )

        assert membership.role == GroupRole.ADMIN
        assert group_with_members.is_admin(member_user)

    def test_promoted_admin_can_remove_members(self, group_with_members, group_owner, member_user, group_other_user):
        add_member(group_id=group_with_members.id, added_by=group_owner, email=group_other_user.email)
        update_member_role(
            group_id=group_with_members.id, user_id=member_user.id,
            new_role=GroupRole.ADMIN, updated_by=group_owner,
        )

        remove_member(group_id=group_with_members.id, user_id=group_other_user.id, removed_by=member_user)

        assert not group_with_members.has_member(group_other_user)

    def test_owner_demotes_admin(self, group_with_members, group_owner, admin_user):
        update_member_role(
            group_id=group_with_members.id, user_id=admin_user.id,
            new_role=GroupRole.MEMBER, updated_by=group_owner,
        )

        assert not group_with_members.is_admin(admin_user)

    def test_admin_cannot_change_roles(self, group_with_members, admin_user, member_user):
        with pytest.raises(InsufficientPermissionsError):
            update_member_role(
                group_id=group_with_members.id, user_id=member_user.id,
                new_role=GroupRole.ADMIN, updated_by=admin_user,
            )

    def test_cannot_change_owner_role(self, group_with_members, group_owner):
        with pytest.raises(CannotChangeOwnerRoleError):
            update_member_role(
                group_id=group_with_members.id, user_id=group_owner.id,
                new_role=GroupRole.MEMBER, updated_by=group_owner,
            )

    def test_update_role_of_non_member(self, group, group_owner, group_other_user):
        with pytest.raises(NotMemberError):
            update_member_role(
                group_id=group.id, user_id=group_other_user.id,
                new_role=GroupRole.ADMIN, updated_by=group_owner,
            )

    def test_update_role_invalid_role(self, group_with_members, group_owner, member_user):
        with pytest.raises(ValueError):
            update_member_role(
                group_id=group_with_members.id, user_id=member_user.id,
                new_role=GroupRole.OWNER, updated_by=group_owner,
            )
