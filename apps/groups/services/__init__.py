"""
Groups app services layer.

Services contain business logic and orchestrate operations across models.
All state-changing operations use transactions and concurrency protection.
"""

from .exceptions import (
    GroupsServiceError,
    GroupNotFoundError,
    UserNotFoundError,
    AlreadyMemberError,
    NotMemberError,
    OwnerCannotLeaveError,
    CannotRemoveOwnerError,
    CannotChangeOwnerRoleError,
    InsufficientPermissionsError,
)

from .group_management import (
    create_group,
    update_group,
    delete_group,
    get_group_by_id,
    get_user_groups,
)

from .membership_management import (
    add_member,
    leave_group,
    remove_member,
    update_member_role,
    get_group_members,
    get_group_for_member,
)


__all__ = [
    # Exceptions
    'GroupsServiceError',
    'GroupNotFoundError',
    'UserNotFoundError',
    'AlreadyMemberError',
    'NotMemberError',
    'OwnerCannotLeaveError',
    'CannotRemoveOwnerError',
    'CannotChangeOwnerRoleError',
    'InsufficientPermissionsError',

    # Group Management
    'create_group',
    'update_group',
    'delete_group',
    'get_group_by_id',
    'get_user_groups',

    # Membership Management
    'add_member',
    'leave_group',
    'remove_member',
    'update_member_role',
    'get_group_members',
    'get_group_for_member',
]
