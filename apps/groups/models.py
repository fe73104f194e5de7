from django.db import models
import uuid


class GroupRole(models.TextChoices):
    OWNER = 'owner', 'Owner'
    ADMIN = 'admin', 'Admin'
    MEMBER = 'member', 'Member'


class Group(models.Model):
    """Group of people sharing expenses."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    owner = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='owned_groups')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'groups'
        indexes = [
            models.Index(fields=['owner', 'created_at'], name='groups_owner_created_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return self.name

    def has_member(self, user):
        return self.memberships.filter(user=user).exists()

    def get_user_role(self, user):
        try:
            return self.memberships.get(user=user).role
        except GroupMembership.DoesNotExist:
            return None

    def is_admin(self, user):
        role = self.get_user_role(user)
        return role in [GroupRole.OWNER, GroupRole.ADMIN]

    def member_ids(self):
        return list(self.memberships.values_list('user_id', flat=True))


class GroupMembership(models.Model):
    """User membership in a group with role."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='group_memberships')
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='memberships')
    role = models.CharField(max_length=20, choices=GroupRole.choices, default=GroupRole.MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_memberships'
        unique_together = [['user', 'group']]
        indexes = [
            models.Index(fields=['group', 'role'], name='memberships_group_role_idx'),
            models.Index(fields=['user', 'joined_at'], name='memberships_user_joined_idx'),
        ]
        ordering = ['joined_at']

    def __str__(self):
        return f"{self.user.get_display_name()} in {self.group.name} ({self.role})"

    def save(self, *args, **kwargs):
        if self.group.owner_id == self.user_id:
            self.role = GroupRole.OWNER
        super().save(*args, **kwargs)
