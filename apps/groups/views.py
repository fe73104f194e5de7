from rest_framework import viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from .models import Group
from .serializers import (
    GroupSerializer,
    GroupCreateSerializer,
    GroupUpdateSerializer,
    GroupListSerializer,
    GroupMemberSerializer,
    AddMemberSerializer,
    RemoveMemberSerializer,
    UpdateMemberRoleSerializer,
)
from .permissions import IsGroupMember

from apps.groups.services import (
    create_group,
    update_group,
    delete_group,
    get_user_groups,
    add_member,
    leave_group,
    remove_member,
    update_member_role,
    get_group_members,
    # Exceptions
    GroupNotFoundError,
    UserNotFoundError,
    AlreadyMemberError,
    NotMemberError,
    OwnerCannotLeaveError,
    CannotRemoveOwnerError,
    CannotChangeOwnerRoleError,
    InsufficientPermissionsError,
)


class GroupPagination(PageNumberPagination):
    """Custom pagination for groups."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class GroupViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Group CRUD operations.

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Get all groups (user is member of)
    create: Create a new group
    retrieve: Get a specific group (members only)
    update: Update a group (admin only)
    partial_update: Partially update a group (admin only)
    destroy: Delete a group and its whole ledger (owner only)
    """

    queryset = Group.objects.select_related('owner').prefetch_related('memberships')
    serializer_class = GroupSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = GroupPagination
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_queryset(self):
        """List only the user's groups; detail lookups see every group."""
        if self.action == 'list':
            return get_user_groups(user=self.request.user)
        return super().get_queryset()

    def get_serializer_class(self):
        """Use different serializers for different actions."""
        if self.action == 'list':
            return GroupListSerializer
        elif self.action == 'create':
            return GroupCreateSerializer
        elif self.action in ['update', 'partial_update']:
            return GroupUpdateSerializer
        return GroupSerializer

    def get_permissions(self):
        """Set permissions based on action."""
        if self.action in ['retrieve', 'members']:
            return [IsAuthenticated(), IsGroupMember()]
        return [IsAuthenticated()]

    def create(self, request, *args, **kwargs):
        """Create a new group."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        group = create_group(
            name=serializer.validated_data['name'],
            owner=request.user,
            description=serializer.validated_data.get('description', ''),
        )

        output_serializer = GroupSerializer(group, context={'request': request})
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        """Update group name/description."""
        serializer = GroupUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            group = update_group(
                group_id=self.kwargs['pk'],
                user=request.user,
                name=serializer.validated_data.get('name'),
                description=serializer.validated_data.get('description'),
            )
        except GroupNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InsufficientPermissionsError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

        output_serializer = GroupSerializer(group, context={'request': request})
        return Response(output_serializer.data)

    def partial_update(self, request, *args, **kwargs):
        return self.update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        """Delete a group together with its expenses, balances and settlements."""
        try:
            delete_group(group_id=self.kwargs['pk'], user=request.user)
            return Response(status=status.HTTP_204_NO_CONTENT)
        except GroupNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InsufficientPermissionsError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

    @action(detail=True, methods=['get'])
    def members(self, request, pk=None):
        """Get all members of the group."""
        group = self.get_object()
        memberships = get_group_members(group_id=group.id)
        serializer = GroupMemberSerializer(memberships, many=True)
        return Response(serializer.data)

    @extend_schema(request=AddMemberSerializer, responses={201: GroupMemberSerializer})
    @action(detail=True, methods=['post'])
    def add_member(self, request, pk=None):
        """Add a registered user to the group by email."""
        serializer = AddMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            membership = add_member(
                group_id=pk,
                added_by=request.user,
                email=serializer.validated_data['email']
            )
        except (GroupNotFoundError, UserNotFoundError) as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except AlreadyMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = GroupMemberSerializer(membership)
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def leave(self, request, pk=None):
        """Leave a group."""
        try:
            leave_group(group_id=pk, user=request.user)
            return Response(status=status.HTTP_204_NO_CONTENT)
        except GroupNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except (OwnerCannotLeaveError, NotMemberError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    @extend_schema(request=RemoveMemberSerializer, responses={204: None})
    @action(detail=True, methods=['delete'])
    def remove_member(self, request, pk=None):
        """Remove a member from the group (admin, or the member themselves)."""
        serializer = RemoveMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            remove_member(
                group_id=pk,
                user_id=serializer.validated_data['user_id'],
                removed_by=request.user
            )
            return Response(status=status.HTTP_204_NO_CONTENT)
        except GroupNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InsufficientPermissionsError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except (CannotRemoveOwnerError, NotMemberError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    @extend_schema(request=UpdateMemberRoleSerializer, responses={200: GroupMemberSerializer})
    @action(detail=True, methods=['post'])
    def update_member_role(self, request, pk=None):
        """Make a member an admin or revoke it (owner only)."""
        serializer = UpdateMemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            membership = update_member_role(
                group_id=pk,
                user_id=serializer.validated_data['user_id'],
                new_role=serializer.validated_data['role'],
                updated_by=request.user
            )
        except GroupNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except InsufficientPermissionsError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except (NotMemberError, CannotChangeOwnerRoleError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = GroupMemberSerializer(membership)
        return Response(output_serializer.data)


@extend_schema(
    responses={200: GroupListSerializer(many=True)},
    description="Get all groups where the current user is a member.",
    tags=['groups'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_groups(request):
    """Get all groups where user is a member."""
    groups = get_user_groups(user=request.user)
    serializer = GroupListSerializer(groups, many=True, context={'request': request})
    return Response(serializer.data)
