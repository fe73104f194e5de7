import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.groups.models import Group, GroupMembership, GroupRole


def client_for(user):
    """Return an API client authenticated as ``user``."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def alice(db):
    return User.objects.create_user(email='alice@example.com', password='TestPass123!', display_name='Alice')


@pytest.fixture
def bob(db):
    return User.objects.create_user(email='bob@example.com', password='TestPass123!', display_name='Bob')


@pytest.fixture
def carol(db):
    return User.objects.create_user(email='carol@example.com', password='TestPass123!', display_name='Carol')


@pytest.fixture
def outsider(db):
    """User who belongs to no group."""
    return User.objects.create_user(email='outsider@example.com', password='TestPass123!')


@pytest.fixture
def group(db, alice, bob, carol):
    """Group owned by Alice with Bob and Carol as members, joined in that order."""
    group = Group.objects.create(name='Road Trip', owner=alice)
    GroupMembership.objects.create(user=alice, group=group, role=GroupRole.OWNER)
    GroupMembership.objects.create(user=bob, group=group, role=GroupRole.MEMBER)
    GroupMembership.objects.create(user=carol, group=group, role=GroupRole.MEMBER)
    return group


@pytest.fixture
def alice_client(alice):
    return client_for(alice)


@pytest.fixture
def bob_client(bob):
    return client_for(bob)


@pytest.fixture
def outsider_client(outsider):
    return client_for(outsider)


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()
