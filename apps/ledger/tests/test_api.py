import pytest
from decimal import Decimal
from django.urls import reverse
from rest_framework import status
from apps.ledger.models import Balance, Expense, Settlement
from apps.ledger.services import add_group_expense


def ledger_url(name, group):
    return reverse(f'ledger:{name}', kwargs={'group_id': group.id})


# =============================================================================
# Expense Endpoint Tests
# =============================================================================

@pytest.mark.django_db
class TestExpenses:
    """Tests for GET/POST /api/groups/{id}/expenses/"""

    def test_create_equal_expense(self, alice_client, group, alice, bob, carol):
        url = ledger_url('group-expenses', group)
        data = {
            'description': 'Fuel',
            'amount': '90.00',
            'category': 'transport',
        }
        response = alice_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['amount'] == '90.00'
        assert response.data['paid_by']['email'] == alice.email
        assert response.data['splits'] == {
            str(alice.id): '30.00',
            str(bob.id): '30.00',
            str(carol.id): '30.00',
        }
        assert Balance.objects.filter(group=group).count() == 2

    def test_create_custom_expense(self, bob_client, group, alice, bob):
        url = ledger_url('group-expenses', group)
        data = {
            'description': 'Museum',
            'amount': '24.00',
            'paid_by': str(bob.id),
            'split_type': 'custom',
            'splits': {str(alice.id): '24.00'},
        }
        response = bob_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        balance = Balance.objects.get(group=group)
        assert balance.from_user == alice
        assert balance.to_user == bob
        assert balance.amount == Decimal('24.00')

    def test_custom_expense_requires_splits(self, alice_client, group):
        url = ledger_url('group-expenses', group)
        data = {'description': 'Museum', 'amount': '24.00', 'split_type': 'custom'}
        response = alice_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'splits' in response.data

    def test_split_mismatch_is_bad_request(self, alice_client, group, bob):
        url = ledger_url('group-expenses', group)
        data = {
            'description': 'Museum',
            'amount': '24.00',
            'split_type': 'custom',
            'splits': {str(bob.id): '20.00'},
        }
        response = alice_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'error' in response.data
        assert not Expense.objects.exists()

    def test_negative_amount_is_bad_request(self, alice_client, group):
        url = ledger_url('group-expenses', group)
        response = alice_client.post(url, {'description': 'Refund', 'amount': '-5.00'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_outsider_cannot_add_expense(self, outsider_client, group):
        url = ledger_url('group-expenses', group)
        response = outsider_client.post(url, {'description': 'Sneaky', 'amount': '5.00'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_group_not_found(self, alice_client):
        url = reverse('ledger:group-expenses', kwargs={'group_id': '00000000-0000-0000-0000-000000000000'})
        response = alice_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_list_expenses(self, bob_client, group, alice):
        add_group_expense(group_id=group.id, user=alice, description='Fuel', amount=Decimal('90.00'))

        response = bob_client.get(ledger_url('group-expenses', group))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]['description'] == 'Fuel'

    def test_list_expenses_unauthenticated(self, api_client, group):
        response = api_client.get(ledger_url('group-expenses', group))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# Balance Endpoint Tests
# =============================================================================

@pytest.mark.django_db
class TestBalances:

    @pytest.fixture
    def fuel(self, group, alice):
        return add_group_expense(group_id=group.id, user=alice, description='Fuel', amount=Decimal('90.00'))

    def test_list_balances(self, alice_client, group, fuel, alice):
        response = alice_client.get(ledger_url('group-balances', group))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 2
        assert all(b['to_user']['email'] == alice.email for b in response.data)
        assert all(b['amount'] == '30.00' for b in response.data)

    def test_net_positions(self, alice_client, group, fuel, alice):
        response = alice_client.get(ledger_url('group-net-positions', group))

        assert response.status_code == status.HTTP_200_OK
        positions = {p['user_id']: Decimal(p['amount']) for p in response.data}
        assert positions[str(alice.id)] == Decimal('60.00')
        assert sum(positions.values()) == 0

    def test_simplified_debts(self, bob_client, group, fuel, alice, bob, carol):
        response = bob_client.get(ledger_url('simplified-debts', group))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == [
            {'from_user': str(bob.id), 'to_user': str(alice.id), 'amount': '30.00'},
            {'from_user': str(carol.id), 'to_user': str(alice.id), 'amount': '30.00'},
        ]

    def test_outsider_cannot_read_balances(self, outsider_client, group, fuel):
        response = outsider_client.get(ledger_url('group-balances', group))

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# Settlement Endpoint Tests
# =============================================================================

@pytest.mark.django_db
class TestSettlements:

    @pytest.fixture
    def fuel(self, group, alice):
        return add_group_expense(group_id=group.id, user=alice, description='Fuel', amount=Decimal('90.00'))

    def test_record_settlement(self, bob_client, group, fuel, alice, bob):
        url = ledger_url('group-settlements', group)
        data = {
            'from_user': str(bob.id),
            'to_user': str(alice.id),
            'amount': '30.00',
            'notes': 'Bank transfer',
        }
        response = bob_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == 'completed'
        assert response.data['notes'] == 'Bank transfer'
        assert not Balance.objects.filter(group=group, from_user=bob).exists()

    def test_settlement_exceeding_balance(self, bob_client, group, fuel, alice, bob):
        url = ledger_url('group-settlements', group)
        data = {'from_user': str(bob.id), 'to_user': str(alice.id), 'amount': '31.00'}
        response = bob_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not Settlement.objects.exists()
        assert Balance.objects.get(group=group, from_user=bob).amount == Decimal('30.00')

    def test_settlement_without_balance(self, alice_client, group, fuel, alice, bob):
        url = ledger_url('group-settlements', group)
        data = {'from_user': str(alice.id), 'to_user': str(bob.id), 'amount': '5.00'}
        response = alice_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_zero_settlement_rejected(self, bob_client, group, fuel, alice, bob):
        url = ledger_url('group-settlements', group)
        data = {'from_user': str(bob.id), 'to_user': str(alice.id), 'amount': '0.00'}
        response = bob_client.post(url, data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_settlements(self, bob_client, group, fuel, alice, bob):
        bob_client.post(
            ledger_url('group-settlements', group),
            {'from_user': str(bob.id), 'to_user': str(alice.id), 'amount': '10.00'},
            format='json'
        )

        response = bob_client.get(ledger_url('group-settlements', group))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]['amount'] == '10.00'
        assert response.data[0]['from_user']['email'] == bob.email
