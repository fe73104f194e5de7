from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .serializers import (
    ExpenseSerializer,
    ExpenseCreateSerializer,
    BalanceSerializer,
    SettlementSerializer,
    SettlementCreateSerializer,
    TransferSerializer,
    NetPositionSerializer,
)

from apps.groups.services import GroupNotFoundError, NotMemberError
from apps.ledger.services import (
    add_group_expense,
    get_group_expenses,
    record_settlement,
    get_group_settlements,
    get_group_balances,
    get_net_positions,
    calculate_simplified_debts,
    # Exceptions
    BalanceNotFoundError,
    LedgerValidationError,
    LedgerConflictError,
)

LEDGER_ERRORS = (
    GroupNotFoundError,
    NotMemberError,
    BalanceNotFoundError,
    LedgerValidationError,
    LedgerConflictError,
)


def _error_response(error):
    """Translate a ledger domain error into an HTTP response."""
    if isinstance(error, (GroupNotFoundError, BalanceNotFoundError)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, NotMemberError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, LedgerConflictError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return Response({'error': str(error)}, status=status_code)


@extend_schema(
    methods=['GET'],
    responses={200: ExpenseSerializer(many=True)},
    description="List the group's expenses, newest first.",
    tags=['ledger'],
)
@extend_schema(
    methods=['POST'],
    request=ExpenseCreateSerializer,
    responses={201: ExpenseSerializer},
    description="Record an expense and update the group's balances.",
    tags=['ledger'],
)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def group_expenses(request, group_id):
    """List or record group expenses."""
    if request.method == 'GET':
        try:
            expenses = get_group_expenses(group_id=group_id, user=request.user)
        except LEDGER_ERRORS as e:
            return _error_response(e)
        return Response(ExpenseSerializer(expenses, many=True).data)

    serializer = ExpenseCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        expense = add_group_expense(
            group_id=group_id,
            user=request.user,
            **serializer.validated_data
        )
    except LEDGER_ERRORS as e:
        return _error_response(e)

    return Response(ExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)


@extend_schema(
    responses={200: BalanceSerializer(many=True)},
    description="Current pairwise balances of the group.",
    tags=['ledger'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def group_balances(request, group_id):
    try:
        balances = get_group_balances(group_id=group_id, user=request.user)
    except LEDGER_ERRORS as e:
        return _error_response(e)
    return Response(BalanceSerializer(balances, many=True).data)


@extend_schema(
    responses={200: NetPositionSerializer(many=True)},
    description="Net position per member; positive means the member is owed money.",
    tags=['ledger'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def group_net_positions(request, group_id):
    try:
        positions = get_net_positions(group_id=group_id, user=request.user)
    except LEDGER_ERRORS as e:
        return _error_response(e)

    data = [{'user_id': user_id, 'amount': amount} for user_id, amount in positions.items()]
    return Response(NetPositionSerializer(data, many=True).data)


@extend_schema(
    responses={200: TransferSerializer(many=True)},
    description="Suggested transfers that settle every debt in the group.",
    tags=['ledger'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def simplified_debts(request, group_id):
    try:
        transfers = calculate_simplified_debts(group_id=group_id, user=request.user)
    except LEDGER_ERRORS as e:
        return _error_response(e)
    return Response(TransferSerializer(transfers, many=True).data)


@extend_schema(
    methods=['GET'],
    responses={200: SettlementSerializer(many=True)},
    description="List the group's settlements, newest first.",
    tags=['ledger'],
)
@extend_schema(
    methods=['POST'],
    request=SettlementCreateSerializer,
    responses={201: SettlementSerializer},
    description="Record a payment between two members and reduce their balance.",
    tags=['ledger'],
)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def group_settlements(request, group_id):
    """List or record settlements."""
    if request.method == 'GET':
        try:
            settlements = get_group_settlements(group_id=group_id, user=request.user)
        except LEDGER_ERRORS as e:
            return _error_response(e)
        return Response(SettlementSerializer(settlements, many=True).data)

    serializer = SettlementCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        settlement = record_settlement(
            group_id=group_id,
            user=request.user,
            from_user_id=data['from_user'],
            to_user_id=data['to_user'],
            amount=data['amount'],
            date=data.get('date'),
            notes=data.get('notes', ''),
        )
    except LEDGER_ERRORS as e:
        return _error_response(e)

    return Response(SettlementSerializer(settlement).data, status=status.HTTP_201_CREATED)
