from rest_framework import serializers
from .models import Expense, Balance, Settlement, ExpenseCategory, SplitType
from apps.accounts.serializers import UserMinimalSerializer


class ExpenseSerializer(serializers.ModelSerializer):
    """Expense with its split rendered as ``{user_id: amount}``."""

    paid_by = UserMinimalSerializer(read_only=True)
    splits = serializers.SerializerMethodField()

    class Meta:
        model = Expense
        fields = [
            'id',
            'group',
            'description',
            'amount',
            'category',
            'date',
            'paid_by',
            'split_type',
            'splits',
            'created_at',
        ]
        read_only_fields = fields

    def get_splits(self, obj):
        return {user_id: str(amount) for user_id, amount in obj.split_map().items()}


class ExpenseCreateSerializer(serializers.Serializer):
    """Input for recording an expense."""

    description = serializers.CharField(max_length=200)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    category = serializers.ChoiceField(choices=ExpenseCategory.choices, default=ExpenseCategory.OTHER)
    date = serializers.DateField(required=False)
    paid_by = serializers.UUIDField(required=False)
    split_type = serializers.ChoiceField(choices=SplitType.choices, default=SplitType.EQUAL)
    splits = serializers.DictField(
        child=serializers.DecimalField(max_digits=12, decimal_places=2),
        required=False,
        help_text='Map of user id to owed amount. Generated for equal/payer_excluded when omitted.'
    )

    def validate(self, attrs):
        if attrs.get('split_type') == SplitType.CUSTOM and 'splits' not in attrs:
            raise serializers.ValidationError({'splits': 'Custom splits require an explicit split map.'})
        return attrs


class BalanceSerializer(serializers.ModelSerializer):

    from_user = UserMinimalSerializer(read_only=True)
    to_user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = Balance
        fields = ['id', 'from_user', 'to_user', 'amount', 'updated_at']
        read_only_fields = fields


class SettlementSerializer(serializers.ModelSerializer):

    from_user = UserMinimalSerializer(read_only=True)
    to_user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = Settlement
        fields = [
            'id',
            'group',
            'from_user',
            'to_user',
            'amount',
            'date',
            'notes',
            'status',
            'created_at',
        ]
        read_only_fields = fields


class SettlementCreateSerializer(serializers.Serializer):
    """Input for recording a settlement."""

    from_user = serializers.UUIDField()
    to_user = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class TransferSerializer(serializers.Serializer):
    """Suggested payment produced by debt simplification."""

    from_user = serializers.UUIDField()
    to_user = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class NetPositionSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
