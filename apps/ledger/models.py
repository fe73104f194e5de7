from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from decimal import Decimal
import uuid


class ExpenseCategory(models.TextChoices):
    FOOD = 'food', 'Food'
    TRANSPORT = 'transport', 'Transport'
    ENTERTAINMENT = 'entertainment', 'Entertainment'
    SHOPPING = 'shopping', 'Shopping'
    UTILITIES = 'utilities', 'Utilities'
    RENT = 'rent', 'Rent'
    OTHER = 'other', 'Other'


class SplitType(models.TextChoices):
    EQUAL = 'equal', 'Equal'
    PAYER_EXCLUDED = 'payer_excluded', 'Paid for others'
    CUSTOM = 'custom', 'Custom'


class SettlementStatus(models.TextChoices):
    COMPLETED = 'completed', 'Completed'


class Expense(models.Model):
    """Shared expense paid by one member and split among several."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey('groups.Group', on_delete=models.CASCADE, related_name='expenses')
    description = models.CharField(max_length=200)
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    category = models.CharField(max_length=20, choices=ExpenseCategory.choices, default=ExpenseCategory.OTHER)
    date = models.DateField()
    paid_by = models.ForeignKey('accounts.User', on_delete=models.PROTECT, related_name='expenses_paid')
    split_type = models.CharField(max_length=20, choices=SplitType.choices, default=SplitType.EQUAL)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'expenses'
        indexes = [
            models.Index(fields=['group', 'created_at'], name='expenses_group_created_idx'),
            models.Index(fields=['paid_by', 'date'], name='expenses_payer_date_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.description} - {self.amount} ({self.group.name})"

    def split_map(self):
        """Return the split as ``{user_id: amount}``."""
        return {str(s.user_id): s.amount for s in self.splits.all()}


class ExpenseSplit(models.Model):
    """One member's owed share of an expense."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    expense = models.ForeignKey(Expense, on_delete=models.CASCADE, related_name='splits')
    user = models.ForeignKey('accounts.User', on_delete=models.PROTECT, related_name='expense_splits')
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    class Meta:
        db_table = 'expense_splits'
        unique_together = [['expense', 'user']]

    def __str__(self):
        return f"{self.user.get_display_name()} owes {self.amount}"


class Balance(models.Model):
    """
    Directed debt between two members of a group: ``from_user`` owes
    ``to_user`` a strictly positive amount.

    ``pair_key`` identifies the unordered pair, so the unique constraint
    keeps at most one record per pair regardless of direction.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey('groups.Group', on_delete=models.CASCADE, related_name='balances')
    from_user = models.ForeignKey('accounts.User', on_delete=models.PROTECT, related_name='balances_owed')
    to_user = models.ForeignKey('accounts.User', on_delete=models.PROTECT, related_name='balances_due')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    pair_key = models.CharField(max_length=80, editable=False)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'balances'
        constraints = [
            models.UniqueConstraint(fields=['group', 'pair_key'], name='balances_unique_pair'),
            models.CheckConstraint(condition=Q(amount__gt=0), name='balances_amount_positive'),
            models.CheckConstraint(condition=~Q(from_user=F('to_user')), name='balances_distinct_users'),
        ]
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.from_user_id} owes {self.to_user_id} {self.amount}"


class Settlement(models.Model):
    """Immutable record of a payment made against a balance."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey('groups.Group', on_delete=models.CASCADE, related_name='settlements')
    from_user = models.ForeignKey('accounts.User', on_delete=models.PROTECT, related_name='settlements_paid')
    to_user = models.ForeignKey('accounts.User', on_delete=models.PROTECT, related_name='settlements_received')
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    date = models.DateField()
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=SettlementStatus.choices, default=SettlementStatus.COMPLETED)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'settlements'
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='settlements_amount_positive'),
        ]
        indexes = [
            models.Index(fields=['group', 'created_at'], name='settlements_group_created_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.from_user_id} paid {self.to_user_id} {self.amount}"
