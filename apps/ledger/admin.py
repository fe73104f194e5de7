from django.contrib import admin
from apps.ledger.models import Expense, ExpenseSplit, Balance, Settlement


class ExpenseSplitInline(admin.TabularInline):
    """Inline admin for expense splits."""
    model = ExpenseSplit
    extra = 0
    fields = ['user', 'amount']
    readonly_fields = fields
    can_delete = False


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    """Expenses are append-only; the admin is for inspection."""

    list_display = ['description', 'group', 'amount', 'category', 'paid_by', 'date']
    list_filter = ['category', 'split_type', 'date']
    search_fields = ['description', 'group__name', 'paid_by__email']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ExpenseSplitInline]
    date_hierarchy = 'date'
    ordering = ['-created_at']

    def has_change_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        """Optimize query."""
        qs = super().get_queryset(request)
        return qs.select_related('group', 'paid_by')


@admin.register(Balance)
class BalanceAdmin(admin.ModelAdmin):

    list_display = ['group', 'from_user', 'to_user', 'amount', 'updated_at']
    search_fields = ['group__name', 'from_user__email', 'to_user__email']
    readonly_fields = ['pair_key', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related('group', 'from_user', 'to_user')


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):

    list_display = ['group', 'from_user', 'to_user', 'amount', 'status', 'date']
    list_filter = ['status', 'date']
    search_fields = ['group__name', 'from_user__email', 'to_user__email']
    readonly_fields = ['created_at']
    date_hierarchy = 'date'
    ordering = ['-created_at']

    def has_change_permission(self, request, obj=None):
        return False
