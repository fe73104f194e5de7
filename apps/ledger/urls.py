from django.urls import path
from . import views

app_name = 'ledger'

# Mounted under /api/groups/<uuid:group_id>/
urlpatterns = [
    path('expenses/', views.group_expenses, name='group-expenses'),
    path('balances/', views.group_balances, name='group-balances'),
    path('net-positions/', views.group_net_positions, name='group-net-positions'),
    path('simplified-debts/', views.simplified_debts, name='simplified-debts'),
    path('settlements/', views.group_settlements, name='group-settlements'),
]
