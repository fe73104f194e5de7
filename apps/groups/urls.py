from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import views

app_name = 'groups'

# Router for ViewSets
router = SimpleRouter()
router.register(r'', views.GroupViewSet, basename='group')

urlpatterns = [
    # Group ViewSet routes
    # GET    /api/groups/              - List user's groups
    # POST   /api/groups/              - Create group
    # GET    /api/groups/{id}/         - Get group details
    # PUT    /api/groups/{id}/         - Update group (admin)
    # PATCH  /api/groups/{id}/         - Partial update (admin)
    # DELETE /api/groups/{id}/         - Delete group and its ledger (owner)

    # Custom group actions
    # GET    /api/groups/{id}/members/         - List members
    # POST   /api/groups/{id}/add_member/      - Add member by email
    # POST   /api/groups/{id}/leave/           - Leave group
    # DELETE /api/groups/{id}/remove_member/   - Remove member

    # Ledger endpoints live in apps.ledger.urls under /api/groups/{id}/

    # Additional endpoints
    path('my/', views.my_groups, name='my-groups'),

    # Include router URLs
    path('', include(router.urls)),
]
