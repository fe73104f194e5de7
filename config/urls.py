"""
URL configuration for the Group Ledger project.

Group-scoped ledger endpoints (expenses, balances, settlements, simplified
debts) are mounted under the same ``api/groups/<group_id>/`` prefix as the
group ViewSet.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from config.views import health_check

urlpatterns = [
    # Health check
    path('api/health/', health_check, name='health-check'),

    # Admin
    path('admin/', admin.site.urls),

    # API Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='api-schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='api-schema'), name='api-docs'),

    # Authentication
    path('api/auth/', include('apps.accounts.urls')),

    # API endpoints
    path('api/groups/<uuid:group_id>/', include('apps.ledger.urls')),
    path('api/groups/', include('apps.groups.urls')),
]


# Custom error handlers
handler404 = 'config.views.error_404'
handler500 = 'config.views.error_500'
