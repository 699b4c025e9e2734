"""
URL configuration for the school ledger backend
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods
from django.views.generic import RedirectView
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularSwaggerView,
    SpectacularRedocView,
)


@require_http_methods(["GET"])
def health_view(request):
    """Minimal health check for connectivity verification. No auth required."""
    result = {'status': 'ok', 'service': 'school-ledger', 'db': 'ok'}
    try:
        from django.db import connection
        connection.ensure_connection()
    except Exception as e:
        result['status'] = 'degraded'
        result['db'] = f'error: {str(e)[:80]}'
    return JsonResponse(result)


@require_http_methods(["GET"])
def api_root(request):
    """Root endpoint - API information"""
    return JsonResponse({
        'name': 'School Ledger API',
        'version': '1.0.0',
        'description': 'Student balances, lesson billing and payments',
        'endpoints': {
            'health': '/api/health/',
            'balance': '/api/balance/',
            'lessons': '/api/lessons/',
            'payments': '/api/payments/',
            'notifications': '/api/notifications/',
            'docs': '/api/docs/',
            'schema': '/api/schema/',
        }
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin', RedirectView.as_view(url='/admin/', permanent=False)),
    path('admin/', admin.site.urls),
    path('api', RedirectView.as_view(url='/api/', permanent=False)),
    path('api/', api_root),
    path('api/health/', health_view, name='api-health'),

    # API Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),

    # API endpoints
    path('api/balance/', include('balance.urls')),
    path('api/lessons/', include('lessons.urls')),
    path('api/payments/', include('payments.urls')),
    path('api/notifications/', include('notifications.urls')),
]
