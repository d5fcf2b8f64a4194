from django.contrib import admin
from django.urls import path, include
from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

schema_view = get_schema_view(
    openapi.Info(
        title="Marketplace Payment Engine API",
        default_version='v1',
        description="Escrow, wallet and withdrawal API of the freelancing marketplace",
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('account/', include('accounts.urls')),
    path('contracts/', include('contracts.urls')),
    path('escrow/', include('escrow.urls')),
    path('wallet/', include('wallet.urls')),
    path('withdrawals/', include('withdrawals.urls')),

    # swagger/openapi routes
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
    path('openapi.json/', schema_view.without_ui(cache_timeout=0), name='schema-json'),
]
