"""
URL configuration for the store backend.

Every app mounts its routes below /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = f"{settings.STORE_NAME} Admin Panel"
admin.site.site_title = f"{settings.STORE_NAME} Admin Portal"
admin.site.index_title = "Store administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.expiry.urls')),
    path('api/v1/', include('backend.promotions.urls')),
    path('api/v1/', include('backend.orders.urls')),
    path('api/v1/', include('backend.notifications.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
