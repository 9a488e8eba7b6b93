from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, register, user_me,
    user_list_create, user_detail,
    public_settings, store_settings_detail,
    activity_log_list, activity_log_detail,
)

urlpatterns = [
    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),

    # User management
    path('admin/users/', user_list_create, name='user-list-create'),
    path('admin/users/<int:pk>/', user_detail, name='user-detail'),

    # Settings
    path('settings/public/', public_settings, name='public-settings'),
    path('admin/settings/', store_settings_detail, name='store-settings'),

    # Activity log
    path('admin/activity-logs/', activity_log_list, name='activity-log-list'),
    path('admin/activity-logs/<int:pk>/', activity_log_detail, name='activity-log-detail'),
]
