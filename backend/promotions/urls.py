from django.urls import path
from . import views

urlpatterns = [
    # Storefront
    path('campaigns/active/', views.active_campaign_list, name='campaign-active-list'),
    path('campaigns/slug/<slug:slug>/', views.campaign_by_slug, name='campaign-by-slug'),
    path('coupons/validate/', views.coupon_validate, name='coupon-validate'),

    # Admin
    path('admin/campaigns/', views.campaign_list_create, name='campaign-list-create'),
    path('admin/campaigns/<int:pk>/', views.campaign_detail, name='campaign-detail'),
    path('admin/coupons/', views.coupon_list_create, name='coupon-list-create'),
    path('admin/coupons/generate-code/', views.coupon_generate_code, name='coupon-generate-code'),
    path('admin/coupons/<int:pk>/', views.coupon_detail, name='coupon-detail'),
    path('admin/coupons/<int:pk>/stats/', views.coupon_stats, name='coupon-stats'),
]
