from django.urls import path
from . import views

urlpatterns = [
    # Cart
    path('cart/', views.cart, name='cart'),
    path('cart/items/<int:pk>/', views.cart_item, name='cart-item'),

    # Customer orders
    path('orders/', views.order_list_create, name='order-list-create'),
    path('orders/<int:pk>/', views.order_detail, name='order-detail'),
    path('orders/<int:pk>/cancel/', views.order_cancel, name='order-cancel'),

    # Admin orders
    path('admin/orders/', views.admin_order_list, name='admin-order-list'),
    path('admin/orders/stats/', views.admin_order_stats, name='admin-order-stats'),
    path('admin/orders/<int:pk>/', views.admin_order_detail, name='admin-order-detail'),
    path('admin/orders/<int:pk>/status/', views.admin_order_status, name='admin-order-status'),
]
