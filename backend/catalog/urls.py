from django.urls import path
from . import views

urlpatterns = [
    # Categories
    path('categories/', views.category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', views.category_detail, name='category-detail'),

    # Products
    path('products/', views.product_list_create, name='product-list-create'),
    path('products/<int:pk>/', views.product_detail, name='product-detail'),
    path('products/slug/<slug:slug>/', views.product_by_slug, name='product-by-slug'),

    # Task board
    path('admin/tasks/', views.product_tasks, name='product-tasks'),
    path('admin/tasks/ignore/', views.task_ignore_list_create, name='task-ignore-list-create'),
    path('admin/tasks/ignore/<int:pk>/', views.task_ignore_delete, name='task-ignore-delete'),

    # Bulk pricing
    path('admin/bulk-price/', views.bulk_price_update_list, name='bulk-price-update-list'),
    path('admin/bulk-price/preview/', views.bulk_price_update_preview, name='bulk-price-update-preview'),
    path('admin/bulk-price/apply/', views.bulk_price_update_commit, name='bulk-price-update-commit'),
    path('admin/bulk-price/<int:pk>/revert/', views.bulk_price_update_revert, name='bulk-price-update-revert'),

    # Shelf labels
    path('admin/barcode-labels/', views.barcode_label_list_create, name='barcode-label-list-create'),
    path('admin/barcode-labels/<int:pk>/', views.barcode_label_detail, name='barcode-label-detail'),
    path('admin/barcode-labels/<int:pk>/image/', views.barcode_label_image, name='barcode-label-image'),
]
