from django.urls import path
from . import views

urlpatterns = [
    path('products/', views.product_list, name='product_list'),
    path('products/<slug:slug>/', views.product_detail, name='product_detail'),
    path('categories/', views.category_list, name='category_list'),
    path('inventory/', views.inventory, name='inventory'),

    # Back-office
    path('admin/products/', views.admin_products, name='admin_products'),
    path('admin/products/<int:product_id>/images/', views.upload_product_image, name='upload_product_image'),
    path('admin/images/<int:image_id>/primary/', views.set_primary_image, name='set_primary_image'),
    path('admin/images/<int:image_id>/', views.delete_product_image, name='delete_product_image'),
    path('admin/categories/', views.admin_categories, name='admin_categories'),
]
