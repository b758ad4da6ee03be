from django.urls import path
from . import views

urlpatterns = [
    path('admin/stats/', views.admin_stats, name='admin_stats'),
    path('admin/analytics/', views.admin_analytics, name='admin_analytics'),
    path('admin/customers/', views.admin_customers, name='admin_customers'),
    path('admin/customers/<int:user_id>/orders/', views.admin_customer_orders, name='admin_customer_orders'),
    path('admin/cloudinary-usage/', views.admin_cloudinary_usage, name='admin_cloudinary_usage'),
    path('admin/database-usage/', views.admin_database_usage, name='admin_database_usage'),
]
