from django.urls import path
from . import views

urlpatterns = [
    path('orders/', views.orders, name='orders'),
    path('orders/<int:order_id>/', views.order_detail, name='order_detail'),
    path('razorpay/verify-payment/', views.verify_payment, name='verify_payment'),

    # Webhooks
    path('webhooks/razorpay/', views.razorpay_webhook, name='razorpay_webhook'),
    path('webhooks/shiprocket/', views.shiprocket_webhook, name='shiprocket_webhook'),

    # Back-office
    path('admin/orders/', views.admin_orders, name='admin_orders'),
    path('admin/shiprocket/', views.admin_shiprocket, name='admin_shiprocket'),
    path('admin/shiprocket/logs/', views.admin_shiprocket_logs, name='admin_shiprocket_logs'),
    path('admin/fix-delivery-dates/', views.fix_delivery_dates, name='fix_delivery_dates'),
]
