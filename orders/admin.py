from django.contrib import admin
from .models import Order, OrderItem, ShipRocketLog


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ('product', 'product_name', 'size', 'color', 'price', 'quantity', 'subtotal')
    readonly_fields = ('subtotal',)
    can_delete = False  # Prevent accidental deletion in inline view


class ShipRocketLogInline(admin.TabularInline):
    model = ShipRocketLog
    extra = 0
    fields = ('action', 'status', 'error_message', 'created_at')
    readonly_fields = fields
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "user",
        "payment_method",
        "payment_status",
        "order_status",
        "shiprocket_order_id",
        "awb_number",
        "courier_name",
        "total",
        "created_at",
    )

    list_filter = (
        "order_status",
        "payment_status",
        "payment_method",
        "created_at",
    )

    search_fields = (
        "order_number",
        "user__email",
        "razorpay_order_id",
        "razorpay_payment_id",
        "shiprocket_order_id",
        "awb_number",
    )

    # Set by the gateway / carrier
    readonly_fields = (
        'order_number',
        'razorpay_order_id',
        'razorpay_payment_id',
        'razorpay_signature',
        'paid_at',
        'shiprocket_order_id',
        'shiprocket_shipment_id',
        'shiprocket_synced_at',
        'created_at',
        'updated_at',
    )

    inlines = [OrderItemInline, ShipRocketLogInline]

    fieldsets = (
        ("Customer", {
            "fields": ("order_number", "user", "shipping_address")
        }),
        ("Payment & Pricing", {
            "fields": (
                "payment_method",
                "payment_status",
                "subtotal",
                "shipping_cost",
                "cod_charge",
                "total",
                "razorpay_order_id",
                "razorpay_payment_id",
                "razorpay_signature",
                "paid_at",
            )
        }),
        ("Order Status", {
            "fields": ("order_status", "customer_notified")
        }),
        ("Shiprocket Tracking", {
            "fields": (
                "shiprocket_order_id",
                "shiprocket_shipment_id",
                "shiprocket_status",
                "shiprocket_synced_at",
                "awb_number",
                "courier_name",
                "courier_id",
                "pickup_scheduled_at",
                "shipped_at",
                "delivered_at",
                "expected_delivery_date",
            ),
            "classes": ("collapse",)
        }),
        ("System Metadata", {
            "fields": ("created_at", "updated_at"),
            "classes": ("collapse",)
        }),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user').prefetch_related('items')


@admin.register(ShipRocketLog)
class ShipRocketLogAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "action", "status", "created_at")
    list_filter = ("status", "action", ("created_at", admin.DateFieldListFilter))
    search_fields = ("order__order_number", "action", "error_message")
    readonly_fields = ("order", "action", "status", "request_payload", "response_payload", "error_message", "created_at")
    list_select_related = ("order",)
