from django.contrib import admin
from .models import ExchangeRequest


@admin.register(ExchangeRequest)
class ExchangeRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "user", "exchange_type", "status", "tracking_number", "created_at")
    list_filter = ("status", "exchange_type", "created_at")
    search_fields = ("order__order_number", "user__email", "tracking_number")
    list_select_related = ("order", "user")

    readonly_fields = (
        "original_items",
        "requested_items",
        "original_total",
        "requested_total",
        "price_difference",
        "approved_at",
        "rejected_at",
        "shipped_at",
        "completed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    )

    fieldsets = (
        ("Request", {
            "fields": ("order", "user", "exchange_type", "reason", "description")
        }),
        ("Items", {
            "fields": ("original_items", "requested_items", "original_total", "requested_total", "price_difference")
        }),
        ("Review", {
            "fields": ("status", "admin_notes", "rejection_reason", "tracking_number")
        }),
        ("Timeline", {
            "fields": (
                "approved_at",
                "rejected_at",
                "shipped_at",
                "completed_at",
                "cancelled_at",
                "created_at",
                "updated_at",
            ),
            "classes": ("collapse",)
        }),
    )
