from django.conf import settings
from django.db import models


class ExchangeRequest(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("approved", "Approved"),
        ("rejected", "Rejected"),
        ("shipped", "Shipped"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    ]

    # Requests in these states block a new one for the same order
    ACTIVE_STATUSES = ("pending", "approved", "shipped")

    EXCHANGE_TYPE_CHOICES = [
        ("size", "Size"),
        ("color", "Color"),
    ]

    order = models.ForeignKey("orders.Order", related_name="exchange_requests", on_delete=models.CASCADE)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="exchange_requests", on_delete=models.CASCADE)

    original_items = models.JSONField(default=list)
    requested_items = models.JSONField(default=list)
    exchange_type = models.CharField(max_length=10, choices=EXCHANGE_TYPE_CHOICES)
    reason = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")

    # Same-product swaps never change the price
    original_total = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    requested_total = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    price_difference = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    settlement_type = models.CharField(max_length=20, default="NO_CHARGE")
    settlement_status = models.CharField(max_length=20, default="COMPLETED")
    is_same_product = models.BooleanField(default=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending", db_index=True)
    admin_notes = models.TextField(blank=True, null=True)
    rejection_reason = models.TextField(blank=True, null=True)
    tracking_number = models.CharField(max_length=100, blank=True, null=True)

    approved_at = models.DateTimeField(blank=True, null=True)
    rejected_at = models.DateTimeField(blank=True, null=True)
    shipped_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    def to_dict(self):
        def _ts(value):
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "original_items": self.original_items,
            "requested_items": self.requested_items,
            "exchange_type": self.exchange_type,
            "reason": self.reason,
            "description": self.description,
            "original_total": float(self.original_total),
            "requested_total": float(self.requested_total),
            "price_difference": float(self.price_difference),
            "settlement_type": self.settlement_type,
            "settlement_status": self.settlement_status,
            "is_same_product": self.is_same_product,
            "status": self.status,
            "admin_notes": self.admin_notes,
            "rejection_reason": self.rejection_reason,
            "tracking_number": self.tracking_number,
            "approved_at": _ts(self.approved_at),
            "rejected_at": _ts(self.rejected_at),
            "shipped_at": _ts(self.shipped_at),
            "completed_at": _ts(self.completed_at),
            "cancelled_at": _ts(self.cancelled_at),
            "created_at": _ts(self.created_at),
            "updated_at": _ts(self.updated_at),
        }

    def __str__(self):
        return f"Exchange #{self.id} for order {self.order_id} ({self.status})"
