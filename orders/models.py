# orders/models.py
import secrets
import string

from django.conf import settings
from django.db import models
from django.utils import timezone

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number():
    """MK + YYMMDD + 6 random uppercase alphanumerics, e.g. MK260114X7Q2LP"""
    date_part = timezone.now().strftime("%y%m%d")
    while True:
        suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(6))
        number = f"MK{date_part}{suffix}"
        if not Order.objects.filter(order_number=number).exists():
            return number


class Order(models.Model):
    PAYMENT_METHOD_CHOICES = [
        ("razorpay", "Razorpay"),
        ("cod", "Cash on Delivery"),
    ]

    PAYMENT_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("paid", "Paid"),
        ("failed", "Failed"),
    ]

    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("confirmed", "Confirmed"),
        ("processing", "Processing"),
        ("ready_to_ship", "Ready to Ship"),
        ("shipped", "Shipped"),
        ("out_for_delivery", "Out for Delivery"),
        ("delivered", "Delivered"),
        ("cancelled", "Cancelled"),
        ("payment_failed", "Payment Failed"),
        ("return_in_transit", "Return in Transit"),
        ("returned", "Returned"),
        ("lost", "Lost"),
        ("damaged", "Damaged"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="orders"
    )
    order_number = models.CharField(max_length=20, unique=True, editable=False)

    # Snapshot of the address at checkout time
    shipping_address = models.JSONField(default=dict)

    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    shipping_cost = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    cod_charge = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default="pending", db_index=True)
    order_status = models.CharField(max_length=30, choices=STATUS_CHOICES, default="pending", db_index=True)

    # Razorpay
    razorpay_order_id = models.CharField(max_length=100, blank=True, null=True, unique=True)
    razorpay_payment_id = models.CharField(max_length=100, blank=True, null=True, unique=True)
    razorpay_signature = models.CharField(max_length=255, blank=True, null=True)
    paid_at = models.DateTimeField(blank=True, null=True)

    # Shiprocket
    shiprocket_order_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    shiprocket_shipment_id = models.CharField(max_length=100, blank=True, null=True)
    shiprocket_status = models.CharField(max_length=50, blank=True, null=True)
    shiprocket_synced_at = models.DateTimeField(blank=True, null=True)
    awb_number = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    courier_name = models.CharField(max_length=200, blank=True, null=True)
    courier_id = models.IntegerField(blank=True, null=True)
    pickup_scheduled_at = models.DateTimeField(blank=True, null=True)
    shipped_at = models.DateTimeField(blank=True, null=True)
    delivered_at = models.DateTimeField(blank=True, null=True)
    expected_delivery_date = models.DateTimeField(blank=True, null=True)

    customer_notified = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["order_status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["payment_status", "created_at"], name="order_payment_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_order_number()
        super().save(*args, **kwargs)

    @property
    def customer_name(self):
        address = self.shipping_address or {}
        return f"{address.get('first_name', '')} {address.get('last_name', '')}".strip()

    @property
    def customer_email(self):
        email = (self.shipping_address or {}).get("email")
        if not email and self.user_id:
            email = self.user.email
        return email

    def to_dict(self, with_items=True):
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "shipping_address": self.shipping_address,
            "subtotal": float(self.subtotal),
            "shipping_cost": float(self.shipping_cost),
            "cod_charge": float(self.cod_charge),
            "total": float(self.total),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_payment_id": self.razorpay_payment_id,
            "shiprocket_order_id": self.shiprocket_order_id,
            "shiprocket_shipment_id": self.shiprocket_shipment_id,
            "shiprocket_status": self.shiprocket_status,
            "awb_number": self.awb_number,
            "courier_name": self.courier_name,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "pickup_scheduled_at": self.pickup_scheduled_at.isoformat() if self.pickup_scheduled_at else None,
            "shipped_at": self.shipped_at.isoformat() if self.shipped_at else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "expected_delivery_date": (
                self.expected_delivery_date.isoformat() if self.expected_delivery_date else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_items:
            data["items"] = [item.to_dict() for item in self.items.all()]
        return data

    def __str__(self):
        return f"Order {self.order_number} - {self.customer_name}"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", on_delete=models.SET_NULL, null=True, blank=True)
    product_name = models.CharField(max_length=200)
    product_image = models.CharField(max_length=500, blank=True, default="")
    size = models.CharField(max_length=10)
    color = models.CharField(max_length=50)
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    subtotal = models.DecimalField(max_digits=10, decimal_places=2)

    def save(self, *args, **kwargs):
        self.subtotal = self.price * self.quantity
        super().save(*args, **kwargs)

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_image": self.product_image,
            "size": self.size,
            "color": self.color,
            "quantity": self.quantity,
            "price": float(self.price),
            "subtotal": float(self.subtotal),
        }

    def __str__(self):
        return f"{self.quantity} x {self.product_name} ({self.size}/{self.color})"


class ShipRocketLog(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("success", "Success"),
        ("error", "Error"),
    ]

    order = models.ForeignKey(Order, related_name="shiprocket_logs", on_delete=models.CASCADE, null=True, blank=True)
    action = models.CharField(max_length=50, db_index=True)
    request_payload = models.JSONField(blank=True, null=True)
    response_payload = models.JSONField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="pending")
    error_message = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "action": self.action,
            "request_payload": self.request_payload,
            "response_payload": self.response_payload,
            "status": self.status,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self):
        return f"{self.action} [{self.status}] order={self.order_id}"
