"""
Order fulfillment against Shiprocket.

Every carrier call leaves a ShipRocketLog row so the back-office can see what
happened and retry by hand. Shipment creation and pickup scheduling re-raise
after logging; AWB generation returns None on failure.
"""

import logging
from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from catalog.inventory import restore_product_stock

from .models import Order, ShipRocketLog
from .shiprocket_utils import ShiprocketAPI, ShiprocketAPIError

logger = logging.getLogger(__name__)

CARRIER_STATUS_MAP = {
    "PICKUP SCHEDULED": "ready_to_ship",
    "PICKED UP": "shipped",
    "IN TRANSIT": "shipped",
    "OUT FOR DELIVERY": "out_for_delivery",
    "DELIVERED": "delivered",
    "RTO IN TRANSIT": "return_in_transit",
    "RTO DELIVERED": "returned",
    "CANCELLED": "cancelled",
    "LOST": "lost",
    "DAMAGED": "damaged",
}

DEFAULT_WEIGHT = Decimal("0.5")
DEFAULT_LENGTH = Decimal("10")
DEFAULT_BREADTH = Decimal("10")
DEFAULT_HEIGHT = Decimal("5")


def map_carrier_status(carrier_status):
    """Carrier status string to order_status; anything unknown is 'processing'"""
    return CARRIER_STATUS_MAP.get(str(carrier_status or "").strip().upper(), "processing")


def log_shiprocket(order, action, status, request_payload=None, response_payload=None, error_message=None):
    return ShipRocketLog.objects.create(
        order=order,
        action=action,
        status=status,
        request_payload=request_payload,
        response_payload=response_payload,
        error_message=error_message,
    )


def calculate_package_dimensions(items):
    """
    Package for a list of OrderItems: weights and heights stack, length and
    breadth take the largest item. Missing product data falls back to
    0.5 kg / 10 x 10 x 5 cm per unit.
    """
    weight = Decimal("0")
    length = Decimal("0")
    breadth = Decimal("0")
    height = Decimal("0")

    for item in items:
        product = item.product
        qty = item.quantity or 1
        if product is not None:
            weight += (product.weight or DEFAULT_WEIGHT) * qty
            length = max(length, product.length or DEFAULT_LENGTH)
            breadth = max(breadth, product.breadth or DEFAULT_BREADTH)
            height += (product.height or DEFAULT_HEIGHT) * qty
        else:
            weight += DEFAULT_WEIGHT
            length = max(length, DEFAULT_LENGTH)
            breadth = max(breadth, DEFAULT_BREADTH)
            height += DEFAULT_HEIGHT

    return {
        "weight": float(max(weight, DEFAULT_WEIGHT)),
        "length": float(max(length, DEFAULT_LENGTH)),
        "breadth": float(max(breadth, DEFAULT_BREADTH)),
        "height": float(max(height, DEFAULT_HEIGHT)),
    }


def build_shiprocket_payload(order, items):
    address = order.shipping_address or {}
    dimensions = calculate_package_dimensions(items)

    order_items = []
    for item in items:
        sku = item.product.sku if item.product and item.product.sku else f"SKU-{item.product_id}"
        order_items.append({
            "name": item.product_name[:100],
            "sku": f"{sku}-{item.size}-{item.color}"[:50],
            "units": item.quantity,
            "selling_price": float(item.price),
            "discount": 0,
            "tax": 0,
            "hsn": 0,
        })

    is_cod = order.payment_method == "cod"
    return {
        "order_id": order.order_number,
        "order_date": timezone.localtime(order.created_at).strftime("%Y-%m-%d %H:%M"),
        "pickup_location": settings.SHIPROCKET_PICKUP_LOCATION,
        "channel_id": "",
        "comment": f"Order from {settings.STORE_NAME} - {order.order_number}",
        "billing_customer_name": address.get("first_name", ""),
        "billing_last_name": address.get("last_name", ""),
        "billing_address": address.get("address_line1", ""),
        "billing_address_2": address.get("address_line2", ""),
        "billing_city": str(address.get("city", "")).lower(),
        "billing_pincode": address.get("postal_code", ""),
        "billing_state": str(address.get("state", "")).title(),
        "billing_country": address.get("country") or "India",
        "billing_email": order.customer_email or "",
        "billing_phone": address.get("phone", ""),
        "shipping_is_billing": True,
        "order_items": order_items,
        "payment_method": "COD" if is_cod else "Prepaid",
        "shipping_charges": float(order.shipping_cost),
        "giftwrap_charges": 0,
        "transaction_charges": float(order.cod_charge) if is_cod else 0,
        "total_discount": 0,
        "sub_total": float(order.subtotal),
        **dimensions,
    }


def create_shiprocket_order(order, api=None):
    """
    Push an order to Shiprocket (IDEMPOTENT on shiprocket_order_id), then try
    to assign an AWB. Returns a result dict; raises after logging on failure.
    """
    if order.shiprocket_order_id:
        logger.info(f"Order {order.order_number} already synced: {order.shiprocket_order_id}")
        return {
            "success": True,
            "message": "Order already synced",
            "shiprocket_order_id": order.shiprocket_order_id,
        }

    items = list(order.items.select_related("product"))
    address = order.shipping_address or {}
    if not items:
        log_shiprocket(order, "create_order", "error", error_message="Order has no items")
        raise ValueError("Order has no items")
    if not address.get("first_name") or not address.get("phone"):
        log_shiprocket(order, "create_order", "error", error_message="Invalid shipping address")
        raise ValueError("Invalid shipping address")

    api = api or ShiprocketAPI()
    payload = build_shiprocket_payload(order, items)
    log_shiprocket(order, "create_order", "pending", request_payload=payload)

    try:
        response = api.create_order(payload)
    except ShiprocketAPIError as e:
        log_shiprocket(
            order, "create_order_api_error", "error",
            request_payload=payload, response_payload=e.response,
            error_message=f"ShipRocket API call failed: {str(e)}",
        )
        raise

    if response.get("order_id") is None or response.get("shipment_id") is None:
        message = f"ShipRocket returned invalid response: {response}"
        log_shiprocket(
            order, "create_order_failed", "error",
            request_payload=payload, response_payload=response, error_message=message,
        )
        raise ShiprocketAPIError(message, response=response)

    order.shiprocket_order_id = str(response["order_id"])
    order.shiprocket_shipment_id = str(response["shipment_id"])
    order.shiprocket_status = response.get("status") or "created"
    order.shiprocket_synced_at = timezone.now()
    update_fields = [
        "shiprocket_order_id", "shiprocket_shipment_id", "shiprocket_status", "shiprocket_synced_at", "updated_at",
    ]
    # COD orders are confirmed at checkout already
    if order.payment_method != "cod":
        order.order_status = "confirmed"
        update_fields.append("order_status")
    order.save(update_fields=update_fields)

    log_shiprocket(order, "create_order", "success", request_payload=payload, response_payload=response)
    logger.info(f"Shiprocket order created for {order.order_number}: {order.shiprocket_order_id}")

    awb = generate_awb_for_order(order, api=api)

    return {
        "success": True,
        "shiprocket_order_id": order.shiprocket_order_id,
        "shiprocket_shipment_id": order.shiprocket_shipment_id,
        "awb": awb,
    }


def _pick_cheapest_courier(api, order):
    """Cheapest serviceable courier id for the delivery pincode, or None"""
    postal_code = (order.shipping_address or {}).get("postal_code")
    try:
        couriers = api.get_available_couriers(
            settings.SHIPROCKET_PICKUP_PINCODE,
            postal_code,
            0.5,
            1 if order.payment_method == "cod" else 0,
        )
    except ShiprocketAPIError as e:
        logger.warning(f"Courier check failed for {order.order_number}, using auto-assignment: {str(e)}")
        return None

    if not couriers:
        logger.warning(f"No couriers listed for {postal_code}, using auto-assignment")
        return None

    def _rate(courier):
        rate = courier.get("rate")
        if rate is None:
            rate = courier.get("freight_charge")
        try:
            return float(rate)
        except (TypeError, ValueError):
            # Unrated couriers sort last
            return float("inf")

    cheapest = sorted(couriers, key=_rate)[0]
    logger.info(f"Selected courier {cheapest.get('courier_name')} ({cheapest.get('courier_company_id')})")
    return cheapest.get("courier_company_id")


def generate_awb_for_order(order, courier_id=None, api=None):
    """Assign an AWB (IDEMPOTENT on awb_number). Returns a dict, or None on failure."""
    if order.awb_number:
        return {"awb_code": order.awb_number, "courier_name": order.courier_name or "Existing"}

    try:
        if not order.shiprocket_shipment_id:
            raise ValueError("Shipment ID not found")

        api = api or ShiprocketAPI()
        if courier_id is None:
            courier_id = _pick_cheapest_courier(api, order)

        response = api.generate_awb(int(order.shiprocket_shipment_id), courier_id)
        data = (response.get("response") or {}).get("data") or {}
        awb_code = data.get("awb_code") or response.get("awb_code")
        courier_name = data.get("courier_name") or response.get("courier_name")
        assigned_courier = data.get("courier_company_id") or response.get("courier_company_id")

        if not awb_code:
            raise ShiprocketAPIError("AWB code not generated by ShipRocket", response=response)

        order.awb_number = str(awb_code)
        order.courier_name = courier_name or "Unknown"
        order.courier_id = int(assigned_courier) if assigned_courier else None
        order.order_status = "processing"
        order.save(update_fields=["awb_number", "courier_name", "courier_id", "order_status", "updated_at"])

        log_shiprocket(order, "generate_awb", "success", response_payload=response)
        logger.info(f"AWB generated for {order.order_number}: {awb_code}")
        return {"awb_code": order.awb_number, "courier_name": order.courier_name}

    except (ShiprocketAPIError, ValueError) as e:
        logger.error(f"AWB generation failed for {order.order_number}: {str(e)}", exc_info=True)
        log_shiprocket(order, "generate_awb", "error", error_message=str(e))
        return None


def schedule_pickup_for_order(order, api=None):
    try:
        if not order.shiprocket_shipment_id:
            raise ValueError("Shipment ID not found")

        api = api or ShiprocketAPI()
        response = api.schedule_pickup([int(order.shiprocket_shipment_id)])

        order.pickup_scheduled_at = timezone.now()
        order.order_status = "ready_to_ship"
        order.save(update_fields=["pickup_scheduled_at", "order_status", "updated_at"])

        log_shiprocket(order, "schedule_pickup", "success", response_payload=response)
        return response

    except (ShiprocketAPIError, ValueError) as e:
        logger.error(f"Pickup scheduling failed for {order.order_number}: {str(e)}")
        log_shiprocket(order, "schedule_pickup", "error", error_message=str(e))
        raise


def cancel_shipment_for_order(order, api=None):
    try:
        if not order.shiprocket_order_id:
            raise ValueError("Order has not been pushed to Shiprocket")

        api = api or ShiprocketAPI()
        response = api.cancel_shipment([int(order.shiprocket_order_id)])

        order.order_status = "cancelled"
        order.shiprocket_status = "CANCELLED"
        order.save(update_fields=["order_status", "shiprocket_status", "updated_at"])

        log_shiprocket(order, "cancel_shipment", "success", response_payload=response)
        return response

    except (ShiprocketAPIError, ValueError) as e:
        logger.error(f"Shipment cancel failed for {order.order_number}: {str(e)}")
        log_shiprocket(order, "cancel_shipment", "error", error_message=str(e))
        raise


def track_order(order, api=None):
    """Fetch tracking by AWB and record the carrier's current status on the order"""
    if not order.awb_number:
        raise ValueError("AWB number not assigned yet")

    api = api or ShiprocketAPI()
    try:
        response = api.track_shipment(order.awb_number)
    except ShiprocketAPIError as e:
        log_shiprocket(order, "track_shipment", "error", error_message=str(e))
        raise

    tracking = response.get("tracking_data") or {}
    shipments = tracking.get("shipment_track") or []
    current = shipments[0].get("current_status") if shipments else None
    if current:
        order.shiprocket_status = current
        order.shiprocket_synced_at = timezone.now()
        order.save(update_fields=["shiprocket_status", "shiprocket_synced_at", "updated_at"])

    log_shiprocket(order, "track_shipment", "success", response_payload=response)
    return {
        "status": current,
        "awb": order.awb_number,
        "courier": order.courier_name,
        "tracking_url": tracking.get("track_url"),
        "etd": tracking.get("etd"),
        "activities": tracking.get("shipment_track_activities") or [],
    }


def ship_order_quietly(order, action="auto_create_order"):
    """
    Best-effort shipment creation for the checkout and payment paths.
    Failures are logged and left for an admin to retry.
    """
    try:
        create_shiprocket_order(order)
        return True
    except Exception as e:
        logger.error(f"Shiprocket error for {order.order_number}: {str(e)}", exc_info=True)
        log_shiprocket(order, action, "error", error_message=str(e))
        return False


def mark_order_paid(order, payment_id, signature=None):
    """
    Record a captured payment. Safe to call twice (webhook and client
    verification both land here); returns False if the order was already paid.
    """
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.payment_status == "paid":
            return order, False

        order.payment_status = "paid"
        order.razorpay_payment_id = payment_id
        if signature:
            order.razorpay_signature = signature
        order.paid_at = timezone.now()
        if order.order_status in ("pending", "payment_failed"):
            order.order_status = "confirmed"
        order.save()

    logger.info(f"Order {order.order_number} marked as PAID ({payment_id})")
    return order, True


def mark_payment_failed(order):
    """Flag a failed online payment and hand the reserved stock back"""
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.payment_status in ("paid", "failed"):
            return order, False
        order.payment_status = "failed"
        order.order_status = "payment_failed"
        order.save(update_fields=["payment_status", "order_status", "updated_at"])
        restore_product_stock([
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in order.items.all()
            if item.product_id
        ])

    logger.info(f"Order {order.order_number} payment failed, stock restored")
    return order, True


def parse_carrier_datetime(value):
    """Carrier dates arrive as 'YYYY-MM-DD HH:MM:SS', ISO strings or bare dates"""
    if not value:
        return None
    try:
        parsed = parse_datetime(str(value))
        if parsed is None:
            day = parse_date(str(value)[:10])
            if day is None:
                return None
            parsed = datetime(day.year, day.month, day.day)
    except ValueError:
        # Well-formed but impossible, e.g. 2025-02-30
        logger.warning(f"Unparseable carrier date: {value}")
        return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed
