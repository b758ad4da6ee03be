import logging
from decimal import Decimal

from django.db import transaction
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods

from catalog.models import Product
from orders.models import Order
from storefront.decorators import login_required_json, parse_id, parse_json_body, staff_required_json

from .eligibility import check_eligibility, validate_same_product
from .models import ExchangeRequest

logger = logging.getLogger(__name__)

# Allowed admin moves and the timestamp each one stamps
TRANSITIONS = {
    "pending": {"approved", "rejected", "cancelled"},
    "approved": {"shipped", "cancelled"},
    "shipped": {"completed"},
}
TRANSITION_TIMESTAMPS = {
    "approved": "approved_at",
    "rejected": "rejected_at",
    "shipped": "shipped_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
}
SUCCESS_MESSAGES = {
    "approved": "Exchange approved successfully. Ready to ship.",
    "rejected": "Exchange rejected. Customer will be notified.",
    "shipped": "Exchange marked as shipped. Tracking sent.",
    "completed": "Exchange completed successfully.",
    "cancelled": "Exchange cancelled successfully",
}


def _clean_items(items):
    """Normalise a posted item list; returns (items, error)"""
    if not isinstance(items, list) or not items:
        return None, "Items are required"
    clean = []
    for item in items:
        if not isinstance(item, dict):
            return None, "Invalid item"
        try:
            product_id = int(item.get("product_id"))
            quantity = int(item.get("quantity"))
        except (TypeError, ValueError):
            return None, "Each item needs a numeric product_id and quantity"
        if quantity < 1:
            return None, "Invalid quantity"
        size = str(item.get("size") or "").strip()
        color = str(item.get("color") or "").strip()
        if not size or not color:
            return None, "Each item needs a size and color"
        clean.append({
            "order_item_id": item.get("order_item_id"),
            "product_id": product_id,
            "product_name": item.get("product_name", ""),
            "product_image": item.get("product_image", ""),
            "size": size,
            "color": color,
            "quantity": quantity,
        })
    return clean, None


def _match_order_lines(order, original_items):
    """Price originals from the order itself; returns error or None"""
    lines = {(item.product_id, item.size, item.color): item for item in order.items.all()}
    for item in original_items:
        line = lines.get((item["product_id"], item["size"], item["color"]))
        if line is None or item["quantity"] > line.quantity:
            return f"Item {item['product_id']} ({item['size']}/{item['color']}) is not part of this order"
        item["original_price"] = float(line.price)
        item["product_name"] = item["product_name"] or line.product_name
        item["product_image"] = item["product_image"] or line.product_image
    return None


def _check_requested_variants(requested_items):
    products = Product.objects.in_bulk([item["product_id"] for item in requested_items])
    for item in requested_items:
        product = products.get(item["product_id"])
        if product is None:
            return f"Product {item['product_id']} is no longer available"
        if item["size"] not in (product.sizes or []):
            return f"Size {item['size']} is not available for {product.name}"
        if item["color"] not in (product.colors or []):
            return f"Color {item['color']} is not available for {product.name}"
        item["current_price"] = float(product.price)
    return None


# ==================== CUSTOMER ====================

@login_required_json
@require_GET
def exchange_eligibility(request):
    order_id = request.GET.get("orderId")
    if not order_id:
        return JsonResponse({"success": False, "error": "Order ID is required"}, status=400)

    order_id = parse_id(order_id)
    order = Order.objects.filter(id=order_id).prefetch_related("items").first() if order_id else None
    result = check_eligibility(order, request.user)
    if order is None or order.user_id != request.user.id:
        return JsonResponse({"success": False, **result})
    return JsonResponse({"success": True, **result})


@login_required_json
@require_http_methods(["GET", "POST"])
def exchanges(request):
    if request.method == "GET":
        queryset = ExchangeRequest.objects.filter(user=request.user)
        if request.GET.get("orderId"):
            order_id = parse_id(request.GET["orderId"])
            if order_id is None:
                return JsonResponse({"success": False, "error": "Invalid orderId"}, status=400)
            queryset = queryset.filter(order_id=order_id)
        return JsonResponse({"success": True, "data": [e.to_dict() for e in queryset]})

    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    exchange_type = data.get("exchange_type")
    if exchange_type not in ("size", "color"):
        return JsonResponse({"success": False, "error": "exchange_type must be size or color"}, status=400)

    original_items, error = _clean_items(data.get("original_items"))
    if error:
        return JsonResponse({"success": False, "error": error}, status=400)
    requested_items, error = _clean_items(data.get("requested_items"))
    if error:
        return JsonResponse({"success": False, "error": error}, status=400)

    try:
        with transaction.atomic():
            # Serialise concurrent requests for the same order
            order_id = parse_id(data.get("order_id"))
            order = Order.objects.select_for_update().filter(id=order_id).first() if order_id else None
            eligibility = check_eligibility(order, request.user)
            if not eligibility["eligible"]:
                return JsonResponse({
                    "success": False,
                    "error": eligibility["reason"],
                    "existing_exchange": eligibility["existing_exchange"],
                }, status=400)

            valid, error = validate_same_product(original_items, requested_items)
            if not valid:
                return JsonResponse({"success": False, "error": error}, status=400)

            error = _match_order_lines(order, original_items) or _check_requested_variants(requested_items)
            if error:
                return JsonResponse({"success": False, "error": error}, status=400)

            for original, requested in zip(original_items, requested_items):
                requested["original_price"] = original["original_price"]

            original_total = sum(
                Decimal(str(item["original_price"])) * item["quantity"] for item in original_items
            )
            requested_total = sum(
                Decimal(str(item.get("current_price", item["original_price"]))) * item["quantity"]
                for item in requested_items
            )

            exchange = ExchangeRequest.objects.create(
                order=order,
                user=request.user,
                original_items=original_items,
                requested_items=requested_items,
                exchange_type=exchange_type,
                reason=str(data.get("reason") or "")[:255],
                description=data.get("description") or "",
                original_total=original_total,
                requested_total=requested_total,
                price_difference=Decimal("0"),
                settlement_type="NO_CHARGE",
                settlement_status="COMPLETED",
                status="pending",
                is_same_product=True,
            )
    except Exception as e:
        logger.error(f"Exchange creation error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e)}, status=500)

    logger.info(f"Exchange #{exchange.id} requested for order {order.order_number}")
    return JsonResponse({
        "success": True,
        "data": exchange.to_dict(),
        "message": "Exchange request submitted successfully. No payment required.",
        "nextAction": "WAIT_APPROVAL",
    }, status=201)


# ==================== ADMIN ====================

def _enriched(exchange):
    data = exchange.to_dict()
    order = exchange.order
    address = order.shipping_address or {}
    data["order_number"] = order.order_number
    data["customer_name"] = order.customer_name or "N/A"
    data["customer_email"] = address.get("email") or getattr(exchange.user, "email", None) or "N/A"
    return data


@staff_required_json
@require_http_methods(["GET", "PUT", "DELETE"])
def admin_exchanges(request):
    if request.method == "GET":
        queryset = ExchangeRequest.objects.select_related("order", "user")
        status = request.GET.get("status")
        if status and status != "all":
            queryset = queryset.filter(status=status)
        for param, field in (("userId", "user_id"), ("orderId", "order_id")):
            if request.GET.get(param):
                value = parse_id(request.GET[param])
                if value is None:
                    return JsonResponse({"success": False, "error": f"Invalid {param}"}, status=400)
                queryset = queryset.filter(**{field: value})
        limit = parse_id(request.GET.get("limit"))
        if limit:
            queryset = queryset[:limit]
        return JsonResponse({"success": True, "data": [_enriched(e) for e in queryset]})

    if request.method == "DELETE":
        exchange_id = parse_id(request.GET.get("id"))
        if not exchange_id:
            return JsonResponse({"success": False, "error": "A numeric exchange ID is required"}, status=400)
        exchange = ExchangeRequest.objects.filter(id=exchange_id).first()
        if exchange is None:
            return JsonResponse({"success": False, "error": "Exchange not found"}, status=404)
        if exchange.status not in ("pending", "approved"):
            return JsonResponse(
                {"success": False, "error": f"Cannot cancel exchange with status: {exchange.status}"}, status=400
            )
        exchange.status = "cancelled"
        exchange.cancelled_at = timezone.now()
        exchange.admin_notes = request.GET.get("reason") or "Cancelled by admin"
        exchange.save()
        logger.info(f"Exchange #{exchange.id} cancelled by {request.user}")
        return JsonResponse({"success": True, "message": SUCCESS_MESSAGES["cancelled"]})

    data = parse_json_body(request)
    exchange_id = parse_id(data.get("id")) if data is not None else None
    if not exchange_id:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    exchange = ExchangeRequest.objects.filter(id=exchange_id).first()
    if exchange is None:
        return JsonResponse({"success": False, "error": "Exchange not found"}, status=404)

    status = data.get("status")
    admin_notes = data.get("admin_notes")
    tracking_number = data.get("tracking_number")
    rejection_reason = data.get("rejection_reason")

    if status and status != exchange.status:
        if status not in TRANSITIONS.get(exchange.status, set()):
            return JsonResponse(
                {"success": False, "error": f"Cannot change exchange from {exchange.status} to {status}"},
                status=400,
            )
        if status == "rejected":
            if not rejection_reason and not admin_notes:
                return JsonResponse(
                    {"success": False, "error": "Rejection reason or admin notes required when rejecting"},
                    status=400,
                )
            exchange.rejection_reason = rejection_reason
        if status == "shipped":
            if not tracking_number and not exchange.tracking_number:
                return JsonResponse(
                    {"success": False, "error": "Tracking number required when marking as shipped"}, status=400
                )
        exchange.status = status
        setattr(exchange, TRANSITION_TIMESTAMPS[status], timezone.now())

    if admin_notes:
        exchange.admin_notes = admin_notes
    if tracking_number:
        exchange.tracking_number = tracking_number
    exchange.save()

    logger.info(f"Exchange #{exchange.id} updated → {exchange.status}")
    return JsonResponse({
        "success": True,
        "data": exchange.to_dict(),
        "message": SUCCESS_MESSAGES.get(status, "Exchange updated successfully"),
    })
