import json
import logging
import re
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from catalog.inventory import update_product_stock
from catalog.models import Product
from storefront.decorators import login_required_json, parse_id, parse_json_body, staff_required_json

from .fulfillment import (
    cancel_shipment_for_order,
    create_shiprocket_order,
    generate_awb_for_order,
    log_shiprocket,
    map_carrier_status,
    mark_order_paid,
    mark_payment_failed,
    parse_carrier_datetime,
    schedule_pickup_for_order,
    ship_order_quietly,
    track_order,
)
from .models import Order, OrderItem, ShipRocketLog
from .razorpay_utils import (
    RazorpayAPIError,
    create_razorpay_order,
    to_paise,
    verify_payment_signature,
    verify_webhook_signature,
)
from .shiprocket_utils import ShiprocketAPIError
from .utils import notify_order_placed

logger = logging.getLogger(__name__)

ORDER_STATUSES = {choice for choice, _ in Order.STATUS_CHOICES}
PAYMENT_STATUSES = {choice for choice, _ in Order.PAYMENT_STATUS_CHOICES}

# ==================== VALIDATION HELPERS ====================

def validate_phone_number(phone):
    """Validate Indian mobile number format"""
    pattern = re.compile(r'^[6-9]\d{9}$')
    return pattern.match(phone) is not None


def validate_pincode(pincode):
    """Validate 6-digit pincode"""
    return len(pincode) == 6 and pincode.isascii() and pincode.isdigit()


def validate_shipping_address(address):
    """Returns (clean_address, error)"""
    if not isinstance(address, dict):
        return None, "shipping_address is required"

    required_fields = ['first_name', 'address_line1', 'city', 'state', 'postal_code', 'phone']
    for field in required_fields:
        if not str(address.get(field) or '').strip():
            return None, f"{field} is required"

    clean = {
        key: str(address.get(key) or '').strip()
        for key in (
            'first_name', 'last_name', 'address_line1', 'address_line2',
            'city', 'state', 'postal_code', 'country', 'phone', 'email',
        )
    }
    clean['country'] = clean['country'] or 'India'
    # Accept +91 / spaces from the form
    clean['phone'] = re.sub(r'\D', '', clean['phone'])[-10:]

    if not validate_phone_number(clean['phone']):
        return None, "Invalid mobile number"
    if not validate_pincode(clean['postal_code']):
        return None, "Invalid pincode"
    return clean, None


def validate_cart_against_db(items):
    """
    Validate cart items exist in DB and return order lines with DB prices
    CRITICAL: Prevents price tampering
    """
    if not isinstance(items, list) or not items:
        return None, "Cart is empty"

    try:
        product_ids = [int(item.get('product_id')) for item in items]
    except (TypeError, ValueError, AttributeError):
        return None, "Invalid cart item"

    products = Product.objects.prefetch_related('images').in_bulk(product_ids)
    lines = []
    subtotal = Decimal('0.00')

    for item, product_id in zip(items, product_ids):
        product = products.get(product_id)
        if product is None or not product.is_active:
            return None, "Some items in your cart are no longer available"

        try:
            quantity = int(item.get('quantity', 1))
        except (TypeError, ValueError):
            return None, f"Invalid quantity for {product.name}"
        if quantity < 1:
            return None, f"Invalid quantity for {product.name}"

        size = str(item.get('size') or '').strip()
        color = str(item.get('color') or '').strip()
        if size not in (product.sizes or []):
            return None, f"Size {size or '-'} is not available for {product.name}"
        if color not in (product.colors or []):
            return None, f"Color {color or '-'} is not available for {product.name}"

        lines.append({
            'product': product,
            'size': size,
            'color': color,
            'quantity': quantity,
            'price': product.price,  # Use DB price, not client price
        })
        subtotal += product.price * quantity

    return lines, subtotal


def calculate_order_totals(subtotal, payment_method):
    """Calculate totals server-side; shipping is free, COD carries a flat fee"""
    shipping = Decimal('0')
    cod_charge = Decimal(settings.COD_CHARGE) if payment_method == 'cod' else Decimal('0')
    return {
        'subtotal': subtotal,
        'shipping_cost': shipping,
        'cod_charge': cod_charge,
        'total': subtotal + shipping + cod_charge,
    }


class _StockUnavailable(Exception):
    def __init__(self, errors):
        super().__init__("; ".join(errors))
        self.errors = errors


def _create_order(user, address, lines, totals, payment_method):
    """Reserve stock and persist the order in one transaction"""
    with transaction.atomic():
        ok, errors = update_product_stock([
            {'product_id': line['product'].id, 'quantity': line['quantity']} for line in lines
        ])
        if not ok:
            raise _StockUnavailable(errors)

        is_cod = payment_method == 'cod'
        order = Order.objects.create(
            user=user,
            shipping_address=address,
            payment_method=payment_method,
            payment_status='pending',
            order_status='confirmed' if is_cod else 'pending',
            **totals,
        )
        for line in lines:
            product = line['product']
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                product_image=product.image_url,
                size=line['size'],
                color=line['color'],
                quantity=line['quantity'],
                price=line['price'],
            )
    return order


# ==================== CHECKOUT ====================

@login_required_json
@require_http_methods(["GET", "POST"])
def orders(request):
    if request.method == "GET":
        user_orders = Order.objects.filter(user=request.user).prefetch_related('items')
        return JsonResponse({"success": True, "data": [order.to_dict() for order in user_orders]})
    return checkout(request)


def checkout(request):
    """Create an order from the client cart, COD or Razorpay"""
    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    payment_method = data.get('payment_method')
    if payment_method not in ('razorpay', 'cod'):
        return JsonResponse({"success": False, "error": "payment_method must be razorpay or cod"}, status=400)

    address, error = validate_shipping_address(data.get('shipping_address'))
    if error:
        return JsonResponse({"success": False, "error": error}, status=400)
    if not address['email']:
        address['email'] = request.user.email

    lines, subtotal = validate_cart_against_db(data.get('items'))
    if lines is None:
        return JsonResponse({"success": False, "error": subtotal}, status=400)

    totals = calculate_order_totals(subtotal, payment_method)
    if totals['total'] > settings.MAX_ORDER_AMOUNT:
        return JsonResponse({"success": False, "error": "Order amount exceeds the allowed limit"}, status=400)

    try:
        order = _create_order(request.user, address, lines, totals, payment_method)
    except _StockUnavailable as e:
        return JsonResponse({"success": False, "error": "Insufficient stock", "details": e.errors}, status=409)
    except Exception as e:
        logger.error(f"Order creation error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": "Failed to create order"}, status=500)

    logger.info(f"Order {order.order_number} created ({payment_method}, ₹{order.total})")

    if payment_method == 'cod':
        notify_order_placed(order)
        shipment_created = ship_order_quietly(order)
        order.refresh_from_db()
        return JsonResponse({
            "success": True,
            "data": order.to_dict(),
            "shiprocket_success": shipment_created,
        }, status=201)

    try:
        gateway_order = create_razorpay_order(
            order.total,
            receipt=order.order_number,
            notes={"order_id": str(order.id), "order_number": order.order_number},
        )
    except RazorpayAPIError as e:
        logger.error(f"Razorpay order creation failed for {order.order_number}: {str(e)}")
        mark_payment_failed(order)
        return JsonResponse({"success": False, "error": "Payment gateway error. Please try again."}, status=502)

    order.razorpay_order_id = gateway_order['id']
    order.save(update_fields=['razorpay_order_id', 'updated_at'])

    return JsonResponse({
        "success": True,
        "data": order.to_dict(),
        "razorpay": {
            "key_id": settings.RAZORPAY_KEY_ID,
            "order_id": gateway_order['id'],
            "amount": gateway_order.get('amount', to_paise(order.total)),
            "currency": gateway_order.get('currency', 'INR'),
            "name": settings.STORE_NAME,
            "prefill": {
                "name": order.customer_name,
                "email": address['email'],
                "contact": address['phone'],
            },
        },
    }, status=201)


@login_required_json
@require_GET
def order_detail(request, order_id):
    queryset = Order.objects.prefetch_related('items')
    if not request.user.is_staff:
        queryset = queryset.filter(user=request.user)
    order = queryset.filter(id=order_id).first()
    if order is None:
        return JsonResponse({"success": False, "error": "Order not found"}, status=404)
    return JsonResponse({"success": True, "data": order.to_dict()})


# ==================== PAYMENT ====================

@login_required_json
@require_POST
def verify_payment(request):
    """Client-side confirmation after the Razorpay checkout handler fires"""
    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    razorpay_order_id = data.get('razorpay_order_id')
    razorpay_payment_id = data.get('razorpay_payment_id')
    razorpay_signature = data.get('razorpay_signature')
    order_id = data.get('order_id')

    if not all([razorpay_order_id, razorpay_payment_id, razorpay_signature, order_id]):
        return JsonResponse({"success": False, "error": "Missing payment details"}, status=400)
    order_id = parse_id(order_id)
    if order_id is None:
        return JsonResponse({"success": False, "error": "Invalid order_id"}, status=400)

    if not verify_payment_signature(razorpay_order_id, razorpay_payment_id, razorpay_signature):
        logger.warning(f"Invalid payment signature for Razorpay order {razorpay_order_id}")
        return JsonResponse({"success": False, "error": "Invalid payment signature"}, status=400)

    order = Order.objects.filter(id=order_id, razorpay_order_id=razorpay_order_id).first()
    if order is None:
        return JsonResponse({"success": False, "error": "Order not found"}, status=404)

    try:
        order, newly_paid = mark_order_paid(order, razorpay_payment_id, razorpay_signature)
    except Exception as e:
        logger.error(f"Order update after payment failed: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": "Payment verified but failed to update order"}, status=500)

    if newly_paid:
        notify_order_placed(order)
        ship_order_quietly(order)
        order.refresh_from_db()

    return JsonResponse({"success": True, "message": "Payment verified", "data": order.to_dict()})


def _payment_entity(event):
    """payload.payment.entity with a string id, or None"""
    if not isinstance(event, dict) or not isinstance(event.get('event'), str):
        return None
    payload = event.get('payload')
    if not isinstance(payload, dict) or not isinstance(payload.get('payment'), dict):
        return None
    entity = payload['payment'].get('entity')
    if not isinstance(entity, dict) or not isinstance(entity.get('id'), str):
        return None
    return entity


@csrf_exempt
@require_POST
def razorpay_webhook(request):
    """Handle Razorpay payment events; every body must carry a valid signature"""
    signature = request.headers.get("X-Razorpay-Signature")
    if not signature:
        return JsonResponse({"success": False, "error": "Missing Razorpay signature"}, status=400)

    if not settings.RAZORPAY_WEBHOOK_SECRET:
        logger.error("Razorpay webhook secret not configured")
        return JsonResponse({"success": False, "error": "Razorpay webhook secret not configured"}, status=500)

    if not verify_webhook_signature(request.body, signature):
        logger.warning("Invalid Razorpay webhook signature")
        return JsonResponse({"success": False, "error": "Invalid webhook signature"}, status=401)

    try:
        event = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        return JsonResponse({"success": False, "error": "Invalid webhook payload"}, status=400)

    payment = _payment_entity(event)
    if payment is None:
        return JsonResponse({"success": False, "error": "Invalid webhook payload"}, status=400)

    event_name = event['event']
    if event_name not in ("payment.captured", "payment.failed"):
        logger.info(f"Unhandled Razorpay event: {event_name}")
        return JsonResponse({"received": True})

    try:
        order = Order.objects.filter(razorpay_order_id=payment.get('order_id')).first()
        if order is None:
            logger.error(f"Razorpay webhook: no order for {payment.get('order_id')}")
            return JsonResponse({"success": False, "error": "Order not found"}, status=500)

        if event_name == "payment.captured":
            order, newly_paid = mark_order_paid(order, payment['id'])
            if newly_paid:
                ship_order_quietly(order, action="auto_create_order")
                notify_order_placed(order)
        else:
            mark_payment_failed(order)

        return JsonResponse({"success": True, "order_id": order.id})
    except Exception as e:
        logger.error(f"Razorpay webhook error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e)}, status=500)


# ==================== SHIPROCKET WEBHOOK ====================

@csrf_exempt
@require_POST
def shiprocket_webhook(request):
    """Carrier status push; maps the carrier's status onto order_status"""
    logger.info("Shiprocket webhook received")

    token = settings.SHIPROCKET_WEBHOOK_TOKEN
    if token and request.headers.get("x-api-key") != token:
        logger.warning("Shiprocket webhook rejected: bad x-api-key")
        return JsonResponse({"success": False, "error": "Unauthorized"}, status=401)

    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid webhook payload"}, status=400)

    try:
        order_ref = data.get('order_id')
        awb = data.get('awb') or data.get('awb_code')

        order = None
        if order_ref:
            order = Order.objects.filter(order_number=str(order_ref)).first()
        if order is None and awb:
            order = Order.objects.filter(awb_number=str(awb)).first()
        if order is None:
            logger.warning(f"Shiprocket webhook: order not found ({order_ref}, {awb})")
            return JsonResponse({"success": False, "error": "Order not found"}, status=404)

        raw_status = data.get('current_status') or data.get('shipment_status') or ''
        if isinstance(raw_status, dict):
            raw_status = raw_status.get('name', '')
        new_status = map_carrier_status(raw_status)
        now = timezone.now()

        order.shiprocket_status = str(raw_status)
        order.order_status = new_status
        order.shiprocket_synced_at = now
        if new_status == 'shipped' and not order.shipped_at:
            order.shipped_at = now
        if new_status == 'delivered' and not order.delivered_at:
            order.delivered_at = now
        edd = parse_carrier_datetime(data.get('edd'))
        if edd:
            order.expected_delivery_date = edd
        if awb and not order.awb_number:
            order.awb_number = str(awb)
        if data.get('courier_name') and not order.courier_name:
            order.courier_name = data['courier_name']
        order.save()

        log_shiprocket(order, "webhook_received", "success", request_payload=data)
        logger.info(f"Order {order.order_number} updated → {new_status}")

        return JsonResponse({"success": True, "order_id": order.id, "new_status": new_status})
    except Exception as e:
        logger.error(f"Webhook processing error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e)}, status=500)


# ==================== ADMIN ====================

ADMIN_EDITABLE_FIELDS = ('payment_status', 'shiprocket_status', 'awb_number', 'courier_name')
ADMIN_DATE_FIELDS = ('shipped_at', 'delivered_at', 'expected_delivery_date')


def _apply_status(order, status, now):
    order.order_status = status
    if status == 'shipped' and not order.shipped_at:
        order.shipped_at = now
    if status == 'delivered' and not order.delivered_at:
        order.delivered_at = now


@staff_required_json
@require_http_methods(["GET", "PUT", "PATCH"])
def admin_orders(request):
    if request.method == "GET":
        queryset = Order.objects.prefetch_related('items').order_by('-created_at')
        status = request.GET.get('status')
        if status and status != 'all':
            queryset = queryset.filter(order_status=status)
        limit = parse_id(request.GET.get('limit'))
        if limit:
            queryset = queryset[:limit]
        return JsonResponse({"success": True, "data": [order.to_dict() for order in queryset]})

    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)
    now = timezone.now()

    if request.method == "PATCH":
        order_ids = data.get('orderIds')
        status = data.get('order_status')
        if not isinstance(order_ids, list) or not order_ids or status not in ORDER_STATUSES:
            return JsonResponse({"success": False, "error": "Invalid bulk update payload"}, status=400)
        order_ids = [parse_id(value) for value in order_ids]
        if None in order_ids:
            return JsonResponse({"success": False, "error": "orderIds must be numeric"}, status=400)

        updated = []
        with transaction.atomic():
            for order in Order.objects.select_for_update().filter(id__in=order_ids):
                _apply_status(order, status, now)
                order.save()
                updated.append(order)
        logger.info(f"Bulk status update → {status} for {len(updated)} order(s)")
        return JsonResponse({
            "success": True,
            "updated": len(updated),
            "data": [order.to_dict(with_items=False) for order in updated],
        })

    order_id = parse_id(data.get('id'))
    order = Order.objects.filter(id=order_id).first() if order_id else None
    if order is None:
        return JsonResponse({"success": False, "error": "Order not found"}, status=404)

    for field in ADMIN_DATE_FIELDS:
        if field in data:
            value = parse_carrier_datetime(data[field])
            if data[field] and value is None:
                return JsonResponse({"success": False, "error": f"Invalid {field}"}, status=400)
            setattr(order, field, value)

    if 'payment_status' in data and data['payment_status'] not in PAYMENT_STATUSES:
        return JsonResponse({"success": False, "error": "Invalid payment_status"}, status=400)
    for field in ADMIN_EDITABLE_FIELDS:
        if field in data:
            setattr(order, field, data[field])

    if 'order_status' in data:
        if data['order_status'] not in ORDER_STATUSES:
            return JsonResponse({"success": False, "error": "Invalid order_status"}, status=400)
        _apply_status(order, data['order_status'], now)

    order.save()
    logger.info(f"Order {order.order_number} updated by {request.user}")
    return JsonResponse({"success": True, "data": order.to_dict()})


@staff_required_json
@require_POST
def admin_shiprocket(request):
    """Manual fulfillment actions for a single order"""
    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    order_id = parse_id(data.get('orderId'))
    action = data.get('action', 'create')
    if not order_id:
        return JsonResponse({"success": False, "error": "A numeric orderId is required"}, status=400)
    order = Order.objects.filter(id=order_id).first()
    if order is None:
        return JsonResponse({"success": False, "error": "Order not found"}, status=404)

    try:
        if action == 'create':
            result = create_shiprocket_order(order)
        elif action == 'generate_awb':
            result = generate_awb_for_order(order, courier_id=data.get('courierId'))
            if result is None:
                return JsonResponse({"success": False, "error": "AWB generation failed"}, status=502)
        elif action == 'schedule_pickup':
            result = schedule_pickup_for_order(order)
        elif action == 'cancel':
            result = cancel_shipment_for_order(order)
        elif action == 'track':
            result = track_order(order)
        else:
            return JsonResponse({"success": False, "error": f"Unknown action: {action}"}, status=400)
    except ValueError as e:
        return JsonResponse({"success": False, "error": str(e)}, status=400)
    except ShiprocketAPIError as e:
        return JsonResponse({"success": False, "error": str(e)}, status=502)
    except Exception as e:
        logger.error(f"Shiprocket admin action {action} failed: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e)}, status=500)

    order.refresh_from_db()
    return JsonResponse({"success": True, "data": result, "order": order.to_dict(with_items=False)})


@staff_required_json
@require_GET
def admin_shiprocket_logs(request):
    logs = ShipRocketLog.objects.all()
    if request.GET.get('orderId'):
        order_id = parse_id(request.GET['orderId'])
        if order_id is None:
            return JsonResponse({"success": False, "error": "Invalid orderId"}, status=400)
        logs = logs.filter(order_id=order_id)
    logs = logs[: parse_id(request.GET.get('limit')) or 100]
    return JsonResponse({"success": True, "data": [log.to_dict() for log in logs]})


@staff_required_json
@require_http_methods(["GET", "POST"])
def fix_delivery_dates(request):
    """Backfill delivered_at on orders marked delivered without a date"""
    missing = Order.objects.filter(order_status='delivered', delivered_at__isnull=True).order_by('-created_at')

    if request.method == "GET":
        return JsonResponse({
            "success": True,
            "count": missing.count(),
            "data": [
                {
                    "id": order.id,
                    "order_number": order.order_number,
                    "order_status": order.order_status,
                    "created_at": order.created_at.isoformat(),
                    "updated_at": order.updated_at.isoformat(),
                    "shipped_at": order.shipped_at.isoformat() if order.shipped_at else None,
                }
                for order in missing
            ],
        })

    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    action = data.get('action')
    if action == 'fix_single':
        order_id = parse_id(data.get('orderId'))
        order = Order.objects.filter(id=order_id).first() if order_id else None
        if order is None:
            return JsonResponse({"success": False, "error": "orderId is required"}, status=400)
        timestamp = timezone.now()
        if data.get('deliveryDate'):
            timestamp = parse_carrier_datetime(data['deliveryDate'])
            if timestamp is None:
                return JsonResponse({"success": False, "error": "Invalid deliveryDate"}, status=400)
        order.delivered_at = timestamp
        if not order.shipped_at:
            order.shipped_at = timestamp
        order.save(update_fields=['delivered_at', 'shipped_at', 'updated_at'])
        logger.info(f"Fixed delivery date for order {order.order_number}")
        return JsonResponse({
            "success": True,
            "message": "Delivery date updated successfully",
            "data": order.to_dict(with_items=False),
        })

    if action == 'fix_all':
        fixed = 0
        for order in missing:
            timestamp = order.updated_at or order.created_at
            order.delivered_at = timestamp
            if not order.shipped_at:
                order.shipped_at = timestamp
            # .update() keeps updated_at as the delivery evidence
            Order.objects.filter(pk=order.pk).update(delivered_at=timestamp, shipped_at=order.shipped_at)
            fixed += 1
        message = f"Fixed {fixed} orders" if fixed else "No orders need fixing"
        logger.info(message)
        return JsonResponse({"success": True, "message": message, "fixed": fixed})

    return JsonResponse({"success": False, "error": "Invalid action"}, status=400)
