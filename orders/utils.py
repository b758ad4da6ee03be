import logging
from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def _format_address(address):
    lines = [address.get("address_line1", "")]
    if address.get("address_line2"):
        lines.append(address["address_line2"])
    lines.append(f"{address.get('city', '')}, {address.get('state', '')} - {address.get('postal_code', '')}")
    return "\n".join(line for line in lines if line)


def send_admin_order_notification(order, items):
    """Send detailed email to admin about new order"""
    if not settings.ADMIN_ORDER_EMAIL:
        return False, "Admin email not configured"

    try:
        address = order.shipping_address or {}
        items_details = "\n".join([
            f"• {item.product_name} [{item.size} / {item.color}] (Qty: {item.quantity}, Price: ₹{item.price})"
            for item in items
        ])

        message = f"""
Hello Admin,

A new order has been placed on {settings.STORE_NAME}!

═══════════════════════════════════════

📋 ORDER DETAILS:
Order Number: {order.order_number}
Order Date: {order.created_at.strftime('%d-%b-%Y %I:%M %p')}
Status: {order.order_status.upper()}
Payment: {order.get_payment_method_display()} ({order.payment_status})

═══════════════════════════════════════

👤 CUSTOMER DETAILS:
Name: {order.customer_name}
Phone: {address.get('phone', '')}
Email: {order.customer_email or ''}

📍 SHIPPING ADDRESS:
{_format_address(address)}

═══════════════════════════════════════

📦 ORDER ITEMS:
{items_details}

═══════════════════════════════════════

💳 PAYMENT SUMMARY:
Subtotal: ₹{order.subtotal}
Shipping: ₹{order.shipping_cost}
COD Charge: ₹{order.cod_charge}
TOTAL: ₹{order.total}

{settings.STORE_NAME} System
        """.strip()

        send_mail(
            subject=f'🛒 New Order Received - {order.order_number}',
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[settings.ADMIN_ORDER_EMAIL],
            fail_silently=False,
        )

        logger.info(f"Admin notification sent for Order {order.order_number}")
        return True, "Admin email sent successfully"

    except Exception as e:
        logger.error(f"Admin notification failed: {str(e)}")
        return False, str(e)


def send_customer_order_confirmation(order, items):
    """Send order confirmation to customer via EMAIL"""
    recipient = order.customer_email
    if not recipient:
        return False, "Customer email missing"

    try:
        item_names = [item.product_name for item in items[:3]]
        items_text = ", ".join(item_names)
        if len(items) > 3:
            items_text += f" and {len(items) - 3} more"

        payment_line = (
            f"Pay ₹{order.total} in cash on delivery"
            if order.payment_method == "cod"
            else f"Paid online: ₹{order.total}"
        )

        message = f"""
🏪 {settings.STORE_NAME} - Order Confirmed!

═══════════════════════════════════════

📋 ORDER DETAILS:
Order Number: {order.order_number}
Items: {items_text}
{payment_line}
Delivery Address: {_format_address(order.shipping_address or {})}

📦 Estimated Delivery: 4-7 business days

═══════════════════════════════════════

Track your order at {settings.SITE_URL}/orders/{order.id}

Thank you for shopping with us! 😊
        """.strip()

        send_mail(
            subject=f'Order Confirmed - {order.order_number} - {settings.STORE_NAME}',
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
            fail_silently=False,
        )

        logger.info(f"Customer confirmation sent via email for Order {order.order_number}")
        return True, "Customer email sent successfully"

    except Exception as e:
        logger.error(f"Customer notification failed: {str(e)}")
        return False, str(e)


def notify_order_placed(order):
    """Admin + customer emails once per order, guarded by customer_notified"""
    if order.customer_notified:
        return False

    items = list(order.items.all())
    send_admin_order_notification(order, items)
    sent, _ = send_customer_order_confirmation(order, items)
    if sent:
        order.customer_notified = True
        order.save(update_fields=["customer_notified", "updated_at"])
    return sent
