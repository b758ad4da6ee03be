# exchanges/eligibility.py
from collections import Counter

from django.conf import settings
from django.utils import timezone

from .models import ExchangeRequest

ACTIVE_STATUS_MESSAGES = {
    "pending": "pending admin review",
    "approved": "approved and ready to ship",
    "shipped": "already shipped",
}


def _item_key(item):
    return (str(item.get("product_id")), str(item.get("size")), str(item.get("color")))


def _ineligible(reason, **extra):
    result = {
        "eligible": False,
        "reason": reason,
        "days_remaining": None,
        "warnings": [],
        "existing_exchange": None,
    }
    result.update(extra)
    return result


def all_items_exchanged(order):
    """True when completed exchanges already cover every unit of every order line"""
    exchanged = Counter()
    completed = ExchangeRequest.objects.filter(order=order, status="completed").values_list(
        "original_items", flat=True
    )
    for original_items in completed:
        for item in original_items or []:
            exchanged[_item_key(item)] += int(item.get("quantity") or 0)

    if not exchanged:
        return False
    for item in order.items.all():
        key = (str(item.product_id), item.size, item.color)
        if exchanged[key] < item.quantity:
            return False
    return True


def check_eligibility(order, user, now=None):
    """
    Decide whether `user` may open an exchange on `order`.

    Returns a dict with eligible, reason, days_remaining, warnings and,
    when blocked by an open request, existing_exchange.
    """
    if order is None or order.user_id != user.id:
        return _ineligible("Order not found or does not belong to you")

    active = (
        ExchangeRequest.objects.filter(order=order, status__in=ExchangeRequest.ACTIVE_STATUSES)
        .order_by("-created_at")
        .first()
    )
    if active is not None:
        status_text = ACTIVE_STATUS_MESSAGES.get(active.status, active.status)
        return _ineligible(
            f"An exchange request for this order is already {status_text}. "
            "You cannot create multiple exchange requests for the same order.",
            existing_exchange={
                "id": active.id,
                "status": active.status,
                "created_at": active.created_at.isoformat(),
            },
        )

    if order.order_status != "delivered":
        return _ineligible(f"Only delivered orders can be exchanged. Current status: {order.order_status}")
    if order.payment_status != "paid":
        return _ineligible("Order must be fully paid to request exchange")
    if not order.delivered_at:
        return _ineligible("Delivery date not recorded. Please contact support.")

    window = settings.EXCHANGE_WINDOW_DAYS
    now = now or timezone.now()
    days_since_delivery = (now - order.delivered_at).days
    if days_since_delivery > window:
        return _ineligible(
            f"Exchange window has expired. Items must be exchanged within {window} days of delivery. "
            f"Your order was delivered {days_since_delivery} days ago."
        )

    if all_items_exchanged(order):
        return _ineligible(
            "All items from this order have already been exchanged. "
            "You cannot exchange the same items multiple times."
        )

    days_remaining = window - days_since_delivery
    warnings = []
    if days_remaining <= 5:
        warnings.append(
            f"Only {days_remaining} day{'' if days_remaining == 1 else 's'} remaining to exchange this order"
        )

    return {
        "eligible": True,
        "reason": None,
        "days_remaining": days_remaining,
        "warnings": warnings,
        "existing_exchange": None,
    }


def validate_same_product(original_items, requested_items):
    """
    Only size or color may change: same products, same quantities, and each
    line must actually change something. Returns (valid, error).
    """
    if len(original_items) != len(requested_items):
        return False, "Item count mismatch"

    for original, requested in zip(original_items, requested_items):
        if str(original.get("product_id")) != str(requested.get("product_id")):
            return False, "Product exchange not allowed. Only size or color can be changed."
        if int(original.get("quantity") or 0) != int(requested.get("quantity") or 0):
            return False, "Quantity cannot be changed."
        if original.get("size") == requested.get("size") and original.get("color") == requested.get("color"):
            return False, "Please select a different size or color."

    return True, None
