# catalog/inventory.py
import logging

from django.conf import settings
from django.db.models import F

from .models import Product

logger = logging.getLogger(__name__)


def _normalize(items):
    """Merge duplicate product lines and coerce quantities, raising ValueError on junk"""
    totals = {}
    for item in items:
        try:
            product_id = int(item.get("product_id"))
            quantity = int(item.get("quantity", 1))
        except (TypeError, ValueError, AttributeError):
            raise ValueError("Each item needs a numeric product_id and quantity")
        if quantity < 1:
            raise ValueError(f"Invalid quantity for product {product_id}")
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


def validate_stock(items):
    """Return (valid, errors) for the requested quantities against current stock"""
    errors = []
    try:
        wanted = _normalize(items)
    except ValueError as e:
        return False, [str(e)]

    products = Product.objects.in_bulk(list(wanted))
    for product_id, quantity in wanted.items():
        product = products.get(product_id)
        if product is None or not product.is_active:
            errors.append(f"Product {product_id} is not available")
        elif product.stock < quantity:
            errors.append(f"Insufficient stock for {product.name}: {product.stock} left, {quantity} requested")
    return not errors, errors


def update_product_stock(items):
    """
    Decrement stock for each item.
    The decrement is a single conditional UPDATE per row so two buyers cannot
    both take the last unit.
    """
    errors = []
    try:
        wanted = _normalize(items)
    except ValueError as e:
        return False, [str(e)]

    for product_id, quantity in wanted.items():
        updated = Product.objects.filter(id=product_id, stock__gte=quantity).update(stock=F("stock") - quantity)
        if not updated:
            errors.append(f"Could not reserve {quantity} unit(s) of product {product_id}")
            logger.warning(f"Stock decrement failed for product {product_id} (qty {quantity})")
    return not errors, errors


def restore_product_stock(items):
    errors = []
    try:
        wanted = _normalize(items)
    except ValueError as e:
        return False, [str(e)]

    for product_id, quantity in wanted.items():
        updated = Product.objects.filter(id=product_id).update(stock=F("stock") + quantity)
        if not updated:
            errors.append(f"Product {product_id} not found")
    if not errors:
        logger.info(f"Restored stock for {len(wanted)} product(s)")
    return not errors, errors


def get_low_stock_products(threshold=None):
    threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
    return Product.objects.filter(stock__gt=0, stock__lte=threshold).order_by("stock")


def get_out_of_stock_products():
    return Product.objects.filter(stock__lte=0).order_by("name")
