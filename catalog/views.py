import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db.models import Count, Prefetch, Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from storefront.decorators import parse_id, parse_json_body, staff_required_json

from .cdn import CloudinaryAPIError, CloudinaryClient
from .inventory import (
    get_low_stock_products,
    get_out_of_stock_products,
    restore_product_stock,
    update_product_stock,
    validate_stock,
)
from .models import Category, Product, ProductImage, SizeChart

logger = logging.getLogger(__name__)

GENDERS = {choice for choice, _ in Category.GENDER_CHOICES}


def _products_queryset():
    return Product.objects.select_related("category").prefetch_related(
        Prefetch("images", queryset=ProductImage.objects.order_by("display_order", "id")),
        "size_chart",
    )


def _clean_product_payload(data, partial=False):
    """
    Validate an admin product payload.
    Returns (fields, error); fields only holds keys present in the payload.
    """
    fields = {}

    if not partial or "name" in data:
        name = str(data.get("name") or "").strip()
        if not name:
            return None, "name is required"
        fields["name"] = name

    if not partial or "price" in data:
        try:
            price = Decimal(str(data.get("price")))
        except (InvalidOperation, TypeError):
            return None, "price must be a number"
        if price <= 0:
            return None, "price must be positive"
        fields["price"] = price

    if not partial or "stock" in data:
        try:
            stock = int(data.get("stock"))
        except (TypeError, ValueError):
            return None, "stock must be an integer"
        if stock < 0:
            return None, "stock cannot be negative"
        fields["stock"] = stock

    if not partial or "gender" in data:
        gender = str(data.get("gender") or "").lower()
        if gender not in GENDERS:
            return None, f"gender must be one of {', '.join(sorted(GENDERS))}"
        fields["gender"] = gender

    if not partial or "category" in data:
        category_ref = str(data.get("category") or "")
        lookup = Q(slug=category_ref)
        if parse_id(category_ref):
            lookup |= Q(id=parse_id(category_ref))
        category = Category.objects.filter(lookup).first() if category_ref else None
        if category is None:
            return None, "category not found"
        fields["category"] = category

    for key in ("sizes", "colors"):
        if key in data:
            values = data.get(key)
            if not isinstance(values, list) or not all(isinstance(v, str) and v.strip() for v in values):
                return None, f"{key} must be a list of strings"
            fields[key] = [v.strip() for v in values]

    for key in ("weight", "length", "breadth", "height"):
        if key in data:
            value = data.get(key)
            if value in (None, ""):
                fields[key] = None
                continue
            try:
                fields[key] = Decimal(str(value))
            except InvalidOperation:
                return None, f"{key} must be a number"

    for key in ("description", "sku"):
        if key in data:
            fields[key] = data.get(key) or ("" if key == "description" else None)

    for key in ("has_size_chart", "is_active"):
        if key in data:
            fields[key] = bool(data.get(key))

    return fields, None


def _save_size_chart(product, rows):
    SizeChart.objects.filter(product=product).delete()
    SizeChart.objects.bulk_create([
        SizeChart(
            product=product,
            size=str(row.get("size")),
            chest=row.get("chest"),
            length=row.get("length"),
            shoulder=row.get("shoulder"),
            sleeve=row.get("sleeve"),
        )
        for row in rows
        if row.get("size")
    ])


# ==================== PUBLIC CATALOG ====================

@require_GET
def product_list(request):
    """Storefront product listing with optional gender/category/stock filters"""
    try:
        products = _products_queryset().filter(is_active=True)

        gender = request.GET.get("gender")
        category = request.GET.get("category")
        if gender:
            products = products.filter(gender=gender.lower())
        if category:
            products = products.filter(category__slug=category)
        if request.GET.get("inStock") == "true":
            products = products.filter(stock__gt=0)

        limit = parse_id(request.GET.get("limit"))
        if limit:
            products = products[:limit]

        response = JsonResponse({
            "success": True,
            "data": [product.to_dict(with_details=True) for product in products],
        })
        response["Cache-Control"] = "public, s-maxage=60, stale-while-revalidate=30"
        return response
    except Exception as e:
        logger.error(f"Product listing error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e), "data": []}, status=500)


@require_GET
def product_detail(request, slug):
    product = get_object_or_404(_products_queryset(), slug=slug, is_active=True)
    return JsonResponse({"success": True, "data": product.to_dict(with_details=True)})


@require_GET
def category_list(request):
    """Active categories, optionally for one gender and with product counts"""
    categories = Category.objects.filter(is_active=True)

    gender = request.GET.get("gender")
    if gender:
        gender = gender.lower()
        # Storefront menus pass Male/Female
        gender = {"male": "men", "female": "women"}.get(gender, gender)
        categories = categories.filter(gender__in=[gender, "unisex"])

    with_count = request.GET.get("withCount") == "true"
    if with_count:
        categories = categories.annotate(product_count=Count("products", filter=Q(products__is_active=True)))

    data = []
    for category in categories:
        item = category.to_dict()
        if with_count:
            item["product_count"] = category.product_count
        data.append(item)
    return JsonResponse({"success": True, "data": data})


# ==================== ADMIN PRODUCTS ====================

@staff_required_json
@require_http_methods(["GET", "POST", "PUT", "DELETE"])
def admin_products(request):
    if request.method == "GET":
        products = _products_queryset().order_by("-created_at")
        return JsonResponse({"success": True, "data": [p.to_dict(with_details=True) for p in products]})

    if request.method == "DELETE":
        product_id = parse_id(request.GET.get("id"))
        if not product_id:
            return JsonResponse({"success": False, "error": "A numeric product ID is required"}, status=400)
        product = Product.objects.filter(id=product_id).first()
        if product is None:
            return JsonResponse({"success": False, "error": "Product not found"}, status=404)
        if product.orderitem_set.exists():
            # Keep order history intact; hide the product instead
            product.is_active = False
            product.save(update_fields=["is_active", "updated_at"])
            logger.info(f"Product {product_id} has orders, deactivated instead of deleted")
            return JsonResponse({"success": True, "message": "Product has orders and was deactivated"})
        product.delete()
        logger.info(f"Product {product_id} deleted")
        return JsonResponse({"success": True, "message": "Product deleted successfully"})

    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    try:
        if request.method == "POST":
            fields, error = _clean_product_payload(data)
            if error:
                return JsonResponse({"success": False, "error": error}, status=400)
            product = Product.objects.create(**fields)
            logger.info(f"Product created: {product.id} {product.name}")
            status = 201
        else:
            product_id = parse_id(data.get("id"))
            if not product_id:
                return JsonResponse({"success": False, "error": "A numeric product ID is required"}, status=400)
            product = Product.objects.filter(id=product_id).first()
            if product is None:
                return JsonResponse({"success": False, "error": "Product not found"}, status=404)
            fields, error = _clean_product_payload(data, partial=True)
            if error:
                return JsonResponse({"success": False, "error": error}, status=400)
            for key, value in fields.items():
                setattr(product, key, value)
            product.save()
            logger.info(f"Product updated: {product.id}")
            status = 200

        if isinstance(data.get("size_chart"), list):
            _save_size_chart(product, data["size_chart"])

        product = _products_queryset().get(id=product.id)
        return JsonResponse({"success": True, "data": product.to_dict(with_details=True)}, status=status)
    except Exception as e:
        logger.error(f"Admin product {request.method} error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e)}, status=500)


@staff_required_json
@require_POST
def upload_product_image(request, product_id):
    """Attach an uploaded image file to a product"""
    product = get_object_or_404(Product, id=product_id)
    upload = request.FILES.get("file")

    if upload is None:
        return JsonResponse({"success": False, "error": "No file provided"}, status=400)
    if upload.content_type not in settings.ALLOWED_IMAGE_TYPES:
        return JsonResponse({
            "success": False,
            "error": f"Invalid file type. Allowed: {', '.join(settings.ALLOWED_IMAGE_TYPES)}",
        }, status=400)
    if upload.size > settings.MAX_UPLOAD_SIZE:
        return JsonResponse({"success": False, "error": "File too large. Maximum size is 5MB"}, status=400)

    next_order = product.images.count()
    image = ProductImage.objects.create(
        product=product,
        image=upload,
        alt_text=request.POST.get("alt_text", product.name)[:200],
        display_order=next_order,
        is_primary=False,
    )
    if next_order == 0 or request.POST.get("is_primary") == "true":
        image.make_primary()

    logger.info(f"Image {image.id} uploaded for product {product.id}")
    return JsonResponse({"success": True, "data": image.to_dict()}, status=201)


@staff_required_json
@require_POST
def set_primary_image(request, image_id):
    image = get_object_or_404(ProductImage, id=image_id)
    image.make_primary()
    return JsonResponse({"success": True, "data": image.to_dict()})


@staff_required_json
@require_http_methods(["DELETE"])
def delete_product_image(request, image_id):
    """Remove an image row, and its CDN copy when it has one"""
    image = get_object_or_404(ProductImage, id=image_id)
    product_id = image.product_id
    was_primary = image.is_primary
    cdn_deleted = None

    if image.cdn_public_id:
        try:
            CloudinaryClient().delete_image(image.cdn_public_id)
            cdn_deleted = True
        except CloudinaryAPIError as e:
            # The row still goes; the orphaned CDN object can be cleaned up from the console
            logger.error(f"CDN delete failed for image {image_id}: {str(e)}")
            cdn_deleted = False

    if image.image:
        image.image.delete(save=False)
    image.delete()

    if was_primary:
        replacement = ProductImage.objects.filter(product_id=product_id).order_by("display_order", "id").first()
        if replacement:
            replacement.make_primary()

    return JsonResponse({"success": True, "cdn_deleted": cdn_deleted})


# ==================== ADMIN CATEGORIES ====================

@staff_required_json
@require_http_methods(["GET", "POST", "PUT", "DELETE"])
def admin_categories(request):
    if request.method == "GET":
        categories = Category.objects.order_by("display_order", "name")
        return JsonResponse({"success": True, "data": [c.to_dict() for c in categories]})

    if request.method == "DELETE":
        category_id = parse_id(request.GET.get("id"))
        if not category_id:
            return JsonResponse({"success": False, "error": "A numeric category ID is required"}, status=400)
        category = Category.objects.filter(id=category_id).first()
        if category is None:
            return JsonResponse({"success": False, "error": "Category not found"}, status=404)
        count = category.products.count()
        if count:
            return JsonResponse(
                {"success": False, "error": f"Cannot delete category with {count} products"}, status=409
            )
        category.delete()
        return JsonResponse({"success": True})

    data = parse_json_body(request)
    if data is None:
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    gender = data.get("gender")
    if gender is not None and gender not in GENDERS:
        return JsonResponse({"success": False, "error": "Invalid gender"}, status=400)

    try:
        if request.method == "POST":
            name = str(data.get("name") or "").strip()
            if not name:
                return JsonResponse({"success": False, "error": "name is required"}, status=400)
            category = Category.objects.create(
                name=name,
                slug=data.get("slug") or "",
                gender=gender or "unisex",
                description=data.get("description"),
                image_url=data.get("image_url"),
                display_order=int(data.get("display_order") or 0),
                is_active=data.get("is_active", True),
            )
            return JsonResponse({"success": True, "data": category.to_dict()}, status=201)

        category_id = parse_id(data.get("id"))
        if not category_id:
            return JsonResponse({"success": False, "error": "A numeric category ID is required"}, status=400)
        category = Category.objects.filter(id=category_id).first()
        if category is None:
            return JsonResponse({"success": False, "error": "Category not found"}, status=404)
        for key in ("name", "slug", "gender", "description", "image_url", "display_order", "is_active"):
            if key in data:
                setattr(category, key, data[key])
        category.save()
        return JsonResponse({"success": True, "data": category.to_dict()})
    except Exception as e:
        logger.error(f"Admin category {request.method} error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e)}, status=500)


# ==================== INVENTORY ====================

def _stock_row(product):
    return {
        "id": product.id,
        "name": product.name,
        "stock": product.stock,
        "price": float(product.price),
        "image_url": product.image_url,
    }


@staff_required_json
@require_http_methods(["GET", "POST"])
def inventory(request):
    if request.method == "GET":
        kind = request.GET.get("type")
        if kind == "low-stock":
            products = get_low_stock_products().prefetch_related("images")
        elif kind == "out-of-stock":
            products = get_out_of_stock_products().prefetch_related("images")
        else:
            return JsonResponse({
                "success": False,
                "error": 'Invalid type parameter. Use "low-stock" or "out-of-stock"',
            }, status=400)
        return JsonResponse({"success": True, "data": [_stock_row(p) for p in products]})

    data = parse_json_body(request)
    if data is None or not isinstance(data.get("items"), list):
        return JsonResponse({"success": False, "error": "Invalid request body"}, status=400)

    action = data.get("action")
    items = data["items"]
    if action == "validate":
        valid, errors = validate_stock(items)
        return JsonResponse({"success": True, "valid": valid, "errors": errors})
    if action == "update":
        ok, errors = update_product_stock(items)
        return JsonResponse({"success": ok, "errors": errors})
    if action == "restore":
        ok, errors = restore_product_stock(items)
        return JsonResponse({"success": ok, "errors": errors})

    return JsonResponse({
        "success": False,
        "error": 'Invalid action. Use "validate", "update", or "restore"',
    }, status=400)
