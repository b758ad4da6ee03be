import logging
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db.models import Count, Max, Q, Sum
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET

from catalog.cdn import CloudinaryAPIError
from catalog.inventory import get_low_stock_products
from catalog.models import Product
from orders.models import Order, OrderItem
from storefront.decorators import parse_id, staff_required_json

from .usage import cloudinary_usage, database_usage, empty_cloudinary_usage

logger = logging.getLogger(__name__)


def _paid_revenue(queryset):
    return queryset.filter(payment_status="paid").aggregate(total=Sum("total"))["total"] or Decimal("0")


def _month_start(moment, months_back):
    """First instant of the month `months_back` months before `moment`"""
    year, month = moment.year, moment.month - months_back
    while month < 1:
        month += 12
        year -= 1
    return moment.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


@staff_required_json
@require_GET
def admin_stats(request):
    """Headline numbers for the back-office home page"""
    try:
        low_stock = get_low_stock_products().prefetch_related("images")[:10]
        recent = Order.objects.order_by("-created_at")[:5]

        data = {
            "totalProducts": Product.objects.count(),
            "totalOrders": Order.objects.count(),
            "totalCustomers": get_user_model().objects.filter(is_staff=False).count(),
            "totalRevenue": round(float(_paid_revenue(Order.objects.all()))),
            "lowStockProducts": [
                {
                    "id": p.id,
                    "name": p.name,
                    "stock": p.stock,
                    "price": float(p.price),
                    "image_url": p.image_url,
                }
                for p in low_stock
            ],
            "recentOrders": [
                {
                    "id": order.id,
                    "orderNumber": order.order_number,
                    "customer": order.customer_name or "N/A",
                    "amount": float(order.total),
                    "status": order.order_status,
                    "paymentStatus": order.payment_status,
                    "date": order.created_at.isoformat(),
                }
                for order in recent
            ],
        }
        return JsonResponse({"success": True, "data": data})
    except Exception as e:
        logger.error(f"Stats error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e)}, status=500)


@staff_required_json
@require_GET
def admin_analytics(request):
    """Revenue and sales over the last `days` days, with a six-month series"""
    days = parse_id(request.GET.get("days", "30"))
    if days is None:
        return JsonResponse({"success": False, "error": "days must be a positive integer"}, status=400)

    now = timezone.now()
    start = now - timedelta(days=days)
    previous_start = start - timedelta(days=days)

    window_orders = Order.objects.filter(created_at__gte=start)
    total_revenue = _paid_revenue(window_orders)
    previous_revenue = _paid_revenue(Order.objects.filter(created_at__gte=previous_start, created_at__lt=start))
    revenue_growth = (
        float((total_revenue - previous_revenue) / previous_revenue * 100) if previous_revenue > 0 else 0
    )

    top_products = (
        OrderItem.objects.filter(order__created_at__gte=start, product__isnull=False)
        .values("product_id")
        .annotate(sales_count=Sum("quantity"), revenue=Sum("subtotal"), name=Max("product_name"))
        .order_by("-revenue")[:5]
    )
    images = {p.id: p.image_url for p in Product.objects.prefetch_related("images").filter(
        id__in=[row["product_id"] for row in top_products]
    )}

    recent_sales = window_orders.annotate(items_count=Count("items")).order_by("-created_at")[:5]

    monthly = []
    for months_back in range(5, -1, -1):
        month_start = _month_start(now, months_back)
        month_end = _month_start(now, months_back - 1) if months_back else now
        paid = Order.objects.filter(
            payment_status="paid", created_at__gte=month_start, created_at__lt=month_end
        ).aggregate(revenue=Sum("total"), orders=Count("id"))
        monthly.append({
            "month": month_start.strftime("%b %Y"),
            "revenue": float(paid["revenue"] or 0),
            "orders": paid["orders"],
        })

    data = {
        "totalRevenue": float(total_revenue),
        "totalOrders": window_orders.count(),
        "totalCustomers": get_user_model().objects.filter(is_staff=False).count(),
        "totalProducts": Product.objects.count(),
        "revenueGrowth": round(revenue_growth),
        "topProducts": [
            {
                "product_id": row["product_id"],
                "name": row["name"],
                "sales_count": row["sales_count"],
                "revenue": float(row["revenue"]),
                "image_url": images.get(row["product_id"], ""),
            }
            for row in top_products
        ],
        "recentSales": [
            {
                "order_number": order.order_number,
                "customer_name": order.customer_name or "N/A",
                "total": float(order.total),
                "items_count": order.items_count,
                "created_at": order.created_at.isoformat(),
            }
            for order in recent_sales
        ],
        "monthlyRevenue": monthly,
    }
    return JsonResponse({"success": True, "data": data})


@staff_required_json
@require_GET
def admin_customers(request):
    customers = (
        get_user_model().objects.filter(is_staff=False)
        .annotate(
            total_orders=Count("orders", distinct=True),
            total_spent=Sum("orders__total", filter=Q(orders__payment_status="paid")),
            last_order_date=Max("orders__created_at"),
        )
        .order_by("-date_joined")
    )
    data = [
        {
            "id": user.id,
            "email": user.email or "No email",
            "name": user.get_full_name() or (user.email.split("@")[0] if user.email else user.get_username()),
            "created_at": user.date_joined.isoformat(),
            "total_orders": user.total_orders,
            "total_spent": float(user.total_spent or 0),
            "last_order_date": user.last_order_date.isoformat() if user.last_order_date else None,
        }
        for user in customers
    ]
    return JsonResponse({"success": True, "data": data})


@staff_required_json
@require_GET
def admin_customer_orders(request, user_id):
    user = get_user_model().objects.filter(id=user_id).first()
    if user is None:
        return JsonResponse({"success": False, "error": "Customer not found"}, status=404)
    orders = Order.objects.filter(user=user).prefetch_related("items").order_by("-created_at")
    return JsonResponse({"success": True, "data": [order.to_dict() for order in orders]})


@staff_required_json
@require_GET
def admin_cloudinary_usage(request):
    try:
        data = cloudinary_usage()
    except CloudinaryAPIError as e:
        logger.error(f"Cloudinary usage error: {str(e)}")
        # Keep the dashboard rendering
        return JsonResponse({"success": False, "error": str(e), "data": empty_cloudinary_usage()})

    if data is None:
        return JsonResponse({
            "success": True,
            "message": "Cloudinary not configured",
            "data": empty_cloudinary_usage(),
        })
    return JsonResponse({"success": True, "data": data})


@staff_required_json
@require_GET
def admin_database_usage(request):
    try:
        return JsonResponse({"success": True, "data": database_usage()})
    except Exception as e:
        logger.error(f"Database usage error: {str(e)}", exc_info=True)
        return JsonResponse({"success": False, "error": str(e)}, status=500)
