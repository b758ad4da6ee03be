"""
Quota reports for the free-tier services the shop runs on.
"""

import logging

from django.contrib.auth import get_user_model
from django.utils import timezone

from catalog.cdn import CloudinaryClient
from catalog.models import Category, Product, ProductImage, SizeChart
from exchanges.models import ExchangeRequest
from orders.models import Order, OrderItem, ShipRocketLog

logger = logging.getLogger(__name__)

GB = 1024 * 1024 * 1024

CLOUDINARY_FREE_TIER = {
    "images": 25000,
    "storage": 25,  # GB
    "bandwidth": 25,  # GB
    "transformations": 25000,
}

DATABASE_FREE_TIER = {
    "rows": 500_000,
    "storage": 500,  # MB
}

USAGE_TABLES = {
    "products": Product,
    "categories": Category,
    "product_images": ProductImage,
    "size_charts": SizeChart,
    "orders": Order,
    "order_items": OrderItem,
    "exchange_requests": ExchangeRequest,
    "shiprocket_logs": ShipRocketLog,
}


def _percentage(used, limit):
    return round(used / limit * 100, 2) if limit else 0


def empty_cloudinary_usage():
    return {
        key: {"used": 0, "limit": limit, "percentage": 0}
        for key, limit in CLOUDINARY_FREE_TIER.items()
    }


def cloudinary_usage(client=None):
    """Usage against the free tier; raises CloudinaryAPIError when the API call fails"""
    client = client or CloudinaryClient()
    if not client.is_configured:
        return None

    usage = client.get_usage()
    resources = usage.get("resources") or 0
    storage_gb = ((usage.get("storage") or {}).get("usage") or 0) / GB
    bandwidth_gb = ((usage.get("bandwidth") or {}).get("usage") or 0) / GB
    transformations = (usage.get("transformations") or {}).get("usage") or 0

    return {
        "images": {
            "used": resources,
            "limit": CLOUDINARY_FREE_TIER["images"],
            "percentage": _percentage(resources, CLOUDINARY_FREE_TIER["images"]),
        },
        "storage": {
            "used": round(storage_gb, 2),
            "limit": CLOUDINARY_FREE_TIER["storage"],
            "percentage": _percentage(storage_gb, CLOUDINARY_FREE_TIER["storage"]),
        },
        "bandwidth": {
            "used": round(bandwidth_gb, 2),
            "limit": CLOUDINARY_FREE_TIER["bandwidth"],
            "percentage": _percentage(bandwidth_gb, CLOUDINARY_FREE_TIER["bandwidth"]),
        },
        "transformations": {
            "used": transformations,
            "limit": CLOUDINARY_FREE_TIER["transformations"],
            "percentage": _percentage(transformations, CLOUDINARY_FREE_TIER["transformations"]),
        },
        "plan": usage.get("plan") or "free",
        "lastUpdated": timezone.now().isoformat(),
    }


def database_usage():
    """Row counts per table and a 1 KB/row storage estimate"""
    tables = {name: model.objects.count() for name, model in USAGE_TABLES.items()}
    tables["users"] = get_user_model().objects.count()
    total_rows = sum(tables.values())
    storage_mb = round(total_rows / 1024, 2)
    logger.info(f"Database usage: {total_rows} rows across {len(tables)} tables")

    data = {
        "rows": {
            "used": total_rows,
            "limit": DATABASE_FREE_TIER["rows"],
            "percentage": _percentage(total_rows, DATABASE_FREE_TIER["rows"]),
        },
        "storage": {
            "used": storage_mb,
            "limit": DATABASE_FREE_TIER["storage"],
            "percentage": _percentage(storage_mb, DATABASE_FREE_TIER["storage"]),
            "unit": "MB",
            "note": "Estimated based on row count (1KB/row avg)",
        },
        "tables": tables,
        "plan": "free",
        "lastUpdated": timezone.now().isoformat(),
        "recommendations": [],
    }

    if data["rows"]["percentage"] > 80:
        data["recommendations"].append("Database rows exceeding 80% - consider archiving old data")
    if data["storage"]["percentage"] > 80:
        data["recommendations"].append("Storage usage high - optimize data storage")
    if total_rows > 100_000:
        data["recommendations"].append("Consider implementing data archival strategy")
    return data
