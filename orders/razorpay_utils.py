# orders/razorpay_utils.py
import hashlib
import hmac
import logging
from decimal import ROUND_HALF_UP, Decimal

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class RazorpayAPIError(Exception):
    """Raised when the Razorpay Orders API call fails"""

    def __init__(self, message, response=None):
        super().__init__(message)
        self.response = response


def to_paise(amount):
    """Rupees (Decimal/float/str) to integer paise"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def create_razorpay_order(amount, receipt, notes=None):
    """
    Create a gateway order for the hosted checkout.
    Returns the Razorpay order dict (id, amount, currency, ...).
    """
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        raise RazorpayAPIError("Razorpay credentials not configured")

    payload = {
        "amount": to_paise(amount),
        "currency": "INR",
        "receipt": receipt,
        "notes": notes or {},
    }
    url = f"{settings.RAZORPAY_API_URL.rstrip('/')}/orders"

    try:
        response = requests.post(
            url,
            json=payload,
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET),
            timeout=15,
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Razorpay order request failed: {str(e)}")
        raise RazorpayAPIError(str(e))

    try:
        data = response.json()
    except ValueError:
        data = {}

    if not response.ok or not data.get("id"):
        message = (data.get("error") or {}).get("description") or f"Razorpay API {response.status_code}"
        logger.error(f"Razorpay order creation failed for {receipt}: {message}")
        raise RazorpayAPIError(message, response=data)

    logger.info(f"Razorpay order {data['id']} created for receipt {receipt}")
    return data


def verify_payment_signature(razorpay_order_id, razorpay_payment_id, signature):
    """Checkout handler signature: HMAC-SHA256(key_secret, "order_id|payment_id")"""
    if not settings.RAZORPAY_KEY_SECRET or not signature:
        return False
    message = f"{razorpay_order_id}|{razorpay_payment_id}".encode("utf-8")
    expected = hmac.new(settings.RAZORPAY_KEY_SECRET.encode("utf-8"), message, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(body, signature):
    """Webhook signature: HMAC-SHA256 hex digest of the raw body with the webhook secret"""
    secret = settings.RAZORPAY_WEBHOOK_SECRET
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)
