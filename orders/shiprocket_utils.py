# orders/shiprocket_utils.py
import logging

import requests
from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "shiprocket_auth_token"
# Tokens live 10 days; refresh a day early
TOKEN_CACHE_TIMEOUT = 9 * 24 * 60 * 60


class ShiprocketAPIError(Exception):
    """Raised for transport failures and non-2xx Shiprocket responses"""

    def __init__(self, message, status_code=None, response=None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class ShiprocketAPI:
    """Shiprocket API client with a bearer token shared through the Django cache"""

    def __init__(self):
        self.base_url = settings.SHIPROCKET_BASE_URL.strip().rstrip("/")
        self.email = settings.SHIPROCKET_EMAIL
        self.password = settings.SHIPROCKET_PASSWORD
        self.token = cache.get(TOKEN_CACHE_KEY)

    def _authenticate(self):
        """Log in, store the token and cache it"""
        if not self.email or not self.password:
            raise ShiprocketAPIError("Shiprocket credentials not configured")

        url = f"{self.base_url}/auth/login"
        try:
            response = requests.post(url, json={"email": self.email, "password": self.password}, timeout=10)
        except requests.exceptions.RequestException as e:
            logger.error(f"Shiprocket auth error: {str(e)}")
            raise ShiprocketAPIError(f"Authentication failed: {str(e)}")

        data = self._parse(response)
        if not response.ok or not data.get("token"):
            message = data.get("message") or response.text[:200]
            logger.error(f"Shiprocket auth failed: {message}")
            raise ShiprocketAPIError(f"Authentication failed: {message}", response.status_code, data)

        self.token = data["token"]
        cache.set(TOKEN_CACHE_KEY, self.token, TOKEN_CACHE_TIMEOUT)
        logger.info("Shiprocket authentication successful")
        return self.token

    def get_headers(self):
        """Get authorized headers"""
        if not self.token:
            self._authenticate()
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _parse(response):
        try:
            data = response.json()
        except ValueError:
            raise ShiprocketAPIError(
                f"Invalid JSON response from Shiprocket: {response.text[:200]}", response.status_code
            )
        return data if isinstance(data, (dict, list)) else {}

    def _request(self, method, endpoint, retry_auth=True, **kwargs):
        url = f"{self.base_url}{endpoint}"
        logger.info(f"Shiprocket API request: {method} {endpoint}")
        try:
            response = requests.request(method, url, headers=self.get_headers(), timeout=30, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"Shiprocket request {endpoint} failed: {str(e)}")
            raise ShiprocketAPIError(str(e))

        # Expired or revoked token: log in again once
        if response.status_code == 401 and retry_auth:
            cache.delete(TOKEN_CACHE_KEY)
            self.token = None
            return self._request(method, endpoint, retry_auth=False, **kwargs)

        data = self._parse(response)
        if not response.ok:
            message = data.get("message") if isinstance(data, dict) else None
            message = message or str(data)[:200]
            if isinstance(data, dict) and data.get("errors"):
                message = f"{message} | Details: {data['errors']}"
            logger.error(f"Shiprocket API error ({response.status_code}) on {endpoint}: {message}")
            raise ShiprocketAPIError(
                f"Shiprocket API Error ({response.status_code}): {message}", response.status_code, data
            )
        return data

    def create_order(self, payload):
        return self._request("POST", "/orders/create/adhoc", json=payload)

    def generate_awb(self, shipment_id, courier_id=None):
        """Assign a courier and get an AWB; without a courier Shiprocket picks one"""
        if courier_id:
            return self._request(
                "POST", "/courier/assign/awb", json={"shipment_id": shipment_id, "courier_id": courier_id}
            )
        return self._request("POST", "/courier/assign/recommend", json={"shipment_id": shipment_id})

    def schedule_pickup(self, shipment_ids):
        return self._request("POST", "/courier/generate/pickup", json={"shipment_id": list(shipment_ids)})

    def track_shipment(self, awb):
        return self._request("GET", f"/courier/track/awb/{awb}")

    def get_available_couriers(self, pickup_pincode, delivery_pincode, weight, cod=0):
        params = {
            "pickup_postcode": pickup_pincode,
            "delivery_postcode": delivery_pincode,
            "weight": weight,
            "cod": cod,
        }
        data = self._request("GET", "/courier/serviceability/", params=params)
        # The companies list sits under "data" in live responses
        if isinstance(data.get("data"), dict):
            return data["data"].get("available_courier_companies", [])
        return data.get("available_courier_companies", [])

    def cancel_shipment(self, shiprocket_order_ids):
        return self._request("POST", "/orders/cancel", json={"ids": list(shiprocket_order_ids)})
