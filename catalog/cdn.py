# catalog/cdn.py
import hashlib
import logging
import time

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class CloudinaryAPIError(Exception):
    """Raised when the Cloudinary admin/upload API rejects a request"""
    pass


class CloudinaryClient:
    """Minimal Cloudinary client: usage report and image deletion"""

    BASE_URL = "https://api.cloudinary.com/v1_1"

    def __init__(self):
        self.cloud_name = settings.CLOUDINARY_CLOUD_NAME
        self.api_key = settings.CLOUDINARY_API_KEY
        self.api_secret = settings.CLOUDINARY_API_SECRET

    @property
    def is_configured(self):
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _sign(self, params):
        """SHA-1 signature over the sorted params followed by the API secret"""
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    @staticmethod
    def _parse(response):
        try:
            return response.json()
        except ValueError:
            raise CloudinaryAPIError(f"Invalid JSON response from Cloudinary: {response.text[:200]}")

    def get_usage(self):
        if not self.is_configured:
            raise CloudinaryAPIError("Cloudinary not configured")
        url = f"{self.BASE_URL}/{self.cloud_name}/usage"
        try:
            response = requests.get(url, auth=(self.api_key, self.api_secret), timeout=10)
        except requests.exceptions.RequestException as e:
            logger.error(f"Cloudinary usage request failed: {str(e)}")
            raise CloudinaryAPIError(str(e))
        if not response.ok:
            raise CloudinaryAPIError(f"Cloudinary API {response.status_code}: {response.text[:200]}")
        data = self._parse(response)
        if not isinstance(data, dict):
            raise CloudinaryAPIError("Invalid Cloudinary usage response")
        return data

    def delete_image(self, public_id):
        if not self.is_configured:
            raise CloudinaryAPIError("Cloudinary not configured")
        params = {"public_id": public_id, "timestamp": int(time.time())}
        payload = dict(params, api_key=self.api_key, signature=self._sign(params))
        url = f"{self.BASE_URL}/{self.cloud_name}/image/destroy"
        try:
            response = requests.post(url, data=payload, timeout=10)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Cloudinary delete failed for {public_id}: {str(e)}")
            raise CloudinaryAPIError(str(e))

        data = self._parse(response)
        result = data.get("result") if isinstance(data, dict) else None
        if result not in ("ok", "not found"):
            raise CloudinaryAPIError(f"Unexpected destroy result: {result}")
        logger.info(f"Cloudinary image {public_id} deleted ({result})")
        return result
