"""
Request tagging, JSON error envelopes and response headers for the API.
"""
from unittest.mock import patch

import pytest

pytestmark = pytest.mark.django_db


class TestApiRequestMiddleware:

    def test_generates_a_request_id(self, client):
        response = client.get('/api/products/')
        assert len(response['X-Request-ID']) == 32

    def test_echoes_the_callers_request_id(self, client):
        response = client.get('/api/products/', HTTP_X_REQUEST_ID='checkout-7f3a')
        assert response['X-Request-ID'] == 'checkout-7f3a'

    def test_replaces_an_unusable_request_id(self, client):
        response = client.get('/api/products/', HTTP_X_REQUEST_ID='<script>alert(1)</script>')
        assert response['X-Request-ID'] != '<script>alert(1)</script>'
        assert len(response['X-Request-ID']) == 32

    @patch('catalog.views._products_queryset', side_effect=RuntimeError('connection reset'))
    def test_uncaught_error_becomes_json(self, mock_queryset, staff_client):
        response = staff_client.get('/api/admin/products/', HTTP_X_REQUEST_ID='req-500')

        assert response.status_code == 500
        assert response['Content-Type'] == 'application/json'
        assert response.json() == {"success": False, "error": "Internal server error", "request_id": "req-500"}
        assert response['Cache-Control'].startswith('no-store')

    def test_missing_object_is_a_json_404(self, staff_client):
        response = staff_client.post('/api/admin/images/999999/primary/')

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Not found"}


class TestResponseHeaders:

    def test_private_prefixes_are_not_cached(self, staff_client, settings):
        settings.API_NO_STORE_PREFIXES = ('/api/admin/stats/',)

        assert staff_client.get('/api/admin/stats/')['Cache-Control'].startswith('no-store')
        assert 'no-store' not in staff_client.get('/api/admin/analytics/').get('Cache-Control', '')

    def test_browser_hardening_headers(self, client):
        response = client.get('/api/products/')

        assert response['X-Content-Type-Options'] == 'nosniff'
        assert response['X-Frame-Options'] == 'DENY'
        assert response['Referrer-Policy'] == 'strict-origin-when-cross-origin'

    def test_hsts_only_over_https(self, client, settings):
        settings.SECURE_HSTS_SECONDS = 3600

        assert 'Strict-Transport-Security' not in client.get('/api/products/')
        assert client.get('/api/products/', secure=True)['Strict-Transport-Security'] == 'max-age=3600'
