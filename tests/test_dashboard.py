"""
Back-office dashboard: headline stats, analytics, customers and quota reports.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from catalog.cdn import CloudinaryAPIError
from dashboard.usage import cloudinary_usage, database_usage
from tests.factories import OrderFactory, OrderItemFactory, ProductFactory, UserFactory

pytestmark = pytest.mark.django_db


class TestStats:

    def test_headline_numbers(self, staff_client):
        customer = UserFactory()
        OrderFactory(user=customer, payment_status='paid', total=Decimal('1500'))
        OrderFactory(user=customer, payment_status='pending', total=Decimal('700'))
        ProductFactory(stock=2)

        response = staff_client.get('/api/admin/stats/')

        data = response.json()['data']
        assert data['totalRevenue'] == 1500
        assert data['totalOrders'] == 2
        assert data['totalCustomers'] == 1
        assert data['totalProducts'] == 1
        assert data['lowStockProducts'][0]['stock'] == 2
        assert len(data['recentOrders']) == 2

    def test_customers_are_forbidden(self, auth_client):
        assert auth_client.get('/api/admin/stats/').status_code == 403


class TestAnalytics:

    def test_top_products_and_monthly_series(self, staff_client):
        order = OrderFactory(payment_status='paid', total=Decimal('2997'))
        item = OrderItemFactory(order=order, quantity=3)

        response = staff_client.get('/api/admin/analytics/?days=7')

        data = response.json()['data']
        assert data['totalRevenue'] == 2997.0
        assert data['topProducts'][0]['product_id'] == item.product_id
        assert data['topProducts'][0]['sales_count'] == 3
        assert len(data['monthlyRevenue']) == 6
        assert data['monthlyRevenue'][-1]['orders'] == 1
        assert data['recentSales'][0]['items_count'] == 1

    def test_days_must_be_positive(self, staff_client):
        assert staff_client.get('/api/admin/analytics/?days=0').status_code == 400


class TestCustomers:

    def test_totals_count_paid_orders_only(self, staff_client, staff_user):
        customer = UserFactory(first_name='Asha', last_name='Rao')
        OrderFactory(user=customer, payment_status='paid', total=Decimal('999'))
        OrderFactory(user=customer, payment_status='failed', total=Decimal('500'))

        response = staff_client.get('/api/admin/customers/')

        rows = response.json()['data']
        assert [row['id'] for row in rows] == [customer.id]
        assert rows[0]['name'] == 'Asha Rao'
        assert rows[0]['total_orders'] == 2
        assert rows[0]['total_spent'] == 999.0

    def test_customer_orders(self, staff_client):
        customer = UserFactory()
        order = OrderFactory(user=customer)

        response = staff_client.get(f'/api/admin/customers/{customer.id}/orders/')

        assert [o['id'] for o in response.json()['data']] == [order.id]

    def test_unknown_customer(self, staff_client):
        assert staff_client.get('/api/admin/customers/999999/orders/').status_code == 404


class TestUsageReports:

    def test_cloudinary_not_configured(self, staff_client):
        response = staff_client.get('/api/admin/cloudinary-usage/')

        assert response.status_code == 200
        body = response.json()
        assert body['message'] == 'Cloudinary not configured'
        assert body['data']['images']['limit'] == 25000

    @patch('dashboard.usage.CloudinaryClient')
    def test_cloudinary_error_still_renders(self, mock_client_cls, staff_client):
        mock_client_cls.return_value.is_configured = True
        mock_client_cls.return_value.get_usage.side_effect = CloudinaryAPIError('401 Unauthorized')

        response = staff_client.get('/api/admin/cloudinary-usage/')

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is False
        assert body['data']['storage']['used'] == 0

    @patch('catalog.cdn.requests.get')
    def test_cloudinary_non_json_reply_still_renders(self, mock_get, staff_client, settings):
        settings.CLOUDINARY_CLOUD_NAME = 'mk-demo'
        settings.CLOUDINARY_API_KEY = '123456'
        settings.CLOUDINARY_API_SECRET = 'cloud-secret'
        mock_get.return_value.ok = True
        mock_get.return_value.text = '<html>Bad Gateway</html>'
        mock_get.return_value.json.side_effect = ValueError('Expecting value')

        response = staff_client.get('/api/admin/cloudinary-usage/')

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is False
        assert body['error'].startswith('Invalid JSON response from Cloudinary')
        assert body['data']['images']['used'] == 0

    def test_cloudinary_percentages(self):
        client = MagicMock(is_configured=True)
        client.get_usage.return_value = {
            'resources': 2500,
            'storage': {'usage': 5 * 1024 ** 3},
            'bandwidth': {'usage': 0},
            'transformations': {'usage': 100},
            'plan': 'Free',
        }

        data = cloudinary_usage(client)

        assert data['images']['percentage'] == 10.0
        assert data['storage']['used'] == 5.0
        assert data['storage']['percentage'] == 20.0
        assert data['plan'] == 'Free'

    def test_database_usage(self, staff_client):
        OrderItemFactory()

        response = staff_client.get('/api/admin/database-usage/')

        data = response.json()['data']
        assert data['tables']['orders'] == 1
        assert data['tables']['order_items'] == 1
        assert data['tables']['products'] == 1
        assert data['rows']['used'] == sum(data['tables'].values())
        assert data['recommendations'] == []

    def test_database_recommendations(self):
        with patch.dict('dashboard.usage.DATABASE_FREE_TIER', {'rows': 5, 'storage': 500}):
            OrderItemFactory.create_batch(3)
            data = database_usage()
        assert 'Database rows exceeding 80% - consider archiving old data' in data['recommendations']
