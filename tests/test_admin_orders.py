"""
Back-office order management and the delivery-date backfill.
"""
import pytest
from django.core import mail

from orders.models import Order
from orders.utils import notify_order_placed
from tests.factories import OrderFactory, OrderItemFactory

pytestmark = pytest.mark.django_db

URL = '/api/admin/orders/'


class TestAdminOrders:

    def test_list_by_status(self, staff_client):
        shipped = OrderFactory(order_status='shipped')
        OrderFactory(order_status='pending')

        response = staff_client.get(f'{URL}?status=shipped')

        assert [o['id'] for o in response.json()['data']] == [shipped.id]
        assert response['Cache-Control'].startswith('no-store')

    def test_bulk_status_update(self, staff_client, send_json):
        orders = OrderFactory.create_batch(2, order_status='shipped')

        response = send_json(staff_client, 'patch', URL, {
            'orderIds': [o.id for o in orders],
            'order_status': 'delivered',
        })

        assert response.json()['updated'] == 2
        for order in orders:
            order.refresh_from_db()
            assert order.order_status == 'delivered'
            assert order.delivered_at is not None

    def test_bulk_update_rejects_unknown_status(self, staff_client, send_json):
        order = OrderFactory()
        response = send_json(staff_client, 'patch', URL, {'orderIds': [order.id], 'order_status': 'teleported'})
        assert response.status_code == 400

    def test_single_update(self, staff_client, send_json):
        order = OrderFactory()

        response = send_json(staff_client, 'put', URL, {
            'id': order.id,
            'order_status': 'shipped',
            'awb_number': 'AWB42',
            'expected_delivery_date': '2026-02-01',
        })

        assert response.status_code == 200
        order.refresh_from_db()
        assert order.order_status == 'shipped'
        assert order.shipped_at is not None
        assert order.awb_number == 'AWB42'
        assert order.expected_delivery_date.month == 2

    def test_single_update_validates_dates(self, staff_client, send_json):
        order = OrderFactory()
        response = send_json(staff_client, 'put', URL, {'id': order.id, 'delivered_at': 'last tuesday'})
        assert response.status_code == 400

    def test_single_update_unknown_order(self, staff_client, send_json):
        assert send_json(staff_client, 'put', URL, {'id': 999999}).status_code == 404

    def test_single_update_non_numeric_id(self, staff_client, send_json):
        assert send_json(staff_client, 'put', URL, {'id': 'MK2501'}).status_code == 404

    def test_single_update_impossible_date(self, staff_client, send_json):
        order = OrderFactory()

        response = send_json(staff_client, 'put', URL, {'id': order.id, 'shipped_at': '2025-13-01'})

        assert response.status_code == 400
        assert response.json()['error'] == 'Invalid shipped_at'

    def test_bulk_update_rejects_non_numeric_ids(self, staff_client, send_json):
        order = OrderFactory(order_status='shipped')

        response = send_json(staff_client, 'patch', URL, {'orderIds': [order.id, 'abc'], 'order_status': 'delivered'})

        assert response.status_code == 400
        order.refresh_from_db()
        assert order.order_status == 'shipped'


class TestFixDeliveryDates:

    URL = '/api/admin/fix-delivery-dates/'

    def test_lists_orders_missing_a_date(self, staff_client):
        broken = OrderFactory(order_status='delivered')
        OrderFactory(order_status='shipped')

        body = staff_client.get(self.URL).json()

        assert body['count'] == 1
        assert body['data'][0]['id'] == broken.id

    def test_fix_all(self, staff_client, send_json):
        broken = OrderFactory.create_batch(2, order_status='delivered')

        response = send_json(staff_client, 'post', self.URL, {'action': 'fix_all'})

        assert response.json()['fixed'] == 2
        assert not Order.objects.filter(order_status='delivered', delivered_at__isnull=True).exists()
        for order in broken:
            order.refresh_from_db()
            assert order.shipped_at == order.delivered_at

    def test_fix_single_with_date(self, staff_client, send_json):
        order = OrderFactory(order_status='delivered')

        response = send_json(staff_client, 'post', self.URL, {
            'action': 'fix_single', 'orderId': order.id, 'deliveryDate': '2026-01-15',
        })

        assert response.status_code == 200
        order.refresh_from_db()
        assert order.delivered_at.date().isoformat() == '2026-01-15'

    def test_nothing_to_fix(self, staff_client, send_json):
        response = send_json(staff_client, 'post', self.URL, {'action': 'fix_all'})
        assert response.json()['message'] == 'No orders need fixing'


class TestNotifications:

    def test_emails_go_out_once(self):
        order = OrderItemFactory().order

        assert notify_order_placed(order) is True
        assert notify_order_placed(order) is False
        assert len(mail.outbox) == 2

    def test_missing_customer_email(self, settings):
        settings.ADMIN_ORDER_EMAIL = None
        item = OrderItemFactory(order__shipping_address={'first_name': 'Ravi'}, order__user__email='')

        assert notify_order_placed(item.order) is False
        assert mail.outbox == []
        item.order.refresh_from_db()
        assert item.order.customer_notified is False
