"""
Razorpay payment confirmation: client verification and the signed webhook.
"""
import hashlib
import hmac
import json
from unittest.mock import patch

import pytest

from orders.models import Order
from orders.razorpay_utils import to_paise, verify_payment_signature, verify_webhook_signature
from tests.factories import OrderFactory, OrderItemFactory

pytestmark = pytest.mark.django_db

WEBHOOK_URL = '/api/webhooks/razorpay/'
VERIFY_URL = '/api/razorpay/verify-payment/'


def _sign(secret, message):
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


def _event(name, razorpay_order_id, payment_id='pay_ABC123'):
    return {
        'event': name,
        'payload': {
            'payment': {
                'entity': {
                    'id': payment_id,
                    'order_id': razorpay_order_id,
                    'amount': 99900,
                    'status': 'captured' if name == 'payment.captured' else 'failed',
                },
            },
        },
    }


def _post_webhook(client, payload, secret='whsec_test', signature=None):
    body = json.dumps(payload).encode('utf-8')
    headers = {}
    if signature is not False:
        headers['HTTP_X_RAZORPAY_SIGNATURE'] = signature or _sign(secret, body)
    return client.post(WEBHOOK_URL, data=body, content_type='application/json', **headers)


@pytest.fixture
def online_order(user):
    order = OrderFactory(user=user, razorpay_order_id='order_RZP1')
    OrderItemFactory(order=order, quantity=2)
    return order


class TestSignatures:

    def test_payment_signature(self):
        signature = _sign('rzp_test_secret', b'order_1|pay_1')
        assert verify_payment_signature('order_1', 'pay_1', signature)
        assert not verify_payment_signature('order_1', 'pay_2', signature)
        assert not verify_payment_signature('order_1', 'pay_1', '')

    def test_webhook_signature(self, settings):
        body = b'{"event": "payment.captured"}'
        assert verify_webhook_signature(body, _sign('whsec_test', body))
        assert not verify_webhook_signature(body + b' ', _sign('whsec_test', body))

        settings.RAZORPAY_WEBHOOK_SECRET = None
        assert not verify_webhook_signature(body, _sign('whsec_test', body))

    def test_to_paise_rounds_half_up(self):
        assert to_paise('999.00') == 99900
        assert to_paise('10.005') == 1001


class TestRazorpayWebhook:

    @patch('orders.views.ship_order_quietly', return_value=True)
    def test_captured_marks_order_paid(self, mock_ship, client, online_order):
        response = _post_webhook(client, _event('payment.captured', 'order_RZP1'))

        assert response.status_code == 200
        online_order.refresh_from_db()
        assert online_order.payment_status == 'paid'
        assert online_order.order_status == 'confirmed'
        assert online_order.razorpay_payment_id == 'pay_ABC123'
        assert online_order.paid_at is not None
        assert online_order.customer_notified is True
        mock_ship.assert_called_once()

    @patch('orders.views.ship_order_quietly', return_value=True)
    def test_replayed_capture_is_processed_once(self, mock_ship, client, online_order):
        _post_webhook(client, _event('payment.captured', 'order_RZP1'))
        response = _post_webhook(client, _event('payment.captured', 'order_RZP1'))

        assert response.status_code == 200
        assert mock_ship.call_count == 1

    def test_failed_payment_restores_stock(self, client, online_order):
        product = online_order.items.get().product
        product.stock = 4
        product.save()

        response = _post_webhook(client, _event('payment.failed', 'order_RZP1'))

        assert response.status_code == 200
        online_order.refresh_from_db()
        assert online_order.payment_status == 'failed'
        assert online_order.order_status == 'payment_failed'
        product.refresh_from_db()
        assert product.stock == 6

    @pytest.mark.parametrize('event_name', ['payment.captured', 'payment.failed', 'refund.created'])
    def test_bad_signature_is_unauthorized(self, client, online_order, event_name):
        response = _post_webhook(client, _event(event_name, 'order_RZP1'), signature='deadbeef')

        assert response.status_code == 401
        online_order.refresh_from_db()
        assert online_order.payment_status == 'pending'

    def test_missing_signature(self, client, online_order):
        response = _post_webhook(client, _event('payment.captured', 'order_RZP1'), signature=False)
        assert response.status_code == 400

    def test_unconfigured_secret(self, client, settings, online_order):
        settings.RAZORPAY_WEBHOOK_SECRET = None
        response = _post_webhook(client, _event('payment.captured', 'order_RZP1'))
        assert response.status_code == 500

    def test_other_events_are_acknowledged(self, client, online_order):
        response = _post_webhook(client, _event('payment.authorized', 'order_RZP1'))

        assert response.status_code == 200
        assert response.json() == {'received': True}
        online_order.refresh_from_db()
        assert online_order.payment_status == 'pending'

    def test_malformed_payload(self, client):
        response = _post_webhook(client, {'event': 'payment.captured', 'payload': {}})
        assert response.status_code == 400

    def test_unknown_gateway_order(self, client):
        response = _post_webhook(client, _event('payment.captured', 'order_UNKNOWN'))
        assert response.status_code == 500


class TestVerifyPayment:

    @patch('orders.views.ship_order_quietly', return_value=True)
    def test_valid_signature_confirms_order(self, mock_ship, auth_client, send_json, online_order):
        response = send_json(auth_client, 'post', VERIFY_URL, {
            'razorpay_order_id': 'order_RZP1',
            'razorpay_payment_id': 'pay_1',
            'razorpay_signature': _sign('rzp_test_secret', b'order_RZP1|pay_1'),
            'order_id': online_order.id,
        })

        assert response.status_code == 200
        online_order.refresh_from_db()
        assert online_order.payment_status == 'paid'
        assert online_order.razorpay_signature
        mock_ship.assert_called_once()

    def test_invalid_signature(self, auth_client, send_json, online_order):
        response = send_json(auth_client, 'post', VERIFY_URL, {
            'razorpay_order_id': 'order_RZP1',
            'razorpay_payment_id': 'pay_1',
            'razorpay_signature': 'forged',
            'order_id': online_order.id,
        })

        assert response.status_code == 400
        assert Order.objects.get(id=online_order.id).payment_status == 'pending'

    def test_missing_fields(self, auth_client, send_json, online_order):
        response = send_json(auth_client, 'post', VERIFY_URL, {'razorpay_order_id': 'order_RZP1'})
        assert response.status_code == 400
        assert response.json()['error'] == 'Missing payment details'

    def test_order_mismatch(self, auth_client, send_json, online_order):
        response = send_json(auth_client, 'post', VERIFY_URL, {
            'razorpay_order_id': 'order_OTHER',
            'razorpay_payment_id': 'pay_1',
            'razorpay_signature': _sign('rzp_test_secret', b'order_OTHER|pay_1'),
            'order_id': online_order.id,
        })
        assert response.status_code == 404

    def test_order_number_instead_of_id(self, auth_client, send_json, online_order):
        response = send_json(auth_client, 'post', VERIFY_URL, {
            'razorpay_order_id': 'order_RZP1',
            'razorpay_payment_id': 'pay_1',
            'razorpay_signature': _sign('rzp_test_secret', b'order_RZP1|pay_1'),
            'order_id': 'MK2501',
        })

        assert response.status_code == 400
        assert response.json()['error'] == 'Invalid order_id'
        assert Order.objects.get(id=online_order.id).payment_status == 'pending'


class TestCreateRazorpayOrder:

    @patch('orders.razorpay_utils.requests.post')
    def test_posts_amount_in_paise(self, mock_post):
        from orders.razorpay_utils import create_razorpay_order
        mock_post.return_value.ok = True
        mock_post.return_value.json.return_value = {'id': 'order_X', 'amount': 109900, 'currency': 'INR'}

        result = create_razorpay_order('1099.00', receipt='MK260101ABCDEF')

        assert result['id'] == 'order_X'
        payload = mock_post.call_args.kwargs['json']
        assert payload['amount'] == 109900
        assert payload['receipt'] == 'MK260101ABCDEF'
        assert mock_post.call_args.kwargs['auth'] == ('rzp_test_key', 'rzp_test_secret')

    @patch('orders.razorpay_utils.requests.post')
    def test_error_response_raises(self, mock_post):
        from orders.razorpay_utils import RazorpayAPIError, create_razorpay_order
        mock_post.return_value.ok = False
        mock_post.return_value.status_code = 400
        mock_post.return_value.json.return_value = {'error': {'description': 'Amount too small'}}

        with pytest.raises(RazorpayAPIError, match='Amount too small'):
            create_razorpay_order('0.10', receipt='MK1')
