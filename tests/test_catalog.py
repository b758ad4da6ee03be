"""
Catalog browsing, back-office product/category management and inventory.
"""
from unittest.mock import MagicMock, patch

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from catalog.cdn import CloudinaryAPIError, CloudinaryClient
from catalog.inventory import restore_product_stock, update_product_stock, validate_stock
from catalog.models import Category, Product, ProductImage
from tests.factories import CategoryFactory, OrderItemFactory, ProductFactory

pytestmark = pytest.mark.django_db

PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89'
    b'\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82'
)


@pytest.fixture
def cloudinary_settings(settings):
    settings.CLOUDINARY_CLOUD_NAME = 'mk-demo'
    settings.CLOUDINARY_API_KEY = '123456'
    settings.CLOUDINARY_API_SECRET = 'cloud-secret'
    return settings


def _html_response():
    response = MagicMock(ok=True, status_code=200, text='<html>Service Unavailable</html>')
    response.json.side_effect = ValueError('Expecting value')
    return response


class TestStorefront:

    def test_product_list_filters(self, client):
        tees = CategoryFactory(name='Tees')
        ProductFactory(category=tees, gender='men', name='Boxy Tee')
        ProductFactory(category=tees, gender='women', name='Crop Tee')
        ProductFactory(category=tees, gender='men', name='Sold Out Tee', stock=0)
        ProductFactory(category=tees, gender='men', name='Hidden Tee', is_active=False)

        response = client.get('/api/products/?gender=men&inStock=true')

        assert response.status_code == 200
        assert [p['name'] for p in response.json()['data']] == ['Boxy Tee']
        assert response['Cache-Control'].startswith('public')

    def test_product_list_by_category(self, client):
        ProductFactory(category=CategoryFactory(name='Hoodies'), name='Zip Hoodie')
        ProductFactory(name='Plain Tee')
        response = client.get('/api/products/?category=hoodies')
        assert [p['name'] for p in response.json()['data']] == ['Zip Hoodie']

    def test_product_detail(self, client):
        product = ProductFactory(name='Washed Tee', has_size_chart=True)
        product.size_chart.create(size='M', chest=40, length=28)

        response = client.get(f'/api/products/{product.slug}/')

        data = response.json()['data']
        assert data['slug'] == 'washed-tee'
        assert data['size_chart'][0]['chest'] == 40.0

    def test_inactive_product_detail_is_not_found(self, client):
        product = ProductFactory(is_active=False)
        assert client.get(f'/api/products/{product.slug}/').status_code == 404

    def test_categories_for_a_gender(self, client):
        CategoryFactory(name='Shirts', gender='men')
        CategoryFactory(name='Dresses', gender='women')
        CategoryFactory(name='Caps', gender='unisex')

        response = client.get('/api/categories/?gender=Male')

        assert sorted(c['name'] for c in response.json()['data']) == ['Caps', 'Shirts']

    def test_category_counts(self, client):
        category = CategoryFactory(name='Joggers')
        ProductFactory.create_batch(2, category=category)
        ProductFactory(category=category, is_active=False)

        response = client.get('/api/categories/?withCount=true')

        assert response.json()['data'][0]['product_count'] == 2

    def test_slugs_stay_unique(self):
        first = ProductFactory(name='Classic Tee!')
        second = ProductFactory(name='Classic Tee')
        assert first.slug == 'classic-tee'
        assert second.slug == 'classic-tee-1'


class TestAdminProducts:

    URL = '/api/admin/products/'

    def test_customers_are_forbidden(self, auth_client):
        assert auth_client.get(self.URL).status_code == 403

    def test_anonymous_is_unauthorized(self, client):
        assert client.get(self.URL).status_code == 401

    def test_create_product_with_size_chart(self, staff_client, send_json):
        category = CategoryFactory(name='Polos')

        response = send_json(staff_client, 'post', self.URL, {
            'name': 'Pique Polo',
            'price': '1299.00',
            'stock': 25,
            'gender': 'men',
            'category': 'polos',
            'sizes': ['M', 'L'],
            'colors': ['Navy'],
            'has_size_chart': True,
            'size_chart': [{'size': 'M', 'chest': 40}, {'size': 'L', 'chest': 42}],
        })

        assert response.status_code == 201
        product = Product.objects.get(name='Pique Polo')
        assert product.category == category
        assert product.size_chart.count() == 2
        assert response.json()['data']['sizes'] == ['M', 'L']

    @pytest.mark.parametrize('field,value,error', [
        ('price', '-5', 'price must be positive'),
        ('stock', -1, 'stock cannot be negative'),
        ('gender', 'kids', 'gender must be one of men, unisex, women'),
        ('category', 'missing', 'category not found'),
    ])
    def test_create_validation(self, staff_client, send_json, field, value, error):
        CategoryFactory(name='Polos')
        payload = {'name': 'Polo', 'price': '10', 'stock': 1, 'gender': 'men', 'category': 'polos'}
        payload[field] = value

        response = send_json(staff_client, 'post', self.URL, payload)

        assert response.status_code == 400
        assert response.json()['error'] == error

    def test_partial_update(self, staff_client, send_json, product):
        response = send_json(staff_client, 'put', self.URL, {'id': product.id, 'stock': 3})

        assert response.status_code == 200
        product.refresh_from_db()
        assert product.stock == 3
        assert product.name == response.json()['data']['name']

    def test_delete_unsold_product(self, staff_client, product):
        response = staff_client.delete(f'{self.URL}?id={product.id}')
        assert response.status_code == 200
        assert not Product.objects.filter(id=product.id).exists()

    def test_delete_sold_product_deactivates(self, staff_client):
        item = OrderItemFactory()

        response = staff_client.delete(f'{self.URL}?id={item.product_id}')

        assert response.status_code == 200
        product = Product.objects.get(id=item.product_id)
        assert product.is_active is False

    def test_non_numeric_id(self, staff_client, send_json, product):
        assert staff_client.delete(f'{self.URL}?id=abc').status_code == 400
        assert send_json(staff_client, 'put', self.URL, {'id': 'MK-TEE', 'stock': 3}).status_code == 400
        assert Product.objects.get(id=product.id).stock == 10


class TestProductImages:

    def test_first_upload_becomes_primary(self, staff_client, product):
        upload = SimpleUploadedFile('front.png', PNG_BYTES, content_type='image/png')

        response = staff_client.post(f'/api/admin/products/{product.id}/images/', {'file': upload})

        assert response.status_code == 201
        assert response.json()['data']['is_primary'] is True
        assert product.images.get().image.name.startswith('products/')

    def test_rejects_other_file_types(self, staff_client, product):
        upload = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')
        response = staff_client.post(f'/api/admin/products/{product.id}/images/', {'file': upload})
        assert response.status_code == 400
        assert not product.images.exists()

    def test_rejects_large_files(self, staff_client, settings, product):
        settings.MAX_UPLOAD_SIZE = 10
        upload = SimpleUploadedFile('front.png', PNG_BYTES, content_type='image/png')
        response = staff_client.post(f'/api/admin/products/{product.id}/images/', {'file': upload})
        assert response.status_code == 400

    def test_set_primary(self, staff_client, product):
        first = ProductImage.objects.create(product=product, image_url='https://cdn.example.com/1.jpg', is_primary=True)
        second = ProductImage.objects.create(product=product, image_url='https://cdn.example.com/2.jpg')

        response = staff_client.post(f'/api/admin/images/{second.id}/primary/')

        assert response.status_code == 200
        first.refresh_from_db()
        second.refresh_from_db()
        assert (first.is_primary, second.is_primary) == (False, True)
        assert product.image_url == 'https://cdn.example.com/2.jpg'

    @patch('catalog.views.CloudinaryClient')
    def test_cdn_failure_still_deletes_row(self, mock_client_cls, staff_client, product):
        mock_client_cls.return_value.delete_image.side_effect = CloudinaryAPIError('timeout')
        primary = ProductImage.objects.create(
            product=product, image_url='https://cdn.example.com/1.jpg', cdn_public_id='mk/1', is_primary=True,
        )
        other = ProductImage.objects.create(product=product, image_url='https://cdn.example.com/2.jpg')

        response = staff_client.delete(f'/api/admin/images/{primary.id}/')

        assert response.status_code == 200
        assert response.json()['cdn_deleted'] is False
        assert not ProductImage.objects.filter(id=primary.id).exists()
        other.refresh_from_db()
        assert other.is_primary is True
        mock_client_cls.return_value.delete_image.assert_called_once_with('mk/1')

    @patch('catalog.cdn.requests.post')
    def test_non_json_cdn_reply_still_deletes_row(self, mock_post, staff_client, cloudinary_settings, product):
        mock_post.return_value = _html_response()
        image = ProductImage.objects.create(
            product=product, image_url='https://cdn.example.com/1.jpg', cdn_public_id='mk/1', is_primary=True,
        )

        response = staff_client.delete(f'/api/admin/images/{image.id}/')

        assert response.status_code == 200
        assert response.json()['cdn_deleted'] is False
        assert not ProductImage.objects.filter(id=image.id).exists()


class TestCloudinaryClient:

    @patch('catalog.cdn.requests.post')
    def test_delete_rejects_non_json_reply(self, mock_post, cloudinary_settings):
        mock_post.return_value = _html_response()

        with pytest.raises(CloudinaryAPIError, match='Invalid JSON response'):
            CloudinaryClient().delete_image('mk/1')

    @patch('catalog.cdn.requests.get')
    def test_usage_rejects_non_json_reply(self, mock_get, cloudinary_settings):
        mock_get.return_value = _html_response()

        with pytest.raises(CloudinaryAPIError, match='Service Unavailable'):
            CloudinaryClient().get_usage()

    @patch('catalog.cdn.requests.post')
    def test_delete_signs_the_request(self, mock_post, cloudinary_settings):
        mock_post.return_value.json.return_value = {'result': 'ok'}

        assert CloudinaryClient().delete_image('mk/1') == 'ok'

        assert mock_post.call_args.args[0] == 'https://api.cloudinary.com/v1_1/mk-demo/image/destroy'
        payload = mock_post.call_args.kwargs['data']
        assert payload['public_id'] == 'mk/1'
        assert payload['api_key'] == '123456'
        assert len(payload['signature']) == 40


class TestAdminCategories:

    URL = '/api/admin/categories/'

    def test_create(self, staff_client, send_json):
        response = send_json(staff_client, 'post', self.URL, {'name': 'Co-ord Sets', 'gender': 'women'})
        assert response.status_code == 201
        assert response.json()['data']['slug'] == 'co-ord-sets'

    def test_invalid_gender(self, staff_client, send_json):
        response = send_json(staff_client, 'post', self.URL, {'name': 'Kids', 'gender': 'kids'})
        assert response.status_code == 400

    def test_category_with_products_cannot_be_deleted(self, staff_client, product):
        response = staff_client.delete(f'{self.URL}?id={product.category_id}')

        assert response.status_code == 409
        assert response.json()['error'] == 'Cannot delete category with 1 products'
        assert Category.objects.filter(id=product.category_id).exists()

    def test_delete_empty_category(self, staff_client):
        category = CategoryFactory()
        assert staff_client.delete(f'{self.URL}?id={category.id}').status_code == 200
        assert not Category.objects.filter(id=category.id).exists()

    def test_non_numeric_id(self, staff_client, send_json):
        assert staff_client.delete(f'{self.URL}?id=tees').status_code == 400
        assert send_json(staff_client, 'put', self.URL, {'id': 'tees', 'name': 'Tees'}).status_code == 400


class TestInventory:

    URL = '/api/inventory/'

    def test_low_and_out_of_stock(self, staff_client):
        ProductFactory(name='Plenty', stock=50)
        ProductFactory(name='Few', stock=3)
        ProductFactory(name='None', stock=0)

        low = staff_client.get(f'{self.URL}?type=low-stock').json()['data']
        out = staff_client.get(f'{self.URL}?type=out-of-stock').json()['data']

        assert [p['name'] for p in low] == ['Few']
        assert [p['name'] for p in out] == ['None']

    def test_bad_type(self, staff_client):
        assert staff_client.get(f'{self.URL}?type=all').status_code == 400

    def test_validate_action(self, staff_client, send_json, product):
        response = send_json(staff_client, 'post', self.URL, {
            'action': 'validate',
            'items': [{'product_id': product.id, 'quantity': 11}],
        })

        body = response.json()
        assert body['valid'] is False
        assert 'Insufficient stock' in body['errors'][0]

    def test_update_and_restore(self, staff_client, send_json, product):
        items = [{'product_id': product.id, 'quantity': 4}]

        send_json(staff_client, 'post', self.URL, {'action': 'update', 'items': items})
        product.refresh_from_db()
        assert product.stock == 6

        send_json(staff_client, 'post', self.URL, {'action': 'restore', 'items': items})
        product.refresh_from_db()
        assert product.stock == 10

    def test_stock_never_goes_negative(self, product):
        ok, errors = update_product_stock([{'product_id': product.id, 'quantity': 11}])

        assert ok is False
        assert errors
        product.refresh_from_db()
        assert product.stock == 10

    def test_duplicate_lines_are_merged(self, product):
        valid, errors = validate_stock([
            {'product_id': product.id, 'quantity': 6},
            {'product_id': product.id, 'quantity': 5},
        ])
        assert valid is False

    def test_restore_unknown_product(self):
        ok, errors = restore_product_stock([{'product_id': 999999, 'quantity': 1}])
        assert ok is False
        assert errors == ['Product 999999 not found']
