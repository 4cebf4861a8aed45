from decimal import Decimal
import json
import shutil
import tempfile
from unittest.mock import patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import RequestFactory, TestCase, override_settings

from config.errors import ServiceError
from users.models import User
from users.services import _open_session
from .models import CartItem, Product
from .views import upload_product_files_view
from . import services


class MockContext:
    def __init__(self, user=None):
        self.user = user


class MockInfo:
    def __init__(self, context):
        self.context = context


def make_user(suffix, user_type='PRODUCER'):
    address = '0x' + suffix * 40
    return User.objects.create_user(username=address, wallet_address=address, user_type=user_type)


def make_product(producer, name='Olive oil', price='12.50', quantity=10, **extra):
    return Product.objects.create(
        producer=producer,
        name=name,
        price_per_unit=Decimal(price),
        quantity=quantity,
        **extra
    )


class ProductCatalogueTest(TestCase):
    def setUp(self):
        self.producer = make_user('a')
        self.other = make_user('b')
        self.oil = make_product(self.producer, 'Olive oil', '12.50', category='Food')
        self.dates = make_product(self.producer, 'Deglet Nour dates', '4.00', category='Food')
        self.rugs = make_product(self.other, 'Kairouan rug', '300.00', category='Crafts', description='hand woven')

    def test_filters_and_search(self):
        result = services.list_products(category='food')
        self.assertEqual(result['total'], 2)

        result = services.list_products(search='woven')
        self.assertEqual([p.id for p in result['items']], [self.rugs.id])

        result = services.list_products(producer_id=self.other.id)
        self.assertEqual(result['total'], 1)

    def test_ordering_and_paging(self):
        result = services.list_products(ordering='price_asc', page=1, page_size=2)
        self.assertEqual([p.id for p in result['items']], [self.dates.id, self.oil.id])
        self.assertEqual(result['total'], 3)

        result = services.list_products(ordering='price_asc', page=2, page_size=2)
        self.assertEqual([p.id for p in result['items']], [self.rugs.id])

    def test_page_size_is_capped(self):
        result = services.list_products(page_size=10_000)
        self.assertEqual(result['page_size'], services.MAX_PAGE_SIZE)

    def test_soft_deleted_products_are_hidden(self):
        self.rugs.soft_delete()
        self.assertEqual(services.list_products()['total'], 2)
        with self.assertRaises(ServiceError) as ctx:
            services.get_product(self.rugs.id)
        self.assertEqual(ctx.exception.status, 404)

    def test_products_query(self):
        from .schema import Query

        page = Query().resolve_products(MockInfo(MockContext()), category='Crafts')
        self.assertEqual(page.total, 1)
        self.assertEqual(page.items[0].name, 'Kairouan rug')


@override_settings(HEDERA_ACCOUNT_ID='', HEDERA_PRIVATE_KEY='')
class CreateProductTest(TestCase):
    def setUp(self):
        self.producer = make_user('c')
        self.data = {
            'name': '  Harissa  ',
            'price_per_unit': Decimal('3.20'),
            'quantity': 50,
            'min_order_qty': 5,
            'country_of_origin': 'Tunisia',
        }

    def test_buyers_cannot_list_products(self):
        buyer = make_user('d', 'BUYER')
        with self.assertRaises(ServiceError) as ctx:
            services.create_product(buyer, **self.data)
        self.assertEqual(ctx.exception.status, 403)

    def test_created_without_token_when_hedera_is_off(self):
        product = services.create_product(self.producer, **self.data)
        self.assertEqual(product.name, 'Harissa')
        self.assertEqual(product.nft_status, 'PENDING')
        self.assertIsNone(product.hedera_token_id)

    def test_validation(self):
        with self.assertRaises(ServiceError):
            services.create_product(self.producer, **dict(self.data, price_per_unit='abc'))
        with self.assertRaises(ServiceError):
            services.create_product(self.producer, **dict(self.data, quantity=-1))
        with self.assertRaises(ServiceError):
            services.create_product(self.producer, **dict(self.data, name=' '))

    def test_non_finite_price_is_rejected(self):
        for price in ('NaN', 'Infinity', '-Infinity', 'sNaN'):
            with self.assertRaises(ServiceError) as ctx:
                services.create_product(self.producer, **dict(self.data, price_per_unit=price))
            self.assertEqual(ctx.exception.status, 400)
        self.assertFalse(Product.objects.exists())

        from .schema import CreateProduct

        result = CreateProduct.mutate(
            None, MockInfo(MockContext(self.producer)), input=dict(self.data, price_per_unit='NaN')
        )
        self.assertFalse(result.success)

    @patch('marketplace.services.get_hedera_client')
    def test_token_is_created_when_configured(self, mock_client):
        mock_client.return_value.is_configured.return_value = True
        mock_client.return_value.create_product_token.return_value = '0.0.4455'

        product = services.create_product(self.producer, **self.data)

        self.assertEqual(product.hedera_token_id, '0.0.4455')
        args, kwargs = mock_client.return_value.create_product_token.call_args
        self.assertEqual(args, ('Harissa', 50))

    @patch('marketplace.services.get_hedera_client')
    def test_token_failure_keeps_product(self, mock_client):
        mock_client.return_value.is_configured.return_value = True
        mock_client.return_value.create_product_token.side_effect = RuntimeError("INSUFFICIENT_PAYER_BALANCE")

        product = services.create_product(self.producer, **self.data)

        self.assertTrue(Product.objects.filter(id=product.id).exists())
        self.assertIn("INSUFFICIENT_PAYER_BALANCE", product.nft_error)

    def test_create_product_mutation(self):
        from .schema import CreateProduct

        anonymous = CreateProduct.mutate(None, MockInfo(MockContext()), input=self.data)
        self.assertFalse(anonymous.success)

        result = CreateProduct.mutate(None, MockInfo(MockContext(self.producer)), input=self.data)
        self.assertTrue(result.success)
        self.assertEqual(result.product.producer, self.producer)


class MintProductTest(TestCase):
    def setUp(self):
        self.producer = make_user('e')
        self.product = make_product(self.producer, quantity=3, hedera_token_id='0.0.4455')

    @patch('marketplace.services.get_hedera_client')
    def test_mint_records_serials(self, mock_client):
        mock_client.return_value.mint_product_nfts.return_value = [1, 2, 3]

        product = services.mint_product_nft(self.producer, self.product.id)

        self.assertEqual(product.nft_status, 'MINTED')
        self.assertEqual(product.hedera_serials, 3)

        with self.assertRaises(ServiceError) as ctx:
            services.mint_product_nft(self.producer, self.product.id)
        self.assertEqual(ctx.exception.status, 409)

    @patch('marketplace.services.get_hedera_client')
    def test_mint_failure_marks_product(self, mock_client):
        mock_client.return_value.mint_product_nfts.side_effect = RuntimeError("TOKEN_HAS_NO_SUPPLY_KEY")

        with self.assertRaises(ServiceError) as ctx:
            services.mint_product_nft(self.producer, self.product.id)

        self.assertEqual(ctx.exception.status, 502)
        self.product.refresh_from_db()
        self.assertEqual(self.product.nft_status, 'FAILED')

    def test_only_owner_can_mint(self):
        with self.assertRaises(ServiceError) as ctx:
            services.mint_product_nft(make_user('f'), self.product.id)
        self.assertEqual(ctx.exception.status, 403)

    def test_mint_requires_token(self):
        product = make_product(self.producer)
        with self.assertRaises(ServiceError):
            services.mint_product_nft(self.producer, product.id)


class CartTest(TestCase):
    def setUp(self):
        self.producer = make_user('1')
        self.buyer = make_user('2', 'BUYER')
        self.product = make_product(self.producer, quantity=10, min_order_qty=2)

    def test_add_merges_lines(self):
        services.add_to_cart(self.buyer, self.product.id, 2)
        item = services.add_to_cart(self.buyer, self.product.id, 3)

        self.assertEqual(item.quantity, 5)
        self.assertEqual(services.cart_count(self.buyer), 1)
        self.assertEqual(item.line_total, Decimal('62.50'))

    def test_min_order_quantity(self):
        with self.assertRaises(ServiceError) as ctx:
            services.add_to_cart(self.buyer, self.product.id, 1)
        self.assertEqual(str(ctx.exception), "Min order is 2")

    def test_stock_limit_counts_existing_line(self):
        services.add_to_cart(self.buyer, self.product.id, 8)
        with self.assertRaises(ServiceError) as ctx:
            services.add_to_cart(self.buyer, self.product.id, 3)
        self.assertEqual(ctx.exception.status, 409)

    def test_increment_respects_stock(self):
        item = services.add_to_cart(self.buyer, self.product.id, 10)
        with self.assertRaises(ServiceError):
            services.increment_cart_item(self.buyer, item.id)

    def test_decrement_to_zero_removes_line(self):
        item = CartItem.objects.create(user=self.buyer, product=self.product, quantity=2)

        self.assertEqual(services.decrement_cart_item(self.buyer, item.id).quantity, 1)
        self.assertIsNone(services.decrement_cart_item(self.buyer, item.id))
        self.assertFalse(CartItem.objects.filter(id=item.id).exists())

    def test_cannot_touch_another_users_cart(self):
        item = CartItem.objects.create(user=self.buyer, product=self.product, quantity=2)
        with self.assertRaises(ServiceError) as ctx:
            services.remove_cart_item(self.producer, item.id)
        self.assertEqual(ctx.exception.status, 404)

    def test_cart_mutations(self):
        from .schema import AddToCart, DecrementCartItem, Query

        info = MockInfo(MockContext(self.buyer))
        result = AddToCart.mutate(None, info, self.product.id, 2)
        self.assertTrue(result.success)
        self.assertEqual(result.count, 1)

        result = DecrementCartItem.mutate(None, info, result.item.id)
        self.assertTrue(result.success)
        self.assertFalse(result.removed)

        self.assertEqual(Query().resolve_cart_count(info), 1)
        self.assertEqual(Query().resolve_cart_count(MockInfo(MockContext())), 0)


class ProductUploadViewTest(TestCase):
    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.producer = make_user('3')
        self.product = make_product(self.producer)
        self.token = _open_session(self.producer).token
        self.factory = RequestFactory()

    def _post(self, data, token=None):
        request = self.factory.post(
            '/api/products/upload/',
            data,
            HTTP_AUTHORIZATION=f'Bearer {token or self.token}',
        )
        return upload_product_files_view(request)

    def test_requires_token(self):
        request = self.factory.post('/api/products/upload/', {})
        self.assertEqual(upload_product_files_view(request).status_code, 401)

    def test_upload_attaches_files_to_product(self):
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self._post({
                'productId': self.product.id,
                'images': [SimpleUploadedFile('front.JPG', b'\xff\xd8jpeg', content_type='image/jpeg')],
                'documents': [SimpleUploadedFile('cert.pdf', b'%PDF-1.4', content_type='application/pdf')],
            })

        self.assertEqual(response.status_code, 201)
        body = json.loads(response.content)
        image = body['data']['images'][0]
        self.assertEqual(image['originalName'], 'front.JPG')
        self.assertTrue(image['filename'].endswith('.jpg'))
        self.assertTrue(image['path'].startswith('/media/uploads/images/'))

        self.product.refresh_from_db()
        self.assertEqual(len(self.product.images), 1)
        self.assertEqual(self.product.documents[0]['mime'], 'application/pdf')

    def test_other_producers_product_is_not_found(self):
        other = make_product(make_user('4'))
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self._post({
                'productId': other.id,
                'images': [SimpleUploadedFile('a.png', b'png', content_type='image/png')],
            })
        self.assertEqual(response.status_code, 404)

    @override_settings(UPLOAD_MAX_FILE_SIZE=4)
    def test_oversized_file(self):
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self._post({'images': [SimpleUploadedFile('big.png', b'0123456789')]})
        self.assertEqual(response.status_code, 413)

    def test_no_files(self):
        self.assertEqual(self._post({}).status_code, 400)
