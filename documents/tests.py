from decimal import Decimal
import hashlib
import json
from unittest.mock import MagicMock, patch

import requests
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import RequestFactory, TestCase, override_settings

from config.errors import ServiceError
from marketplace.models import Product
from orders.models import Order, OrderItem
from users.models import User
from users.services import _open_session
from .ipfs import IPFSClient, IPFSError
from .models import Document
from .views import download_document_view, upload_document_view
from . import services

CID = 'bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi'


class MockContext:
    def __init__(self, user=None):
        self.user = user


class MockInfo:
    def __init__(self, context):
        self.context = context


def make_user(suffix, user_type='BUYER'):
    address = '0x' + suffix * 40
    return User.objects.create_user(username=address, wallet_address=address, user_type=user_type)


class DocumentTestCase(TestCase):
    def setUp(self):
        self.buyer = make_user('a')
        self.producer = make_user('b', 'PRODUCER')
        self.stranger = make_user('c')
        product = Product.objects.create(
            producer=self.producer, name='Deglet Nour dates', price_per_unit=Decimal('4.00'), quantity=100
        )
        self.order = Order.objects.create(code='ORD-2026-000010', buyer=self.buyer, total=Decimal('40.00'))
        OrderItem.objects.create(
            order=self.order, product=product, quantity=10,
            unit_price=Decimal('4.00'), line_total=Decimal('40.00'),
        )


class SaveDocumentTest(DocumentTestCase):
    @patch('documents.services.get_ipfs_client')
    def test_upload_is_pinned_and_recorded(self, mock_client):
        mock_client.return_value.add.return_value = CID

        document = services.save_document_for_user(
            self.producer, 'invoice.pdf', b'%PDF-1.4 invoice', 'application/pdf',
            order_id=self.order.id, document_type='invoice',
        )

        mock_client.return_value.add.assert_called_once_with(b'%PDF-1.4 invoice', 'invoice.pdf')
        self.assertEqual(document.url, f'ipfs://{CID}')
        self.assertEqual(document.sha256, hashlib.sha256(b'%PDF-1.4 invoice').hexdigest())
        self.assertEqual(document.size, 16)
        self.assertEqual(document.document_type, 'INVOICE')
        self.assertEqual(document.status, 'PENDING')
        self.assertEqual(document.order, self.order)

    @patch('documents.services.get_ipfs_client')
    def test_ipfs_failure_is_bad_gateway(self, mock_client):
        mock_client.return_value.add.side_effect = IPFSError("IPFS upload failed: connection refused")

        with self.assertRaises(ServiceError) as ctx:
            services.save_document_for_user(self.buyer, 'a.pdf', b'data')

        self.assertEqual(ctx.exception.status, 502)
        self.assertFalse(Document.objects.exists())

    @patch('documents.services.get_ipfs_client')
    def test_order_must_be_accessible(self, mock_client):
        with self.assertRaises(ServiceError) as ctx:
            services.save_document_for_user(self.stranger, 'a.pdf', b'data', order_id=self.order.id)
        self.assertEqual(ctx.exception.status, 404)
        mock_client.return_value.add.assert_not_called()

    def test_empty_content_and_unknown_type(self):
        with self.assertRaises(ServiceError):
            services.save_document_for_user(self.buyer, 'a.pdf', b'')
        with self.assertRaises(ServiceError):
            services.save_document_for_user(self.buyer, 'a.pdf', b'data', document_type='passport')


class SubmitDocumentTest(DocumentTestCase):
    def test_submit_pinned_document(self):
        document = services.submit_document(self.buyer, 'packing.pdf', CID, self.order.id, 'PACKING_LIST')
        self.assertEqual(document.url, f'ipfs://{CID}')
        self.assertEqual(document.document_type, 'PACKING_LIST')
        self.assertEqual(list(services.list_user_documents(self.buyer)), [document])

    def test_submit_requires_filename_and_cid(self):
        with self.assertRaises(ServiceError):
            services.submit_document(self.buyer, '', CID)

    def test_submit_mutation(self):
        from .schema import Query, SubmitDocument

        anonymous = SubmitDocument.mutate(None, MockInfo(MockContext()), 'x.pdf', CID)
        self.assertFalse(anonymous.success)

        refused = SubmitDocument.mutate(None, MockInfo(MockContext(self.stranger)), 'x.pdf', CID, self.order.id)
        self.assertFalse(refused.success)

        result = SubmitDocument.mutate(None, MockInfo(MockContext(self.producer)), 'x.pdf', CID, self.order.id)
        self.assertTrue(result.success)
        self.assertEqual(result.document.uploader, self.producer)

        self.assertEqual(len(Query().resolve_my_documents(MockInfo(MockContext(self.producer)))), 1)
        self.assertEqual(Query().resolve_my_documents(MockInfo(MockContext())), [])


class IPFSClientTest(TestCase):
    def _client(self, session):
        return IPFSClient(api_url='http://ipfs:5001/', gateway_url='https://gw.example/', timeout=5, session=session)

    def test_add_posts_to_api(self):
        session = MagicMock()
        session.post.return_value.json.return_value = {'Name': 'a.txt', 'Hash': CID, 'Size': '5'}

        self.assertEqual(self._client(session).add('hello', 'a.txt'), CID)

        args, kwargs = session.post.call_args
        self.assertEqual(args[0], 'http://ipfs:5001/api/v0/add')
        self.assertEqual(kwargs['files'], {'file': ('a.txt', b'hello')})
        self.assertEqual(kwargs['timeout'], 5)

    def test_add_errors(self):
        session = MagicMock()
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(IPFSError):
            self._client(session).add(b'x')

        session = MagicMock()
        session.post.return_value.json.return_value = {}
        with self.assertRaises(IPFSError):
            self._client(session).add(b'x')

    def test_cat_reads_gateway(self):
        session = MagicMock()
        session.get.return_value.content = b'bytes'

        self.assertEqual(self._client(session).cat(CID), b'bytes')
        session.get.assert_called_once_with(f'https://gw.example/ipfs/{CID}', timeout=5)

    def test_cat_http_error(self):
        session = MagicMock()
        session.get.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("504")
        with self.assertRaises(IPFSError):
            self._client(session).cat(CID)


class DocumentViewTest(DocumentTestCase):
    def setUp(self):
        super().setUp()
        self.factory = RequestFactory()
        self.token = _open_session(self.buyer).token

    def _upload(self, data):
        request = self.factory.post('/api/documents/upload/', data, HTTP_AUTHORIZATION=f'Bearer {self.token}')
        return upload_document_view(request)

    def test_upload_requires_token(self):
        request = self.factory.post('/api/documents/upload/', {})
        self.assertEqual(upload_document_view(request).status_code, 401)

    @patch('documents.services.get_ipfs_client')
    def test_upload(self, mock_client):
        mock_client.return_value.add.return_value = CID

        response = self._upload({
            'file': SimpleUploadedFile('bol.pdf', b'%PDF', content_type='application/pdf'),
            'orderId': self.order.id,
            'typeKey': 'bill_of_lading',
        })

        self.assertEqual(response.status_code, 201)
        data = json.loads(response.content)['data']
        self.assertEqual(data['cid'], CID)
        self.assertEqual(data['documentType'], 'BILL_OF_LADING')
        self.assertEqual(data['orderId'], self.order.id)

    def test_missing_file(self):
        self.assertEqual(self._upload({}).status_code, 400)

    @override_settings(UPLOAD_MAX_FILE_SIZE=2)
    def test_oversized_file(self):
        response = self._upload({'file': SimpleUploadedFile('big.pdf', b'0123456789')})
        self.assertEqual(response.status_code, 413)

    @patch('documents.services.get_ipfs_client')
    def test_upload_ipfs_down(self, mock_client):
        mock_client.return_value.add.side_effect = IPFSError("IPFS upload failed")
        response = self._upload({'file': SimpleUploadedFile('a.pdf', b'%PDF')})
        self.assertEqual(response.status_code, 502)

    @patch('documents.services.get_ipfs_client')
    def test_download(self, mock_client):
        mock_client.return_value.cat.return_value = b'%PDF-1.4'

        response = download_document_view(self.factory.get(f'/api/documents/{CID}/'), CID)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b'%PDF-1.4')
        self.assertIn(CID, response['Content-Disposition'])

    @patch('documents.services.get_ipfs_client')
    def test_download_missing(self, mock_client):
        mock_client.return_value.cat.side_effect = IPFSError("Could not fetch")
        response = download_document_view(self.factory.get(f'/api/documents/{CID}/'), CID)
        self.assertEqual(response.status_code, 404)
