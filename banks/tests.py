from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.conf import settings
from django.core.cache import cache
from django.core.management import call_command
from django.test import RequestFactory, TestCase, override_settings
from graphql import GraphQLError

from blockchain.models import AuditEvent
from config.errors import ServiceError
from documents.models import Document
from marketplace.models import Product
from orders.models import Dispute, Order, OrderItem, OrderStatus, PaymentRelease
from users.models import User
from .auth import BankTokenError, create_bank_token, decode_bank_token
from .middleware import BankUserMiddleware
from .models import Bank, BankReview, BankUser, KycReview, PaymentApproval
from . import services


class MockContext:
    def __init__(self, user=None, bank_user=None):
        self.user = user
        self.bank_user = bank_user


class MockInfo:
    def __init__(self, context):
        self.context = context


def make_officer(email, bank, role='BANK_USER', password='s3cret-pass'):
    officer = BankUser(email=email, name=email.split('@')[0], bank=bank, role=role)
    officer.set_password(password)
    officer.save()
    return officer


class BankOfficerAuthTest(TestCase):
    def setUp(self):
        self.bank = Bank.objects.create(code='ALBARAKA', name='AL BARAKA BANK TUNISIA')

    def test_register_returns_token(self):
        officer, token = services.register_bank_user(' Officer@AlBaraka.tn ', 'long-password', 'Nour', '', self.bank.id)

        self.assertEqual(officer.email, 'officer@albaraka.tn')
        self.assertEqual(officer.role, 'BANK_USER')
        self.assertNotEqual(officer.password_hash, 'long-password')
        payload = decode_bank_token(token)
        self.assertEqual(payload['sub'], str(officer.id))
        self.assertEqual(payload['bank_id'], self.bank.id)

    def test_register_validation(self):
        with self.assertRaises(ServiceError):
            services.register_bank_user('not-an-email', 'long-password')
        with self.assertRaises(ServiceError):
            services.register_bank_user('a@bank.tn', 'short')
        with self.assertRaises(ServiceError) as ctx:
            services.register_bank_user('a@bank.tn', 'long-password', bank_id=9999)
        self.assertEqual(ctx.exception.status, 404)

        services.register_bank_user('a@bank.tn', 'long-password')
        with self.assertRaises(ServiceError) as ctx:
            services.register_bank_user('A@bank.tn', 'long-password')
        self.assertEqual(ctx.exception.status, 409)

    def test_login(self):
        officer = make_officer('login@bank.tn', self.bank)

        logged_in, token = services.login_bank_user('LOGIN@bank.tn', 's3cret-pass')
        self.assertEqual(logged_in, officer)
        self.assertIsNotNone(logged_in.last_login_at)

        with self.assertRaises(ServiceError) as ctx:
            services.login_bank_user('login@bank.tn', 'wrong')
        self.assertEqual(str(ctx.exception), "Invalid credentials")

    def test_banned_officer_cannot_login(self):
        officer = make_officer('banned@bank.tn', self.bank)
        BankUser.objects.filter(id=officer.id).update(is_banned=True)
        with self.assertRaises(ServiceError) as ctx:
            services.login_bank_user('banned@bank.tn', 's3cret-pass')
        self.assertEqual(ctx.exception.status, 403)

    def test_login_mutation_sets_cookie_request(self):
        from .schema import BankLogin, BankLogout

        make_officer('cookie@bank.tn', self.bank)
        context = MockContext()
        result = BankLogin.mutate(None, MockInfo(context), 'cookie@bank.tn', 's3cret-pass')

        self.assertTrue(result.success)
        self.assertEqual(context.bank_auth_cookie, result.token)

        BankLogout.mutate(None, MockInfo(context))
        self.assertTrue(context.bank_auth_cookie_clear)

    @override_settings(RATE_LIMITS={'bank_login': {'window': 300, 'max_attempts': 1}})
    def test_login_is_rate_limited(self):
        from .schema import BankLogin

        cache.clear()
        self.addCleanup(cache.clear)
        info = MockInfo(MockContext())
        self.assertFalse(BankLogin.mutate(None, info, 'nobody@bank.tn', 'whatever-pass').success)
        with self.assertRaises(GraphQLError):
            BankLogin.mutate(None, info, 'nobody@bank.tn', 'whatever-pass')

    @override_settings(BANK_JWT_SECRET='first-secret')
    def test_token_signed_with_another_secret(self):
        officer = make_officer('tamper@bank.tn', self.bank)
        token = create_bank_token(officer)
        with override_settings(BANK_JWT_SECRET='second-secret'):
            with self.assertRaises(BankTokenError):
                decode_bank_token(token)
        with self.assertRaises(BankTokenError):
            decode_bank_token('not-a-token')

    def test_middleware_reads_header_and_cookie(self):
        officer = make_officer('mw@bank.tn', self.bank)
        token = create_bank_token(officer)
        middleware = BankUserMiddleware(lambda request: request)
        factory = RequestFactory()

        request = middleware(factory.get('/', HTTP_AUTHORIZATION=f'Bank {token}'))
        self.assertEqual(request.bank_user, officer)

        cookie_request = factory.get('/')
        cookie_request.COOKIES[settings.BANK_AUTH_COOKIE_NAME] = token
        self.assertEqual(middleware(cookie_request).bank_user, officer)

        BankUser.objects.filter(id=officer.id).update(is_banned=True)
        self.assertIsNone(middleware(factory.get('/', HTTP_AUTHORIZATION=f'Bank {token}')).bank_user)

    def test_wallet_bearer_token_is_not_a_bank_token(self):
        middleware = BankUserMiddleware(lambda request: request)
        request = middleware(RequestFactory().get('/', HTTP_AUTHORIZATION='Bearer abc.def.ghi'))
        self.assertIsNone(request.bank_user)


class BankAdminTest(TestCase):
    def setUp(self):
        self.bank = Bank.objects.create(code='ALUBAF', name='ALUBAF INTERNATIONAL BANK')
        self.admin = make_officer('admin@alubaf.tn', self.bank, role='BANK_ADMIN')
        self.officer = make_officer('officer@alubaf.tn', self.bank)

    def test_ban_and_unban(self):
        services.set_bank_user_ban(self.admin, self.officer.id)
        self.officer.refresh_from_db()
        self.assertTrue(self.officer.is_banned)

        services.set_bank_user_ban(self.admin, self.officer.id, banned=False)
        self.officer.refresh_from_db()
        self.assertFalse(self.officer.is_banned)

    def test_admin_cannot_ban_self(self):
        with self.assertRaises(ServiceError):
            services.set_bank_user_ban(self.admin, self.admin.id)

    def test_ban_mutation_requires_admin(self):
        from .schema import BanBankUser

        with self.assertRaises(GraphQLError):
            BanBankUser.mutate(None, MockInfo(MockContext(bank_user=self.officer)), self.admin.id)

        result = BanBankUser.mutate(None, MockInfo(MockContext(bank_user=self.admin)), self.officer.id)
        self.assertTrue(result.success)
        self.assertTrue(result.bank_user.is_banned)

    def test_banned_officer_is_not_authenticated(self):
        from .schema import Query

        self.officer.is_banned = True
        with self.assertRaises(GraphQLError):
            Query().resolve_bank_clients(MockInfo(MockContext(bank_user=self.officer)))
        self.assertIsNone(Query().resolve_bank_me(MockInfo(MockContext(bank_user=self.officer))))

    def test_seed_banks_is_idempotent(self):
        call_command('seed_banks', stdout=StringIO())
        call_command('seed_banks', stdout=StringIO())
        self.assertEqual(Bank.objects.filter(code__in=['AL BARAKA', 'ALUBAF']).count(), 2)
        self.assertEqual(Bank.objects.get(code='ALUBAF').name, 'ALUBAF INTERNATIONAL BANK')


class ClientKycTest(TestCase):
    def setUp(self):
        self.bank = Bank.objects.create(code='ALBARAKA', name='AL BARAKA BANK TUNISIA')
        self.officer = make_officer('kyc@bank.tn', self.bank)
        self.client_user = User.objects.create_user(
            username='0x' + 'a' * 40, wallet_address='0x' + 'a' * 40, user_type='BUYER'
        )

    def test_approve_verifies_client(self):
        client = services.update_client_kyc(self.officer, self.client_user.id, 'approve', 'documents match')

        self.assertEqual(client.kyc_status, 'VERIFIED')
        review = KycReview.objects.get(client=client)
        self.assertEqual(review.reviewer, self.officer)
        self.assertEqual(review.reason, 'documents match')
        self.assertTrue(AuditEvent.objects.filter(event_type='KYC_VERIFIED', reference_id=str(client.id)).exists())

    def test_reject_and_other_actions(self):
        self.assertEqual(services.update_client_kyc(self.officer, self.client_user.id, 'reject').kyc_status, 'REJECTED')
        self.assertEqual(services.update_client_kyc(self.officer, self.client_user.id, 'request_info').kyc_status, 'PENDING')
        self.assertFalse(AuditEvent.objects.filter(event_type='KYC_VERIFIED').exists())

    def test_unknown_client(self):
        with self.assertRaises(ServiceError) as ctx:
            services.update_client_kyc(self.officer, 9999, 'approve')
        self.assertEqual(ctx.exception.status, 404)

    def test_clients_carry_order_totals(self):
        Order.objects.create(code='ORD-2026-000100', buyer=self.client_user, total=Decimal('40.00'))
        Order.objects.create(code='ORD-2026-000101', buyer=self.client_user, total=Decimal('60.00'))
        User.objects.create_user(username='0x' + 'b' * 40, wallet_address='0x' + 'b' * 40, user_type='PRODUCER')

        clients = {c.id: c for c in services.list_clients()}
        self.assertEqual(clients[self.client_user.id].order_count, 2)
        self.assertEqual(clients[self.client_user.id].total_volume, Decimal('100.00'))
        self.assertTrue(any(c.order_count == 0 and c.total_volume == 0 for c in clients.values()))


class OrderWorkflowTestCase(TestCase):
    """An order under bank review with one buyer-side and one seller-side bank"""

    def setUp(self):
        self.buyer_bank = Bank.objects.create(code='ALBARAKA', name='AL BARAKA BANK TUNISIA')
        self.seller_bank = Bank.objects.create(code='ALUBAF', name='ALUBAF INTERNATIONAL BANK')
        self.buyer_officer = make_officer('buyer-side@albaraka.tn', self.buyer_bank)
        self.seller_officer = make_officer('seller-side@alubaf.tn', self.seller_bank)

        self.buyer = User.objects.create_user(username='0x' + '1' * 40, wallet_address='0x' + '1' * 40, user_type='BUYER')
        self.producer = User.objects.create_user(username='0x' + '2' * 40, wallet_address='0x' + '2' * 40)
        self.product = Product.objects.create(producer=self.producer, name='Olive oil', price_per_unit=Decimal('50.00'), quantity=8)

        self.order = Order.objects.create(
            code='ORD-2026-000001',
            buyer=self.buyer,
            status=OrderStatus.BANK_REVIEW,
            subtotal=Decimal('100.00'),
            shipping=Decimal('5.00'),
            total=Decimal('105.00'),
            buyer_bank=self.buyer_bank,
            seller_bank=self.seller_bank,
        )
        OrderItem.objects.create(
            order=self.order, product=self.product, quantity=2,
            unit_price=Decimal('50.00'), line_total=Decimal('100.00'),
        )


class DualApprovalTest(OrderWorkflowTestCase):
    def test_first_approval_only_flags_its_side(self):
        order = services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer', 'KYC ok')

        self.assertTrue(order.buyer_bank_approved)
        self.assertFalse(order.seller_bank_approved)
        self.assertEqual(order.status, OrderStatus.BANK_REVIEW)
        self.assertFalse(order.payment_releases.exists())
        review = BankReview.objects.get(order=order)
        self.assertEqual((review.side, review.bank, review.comments), ('buyer', self.buyer_bank, 'KYC ok'))

    def test_second_approval_releases_first_half(self):
        services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        order = services.approve_order_by_bank(self.seller_officer, self.order.id, 'seller')

        self.assertEqual(order.status, OrderStatus.IN_TRANSIT)
        release = PaymentRelease.objects.get(order=order)
        self.assertEqual(release.type, 'PARTIAL50')
        self.assertEqual(release.amount, Decimal('52.50'))
        self.assertTrue(release.released)
        self.assertEqual(
            AuditEvent.objects.filter(reference_id=str(order.id), event_type='BANK_APPROVED').count(), 2
        )
        self.assertTrue(AuditEvent.objects.filter(event_type='PAYMENT_RELEASED').exists())

    def test_approval_order_does_not_matter(self):
        services.approve_order_by_bank(self.seller_officer, self.order.id, 'seller')
        order = services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        self.assertEqual(order.status, OrderStatus.IN_TRANSIT)

    def test_officer_of_another_bank_is_forbidden(self):
        with self.assertRaises(ServiceError) as ctx:
            services.approve_order_by_bank(self.seller_officer, self.order.id, 'buyer')
        self.assertEqual(ctx.exception.status, 403)

    def test_same_side_twice_is_conflict(self):
        services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        with self.assertRaises(ServiceError) as ctx:
            services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        self.assertEqual(ctx.exception.status, 409)

    def test_cancelled_order_cannot_be_approved(self):
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.CANCELLED)
        with self.assertRaises(ServiceError) as ctx:
            services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        self.assertEqual(ctx.exception.status, 409)

    def test_unassigned_side_takes_officer_bank(self):
        Order.objects.filter(id=self.order.id).update(seller_bank=None)
        order = services.approve_order_by_bank(self.seller_officer, self.order.id, 'seller')
        self.assertEqual(order.seller_bank, self.seller_bank)

    def test_approval_requires_bank_review(self):
        for status in (OrderStatus.AWAITING_PAYMENT, OrderStatus.IN_TRANSIT, OrderStatus.DISPUTED):
            Order.objects.filter(id=self.order.id).update(status=status)
            with self.assertRaises(ServiceError) as ctx:
                services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
            self.assertEqual(ctx.exception.status, 409)

        self.order.refresh_from_db()
        self.assertFalse(self.order.buyer_bank_approved)
        self.assertFalse(BankReview.objects.exists())
        self.assertFalse(PaymentRelease.objects.exists())

    def test_disputed_order_does_not_release_first_half(self):
        services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.DISPUTED)

        with self.assertRaises(ServiceError) as ctx:
            services.approve_order_by_bank(self.seller_officer, self.order.id, 'seller')

        self.assertEqual(ctx.exception.status, 409)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.DISPUTED)
        self.assertFalse(self.order.seller_bank_approved)
        self.assertFalse(PaymentRelease.objects.exists())

    def test_officer_without_bank_is_forbidden(self):
        drifter = make_officer('drifter@bank.tn', None)
        Order.objects.filter(id=self.order.id).update(buyer_bank=None)

        with self.assertRaises(ServiceError) as ctx:
            services.approve_order_by_bank(drifter, self.order.id, 'buyer')

        self.assertEqual(ctx.exception.status, 403)
        self.order.refresh_from_db()
        self.assertFalse(self.order.buyer_bank_approved)
        self.assertIsNone(self.order.buyer_bank)

    def test_one_bank_cannot_claim_both_sides(self):
        Order.objects.filter(id=self.order.id).update(buyer_bank=None, seller_bank=None)
        services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')

        with self.assertRaises(ServiceError) as ctx:
            services.approve_order_by_bank(self.buyer_officer, self.order.id, 'seller')
        self.assertEqual(ctx.exception.status, 403)

        colleague = make_officer('colleague@albaraka.tn', self.buyer_bank)
        with self.assertRaises(ServiceError) as ctx:
            services.approve_order_by_bank(colleague, self.order.id, 'seller')
        self.assertEqual(ctx.exception.status, 403)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.BANK_REVIEW)
        self.assertIsNone(self.order.seller_bank)
        self.assertFalse(PaymentRelease.objects.exists())

    def test_odd_cent_total_is_fully_released(self):
        Order.objects.filter(id=self.order.id).update(total=Decimal('10.01'))
        services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        services.approve_order_by_bank(self.seller_officer, self.order.id, 'seller')

        order = services.confirm_delivery(self.buyer_officer, self.order.id)

        first = order.payment_releases.get(type='PARTIAL50')
        final = order.payment_releases.get(type='FULL100')
        self.assertEqual(first.amount, Decimal('5.00'))
        self.assertEqual(final.amount, Decimal('5.01'))
        self.assertEqual(first.amount + final.amount, Decimal('10.01'))
        event = AuditEvent.objects.filter(event_type='PAYMENT_RELEASED').order_by('-id').first()
        self.assertEqual(event.details['amount'], '5.01')

    def test_invalid_bank_type(self):
        with self.assertRaises(ServiceError):
            services.approve_order_by_bank(self.buyer_officer, self.order.id, 'arbiter')

    @patch('blockchain.escrow.get_escrow_client')
    def test_escrow_is_driven_on_chain(self, mock_client):
        Order.objects.filter(id=self.order.id).update(escrow_address='0x' + '9' * 40)
        escrow = mock_client.return_value
        escrow.release_first_payment.return_value = 'ab' * 32

        services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        order = services.approve_order_by_bank(self.seller_officer, self.order.id, 'seller')

        escrow.approve_buyer.assert_called_once_with('0x' + '9' * 40)
        escrow.approve_seller.assert_called_once_with('0x' + '9' * 40)
        escrow.release_first_payment.assert_called_once_with('0x' + '9' * 40)
        self.assertEqual(order.payment_releases.get().transaction_id, 'ab' * 32)

    @patch('blockchain.escrow.get_escrow_client')
    def test_escrow_failure_rolls_back_approval(self, mock_client):
        from .schema import ApproveOrderByBank

        Order.objects.filter(id=self.order.id).update(escrow_address='0x' + '9' * 40)
        mock_client.return_value.approve_buyer.side_effect = RuntimeError("execution reverted")

        result = ApproveOrderByBank.mutate(
            None, MockInfo(MockContext(bank_user=self.buyer_officer)), self.order.id, 'buyer'
        )

        self.assertFalse(result.success)
        self.assertIn("execution reverted", result.errors[0])
        self.order.refresh_from_db()
        self.assertFalse(self.order.buyer_bank_approved)
        self.assertFalse(BankReview.objects.exists())

    def test_approval_mutations_require_bank_user(self):
        from .schema import ApproveOrderByBank

        with self.assertRaises(GraphQLError):
            ApproveOrderByBank.mutate(None, MockInfo(MockContext(user=self.buyer)), self.order.id, 'buyer')

    def test_update_order_approval_delegates(self):
        order = services.update_order_approval(self.buyer_officer, self.order.id, 'approve_buyer')
        self.assertTrue(order.buyer_bank_approved)

        with self.assertRaises(ServiceError):
            services.update_order_approval(self.buyer_officer, self.order.id, 'escalate')

    def test_reject_cancels_order(self):
        order = services.update_order_approval(self.seller_officer, self.order.id, 'reject', 'sanctions hit')
        self.assertEqual(order.status, OrderStatus.CANCELLED)

        with self.assertRaises(ServiceError) as ctx:
            services.update_order_approval(self.seller_officer, self.order.id, 'reject')
        self.assertEqual(ctx.exception.status, 409)

    def test_request_documents(self):
        review = services.request_documents(self.buyer_officer, self.order.id, 'seller', 'Need bill of lading')
        self.assertEqual(review.action, 'request_docs')
        self.assertEqual(review.side, 'seller')

        with self.assertRaises(ServiceError):
            services.request_documents(self.buyer_officer, self.order.id, 'carrier')

    def test_workflow_query(self):
        from .schema import Query

        rows = Query().resolve_bank_orders_workflow(MockInfo(MockContext(bank_user=self.buyer_officer)))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].buyer_bank_id, self.buyer_bank.id)
        self.assertEqual(rows[0].seller_bank_id, self.seller_bank.id)


class ShipmentAndDeliveryTest(OrderWorkflowTestCase):
    def setUp(self):
        super().setUp()
        services.approve_order_by_bank(self.buyer_officer, self.order.id, 'buyer')
        services.approve_order_by_bank(self.seller_officer, self.order.id, 'seller')

    def test_confirm_shipment(self):
        order = services.confirm_shipment(self.seller_officer, self.order.id, 'TRK-778', 'loaded at Rades')
        self.assertEqual(order.shipment_tracking_id, 'TRK-778')
        self.assertTrue(AuditEvent.objects.filter(event_type='ORDER_SHIPPED').exists())

        with self.assertRaises(ServiceError):
            services.confirm_shipment(self.seller_officer, self.order.id, '')

    def test_confirm_delivery_releases_second_half(self):
        order = services.confirm_delivery(self.buyer_officer, self.order.id)

        self.assertEqual(order.status, OrderStatus.DELIVERED)
        final = order.payment_releases.get(type='FULL100')
        self.assertEqual(final.amount, Decimal('52.50'))
        self.assertEqual(
            sum(r.amount for r in order.payment_releases.all()),
            Decimal('105.00'),
        )
        self.assertTrue(AuditEvent.objects.filter(event_type='ORDER_DELIVERED').exists())

    def test_delivery_twice_is_conflict(self):
        services.confirm_delivery(self.buyer_officer, self.order.id)
        with self.assertRaises(ServiceError) as ctx:
            services.confirm_delivery(self.buyer_officer, self.order.id)
        self.assertEqual(ctx.exception.status, 409)

    @patch('blockchain.escrow.get_escrow_client')
    def test_delivery_confirms_on_chain(self, mock_client):
        Order.objects.filter(id=self.order.id).update(escrow_address='0x' + '9' * 40)
        mock_client.return_value.confirm_delivery.return_value = 'cd' * 32

        order = services.confirm_delivery(self.buyer_officer, self.order.id)

        mock_client.return_value.confirm_delivery.assert_called_once_with('0x' + '9' * 40)
        self.assertEqual(order.payment_releases.get(type='FULL100').transaction_id, 'cd' * 32)

    def test_escrows_list(self):
        escrows = list(services.list_escrows())
        self.assertEqual([o.id for o in escrows], [self.order.id])

    def test_payment_decisions(self):
        release = PaymentRelease.objects.get(order=self.order, type='PARTIAL50')

        approval = services.approve_payment(self.buyer_officer, release.id, 'funds received')
        self.assertEqual(approval.action, 'APPROVE')
        rejection = services.reject_payment(self.seller_officer, release.id)
        self.assertEqual(rejection.action, 'REJECT')
        self.assertEqual(PaymentApproval.objects.filter(payment_release=release).count(), 2)

        with self.assertRaises(ServiceError) as ctx:
            services.approve_payment(self.buyer_officer, 9999)
        self.assertEqual(ctx.exception.status, 404)


class DisputeArbitrationTest(OrderWorkflowTestCase):
    def setUp(self):
        super().setUp()
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.DISPUTED)
        self.dispute = Dispute.objects.create(order=self.order, initiator=self.buyer, reason='Damaged goods')

    def test_review_and_rule(self):
        services.update_dispute(self.buyer_officer, self.dispute.id, 'review')
        self.dispute.refresh_from_db()
        self.assertEqual(self.dispute.status, 'UNDER_REVIEW')

        services.update_dispute(self.buyer_officer, self.dispute.id, 'rule', ruling='Inspection ordered')
        self.assertEqual(self.dispute.rulings.get().officer, self.buyer_officer)

        with self.assertRaises(ServiceError):
            services.update_dispute(self.buyer_officer, self.dispute.id, 'rule')

    def test_resolve_in_favour_of_seller(self):
        dispute = services.update_dispute(self.buyer_officer, self.dispute.id, 'resolve')

        self.assertEqual(dispute.status, 'RESOLVED')
        self.assertEqual(dispute.resolution_outcome, 'release_to_seller')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.DELIVERED)
        self.assertNotIn(dispute, list(services.list_disputes()))

    def test_refund_cancels_order(self):
        services.update_dispute(self.seller_officer, self.dispute.id, 'resolve', 'Refund approved', 'refund_buyer')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.assertTrue(AuditEvent.objects.filter(event_type='DISPUTE_RESOLVED').exists())

    def test_resolved_dispute_is_final(self):
        services.update_dispute(self.buyer_officer, self.dispute.id, 'resolve')
        with self.assertRaises(ServiceError) as ctx:
            services.update_dispute(self.buyer_officer, self.dispute.id, 'review')
        self.assertEqual(ctx.exception.status, 409)

    def test_resolve_requires_disputed_order(self):
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.IN_TRANSIT)

        with self.assertRaises(ServiceError) as ctx:
            services.update_dispute(self.buyer_officer, self.dispute.id, 'resolve', 'Refund approved', 'refund_buyer')

        self.assertEqual(ctx.exception.status, 409)
        self.dispute.refresh_from_db()
        self.assertNotEqual(self.dispute.status, 'RESOLVED')
        self.assertFalse(self.dispute.rulings.exists())
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.IN_TRANSIT)
        self.assertFalse(AuditEvent.objects.filter(event_type='DISPUTE_RESOLVED').exists())

    def test_invalid_outcome_and_action(self):
        with self.assertRaises(ServiceError):
            services.update_dispute(self.buyer_officer, self.dispute.id, 'resolve', outcome='split')
        with self.assertRaises(ServiceError):
            services.update_dispute(self.buyer_officer, self.dispute.id, 'escalate')


class DocumentValidationTest(OrderWorkflowTestCase):
    def setUp(self):
        super().setUp()
        self.document = Document.objects.create(
            uploader=self.producer,
            order=self.order,
            filename='bill-of-lading.pdf',
            cid='bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi',
            url='ipfs://bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi',
            document_type='BILL_OF_LADING',
        )

    def test_reject_keeps_reason(self):
        document = services.update_document(self.buyer_officer, self.document.id, 'reject', 'Unsigned')
        self.assertEqual(document.status, 'REJECTED')
        self.assertEqual(document.rejection_reason, 'Unsigned')
        self.assertEqual(document.validated_by, self.buyer_officer)

    def test_approve_clears_reason(self):
        services.update_document(self.buyer_officer, self.document.id, 'reject', 'Unsigned')
        document = services.update_document(self.buyer_officer, self.document.id, 'approve', 'ignored')

        self.assertEqual(document.status, 'VALIDATED')
        self.assertEqual(document.rejection_reason, '')
        event = AuditEvent.objects.get(event_type='DOCUMENT_VALIDATED')
        self.assertEqual(event.reference_code, self.order.code)

    def test_invalid_status(self):
        with self.assertRaises(ServiceError):
            services.update_document(self.buyer_officer, self.document.id, 'VALIDATED')

    def test_documents_query(self):
        from .schema import Query

        documents = Query().resolve_bank_documents(MockInfo(MockContext(bank_user=self.seller_officer)))
        self.assertEqual(list(documents), [self.document])
