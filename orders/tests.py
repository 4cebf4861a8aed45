from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings

from banks.models import Bank
from blockchain.models import AuditEvent
from config.errors import ServiceError
from marketplace.models import CartItem, Product
from users.models import BankAccount, User
from .models import Dispute, Order, OrderStatus, can_transition
from . import services


class MockContext:
    def __init__(self, user=None):
        self.user = user


class MockInfo:
    def __init__(self, context):
        self.context = context


def make_user(suffix, user_type='BUYER', wallet_address=None):
    address = wallet_address or '0x' + suffix * 40
    return User.objects.create_user(username=address, wallet_address=address, user_type=user_type)


def add_account(user, bank):
    return BankAccount.objects.create(
        user=user,
        bank=bank,
        bank_code=bank.code,
        rib='1' * 20,
        holder_name='Holder',
        phone_number='+21612345678',
        email='holder@example.com',
    )


class OrderTransitionTest(TestCase):
    def test_transition_table(self):
        self.assertTrue(can_transition(OrderStatus.AWAITING_PAYMENT, OrderStatus.BANK_REVIEW))
        self.assertTrue(can_transition(OrderStatus.IN_TRANSIT, OrderStatus.DISPUTED))
        self.assertTrue(can_transition(OrderStatus.DISPUTED, OrderStatus.CANCELLED))
        self.assertFalse(can_transition(OrderStatus.CANCELLED, OrderStatus.BANK_REVIEW))
        self.assertFalse(can_transition(OrderStatus.AWAITING_PAYMENT, OrderStatus.DELIVERED))
        self.assertFalse(can_transition(OrderStatus.DELIVERED, OrderStatus.CANCELLED))


class CheckoutTest(TestCase):
    def setUp(self):
        self.buyer_bank = Bank.objects.create(code='ALBARAKA', name='AL BARAKA BANK TUNISIA')
        self.seller_bank = Bank.objects.create(code='ALUBAF', name='ALUBAF INTERNATIONAL BANK')
        self.buyer = make_user('b')
        self.producer = make_user('a', 'PRODUCER')
        add_account(self.buyer, self.buyer_bank)
        add_account(self.producer, self.seller_bank)

        self.oil = Product.objects.create(producer=self.producer, name='Olive oil', price_per_unit=Decimal('12.50'), quantity=10)
        self.dates = Product.objects.create(producer=self.producer, name='Dates', price_per_unit=Decimal('4.00'), quantity=3)
        CartItem.objects.create(user=self.buyer, product=self.oil, quantity=4)
        CartItem.objects.create(user=self.buyer, product=self.dates, quantity=3)

    def test_pass_order(self):
        order = services.pass_order(self.buyer)

        self.assertRegex(order.code, r'^ORD-\d{4}-000001$')
        self.assertEqual(order.status, OrderStatus.AWAITING_PAYMENT)
        self.assertEqual(order.subtotal, Decimal('62.00'))
        self.assertEqual(order.shipping, Decimal('5.00'))
        self.assertEqual(order.total, Decimal('67.00'))
        self.assertEqual(order.buyer_bank, self.buyer_bank)
        self.assertEqual(order.seller_bank, self.seller_bank)
        self.assertEqual(order.items.count(), 2)

        self.oil.refresh_from_db()
        self.dates.refresh_from_db()
        self.assertEqual(self.oil.quantity, 6)
        self.assertEqual(self.dates.quantity, 0)
        self.assertFalse(CartItem.objects.filter(user=self.buyer).exists())
        self.assertTrue(AuditEvent.objects.filter(event_type='ORDER_CREATED', reference_id=str(order.id)).exists())

    def test_codes_are_sequential_within_a_year(self):
        first = services.pass_order(self.buyer)
        CartItem.objects.create(user=self.buyer, product=self.oil, quantity=1)
        second = services.pass_order(self.buyer, shipping=Decimal('0'))

        self.assertEqual(int(second.code[-6:]), int(first.code[-6:]) + 1)
        self.assertEqual(second.total, Decimal('12.50'))

    def test_generate_order_code_format(self):
        now = datetime(2031, 3, 1, tzinfo=dt_timezone.utc)
        self.assertEqual(services.generate_order_code(now), 'ORD-2031-000001')

    def test_empty_cart(self):
        CartItem.objects.all().delete()
        with self.assertRaises(ServiceError) as ctx:
            services.pass_order(self.buyer)
        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(str(ctx.exception), "Your cart is empty.")

    def test_insufficient_stock_leaves_everything_untouched(self):
        Product.objects.filter(id=self.dates.id).update(quantity=2)

        with self.assertRaises(ServiceError) as ctx:
            services.pass_order(self.buyer)

        self.assertEqual(ctx.exception.status, 409)
        self.assertFalse(Order.objects.exists())
        self.oil.refresh_from_db()
        self.assertEqual(self.oil.quantity, 10)
        self.assertEqual(CartItem.objects.filter(user=self.buyer).count(), 2)

    def test_stock_sold_during_checkout_rolls_back(self):
        generate = services.generate_order_code

        def sell_dates_elsewhere():
            Product.objects.filter(id=self.dates.id).update(quantity=2)
            return generate()

        with patch('orders.services.generate_order_code', side_effect=sell_dates_elsewhere):
            with self.assertRaises(ServiceError) as ctx:
                services.pass_order(self.buyer)

        self.assertEqual(ctx.exception.status, 409)
        self.assertIn("Stock changed", str(ctx.exception))
        self.assertFalse(Order.objects.exists())
        self.assertFalse(AuditEvent.objects.filter(event_type='ORDER_CREATED').exists())
        self.oil.refresh_from_db()
        self.assertEqual(self.oil.quantity, 10)
        self.assertEqual(CartItem.objects.filter(user=self.buyer).count(), 2)

    def test_deleted_product_is_conflict(self):
        self.dates.soft_delete()
        with self.assertRaises(ServiceError) as ctx:
            services.pass_order(self.buyer)
        self.assertEqual(ctx.exception.status, 409)

    def test_multi_producer_order_has_no_seller_bank(self):
        other = make_user('c', 'PRODUCER')
        rug = Product.objects.create(producer=other, name='Rug', price_per_unit=Decimal('100'), quantity=1)
        CartItem.objects.create(user=self.buyer, product=rug, quantity=1)

        order = services.pass_order(self.buyer)
        self.assertIsNone(order.seller_bank)

    @override_settings(ESCROW_AUTO_DEPLOY=True)
    @patch('orders.services.deploy_order_escrow')
    def test_escrow_is_deployed_after_commit(self, mock_deploy):
        with self.captureOnCommitCallbacks(execute=True):
            order = services.pass_order(self.buyer)
        mock_deploy.assert_called_once()
        self.assertEqual(mock_deploy.call_args[0][0].id, order.id)

    @patch('orders.services.deploy_order_escrow')
    def test_auto_deploy_is_off_by_default(self, mock_deploy):
        with self.captureOnCommitCallbacks(execute=True):
            services.pass_order(self.buyer)
        mock_deploy.assert_not_called()

    def test_pass_order_mutation(self):
        from .schema import PassOrder

        anonymous = PassOrder.mutate(None, MockInfo(MockContext()))
        self.assertFalse(anonymous.success)

        result = PassOrder.mutate(None, MockInfo(MockContext(self.buyer)))
        self.assertTrue(result.success)
        self.assertEqual(result.order.buyer, self.buyer)

        again = PassOrder.mutate(None, MockInfo(MockContext(self.buyer)))
        self.assertFalse(again.success)
        self.assertEqual(again.errors, ["Your cart is empty."])


class BuyerOrderActionsTest(TestCase):
    def setUp(self):
        self.buyer = make_user('d')
        self.producer = make_user('e', 'PRODUCER')
        self.product = Product.objects.create(producer=self.producer, name='Oil', price_per_unit=Decimal('10'), quantity=5)
        CartItem.objects.create(user=self.buyer, product=self.product, quantity=2)
        self.order = services.pass_order(self.buyer)

    def test_cancel_restocks(self):
        services.cancel_order(self.buyer, self.order.id)

        self.order.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.assertEqual(self.product.quantity, 5)

        with self.assertRaises(ServiceError) as ctx:
            services.cancel_order(self.buyer, self.order.id)
        self.assertEqual(ctx.exception.status, 409)

    def test_pay_order_moves_to_bank_review(self):
        order = services.pay_order(self.buyer, self.order.id, '0.0.2@1700000000.1')
        self.assertEqual(order.status, OrderStatus.BANK_REVIEW)
        self.assertEqual(order.payment_transaction_id, '0.0.2@1700000000.1')

        with self.assertRaises(ServiceError):
            services.pay_order(self.buyer, self.order.id, 'again')

    def test_cancel_after_payment_is_refused(self):
        services.pay_order(self.buyer, self.order.id, 'tx-1')
        with self.assertRaises(ServiceError) as ctx:
            services.update_order_status(self.buyer, self.order.id, OrderStatus.CANCELLED)
        self.assertEqual(ctx.exception.status, 409)

    def test_bank_driven_status_is_forbidden(self):
        with self.assertRaises(ServiceError) as ctx:
            services.update_order_status(self.buyer, self.order.id, OrderStatus.IN_TRANSIT)
        self.assertEqual(ctx.exception.status, 403)

        with self.assertRaises(ServiceError) as ctx:
            services.update_order_status(self.buyer, self.order.id, 'SHIPPED')
        self.assertEqual(ctx.exception.status, 400)

    def test_other_buyers_order_is_not_found(self):
        with self.assertRaises(ServiceError) as ctx:
            services.update_order_status(make_user('f'), self.order.id, OrderStatus.CANCELLED)
        self.assertEqual(ctx.exception.status, 404)

    def test_open_dispute(self):
        services.pay_order(self.buyer, self.order.id, 'tx-1')
        dispute = services.open_dispute(self.buyer, self.order.id, ' Goods damaged ', 'HIGH')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.DISPUTED)
        self.assertEqual(dispute.reason, 'Goods damaged')
        self.assertEqual(dispute.priority, 'HIGH')
        self.assertTrue(AuditEvent.objects.filter(event_type='DISPUTE_CREATED').exists())

    def test_producer_can_open_dispute(self):
        services.pay_order(self.buyer, self.order.id, 'tx-1')
        dispute = services.open_dispute(self.producer, self.order.id, 'Payment not received')
        self.assertEqual(dispute.initiator, self.producer)

    def test_dispute_requires_reason_and_valid_state(self):
        with self.assertRaises(ServiceError) as ctx:
            services.open_dispute(self.buyer, self.order.id, '  ')
        self.assertEqual(ctx.exception.status, 400)

        with self.assertRaises(ServiceError) as ctx:
            services.open_dispute(self.buyer, self.order.id, 'Too slow')
        self.assertEqual(ctx.exception.status, 409)

    def test_resolved_dispute_is_reopened(self):
        Order.objects.filter(id=self.order.id).update(status=OrderStatus.DELIVERED)
        Dispute.objects.create(order=self.order, initiator=self.buyer, reason='old', status='RESOLVED')

        dispute = services.open_dispute(self.buyer, self.order.id, 'Second problem')

        self.assertEqual(Dispute.objects.filter(order=self.order).count(), 1)
        self.assertEqual(dispute.status, 'OPEN')
        self.assertEqual(dispute.reason, 'Second problem')

    def test_update_status_to_disputed(self):
        services.pay_order(self.buyer, self.order.id, 'tx-1')
        order = services.update_order_status(self.buyer, self.order.id, OrderStatus.DISPUTED)
        self.assertEqual(order.status, OrderStatus.DISPUTED)
        self.assertEqual(order.dispute.reason, 'Opened by buyer')

    def test_my_orders_paging(self):
        for _ in range(2):
            CartItem.objects.create(user=self.buyer, product=self.product, quantity=1)
            services.pass_order(self.buyer)

        result = services.list_my_orders(self.buyer, page=1, page_size=2)
        self.assertEqual(result['total'], 3)
        self.assertEqual(result['page_count'], 2)
        self.assertEqual(len(result['orders']), 2)

        empty = services.list_my_orders(self.producer)
        self.assertEqual(empty['total'], 0)
        self.assertEqual(empty['page_count'], 1)

    def test_producer_can_read_order_documents(self):
        self.assertEqual(list(services.list_order_documents(self.producer, self.order.id)), [])
        with self.assertRaises(ServiceError):
            services.list_order_documents(make_user('9'), self.order.id)


class DeployEscrowTest(TestCase):
    def setUp(self):
        self.buyer = make_user('1')
        self.producer = make_user('2', 'PRODUCER')
        product = Product.objects.create(producer=self.producer, name='Oil', price_per_unit=Decimal('10'), quantity=5)
        CartItem.objects.create(user=self.buyer, product=product, quantity=1)
        self.order = services.pass_order(self.buyer)

    @patch('blockchain.escrow.get_escrow_client')
    def test_deploy_stores_contract(self, mock_client):
        mock_client.return_value.deploy.return_value = {
            'contract_address': '0x' + '9' * 40,
            'transaction_hash': 'ab' * 32,
            'arbiter_address': '0x' + '8' * 40,
        }

        order = services.deploy_order_escrow(self.order)

        mock_client.return_value.deploy.assert_called_once_with(self.buyer.wallet_address, self.producer.wallet_address)
        self.assertEqual(order.escrow_address, '0x' + '9' * 40)
        self.assertTrue(AuditEvent.objects.filter(event_type='ESCROW_DEPLOYED').exists())

        with self.assertRaises(ServiceError) as ctx:
            services.deploy_order_escrow(order)
        self.assertEqual(ctx.exception.status, 409)

    @patch('blockchain.escrow.get_escrow_client')
    def test_stale_order_is_not_deployed_twice(self, mock_client):
        stale = Order.objects.get(id=self.order.id)
        Order.objects.filter(id=self.order.id).update(escrow_address='0x' + '7' * 40)

        with self.assertRaises(ServiceError) as ctx:
            services.deploy_order_escrow(stale)

        self.assertEqual(ctx.exception.status, 409)
        mock_client.return_value.deploy.assert_not_called()
        self.order.refresh_from_db()
        self.assertEqual(self.order.escrow_address, '0x' + '7' * 40)
        self.assertFalse(AuditEvent.objects.filter(event_type='ESCROW_DEPLOYED').exists())

    def test_hedera_wallets_cannot_hold_escrow(self):
        User.objects.filter(id=self.buyer.id).update(wallet_address='0.0.1234', wallet_type='hashpack')
        self.order.refresh_from_db()
        with self.assertRaises(ServiceError) as ctx:
            services.deploy_order_escrow(self.order)
        self.assertEqual(ctx.exception.status, 400)

    @override_settings(ESCROW_AUTO_DEPLOY=True)
    @patch('blockchain.escrow.get_escrow_client')
    def test_auto_deploy_swallows_failures(self, mock_client):
        mock_client.return_value.deploy.side_effect = RuntimeError("relay timeout")
        self.assertIsNone(services.auto_deploy_escrow(self.order.id))
        self.order.refresh_from_db()
        self.assertIsNone(self.order.escrow_address)
