import graphene
from graphene_django import DjangoObjectType
import logging

from config.errors import ServiceError
from documents.schema import DocumentType
from .models import Dispute, DisputeRuling, Order, OrderItem, PaymentRelease
from . import services

logger = logging.getLogger(__name__)


def _current_user(info):
	user = getattr(info.context, 'user', None)
	if user and getattr(user, 'is_authenticated', False):
		return user
	return None


class OrderItemType(DjangoObjectType):
	class Meta:
		model = OrderItem
		fields = ('id', 'product', 'quantity', 'unit_price', 'line_total')


class PaymentReleaseType(DjangoObjectType):
	class Meta:
		model = PaymentRelease
		fields = ('id', 'order', 'type', 'amount', 'released', 'released_at', 'transaction_id', 'created_at')


class OrderType(DjangoObjectType):
	items = graphene.List(OrderItemType)
	payment_releases = graphene.List(PaymentReleaseType)

	class Meta:
		model = Order
		fields = (
			'id',
			'code',
			'buyer',
			'status',
			'subtotal',
			'shipping',
			'total',
			'buyer_bank',
			'seller_bank',
			'buyer_bank_approved',
			'seller_bank_approved',
			'escrow_address',
			'escrow_deploy_tx',
			'arbiter_address',
			'payment_transaction_id',
			'shipment_tracking_id',
			'documents',
			'created_at',
			'updated_at',
		)

	def resolve_items(self, info):
		return self.items.all()

	def resolve_payment_releases(self, info):
		return self.payment_releases.all()


class DisputeRulingType(DjangoObjectType):
	officer_name = graphene.String()

	class Meta:
		model = DisputeRuling
		fields = ('id', 'ruling', 'created_at')

	def resolve_officer_name(self, info):
		return (self.officer.name or self.officer.email) if self.officer else None


class DisputePartyType(graphene.ObjectType):
	id = graphene.ID()
	name = graphene.String()
	type = graphene.String()


class DisputeType(DjangoObjectType):
	order = graphene.Field(OrderType)
	amount = graphene.Decimal()
	buyer = graphene.Field(DisputePartyType)
	producers = graphene.List(DisputePartyType)
	rulings = graphene.List(DisputeRulingType)

	class Meta:
		model = Dispute
		fields = (
			'id',
			'initiator',
			'reason',
			'status',
			'priority',
			'resolution_outcome',
			'resolved_at',
			'created_at',
			'updated_at',
		)

	def resolve_order(self, info):
		return self.order

	def resolve_amount(self, info):
		return self.order.total

	def resolve_buyer(self, info):
		buyer = self.order.buyer
		return DisputePartyType(id=buyer.id, name=buyer.full_name or buyer.wallet_address, type='Buyer')

	def resolve_producers(self, info):
		return [
			DisputePartyType(id=p.id, name=p.business_name or p.full_name or p.wallet_address, type='Producer')
			for p in self.order.producers
		]

	def resolve_rulings(self, info):
		return self.rulings.all()


class MyOrdersPageType(graphene.ObjectType):
	orders = graphene.List(OrderType)
	page = graphene.Int()
	page_size = graphene.Int()
	total = graphene.Int()
	page_count = graphene.Int()


class Query(graphene.ObjectType):
	my_orders = graphene.Field(
		MyOrdersPageType,
		page=graphene.Int(),
		page_size=graphene.Int(),
		status=graphene.String()
	)
	my_order = graphene.Field(OrderType, id=graphene.ID(required=True))
	order_documents = graphene.List(DocumentType, order_id=graphene.ID(required=True))

	def resolve_my_orders(self, info, page=1, page_size=services.DEFAULT_PAGE_SIZE, status=None):
		user = _current_user(info)
		if not user:
			return MyOrdersPageType(orders=[], page=1, page_size=0, total=0, page_count=1)
		return MyOrdersPageType(**services.list_my_orders(user, page, page_size, status))

	def resolve_my_order(self, info, id):
		user = _current_user(info)
		if not user:
			return None
		try:
			return services.get_my_order(user, id)
		except ServiceError:
			return None

	def resolve_order_documents(self, info, order_id):
		user = _current_user(info)
		if not user:
			return []
		try:
			return services.list_order_documents(user, order_id)
		except ServiceError:
			return []


class PassOrder(graphene.Mutation):
	"""Checkout: turn the cart into an order"""
	class Arguments:
		shipping = graphene.Decimal()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	def mutate(cls, root, info, shipping=None):
		user = _current_user(info)
		if not user:
			return PassOrder(success=False, errors=["Authentication required"])
		try:
			order = services.pass_order(user, services.DEFAULT_SHIPPING if shipping is None else shipping)
		except ServiceError as e:
			logger.info(f"Checkout refused for user {user.id}: {e}")
			return PassOrder(success=False, errors=[str(e)])
		return PassOrder(success=True, errors=None, order=order)


class UpdateOrderStatus(graphene.Mutation):
	class Arguments:
		id = graphene.ID(required=True)
		status = graphene.String(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	def mutate(cls, root, info, id, status):
		user = _current_user(info)
		if not user:
			return UpdateOrderStatus(success=False, errors=["Authentication required"])
		try:
			order = services.update_order_status(user, id, status)
		except ServiceError as e:
			return UpdateOrderStatus(success=False, errors=[str(e)])
		return UpdateOrderStatus(success=True, errors=None, order=order)


class PayOrder(graphene.Mutation):
	class Arguments:
		order_id = graphene.ID(required=True)
		transaction_id = graphene.String(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	def mutate(cls, root, info, order_id, transaction_id):
		user = _current_user(info)
		if not user:
			return PayOrder(success=False, errors=["Authentication required"])
		try:
			order = services.pay_order(user, order_id, transaction_id)
		except ServiceError as e:
			return PayOrder(success=False, errors=[str(e)])
		return PayOrder(success=True, errors=None, order=order)


class CancelOrder(graphene.Mutation):
	class Arguments:
		order_id = graphene.ID(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	def mutate(cls, root, info, order_id):
		user = _current_user(info)
		if not user:
			return CancelOrder(success=False, errors=["Authentication required"])
		try:
			order = services.cancel_order(user, order_id)
		except ServiceError as e:
			return CancelOrder(success=False, errors=[str(e)])
		return CancelOrder(success=True, errors=None, order=order)


class OpenDispute(graphene.Mutation):
	class Arguments:
		order_id = graphene.ID(required=True)
		reason = graphene.String(required=True)
		priority = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	dispute = graphene.Field(DisputeType)

	@classmethod
	def mutate(cls, root, info, order_id, reason, priority='MEDIUM'):
		user = _current_user(info)
		if not user:
			return OpenDispute(success=False, errors=["Authentication required"])
		try:
			dispute = services.open_dispute(user, order_id, reason, priority)
		except ServiceError as e:
			return OpenDispute(success=False, errors=[str(e)])
		return OpenDispute(success=True, errors=None, dispute=dispute)


class DeployOrderEscrow(graphene.Mutation):
	"""Retry escrow deployment for an order without one"""
	class Arguments:
		order_id = graphene.ID(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	def mutate(cls, root, info, order_id):
		user = _current_user(info)
		if not user:
			return DeployOrderEscrow(success=False, errors=["Authentication required"])
		try:
			order = services.get_accessible_order(user, order_id)
			order = services.deploy_order_escrow(order)
		except ServiceError as e:
			return DeployOrderEscrow(success=False, errors=[str(e)])
		except Exception as e:
			logger.error(f"Escrow deployment failed for order {order_id}: {e}")
			return DeployOrderEscrow(success=False, errors=[f"Escrow deployment failed: {e}"])
		return DeployOrderEscrow(success=True, errors=None, order=order)


class Mutation(graphene.ObjectType):
	pass_order = PassOrder.Field()
	update_order_status = UpdateOrderStatus.Field()
	pay_order = PayOrder.Field()
	cancel_order = CancelOrder.Field()
	open_dispute = OpenDispute.Field()
	deploy_order_escrow = DeployOrderEscrow.Field()
