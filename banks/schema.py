import graphene
from graphene_django import DjangoObjectType
import logging

from config.errors import ServiceError
from documents.schema import DocumentType
from orders.schema import DisputeType, OrderType, PaymentReleaseType
from users.decorators import rate_limit
from users.models import User
from .decorators import bank_admin_required, bank_user_required, get_bank_user
from .models import Bank, BankReview, BankUser, KycReview, PaymentApproval
from . import services

logger = logging.getLogger(__name__)


class BankType(DjangoObjectType):
	class Meta:
		model = Bank
		fields = ('id', 'code', 'name', 'logo', 'created_at', 'updated_at')


class BankUserType(DjangoObjectType):
	class Meta:
		model = BankUser
		fields = (
			'id',
			'email',
			'name',
			'phone',
			'role',
			'bank',
			'is_banned',
			'last_login_at',
			'created_at',
		)


class ClientType(DjangoObjectType):
	"""Marketplace user as seen by bank officers"""
	order_count = graphene.Int()
	total_volume = graphene.Decimal()

	class Meta:
		model = User
		name = 'BankClientType'
		fields = (
			'id',
			'wallet_address',
			'full_name',
			'email',
			'phone_number',
			'location',
			'business_name',
			'user_type',
			'is_verified',
			'kyc_status',
			'kyc_expiry',
			'created_at',
			'updated_at',
		)

	def resolve_order_count(self, info):
		return getattr(self, 'order_count', None) or self.orders.count()

	def resolve_total_volume(self, info):
		return getattr(self, 'total_volume', None)


class KycReviewType(DjangoObjectType):
	class Meta:
		model = KycReview
		fields = ('id', 'client', 'action', 'reason', 'reviewer', 'created_at')


class BankReviewType(DjangoObjectType):
	class Meta:
		model = BankReview
		fields = ('id', 'order', 'bank', 'reviewer', 'action', 'side', 'comments', 'created_at')


class PaymentApprovalType(DjangoObjectType):
	class Meta:
		model = PaymentApproval
		fields = ('id', 'payment_release', 'actor', 'action', 'comments', 'created_at')


class WorkflowOrderType(graphene.ObjectType):
	order = graphene.Field(OrderType)
	buyer_bank_id = graphene.ID()
	seller_bank_id = graphene.ID()


class Query(graphene.ObjectType):
	banks = graphene.List(BankType)
	bank_me = graphene.Field(BankUserType)
	bank_clients = graphene.List(ClientType)
	bank_disputes = graphene.List(DisputeType)
	bank_documents = graphene.List(DocumentType)
	bank_escrows = graphene.List(OrderType)
	bank_orders = graphene.List(OrderType, status=graphene.String())
	bank_orders_workflow = graphene.List(WorkflowOrderType)

	def resolve_banks(self, info):
		return Bank.objects.order_by('name')

	def resolve_bank_me(self, info):
		return get_bank_user(info)

	@bank_user_required
	def resolve_bank_clients(self, info):
		return services.list_clients()

	@bank_user_required
	def resolve_bank_disputes(self, info):
		return services.list_disputes()

	@bank_user_required
	def resolve_bank_documents(self, info):
		return services.list_documents()

	@bank_user_required
	def resolve_bank_escrows(self, info):
		return services.list_escrows()

	@bank_user_required
	def resolve_bank_orders(self, info, status=None):
		return services.list_orders(status)

	@bank_user_required
	def resolve_bank_orders_workflow(self, info):
		return [
			WorkflowOrderType(order=order, buyer_bank_id=order.buyer_bank_id, seller_bank_id=order.seller_bank_id)
			for order in services.list_orders()
		]


class BankRegister(graphene.Mutation):
	class Arguments:
		email = graphene.String(required=True)
		password = graphene.String(required=True)
		name = graphene.String()
		phone = graphene.String()
		bank_id = graphene.ID()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	token = graphene.String()
	bank_user = graphene.Field(BankUserType)

	@classmethod
	def mutate(cls, root, info, email, password, name=None, phone=None, bank_id=None):
		try:
			bank_user, token = services.register_bank_user(email, password, name, phone, bank_id)
		except ServiceError as e:
			return BankRegister(success=False, errors=[str(e)])
		info.context.bank_auth_cookie = token
		return BankRegister(success=True, errors=None, token=token, bank_user=bank_user)


class BankLogin(graphene.Mutation):
	class Arguments:
		email = graphene.String(required=True)
		password = graphene.String(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	token = graphene.String()
	bank_user = graphene.Field(BankUserType)

	@classmethod
	@rate_limit('bank_login')
	def mutate(cls, root, info, email, password):
		try:
			bank_user, token = services.login_bank_user(email, password)
		except ServiceError as e:
			logger.info(f"Bank login refused for {email}: {e}")
			return BankLogin(success=False, errors=[str(e)])
		info.context.bank_auth_cookie = token
		return BankLogin(success=True, errors=None, token=token, bank_user=bank_user)


class BankLogout(graphene.Mutation):
	success = graphene.Boolean()
	errors = graphene.List(graphene.String)

	@classmethod
	def mutate(cls, root, info):
		info.context.bank_auth_cookie_clear = True
		return BankLogout(success=True, errors=None)


class BanBankUser(graphene.Mutation):
	"""Bank admins only"""
	class Arguments:
		bank_user_id = graphene.ID(required=True)
		banned = graphene.Boolean()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	bank_user = graphene.Field(BankUserType)

	@classmethod
	@bank_admin_required
	def mutate(cls, root, info, bank_user_id, banned=True):
		try:
			bank_user = services.set_bank_user_ban(get_bank_user(info), bank_user_id, banned)
		except ServiceError as e:
			return BanBankUser(success=False, errors=[str(e)])
		return BanBankUser(success=True, errors=None, bank_user=bank_user)


class UpdateClientKyc(graphene.Mutation):
	class Arguments:
		client_id = graphene.ID(required=True)
		action = graphene.String(required=True)
		reason = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	client = graphene.Field(ClientType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, client_id, action, reason=None):
		try:
			client = services.update_client_kyc(get_bank_user(info), client_id, action, reason)
		except ServiceError as e:
			return UpdateClientKyc(success=False, errors=[str(e)])
		return UpdateClientKyc(success=True, errors=None, client=client)


class UpdateDispute(graphene.Mutation):
	class Arguments:
		dispute_id = graphene.ID(required=True)
		action = graphene.String(required=True)
		ruling = graphene.String()
		outcome = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	dispute = graphene.Field(DisputeType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, dispute_id, action, ruling=None, outcome=None):
		try:
			dispute = services.update_dispute(get_bank_user(info), dispute_id, action, ruling, outcome)
		except ServiceError as e:
			return UpdateDispute(success=False, errors=[str(e)])
		return UpdateDispute(success=True, errors=None, dispute=dispute)


class UpdateDocument(graphene.Mutation):
	class Arguments:
		document_id = graphene.ID(required=True)
		status = graphene.String(required=True)
		rejection_reason = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	document = graphene.Field(DocumentType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, document_id, status, rejection_reason=None):
		try:
			document = services.update_document(get_bank_user(info), document_id, status, rejection_reason)
		except ServiceError as e:
			return UpdateDocument(success=False, errors=[str(e)])
		return UpdateDocument(success=True, errors=None, document=document)


class ApproveOrderByBank(graphene.Mutation):
	"""Dual-bank approval; the second approval releases the first 50%"""
	class Arguments:
		order_id = graphene.ID(required=True)
		bank_type = graphene.String(required=True)
		comments = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, order_id, bank_type, comments=None):
		try:
			order = services.approve_order_by_bank(get_bank_user(info), order_id, bank_type, comments)
		except ServiceError as e:
			return ApproveOrderByBank(success=False, errors=[str(e)])
		except Exception as e:
			logger.error(f"Escrow approval failed for order {order_id}: {e}")
			return ApproveOrderByBank(success=False, errors=[f"Failed to approve {bank_type} bank on blockchain: {e}"])
		return ApproveOrderByBank(success=True, errors=None, order=order)


class RequestDocuments(graphene.Mutation):
	class Arguments:
		order_id = graphene.ID(required=True)
		request_to = graphene.String(required=True)
		comments = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	review = graphene.Field(BankReviewType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, order_id, request_to, comments=None):
		try:
			review = services.request_documents(get_bank_user(info), order_id, request_to, comments)
		except ServiceError as e:
			return RequestDocuments(success=False, errors=[str(e)])
		return RequestDocuments(success=True, errors=None, review=review)


class UpdateOrderApproval(graphene.Mutation):
	class Arguments:
		order_id = graphene.ID(required=True)
		action = graphene.String(required=True)
		notes = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, order_id, action, notes=None):
		try:
			order = services.update_order_approval(get_bank_user(info), order_id, action, notes)
		except ServiceError as e:
			return UpdateOrderApproval(success=False, errors=[str(e)])
		except Exception as e:
			logger.error(f"Order approval failed for order {order_id}: {e}")
			return UpdateOrderApproval(success=False, errors=[str(e)])
		return UpdateOrderApproval(success=True, errors=None, order=order)


class ConfirmShipment(graphene.Mutation):
	class Arguments:
		order_id = graphene.ID(required=True)
		tracking_id = graphene.String(required=True)
		notes = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, order_id, tracking_id, notes=None):
		try:
			order = services.confirm_shipment(get_bank_user(info), order_id, tracking_id, notes)
		except ServiceError as e:
			return ConfirmShipment(success=False, errors=[str(e)])
		return ConfirmShipment(success=True, errors=None, order=order)


class ConfirmDelivery(graphene.Mutation):
	"""Releases the final 50%"""
	class Arguments:
		order_id = graphene.ID(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	order = graphene.Field(OrderType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, order_id):
		try:
			order = services.confirm_delivery(get_bank_user(info), order_id)
		except ServiceError as e:
			return ConfirmDelivery(success=False, errors=[str(e)])
		except Exception as e:
			logger.error(f"Escrow delivery confirmation failed for order {order_id}: {e}")
			return ConfirmDelivery(success=False, errors=[f"Failed to confirm delivery on blockchain: {e}"])
		return ConfirmDelivery(success=True, errors=None, order=order)


class ApprovePayment(graphene.Mutation):
	class Arguments:
		payment_release_id = graphene.ID(required=True)
		comments = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	approval = graphene.Field(PaymentApprovalType)
	payment_release = graphene.Field(PaymentReleaseType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, payment_release_id, comments=None):
		try:
			approval = services.approve_payment(get_bank_user(info), payment_release_id, comments)
		except ServiceError as e:
			return ApprovePayment(success=False, errors=[str(e)])
		return ApprovePayment(success=True, errors=None, approval=approval, payment_release=approval.payment_release)


class RejectPayment(graphene.Mutation):
	class Arguments:
		payment_release_id = graphene.ID(required=True)
		comments = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	approval = graphene.Field(PaymentApprovalType)
	payment_release = graphene.Field(PaymentReleaseType)

	@classmethod
	@bank_user_required
	def mutate(cls, root, info, payment_release_id, comments=None):
		try:
			approval = services.reject_payment(get_bank_user(info), payment_release_id, comments)
		except ServiceError as e:
			return RejectPayment(success=False, errors=[str(e)])
		return RejectPayment(success=True, errors=None, approval=approval, payment_release=approval.payment_release)


class Mutation(graphene.ObjectType):
	bank_register = BankRegister.Field()
	bank_login = BankLogin.Field()
	bank_logout = BankLogout.Field()
	ban_bank_user = BanBankUser.Field()
	update_client_kyc = UpdateClientKyc.Field()
	update_dispute = UpdateDispute.Field()
	update_document = UpdateDocument.Field()
	approve_order_by_bank = ApproveOrderByBank.Field()
	request_documents = RequestDocuments.Field()
	update_order_approval = UpdateOrderApproval.Field()
	confirm_shipment = ConfirmShipment.Field()
	confirm_delivery = ConfirmDelivery.Field()
	approve_payment = ApprovePayment.Field()
	reject_payment = RejectPayment.Field()
