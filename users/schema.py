import graphene
from graphene_django import DjangoObjectType
from graphql_jwt.utils import get_http_authorization
import logging

from config.errors import ServiceError
from .abuse_prevention import get_client_ip
from .decorators import rate_limit
from .models import User, DID, BankAccount
from . import services

logger = logging.getLogger(__name__)


def _current_user(info):
	user = getattr(info.context, 'user', None)
	if user and getattr(user, 'is_authenticated', False):
		return user
	return None


class UserType(DjangoObjectType):
	did = graphene.String()

	class Meta:
		model = User
		fields = (
			'id',
			'wallet_address',
			'wallet_type',
			'user_type',
			'full_name',
			'email',
			'phone_number',
			'location',
			'profile_image',
			'business_name',
			'business_desc',
			'hedera_account_id',
			'is_verified',
			'kyc_status',
			'kyc_expiry',
			'last_login_at',
			'created_at',
			'updated_at',
		)

	def resolve_did(self, info):
		record = getattr(self, 'did', None)
		return record.did if record else None


class DIDType(DjangoObjectType):
	metadata = graphene.JSONString()

	class Meta:
		model = DID
		fields = ('id', 'did', 'metadata', 'created_at', 'updated_at')


class BankAccountType(DjangoObjectType):
	bank_name = graphene.String()

	class Meta:
		model = BankAccount
		fields = (
			'id',
			'bank_code',
			'bank',
			'rib',
			'holder_name',
			'phone_number',
			'email',
			'tax_identification_number',
			'created_at',
			'updated_at',
		)

	def resolve_bank_name(self, info):
		return self.bank.name if self.bank else None


class PublicIdentityType(graphene.ObjectType):
	wallet_address = graphene.String()
	user_type = graphene.String()
	is_verified = graphene.Boolean()
	did = graphene.String()
	member_since = graphene.DateTime()


class IdentityLookupType(graphene.ObjectType):
	exists = graphene.Boolean()
	identity = graphene.Field(PublicIdentityType)


class Query(graphene.ObjectType):
	me = graphene.Field(UserType)
	profile = graphene.Field(UserType)
	identity_by_wallet = graphene.Field(IdentityLookupType, wallet_address=graphene.String(required=True))
	my_did = graphene.Field(DIDType)
	my_bank_accounts = graphene.List(BankAccountType)

	def resolve_me(self, info):
		return _current_user(info)

	def resolve_profile(self, info):
		return _current_user(info)

	def resolve_identity_by_wallet(self, info, wallet_address):
		result = services.get_identity_by_wallet(wallet_address)
		identity = result['identity']
		return IdentityLookupType(
			exists=result['exists'],
			identity=PublicIdentityType(**identity) if identity else None
		)

	def resolve_my_did(self, info):
		user = _current_user(info)
		if not user:
			return None
		return DID.objects.filter(user=user).first()

	def resolve_my_bank_accounts(self, info):
		user = _current_user(info)
		if not user:
			return []
		return BankAccount.objects.filter(user=user).select_related('bank')


class RequestWalletNonce(graphene.Mutation):
	"""Issue a sign-in challenge for a wallet address"""
	class Arguments:
		wallet_address = graphene.String(required=True)
		wallet_type = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	nonce = graphene.String()
	message = graphene.String()
	expires_in = graphene.Int()
	user_type = graphene.String()

	@classmethod
	@rate_limit('wallet_nonce')
	def mutate(cls, root, info, wallet_address, wallet_type='metamask'):
		try:
			result = services.request_wallet_nonce(wallet_address, wallet_type)
		except ServiceError as e:
			return RequestWalletNonce(success=False, errors=[str(e)])
		return RequestWalletNonce(success=True, errors=None, **result)


class ConnectWallet(graphene.Mutation):
	"""Verify the signed challenge and return a token pair"""
	class Arguments:
		wallet_address = graphene.String(required=True)
		signature = graphene.String(required=True)
		message = graphene.String(required=True)
		nonce = graphene.String(required=True)
		wallet_type = graphene.String()
		public_key_hex = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	token = graphene.String()
	refresh_token = graphene.String()
	session_id = graphene.String()
	user = graphene.Field(UserType)

	@classmethod
	@rate_limit('wallet_connect')
	def mutate(cls, root, info, wallet_address, signature, message, nonce, wallet_type='metamask', public_key_hex=None):
		meta = getattr(info.context, 'META', {})
		try:
			user, session = services.connect_wallet(
				wallet_address,
				signature,
				message,
				nonce,
				wallet_type=wallet_type,
				public_key_hex=public_key_hex,
				ip_address=get_client_ip(info.context) if meta else None,
				user_agent=meta.get('HTTP_USER_AGENT', ''),
			)
		except ServiceError as e:
			return ConnectWallet(success=False, errors=[str(e)])

		return ConnectWallet(
			success=True,
			errors=None,
			token=session.token,
			refresh_token=session.refresh_token,
			session_id=str(session.session_id),
			user=user
		)


class RefreshSession(graphene.Mutation):
	class Arguments:
		refresh_token = graphene.String(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	token = graphene.String()
	refresh_token = graphene.String()

	@classmethod
	def mutate(cls, root, info, refresh_token):
		try:
			session = services.refresh_session(refresh_token)
		except ServiceError as e:
			return RefreshSession(success=False, errors=[str(e)])
		return RefreshSession(success=True, errors=None, token=session.token, refresh_token=session.refresh_token)


class Logout(graphene.Mutation):
	success = graphene.Boolean()
	errors = graphene.List(graphene.String)

	@classmethod
	def mutate(cls, root, info):
		user = _current_user(info)
		if not user:
			return Logout(success=False, errors=["Authentication required"])

		session = getattr(info.context, 'auth_session', None)
		token = None
		if session is None and hasattr(info.context, 'META'):
			token = get_http_authorization(info.context)
		try:
			services.logout(user, session=session, token=token)
		except ServiceError as e:
			return Logout(success=False, errors=[str(e)])
		return Logout(success=True, errors=None)


class LogoutAll(graphene.Mutation):
	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	count = graphene.Int()

	@classmethod
	def mutate(cls, root, info):
		user = _current_user(info)
		if not user:
			return LogoutAll(success=False, errors=["Authentication required"], count=0)
		return LogoutAll(success=True, errors=None, count=services.logout_all(user))


class SaveCoreIdentity(graphene.Mutation):
	"""Required identity fields; issues a DID the first time"""
	class Arguments:
		full_name = graphene.String(required=True)
		email = graphene.String(required=True)
		phone_number = graphene.String()
		location = graphene.String()
		user_type = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	user = graphene.Field(UserType)

	@classmethod
	def mutate(cls, root, info, full_name, email, phone_number=None, location=None, user_type=None):
		user = _current_user(info)
		if not user:
			return SaveCoreIdentity(success=False, errors=["Authentication required"])
		try:
			user = services.save_core_identity(user, full_name, email, phone_number, location, user_type)
		except ServiceError as e:
			return SaveCoreIdentity(success=False, errors=[str(e)])
		return SaveCoreIdentity(success=True, errors=None, user=user)


class UpdateProgressiveProfile(graphene.Mutation):
	class Arguments:
		profile_image = graphene.String()
		business_name = graphene.String()
		business_desc = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	user = graphene.Field(UserType)

	@classmethod
	def mutate(cls, root, info, profile_image=None, business_name=None, business_desc=None):
		user = _current_user(info)
		if not user:
			return UpdateProgressiveProfile(success=False, errors=["Authentication required"])
		user = services.update_progressive_profile(user, profile_image, business_name, business_desc)
		return UpdateProgressiveProfile(success=True, errors=None, user=user)


class UpdateProfile(graphene.Mutation):
	class Arguments:
		full_name = graphene.String()
		email = graphene.String()
		phone_number = graphene.String()
		location = graphene.String()
		profile_image = graphene.String()
		business_name = graphene.String()
		business_desc = graphene.String()
		hedera_account_id = graphene.String()

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	user = graphene.Field(UserType)

	@classmethod
	def mutate(cls, root, info, **fields):
		user = _current_user(info)
		if not user:
			return UpdateProfile(success=False, errors=["Authentication required"])
		try:
			user = services.update_profile(user, **fields)
		except ServiceError as e:
			return UpdateProfile(success=False, errors=[str(e)])
		return UpdateProfile(success=True, errors=None, user=user)


class UpdateDidMetadata(graphene.Mutation):
	class Arguments:
		metadata = graphene.JSONString(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	did = graphene.Field(DIDType)

	@classmethod
	def mutate(cls, root, info, metadata):
		user = _current_user(info)
		if not user:
			return UpdateDidMetadata(success=False, errors=["Authentication required"])
		try:
			record = services.update_did_metadata(user, metadata)
		except ServiceError as e:
			return UpdateDidMetadata(success=False, errors=[str(e)])
		return UpdateDidMetadata(success=True, errors=None, did=record)


class BankAccountInput(graphene.InputObjectType):
	bank_code = graphene.String()
	rib = graphene.String()
	holder_name = graphene.String()
	phone_number = graphene.String()
	email = graphene.String()
	tax_identification_number = graphene.String()


class AddBankAccount(graphene.Mutation):
	class Arguments:
		input = BankAccountInput(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	bank_account = graphene.Field(BankAccountType)

	@classmethod
	def mutate(cls, root, info, input):
		user = _current_user(info)
		if not user:
			return AddBankAccount(success=False, errors=["Authentication required"])
		try:
			account = services.add_bank_account(
				user,
				bank_code=input.get('bank_code'),
				rib=input.get('rib'),
				holder_name=input.get('holder_name'),
				phone_number=input.get('phone_number'),
				email=input.get('email'),
				tax_identification_number=input.get('tax_identification_number'),
			)
		except ServiceError as e:
			return AddBankAccount(success=False, errors=[str(e)])
		return AddBankAccount(success=True, errors=None, bank_account=account)


class UpdateBankAccount(graphene.Mutation):
	class Arguments:
		id = graphene.ID(required=True)
		input = BankAccountInput(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	bank_account = graphene.Field(BankAccountType)

	@classmethod
	def mutate(cls, root, info, id, input):
		user = _current_user(info)
		if not user:
			return UpdateBankAccount(success=False, errors=["Authentication required"])
		try:
			account = services.update_bank_account(user, id, **dict(input))
		except ServiceError as e:
			return UpdateBankAccount(success=False, errors=[str(e)])
		return UpdateBankAccount(success=True, errors=None, bank_account=account)


class DeleteBankAccount(graphene.Mutation):
	class Arguments:
		id = graphene.ID(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)

	@classmethod
	def mutate(cls, root, info, id):
		user = _current_user(info)
		if not user:
			return DeleteBankAccount(success=False, errors=["Authentication required"])
		try:
			services.delete_bank_account(user, id)
		except ServiceError as e:
			return DeleteBankAccount(success=False, errors=[str(e)])
		return DeleteBankAccount(success=True, errors=None)


class Mutation(graphene.ObjectType):
	request_wallet_nonce = RequestWalletNonce.Field()
	connect_wallet = ConnectWallet.Field()
	refresh_session = RefreshSession.Field()
	logout = Logout.Field()
	logout_all = LogoutAll.Field()
	save_core_identity = SaveCoreIdentity.Field()
	update_progressive_profile = UpdateProgressiveProfile.Field()
	update_profile = UpdateProfile.Field()
	update_did_metadata = UpdateDidMetadata.Field()
	add_bank_account = AddBankAccount.Field()
	update_bank_account = UpdateBankAccount.Field()
	delete_bank_account = DeleteBankAccount.Field()
