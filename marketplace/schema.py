import graphene
from graphene_django import DjangoObjectType
import logging

from config.errors import ServiceError
from .models import CartItem, Product
from . import services

logger = logging.getLogger(__name__)


def _current_user(info):
	user = getattr(info.context, 'user', None)
	if user and getattr(user, 'is_authenticated', False):
		return user
	return None


class ProductType(DjangoObjectType):
	images = graphene.JSONString()
	documents = graphene.JSONString()
	producer_name = graphene.String()

	class Meta:
		model = Product
		fields = (
			'id',
			'producer',
			'name',
			'description',
			'category',
			'unit',
			'price_per_unit',
			'quantity',
			'min_order_qty',
			'country_of_origin',
			'hs_code',
			'hedera_token_id',
			'hedera_serials',
			'nft_status',
			'nft_error',
			'created_at',
			'updated_at',
		)

	def resolve_producer_name(self, info):
		producer = self.producer
		return producer.business_name or producer.full_name or producer.wallet_address


class CartItemType(DjangoObjectType):
	line_total = graphene.Decimal()

	class Meta:
		model = CartItem
		fields = ('id', 'product', 'quantity', 'created_at', 'updated_at')

	def resolve_line_total(self, info):
		return self.line_total


class ProductPageType(graphene.ObjectType):
	items = graphene.List(ProductType)
	total = graphene.Int()
	page = graphene.Int()
	page_size = graphene.Int()


class ProductInput(graphene.InputObjectType):
	name = graphene.String(required=True)
	description = graphene.String()
	category = graphene.String()
	unit = graphene.String()
	price_per_unit = graphene.Decimal(required=True)
	quantity = graphene.Int(required=True)
	min_order_qty = graphene.Int()
	country_of_origin = graphene.String()
	hs_code = graphene.String()
	images = graphene.JSONString()
	documents = graphene.JSONString()


class Query(graphene.ObjectType):
	products = graphene.Field(
		ProductPageType,
		search=graphene.String(),
		category=graphene.String(),
		producer_id=graphene.ID(),
		page=graphene.Int(),
		page_size=graphene.Int(),
		ordering=graphene.String()
	)
	product = graphene.Field(ProductType, id=graphene.ID(required=True))
	my_cart = graphene.List(CartItemType)
	cart_count = graphene.Int()

	def resolve_products(self, info, search=None, category=None, producer_id=None, page=1,
	                     page_size=services.DEFAULT_PAGE_SIZE, ordering='newest'):
		return ProductPageType(**services.list_products(search, category, producer_id, page, page_size, ordering))

	def resolve_product(self, info, id):
		return Product.objects.filter(id=id).select_related('producer').first()

	def resolve_my_cart(self, info):
		user = _current_user(info)
		if not user:
			return []
		return services.get_cart(user)

	def resolve_cart_count(self, info):
		user = _current_user(info)
		if not user:
			return 0
		return services.cart_count(user)


class CreateProduct(graphene.Mutation):
	"""List a product; its NFT collection is created when Hedera is configured"""
	class Arguments:
		input = ProductInput(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	product = graphene.Field(ProductType)

	@classmethod
	def mutate(cls, root, info, input):
		user = _current_user(info)
		if not user:
			return CreateProduct(success=False, errors=["Authentication required"])
		try:
			product = services.create_product(user, **dict(input))
		except ServiceError as e:
			return CreateProduct(success=False, errors=[str(e)])
		return CreateProduct(success=True, errors=None, product=product)


class MintProductNft(graphene.Mutation):
	class Arguments:
		product_id = graphene.ID(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	product = graphene.Field(ProductType)

	@classmethod
	def mutate(cls, root, info, product_id):
		user = _current_user(info)
		if not user:
			return MintProductNft(success=False, errors=["Authentication required"])
		try:
			product = services.mint_product_nft(user, product_id)
		except ServiceError as e:
			return MintProductNft(success=False, errors=[str(e)])
		return MintProductNft(success=True, errors=None, product=product)


class AddToCart(graphene.Mutation):
	class Arguments:
		product_id = graphene.ID(required=True)
		quantity = graphene.Int(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	item = graphene.Field(CartItemType)
	count = graphene.Int()

	@classmethod
	def mutate(cls, root, info, product_id, quantity):
		user = _current_user(info)
		if not user:
			return AddToCart(success=False, errors=["Authentication required"])
		try:
			item = services.add_to_cart(user, product_id, quantity)
		except ServiceError as e:
			return AddToCart(success=False, errors=[str(e)])
		return AddToCart(success=True, errors=None, item=item, count=services.cart_count(user))


class IncrementCartItem(graphene.Mutation):
	class Arguments:
		item_id = graphene.ID(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	item = graphene.Field(CartItemType)

	@classmethod
	def mutate(cls, root, info, item_id):
		user = _current_user(info)
		if not user:
			return IncrementCartItem(success=False, errors=["Authentication required"])
		try:
			item = services.increment_cart_item(user, item_id)
		except ServiceError as e:
			return IncrementCartItem(success=False, errors=[str(e)])
		return IncrementCartItem(success=True, errors=None, item=item)


class DecrementCartItem(graphene.Mutation):
	"""Reaching zero removes the line; ``removed`` is then true"""
	class Arguments:
		item_id = graphene.ID(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)
	item = graphene.Field(CartItemType)
	removed = graphene.Boolean()

	@classmethod
	def mutate(cls, root, info, item_id):
		user = _current_user(info)
		if not user:
			return DecrementCartItem(success=False, errors=["Authentication required"])
		try:
			item = services.decrement_cart_item(user, item_id)
		except ServiceError as e:
			return DecrementCartItem(success=False, errors=[str(e)])
		return DecrementCartItem(success=True, errors=None, item=item, removed=item is None)


class RemoveCartItem(graphene.Mutation):
	class Arguments:
		item_id = graphene.ID(required=True)

	success = graphene.Boolean()
	errors = graphene.List(graphene.String)

	@classmethod
	def mutate(cls, root, info, item_id):
		user = _current_user(info)
		if not user:
			return RemoveCartItem(success=False, errors=["Authentication required"])
		try:
			services.remove_cart_item(user, item_id)
		except ServiceError as e:
			return RemoveCartItem(success=False, errors=[str(e)])
		return RemoveCartItem(success=True, errors=None)


class Mutation(graphene.ObjectType):
	create_product = CreateProduct.Field()
	mint_product_nft = MintProductNft.Field()
	add_to_cart = AddToCart.Field()
	increment_cart_item = IncrementCartItem.Field()
	decrement_cart_item = DecrementCartItem.Field()
	remove_cart_item = RemoveCartItem.Field()
