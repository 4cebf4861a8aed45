"""
Product catalogue, product NFT lifecycle and shopping cart.
"""
from decimal import Decimal, InvalidOperation
import logging

from django.db import transaction
from django.db.models import Q

from blockchain.hedera import get_hedera_client
from config.errors import ServiceError, NotFoundError, ForbiddenError
from .models import CartItem, Product

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

PRODUCT_ORDERINGS = {
    'newest': '-created_at',
    'oldest': 'created_at',
    'price_asc': 'price_per_unit',
    'price_desc': '-price_per_unit',
    'name': 'name',
}

PRODUCT_FIELDS = (
    'name', 'description', 'category', 'unit', 'price_per_unit', 'quantity',
    'min_order_qty', 'country_of_origin', 'hs_code', 'images', 'documents',
)


class CartError(ServiceError):
    pass


class ProductError(ServiceError):
    pass


# Catalogue

def list_products(search=None, category=None, producer_id=None, page=1, page_size=DEFAULT_PAGE_SIZE, ordering='newest'):
    take = min(max(page_size or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
    page = max(page or 1, 1)
    skip = (page - 1) * take

    queryset = Product.objects.select_related('producer')
    if search:
        queryset = queryset.filter(
            Q(name__icontains=search) | Q(description__icontains=search) | Q(category__icontains=search)
        )
    if category:
        queryset = queryset.filter(category__iexact=category)
    if producer_id:
        queryset = queryset.filter(producer_id=producer_id)

    total = queryset.count()
    items = list(queryset.order_by(PRODUCT_ORDERINGS.get(ordering or 'newest', '-created_at'), '-id')[skip:skip + take])
    return {'items': items, 'total': total, 'page': page, 'page_size': take}


def get_product(product_id):
    product = Product.objects.select_related('producer').filter(id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _clean_product_data(data):
    cleaned = {name: data[name] for name in PRODUCT_FIELDS if data.get(name) is not None}

    if not (cleaned.get('name') or '').strip():
        raise ProductError("name is required")
    try:
        price = Decimal(str(cleaned.get('price_per_unit', '')))
    except InvalidOperation:
        raise ProductError("pricePerUnit must be a number")
    if not price.is_finite():
        raise ProductError("pricePerUnit must be a number")
    if price < 0:
        raise ProductError("pricePerUnit cannot be negative")
    cleaned['price_per_unit'] = price

    quantity = int(cleaned.get('quantity', 0))
    min_order_qty = int(cleaned.get('min_order_qty', 1))
    if quantity < 0:
        raise ProductError("quantity cannot be negative")
    if min_order_qty < 1:
        raise ProductError("minOrderQty must be at least 1")
    cleaned['quantity'] = quantity
    cleaned['min_order_qty'] = min_order_qty
    cleaned['name'] = cleaned['name'].strip()
    return cleaned


def create_product(user, **data):
    """List a product and, when Hedera is configured, create its NFT collection.

    Token creation failures are logged on the product; the row is kept.
    """
    if user.user_type not in ('PRODUCER', 'ADMIN'):
        raise ForbiddenError("Only producers can create products")

    product = Product.objects.create(producer=user, nft_status='PENDING', **_clean_product_data(data))

    client = get_hedera_client()
    if not client.is_configured():
        logger.info(f"Hedera not configured; product {product.id} created without a token")
        return product
    if product.quantity <= 0:
        return product

    try:
        product.hedera_token_id = client.create_product_token(
            product.name,
            product.quantity,
            memo=f"Hex-Port product {product.id}",
        )
        product.save(update_fields=['hedera_token_id', 'updated_at'])
    except Exception as e:
        logger.error(f"NFT token creation failed for product {product.id}: {e}")
        product.nft_error = str(e)[:1000]
        product.save(update_fields=['nft_error', 'updated_at'])

    return product


def mint_product_nft(user, product_id):
    product = get_product(product_id)
    if product.producer_id != user.id and user.user_type != 'ADMIN':
        raise ForbiddenError("You can only mint your own products")
    if not product.hedera_token_id:
        raise ProductError("Token not created for this product")
    if product.nft_status == 'MINTED':
        raise ProductError("Product NFTs are already minted", status=409)

    try:
        serials = get_hedera_client().mint_product_nfts(
            product.hedera_token_id,
            product.name,
            max(1, product.quantity),
            country=product.country_of_origin,
            price=product.price_per_unit,
            hs_code=product.hs_code,
        )
    except Exception as e:
        logger.error(f"NFT mint failed for product {product.id}: {e}")
        product.nft_status = 'FAILED'
        product.nft_error = str(e)[:1000]
        product.save(update_fields=['nft_status', 'nft_error', 'updated_at'])
        raise ProductError(f"NFT mint failed: {e}", status=502)

    product.hedera_serials = len(serials)
    product.nft_status = 'MINTED'
    product.nft_error = ''
    product.save(update_fields=['hedera_serials', 'nft_status', 'nft_error', 'updated_at'])
    return product


# Cart

def get_cart(user):
    return CartItem.objects.filter(user=user).select_related('product').order_by('created_at')


def cart_count(user):
    return CartItem.objects.filter(user=user).count()


def add_to_cart(user, product_id, quantity):
    product = Product.objects.filter(id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")

    quantity = int(quantity or 0)
    min_order = max(1, product.min_order_qty or 1)
    if quantity < min_order:
        raise CartError(f"Min order is {min_order}")

    with transaction.atomic():
        item = CartItem.objects.select_for_update().filter(user=user, product=product).first()
        combined = quantity + (item.quantity if item else 0)
        if combined > product.quantity:
            raise CartError("Not enough stock", status=409)

        if item is None:
            item = CartItem.objects.create(user=user, product=product, quantity=quantity)
        else:
            item.quantity = combined
            item.save(update_fields=['quantity', 'updated_at'])

    return item


def _get_own_item(user, item_id):
    item = CartItem.objects.select_related('product').filter(id=item_id, user=user).first()
    if item is None:
        raise NotFoundError("Item not in cart")
    return item


def increment_cart_item(user, item_id):
    item = _get_own_item(user, item_id)
    if item.quantity + 1 > item.product.quantity:
        raise CartError("Not enough stock", status=409)
    item.quantity += 1
    item.save(update_fields=['quantity', 'updated_at'])
    return item


def decrement_cart_item(user, item_id):
    """Returns the updated item, or None once the line reaches zero and is removed"""
    item = _get_own_item(user, item_id)
    if item.quantity - 1 <= 0:
        item.delete()
        return None
    item.quantity -= 1
    item.save(update_fields=['quantity', 'updated_at'])
    return item


def remove_cart_item(user, item_id):
    item = _get_own_item(user, item_id)
    item.delete()
    return True
