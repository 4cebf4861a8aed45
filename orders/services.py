"""
Checkout and buyer-side order workflow.
"""
from decimal import Decimal
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from blockchain.tasks import record_audit_event
from config.errors import ServiceError, NotFoundError
from marketplace.models import CartItem, Product
from .models import (
    BUYER_DRIVEN_TARGETS,
    Dispute,
    Order,
    OrderItem,
    OrderStatus,
    can_transition,
)

logger = logging.getLogger(__name__)

DEFAULT_SHIPPING = Decimal('5.00')
ORDER_CODE_MAX_RETRIES = 2
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class CheckoutError(ServiceError):
    pass


class OrderError(ServiceError):
    pass


def _is_evm_address(address):
    from users.crypto import is_valid_ethereum_address
    return is_valid_ethereum_address(address)


def generate_order_code(now=None):
    """ORD-<year>-<000001>, numbered by orders created this year"""
    now = now or timezone.now()
    year = now.year
    yearly_count = Order.all_objects.filter(created_at__year=year).count()
    return f"ORD-{year}-{yearly_count + 1:06d}"


def _first_bank(user):
    account = user.bank_accounts.filter(bank__isnull=False).select_related('bank').order_by('created_at').first()
    return account.bank if account else None


def pass_order(user, shipping=DEFAULT_SHIPPING):
    """Turn the user's cart into an order in one transaction.

    Stock is decremented with a conditional update so a concurrent
    checkout cannot oversell; the cart is emptied on success.
    """
    shipping = Decimal(str(shipping if shipping is not None else 0)).quantize(Decimal('0.01'))
    if shipping < 0:
        raise CheckoutError("Shipping cannot be negative.", 400)

    with transaction.atomic():
        cart_items = list(
            CartItem.objects.select_related('product', 'product__producer').filter(user=user).order_by('id')
        )
        if not cart_items:
            raise CheckoutError("Your cart is empty.", 400)

        for item in cart_items:
            if item.quantity <= 0:
                raise CheckoutError(f"Invalid quantity for product {item.product_id}.", 400)
            if item.product.is_deleted:
                raise CheckoutError(f"Product {item.product_id} is no longer available.", 409)
            if item.product.quantity < item.quantity:
                raise CheckoutError(f'Insufficient stock for "{item.product.name}".', 409)

        subtotal = sum(
            (item.product.price_per_unit * item.quantity for item in cart_items),
            Decimal('0')
        )
        total = subtotal + shipping

        producers = {item.product.producer for item in cart_items}
        seller_bank = _first_bank(next(iter(producers))) if len(producers) == 1 else None

        order = None
        for attempt in range(ORDER_CODE_MAX_RETRIES + 1):
            code = generate_order_code()
            try:
                with transaction.atomic():
                    order = Order.objects.create(
                        code=code,
                        buyer=user,
                        status=OrderStatus.AWAITING_PAYMENT,
                        subtotal=subtotal,
                        shipping=shipping,
                        total=total,
                        buyer_bank=_first_bank(user),
                        seller_bank=seller_bank,
                    )
                break
            except IntegrityError:
                logger.warning(f"Order code collision on {code} (attempt {attempt + 1})")
                if attempt == ORDER_CODE_MAX_RETRIES:
                    raise CheckoutError("Could not generate unique order code.", 500)

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=item.product,
                quantity=item.quantity,
                unit_price=item.product.price_per_unit,
                line_total=item.product.price_per_unit * item.quantity,
            )
            for item in cart_items
        ])

        for item in cart_items:
            updated = Product.objects.filter(
                id=item.product_id,
                quantity__gte=item.quantity,
            ).update(quantity=F('quantity') - item.quantity)
            if updated != 1:
                raise CheckoutError(
                    f'Stock changed while checking out for "{item.product.name}". Please retry.',
                    409
                )

        CartItem.objects.filter(user=user).delete()

        record_audit_event('ORDER_CREATED', order.id, order.code, {
            'buyerId': user.id,
            'producerIds': sorted(p.id for p in producers),
            'totalAmount': str(total),
            'status': order.status,
        })
        order_id = order.id
        transaction.on_commit(lambda: auto_deploy_escrow(order_id))

    logger.info(f"Order {order.code} created for user {user.id} (total {total})")
    return order


def auto_deploy_escrow(order_id):
    """Post-commit escrow deployment; failures are logged and can be retried"""
    if not settings.ESCROW_AUTO_DEPLOY:
        return None
    try:
        order = Order.objects.get(id=order_id)
        return deploy_order_escrow(order)
    except Exception as e:
        logger.error(f"Escrow auto-deploy failed for order {order_id}: {e}")
        return None


def deploy_order_escrow(order):
    """Deploy the escrow contract for an order that has none yet.

    The order row stays locked until the contract address is stored, so a
    second caller waits and then sees the address.
    """
    from blockchain.escrow import get_escrow_client

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.escrow_address:
            raise OrderError("Order already has an escrow contract.", 409)
        if order.status in (OrderStatus.CANCELLED, OrderStatus.DELIVERED):
            raise OrderError(f"Cannot deploy escrow for a {order.status} order.", 409)

        producers = list(order.producers)
        if len(producers) != 1:
            raise OrderError("Escrow requires exactly one seller on the order.", 400)
        seller = producers[0]

        if not _is_evm_address(order.buyer.wallet_address) or not _is_evm_address(seller.wallet_address):
            raise OrderError("Escrow requires EVM wallet addresses for buyer and seller.", 400)

        result = get_escrow_client().deploy(order.buyer.wallet_address, seller.wallet_address)

        order.escrow_address = result['contract_address']
        order.escrow_deploy_tx = result['transaction_hash']
        order.arbiter_address = result['arbiter_address']
        order.save(update_fields=['escrow_address', 'escrow_deploy_tx', 'arbiter_address', 'updated_at'])

        record_audit_event('ESCROW_DEPLOYED', order.id, order.code, {
            'escrowAddress': order.escrow_address,
            'transactionHash': order.escrow_deploy_tx,
            'status': 'ESCROW_ACTIVE',
        })
    logger.info(f"Escrow {order.escrow_address} deployed for order {order.code}")
    return order


def _order_queryset():
    return Order.objects.select_related('buyer', 'buyer_bank', 'seller_bank').prefetch_related(
        'items__product', 'documents', 'payment_releases'
    )


def list_my_orders(user, page=1, page_size=DEFAULT_PAGE_SIZE, status=None):
    take = min(max(page_size or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
    page = max(page or 1, 1)
    skip = (page - 1) * take

    queryset = _order_queryset().filter(buyer=user)
    if status:
        queryset = queryset.filter(status=status)

    total = queryset.count()
    orders = list(queryset.order_by('-created_at')[skip:skip + take])
    return {
        'orders': orders,
        'page': page,
        'page_size': take,
        'total': total,
        'page_count': max(1, -(-total // take)),
    }


def get_my_order(user, order_id):
    order = _order_queryset().filter(id=order_id, buyer=user).first()
    if order is None:
        raise NotFoundError("Order not found.")
    return order


def get_accessible_order(user, order_id):
    """Orders the user bought, or that carry one of the user's products"""
    order = Order.objects.filter(
        Q(buyer=user) | Q(items__product__producer=user),
        id=order_id,
    ).distinct().first()
    if order is None:
        raise NotFoundError("Order not found.")
    return order


def list_order_documents(user, order_id):
    order = get_accessible_order(user, order_id)
    return order.documents.select_related('uploader').order_by('-created_at')


def _restock(order):
    for item in order.items.all():
        Product.all_objects.filter(id=item.product_id).update(quantity=F('quantity') + item.quantity)


def cancel_order(user, order_id):
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(id=order_id, buyer=user).first()
        if order is None:
            raise NotFoundError("Order not found.")
        if order.status != OrderStatus.AWAITING_PAYMENT:
            raise OrderError("Only orders awaiting payment can be cancelled.", 409)

        _restock(order)
        order.status = OrderStatus.CANCELLED
        order.save(update_fields=['status', 'updated_at'])
        record_audit_event('ORDER_CANCELLED', order.id, order.code, {'status': order.status})

    logger.info(f"Order {order.code} cancelled by buyer {user.id}")
    return order


def pay_order(user, order_id, transaction_id):
    if not transaction_id:
        raise OrderError("transactionId is required.", 400)

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(id=order_id, buyer=user).first()
        if order is None:
            raise NotFoundError("Order not found.")
        if order.status != OrderStatus.AWAITING_PAYMENT:
            raise OrderError("Order is not awaiting payment.", 409)

        order.payment_transaction_id = transaction_id
        order.status = OrderStatus.BANK_REVIEW
        order.save(update_fields=['payment_transaction_id', 'status', 'updated_at'])
        record_audit_event('PAYMENT_RECEIVED', order.id, order.code, {
            'amount': str(order.total),
            'transactionId': transaction_id,
            'status': order.status,
        })

    return order


def open_dispute(user, order_id, reason, priority='MEDIUM'):
    if not reason or not reason.strip():
        raise OrderError("A reason is required to open a dispute.", 400)
    if priority not in dict(Dispute.PRIORITY_CHOICES):
        raise OrderError("Invalid priority.", 400)

    with transaction.atomic():
        order = get_accessible_order(user, order_id)
        order = Order.objects.select_for_update().get(pk=order.pk)
        if not can_transition(order.status, OrderStatus.DISPUTED):
            raise OrderError(f"Cannot dispute an order that is {order.status}.", 409)

        dispute, created = Dispute.objects.get_or_create(
            order=order,
            defaults={'initiator': user, 'reason': reason.strip(), 'priority': priority},
        )
        if not created:
            # A resolved dispute is reopened rather than duplicated
            dispute.initiator = user
            dispute.reason = reason.strip()
            dispute.priority = priority
            dispute.status = 'OPEN'
            dispute.resolution_outcome = ''
            dispute.resolved_at = None
            dispute.save()

        order.status = OrderStatus.DISPUTED
        order.save(update_fields=['status', 'updated_at'])
        record_audit_event('DISPUTE_CREATED', order.id, order.code, {
            'disputeId': dispute.id,
            'reason': dispute.reason,
            'priority': dispute.priority,
            'initiatedBy': user.id,
            'status': order.status,
        })

    return dispute


def update_order_status(user, order_id, status):
    """Buyer-requested status change, limited to the buyer-driven targets"""
    if status not in dict(OrderStatus.CHOICES):
        raise OrderError("Invalid status.", 400)

    order = Order.objects.filter(id=order_id, buyer=user).first()
    if order is None:
        raise NotFoundError("Order not found.")

    if status not in BUYER_DRIVEN_TARGETS:
        raise OrderError(f"Status {status} is set by the banks, not the buyer.", 403)
    if not can_transition(order.status, status):
        raise OrderError(f"Cannot move order from {order.status} to {status}.", 409)

    if status == OrderStatus.CANCELLED:
        return cancel_order(user, order_id)

    open_dispute(user, order_id, reason="Opened by buyer")
    order.refresh_from_db()
    return order
