"""
Bank officer services: authentication, client KYC, dispute arbitration,
document validation and the dual-bank order approval workflow.
"""
from decimal import Decimal
import logging

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import Count, DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from blockchain.tasks import record_audit_event
from config.errors import ServiceError, NotFoundError, ForbiddenError
from orders.models import Dispute, DisputeRuling, Order, OrderStatus, PaymentRelease, can_transition
from .auth import create_bank_token
from .models import Bank, BankReview, BankUser, KycReview, PaymentApproval

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
BANK_SIDES = ('buyer', 'seller')


class BankWorkflowError(ServiceError):
    pass


# Officer accounts

def register_bank_user(email, password, name='', phone='', bank_id=None):
    email = (email or '').strip().lower()
    try:
        validate_email(email)
    except ValidationError:
        raise ServiceError("Invalid email address")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ServiceError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if BankUser.objects.filter(email__iexact=email).exists():
        raise ServiceError("A bank user with this email already exists", status=409)

    bank = None
    if bank_id:
        bank = Bank.objects.filter(id=bank_id).first()
        if bank is None:
            raise NotFoundError("Bank not found")

    bank_user = BankUser(email=email, name=name or '', phone=phone or '', bank=bank)
    bank_user.set_password(password)
    bank_user.save()
    logger.info(f"Registered bank user {bank_user.id} for bank {bank_id}")
    return bank_user, create_bank_token(bank_user)


def login_bank_user(email, password):
    email = (email or '').strip().lower()
    if not email or not password:
        raise ServiceError("Email and password are required")

    bank_user = BankUser.objects.select_related('bank').filter(email__iexact=email).first()
    if bank_user is None or not bank_user.check_password(password):
        raise ServiceError("Invalid credentials")
    if bank_user.is_banned:
        raise ForbiddenError("This bank account has been banned")

    bank_user.last_login_at = timezone.now()
    bank_user.save(update_fields=['last_login_at', 'updated_at'])
    return bank_user, create_bank_token(bank_user)


def set_bank_user_ban(admin, bank_user_id, banned=True):
    if str(admin.id) == str(bank_user_id):
        raise ServiceError("You cannot ban your own account")
    bank_user = BankUser.objects.filter(id=bank_user_id).first()
    if bank_user is None:
        raise NotFoundError("Bank user not found")
    bank_user.is_banned = banned
    bank_user.save(update_fields=['is_banned', 'updated_at'])
    logger.info(f"Bank admin {admin.id} set banned={banned} on bank user {bank_user.id}")
    return bank_user


# Clients

def list_clients():
    from users.models import User

    return User.objects.filter(user_type__in=['PRODUCER', 'BUYER']).annotate(
        order_count=Count('orders', distinct=True),
        total_volume=Coalesce(
            Sum('orders__total'),
            Value(Decimal('0')),
            output_field=DecimalField(max_digits=18, decimal_places=2),
        ),
    ).order_by('-updated_at')


def update_client_kyc(bank_user, client_id, action, reason=''):
    from users.models import User

    client = User.objects.filter(id=client_id).first()
    if client is None:
        raise NotFoundError("Client not found")

    if action == 'approve':
        kyc_status = 'VERIFIED'
    elif action == 'reject':
        kyc_status = 'REJECTED'
    else:
        kyc_status = 'PENDING'

    with transaction.atomic():
        client.kyc_status = kyc_status
        client.save(update_fields=['kyc_status', 'updated_at'])
        KycReview.objects.create(client=client, action=action, reason=reason or '', reviewer=bank_user)
        if kyc_status == 'VERIFIED':
            record_audit_event('KYC_VERIFIED', client.id, client.wallet_address, {
                'reviewerId': bank_user.id,
            })

    return client


# Disputes

def list_disputes():
    return Dispute.objects.exclude(status='RESOLVED').select_related('order', 'order__buyer', 'initiator').prefetch_related(
        'order__documents__uploader', 'order__items__product__producer', 'rulings'
    )


def update_dispute(bank_user, dispute_id, action, ruling=None, outcome=None):
    outcome = outcome or 'release_to_seller'
    if outcome not in dict(Dispute.OUTCOME_CHOICES):
        raise ServiceError("Invalid outcome")

    with transaction.atomic():
        dispute = Dispute.objects.select_for_update().select_related('order').filter(id=dispute_id).first()
        if dispute is None:
            raise NotFoundError("Dispute not found")
        if dispute.status == 'RESOLVED':
            raise BankWorkflowError("Dispute is already resolved", status=409)

        if action == 'review':
            dispute.status = 'UNDER_REVIEW'
            dispute.save(update_fields=['status', 'updated_at'])
        elif action == 'rule':
            if not ruling:
                raise ServiceError("A ruling is required")
            DisputeRuling.objects.create(dispute=dispute, officer=bank_user, ruling=ruling)
        elif action == 'resolve':
            order = Order.objects.select_for_update().get(pk=dispute.order_id)
            if order.status != OrderStatus.DISPUTED:
                raise BankWorkflowError(f"Cannot resolve a dispute while the order is {order.status}", status=409)
            target = OrderStatus.DELIVERED if outcome == 'release_to_seller' else OrderStatus.CANCELLED
            if not can_transition(order.status, target):
                raise BankWorkflowError(f"Cannot move order from {order.status} to {target}", status=409)

            if ruling:
                DisputeRuling.objects.create(dispute=dispute, officer=bank_user, ruling=ruling)
            order.status = target
            order.save(update_fields=['status', 'updated_at'])

            dispute.status = 'RESOLVED'
            dispute.resolution_outcome = outcome
            dispute.resolved_at = timezone.now()
            dispute.save(update_fields=['status', 'resolution_outcome', 'resolved_at', 'updated_at'])
            record_audit_event('DISPUTE_RESOLVED', order.id, order.code, {
                'disputeId': dispute.id,
                'outcome': outcome,
                'officerId': bank_user.id,
                'status': order.status,
            })
        else:
            raise ServiceError("Unknown dispute action")

    return dispute


# Documents

def list_documents():
    from documents.models import Document
    return Document.objects.select_related('uploader', 'order', 'validated_by').order_by('-created_at')


DOCUMENT_STATUS_MAP = {
    'approve': 'VALIDATED',
    'reject': 'REJECTED',
}


def update_document(bank_user, document_id, status, rejection_reason=''):
    from documents.models import Document

    if status not in DOCUMENT_STATUS_MAP:
        raise ServiceError("Status must be approve or reject")

    document = Document.objects.select_related('order').filter(id=document_id).first()
    if document is None:
        raise NotFoundError("Document not found")

    document.status = DOCUMENT_STATUS_MAP[status]
    document.validated_by = bank_user
    document.validated_at = timezone.now()
    document.rejection_reason = (rejection_reason or '') if status == 'reject' else ''
    document.save(update_fields=['status', 'validated_by', 'validated_at', 'rejection_reason', 'updated_at'])

    if document.status == 'VALIDATED':
        record_audit_event(
            'DOCUMENT_VALIDATED',
            document.order_id or document.id,
            document.order.code if document.order else document.cid,
            {'documentId': document.id, 'cid': document.cid, 'validatorId': bank_user.id},
        )
    return document


# Orders

def _order_queryset():
    return Order.objects.select_related('buyer', 'buyer_bank', 'seller_bank').prefetch_related(
        'items__product', 'documents', 'payment_releases'
    )


def list_orders(status=None):
    queryset = _order_queryset()
    if status:
        queryset = queryset.filter(status=status)
    return queryset.order_by('-created_at')


def list_escrows():
    return _order_queryset().filter(payment_releases__isnull=False).distinct().order_by('-created_at')


def _locked_order(order_id):
    order = Order.objects.select_for_update().filter(id=order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def approve_order_by_bank(bank_user, order_id, bank_type, comments=''):
    """Record one side's bank approval and release the first tranche once both sides agree.

    Runs in one transaction with the order row locked; an escrow call that
    fails rolls the whole approval back.
    """
    from blockchain.escrow import get_escrow_client

    if bank_type not in BANK_SIDES:
        raise ServiceError("bankType must be buyer or seller")
    if not bank_user.bank_id:
        raise ForbiddenError("Your account is not attached to a bank")

    with transaction.atomic():
        order = _locked_order(order_id)

        if order.status != OrderStatus.BANK_REVIEW:
            raise BankWorkflowError(f"Cannot approve an order that is {order.status}", status=409)

        approved_field = f"{bank_type}_bank_approved"
        bank_field = f"{bank_type}_bank"
        if getattr(order, approved_field):
            raise BankWorkflowError(f"{bank_type} bank has already approved this order", status=409)

        other_side = 'seller' if bank_type == 'buyer' else 'buyer'
        if order.bank_reviews.filter(reviewer=bank_user, action='approve', side=other_side).exists():
            raise ForbiddenError("The same officer cannot approve both sides of an order")

        order_bank_id = getattr(order, f"{bank_field}_id")
        if order_bank_id and order_bank_id != bank_user.bank_id:
            raise ForbiddenError(f"You are not an officer of this order's {bank_type} bank")
        if not order_bank_id:
            if getattr(order, f"{other_side}_bank_id") == bank_user.bank_id:
                raise ForbiddenError(f"Your bank already holds the {other_side} side of this order")
            setattr(order, bank_field, bank_user.bank)

        BankReview.objects.create(
            order=order,
            bank_id=bank_user.bank_id,
            reviewer=bank_user,
            action='approve',
            side=bank_type,
            comments=comments or '',
        )
        setattr(order, approved_field, True)

        escrow = get_escrow_client() if order.escrow_address else None
        if escrow is not None:
            logger.info(f"Approving {bank_type} bank on escrow {order.escrow_address}")
            if bank_type == 'buyer':
                escrow.approve_buyer(order.escrow_address)
            else:
                escrow.approve_seller(order.escrow_address)
        else:
            logger.warning(f"Order {order.code} has no escrow; approval recorded off-chain only")

        both_approved = order.buyer_bank_approved and order.seller_bank_approved
        if both_approved and can_transition(order.status, OrderStatus.IN_TRANSIT):
            tx_hash = escrow.release_first_payment(order.escrow_address) if escrow is not None else None
            order.status = OrderStatus.IN_TRANSIT
            release = PaymentRelease.objects.create(
                order=order,
                type='PARTIAL50',
                amount=order.half_total,
                released=True,
                released_at=timezone.now(),
                transaction_id=tx_hash,
            )
            record_audit_event('PAYMENT_RELEASED', order.id, order.code, {
                'releaseType': release.type,
                'amount': str(release.amount),
                'transactionId': tx_hash,
                'status': order.status,
            })

        order.save()
        record_audit_event('BANK_APPROVED', order.id, order.code, {
            'bankType': bank_type,
            'bankId': bank_user.bank_id,
            'officerId': bank_user.id,
            'status': order.status,
        })

    return order


def request_documents(bank_user, order_id, request_to, comments=''):
    if request_to not in BANK_SIDES:
        raise ServiceError("requestTo must be buyer or seller")
    order = Order.objects.filter(id=order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    return BankReview.objects.create(
        order=order,
        bank_id=bank_user.bank_id,
        reviewer=bank_user,
        action='request_docs',
        side=request_to,
        comments=comments or '',
    )


def update_order_approval(bank_user, order_id, action, notes=''):
    if action == 'approve_buyer':
        return approve_order_by_bank(bank_user, order_id, 'buyer', notes)
    if action == 'approve_seller':
        return approve_order_by_bank(bank_user, order_id, 'seller', notes)
    if action != 'reject':
        raise ServiceError("Unknown approval action")

    with transaction.atomic():
        order = _locked_order(order_id)
        if not can_transition(order.status, OrderStatus.CANCELLED):
            raise BankWorkflowError(f"Cannot reject an order that is {order.status}", status=409)
        order.status = OrderStatus.CANCELLED
        order.save(update_fields=['status', 'updated_at'])
        record_audit_event('ORDER_CANCELLED', order.id, order.code, {
            'officerId': bank_user.id,
            'notes': notes or '',
            'status': order.status,
        })
    return order


def confirm_shipment(bank_user, order_id, tracking_id, notes=''):
    if not tracking_id:
        raise ServiceError("trackingId is required")

    with transaction.atomic():
        order = _locked_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            raise BankWorkflowError("Cannot ship a cancelled order", status=409)
        order.shipment_tracking_id = tracking_id
        order.save(update_fields=['shipment_tracking_id', 'updated_at'])
        record_audit_event('ORDER_SHIPPED', order.id, order.code, {
            'trackingId': tracking_id,
            'notes': notes or '',
            'officerId': bank_user.id,
        })
    return order


def confirm_delivery(bank_user, order_id):
    from blockchain.escrow import get_escrow_client

    with transaction.atomic():
        order = _locked_order(order_id)
        if order.status != OrderStatus.IN_TRANSIT:
            raise BankWorkflowError("Only orders in transit can be marked delivered", status=409)
        if order.payment_releases.filter(type='FULL100').exists():
            raise BankWorkflowError("Final payment has already been released", status=409)

        # final tranche settles whatever the first one left
        released = order.payment_releases.filter(type='PARTIAL50').aggregate(
            total=Coalesce(
                Sum('amount'),
                Value(Decimal('0')),
                output_field=DecimalField(max_digits=18, decimal_places=2),
            ),
        )['total']
        remainder = order.total - released

        tx_hash = None
        if order.escrow_address:
            tx_hash = get_escrow_client().confirm_delivery(order.escrow_address)

        PaymentRelease.objects.create(
            order=order,
            type='FULL100',
            amount=remainder,
            released=True,
            released_at=timezone.now(),
            transaction_id=tx_hash,
        )
        order.status = OrderStatus.DELIVERED
        order.save(update_fields=['status', 'updated_at'])
        record_audit_event('ORDER_DELIVERED', order.id, order.code, {
            'officerId': bank_user.id,
            'transactionId': tx_hash,
            'status': order.status,
        })
        record_audit_event('PAYMENT_RELEASED', order.id, order.code, {
            'releaseType': 'FULL100',
            'amount': str(remainder),
            'transactionId': tx_hash,
        })
    return order


# Payment releases

def _decide_payment(bank_user, payment_release_id, action, comments=''):
    with transaction.atomic():
        release = PaymentRelease.objects.select_for_update().filter(id=payment_release_id).first()
        if release is None:
            raise NotFoundError("Payment release not found")

        approval = PaymentApproval.objects.create(
            payment_release=release,
            actor=bank_user,
            action=action,
            comments=comments or '',
        )
        if action == 'APPROVE' and not release.released:
            release.released = True
            release.released_at = timezone.now()
            release.save(update_fields=['released', 'released_at'])

    logger.info(f"Bank user {bank_user.id} recorded {action} on payment release {release.id}")
    return approval


def approve_payment(bank_user, payment_release_id, comments=''):
    return _decide_payment(bank_user, payment_release_id, 'APPROVE', comments)


def reject_payment(bank_user, payment_release_id, comments=''):
    return _decide_payment(bank_user, payment_release_id, 'REJECT', comments)
