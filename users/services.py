"""
Wallet authentication, session and profile services.

GraphQL mutations call these and turn ServiceError into
``success=False`` payloads.
"""
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from graphql_jwt.exceptions import PermissionDenied
import logging

from config.errors import ServiceError, NotFoundError
from .crypto import (
    NONCE_EXPIRES_IN_SECONDS,
    build_sign_message,
    generate_nonce,
    validate_wallet_address,
    verify_wallet_signature,
)
from .jwt import decode_token, issue_token_pair
from .models import AuthSession, BankAccount, DID, User
from .validators import validate_bank_account_fields

logger = logging.getLogger(__name__)


class AuthError(ServiceError):
    status = 401


# Wallet login

def request_wallet_nonce(wallet_address, wallet_type='metamask'):
    """Upsert the wallet's user and store a fresh sign-in nonce"""
    wallet_type = (wallet_type or 'metamask').lower()
    if not validate_wallet_address(wallet_address, wallet_type):
        raise ServiceError(f"Invalid {wallet_type} wallet address")

    nonce = generate_nonce()
    issued_at = timezone.now()

    user = User.all_objects.filter(wallet_address=wallet_address).first()
    if user is None:
        user = User(
            wallet_address=wallet_address,
            username=wallet_address,
            wallet_type=wallet_type,
        )
        user.set_unusable_password()
        logger.info(f"Creating user for new wallet {wallet_address}")
    elif user.is_deleted:
        raise AuthError("This account has been deleted", status=403)

    user.nonce = nonce
    user.nonce_issued_at = issued_at
    user.wallet_type = wallet_type
    user.save()

    return {
        'nonce': nonce,
        'message': build_sign_message(wallet_address, nonce, issued_at),
        'expires_in': NONCE_EXPIRES_IN_SECONDS,
        'user_type': user.user_type,
    }


def _open_session(user, ip_address=None, user_agent=''):
    session = AuthSession(
        user=user,
        ip_address=ip_address,
        user_agent=(user_agent or '')[:500],
    )
    access_token, refresh_token = issue_token_pair(user, session.session_id)
    session.token = access_token
    session.refresh_token = refresh_token
    session.save()
    return session


def connect_wallet(wallet_address, signature, message, nonce, wallet_type='metamask',
                   public_key_hex=None, ip_address=None, user_agent=''):
    """Verify the signed challenge and open an authenticated session"""
    wallet_type = (wallet_type or 'metamask').lower()
    if not all([wallet_address, signature, message, nonce]):
        raise ServiceError("walletAddress, signature, message and nonce are required")

    user = User.objects.filter(wallet_address=wallet_address).first()
    if user is None:
        raise AuthError("Unknown wallet. Request a nonce first.")

    if user.nonce != nonce:
        raise AuthError("Invalid nonce")
    if not user.nonce_is_valid():
        raise AuthError("Nonce has expired. Request a new one.")
    if nonce not in message:
        raise AuthError("Signed message does not contain the nonce")

    if wallet_type == 'hashpack' and not (public_key_hex or user.public_key_hex):
        raise ServiceError("publicKeyHex is required for HashPack signatures")

    if settings.WALLET_SIGNATURE_VERIFICATION:
        verified = verify_wallet_signature(
            wallet_type,
            message,
            signature,
            wallet_address,
            public_key_hex or user.public_key_hex,
        )
        if not verified:
            logger.warning(f"Signature verification failed for {wallet_address}")
            raise AuthError("Invalid signature")
    else:
        logger.warning(f"Signature verification disabled; accepting login for {wallet_address}")

    with transaction.atomic():
        user.nonce = None
        user.nonce_issued_at = None
        user.wallet_type = wallet_type
        if public_key_hex:
            user.public_key_hex = public_key_hex
        user.last_login_at = timezone.now()
        user.save()
        session = _open_session(user, ip_address, user_agent)

    logger.info(f"Wallet {wallet_address} connected (session {session.session_id})")
    return user, session


def refresh_session(refresh_token):
    """Rotate both tokens of an active session"""
    if not refresh_token:
        raise ServiceError("refreshToken is required")

    try:
        payload = decode_token(refresh_token, expected_type='refresh')
    except PermissionDenied as e:
        raise AuthError(str(e))

    session = AuthSession.objects.select_related('user').filter(
        session_id=payload['session_id'],
        refresh_token=refresh_token,
    ).first()
    if session is None or not session.is_usable:
        raise AuthError("Session is no longer valid")

    access_token, new_refresh_token = issue_token_pair(session.user, session.session_id)
    session.token = access_token
    session.refresh_token = new_refresh_token
    session.last_used_at = timezone.now()
    session.save(update_fields=['token', 'refresh_token', 'last_used_at', 'updated_at'])
    return session


def logout(user, session=None, token=None):
    """Invalidate the session of the presented access token"""
    if session is None and token:
        try:
            payload = decode_token(token, expected_type='access')
        except PermissionDenied as e:
            raise AuthError(str(e))
        session = AuthSession.objects.filter(session_id=payload['session_id'], user=user).first()

    if session is None:
        raise AuthError("No active session")

    session.invalidate()
    logger.info(f"Session {session.session_id} closed for user {user.id}")
    return True


def logout_all(user):
    count = AuthSession.objects.filter(user=user, is_active=True).update(
        is_active=False,
        updated_at=timezone.now(),
    )
    logger.info(f"Closed {count} sessions for user {user.id}")
    return count


# Profile

def save_core_identity(user, full_name, email, phone_number, location, user_type=None):
    if not full_name or not email:
        raise ServiceError("fullName and email are required")

    if User.all_objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
        raise ServiceError("Email is already used by another account", status=409)

    user.full_name = full_name.strip()
    user.email = email.strip().lower()
    user.phone_number = phone_number or ''
    user.location = location or ''
    if user_type:
        if user_type not in dict(User.USER_TYPES) or user_type == 'ADMIN':
            raise ServiceError("Invalid user type")
        user.user_type = user_type
    user.is_verified = True
    user.save()

    if settings.AUTO_ISSUE_DID and not DID.objects.filter(user=user).exists():
        try:
            register_did_for_user(user)
        except Exception as e:
            logger.error(f"DID registration failed for user {user.id}: {e}")

    return user


def update_progressive_profile(user, profile_image=None, business_name=None, business_desc=None):
    if profile_image is not None:
        user.profile_image = profile_image
    if business_name is not None:
        user.business_name = business_name
    if business_desc is not None:
        user.business_desc = business_desc
    user.save()
    return user


PROFILE_FIELDS = (
    'full_name', 'email', 'phone_number', 'location',
    'profile_image', 'business_name', 'business_desc', 'hedera_account_id',
)


def update_profile(user, **fields):
    email = fields.get('email')
    if email and User.all_objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
        raise ServiceError("Email is already used by another account", status=409)

    for name in PROFILE_FIELDS:
        value = fields.get(name)
        if value is not None:
            setattr(user, name, value)
    user.save()
    return user


def get_identity_by_wallet(wallet_address):
    """Public identity lookup; never exposes contact details"""
    user = User.objects.filter(wallet_address=wallet_address).select_related('did').first()
    if user is None:
        return {'exists': False, 'identity': None}

    did = getattr(user, 'did', None)
    return {
        'exists': True,
        'identity': {
            'wallet_address': user.wallet_address,
            'user_type': user.user_type,
            'is_verified': user.is_verified,
            'did': did.did if did else None,
            'member_since': user.created_at,
        },
    }


# DID

def register_did_for_user(user, metadata=None):
    from blockchain.did import generate_did

    did, did_metadata = generate_did()
    merged = dict(metadata or {})
    merged.update(did_metadata)
    record, _ = DID.objects.update_or_create(
        user=user,
        defaults={'did': did, 'metadata': merged},
    )
    logger.info(f"Registered {did} for user {user.id}")
    return record


def get_user_did(user):
    try:
        return DID.objects.get(user=user)
    except DID.DoesNotExist:
        raise NotFoundError("DID not found")


def update_did_metadata(user, metadata):
    if not isinstance(metadata, dict):
        raise ServiceError("metadata must be an object")
    record = get_user_did(user)
    existing = record.metadata if isinstance(record.metadata, dict) else {}
    record.metadata = {**existing, **metadata}
    record.save(update_fields=['metadata', 'updated_at'])
    return record


# Bank accounts

def _resolve_bank(bank_code):
    from banks.models import Bank
    return Bank.objects.filter(code=bank_code).first()


def add_bank_account(user, bank_code, rib, holder_name, phone_number, email, tax_identification_number=None):
    data = {
        'bank_code': bank_code,
        'rib': rib,
        'holder_name': holder_name,
        'phone_number': phone_number,
        'email': email,
        'tax_identification_number': tax_identification_number,
    }
    try:
        validate_bank_account_fields(data)
    except ValidationError as e:
        raise ServiceError(e.messages[0])

    return BankAccount.objects.create(
        user=user,
        bank=_resolve_bank(bank_code),
        bank_code=bank_code,
        rib=rib,
        holder_name=holder_name,
        phone_number=phone_number,
        email=email,
        tax_identification_number=tax_identification_number or None,
    )


def _get_own_account(user, account_id):
    account = BankAccount.objects.filter(id=account_id, user=user).first()
    if account is None:
        raise NotFoundError("Not found")
    return account


def update_bank_account(user, account_id, **fields):
    account = _get_own_account(user, account_id)
    try:
        validate_bank_account_fields(fields, partial=True)
    except ValidationError as e:
        raise ServiceError(e.messages[0])

    bank_code = fields.get('bank_code')
    if bank_code:
        account.bank_code = bank_code
        account.bank = _resolve_bank(bank_code)
    for name in ('rib', 'holder_name', 'phone_number', 'email'):
        if fields.get(name):
            setattr(account, name, fields[name])
    if 'tax_identification_number' in fields and fields['tax_identification_number'] is not None:
        account.tax_identification_number = fields['tax_identification_number'] or None
    account.save()
    return account


def delete_bank_account(user, account_id):
    account = _get_own_account(user, account_id)
    account.soft_delete()
    return True
