"""
Bank officer tokens.

Officers are not Django users, so their tokens are plain PyJWT HS256
tokens signed with BANK_JWT_SECRET rather than graphql_jwt tokens.
"""
from datetime import datetime, timedelta, timezone as dt_timezone
import logging

import jwt
from django.conf import settings

logger = logging.getLogger(__name__)

BANK_TOKEN_ALGORITHM = 'HS256'
BANK_TOKEN_TYPE = 'bank_access'


class BankTokenError(Exception):
    pass


def create_bank_token(bank_user):
    now = datetime.now(dt_timezone.utc)
    payload = {
        'sub': str(bank_user.id),
        'email': bank_user.email,
        'role': bank_user.role,
        'bank_id': bank_user.bank_id,
        'type': BANK_TOKEN_TYPE,
        'iat': int(now.timestamp()),
        'exp': int((now + timedelta(hours=settings.BANK_ACCESS_TOKEN_EXPIRY_HOURS)).timestamp()),
    }
    return jwt.encode(payload, settings.BANK_JWT_SECRET, algorithm=BANK_TOKEN_ALGORITHM)


def decode_bank_token(token):
    try:
        payload = jwt.decode(token, settings.BANK_JWT_SECRET, algorithms=[BANK_TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise BankTokenError('Bank token has expired')
    except jwt.InvalidTokenError:
        raise BankTokenError('Invalid bank token')

    if payload.get('type') != BANK_TOKEN_TYPE or not payload.get('sub'):
        raise BankTokenError('Invalid bank token')
    return payload


def get_bank_token_from_request(request):
    """`Authorization: Bank <token>` header, or the bank auth cookie"""
    header = request.META.get('HTTP_AUTHORIZATION', '')
    parts = header.split()
    if len(parts) == 2 and parts[0] == 'Bank':
        return parts[1]
    return request.COOKIES.get(settings.BANK_AUTH_COOKIE_NAME)


def get_bank_user_for_token(token):
    from .models import BankUser

    payload = decode_bank_token(token)
    try:
        bank_user = BankUser.objects.select_related('bank').get(id=payload['sub'])
    except (BankUser.DoesNotExist, ValueError):
        raise BankTokenError('Bank user not found')
    if bank_user.is_banned:
        raise BankTokenError('Bank user is banned')
    return bank_user
