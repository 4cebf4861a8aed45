from graphql_jwt.utils import jwt_encode, jwt_decode
from graphql_jwt.exceptions import PermissionDenied
from django.conf import settings
from datetime import datetime, timedelta, timezone as dt_timezone
import jwt as pyjwt
import logging
import uuid

logger = logging.getLogger(__name__)


def _base_payload(user, session_id, token_type, lifetime):
    now = datetime.now(dt_timezone.utc)
    return {
        'user_id': user.id,
        'username': user.get_username(),
        'wallet_address': user.wallet_address,
        'user_type': user.user_type,
        'session_id': str(session_id) if session_id else None,
        'type': token_type,
        'jti': uuid.uuid4().hex,
        'origIat': int(now.timestamp()),
        'exp': int((now + lifetime).timestamp()),
        'iss': settings.JWT_ISSUER,
        'aud': settings.JWT_AUDIENCE,
    }


def jwt_payload_handler(user, context=None):
    """Access-token payload for graphql_jwt.

    The session id is read from the request when a login mutation has
    already opened an AuthSession for it.
    """
    session_id = getattr(context, 'auth_session_id', None) if context is not None else None
    return _base_payload(
        user,
        session_id,
        'access',
        timedelta(hours=settings.JWT_ACCESS_EXPIRES_HOURS)
    )


def refresh_token_payload_handler(user, session_id):
    """Refresh-token payload with the longer lifetime"""
    return _base_payload(
        user,
        session_id,
        'refresh',
        timedelta(days=settings.JWT_REFRESH_EXPIRES_DAYS)
    )


def issue_token_pair(user, session_id):
    """Return (access_token, refresh_token) bound to a session"""
    access_payload = _base_payload(
        user,
        session_id,
        'access',
        timedelta(hours=settings.JWT_ACCESS_EXPIRES_HOURS)
    )
    access_token = jwt_encode(access_payload)
    refresh_token = jwt_encode(refresh_token_payload_handler(user, session_id))
    logger.info(f"Issued token pair for user {user.id} (session {session_id})")
    return access_token, refresh_token


def decode_token(token, expected_type=None):
    """Decode and validate a wallet-user token.

    Raises PermissionDenied when the token is malformed, expired, signed
    with another key or of the wrong type.
    """
    try:
        payload = jwt_decode(token)
    except pyjwt.ExpiredSignatureError:
        raise PermissionDenied('Token has expired')
    except pyjwt.InvalidTokenError as e:
        logger.warning(f"Rejected token: {e}")
        raise PermissionDenied('Invalid token')

    if not payload.get('user_id') or not payload.get('session_id'):
        raise PermissionDenied('Invalid token payload')

    if expected_type and payload.get('type') != expected_type:
        raise PermissionDenied(f"Expected a {expected_type} token")

    return payload
