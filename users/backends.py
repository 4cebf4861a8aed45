from django.contrib.auth import get_user_model
from django.utils import timezone
from graphql_jwt.backends import JSONWebTokenBackend
from graphql_jwt.exceptions import PermissionDenied
from graphql_jwt.utils import get_credentials
import logging

from .jwt import decode_token
from .models import AuthSession

logger = logging.getLogger(__name__)


class SessionJSONWebTokenBackend(JSONWebTokenBackend):
    """JWT backend that also requires the token's AuthSession to be usable.

    A valid signature is not enough: logging out (or logging out of all
    devices) revokes the session row, which must reject the token too.
    """

    def authenticate(self, request=None, **kwargs):
        if request is None or getattr(request, '_jwt_token_auth', False):
            return None

        token = get_credentials(request, **kwargs)
        if token is None:
            return None

        payload = decode_token(token, expected_type='access')

        try:
            session = AuthSession.objects.select_related('user').get(
                session_id=payload['session_id'],
                user_id=payload['user_id'],
            )
        except (AuthSession.DoesNotExist, ValueError):
            logger.warning(f"Token for user {payload.get('user_id')} references an unknown session")
            raise PermissionDenied('Session not found')

        if not session.is_usable:
            logger.info(f"Rejected token for revoked/expired session {session.session_id}")
            raise PermissionDenied('Session has been revoked or has expired')

        user = session.user
        if not user.is_active or user.is_deleted:
            raise PermissionDenied('User is inactive')

        AuthSession.objects.filter(pk=session.pk).update(last_used_at=timezone.now())

        request.auth_session = session
        return user

    def get_user(self, user_id):
        User = get_user_model()
        return User.objects.filter(pk=user_id).first()
