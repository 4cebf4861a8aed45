"""
Decorators for rate limiting GraphQL mutations
"""
from functools import wraps
from graphql import GraphQLError
from .abuse_prevention import AbusePreventionService, get_client_ip
import logging

logger = logging.getLogger(__name__)


def rate_limit(action: str):
    """
    Decorator to apply rate limiting to GraphQL mutations.

    Authenticated callers are keyed by user id, anonymous ones by client IP.

    Usage:
        @classmethod
        @rate_limit('wallet_connect')
        def mutate(cls, root, info, ...):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            # Extract info object (3rd argument of a classmethod mutate)
            info = args[2] if len(args) > 2 else kwargs.get('info')
            if not info:
                raise GraphQLError("Missing context information")

            user = getattr(info.context, 'user', None)
            if user is not None and getattr(user, 'is_authenticated', False):
                identifier = f"user:{user.id}"
            else:
                identifier = f"ip:{get_client_ip(info.context)}"

            is_allowed, seconds_until_reset = AbusePreventionService.check_rate_limit(identifier, action)
            if not is_allowed:
                raise GraphQLError(
                    f"Too many requests. Please try again in {seconds_until_reset} seconds."
                )

            return func(*args, **kwargs)

        return wrapper
    return decorator


def jwt_view_required(view_func):
    """
    Authenticate a plain Django view with the wallet-user access token.

    Sets ``request.user`` on success and answers 401 otherwise.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        from django.http import JsonResponse
        from graphql_jwt.exceptions import JSONWebTokenError
        from .backends import SessionJSONWebTokenBackend

        try:
            user = SessionJSONWebTokenBackend().authenticate(request=request)
        except JSONWebTokenError as e:
            logger.info(f"Rejected token on {request.path}: {e}")
            user = None

        if user is None:
            return JsonResponse({'success': False, 'message': 'Unauthorized'}, status=401)

        request.user = user
        return view_func(request, *args, **kwargs)

    return wrapper
