"""
Guards for resolvers and mutations reserved to bank officers.
"""
from functools import wraps
from graphql import GraphQLError


def get_bank_user(info):
    bank_user = getattr(info.context, 'bank_user', None)
    if not bank_user or getattr(bank_user, 'is_banned', False):
        return None
    return bank_user


def _find_info(args, kwargs):
    # resolvers: (root, info, ...); classmethod mutate: (cls, root, info, ...)
    for arg in args[:3]:
        if hasattr(arg, 'context'):
            return arg
    return kwargs.get('info')


def bank_user_required(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        info = _find_info(args, kwargs)
        if info is None or get_bank_user(info) is None:
            raise GraphQLError("Bank authentication required")
        return func(*args, **kwargs)
    return wrapper


def bank_admin_required(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        info = _find_info(args, kwargs)
        bank_user = get_bank_user(info) if info is not None else None
        if bank_user is None:
            raise GraphQLError("Bank authentication required")
        if not bank_user.is_admin:
            raise GraphQLError("Bank admin role required")
        return func(*args, **kwargs)
    return wrapper
