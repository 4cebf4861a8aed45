import logging

from .auth import BankTokenError, get_bank_token_from_request, get_bank_user_for_token

logger = logging.getLogger(__name__)


def _resolve_bank_user(request):
    token = get_bank_token_from_request(request)
    if not token:
        return None
    try:
        return get_bank_user_for_token(token)
    except BankTokenError as e:
        logger.info(f"Ignoring bank credentials: {e}")
        return None


class BankUserMiddleware:
    """Attach ``request.bank_user`` (or None) from the bank officer token"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.bank_user = _resolve_bank_user(request)
        return self.get_response(request)
