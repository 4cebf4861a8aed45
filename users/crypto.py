"""
Wallet authentication helpers.

Covers the sign-in challenge (nonce and message), wallet address
formats and signature verification for both supported wallets:

- MetaMask signs with EIP-191 ``personal_sign``; the signer address is
  recovered with eth-account and compared to the claimed address.
- HashPack signs the raw message with the account's ED25519 key; the
  signature is checked against the public key the client supplies.
"""
import base64
import binascii
import hashlib
import re
import secrets
import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

logger = logging.getLogger(__name__)

HEDERA_ADDRESS_RE = re.compile(r'^0\.0\.\d+$')
ETHEREUM_ADDRESS_RE = re.compile(r'^0x[a-fA-F0-9]{40}$')

NONCE_EXPIRES_IN_SECONDS = 600


def generate_nonce(length=32):
    """Secure random nonce, hex encoded (32 bytes -> 64 chars)"""
    return secrets.token_hex(length)


def build_sign_message(wallet_address, nonce, issued_at):
    """Human readable challenge the wallet is asked to sign"""
    issued = issued_at.strftime('%Y-%m-%dT%H:%M:%S.') + f"{issued_at.microsecond // 1000:03d}Z"
    return (
        "Hex-Port Authentication\n\n"
        f"Wallet: {wallet_address}\n"
        f"Nonce: {nonce}\n"
        f"Issued: {issued}\n\n"
        "This message will not trigger a blockchain transaction."
    )


def is_valid_hedera_address(address):
    return bool(address) and bool(HEDERA_ADDRESS_RE.match(address))


def is_valid_ethereum_address(address):
    return bool(address) and bool(ETHEREUM_ADDRESS_RE.match(address))


def validate_wallet_address(address, wallet_type):
    if wallet_type == 'hashpack':
        return is_valid_hedera_address(address)
    if wallet_type == 'metamask':
        return is_valid_ethereum_address(address)
    return False


def sha256_hex(data):
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def _decode_signature_bytes(signature):
    """HashPack clients send either hex (optionally 0x-prefixed) or base64"""
    value = signature.strip()
    if value.startswith('0x'):
        value = value[2:]
    try:
        return bytes.fromhex(value)
    except ValueError:
        pass
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Signature is neither hex nor base64 encoded")


def verify_metamask_signature(message, signature, wallet_address):
    """Recover the personal_sign signer and compare with the wallet address"""
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as e:
        logger.warning(f"MetaMask signature recovery failed for {wallet_address}: {e}")
        return False
    return recovered.lower() == wallet_address.lower()


def verify_hashpack_signature(message, signature, public_key_hex):
    """Verify an ED25519 signature over the UTF-8 message"""
    if not public_key_hex:
        return False
    try:
        key_hex = public_key_hex[2:] if public_key_hex.startswith('0x') else public_key_hex
        key_bytes = bytes.fromhex(key_hex)
        # DER-encoded ED25519 public keys carry a 12-byte prefix
        if len(key_bytes) == 44:
            key_bytes = key_bytes[12:]
        verify_key = VerifyKey(key_bytes)
        verify_key.verify(message.encode('utf-8'), _decode_signature_bytes(signature))
        return True
    except BadSignatureError:
        logger.warning("HashPack signature does not match the supplied public key")
        return False
    except (ValueError, TypeError) as e:
        logger.warning(f"HashPack signature could not be verified: {e}")
        return False


def verify_wallet_signature(wallet_type, message, signature, wallet_address, public_key_hex=None):
    if wallet_type == 'metamask':
        return verify_metamask_signature(message, signature, wallet_address)
    if wallet_type == 'hashpack':
        return verify_hashpack_signature(message, signature, public_key_hex)
    return False
