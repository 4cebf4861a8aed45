"""
Hedera DID generation (HIP-27 style identifiers).

A fresh ED25519 key pair is generated per user; the identifier is the
base58btc encoding of the SHA-256 multihash of the raw public key.
"""
import hashlib

import base58
from django.conf import settings
from django.utils import timezone
from nacl.encoding import HexEncoder
from nacl.signing import SigningKey

# multihash header: 0x12 = sha2-256, 0x20 = 32-byte digest
MULTIHASH_SHA256_PREFIX = bytes([0x12, 0x20])


def generate_did_from_public_key(public_key_hex, network=None):
    network = network or settings.HEDERA_NETWORK
    digest = hashlib.sha256(bytes.fromhex(public_key_hex)).digest()
    encoded = base58.b58encode(MULTIHASH_SHA256_PREFIX + digest).decode('ascii')
    return f"did:hedera:{network}:{encoded}"


def build_did_document(did, public_key_hex):
    key_id = f"{did}#key-1"
    return {
        'id': did,
        'controller': did,
        'verificationMethod': [
            {
                'id': key_id,
                'type': 'Ed25519VerificationKey2018',
                'controller': did,
                'publicKeyHex': public_key_hex,
            }
        ],
        'authentication': [key_id],
        'assertionMethod': [key_id],
    }


def generate_did(network=None):
    """Return (did, metadata) for a newly generated key pair.

    Only the public half is kept; the private key never leaves this function.
    """
    signing_key = SigningKey.generate()
    public_key_hex = signing_key.verify_key.encode(encoder=HexEncoder).decode('ascii')
    did = generate_did_from_public_key(public_key_hex, network=network)
    metadata = {
        'document': build_did_document(did, public_key_hex),
        'publicKeyHex': public_key_hex,
        'createdAt': timezone.now().isoformat(),
    }
    return did, metadata
