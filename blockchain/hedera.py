"""
Hedera network client: HCS audit messages and HTS product NFTs.

The SDK (``hedera-sdk-py``) is an optional extra, imported when a client
is first built. Audit submission never raises: a node that is not
configured, or a network failure, yields an empty transaction id.
"""
import json
import logging

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

MAX_NFT_METADATA_BYTES = 100
MINT_BATCH_SIZE = 10
DEFAULT_MAX_TX_FEE_HBAR = 20


class HederaConfigurationError(Exception):
    pass


def fit_utf8(text, max_bytes=MAX_NFT_METADATA_BYTES):
    """Trim text to a UTF-8 byte budget without splitting a character"""
    encoded = text.encode('utf-8')
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode('utf-8', errors='ignore')


def token_symbol_from_name(name, fallback='PROD'):
    symbol = ''.join(ch for ch in (name or '') if ch.isascii() and ch.isalnum())[:5].upper()
    return symbol or fallback


def build_nft_metadata(name, serial, total, country='', price=None, hs_code=''):
    """Compact per-serial metadata: n=<name>; c=<country>; p=<price>; hs=<hs>; u=<i>/<total>"""
    clean_name = ' '.join((name or '').split())
    price_text = f"{float(price):.2f}" if price is not None else '0.00'
    text = f"n={clean_name}; c={(country or '').strip()}; p={price_text};"
    if hs_code:
        text += f" hs={str(hs_code).strip()};"
    text += f" u={serial}/{total}"
    return fit_utf8(text).encode('utf-8')


class HederaClient:
    """Thin wrapper over the Hedera SDK operator client"""

    def __init__(self, network=None, account_id=None, private_key=None, topic_id=None):
        self.network = network or settings.HEDERA_NETWORK
        self.account_id = account_id if account_id is not None else settings.HEDERA_ACCOUNT_ID
        self.private_key = private_key if private_key is not None else settings.HEDERA_PRIVATE_KEY
        self.topic_id = topic_id if topic_id is not None else settings.HEDERA_HCS_TOPIC_ID
        self._client = None
        self._sdk = None

    def is_configured(self):
        return bool(self.account_id and self.private_key)

    @property
    def sdk(self):
        if self._sdk is None:
            import hedera
            self._sdk = hedera
        return self._sdk

    def get_client(self):
        if not self.is_configured():
            raise HederaConfigurationError("HEDERA_ACCOUNT_ID and HEDERA_PRIVATE_KEY must be set")
        if self._client is None:
            sdk = self.sdk
            if self.network == 'mainnet':
                client = sdk.Client.forMainnet()
            elif self.network == 'previewnet':
                client = sdk.Client.forPreviewnet()
            else:
                client = sdk.Client.forTestnet()
            client.setOperator(
                sdk.AccountId.fromString(self.account_id),
                self.operator_key,
            )
            self._client = client
        return self._client

    @property
    def operator_key(self):
        return self.sdk.PrivateKey.fromString(self.private_key)

    # Consensus service

    def submit_order_event(self, event_type, reference_id, reference_code, details=None):
        """Publish an order event to the audit topic; returns the transaction id or ''"""
        if not self.topic_id:
            logger.info(f"[HCS] No topic configured, skipping {event_type} for {reference_code}")
            return ''

        message = json.dumps({
            'version': '1.0',
            'network': self.network,
            'eventType': event_type,
            'orderId': str(reference_id),
            'orderCode': reference_code,
            'timestamp': timezone.now().isoformat(),
            'details': details or {},
        }, default=str)

        try:
            client = self.get_client()
            sdk = self.sdk
            transaction = sdk.TopicMessageSubmitTransaction()
            transaction.setTopicId(sdk.TopicId.fromString(self.topic_id))
            transaction.setMessage(message)
            response = transaction.execute(client)
            receipt = response.getReceipt(client)
            logger.info(f"[HCS] {event_type} for {reference_code} submitted, status {receipt.status}")
            return str(response.transactionId)
        except Exception as e:
            logger.warning(f"[HCS] Event {event_type} for {reference_code} not submitted: {e}")
            return ''

    # Token service

    def create_product_token(self, name, max_supply, memo=None):
        """Create a finite-supply NFT collection for a product; returns the token id"""
        if max_supply <= 0:
            raise ValueError("quantity must be > 0")

        client = self.get_client()
        sdk = self.sdk
        operator_key = self.operator_key

        transaction = sdk.TokenCreateTransaction()
        transaction.setTokenName(f"{name} Collection")
        transaction.setTokenSymbol(token_symbol_from_name(name))
        transaction.setTokenType(sdk.TokenType.NON_FUNGIBLE_UNIQUE)
        transaction.setDecimals(0)
        transaction.setInitialSupply(0)
        transaction.setTreasuryAccountId(sdk.AccountId.fromString(self.account_id))
        transaction.setSupplyType(sdk.TokenSupplyType.FINITE)
        transaction.setMaxSupply(int(max_supply))
        transaction.setSupplyKey(operator_key.getPublicKey())
        transaction.setMaxTransactionFee(sdk.Hbar(DEFAULT_MAX_TX_FEE_HBAR))
        if memo:
            transaction.setTokenMemo(memo)

        response = transaction.execute(client)
        receipt = response.getReceipt(client)
        if receipt.tokenId is None:
            raise RuntimeError("Token creation returned no token id")
        token_id = str(receipt.tokenId)
        logger.info(f"[HTS] Created token {token_id} for {name} (max supply {max_supply})")
        return token_id

    def mint_product_nfts(self, token_id, name, quantity, country='', price=None, hs_code=''):
        """Mint ``quantity`` serials in batches; returns the list of serial numbers"""
        if not token_id:
            raise ValueError("token_id is required")
        if quantity <= 0:
            raise ValueError("quantity must be > 0")

        client = self.get_client()
        sdk = self.sdk
        serials = []

        for start in range(0, quantity, MINT_BATCH_SIZE):
            transaction = sdk.TokenMintTransaction()
            transaction.setTokenId(sdk.TokenId.fromString(token_id))
            for index in range(start, min(start + MINT_BATCH_SIZE, quantity)):
                transaction.addMetadata(
                    build_nft_metadata(name, index + 1, quantity, country, price, hs_code)
                )
            transaction.setMaxTransactionFee(sdk.Hbar(DEFAULT_MAX_TX_FEE_HBAR))
            response = transaction.execute(client)
            receipt = response.getReceipt(client)
            serials.extend(int(serial) for serial in receipt.serials)

        logger.info(f"[HTS] Minted {len(serials)} serials of {token_id}")
        return serials


def get_hedera_client():
    return HederaClient()
