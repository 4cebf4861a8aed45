"""
Per-order escrow contract client.

Contracts are deployed and driven through the Hedera JSON-RPC relay by
the platform arbiter wallet. The arbiter approves on behalf of each
bank, confirms shipment (first 50% release) and confirms delivery
(final 50% release).
"""
import json
import logging
import os

from django.conf import settings
from eth_account import Account
from web3 import Web3

logger = logging.getLogger(__name__)


class EscrowConfigurationError(Exception):
    """Missing arbiter key or contract artifact"""


class EscrowClient:
    def __init__(self, rpc_url=None, private_key=None, artifact_path=None, web3=None, timeout=None):
        self.rpc_url = rpc_url or settings.HEDERA_TESTNET_RPC
        self.private_key = private_key if private_key is not None else settings.HEDERA_PRIVATE_KEY
        self.artifact_path = artifact_path or settings.ESCROW_ARTIFACT_PATH
        self.timeout = timeout or settings.ESCROW_TX_TIMEOUT
        self._web3 = web3
        self._artifact = None

        if not self.private_key:
            raise EscrowConfigurationError("HEDERA_PRIVATE_KEY not configured")
        self.account = Account.from_key(self.private_key)

    @property
    def arbiter_address(self):
        return self.account.address

    @property
    def web3(self):
        if self._web3 is None:
            self._web3 = Web3(Web3.HTTPProvider(self.rpc_url, request_kwargs={'timeout': self.timeout}))
        return self._web3

    @property
    def artifact(self):
        if self._artifact is None:
            if not os.path.exists(self.artifact_path):
                raise EscrowConfigurationError(
                    f"Escrow contract artifact not found at {self.artifact_path}"
                )
            with open(self.artifact_path, 'r', encoding='utf-8') as f:
                artifact = json.load(f)
            if 'abi' not in artifact or 'bytecode' not in artifact:
                raise EscrowConfigurationError("Escrow artifact must contain 'abi' and 'bytecode'")
            self._artifact = artifact
        return self._artifact

    def _send(self, contract_function):
        """Sign with the arbiter key, submit and wait for the receipt"""
        tx = contract_function.build_transaction({
            'from': self.arbiter_address,
            'nonce': self.web3.eth.get_transaction_count(self.arbiter_address),
            'gasPrice': self.web3.eth.gas_price,
            'chainId': self.web3.eth.chain_id,
        })
        signed = self.account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout)
        if receipt.get('status') == 0:
            raise RuntimeError(f"Escrow transaction {Web3.to_hex(tx_hash)} reverted")
        return receipt

    def deploy(self, buyer_address, seller_address):
        """Deploy a new escrow for an order.

        Returns a dict with contract_address, transaction_hash and arbiter_address.
        """
        if not Web3.is_address(buyer_address) or not Web3.is_address(seller_address):
            raise ValueError("Invalid Ethereum address provided")

        buyer = Web3.to_checksum_address(buyer_address)
        seller = Web3.to_checksum_address(seller_address)
        factory = self.web3.eth.contract(abi=self.artifact['abi'], bytecode=self.artifact['bytecode'])

        logger.info(f"Deploying escrow: buyer={buyer} seller={seller} arbiter={self.arbiter_address}")
        receipt = self._send(factory.constructor(buyer, seller, self.arbiter_address))
        contract_address = receipt['contractAddress']
        if not contract_address:
            raise RuntimeError("Deployment receipt has no contract address")

        tx_hash = Web3.to_hex(receipt['transactionHash'])
        logger.info(f"Escrow deployed at {contract_address} (tx {tx_hash})")
        return {
            'contract_address': contract_address,
            'transaction_hash': tx_hash,
            'arbiter_address': self.arbiter_address,
        }

    def _contract(self, escrow_address):
        return self.web3.eth.contract(
            address=Web3.to_checksum_address(escrow_address),
            abi=self.artifact['abi'],
        )

    def _call(self, escrow_address, function_name):
        contract = self._contract(escrow_address)
        receipt = self._send(getattr(contract.functions, function_name)())
        tx_hash = Web3.to_hex(receipt['transactionHash'])
        logger.info(f"Escrow {escrow_address}: {function_name} confirmed (tx {tx_hash})")
        return tx_hash

    def approve_buyer(self, escrow_address):
        """Arbiter approves on behalf of the buyer's bank"""
        return self._call(escrow_address, 'approveByBuyer')

    def approve_seller(self, escrow_address):
        """Arbiter approves on behalf of the seller's bank"""
        return self._call(escrow_address, 'approveBySeller')

    def release_first_payment(self, escrow_address):
        """Confirm shipment, releasing the first 50% to the seller"""
        return self._call(escrow_address, 'confirmShipment')

    def confirm_delivery(self, escrow_address):
        """Confirm delivery, releasing the remaining 50%"""
        return self._call(escrow_address, 'confirmDelivery')


def get_escrow_client():
    return EscrowClient()
