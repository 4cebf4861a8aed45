from unittest.mock import MagicMock, patch

from django.db import transaction
from django.test import TestCase, override_settings
from web3 import Web3

from .did import build_did_document, generate_did, generate_did_from_public_key
from .escrow import EscrowClient, EscrowConfigurationError
from .hedera import (
    HederaClient,
    HederaConfigurationError,
    build_nft_metadata,
    fit_utf8,
    token_symbol_from_name,
)
from .models import AuditEvent
from .tasks import record_audit_event, submit_audit_event

ARBITER_KEY = '0x' + '4c' * 32


class DIDTest(TestCase):
    def test_did_is_deterministic_for_a_key(self):
        key = 'ab' * 32
        first = generate_did_from_public_key(key, network='testnet')
        self.assertEqual(first, generate_did_from_public_key(key, network='testnet'))
        self.assertTrue(first.startswith('did:hedera:testnet:Qm'))

    @override_settings(HEDERA_NETWORK='mainnet')
    def test_generated_did_uses_configured_network(self):
        did, metadata = generate_did()
        self.assertTrue(did.startswith('did:hedera:mainnet:'))
        self.assertEqual(metadata['document']['id'], did)
        self.assertEqual(len(metadata['publicKeyHex']), 64)
        self.assertNotIn('privateKey', metadata)

    def test_document_references_key(self):
        document = build_did_document('did:hedera:testnet:abc', 'ff' * 32)
        self.assertEqual(document['authentication'], ['did:hedera:testnet:abc#key-1'])
        self.assertEqual(document['verificationMethod'][0]['publicKeyHex'], 'ff' * 32)


class NftMetadataTest(TestCase):
    def test_metadata_format(self):
        data = build_nft_metadata('Olive  Oil', 3, 10, country='Tunisia', price='12.5', hs_code='1509')
        self.assertEqual(data, b'n=Olive Oil; c=Tunisia; p=12.50; hs=1509; u=3/10')

    def test_metadata_fits_in_100_bytes(self):
        data = build_nft_metadata('Dattes Deglet Nour ' * 10, 1, 1000, country='Tunisie')
        self.assertLessEqual(len(data), 100)
        data.decode('utf-8')

    def test_fit_utf8_does_not_split_characters(self):
        trimmed = fit_utf8('é' * 60, max_bytes=9)
        self.assertEqual(trimmed, 'éééé')

    def test_token_symbol(self):
        self.assertEqual(token_symbol_from_name('Harissa du Cap Bon'), 'HARIS')
        self.assertEqual(token_symbol_from_name('زيت'), 'PROD')


class HederaClientTest(TestCase):
    def test_unconfigured_client(self):
        client = HederaClient(account_id='', private_key='', topic_id='0.0.5')
        self.assertFalse(client.is_configured())
        with self.assertRaises(HederaConfigurationError):
            client.get_client()

    def test_event_without_topic_is_skipped(self):
        client = HederaClient(account_id='0.0.2', private_key='302e', topic_id='')
        self.assertEqual(client.submit_order_event('ORDER_CREATED', 1, 'ORD-2026-000001'), '')

    def test_event_submission_failure_returns_empty_id(self):
        client = HederaClient(account_id='0.0.2', private_key='302e', topic_id='0.0.5')
        with patch.object(HederaClient, 'get_client', side_effect=RuntimeError("node unreachable")):
            self.assertEqual(client.submit_order_event('ORDER_CREATED', 1, 'ORD-2026-000001'), '')

    def test_mint_rejects_empty_quantity(self):
        client = HederaClient(account_id='0.0.2', private_key='302e')
        with self.assertRaises(ValueError):
            client.mint_product_nfts('0.0.77', 'Olive oil', 0)


class AuditEventTaskTest(TestCase):
    def setUp(self):
        self.event = AuditEvent.objects.create(
            event_type='ORDER_CREATED',
            reference_id='7',
            reference_code='ORD-2026-000007',
            details={'totalAmount': '105.00'},
        )

    @override_settings(HEDERA_ACCOUNT_ID='', HEDERA_PRIVATE_KEY='')
    def test_skipped_when_hedera_is_not_configured(self):
        submit_audit_event(self.event.id)
        self.event.refresh_from_db()
        self.assertEqual(self.event.status, 'SKIPPED')

    @patch('blockchain.tasks.get_hedera_client')
    def test_submitted_event_keeps_transaction_id(self, mock_client):
        mock_client.return_value.is_configured.return_value = True
        mock_client.return_value.topic_id = '0.0.5'
        mock_client.return_value.submit_order_event.return_value = '0.0.2@1700000000.000000001'

        submit_audit_event(self.event.id)

        self.event.refresh_from_db()
        self.assertEqual(self.event.status, 'SUBMITTED')
        self.assertEqual(self.event.transaction_id, '0.0.2@1700000000.000000001')
        self.assertIsNotNone(self.event.submitted_at)
        mock_client.return_value.submit_order_event.assert_called_once_with(
            'ORDER_CREATED', '7', 'ORD-2026-000007', {'totalAmount': '105.00'}
        )

    @patch('blockchain.tasks.get_hedera_client')
    def test_failed_submission_is_recorded(self, mock_client):
        mock_client.return_value.is_configured.return_value = True
        mock_client.return_value.topic_id = '0.0.5'
        mock_client.return_value.submit_order_event.return_value = ''

        submit_audit_event(self.event.id)

        self.event.refresh_from_db()
        self.assertEqual(self.event.status, 'FAILED')
        self.assertTrue(self.event.error_message)

    def test_record_dispatches_after_commit(self):
        with patch('blockchain.tasks.submit_audit_event') as mock_task:
            with self.captureOnCommitCallbacks(execute=True):
                event = record_audit_event('ORDER_SHIPPED', 7, 'ORD-2026-000007', {'trackingId': 'TRK1'})

        self.assertEqual(event.reference_id, '7')
        self.assertEqual(event.status, 'PENDING')
        mock_task.delay.assert_called_once_with(event.id)

    def test_record_never_raises(self):
        with transaction.atomic():
            self.assertIsNone(record_audit_event('ORDER_CREATED', 1, 'ORD-2026-000001', {'bad': object()}))
            # the surrounding transaction stays usable
            self.assertEqual(AuditEvent.objects.count(), 1)
            event = record_audit_event('ORDER_CREATED', 1, 'ORD-2026-000001')

        self.assertEqual(AuditEvent.objects.count(), 2)
        self.assertEqual(event.event_type, 'ORDER_CREATED')


class EscrowClientTest(TestCase):
    def test_requires_arbiter_key(self):
        with self.assertRaises(EscrowConfigurationError):
            EscrowClient(private_key='')

    def test_missing_artifact(self):
        client = EscrowClient(private_key=ARBITER_KEY, artifact_path='/nonexistent/TradeEscrow.json', web3=MagicMock())
        with self.assertRaises(EscrowConfigurationError):
            client.artifact

    def test_deploy_rejects_non_evm_addresses(self):
        client = EscrowClient(private_key=ARBITER_KEY, web3=MagicMock())
        with self.assertRaises(ValueError):
            client.deploy('0.0.1234', '0x' + 'a' * 40)

    def test_approvals_call_contract_functions(self):
        client = EscrowClient(private_key=ARBITER_KEY, web3=MagicMock())
        client._artifact = {'abi': [], 'bytecode': '0x'}
        receipt = {'status': 1, 'transactionHash': bytes.fromhex('ab' * 32)}

        with patch.object(EscrowClient, '_send', return_value=receipt) as mock_send:
            tx_hash = client.approve_buyer('0x' + 'b' * 40)
            client.release_first_payment('0x' + 'b' * 40)

        self.assertEqual(tx_hash, '0x' + 'ab' * 32)
        self.assertEqual(mock_send.call_count, 2)
        contract = client.web3.eth.contract.return_value
        contract.functions.approveByBuyer.assert_called_once_with()
        contract.functions.confirmShipment.assert_called_once_with()

    def test_deploy_returns_prefixed_hash(self):
        client = EscrowClient(private_key=ARBITER_KEY, web3=MagicMock())
        client._artifact = {'abi': [], 'bytecode': '0x'}
        receipt = {
            'status': 1,
            'transactionHash': bytes.fromhex('cd' * 32),
            'contractAddress': Web3.to_checksum_address('0x' + 'e' * 40),
        }

        with patch.object(EscrowClient, '_send', return_value=receipt):
            result = client.deploy('0x' + 'a' * 40, '0x' + 'b' * 40)

        self.assertEqual(result['transaction_hash'], '0x' + 'cd' * 32)
        self.assertEqual(len(result['transaction_hash']), 66)
        self.assertEqual(result['contract_address'], Web3.to_checksum_address('0x' + 'e' * 40))
        self.assertEqual(result['arbiter_address'], client.arbiter_address)

    def test_reverted_transaction_raises(self):
        web3 = MagicMock()
        web3.eth.wait_for_transaction_receipt.return_value = {'status': 0}
        web3.eth.send_raw_transaction.return_value = bytes.fromhex('cd' * 32)
        web3.eth.chain_id = 296
        web3.eth.gas_price = 1
        web3.eth.get_transaction_count.return_value = 0
        client = EscrowClient(private_key=ARBITER_KEY, web3=web3)

        function = MagicMock()
        function.build_transaction.return_value = {
            'to': Web3.to_checksum_address('0x' + 'b' * 40), 'value': 0, 'gas': 100000, 'gasPrice': 1,
            'nonce': 0, 'chainId': 296, 'data': '0x',
        }
        with self.assertRaises(RuntimeError):
            client._send(function)
