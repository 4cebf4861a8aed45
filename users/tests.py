from datetime import timedelta

from django.core.cache import cache
from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone
from eth_account import Account
from eth_account.messages import encode_defunct
from graphql_jwt.exceptions import PermissionDenied
from nacl.encoding import HexEncoder
from nacl.signing import SigningKey
from web3 import Web3

from config.errors import ServiceError
from .backends import SessionJSONWebTokenBackend
from .crypto import (
    build_sign_message,
    validate_wallet_address,
    verify_hashpack_signature,
    verify_metamask_signature,
)
from .jwt import decode_token
from .models import AuthSession, BankAccount, DID, User
from .validators import validate_bank_account_fields, validate_rib
from . import services


class MockContext:
    def __init__(self, user=None):
        self.user = user


class MockInfo:
    def __init__(self, context):
        self.context = context


def metamask_login(wallet=None):
    """Request a nonce and sign it the way MetaMask personal_sign does"""
    account = wallet or Account.create()
    challenge = services.request_wallet_nonce(account.address, 'metamask')
    signed = account.sign_message(encode_defunct(text=challenge['message']))
    return account, challenge, Web3.to_hex(signed.signature)


class WalletCryptoTest(TestCase):
    def test_sign_message_carries_wallet_and_nonce(self):
        issued = timezone.now()
        message = build_sign_message('0.0.1234', 'abc123', issued)
        self.assertTrue(message.startswith("Hex-Port Authentication"))
        self.assertIn("Wallet: 0.0.1234", message)
        self.assertIn("Nonce: abc123", message)
        self.assertTrue(message.endswith("This message will not trigger a blockchain transaction."))

    def test_wallet_address_formats(self):
        self.assertTrue(validate_wallet_address('0x' + 'a' * 40, 'metamask'))
        self.assertFalse(validate_wallet_address('0x' + 'a' * 39, 'metamask'))
        self.assertTrue(validate_wallet_address('0.0.4821', 'hashpack'))
        self.assertFalse(validate_wallet_address('0.0.abc', 'hashpack'))
        self.assertFalse(validate_wallet_address('0.0.4821', 'phantom'))

    def test_metamask_signature_recovers_signer(self):
        account = Account.create()
        signed = account.sign_message(encode_defunct(text="hello"))
        signature = Web3.to_hex(signed.signature)

        self.assertTrue(verify_metamask_signature("hello", signature, account.address.lower()))
        self.assertFalse(verify_metamask_signature("tampered", signature, account.address))
        self.assertFalse(verify_metamask_signature("hello", "0xdeadbeef", account.address))

    def test_hashpack_signature_hex_and_base64(self):
        import base64

        signing_key = SigningKey.generate()
        public_key_hex = signing_key.verify_key.encode(encoder=HexEncoder).decode()
        raw = signing_key.sign("login".encode('utf-8')).signature

        self.assertTrue(verify_hashpack_signature("login", raw.hex(), public_key_hex))
        self.assertTrue(verify_hashpack_signature("login", base64.b64encode(raw).decode(), public_key_hex))
        self.assertFalse(verify_hashpack_signature("other", raw.hex(), public_key_hex))
        self.assertFalse(verify_hashpack_signature("login", raw.hex(), None))


class WalletLoginTest(TestCase):
    def setUp(self):
        cache.clear()

    def test_request_nonce_creates_user(self):
        address = '0x' + 'b' * 40
        result = services.request_wallet_nonce(address, 'metamask')

        user = User.objects.get(wallet_address=address)
        self.assertEqual(user.nonce, result['nonce'])
        self.assertEqual(user.username, address)
        self.assertEqual(result['expires_in'], 600)
        self.assertIn(result['nonce'], result['message'])
        self.assertFalse(user.has_usable_password())

    def test_request_nonce_rejects_bad_address(self):
        with self.assertRaises(ServiceError):
            services.request_wallet_nonce('not-a-wallet', 'metamask')

    def test_connect_wallet_opens_session(self):
        account, challenge, signature = metamask_login()

        user, session = services.connect_wallet(
            account.address, signature, challenge['message'], challenge['nonce'], 'metamask'
        )

        user.refresh_from_db()
        self.assertIsNone(user.nonce)
        self.assertIsNotNone(user.last_login_at)
        self.assertTrue(session.is_active)
        payload = decode_token(session.token, expected_type='access')
        self.assertEqual(payload['user_id'], user.id)
        self.assertEqual(payload['session_id'], str(session.session_id))

    def test_connect_wallet_rejects_reused_nonce(self):
        account, challenge, signature = metamask_login()
        services.connect_wallet(account.address, signature, challenge['message'], challenge['nonce'])

        with self.assertRaises(services.AuthError):
            services.connect_wallet(account.address, signature, challenge['message'], challenge['nonce'])

    def test_connect_wallet_rejects_expired_nonce(self):
        account, challenge, signature = metamask_login()
        User.objects.filter(wallet_address=account.address).update(
            nonce_issued_at=timezone.now() - timedelta(minutes=30)
        )

        with self.assertRaises(services.AuthError) as ctx:
            services.connect_wallet(account.address, signature, challenge['message'], challenge['nonce'])
        self.assertEqual(ctx.exception.status, 401)

    def test_connect_wallet_rejects_foreign_signature(self):
        account, challenge, _ = metamask_login()
        impostor = Account.create()
        forged = Web3.to_hex(impostor.sign_message(encode_defunct(text=challenge['message'])).signature)

        with self.assertRaises(services.AuthError):
            services.connect_wallet(account.address, forged, challenge['message'], challenge['nonce'])

    def test_hashpack_login_requires_public_key(self):
        challenge = services.request_wallet_nonce('0.0.98765', 'hashpack')
        with self.assertRaises(ServiceError):
            services.connect_wallet('0.0.98765', 'ab' * 64, challenge['message'], challenge['nonce'], 'hashpack')

    def test_hashpack_login(self):
        signing_key = SigningKey.generate()
        public_key_hex = signing_key.verify_key.encode(encoder=HexEncoder).decode()
        challenge = services.request_wallet_nonce('0.0.98765', 'hashpack')
        signature = signing_key.sign(challenge['message'].encode('utf-8')).signature.hex()

        user, session = services.connect_wallet(
            '0.0.98765', signature, challenge['message'], challenge['nonce'], 'hashpack', public_key_hex
        )
        self.assertEqual(user.public_key_hex, public_key_hex)
        self.assertEqual(user.wallet_type, 'hashpack')

    @override_settings(WALLET_SIGNATURE_VERIFICATION=False)
    def test_signature_verification_can_be_disabled(self):
        challenge = services.request_wallet_nonce('0x' + 'c' * 40, 'metamask')
        user, session = services.connect_wallet(
            '0x' + 'c' * 40, '0x00', challenge['message'], challenge['nonce']
        )
        self.assertTrue(session.is_active)

    def test_connect_wallet_mutation(self):
        from .schema import ConnectWallet

        account, challenge, signature = metamask_login()
        info = MockInfo(MockContext())

        result = ConnectWallet.mutate(
            None, info, account.address, signature, challenge['message'], challenge['nonce'], 'metamask'
        )
        self.assertTrue(result.success)
        self.assertTrue(result.token)
        self.assertEqual(result.user.wallet_address, account.address)

        failed = ConnectWallet.mutate(
            None, info, account.address, signature, challenge['message'], 'bad-nonce', 'metamask'
        )
        self.assertFalse(failed.success)
        self.assertEqual(failed.errors, ["Invalid nonce"])


class SessionTest(TestCase):
    def setUp(self):
        cache.clear()
        account, challenge, signature = metamask_login()
        self.user, self.session = services.connect_wallet(
            account.address, signature, challenge['message'], challenge['nonce']
        )
        self.factory = RequestFactory()

    def _request(self, token):
        return self.factory.get('/', HTTP_AUTHORIZATION=f'Bearer {token}')

    def test_backend_authenticates_active_session(self):
        request = self._request(self.session.token)
        user = SessionJSONWebTokenBackend().authenticate(request=request)
        self.assertEqual(user, self.user)
        self.assertEqual(request.auth_session, self.session)

    def test_backend_rejects_revoked_session(self):
        services.logout(self.user, session=self.session)
        with self.assertRaises(PermissionDenied):
            SessionJSONWebTokenBackend().authenticate(request=self._request(self.session.token))

    def test_backend_rejects_refresh_token(self):
        with self.assertRaises(PermissionDenied):
            SessionJSONWebTokenBackend().authenticate(request=self._request(self.session.refresh_token))

    def test_refresh_rotates_tokens(self):
        old_refresh = self.session.refresh_token
        session = services.refresh_session(old_refresh)
        self.assertNotEqual(session.refresh_token, old_refresh)
        self.assertIsNotNone(session.last_used_at)

        with self.assertRaises(services.AuthError):
            services.refresh_session(old_refresh)

    def test_logout_by_token(self):
        services.logout(self.user, token=self.session.token)
        self.session.refresh_from_db()
        self.assertFalse(self.session.is_active)

    def test_logout_all(self):
        services._open_session(self.user)
        self.assertEqual(services.logout_all(self.user), 2)
        self.assertFalse(AuthSession.objects.filter(user=self.user, is_active=True).exists())


class ProfileTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='0x' + 'd' * 40, wallet_address='0x' + 'd' * 40)

    def test_save_core_identity_issues_did(self):
        user = services.save_core_identity(self.user, 'Amel Trabelsi', 'Amel@Example.com', '+21620123456', 'Sfax', 'BUYER')

        self.assertTrue(user.is_verified)
        self.assertEqual(user.email, 'amel@example.com')
        self.assertEqual(user.user_type, 'BUYER')
        did = DID.objects.get(user=user)
        self.assertTrue(did.did.startswith('did:hedera:'))
        self.assertIn('publicKeyHex', did.metadata)

    @override_settings(AUTO_ISSUE_DID=False)
    def test_save_core_identity_without_did(self):
        services.save_core_identity(self.user, 'Amel', 'amel@example.com', None, None)
        self.assertFalse(DID.objects.filter(user=self.user).exists())

    def test_save_core_identity_refuses_admin_type(self):
        with self.assertRaises(ServiceError):
            services.save_core_identity(self.user, 'Amel', 'amel@example.com', None, None, 'ADMIN')

    def test_duplicate_email_is_conflict(self):
        User.objects.create_user(username='0x' + 'e' * 40, wallet_address='0x' + 'e' * 40, email='taken@example.com')
        with self.assertRaises(ServiceError) as ctx:
            services.update_profile(self.user, email='taken@example.com')
        self.assertEqual(ctx.exception.status, 409)

    def test_identity_lookup_hides_contact_details(self):
        self.user.email = 'private@example.com'
        self.user.save()
        result = services.get_identity_by_wallet(self.user.wallet_address)
        self.assertTrue(result['exists'])
        self.assertNotIn('email', result['identity'])
        self.assertEqual(services.get_identity_by_wallet('0x' + '0' * 40), {'exists': False, 'identity': None})

    def test_did_metadata_is_merged(self):
        services.register_did_for_user(self.user, {'tier': 'gold'})
        record = services.update_did_metadata(self.user, {'region': 'TN'})
        self.assertEqual(record.metadata['tier'], 'gold')
        self.assertEqual(record.metadata['region'], 'TN')

    def test_me_requires_authentication(self):
        from .schema import Query

        self.assertIsNone(Query().resolve_me(MockInfo(MockContext())))
        self.assertEqual(Query().resolve_me(MockInfo(MockContext(self.user))), self.user)


class BankAccountTest(TestCase):
    def setUp(self):
        from banks.models import Bank

        self.bank = Bank.objects.create(code='ALUBAF', name='ALUBAF INTERNATIONAL BANK')
        self.user = User.objects.create_user(username='0x' + 'f' * 40, wallet_address='0x' + 'f' * 40)
        self.valid = {
            'bank_code': 'ALUBAF',
            'rib': '0' * 20,
            'holder_name': "Sami Ben-Ali",
            'phone_number': '+21698765432',
            'email': 'sami@example.com',
        }

    def test_rib_validation(self):
        self.assertEqual(validate_rib('1' * 20), (True, None))
        self.assertFalse(validate_rib('1' * 19)[0])
        self.assertFalse(validate_rib('A' * 20)[0])

    def test_partial_validation_skips_missing_fields(self):
        validate_bank_account_fields({'rib': '1' * 20}, partial=True)

    def test_add_bank_account_resolves_bank(self):
        account = services.add_bank_account(self.user, **self.valid)
        self.assertEqual(account.bank, self.bank)
        self.assertIsNone(account.tax_identification_number)

    def test_add_bank_account_rejects_bad_phone(self):
        data = dict(self.valid, phone_number='98765432')
        with self.assertRaises(ServiceError) as ctx:
            services.add_bank_account(self.user, **data)
        self.assertEqual(str(ctx.exception), "Invalid phoneNumber (+216XXXXXXXX)")

    def test_update_and_soft_delete(self):
        account = services.add_bank_account(self.user, **self.valid)
        services.update_bank_account(self.user, account.id, holder_name='Sami Ben Ali', bank_code='UNKNOWN')
        account.refresh_from_db()
        self.assertEqual(account.holder_name, 'Sami Ben Ali')
        self.assertIsNone(account.bank)

        services.delete_bank_account(self.user, account.id)
        self.assertFalse(BankAccount.objects.filter(id=account.id).exists())
        self.assertTrue(BankAccount.all_objects.filter(id=account.id).exists())

    def test_other_users_account_is_not_found(self):
        account = services.add_bank_account(self.user, **self.valid)
        other = User.objects.create_user(username='0x' + '1' * 40, wallet_address='0x' + '1' * 40)
        with self.assertRaises(ServiceError) as ctx:
            services.delete_bank_account(other, account.id)
        self.assertEqual(ctx.exception.status, 404)


class RateLimitTest(TestCase):
    def setUp(self):
        cache.clear()

    @override_settings(RATE_LIMITS={'wallet_nonce': {'window': 60, 'max_attempts': 2}})
    def test_nonce_requests_are_rate_limited(self):
        from graphql import GraphQLError
        from .schema import RequestWalletNonce

        info = MockInfo(MockContext())
        address = '0x' + '2' * 40
        self.assertTrue(RequestWalletNonce.mutate(None, info, address).success)
        self.assertTrue(RequestWalletNonce.mutate(None, info, address).success)
        with self.assertRaises(GraphQLError):
            RequestWalletNonce.mutate(None, info, address)

    def test_deleted_account_cannot_request_nonce(self):
        user = User.objects.create_user(username='0x' + '3' * 40, wallet_address='0x' + '3' * 40)
        user.soft_delete()
        with self.assertRaises(services.AuthError) as ctx:
            services.request_wallet_nonce(user.wallet_address)
        self.assertEqual(ctx.exception.status, 403)
