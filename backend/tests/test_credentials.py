"""
Tests for credential issuance and caller authentication
"""

import re

import pytest

from paychain.core.accounts.models import AccountStatus, OperatingMode
from paychain.services.credentials import (
    authenticate_credential,
    configure_webhook,
    extract_credential,
    fingerprint_credential,
    generate_live_key,
    generate_sandbox_key,
    issue_live_key,
    mask_credential,
    mask_live_key,
    rotate_sandbox_key,
)
from paychain.services.exceptions import AccountSuspendedError, AuthError, LiveModeLockedError

from conftest import make_account


class TestKeyFormats:
    def test_sandbox_key_format(self):
        assert re.fullmatch(r"sk_test_kzh_[0-9a-f]{16}", generate_sandbox_key())

    def test_live_key_format(self):
        assert re.fullmatch(r"sk_live_kzh_[0-9a-f]{32}", generate_live_key())

    def test_keys_are_unique(self):
        assert len({generate_sandbox_key() for _ in range(50)}) == 50

    def test_fingerprint_is_sha256_hex(self):
        fingerprint = fingerprint_credential("sk_live_kzh_abc")
        assert len(fingerprint) == 64
        assert fingerprint == fingerprint_credential("sk_live_kzh_abc")

    def test_masking_hides_secret(self):
        assert mask_live_key("9f3a").endswith("9f3a")
        assert "•" in mask_live_key("9f3a")
        masked = mask_credential("sk_test_kzh_0123456789abcdef")
        assert "0123456789ab" not in masked


class TestExtractCredential:
    def test_api_key_header_wins(self):
        assert extract_credential("sk_test_kzh_1", "Bearer sk_test_kzh_2") == "sk_test_kzh_1"

    def test_bearer_authorization(self):
        assert extract_credential(None, "Bearer sk_test_kzh_2") == "sk_test_kzh_2"
        assert extract_credential(None, "bearer  sk_test_kzh_2 ") == "sk_test_kzh_2"

    def test_missing(self):
        assert extract_credential(None, None) == ""


class TestAuthenticateCredential:
    def test_sandbox_key_resolves_sandbox_mode(self, db_session, sandbox_account):
        caller = authenticate_credential(db_session, sandbox_account.sandbox_api_key)
        assert caller.account.id == sandbox_account.id
        assert caller.mode == OperatingMode.SANDBOX

    def test_live_key_resolves_live_mode(self, db_session, live_account):
        account, live_key = live_account
        caller = authenticate_credential(db_session, live_key)
        assert caller.account.id == account.id
        assert caller.mode == OperatingMode.LIVE

    def test_approved_account_sandbox_key_stays_sandbox(self, db_session, live_account):
        """Mode follows the credential class, not the account status"""
        account, _ = live_account
        caller = authenticate_credential(db_session, account.sandbox_api_key)
        assert caller.mode == OperatingMode.SANDBOX

    @pytest.mark.parametrize("credential", ["", "sk_test_kzh_unknown", "sk_live_kzh_unknown"])
    def test_unknown_credential(self, db_session, sandbox_account, credential):
        with pytest.raises(AuthError) as exc_info:
            authenticate_credential(db_session, credential)
        assert type(exc_info.value) is AuthError
        assert exc_info.value.message == "Invalid API key"

    def test_live_key_without_approval_is_locked(self, db_session, pending_live_account):
        _, live_key = pending_live_account
        with pytest.raises(LiveModeLockedError) as exc_info:
            authenticate_credential(db_session, live_key)
        assert "compliance not approved" in exc_info.value.message
        assert exc_info.value.status_code == 401

    @pytest.mark.parametrize("use_live_key", [False, True])
    def test_suspended_account_rejected_in_both_modes(self, db_session, live_account, use_live_key):
        account, live_key = live_account
        sandbox_key = account.sandbox_api_key
        account.status = AccountStatus.SUSPENDED
        db_session.commit()

        with pytest.raises(AccountSuspendedError):
            authenticate_credential(db_session, live_key if use_live_key else sandbox_key)


class TestIssuance:
    def test_issue_live_key_requires_approval(self, db_session, sandbox_account):
        with pytest.raises(LiveModeLockedError):
            issue_live_key(db_session, sandbox_account)
        assert sandbox_account.live_key_hash is None

    def test_live_key_stored_only_as_fingerprint(self, db_session):
        account = make_account(db_session, "approved@example.com", status=AccountStatus.APPROVED)
        live_key = issue_live_key(db_session, account)
        assert account.live_key_hash == fingerprint_credential(live_key)
        assert account.live_key_last_four == live_key[-4:]
        assert live_key not in (account.live_key_hash, account.sandbox_api_key)

    def test_reissue_invalidates_previous_live_key(self, db_session, live_account):
        account, old_key = live_account
        new_key = issue_live_key(db_session, account)
        assert new_key != old_key
        with pytest.raises(AuthError):
            authenticate_credential(db_session, old_key)
        assert authenticate_credential(db_session, new_key).mode == OperatingMode.LIVE

    def test_rotate_sandbox_key(self, db_session, sandbox_account):
        old_key = sandbox_account.sandbox_api_key
        new_key = rotate_sandbox_key(db_session, sandbox_account)
        assert new_key != old_key
        with pytest.raises(AuthError):
            authenticate_credential(db_session, old_key)

    def test_webhook_secret_generated_once(self, db_session, sandbox_account):
        secret = configure_webhook(db_session, sandbox_account, "https://merchant.example.com/hooks")
        assert secret is not None and secret.startswith("whsec_")
        assert configure_webhook(db_session, sandbox_account, "https://merchant.example.com/v2") is None
        assert sandbox_account.webhook_secret == secret
        assert sandbox_account.webhook_url == "https://merchant.example.com/v2"
