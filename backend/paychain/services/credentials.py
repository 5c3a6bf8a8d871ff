"""
Merchant API credentials - issuance and caller authentication
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from paychain.core.accounts.models import Account, AccountStatus, OperatingMode
from paychain.services.exceptions import AuthError, LiveModeLockedError, AccountSuspendedError

logger = logging.getLogger(__name__)

SANDBOX_KEY_PREFIX = "sk_test_kzh_"
LIVE_KEY_PREFIX = "sk_live_kzh_"
WEBHOOK_SECRET_PREFIX = "whsec_"


@dataclass(frozen=True)
class AuthenticatedCaller:
    """Result of a successful credential lookup"""
    account: Account
    mode: OperatingMode


def generate_sandbox_key() -> str:
    return SANDBOX_KEY_PREFIX + secrets.token_hex(8)


def generate_live_key() -> str:
    return LIVE_KEY_PREFIX + secrets.token_hex(16)


def fingerprint_credential(credential: str) -> str:
    """SHA-256 hex digest used to look up live keys without storing them"""
    return hashlib.sha256(credential.encode("utf-8")).hexdigest()


def mask_live_key(last_four: Optional[str]) -> str:
    if not last_four:
        return LIVE_KEY_PREFIX + "•" * 16
    return LIVE_KEY_PREFIX + "•" * 12 + last_four


def mask_credential(credential: str) -> str:
    """Loggable form of any credential"""
    if not credential:
        return "<empty>"
    return credential[:8] + "..." + credential[-4:]


def extract_credential(x_api_key: Optional[str], authorization: Optional[str]) -> str:
    """
    Read the credential from X-Api-Key, falling back to a Bearer Authorization header.
    """
    if x_api_key:
        return x_api_key.strip()
    if authorization:
        value = authorization.strip()
        if value.lower().startswith("bearer "):
            return value[7:].strip()
        return value
    return ""


def issue_live_key(db: Session, account: Account) -> str:
    """
    Issue (or rotate) the account's live key.

    Returns the plaintext key - the only time it is ever available.
    Only APPROVED accounts may hold a live key.
    """
    if account.status != AccountStatus.APPROVED:
        raise LiveModeLockedError("Live key requires approved compliance")

    live_key = generate_live_key()
    account.live_key_hash = fingerprint_credential(live_key)
    account.live_key_last_four = live_key[-4:]
    db.commit()
    db.refresh(account)

    logger.info(
        "Live key issued",
        extra={"account_id": str(account.id), "live_key": mask_live_key(account.live_key_last_four)},
    )
    return live_key


def rotate_sandbox_key(db: Session, account: Account) -> str:
    account.sandbox_api_key = generate_sandbox_key()
    db.commit()
    db.refresh(account)
    logger.info("Sandbox key rotated", extra={"account_id": str(account.id)})
    return account.sandbox_api_key


def authenticate_credential(db: Session, credential: str) -> AuthenticatedCaller:
    """
    Resolve a credential to its account and operating mode.

    Mode follows the credential class that matched:
    - sandbox: equality on accounts.sandbox_api_key
    - live: equality on accounts.live_key_hash (SHA-256 of the credential)

    Raises:
        AuthError: unknown or missing credential
        AccountSuspendedError: account suspended (either mode)
        LiveModeLockedError: live credential valid but account not APPROVED
    """
    if not credential:
        raise AuthError("Invalid API key")

    account = db.execute(
        select(Account).where(Account.sandbox_api_key == credential)
    ).scalar_one_or_none()
    mode = OperatingMode.SANDBOX

    if account is None:
        account = db.execute(
            select(Account).where(Account.live_key_hash == fingerprint_credential(credential))
        ).scalar_one_or_none()
        mode = OperatingMode.LIVE

    if account is None:
        logger.warning("Unknown API key presented", extra={"credential": mask_credential(credential)})
        raise AuthError("Invalid API key")

    if account.status == AccountStatus.SUSPENDED:
        raise AccountSuspendedError("Account suspended")

    if mode == OperatingMode.LIVE and not account.is_live_enabled:
        logger.info(
            "Live key used before compliance approval",
            extra={"account_id": str(account.id), "account_status": account.status.value},
        )
        raise LiveModeLockedError(
            "Live mode locked: compliance not approved. Complete KYC to unlock your live key."
        )

    return AuthenticatedCaller(account=account, mode=mode)


def generate_webhook_secret() -> str:
    return WEBHOOK_SECRET_PREFIX + secrets.token_hex(24)


def configure_webhook(db: Session, account: Account, webhook_url: Optional[str]) -> Optional[str]:
    """
    Set the account's webhook URL.

    The signing secret is generated the first time a URL is set and kept across
    later URL changes. Returns the secret only when it was generated by this call.
    """
    new_secret = None
    account.webhook_url = webhook_url
    if webhook_url and not account.webhook_secret:
        new_secret = generate_webhook_secret()
        account.webhook_secret = new_secret
    db.commit()
    db.refresh(account)

    logger.info(
        "Webhook URL updated",
        extra={"account_id": str(account.id), "webhook_enabled": bool(webhook_url)},
    )
    return new_secret
