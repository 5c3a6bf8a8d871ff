"""
Webhook security utilities - HMAC signatures and replay protection

Used in both directions:
- inbound settlement provider callbacks are verified against SETTLEMENT_CALLBACK_SECRET
- outbound merchant webhooks are signed with the account's webhook secret
"""

import hmac
import hashlib
import time
import logging
from typing import Optional, Tuple, Dict, Any

from paychain.infrastructure.settings import get_settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Settlement-Signature"
TIMESTAMP_HEADER = "X-Settlement-Timestamp"

VerificationResult = Tuple[bool, Optional[str], Optional[Dict[str, Any]]]


def compute_hmac_signature(payload_bytes: bytes, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 over the exact raw body bytes"""
    return hmac.new(
        secret.encode('utf-8'),
        payload_bytes,
        hashlib.sha256
    ).hexdigest()


def verify_hmac_signature(
    payload_body: bytes,
    signature_header: Optional[str],
    secret: str,
) -> VerificationResult:
    """
    Verify HMAC-SHA256 signature using constant-time comparison.

    Returns:
        Tuple of (is_valid, error_code, error_details)
    """
    if not secret:
        return False, "WEBHOOK_INVALID_SIGNATURE", {
            "reason": "SETTLEMENT_CALLBACK_SECRET not configured",
        }

    if not signature_header:
        return False, "WEBHOOK_MISSING_HEADER", {
            "missing_header": SIGNATURE_HEADER,
        }

    expected_signature = compute_hmac_signature(payload_body, secret)

    if not hmac.compare_digest(expected_signature, signature_header):
        return False, "WEBHOOK_INVALID_SIGNATURE", {
            "expected_length": len(expected_signature),
            "received_length": len(signature_header),
            "body_length_bytes": len(payload_body),
        }

    return True, None, None


def verify_timestamp(
    timestamp_header: Optional[str],
    tolerance_seconds: int,
) -> VerificationResult:
    """
    Verify timestamp to prevent replay attacks.

    A missing timestamp is accepted: the ledger's PENDING guard already makes
    a replayed callback a no-op.
    """
    if not timestamp_header:
        logger.debug("No timestamp header provided - relying on idempotent settlement")
        return True, None, None

    try:
        timestamp = int(timestamp_header)
    except (ValueError, TypeError):
        return False, "WEBHOOK_INVALID_TIMESTAMP", {
            "received": timestamp_header,
            "expected_format": "Unix timestamp (integer as string)",
        }

    current_time = int(time.time())
    time_delta = abs(current_time - timestamp)

    if time_delta > tolerance_seconds:
        return False, "WEBHOOK_TIMESTAMP_SKEW", {
            "received_timestamp": timestamp,
            "current_timestamp": current_time,
            "time_delta_seconds": time_delta,
            "max_skew_seconds": tolerance_seconds,
        }

    return True, None, None


def verify_settlement_callback_security(
    payload_body: bytes,
    signature_header: Optional[str],
    timestamp_header: Optional[str] = None,
) -> VerificationResult:
    """
    Complete verification for settlement provider callbacks:
    1. HMAC-SHA256 signature over the raw body
    2. Timestamp window (if provided)
    """
    settings = get_settings()

    is_valid, error_code, error_details = verify_hmac_signature(
        payload_body=payload_body,
        signature_header=signature_header,
        secret=settings.SETTLEMENT_CALLBACK_SECRET,
    )
    if not is_valid:
        return False, error_code, error_details

    return verify_timestamp(
        timestamp_header=timestamp_header,
        tolerance_seconds=settings.SETTLEMENT_CALLBACK_TOLERANCE_SECONDS,
    )
