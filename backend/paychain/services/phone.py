"""
Phone normalization and payment rail classification

Pure functions: no I/O, no settings lookups. Callers pass the country code and
minimum length from configuration.
"""

import re
from typing import Optional, Tuple

from paychain.core.transactions.models import PaymentRail
from paychain.services.exceptions import ClassificationError

DEFAULT_COUNTRY_CODE = "254"
DEFAULT_MIN_LENGTH = 12
DEFAULT_MAX_LENGTH = 15  # E.164 ceiling

_NON_DIGITS = re.compile(r"\D")

# Ordered: first matching group wins
RAIL_PREFIXES: Tuple[Tuple[PaymentRail, Tuple[str, ...]], ...] = (
    (PaymentRail.MPESA, ("2547", "2541", "01", "07")),  # Safaricom
    (PaymentRail.AIRTEL, ("2548", "2550", "08", "050")),
)

# Unmatched but plausibly domestic numbers go to the primary national operator
FALLBACK_RAIL = PaymentRail.MPESA


def strip_non_digits(raw: str) -> str:
    return _NON_DIGITS.sub("", raw or "")


def normalize_phone(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Convert a caller-supplied phone number to canonical international digits.

    "0712 345 678" -> "254712345678"
    "+254712345678" -> "254712345678"
    "712345678" -> "254712345678"

    Idempotent: normalize_phone(normalize_phone(x)) == normalize_phone(x).
    """
    cleaned = strip_non_digits(raw)

    if cleaned.startswith("0"):
        cleaned = country_code + cleaned[1:]

    if not cleaned.startswith(country_code):
        cleaned = country_code + cleaned

    return cleaned


def classify_phone(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[PaymentRail]:
    """
    Detect the payment rail from the number's prefix.

    Formatting characters are ignored. Returns None when the number matches no
    prefix group and does not look domestic.
    """
    cleaned = strip_non_digits(phone)

    for rail, prefixes in RAIL_PREFIXES:
        if cleaned.startswith(prefixes):
            return rail

    if cleaned.startswith(country_code) or cleaned.startswith("0"):
        return FALLBACK_RAIL

    return None


def resolve_phone(
    raw: str,
    *,
    country_code: str = DEFAULT_COUNTRY_CODE,
    min_length: int = DEFAULT_MIN_LENGTH,
    max_length: int = DEFAULT_MAX_LENGTH,
) -> Tuple[str, PaymentRail]:
    """
    Normalize and classify in one step.

    Returns (canonical_phone, rail).
    Raises ClassificationError if the canonical number is outside [min_length, max_length]
    or no rail matches.
    """
    canonical = normalize_phone(raw, country_code)
    if not min_length <= len(canonical) <= max_length:
        raise ClassificationError("Invalid phone number format")

    rail = classify_phone(canonical, country_code)
    if rail is None:
        raise ClassificationError("Unsupported phone number. Use Safaricom or Airtel numbers.")

    return canonical, rail
