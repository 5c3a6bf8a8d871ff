"""
Charge Orchestrator - turns one inbound charge request into one PENDING transaction

Order of operations:
1. authenticate the credential (mode is decided here)
2. refuse live charges when live settlement is switched off
3. parse and validate the payload
4. normalize and classify the phone number
5. compute the fee
6. replay an existing transaction for a repeated external_ref
7. create the PENDING transaction through the ledger
8. hand the transaction to the settlement strategy for its mode

Nothing is written before step 7, so every failure up to there leaves the ledger untouched.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from paychain.core.accounts.models import OperatingMode
from paychain.core.transactions.models import Transaction, TransactionStatus
from paychain.infrastructure.settings import Settings
from paychain.services.credentials import AuthenticatedCaller, authenticate_credential
from paychain.services.exceptions import (
    ChargeError,
    LiveSettlementUnavailableError,
    ValidationError,
)
from paychain.services.fees import calculate_fee, net_amount
from paychain.services.ledger import DuplicateExternalRefError, NewTransaction, TransactionLedger
from paychain.services.phone import resolve_phone
from paychain.services.settlement import LiveSettlementAdapter, SettlementScheduler
from paychain.utils.metrics import record_charge

logger = logging.getLogger(__name__)

MAX_EXTERNAL_REF_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000


@dataclass
class ChargeRequest:
    """Validated charge payload (phone still as supplied)"""
    amount: int
    phone: str
    currency: str
    description: Optional[str] = None
    external_ref: Optional[str] = None


@dataclass
class ChargeResult:
    """Acknowledgement body plus whether it replays an earlier charge"""
    transaction: Transaction
    body: Dict[str, Any]
    replayed: bool = False


def _format_ksh(minor_units: int) -> str:
    shillings, cents = divmod(minor_units, 100)
    if cents:
        return f"KSh {shillings:,}.{cents:02d}"
    return f"KSh {shillings:,}"


def parse_charge_body(raw_body: bytes) -> Dict[str, Any]:
    """Decode the request body; anything but a JSON object is a ValidationError"""
    if not raw_body:
        raise ValidationError("Request body is required")
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def validate_charge_payload(payload: Dict[str, Any], settings: Settings) -> ChargeRequest:
    """
    Check field shapes and the amount bounds.

    Amounts are integer minor units; floats and booleans are rejected even when whole.
    """
    amount = payload.get("amount")
    if amount is None:
        raise ValidationError("Amount is required")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be an integer in minor units (cents)")
    if amount < settings.MIN_CHARGE_AMOUNT:
        raise ValidationError(
            f"Amount must be at least {settings.MIN_CHARGE_AMOUNT} cents "
            f"({_format_ksh(settings.MIN_CHARGE_AMOUNT)})"
        )
    if amount > settings.MAX_CHARGE_AMOUNT:
        raise ValidationError(
            f"Amount must be at most {settings.MAX_CHARGE_AMOUNT} cents "
            f"({_format_ksh(settings.MAX_CHARGE_AMOUNT)})"
        )

    phone = payload.get("phone")
    if phone is None or phone == "":
        raise ValidationError("Phone number is required")
    if not isinstance(phone, str):
        raise ValidationError("Phone number must be a string")

    currency = payload.get("currency") or settings.DEFAULT_CURRENCY
    if not isinstance(currency, str) or len(currency) != 3 or not currency.isalpha():
        raise ValidationError("Currency must be a 3-letter ISO code")

    description = payload.get("description")
    if description is not None:
        if not isinstance(description, str):
            raise ValidationError("Description must be a string")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")

    external_ref = payload.get("external_ref")
    if external_ref is not None:
        if not isinstance(external_ref, str) or not external_ref:
            raise ValidationError("external_ref must be a non-empty string")
        if len(external_ref) > MAX_EXTERNAL_REF_LENGTH:
            raise ValidationError(f"external_ref must be at most {MAX_EXTERNAL_REF_LENGTH} characters")

    return ChargeRequest(
        amount=amount,
        phone=phone,
        currency=currency.upper(),
        description=description,
        external_ref=external_ref,
    )


def build_charge_response(transaction: Transaction, settings: Settings) -> Dict[str, Any]:
    """
    Acknowledgement body for a PENDING (or replayed) transaction.

    Sandbox and live callers get different shapes. A replay of a transaction that
    has already settled reports its outcome instead of the push message.
    """
    settled = transaction.status != TransactionStatus.PENDING

    if transaction.mode == OperatingMode.SANDBOX.value:
        if settled:
            message = f"[SANDBOX] Charge already processed: {transaction.status.value}"
        else:
            message = (
                f"[SANDBOX] STK Push simulated to {transaction.phone}. "
                f"Check status in ~{settings.SANDBOX_SETTLEMENT_DELAY_SECONDS} seconds."
            )
        return {
            "success": True,
            "transaction_id": transaction.id,
            "status": transaction.status.value,
            "message": message,
            "mode": OperatingMode.SANDBOX.value,
            "amount": transaction.amount,
            "fee": transaction.fee_amount,
            "net_amount": net_amount(transaction.amount, transaction.fee_amount),
        }

    return {
        "success": True,
        "transaction_id": transaction.id,
        "status": transaction.status.value,
        "message": (
            f"Charge already processed: {transaction.status.value}"
            if settled
            else f"STK Push sent to {transaction.phone}"
        ),
        "amount": transaction.amount,
        "currency": transaction.currency,
        "fee": transaction.fee_amount,
        "payment_method": transaction.payment_method.value,
    }


class ChargeOrchestrator:
    """
    Request handler for POST /api/v1/charge.

    Collaborators are injected so tests can substitute fakes for the scheduler and adapter.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings,
        scheduler: SettlementScheduler,
        live_adapter: LiveSettlementAdapter,
    ):
        self.db = db
        self.settings = settings
        self.ledger = TransactionLedger(db)
        self.scheduler = scheduler
        self.live_adapter = live_adapter

    def charge(self, credential: str, raw_body: bytes, client_ip: Optional[str] = None) -> ChargeResult:
        mode_label = "unknown"
        try:
            caller = authenticate_credential(self.db, credential)
            mode_label = caller.mode.value
            result = self._charge_authenticated(caller, raw_body, client_ip)
        except ChargeError as e:
            record_charge(mode_label, e.code)
            raise

        record_charge(mode_label, "replayed" if result.replayed else "accepted")
        return result

    def _charge_authenticated(
        self,
        caller: AuthenticatedCaller,
        raw_body: bytes,
        client_ip: Optional[str],
    ) -> ChargeResult:
        if caller.mode == OperatingMode.LIVE and not self.settings.LIVE_CHARGES_ENABLED:
            logger.warning(
                "Live charge refused: live settlement disabled",
                extra={"account_id": str(caller.account.id)},
            )
            raise LiveSettlementUnavailableError("Live charges are temporarily unavailable")

        request = validate_charge_payload(parse_charge_body(raw_body), self.settings)
        phone, rail = resolve_phone(
            request.phone,
            country_code=self.settings.COUNTRY_CODE,
            min_length=self.settings.MIN_PHONE_LENGTH,
            max_length=self.settings.MAX_PHONE_LENGTH,
        )
        fee = calculate_fee(request.amount, self.settings.FEE_RATE, self.settings.FEE_FIXED)

        if request.external_ref:
            existing = self.ledger.find_by_external_ref(caller.account.id, caller.mode, request.external_ref)
            if existing is not None:
                return self._replay(existing, request.amount, phone)

        new = NewTransaction(
            account_id=caller.account.id,
            amount=request.amount,
            currency=request.currency,
            phone=phone,
            payment_method=rail,
            mode=caller.mode,
            fee_amount=fee,
            fee_rate=self.settings.FEE_RATE,
            description=request.description,
            external_ref=request.external_ref,
            metadata={
                "ip": client_ip or "unknown",
                "settlement": "simulated" if caller.mode == OperatingMode.SANDBOX else "provider_callback",
            },
        )
        try:
            transaction = self.ledger.create(new)
        except DuplicateExternalRefError:
            # Lost the insert race to a concurrent retry with the same external_ref
            existing = self.ledger.find_by_external_ref(caller.account.id, caller.mode, request.external_ref)
            return self._replay(existing, request.amount, phone)

        if caller.mode == OperatingMode.SANDBOX:
            self.scheduler.schedule_sandbox_settlement(
                transaction.id,
                self.settings.SANDBOX_SETTLEMENT_DELAY_SECONDS,
            )
        else:
            self.live_adapter.initiate(transaction)

        return ChargeResult(transaction=transaction, body=build_charge_response(transaction, self.settings))

    def _replay(self, existing: Transaction, amount: int, phone: str) -> ChargeResult:
        if existing.amount != amount or existing.phone != phone:
            raise ValidationError("external_ref already used for a different charge")

        logger.info(
            "Charge replayed for repeated external_ref",
            extra={"transaction_id": existing.id, "account_id": str(existing.account_id)},
        )
        return ChargeResult(
            transaction=existing,
            body=build_charge_response(existing, self.settings),
            replayed=True,
        )
