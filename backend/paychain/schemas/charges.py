"""
Charge API response schemas

Request bodies are validated by the charge orchestrator itself so that every
rejection uses the {"success": false, "error": ...} shape.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from paychain.core.transactions.models import Transaction


class SandboxChargeResponse(BaseModel):
    """Acknowledgement returned to sandbox credentials"""
    success: bool = True
    transaction_id: str
    status: str
    message: str
    mode: str = "sandbox"
    amount: int = Field(..., description="Amount in minor units")
    fee: int = Field(..., description="Platform fee in minor units")
    net_amount: int = Field(..., description="amount - fee")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "transaction_id": "txn_3f2a9c1b7d4e8a0b6c5d1e2f",
                "status": "PENDING",
                "message": "[SANDBOX] STK Push simulated to 254712345678. Check status in ~3 seconds.",
                "mode": "sandbox",
                "amount": 10000,
                "fee": 2250,
                "net_amount": 7750,
            }
        }
    )


class LiveChargeResponse(BaseModel):
    """Acknowledgement returned to live credentials"""
    success: bool = True
    transaction_id: str
    status: str
    message: str
    amount: int
    currency: str
    fee: int
    payment_method: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "transaction_id": "txn_3f2a9c1b7d4e8a0b6c5d1e2f",
                "status": "PENDING",
                "message": "STK Push sent to 254712345678",
                "amount": 10000,
                "currency": "KES",
                "fee": 2250,
                "payment_method": "MPESA",
            }
        }
    )


class ChargeErrorResponse(BaseModel):
    """Every classified charge failure"""
    success: bool = False
    error: str


class TransactionResponse(BaseModel):
    """Current state of one transaction, for merchant polling"""
    transaction_id: str
    status: str
    amount: int
    currency: str
    fee: int
    net_amount: int
    phone: str
    payment_method: str
    mode: Optional[str] = None
    description: Optional[str] = None
    external_ref: Optional[str] = None
    provider_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionResponse":
        meta: Dict[str, Any] = transaction.meta or {}
        return cls(
            transaction_id=transaction.id,
            status=transaction.status.value,
            amount=transaction.amount,
            currency=transaction.currency,
            fee=transaction.fee_amount,
            net_amount=transaction.amount - transaction.fee_amount,
            phone=transaction.phone,
            payment_method=transaction.payment_method.value,
            mode=transaction.mode,
            description=transaction.description,
            external_ref=transaction.external_ref,
            provider_ref=transaction.provider_ref,
            failure_reason=meta.get("failure_reason"),
            created_at=transaction.created_at,
            completed_at=transaction.completed_at,
        )
