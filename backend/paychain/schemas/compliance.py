"""
Compliance (KYC) request/response schemas
"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field

from paychain.core.compliance.models import ComplianceRecord


class ComplianceSubmitRequest(BaseModel):
    """Create or update the KYC record; submit=false saves a draft"""
    director_name: Optional[str] = Field(None, max_length=255)
    director_id_number: Optional[str] = Field(None, max_length=64)
    physical_address: Optional[str] = None
    tax_pin: Optional[str] = Field(None, max_length=64)
    monthly_volume: Optional[int] = Field(None, ge=0, description="Declared monthly volume in minor units")
    id_document_ref: Optional[str] = Field(None, max_length=1024)
    registration_document_ref: Optional[str] = Field(None, max_length=1024)
    submit: bool = True

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "director_name": "Jane Wanjiku",
                "director_id_number": "12345678",
                "physical_address": "Moi Avenue, Nairobi",
                "tax_pin": "A012345678Z",
                "monthly_volume": 50000000,
                "id_document_ref": "kyc/3f2a/id.pdf",
                "registration_document_ref": "kyc/3f2a/registration.pdf",
                "submit": True,
            }
        }
    )


class ComplianceRecordResponse(BaseModel):
    account_id: UUID
    status: str
    director_name: Optional[str] = None
    director_id_number: Optional[str] = None
    physical_address: Optional[str] = None
    tax_pin: Optional[str] = None
    monthly_volume: Optional[int] = None
    id_document_ref: Optional[str] = None
    registration_document_ref: Optional[str] = None
    rejection_reason: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: ComplianceRecord) -> "ComplianceRecordResponse":
        return cls(
            account_id=record.account_id,
            status=record.status.value,
            director_name=record.director_name,
            director_id_number=record.director_id_number,
            physical_address=record.physical_address,
            tax_pin=record.tax_pin,
            monthly_volume=record.monthly_volume,
            id_document_ref=record.id_document_ref,
            registration_document_ref=record.registration_document_ref,
            rejection_reason=record.rejection_reason,
            updated_at=record.updated_at or record.created_at,
        )


class ComplianceRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Mandatory reason (shown to the merchant, kept in the audit trail)")


class AccountSuspendRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Mandatory reason (audit trail)")


class AccountStatusResponse(BaseModel):
    account_id: UUID
    status: str
