"""
Account settings schemas
"""

from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator


class AccountResponse(BaseModel):
    """Merchant view of their own account; credentials are masked"""
    account_id: UUID
    business_name: str
    email: str
    status: str
    live_enabled: bool
    sandbox_api_key: Optional[str] = Field(None, description="Sandbox key (test-only, shown in full)")
    live_api_key: Optional[str] = Field(None, description="Masked live key, if one was issued")
    webhook_url: Optional[str] = None
    compliance_status: Optional[str] = None


class WebhookUpdateRequest(BaseModel):
    """Set (or clear, with null) the endpoint that receives transaction events"""
    webhook_url: Optional[str] = Field(None, max_length=2048)

    @field_validator('webhook_url')
    @classmethod
    def validate_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v.startswith(("https://", "http://")):
            raise ValueError("webhook_url must be an http(s) URL")
        return v


class WebhookUpdateResponse(BaseModel):
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = Field(
        None,
        description="Signing secret for X-PayChain-Signature; returned only when first generated",
    )


class SandboxKeyResponse(BaseModel):
    sandbox_api_key: str


class LiveKeyResponse(BaseModel):
    """The plaintext live key is returned exactly once"""
    account_id: UUID
    live_api_key: str
    masked: str
