"""
Settlement provider callback schemas
"""

from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class SettlementCallbackPayload(BaseModel):
    """Body the settlement provider posts once a live charge resolves"""
    transaction_id: str = Field(..., min_length=1, max_length=32)
    status: Literal["SUCCESS", "FAILED"]
    provider_ref: Optional[str] = Field(None, max_length=255, description="Network receipt number (SUCCESS only)")
    provider_event_id: Optional[str] = Field(None, max_length=255)
    failure_reason: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "transaction_id": "txn_3f2a9c1b7d4e8a0b6c5d1e2f",
                "status": "SUCCESS",
                "provider_ref": "QGH7XK2L9P",
                "provider_event_id": "evt_0001",
            }
        }
    )


class SettlementCallbackResponse(BaseModel):
    status: Literal["accepted", "duplicate"]
    transaction_id: str
    transaction_status: str
