from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Optional

class OtpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)

class OtpRequestResponse(BaseModel):
    ok: bool = True
    expires_at: datetime
    code: Optional[str] = None  # demo mode only

class OtpVerify(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    code: str = Field(..., min_length=1, max_length=16)

class OtpVerifyResponse(BaseModel):
    ok: bool = True
    profile_id: UUID
