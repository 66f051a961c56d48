from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime

class MessageCreate(BaseModel):
    text: str = Field(..., max_length=10000)

class MessageResponse(BaseModel):
    id: int
    match_id: UUID
    sender_id: UUID
    text: str
    sent_at: datetime

    model_config = {"from_attributes": True}
