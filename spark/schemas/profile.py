from pydantic import BaseModel, Field, model_validator
from uuid import UUID
from datetime import datetime
from typing import Any, Optional

# Echoed back by clients that PUT the profile they fetched; never applied.
READ_ONLY_FIELDS = frozenset({"id", "email", "created_at", "updated_at"})

class ProfileResponse(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    bio: Optional[str] = None
    interests: list[str] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    age: Optional[int] = Field(None, ge=18, le=100)
    gender: Optional[str] = Field(None, max_length=32)
    bio: Optional[str] = Field(None, max_length=2000)
    interests: Optional[list[str]] = None

    model_config = {"extra": "forbid"}

    @model_validator(mode="before")
    @classmethod
    def _drop_read_only(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if k not in READ_ONLY_FIELDS}
        return data
