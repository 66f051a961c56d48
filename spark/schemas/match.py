from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional

from spark.models.match import SwipeAction
from spark.schemas.profile import ProfileResponse

class SwipeCreate(BaseModel):
    target_id: UUID
    action: SwipeAction

class SwipeResponse(BaseModel):
    matched: bool
    match_id: Optional[UUID] = None

class MatchListItem(BaseModel):
    id: UUID
    created_at: datetime
    other: ProfileResponse
