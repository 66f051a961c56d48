from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from spark.api.deps import get_services
from spark.schemas.match import MatchListItem
from spark.schemas.profile import ProfileResponse
from spark.services.container import ServiceContainer

router = APIRouter()


@router.get(
    "/matches",
    response_model=list[MatchListItem],
    summary="List matches with the other participant's profile",
)
async def list_matches(
    profile_id: uuid.UUID = Query(..., description="Signed-in profile id"),
    services: ServiceContainer = Depends(get_services),
) -> list[MatchListItem]:
    views = await services.matches.list_matches(profile_id)
    return [
        MatchListItem(
            id=view.match.id,
            created_at=view.match.created_at,
            other=ProfileResponse.model_validate(view.counterpart),
        )
        for view in views
    ]
