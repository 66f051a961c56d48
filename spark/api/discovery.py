"""
Spark - Discovery API

The swipe deck and the swipe action itself.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from spark.api.deps import get_services
from spark.models.profile import Profile
from spark.schemas.match import SwipeCreate, SwipeResponse
from spark.schemas.profile import ProfileResponse
from spark.services.container import ServiceContainer

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /discover - Swipe candidates
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/discover",
    response_model=list[ProfileResponse],
    summary="Get discovery candidates",
)
async def discover(
    profile_id: uuid.UUID = Query(..., description="Signed-in profile id"),
    limit: Optional[int] = Query(None, ge=1, le=100, description="Max candidates to return"),
    services: ServiceContainer = Depends(get_services),
) -> list[Profile]:
    """Profiles the caller has not swiped yet and is not matched with,
    excluding the caller, in a stable order."""
    if limit is None:
        limit = services.settings.DISCOVERY_DEFAULT_LIMIT
    return await services.matches.list_candidates(profile_id, limit)


# ──────────────────────────────────────────────────────────────────────────────
# POST /swipe - Like or pass
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/swipe",
    response_model=SwipeResponse,
    summary="Like or pass on a profile",
)
async def swipe(
    payload: SwipeCreate,
    profile_id: uuid.UUID = Query(..., description="Signed-in profile id"),
    services: ServiceContainer = Depends(get_services),
) -> SwipeResponse:
    """Record the swipe.  ``matched`` is true only for the swipe that
    completes a mutual like."""
    result = await services.matches.swipe(profile_id, payload.target_id, payload.action)
    return SwipeResponse(matched=result.matched, match_id=result.match_id)
