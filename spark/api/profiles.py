"""
Spark - Profiles API

Read and edit a profile.  ``/me`` mirrors the client's query-string style;
``/{profile_id}`` is the path-style equivalent.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Query

from spark.api.deps import get_services
from spark.models.profile import Profile
from spark.schemas.profile import ProfileResponse, ProfileUpdate
from spark.services.container import ServiceContainer

logger = structlog.get_logger("spark.api.profiles")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET/PUT /me?profile_id=
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/me", response_model=ProfileResponse, summary="Get the caller's profile")
async def get_me(
    profile_id: uuid.UUID = Query(..., description="Signed-in profile id"),
    services: ServiceContainer = Depends(get_services),
) -> Profile:
    return await services.profiles.get_profile(profile_id)


@router.put("/me", response_model=ProfileResponse, summary="Update the caller's profile")
async def update_me(
    payload: ProfileUpdate,
    profile_id: uuid.UUID = Query(..., description="Signed-in profile id"),
    services: ServiceContainer = Depends(get_services),
) -> Profile:
    return await _apply_update(services, profile_id, payload)


# ──────────────────────────────────────────────────────────────────────────────
# GET/PUT /{profile_id}
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/{profile_id}", response_model=ProfileResponse, summary="Get profile by ID")
async def get_profile(
    profile_id: uuid.UUID,
    services: ServiceContainer = Depends(get_services),
) -> Profile:
    return await services.profiles.get_profile(profile_id)


@router.put("/{profile_id}", response_model=ProfileResponse, summary="Update profile details")
async def update_profile(
    profile_id: uuid.UUID,
    payload: ProfileUpdate,
    services: ServiceContainer = Depends(get_services),
) -> Profile:
    """Update mutable fields on a profile.

    Only fields present in the request body are applied.
    """
    return await _apply_update(services, profile_id, payload)


async def _apply_update(
    services: ServiceContainer, profile_id: uuid.UUID, payload: ProfileUpdate
) -> Profile:
    patch = payload.model_dump(exclude_unset=True)
    logger.info("update_profile", profile_id=str(profile_id), fields=sorted(patch))
    return await services.profiles.update_profile(profile_id, patch)
