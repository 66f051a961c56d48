"""
Spark - Chat API

Clients poll ``GET /messages`` (optionally with the last id they hold) and
post new messages with ``POST /messages``.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from spark.api.deps import get_services
from spark.models.message import Message
from spark.schemas.message import MessageCreate, MessageResponse
from spark.services.container import ServiceContainer

router = APIRouter()


@router.get(
    "/messages",
    response_model=list[MessageResponse],
    summary="List messages of a match",
)
async def list_messages(
    match_id: uuid.UUID = Query(...),
    since_id: Optional[int] = Query(None, ge=0, description="Only messages after this id"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    services: ServiceContainer = Depends(get_services),
) -> list[Message]:
    return await services.chat.read(match_id, since_id=since_id, limit=limit)


@router.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to a match",
)
async def send_message(
    payload: MessageCreate,
    match_id: uuid.UUID = Query(...),
    sender_id: uuid.UUID = Query(...),
    services: ServiceContainer = Depends(get_services),
) -> Message:
    return await services.chat.append(match_id, sender_id, payload.text)
