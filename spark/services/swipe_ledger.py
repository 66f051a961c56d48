"""
Spark - Swipe ledger.

One row per directed ``(actor, target)`` pair.  A repeated swipe overwrites
the stored action and timestamp; it never adds a second row.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spark.exceptions import ValidationError
from spark.models.match import Swipe, SwipeAction
from spark.utils.clock import Clock, utcnow

logger = structlog.get_logger("spark.swipe_ledger")


@dataclass(frozen=True)
class SwipeOutcome:
    swipe: Swipe
    created: bool
    previous_action: SwipeAction | None = None


def parse_action(action: SwipeAction | str) -> SwipeAction:
    try:
        return SwipeAction(action)
    except ValueError:
        raise ValidationError(
            f"Unknown swipe action {action!r}; expected 'like' or 'pass'."
        ) from None


class SwipeLedger:
    """Records directional swipe actions.  All methods run inside the
    caller's session so they share its transaction."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock

    async def record_swipe(
        self,
        session: AsyncSession,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
        action: SwipeAction | str,
    ) -> SwipeOutcome:
        if actor_id == target_id:
            raise ValidationError("A profile cannot swipe on itself.")
        action = parse_action(action)
        now = self._clock()

        existing = await self._find(session, actor_id, target_id)
        if existing is not None:
            previous = existing.action
            existing.action = action
            existing.swiped_at = now
            await session.flush()
            logger.info(
                "swipe_overwritten",
                actor_id=str(actor_id),
                target_id=str(target_id),
                action=action.value,
                previous=previous.value,
            )
            return SwipeOutcome(swipe=existing, created=False, previous_action=previous)

        swipe = Swipe(
            actor_id=actor_id,
            target_id=target_id,
            action=action,
            swiped_at=now,
        )
        session.add(swipe)
        await session.flush()
        logger.info(
            "swipe_recorded",
            actor_id=str(actor_id),
            target_id=str(target_id),
            action=action.value,
        )
        return SwipeOutcome(swipe=swipe, created=True)

    async def has_swiped(
        self, session: AsyncSession, actor_id: uuid.UUID, target_id: uuid.UUID
    ) -> bool:
        return await self._find(session, actor_id, target_id) is not None

    async def get_action(
        self, session: AsyncSession, actor_id: uuid.UUID, target_id: uuid.UUID
    ) -> SwipeAction | None:
        swipe = await self._find(session, actor_id, target_id)
        return swipe.action if swipe is not None else None

    async def swiped_target_ids(
        self, session: AsyncSession, actor_id: uuid.UUID
    ) -> set[uuid.UUID]:
        result = await session.execute(
            select(Swipe.target_id).where(Swipe.actor_id == actor_id)
        )
        return set(result.scalars().all())

    async def _find(
        self, session: AsyncSession, actor_id: uuid.UUID, target_id: uuid.UUID
    ) -> Swipe | None:
        result = await session.execute(
            select(Swipe).where(
                Swipe.actor_id == actor_id,
                Swipe.target_id == target_id,
            )
        )
        return result.scalar_one_or_none()
