"""
Spark - Discovery & Match Engine

Turns swipes into matches and feeds the discovery deck.

  swipe(A, B, like)
    1. enter the critical section for the canonical pair (low, high)
    2. row-lock both profiles (SELECT ... FOR UPDATE, ascending id)
    3. record A -> B in the swipe ledger
    4. if B -> A is also a like and no match exists for (low, high),
       insert exactly one Match
    5. commit, leave the critical section

Steps 2-5 share one transaction, so a failure leaves neither the swipe nor
the match behind.  The row locks serialise the two directions of a pair in
the database itself, so workers using process-local locks, or a Redis lock
that expired mid-swipe, still see each other's committed swipe and the pair
cannot end with zero matches.  ``uq_match_pair`` rules out a second one.
"""

from __future__ import annotations

import uuid
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spark.exceptions import ConflictError, NotFoundError, ValidationError
from spark.models.match import Match, SwipeAction
from spark.models.profile import Profile
from spark.services.locks import KeyedLocks, pair_key
from spark.services.profile_store import ProfileStore
from spark.services.swipe_ledger import SwipeLedger, parse_action
from spark.utils.clock import Clock, utcnow

logger = structlog.get_logger("spark.match_engine")


def canonical_pair(a: uuid.UUID, b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    """Order two distinct profile ids so (a, b) and (b, a) key identically."""
    if a == b:
        raise ValidationError("A match needs two distinct profiles.")
    return (a, b) if a < b else (b, a)


@dataclass(frozen=True)
class SwipeResult:
    matched: bool
    match_id: uuid.UUID | None = None


@dataclass(frozen=True)
class MatchView:
    match: Match
    counterpart: Profile


class MatchEngine:
    """Discovery queue, reciprocal-like detection and match listing.

    Dependencies are injected at construction so that the engine can be
    wired in the application lifespan and rebuilt freely in tests.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profiles: ProfileStore,
        ledger: SwipeLedger,
        locks: KeyedLocks,
        clock: Clock = utcnow,
        batch_size: int = 50,
    ) -> None:
        self._sessions = session_factory
        self._profiles = profiles
        self._ledger = ledger
        self._locks = locks
        self._clock = clock
        self._batch_size = batch_size

    # ── Discovery ─────────────────────────────────────────────────────────

    async def discovery_queue(self, profile_id: uuid.UUID) -> AsyncIterator[Profile]:
        """Yield swipe candidates for ``profile_id`` in ascending id order.

        The exclusion set (self, already swiped, already matched) is read
        once per call, so every call restarts from the current ledger state
        while profiles are paged lazily.
        """
        async with self._sessions() as session:
            await self._profiles.get(session, profile_id)

            excluded = await self._ledger.swiped_target_ids(session, profile_id)
            excluded |= await self._matched_ids(session, profile_id)
            excluded.add(profile_id)

            after: uuid.UUID | None = None
            while True:
                page = await self._profiles.page_after(session, after, self._batch_size)
                if not page:
                    return
                for candidate in page:
                    if candidate.id not in excluded:
                        yield candidate
                after = page[-1].id

    async def list_candidates(self, profile_id: uuid.UUID, limit: int) -> list[Profile]:
        candidates: list[Profile] = []
        if limit <= 0:
            return candidates
        async with aclosing(self.discovery_queue(profile_id)) as queue:
            async for candidate in queue:
                candidates.append(candidate)
                if len(candidates) >= limit:
                    break
        logger.info(
            "discovery_candidates",
            profile_id=str(profile_id),
            count=len(candidates),
        )
        return candidates

    # ── Swiping ───────────────────────────────────────────────────────────

    async def swipe(
        self,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
        action: SwipeAction | str,
    ) -> SwipeResult:
        """Record a swipe and create the match if this completes a mutual like."""
        if actor_id == target_id:
            raise ValidationError("A profile cannot swipe on itself.")
        low, high = canonical_pair(actor_id, target_id)
        action = parse_action(action)
        log = logger.bind(
            actor_id=str(actor_id),
            target_id=str(target_id),
            action=action.value,
        )

        try:
            async with self._locks.hold(pair_key(low, high)):
                async with self._sessions() as session, session.begin():
                    locked = await self._profiles.lock_many(session, (low, high))
                    for pid in (actor_id, target_id):
                        if pid not in locked:
                            raise NotFoundError(f"Profile {pid} not found.")

                    await self._ledger.record_swipe(session, actor_id, target_id, action)
                    if action is not SwipeAction.LIKE:
                        return SwipeResult(matched=False)

                    reverse = await self._ledger.get_action(session, target_id, actor_id)
                    if reverse is not SwipeAction.LIKE:
                        return SwipeResult(matched=False)

                    if await self._find_pair(session, low, high) is not None:
                        log.info("match_already_exists")
                        return SwipeResult(matched=False)

                    match = Match(
                        id=uuid.uuid4(),
                        profile_a_id=low,
                        profile_b_id=high,
                        created_at=self._clock(),
                    )
                    session.add(match)
                    await session.flush()
        except IntegrityError as exc:
            log.warning("match_insert_conflict", error=str(exc.orig))
            raise ConflictError(
                "Another request created this match concurrently; retry the swipe."
            ) from exc

        log.info("match_created", match_id=str(match.id))
        return SwipeResult(matched=True, match_id=match.id)

    # ── Matches ───────────────────────────────────────────────────────────

    async def get_match(self, session: AsyncSession, match_id: uuid.UUID) -> Match:
        match = await session.get(Match, match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found.")
        return match

    async def match_for_pair(
        self, session: AsyncSession, a: uuid.UUID, b: uuid.UUID
    ) -> Match | None:
        low, high = canonical_pair(a, b)
        return await self._find_pair(session, low, high)

    async def list_matches(self, profile_id: uuid.UUID) -> list[MatchView]:
        """All matches of ``profile_id``, newest first, each with the other
        participant's profile attached for display."""
        async with self._sessions() as session:
            await self._profiles.get(session, profile_id)
            result = await session.execute(
                select(Match)
                .where(or_(Match.profile_a_id == profile_id, Match.profile_b_id == profile_id))
                .order_by(Match.created_at.desc(), Match.id)
            )
            matches = list(result.scalars().all())
            others = await self._profiles.get_many(
                session, (m.counterpart_of(profile_id) for m in matches)
            )

        views = [
            MatchView(match=m, counterpart=others[m.counterpart_of(profile_id)])
            for m in matches
            if m.counterpart_of(profile_id) in others
        ]
        logger.info("list_matches", profile_id=str(profile_id), count=len(views))
        return views

    # ── Private helpers ───────────────────────────────────────────────────

    async def _find_pair(
        self, session: AsyncSession, low: uuid.UUID, high: uuid.UUID
    ) -> Match | None:
        result = await session.execute(
            select(Match).where(Match.profile_a_id == low, Match.profile_b_id == high)
        )
        return result.scalar_one_or_none()

    async def _matched_ids(self, session: AsyncSession, profile_id: uuid.UUID) -> set[uuid.UUID]:
        result = await session.execute(
            select(Match).where(
                or_(Match.profile_a_id == profile_id, Match.profile_b_id == profile_id)
            )
        )
        return {m.counterpart_of(profile_id) for m in result.scalars().all()}
