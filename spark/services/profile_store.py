"""
Spark - Profile store.

Owns the ``profiles`` table.  Other components never query it directly:
they call the session-scoped helpers below from inside their own
transaction, so a profile lookup participates in the caller's unit of work.
"""

from __future__ import annotations

import uuid
from typing import Any, Iterable

import structlog
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spark.exceptions import NotFoundError, ValidationError
from spark.models.profile import Profile
from spark.utils.clock import Clock, utcnow

logger = structlog.get_logger("spark.profile_store")

MUTABLE_FIELDS = frozenset({"name", "age", "gender", "bio", "interests"})
MIN_AGE = 18
MAX_AGE = 100


def normalise_interests(values: Iterable[Any]) -> list[str]:
    """Trim each tag and drop blanks, keeping the caller's order."""
    cleaned: list[str] = []
    for value in values:
        if not isinstance(value, str):
            raise ValidationError("Interests must be strings.")
        tag = value.strip()
        if tag:
            cleaned.append(tag)
    return cleaned


def select_for_update(profile_ids: Iterable[uuid.UUID]) -> Select:
    return (
        select(Profile)
        .where(Profile.id.in_(list(profile_ids)))
        .order_by(Profile.id)
        .with_for_update()
    )


class ProfileStore:
    """Identity and attribute records keyed by id, unique by email."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utcnow,
    ) -> None:
        self._sessions = session_factory
        self._clock = clock

    # ── Public operations (own transaction) ───────────────────────────────

    async def get_profile(self, profile_id: uuid.UUID) -> Profile:
        async with self._sessions() as session:
            return await self.get(session, profile_id)

    async def update_profile(self, profile_id: uuid.UUID, patch: dict[str, Any]) -> Profile:
        """Apply ``patch`` to the mutable attributes of a profile.

        Keys outside ``MUTABLE_FIELDS`` (including ``id`` and ``email``) are
        rejected so identity can never change through this path.
        """
        unknown = set(patch) - MUTABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update field(s): {', '.join(sorted(unknown))}."
            )
        changes = dict(patch)
        if changes.get("age") is not None:
            age = changes["age"]
            if not isinstance(age, int) or not MIN_AGE <= age <= MAX_AGE:
                raise ValidationError(f"Age must be between {MIN_AGE} and {MAX_AGE}.")
        if "interests" in changes:
            changes["interests"] = normalise_interests(changes["interests"] or [])

        log = logger.bind(profile_id=str(profile_id))
        async with self._sessions() as session, session.begin():
            profile = await self.get(session, profile_id)
            for field, value in changes.items():
                setattr(profile, field, value)
            profile.updated_at = self._clock()

        log.info("profile_updated", updated_fields=sorted(changes))
        return profile

    # ── Session-scoped helpers ────────────────────────────────────────────

    async def get(self, session: AsyncSession, profile_id: uuid.UUID) -> Profile:
        profile = await session.get(Profile, profile_id)
        if profile is None:
            raise NotFoundError(f"Profile {profile_id} not found.")
        return profile

    async def lock_many(
        self, session: AsyncSession, profile_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, Profile]:
        """Load and row-lock ``profile_ids`` until the transaction ends.

        Rows are locked in ascending id order so two transactions locking
        the same pair cannot deadlock.  SQLite has no row locks and already
        serialises writers, so there the clause is dropped.
        """
        result = await session.execute(select_for_update(profile_ids))
        return {p.id: p for p in result.scalars().all()}

    async def find_by_email(self, session: AsyncSession, email: str) -> Profile | None:
        result = await session.execute(select(Profile).where(Profile.email == email))
        return result.scalar_one_or_none()

    async def resolve_or_create(self, session: AsyncSession, email: str) -> tuple[Profile, bool]:
        """Return the profile for ``email``, creating an empty one if needed.

        The caller must hold the ``otp:<email>`` critical section so two
        verifications cannot both create a profile.
        """
        existing = await self.find_by_email(session, email)
        if existing is not None:
            return existing, False

        profile = Profile(
            id=uuid.uuid4(),
            email=email,
            interests=[],
            created_at=self._clock(),
        )
        session.add(profile)
        await session.flush()
        logger.info("profile_created", profile_id=str(profile.id))
        return profile, True

    async def get_many(
        self, session: AsyncSession, profile_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, Profile]:
        ids = list(profile_ids)
        if not ids:
            return {}
        result = await session.execute(select(Profile).where(Profile.id.in_(ids)))
        return {p.id: p for p in result.scalars().all()}

    async def page_after(
        self,
        session: AsyncSession,
        after_id: uuid.UUID | None,
        limit: int,
    ) -> list[Profile]:
        """Keyset page of profiles in ascending id order."""
        stmt = select(Profile).order_by(Profile.id).limit(limit)
        if after_id is not None:
            stmt = stmt.where(Profile.id > after_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())
