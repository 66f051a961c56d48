"""
Spark - Per-match chat log.

Append-only and pull-delivered: clients poll ``read`` with the last id they
have seen.  Message ids are a gapless 1, 2, 3 ... sequence per match, handed
out inside the ``chat:<match_id>`` critical section, so id order is the
display order and ``read(since_id=n)`` returns exactly the unseen suffix.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spark.exceptions import ForbiddenError, ValidationError
from spark.models.message import Message
from spark.services.locks import KeyedLocks, chat_key
from spark.services.match_engine import MatchEngine
from spark.utils.clock import Clock, utcnow

logger = structlog.get_logger("spark.chat_log")


class ChatLog:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        matches: MatchEngine,
        locks: KeyedLocks,
        clock: Clock = utcnow,
        max_length: int = 2000,
    ) -> None:
        self._sessions = session_factory
        self._matches = matches
        self._locks = locks
        self._clock = clock
        self._max_length = max_length

    async def append(self, match_id: uuid.UUID, sender_id: uuid.UUID, text: str) -> Message:
        """Append ``text`` from ``sender_id`` to the match and return it.

        Raises ``NotFoundError`` for an unknown match, ``ForbiddenError`` when
        the sender is not one of its two participants and ``ValidationError``
        for blank or oversized text.
        """
        log = logger.bind(match_id=str(match_id), sender_id=str(sender_id))

        async with self._locks.hold(chat_key(match_id)):
            async with self._sessions() as session, session.begin():
                match = await self._matches.get_match(session, match_id)
                if sender_id not in match.participants():
                    log.warning("append_forbidden")
                    raise ForbiddenError("Sender is not a participant of this match.")
                if not text or not text.strip():
                    raise ValidationError("Message text must not be empty.")
                if len(text) > self._max_length:
                    raise ValidationError(
                        f"Message text exceeds {self._max_length} characters."
                    )

                last_id = await self._last_id(session, match_id)
                message = Message(
                    match_id=match_id,
                    id=last_id + 1,
                    sender_id=sender_id,
                    text=text,
                    sent_at=self._clock(),
                )
                session.add(message)
                await session.flush()

        log.info("message_appended", message_id=message.id)
        return message

    async def read(
        self,
        match_id: uuid.UUID,
        since_id: int | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        """Messages of the match in ascending id order, only ``id > since_id``
        when given.  Safe to call repeatedly; it never mutates state."""
        async with self._sessions() as session:
            await self._matches.get_match(session, match_id)

            stmt = select(Message).where(Message.match_id == match_id).order_by(Message.id)
            if since_id is not None:
                stmt = stmt.where(Message.id > since_id)
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            messages = list(result.scalars().all())

        logger.debug(
            "messages_read",
            match_id=str(match_id),
            since_id=since_id,
            count=len(messages),
        )
        return messages

    async def _last_id(self, session: AsyncSession, match_id: uuid.UUID) -> int:
        result = await session.execute(
            select(func.coalesce(func.max(Message.id), 0)).where(Message.match_id == match_id)
        )
        return int(result.scalar_one())
