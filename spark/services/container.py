"""
Spark - Service container.

Built once in the application lifespan and torn down at shutdown; routes
reach the stores through ``request.app.state.services`` instead of module
level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from spark.config import Settings
from spark.database import build_session_factory
from spark.services.chat_log import ChatLog
from spark.services.code_delivery import CodeSender, LogCodeSender
from spark.services.locks import KeyedLocks, LocalKeyedLocks, RedisKeyedLocks
from spark.services.match_engine import MatchEngine
from spark.services.otp_service import OtpAuthenticator
from spark.services.profile_store import ProfileStore
from spark.services.swipe_ledger import SwipeLedger
from spark.utils.clock import Clock, utcnow


@dataclass
class ServiceContainer:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    locks: KeyedLocks
    profiles: ProfileStore
    ledger: SwipeLedger
    matches: MatchEngine
    chat: ChatLog
    auth: OtpAuthenticator


def build_services(
    settings: Settings,
    engine: AsyncEngine,
    redis=None,
    sender: CodeSender | None = None,
    clock: Clock = utcnow,
) -> ServiceContainer:
    """Wire every component against ``engine``.

    A Redis client switches the critical sections to distributed locks;
    without one they are process-local.
    """
    session_factory = build_session_factory(engine)

    if redis is not None:
        locks: KeyedLocks = RedisKeyedLocks(
            redis,
            timeout=settings.LOCK_TIMEOUT_SECONDS,
            blocking_timeout=settings.LOCK_WAIT_SECONDS,
        )
    else:
        locks = LocalKeyedLocks()

    if sender is None:
        sender = LogCodeSender(reveal_code=not settings.is_production)

    profiles = ProfileStore(session_factory, clock=clock)
    ledger = SwipeLedger(clock=clock)
    matches = MatchEngine(
        session_factory,
        profiles,
        ledger,
        locks,
        clock=clock,
        batch_size=settings.DISCOVERY_BATCH_SIZE,
    )
    chat = ChatLog(
        session_factory,
        matches,
        locks,
        clock=clock,
        max_length=settings.MESSAGE_MAX_LENGTH,
    )
    auth = OtpAuthenticator(
        session_factory,
        profiles,
        sender,
        locks,
        clock=clock,
        ttl=timedelta(minutes=settings.OTP_TTL_MINUTES),
        code_length=settings.OTP_CODE_LENGTH,
        echo_code=settings.echo_otp_codes,
    )

    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        locks=locks,
        profiles=profiles,
        ledger=ledger,
        matches=matches,
        chat=chat,
        auth=auth,
    )
