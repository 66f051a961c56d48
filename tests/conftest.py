"""Shared pytest fixtures for Spark tests."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from spark.config import Settings
from spark.database import build_engine, build_session_factory, init_models
from spark.services.chat_log import ChatLog
from spark.services.locks import LocalKeyedLocks
from spark.services.match_engine import MatchEngine
from spark.services.otp_service import OtpAuthenticator
from spark.services.profile_store import ProfileStore
from spark.services.swipe_ledger import SwipeLedger


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingSender:
    """CodeSender that keeps every dispatched code."""

    def __init__(self):
        self.sent = []

    async def send_code(self, email, code, expires_at):
        self.sent.append((email, code, expires_at))

    def last_code(self, email=None):
        for sent_email, code, _ in reversed(self.sent):
            if email is None or sent_email == email:
                return code
        raise AssertionError(f"no code sent to {email}")


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        REDIS_URL="",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
async def engine(test_settings):
    engine = build_engine(test_settings)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def locks():
    return LocalKeyedLocks()


@pytest.fixture
def profiles(session_factory, clock):
    return ProfileStore(session_factory, clock=clock)


@pytest.fixture
def ledger(clock):
    return SwipeLedger(clock=clock)


@pytest.fixture
def matches(session_factory, profiles, ledger, locks, clock):
    return MatchEngine(session_factory, profiles, ledger, locks, clock=clock, batch_size=2)


@pytest.fixture
def chat(session_factory, matches, locks, clock):
    return ChatLog(session_factory, matches, locks, clock=clock, max_length=50)


@pytest.fixture
def auth(session_factory, profiles, sender, locks, clock):
    return OtpAuthenticator(
        session_factory,
        profiles,
        sender,
        locks,
        clock=clock,
        ttl=timedelta(minutes=10),
        code_length=6,
    )


@pytest.fixture
def make_profile(profiles, session_factory):
    """Create a profile for ``email`` directly, bypassing the OTP handshake."""

    async def _make(email=None, **attrs):
        email = email or f"{uuid.uuid4().hex[:8]}@example.com"
        async with session_factory() as session, session.begin():
            profile, _ = await profiles.resolve_or_create(session, email)
        if attrs:
            profile = await profiles.update_profile(profile.id, attrs)
        return profile

    return _make


@pytest.fixture
async def matched_pair(make_profile, matches):
    """Two profiles that like each other, plus their match id."""
    a = await make_profile("a@example.com", name="Ana")
    b = await make_profile("b@example.com", name="Ben")
    await matches.swipe(a.id, b.id, "like")
    result = await matches.swipe(b.id, a.id, "like")
    return a, b, result.match_id
