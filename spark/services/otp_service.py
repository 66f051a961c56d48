"""
Spark - One-Time Passcode Authenticator

State per email::

    NoChallenge --request--> Pending --verify ok--> Verified (consumed)
                               |  ^
                               +--+  request again: the old one is superseded

A pending challenge expires implicitly once ``issued_at + ttl`` has passed;
verification compares against the clock and no cleanup job is needed.

Codes are stored as ``sha256("<email>:<code>")`` so a leaked table does not
reveal live codes.  Superseded and consumed rows are kept, which is what lets
``verify_code`` answer "expired" or "already used" for a code that really was
issued instead of a plain mismatch.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spark.exceptions import (
    AlreadyConsumedError,
    ExpiredError,
    MismatchError,
    NotFoundError,
    ValidationError,
)
from spark.models.otp import OtpChallenge, OtpStatus
from spark.services.code_delivery import CodeSender
from spark.services.locks import KeyedLocks, otp_key
from spark.services.profile_store import ProfileStore
from spark.utils.clock import Clock, as_utc, utcnow

logger = structlog.get_logger("spark.otp_service")


@dataclass(frozen=True)
class ChallengeIssued:
    email: str
    expires_at: datetime
    code: str | None = None  # populated only when echoing is enabled


def normalise_email(email: str) -> str:
    """Validate syntax (no DNS lookups) and return the lower-cased address."""
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Email address is required.")
    try:
        result = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email address: {exc}") from None
    return result.normalized.lower()


def hash_code(email: str, code: str) -> str:
    return hashlib.sha256(f"{email}:{code}".encode("utf-8")).hexdigest()


class OtpAuthenticator:
    """Issues and verifies single-use email codes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profiles: ProfileStore,
        sender: CodeSender,
        locks: KeyedLocks,
        clock: Clock = utcnow,
        ttl: timedelta = timedelta(minutes=10),
        code_length: int = 6,
        echo_code: bool = False,
    ) -> None:
        self._sessions = session_factory
        self._profiles = profiles
        self._sender = sender
        self._locks = locks
        self._clock = clock
        self.ttl = ttl
        self.code_length = code_length
        self.echo_code = echo_code

    # ── Public API ────────────────────────────────────────────────────────

    async def request_code(self, email: str) -> ChallengeIssued:
        """Issue a fresh code for ``email``, superseding any pending one."""
        email = normalise_email(email)
        code = self._generate_code()
        now = self._clock()
        expires_at = now + self.ttl
        log = logger.bind(email=email)

        async with self._locks.hold(otp_key(email)):
            async with self._sessions() as session, session.begin():
                superseded = await session.execute(
                    update(OtpChallenge)
                    .where(
                        OtpChallenge.email == email,
                        OtpChallenge.status == OtpStatus.PENDING,
                    )
                    .values(status=OtpStatus.SUPERSEDED)
                )
                session.add(
                    OtpChallenge(
                        email=email,
                        code_hash=hash_code(email, code),
                        issued_at=now,
                        status=OtpStatus.PENDING,
                    )
                )

        log.info("otp_issued", superseded=superseded.rowcount or 0)
        await self._sender.send_code(email, code, expires_at)

        return ChallengeIssued(
            email=email,
            expires_at=expires_at,
            code=code if self.echo_code else None,
        )

    async def verify_code(self, email: str, code: str) -> uuid.UUID:
        """Consume the pending challenge for ``email`` and return the id of
        the profile bound to that address, creating it on first sign-in."""
        email = normalise_email(email)
        code = (code or "").strip()
        submitted = hash_code(email, code)
        log = logger.bind(email=email)

        async with self._locks.hold(otp_key(email)):
            async with self._sessions() as session, session.begin():
                challenges = await self._challenges(session, email)
                if not challenges:
                    log.warning("otp_verify_no_challenge")
                    raise NotFoundError("No code has been requested for this email.")

                latest, older = challenges[0], challenges[1:]
                now = self._clock()

                if hmac.compare_digest(latest.code_hash, submitted):
                    if latest.status is OtpStatus.CONSUMED:
                        log.warning("otp_verify_replayed")
                        raise AlreadyConsumedError("This code has already been used.")
                elif any(hmac.compare_digest(c.code_hash, submitted) for c in older):
                    log.warning("otp_verify_superseded")
                    raise ExpiredError("This code was replaced by a newer one.")
                elif latest.status is OtpStatus.PENDING:
                    if as_utc(latest.issued_at) + self.ttl > now:
                        log.warning("otp_verify_mismatch")
                        raise MismatchError("Incorrect code.")
                else:
                    log.warning("otp_verify_no_pending")
                    raise NotFoundError("No outstanding code for this email.")

                if as_utc(latest.issued_at) + self.ttl <= now:
                    log.warning("otp_verify_expired")
                    raise ExpiredError("This code has expired; request a new one.")

                latest.status = OtpStatus.CONSUMED
                latest.consumed_at = now
                profile, created = await self._profiles.resolve_or_create(session, email)
                profile_id = profile.id

        log.info("otp_verified", profile_id=str(profile_id), new_profile=created)
        return profile_id

    # ── Private helpers ───────────────────────────────────────────────────

    def _generate_code(self) -> str:
        return f"{secrets.randbelow(10 ** self.code_length):0{self.code_length}d}"

    async def _challenges(self, session: AsyncSession, email: str) -> list[OtpChallenge]:
        result = await session.execute(
            select(OtpChallenge)
            .where(OtpChallenge.email == email)
            .order_by(OtpChallenge.issued_at.desc(), OtpChallenge.id.desc())
        )
        return list(result.scalars().all())
