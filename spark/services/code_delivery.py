"""
Spark - Out-of-band delivery of one-time passcodes.

The authenticator hands every fresh code to a ``CodeSender``.  Deployments
plug in an email provider; the default sender only writes a log line and
keeps the code itself out of production logs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

import structlog

logger = structlog.get_logger("spark.code_delivery")


class CodeSender(Protocol):
    async def send_code(self, email: str, code: str, expires_at: datetime) -> None:
        ...


class LogCodeSender:
    """Logs the dispatch.  The code is included only when ``reveal_code``."""

    def __init__(self, reveal_code: bool = False) -> None:
        self.reveal_code = reveal_code

    async def send_code(self, email: str, code: str, expires_at: datetime) -> None:
        event = {"email": email, "expires_at": expires_at.isoformat()}
        if self.reveal_code:
            event["code"] = code
        logger.info("otp_code_dispatched", **event)
