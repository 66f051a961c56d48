"""
Spark - One-time passcode challenges.

Rows are kept after they stop being pending so that a superseded or replayed
code can be told apart from a code that was never issued.
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from spark.database import Base


class OtpStatus(str, enum.Enum):
    PENDING = "pending"
    CONSUMED = "consumed"
    SUPERSEDED = "superseded"


class OtpChallenge(Base):
    __tablename__ = "otp_challenges"
    __table_args__ = (
        Index("ix_otp_email_issued", "email", "issued_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    code_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="sha256(email:code)"
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    status: Mapped[OtpStatus] = mapped_column(
        Enum(OtpStatus, native_enum=False, length=16),
        default=OtpStatus.PENDING,
        nullable=False,
    )
    consumed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<OtpChallenge {self.email!r} status={self.status.value}>"
