"""
Spark - Match and Swipe models.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from spark.database import Base


class SwipeAction(str, enum.Enum):
    LIKE = "like"
    PASS = "pass"


class Match(Base):
    """A mutual like.  ``profile_a_id`` is always the lower of the two ids."""

    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("profile_a_id", "profile_b_id", name="uq_match_pair"),
        Index("ix_match_profile_b", "profile_b_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    profile_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    profile_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def participants(self) -> tuple[uuid.UUID, uuid.UUID]:
        return (self.profile_a_id, self.profile_b_id)

    def counterpart_of(self, profile_id: uuid.UUID) -> uuid.UUID:
        return self.profile_b_id if profile_id == self.profile_a_id else self.profile_a_id

    def __repr__(self) -> str:
        return f"<Match {self.profile_a_id} <-> {self.profile_b_id}>"


class Swipe(Base):
    __tablename__ = "swipes"
    __table_args__ = (
        UniqueConstraint("actor_id", "target_id", name="uq_swipe_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[SwipeAction] = mapped_column(
        Enum(SwipeAction, native_enum=False, length=8), nullable=False
    )
    swiped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Swipe {self.actor_id} -> {self.target_id} action={self.action.value!r}>"
