"""
Spark - Chat message model.

Messages are keyed by ``(match_id, id)``; ``id`` is a per-match sequence
starting at 1 and is the authoritative display order.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from spark.database import Base


class Message(Base):
    __tablename__ = "messages"

    match_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True
    )
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Message {self.match_id}#{self.id} from={self.sender_id}>"
