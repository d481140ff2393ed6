"""Chat session and message models."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from equiscope.config import paris_now_naive
from equiscope.models.database import Base


class ChatSession(Base):
    """A conversation with the race assistant."""

    __tablename__ = "chat_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    current_race_guid: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    current_horse_slug: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=paris_now_naive)
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime, default=paris_now_naive)

    messages: Mapped[List["ChatMessage"]] = relationship(
        "ChatMessage", back_populates="session", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "current_race_guid": self.current_race_guid,
            "current_horse_slug": self.current_horse_slug,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "last_activity_at": self.last_activity_at.isoformat() if self.last_activity_at else None,
        }


class ChatMessage(Base):
    """One turn of a chat session (user or assistant)."""

    __tablename__ = "chat_messages"
    __table_args__ = (Index("ix_chat_messages_session_id", "session_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(64), ForeignKey("chat_sessions.id"))
    role: Mapped[str] = mapped_column(String(20))  # user, assistant
    content: Mapped[str] = mapped_column(Text)
    race_guid: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    horse_slug: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=paris_now_naive)

    session: Mapped["ChatSession"] = relationship("ChatSession", back_populates="messages")

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "content": self.content,
            "race_guid": self.race_guid,
            "horse_slug": self.horse_slug,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
