"""Relational models for Equiscope."""

from equiscope.models.database import Base, init_db
from equiscope.models.race import Meeting, Race, Runner, Horse
from equiscope.models.chat import ChatSession, ChatMessage

__all__ = [
    "Base",
    "init_db",
    "Meeting",
    "Race",
    "Runner",
    "Horse",
    "ChatSession",
    "ChatMessage",
]
