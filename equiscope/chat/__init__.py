"""Retrieval-augmented race assistant."""

from equiscope.chat.rag import ChatContext, ChatResponse, RagChatService

__all__ = ["ChatContext", "ChatResponse", "RagChatService"]
