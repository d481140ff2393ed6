"""Race assistant: retrieval over the race's vector store plus templated answers."""

import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from equiscope.config import paris_now_naive, settings
from equiscope.models.chat import ChatMessage, ChatSession
from equiscope.vectors.ingestion import RaceDocumentBuilder
from equiscope.vectors.registry import VectorStoreRegistry
from equiscope.vectors.store import VectorDocument

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=24)
HISTORY_LIMIT = 20

_RUNNER_LINE_RE = re.compile(r"^N°\d+")
_RUNNER_NUM_RE = re.compile(r"n°?\s*(\d+)", re.IGNORECASE)


@dataclass
class ChatContext:
    race_guid: Optional[str] = None
    horse_slug: Optional[str] = None


@dataclass
class ChatResponse:
    message: str
    sources: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"message": self.message, "sources": self.sources, "suggestions": self.suggestions}


def _first_line(lines: list[str], label: str) -> Optional[str]:
    for line in lines:
        if line.startswith(label):
            return line
    return None


def compose_reply(text: str, docs: list[VectorDocument]) -> ChatResponse:
    """Pick a templated answer from the retrieved documents by keyword.

    Lines are matched on the labels written by the document builder
    ("Distance:", "Terrain:", "N°<n> - ...", "Sélections:", "Base:").
    """
    msg = text.lower()
    lines = "\n\n".join(d.content for d in docs).split("\n")
    has_context = bool(docs)

    race_info = _first_line(lines, "Course:")
    distance_info = _first_line(lines, "Distance:")
    terrain_info = _first_line(lines, "Terrain:")
    runners_info = _first_line(lines, "Nombre de partants:")

    def _sources(*labels: str) -> list[str]:
        return list(labels) if has_context else []

    if "distance" in msg:
        return ChatResponse(
            message=distance_info or "Distance non disponible",
            sources=_sources("Race overview"),
            suggestions=["Quel est le terrain ?", "Qui sont les favoris ?", "Combien de partants ?"],
        )

    if "terrain" in msg or "ground" in msg:
        return ChatResponse(
            message=terrain_info or "Terrain non disponible",
            sources=_sources("Race overview"),
            suggestions=["Quelle est la distance ?", "Voir le pronostic", "Voir les cotes"],
        )

    if "partant" in msg or "cheval" in msg or "runner" in msg:
        horses = [line for line in lines if _RUNNER_LINE_RE.match(line)]
        header = runners_info or "Nombre de partants non disponible"
        message = header
        if horses:
            message += "\n\nPrincipaux partants:\n" + "\n".join(horses[:5])
        return ChatResponse(
            message=message,
            sources=_sources("Race overview", "Partants list"),
            suggestions=["Voir le pronostic", "Détails sur le N°1", "Voir les cotes"],
        )

    if "favori" in msg or "pronostic" in msg or "favourite" in msg:
        prono_lines = [line for line in lines if "Sélections:" in line or "Base:" in line]
        return ChatResponse(
            message="\n".join(prono_lines) or "Pronostic non disponible",
            sources=_sources("Pronostic expert"),
            suggestions=["Détails sur le favori", "Voir les cotes", "Voir les notes"],
        )

    m = _RUNNER_NUM_RE.search(msg)
    if m:
        num = m.group(1)
        # "N°1" must not also match "N°12"
        pattern = re.compile(rf"^N°{num}(?!\d)")
        horse_info = [line for line in lines if pattern.match(line)]
        return ChatResponse(
            message="\n".join(horse_info) or f"Cheval N°{num} non trouvé",
            sources=_sources(f"Horse N°{num}"),
            suggestions=["Historique de ce cheval", "Voir le pronostic", "Voir les autres"],
        )

    overview = [line for line in (race_info, distance_info, terrain_info, runners_info) if line]
    return ChatResponse(
        message="\n".join(overview) or "Aucune information disponible pour cette course.",
        sources=_sources("Race overview"),
        suggestions=["Qui sont les favoris ?", "Voir les partants", "Voir les cotes"],
    )


class RagChatService:
    """Chat sessions grounded in one race's documents."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: VectorStoreRegistry,
        builder: RaceDocumentBuilder,
        min_documents: Optional[int] = None,
        top_k: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.registry = registry
        self.builder = builder
        self.min_documents = min_documents if min_documents is not None else settings.min_documents
        self.top_k = top_k if top_k is not None else settings.chat_top_k

    async def ensure_ready(self, guid: str) -> int:
        """Make sure the race's store is populated, ingesting when it is short.

        The count is always re-read from the store, never assumed from an
        earlier ingestion. Errors propagate.

        Returns:
            Document count after the check.
        """
        store = await self.registry.get_store(guid)
        count = await store.get_document_count()
        if count < self.min_documents:
            logger.info(f"Store for {guid} has {count} documents, ingesting")
            count = await self.builder.ingest_race(guid)
        else:
            logger.debug(f"Store for {guid} ready with {count} documents")
        return count

    async def _retrieve(self, text: str, guid: str) -> list[VectorDocument]:
        try:
            await self.ensure_ready(guid)
        except Exception as e:
            logger.error(f"Could not prepare vector store for {guid}: {e}")
            return []

        try:
            store = await self.registry.get_store(guid)
            return await store.similarity_search(text, self.top_k, guid)
        except Exception as e:
            logger.error(f"Similarity search failed for {guid}: {e}")
            return []

    async def answer(self, session_id: str, text: str, context: Optional[ChatContext] = None) -> ChatResponse:
        """Answer one chat turn. Degrades to an answer without context rather than raising."""
        context = context or ChatContext()
        docs = await self._retrieve(text, context.race_guid) if context.race_guid else []

        response = compose_reply(text, docs)

        try:
            await self._save_turns(session_id, text, response.message, context)
        except Exception as e:
            logger.error(f"Failed to persist chat turn for session {session_id}: {e}")

        return response

    async def _save_turns(self, session_id: str, text: str, reply: str, context: ChatContext) -> None:
        async with self._session_factory() as db:
            for role, content in (("user", text), ("assistant", reply)):
                db.add(ChatMessage(
                    session_id=session_id,
                    role=role,
                    content=content,
                    race_guid=context.race_guid,
                    horse_slug=context.horse_slug,
                ))
            session = await db.get(ChatSession, session_id)
            if session is not None:
                session.last_activity_at = paris_now_naive()
            await db.commit()

    async def create_session(self, user_id: Optional[str] = None) -> str:
        session_id = f"session_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"
        now = paris_now_naive()
        async with self._session_factory() as db:
            db.add(ChatSession(
                id=session_id,
                user_id=user_id,
                created_at=now,
                last_activity_at=now,
                expires_at=now + SESSION_TTL,
            ))
            await db.commit()
        logger.info(f"Created chat session {session_id}")
        return session_id

    async def get_session(self, session_id: str) -> Optional[dict]:
        """Session details with its last 20 messages, oldest first; None when unknown."""
        async with self._session_factory() as db:
            session = await db.get(ChatSession, session_id)
            if session is None:
                return None
            result = await db.execute(
                select(ChatMessage)
                .where(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.id.desc())
                .limit(HISTORY_LIMIT)
            )
            messages = list(reversed(result.scalars().all()))
            data = session.to_dict()
            data["messages"] = [m.to_dict() for m in messages]
            return data

    async def update_context(self, session_id: str, context: ChatContext) -> bool:
        """Point a session at a race/horse and warm that race's store.

        Returns False when the session does not exist.
        """
        async with self._session_factory() as db:
            session = await db.get(ChatSession, session_id)
            if session is None:
                return False
            session.current_race_guid = context.race_guid
            session.current_horse_slug = context.horse_slug
            session.last_activity_at = paris_now_naive()
            await db.commit()

        if context.race_guid:
            try:
                await self.ensure_ready(context.race_guid)
            except Exception as e:
                logger.error(f"Could not prepare vector store for {context.race_guid}: {e}")
        return True
