"""Per-race vector store backed by its own SQLite file.

Every race gets an isolated database holding its documents and their
embeddings. Search is an exact cosine scan: a store holds tens of rows,
never millions.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Index,
    delete,
    func,
    select,
    text,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from equiscope.config import paris_now_naive
from equiscope.errors import InvalidRaceIdError
from equiscope.racing.guid import RaceGuid, guid_aliases
from equiscope.vectors.embeddings import Embedder, cosine_similarity

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = (
    "race_overview",
    "horse",
    "pronostic",
    "note",
    "interview",
    "horse_history",
    "horse_stats",
    "reference_race",
    "tracking",
    "notule",
)

metadata = MetaData()

vectors = Table(
    "vectors",
    metadata,
    Column("id", String, primary_key=True),
    Column("content", Text, nullable=False),
    Column("embedding", Text, nullable=False),  # JSON array of floats
    Column("type", String, nullable=False),
    Column("race_guid", String, nullable=False),
    Column("horse_slug", String, nullable=True),
    Column("num_partant", Integer, nullable=True),
    Column("seq", Integer, nullable=False),  # insertion order, breaks score ties
    Column("created_at", DateTime, default=paris_now_naive),
    Index("idx_race_guid", "race_guid"),
    Index("idx_type", "type"),
    Index("idx_horse_slug", "horse_slug"),
)


def same_race(a: str, b: str) -> bool:
    """True when two GUIDs name the same race (C1 and C01 are equal)."""
    if a == b:
        return True
    try:
        return RaceGuid.parse(a).key == RaceGuid.parse(b).key
    except InvalidRaceIdError:
        return False


@dataclass
class VectorDocument:
    """A retrievable unit of race knowledge."""

    id: str
    content: str
    type: str
    race_guid: str
    horse_slug: Optional[str] = None
    num_partant: Optional[int] = None
    embedding: list[float] = field(default_factory=list)
    score: Optional[float] = None  # set on search results

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "type": self.type,
            "race_guid": self.race_guid,
            "horse_slug": self.horse_slug,
            "num_partant": self.num_partant,
            "score": self.score,
        }


class RaceVectorStore:
    """Similarity-search store scoped to a single race."""

    def __init__(self, path: Path, embedder: Embedder, race_guid: Optional[str] = None):
        self.path = Path(path)
        self.embedder = embedder
        self.race_guid = race_guid
        self._engine: Optional[AsyncEngine] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def init(self) -> None:
        """Create the database file, table and indexes. Safe to call repeatedly."""
        if self._engine is not None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{self.path}",
            connect_args={"timeout": 30},
        )
        async with engine.begin() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.run_sync(metadata.create_all)
        self._engine = engine
        logger.debug(f"Vector store ready at {self.path}")

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError(f"Vector store {self.path} is not initialised")
        return self._engine

    def _check_scope(self, docs: list[VectorDocument]) -> None:
        for doc in docs:
            if self.race_guid and not same_race(doc.race_guid, self.race_guid):
                raise ValueError(
                    f"Document {doc.id} belongs to race {doc.race_guid}, "
                    f"not to this store's race {self.race_guid}"
                )
            if not doc.embedding:
                raise ValueError(f"Document {doc.id} has no embedding")

    async def _upsert(self, conn, docs: list[VectorDocument]) -> None:
        next_seq = (await conn.execute(select(func.coalesce(func.max(vectors.c.seq), 0)))).scalar_one()
        now = paris_now_naive()
        for i, doc in enumerate(docs, start=1):
            stmt = sqlite_insert(vectors).values(
                id=doc.id,
                content=doc.content,
                embedding=json.dumps(doc.embedding),
                type=doc.type,
                race_guid=doc.race_guid,
                horse_slug=doc.horse_slug,
                num_partant=doc.num_partant,
                seq=next_seq + i,
                created_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[vectors.c.id],
                set_={
                    "content": stmt.excluded.content,
                    "embedding": stmt.excluded.embedding,
                    "type": stmt.excluded.type,
                    "race_guid": stmt.excluded.race_guid,
                    "horse_slug": stmt.excluded.horse_slug,
                    "num_partant": stmt.excluded.num_partant,
                    "created_at": stmt.excluded.created_at,
                },
            )
            await conn.execute(stmt)

    async def add_documents(self, docs: list[VectorDocument]) -> None:
        """Upsert documents by id in a single all-or-nothing transaction."""
        if not docs:
            return
        self._check_scope(docs)
        async with self._require_engine().begin() as conn:
            await self._upsert(conn, docs)
        logger.debug(f"Upserted {len(docs)} documents into {self.path}")

    async def replace_race_documents(self, race_guid: str, docs: list[VectorDocument]) -> None:
        """Swap a race's whole document set atomically.

        Readers either see the previous set or the new one, never a mix.
        """
        self._check_scope(docs)
        async with self._require_engine().begin() as conn:
            await conn.execute(
                delete(vectors).where(vectors.c.race_guid.in_(guid_aliases(race_guid)))
            )
            if docs:
                await self._upsert(conn, docs)
        logger.debug(f"Replaced documents for {race_guid}: {len(docs)} written")

    async def similarity_search(
        self, query: str, k: int = 5, race_guid: Optional[str] = None
    ) -> list[VectorDocument]:
        """Return the ``k`` documents most similar to ``query``, best first.

        Embedding failures propagate to the caller.
        """
        engine = self._require_engine()
        query_embedding = await self.embedder.embed_text(query)

        stmt = select(vectors).order_by(vectors.c.seq)
        if race_guid:
            stmt = stmt.where(vectors.c.race_guid.in_(guid_aliases(race_guid)))
        async with engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()

        scored = []
        for row in rows:
            score = cosine_similarity(query_embedding, json.loads(row["embedding"]))
            if math.isnan(score):
                score = 0.0
            scored.append(VectorDocument(
                id=row["id"],
                content=row["content"],
                type=row["type"],
                race_guid=row["race_guid"],
                horse_slug=row["horse_slug"],
                num_partant=row["num_partant"],
                score=score,
            ))

        # sorted() is stable, so equal scores keep insertion order
        scored = sorted(scored, key=lambda d: d.score, reverse=True)
        return scored[:max(0, k)]

    async def delete_by_race_id(self, race_guid: str) -> int:
        async with self._require_engine().begin() as conn:
            result = await conn.execute(
                delete(vectors).where(vectors.c.race_guid.in_(guid_aliases(race_guid)))
            )
        return result.rowcount or 0

    async def clear(self) -> None:
        async with self._require_engine().begin() as conn:
            await conn.execute(delete(vectors))

    async def get_document_count(self) -> int:
        async with self._require_engine().connect() as conn:
            return (await conn.execute(select(func.count()).select_from(vectors))).scalar_one()

    async def list_document_ids(self) -> list[str]:
        """Ids of all stored documents in insertion order."""
        async with self._require_engine().connect() as conn:
            result = await conn.execute(select(vectors.c.id).order_by(vectors.c.seq))
            return list(result.scalars().all())

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
