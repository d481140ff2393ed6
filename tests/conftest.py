"""Shared test fixtures for Equiscope."""

import hashlib
import math
import re
from datetime import date
from typing import AsyncGenerator, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from equiscope.models.database import Base
from equiscope.models.race import Horse, Meeting, Race, Runner
from equiscope.racing.repository import RaceRepository
from equiscope.vectors.ingestion import RaceDocumentBuilder
from equiscope.vectors.registry import VectorStoreRegistry

_WORD_RE = re.compile(r"\w+", re.UNICODE)


class HashingEmbedder:
    """Deterministic bag-of-words embedder; texts sharing words score higher."""

    def __init__(self, dims: int = 64):
        self.dims = dims
        self.calls: list[str] = []

    async def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        vec = [0.0] * self.dims
        for word in _WORD_RE.findall(text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vec[digest[0] % self.dims] += 1.0
        norm = math.sqrt(sum(v * v for v in vec))
        if norm == 0:
            vec[0] = 1.0
            return vec
        return [v / norm for v in vec]


class FailingEmbedder:
    """Embedder whose upstream is down."""

    async def embed_text(self, text: str) -> list[float]:
        from equiscope.errors import UpstreamUnavailableError

        raise UpstreamUnavailableError("connection refused")


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def registry(tmp_path, embedder) -> VectorStoreRegistry:
    return VectorStoreRegistry(tmp_path / "vectors", embedder)


@pytest.fixture
def repository(session_factory) -> RaceRepository:
    return RaceRepository(session_factory)


@pytest.fixture
def builder(repository, registry) -> RaceDocumentBuilder:
    return RaceDocumentBuilder(repository, registry)


def sample_history(positions: list[int], venue: str = "Chantilly", distance: int = 2000) -> dict:
    """Horse history blob in provider shape, most recent first."""
    results = []
    for i, pos in enumerate(positions):
        results.append({
            "reunion": {
                "date_reunion": f"2025-{11 - i // 28:02d}-{28 - i % 28:02d}",
                "hippodrome": {"name": venue},
            },
            "libcourt_prix_course": f"Prix {i + 1}",
            "distance": distance,
            "discipline": "Plat",
            "etat_terrain": "Bon",
            "selected_partant_info": {
                "num_place_arrivee": pos,
                "nom_monte": "M. Barzalona",
                "pds_calc_hand_partant": 57 + (i % 3),
                "vmax": 60.0 + i,
            },
        })
    return {"results": results}


async def seed_race(
    session_factory: async_sessionmaker[AsyncSession],
    guid: str = "20251212_R4_C1",
    runners: int = 3,
    venue: str = "Vincennes",
    distance: int = 2100,
    discipline: str = "Attelé",
    histories: Optional[dict[int, list[int]]] = None,
    blobs: Optional[dict] = None,
) -> str:
    """Insert a meeting, race, horses and runners; returns the GUID.

    ``histories`` maps runner numbers to past finishing positions.
    ``blobs`` sets provider sub-resources, e.g. {"notes": [...]}.
    """
    date_str, meeting_token, race_token = guid.split("_")
    meeting_id = f"{date_str}_{meeting_token}"
    histories = histories or {}

    async with session_factory() as db:
        meeting = await db.get(Meeting, meeting_id)
        if meeting is None:
            meeting = Meeting(
                id=meeting_id,
                date=date(int(date_str[:4]), int(date_str[4:6]), int(date_str[6:])),
                number=int(meeting_token[1:]),
                venue=venue,
            )
            db.add(meeting)

        race = Race(
            guid=guid,
            meeting_id=meeting_id,
            race_number=int(race_token[1:]),
            name=f"Prix de {venue} {race_token}",
            distance=distance,
            ground="Bon",
            discipline=discipline,
            category="Course C",
            start_time="13:50",
            prize="45000€",
        )
        for name, value in (blobs or {}).items():
            race.set_blob(name, value)
        db.add(race)

        for num in range(1, runners + 1):
            slug = f"{guid.lower()}-horse-{num}"
            horse = Horse(
                slug=slug,
                name=f"Cheval {num}",
                sex="M",
                age=4 + num % 3,
                earnings=10000.0 * num,
                form="1a2a3a" if num == 1 else "5a6aDa",
            )
            if num in histories:
                horse.history = sample_history(histories[num])
            db.add(horse)
            db.add(Runner(
                race_guid=guid,
                horse_slug=slug,
                number=num,
                jockey=f"Jockey {num}",
                trainer=f"Entraineur {num % 2}",
                weight=56.0 + num,
                gate=str(num),
                current_odds=2.0 + num,
            ))
        await db.commit()
    return guid


@pytest.fixture
async def seeded_race(session_factory) -> str:
    """A 3-runner race without any provider sub-resources."""
    return await seed_race(session_factory)


@pytest.fixture
def seed(session_factory):
    """Seed helper bound to the test database: ``await seed(guid=..., runners=...)``."""

    async def _seed(**kwargs) -> str:
        return await seed_race(session_factory, **kwargs)

    return _seed


@pytest.fixture
def failing_embedder() -> FailingEmbedder:
    return FailingEmbedder()
