"""Unit tests for the retrieval-grounded race chat."""

from unittest.mock import AsyncMock

import pytest

from equiscope.chat.rag import ChatContext, RagChatService, compose_reply
from equiscope.vectors.store import VectorDocument

GUID = "20251212_R4_C1"

OVERVIEW = "\n".join([
    "Course: Prix de Vincennes",
    "Hippodrome: Vincennes",
    "Distance: 2100m",
    "Terrain: Bon",
    "Nombre de partants: 12",
])


def _docs(*contents: str) -> list[VectorDocument]:
    return [
        VectorDocument(id=f"d{i}", content=c, type="note", race_guid=GUID)
        for i, c in enumerate(contents)
    ]


@pytest.fixture
def chat(session_factory, registry, builder) -> RagChatService:
    return RagChatService(session_factory, registry, builder)


# ──────────────────────────────────────────────
# Templated replies
# ──────────────────────────────────────────────

class TestComposeReply:
    """Tests for keyword-driven reply templates."""

    def test_distance(self):
        reply = compose_reply("Quelle est la distance ?", _docs(OVERVIEW))
        assert reply.message == "Distance: 2100m"
        assert reply.sources == ["Race overview"]

    def test_ground(self):
        assert compose_reply("Et le terrain ?", _docs(OVERVIEW)).message == "Terrain: Bon"
        assert compose_reply("What about the ground", _docs(OVERVIEW)).message == "Terrain: Bon"

    def test_runners_capped_at_five(self):
        runners = [f"N°{n} - Cheval {n}\nJockey: X" for n in range(1, 8)]
        reply = compose_reply("Quels partants ?", _docs(OVERVIEW, *runners))
        assert reply.message.startswith("Nombre de partants: 12")
        assert "N°5 - Cheval 5" in reply.message
        assert "N°6 - Cheval 6" not in reply.message

    def test_favourites(self):
        prono = "Pronostic Expert:\nDuel\nSélections: N°4 A, N°7 B\nBase: N°4 A\nOutsider: N°7 B"
        reply = compose_reply("Qui est le favori ?", _docs(prono))
        assert reply.message == "Sélections: N°4 A, N°7 B\nBase: N°4 A"

    def test_numbered_runner_does_not_match_longer_numbers(self):
        docs = _docs("N°1 - Alpha\nJockey: A", "N°12 - Douze\nJockey: B")
        reply = compose_reply("Parle-moi du n°1", docs)
        assert reply.message == "N°1 - Alpha"
        assert reply.sources == ["Horse N°1"]

    def test_unknown_runner_number(self):
        reply = compose_reply("et le n° 9 ?", _docs(OVERVIEW))
        assert reply.message == "Cheval N°9 non trouvé"

    def test_default_overview(self):
        reply = compose_reply("Bonjour", _docs(OVERVIEW))
        assert reply.message.split("\n") == [
            "Course: Prix de Vincennes",
            "Distance: 2100m",
            "Terrain: Bon",
            "Nombre de partants: 12",
        ]

    def test_without_context(self):
        reply = compose_reply("Bonjour", [])
        assert reply.message == "Aucune information disponible pour cette course."
        assert reply.sources == []
        assert reply.suggestions

    def test_distance_without_context(self):
        assert compose_reply("distance ?", []).message == "Distance non disponible"


# ──────────────────────────────────────────────
# Service
# ──────────────────────────────────────────────

class TestRagChatService:
    """Tests for RagChatService against real stores and the test database."""

    @pytest.mark.asyncio
    async def test_ensure_ready_ingests_empty_store(self, chat, registry, seeded_race):
        count = await chat.ensure_ready(seeded_race)
        assert count == 4
        store = await registry.get_store(seeded_race)
        assert await store.get_document_count() == 4

    @pytest.mark.asyncio
    async def test_ensure_ready_skips_populated_store(self, chat, seed):
        guid = await seed(runners=6)
        assert await chat.ensure_ready(guid) == 7
        chat.builder.ingest_race = AsyncMock()
        assert await chat.ensure_ready(guid) == 7
        chat.builder.ingest_race.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_answer_grounded_in_race(self, chat, seeded_race):
        session_id = await chat.create_session()
        reply = await chat.answer(session_id, "Quelle est la distance ?", ChatContext(race_guid=seeded_race))
        assert reply.message == "Distance: 2100m"

    @pytest.mark.asyncio
    async def test_answer_persists_both_turns(self, chat, seeded_race):
        session_id = await chat.create_session(user_id="u1")
        await chat.answer(session_id, "Combien de partants ?", ChatContext(seeded_race, "horse-x"))

        session = await chat.get_session(session_id)
        assert session["user_id"] == "u1"
        assert [m["role"] for m in session["messages"]] == ["user", "assistant"]
        assert session["messages"][0]["content"] == "Combien de partants ?"
        assert session["messages"][1]["race_guid"] == seeded_race
        assert session["messages"][1]["horse_slug"] == "horse-x"

    @pytest.mark.asyncio
    async def test_answer_degrades_when_embeddings_fail(self, chat, registry, failing_embedder, seeded_race):
        registry.embedder = failing_embedder
        session_id = await chat.create_session()
        reply = await chat.answer(session_id, "Bonjour", ChatContext(race_guid=seeded_race))
        assert reply.message == "Aucune information disponible pour cette course."
        assert reply.sources == []

    @pytest.mark.asyncio
    async def test_answer_degrades_for_unknown_race(self, chat):
        session_id = await chat.create_session()
        reply = await chat.answer(session_id, "distance", ChatContext(race_guid="20251212_R9_C9"))
        assert reply.message == "Distance non disponible"

    @pytest.mark.asyncio
    async def test_session_id_and_expiry(self, chat):
        session_id = await chat.create_session()
        assert session_id.startswith("session_")
        session = await chat.get_session(session_id)
        assert session["messages"] == []
        assert session["expires_at"] > session["created_at"]

    @pytest.mark.asyncio
    async def test_get_session_unknown(self, chat):
        assert await chat.get_session("session_0_missing") is None

    @pytest.mark.asyncio
    async def test_history_keeps_last_twenty_oldest_first(self, chat):
        session_id = await chat.create_session()
        for i in range(12):
            await chat.answer(session_id, f"question {i}")
        messages = (await chat.get_session(session_id))["messages"]
        assert len(messages) == 20
        assert messages[0]["content"] == "question 2"
        assert messages[-1]["role"] == "assistant"

    @pytest.mark.asyncio
    async def test_update_context_warms_store(self, chat, registry, seeded_race):
        session_id = await chat.create_session()
        assert await chat.update_context(session_id, ChatContext(seeded_race, None))
        session = await chat.get_session(session_id)
        assert session["current_race_guid"] == seeded_race
        assert registry.is_cached(seeded_race)

    @pytest.mark.asyncio
    async def test_update_context_unknown_session(self, chat):
        assert await chat.update_context("nope", ChatContext(GUID)) is False
