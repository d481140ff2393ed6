"""Unit tests for race document building and ingestion."""

from datetime import date

import pytest

from equiscope.errors import RaceNotFoundError, UpstreamUnavailableError
from equiscope.racing.aggregate import (
    HorseInfo,
    Interview,
    JudgeNote,
    RaceAggregate,
    RunnerEntry,
    TrackingEntry,
)
from equiscope.vectors.ingestion import RaceDocumentBuilder, build_documents, overview_text, runner_text
from equiscope.vectors.registry import VectorStoreRegistry

GUID = "20251212_R4_C1"


def _race(**kwargs) -> RaceAggregate:
    runners = [
        RunnerEntry(
            num=n,
            horse=HorseInfo(slug=f"horse-{n}", name=f"Cheval {n}", age=5, sex="F", earnings=1200.0, form="1a2a"),
            jockey="J. Dupont",
            trainer="P. Martin",
            weight=57.5,
            gate=str(n),
        )
        for n in (1, 2)
    ]
    defaults = dict(
        guid=GUID,
        name="Prix de Vincennes",
        venue="Vincennes",
        meeting_date=date(2025, 12, 12),
        start_time="13:50",
        distance=2100,
        ground="Bon",
        discipline="Attelé",
        category="Course C",
        prize="45000€",
        runners=runners,
    )
    defaults.update(kwargs)
    return RaceAggregate(**defaults)


class TestDocumentText:
    """Tests for overview and runner document text."""

    def test_overview_labels(self):
        text = overview_text(_race())
        assert text.split("\n") == [
            "Course: Prix de Vincennes",
            "Hippodrome: Vincennes",
            "Date: 2025-12-12",
            "Heure: 13:50",
            "Distance: 2100m",
            "Terrain: Bon",
            "Discipline: Attelé",
            "Catégorie: Course C",
            "Allocation: 45000€",
            "Nombre de partants: 2",
        ]

    def test_runner_text(self):
        text = runner_text(_race().runners[0])
        assert text.startswith("N°1 - Cheval 1\n")
        assert "Gains carrière: 1200€" in text
        assert "Poids: 57.5kg" in text


class TestBuildDocuments:
    """Tests for build_documents."""

    def test_minimal_race(self):
        docs = build_documents(_race())
        assert [d.id for d in docs] == [f"{GUID}_overview", f"{GUID}_horse_1", f"{GUID}_horse_2"]
        assert all(d.race_guid == GUID for d in docs)
        assert docs[1].num_partant == 1
        assert docs[1].horse_slug == "horse-1"

    def test_empty_notes_are_skipped(self):
        docs = build_documents(_race(notes=[
            JudgeNote(num=1, text="Très régulier"),
            JudgeNote(num=2, text=""),
        ]))
        note_ids = [d.id for d in docs if d.type == "note"]
        assert note_ids == [f"{GUID}_note_1"]

    def test_duplicate_ids_get_suffix(self):
        docs = build_documents(_race(interviews=[
            Interview(num=1, person="Entraîneur", text="En forme"),
            Interview(num=1, person="Driver", text="Confiant"),
        ]))
        ids = [d.id for d in docs if d.type == "interview"]
        assert ids == [f"{GUID}_interview_1", f"{GUID}_interview_1_2"]

    def test_tracking_average(self):
        docs = build_documents(_race(tracking=[
            TrackingEntry(num=1, vmax=60.0),
            TrackingEntry(num=2, vmax=61.25),
        ]))
        tracking = [d for d in docs if d.type == "tracking"][0]
        assert "Vitesse max moyenne: 60.6km/h" in tracking.content
        assert tracking.content.startswith("Données GPS disponibles pour 2 chevaux")


class TestRaceDocumentBuilder:
    """Tests for ingestion into the per-race store."""

    @pytest.mark.asyncio
    async def test_three_runner_race_gives_four_documents(self, builder, registry, seeded_race):
        count = await builder.ingest_race(seeded_race)
        assert count == 4

        store = await registry.get_store(seeded_race)
        assert await store.get_document_count() == 4
        assert await store.list_document_ids() == [
            f"{seeded_race}_overview",
            f"{seeded_race}_horse_1",
            f"{seeded_race}_horse_2",
            f"{seeded_race}_horse_3",
        ]

    @pytest.mark.asyncio
    async def test_reingestion_is_idempotent(self, builder, registry, seeded_race):
        await builder.ingest_race(seeded_race)
        await builder.ingest_race(seeded_race)
        store = await registry.get_store(seeded_race)
        assert await store.get_document_count() == 4

    @pytest.mark.asyncio
    async def test_embeds_each_document_once_in_order(self, builder, embedder, seeded_race):
        await builder.ingest_race(seeded_race)
        assert len(embedder.calls) == 4
        assert embedder.calls[0].startswith("Course: ")
        assert embedder.calls[1].startswith("N°1 - ")

    @pytest.mark.asyncio
    async def test_history_and_notes(self, builder, registry, seed):
        guid = await seed(
            histories={1: [1, 0, 3, 2, 5, 7]},
            blobs={"notes": [{"num_partant": 2, "texte_note": "Ferré des quatre"}]},
        )
        count = await builder.ingest_race(guid)
        assert count == 6

        store = await registry.get_store(guid)
        results = await store.similarity_search("Historique de Cheval 1", k=10)
        history = next(d for d in results if d.id == f"{guid}_history_1")
        lines = history.content.split("\n")
        assert len(lines) == 6  # header + last 5 starts
        assert lines[2].startswith("2025-11-27: NP à Chantilly")

    @pytest.mark.asyncio
    async def test_races_do_not_leak(self, builder, registry, seed):
        first = await seed(guid="20251212_R4_C1", runners=3)
        second = await seed(guid="20251212_R4_C2", runners=2)
        await builder.ingest_race(first)
        await builder.ingest_race(second)

        store = await registry.get_store(second)
        ids = await store.list_document_ids()
        assert len(ids) == 3
        assert all(i.startswith(second) for i in ids)

    @pytest.mark.asyncio
    async def test_padded_alias_reaches_ingested_documents(self, builder, registry, repository, seed):
        guid = await seed(guid="20251212_R4_C1", runners=5)
        assert await builder.ingest_race(guid) == 6

        alias = "20251212_R4_C01"
        store = await registry.get_store(alias)
        results = await store.similarity_search("distance", k=5, race_guid=alias)
        assert len(results) == 5
        assert all(d.race_guid == guid for d in results)

        race = await repository.get_race_aggregate(alias)
        assert race is not None
        assert race.guid == guid

        assert await builder.ingest_race(alias) == 6
        assert await store.get_document_count() == 6

    @pytest.mark.asyncio
    async def test_unknown_race(self, builder):
        with pytest.raises(RaceNotFoundError):
            await builder.ingest_race("20251212_R9_C9")

    @pytest.mark.asyncio
    async def test_embedding_failure_keeps_previous_set(self, tmp_path, repository, embedder, failing_embedder, seeded_race):
        registry = VectorStoreRegistry(tmp_path / "vectors", embedder)
        builder = RaceDocumentBuilder(repository, registry)
        await builder.ingest_race(seeded_race)

        store = await registry.get_store(seeded_race)
        store.embedder = failing_embedder
        with pytest.raises(UpstreamUnavailableError):
            await builder.ingest_race(seeded_race)
        assert await store.get_document_count() == 4

    @pytest.mark.asyncio
    async def test_ingest_all_counts_failures(self, builder, seed):
        await seed(guid="20251212_R4_C1")
        await seed(guid="20251212_R4_C2")
        result = await builder.ingest_all(["20251212_R4_C1", "20251212_R4_C2", "20251212_R4_C7"])
        assert result == {"total": 3, "ingested": 2}

    @pytest.mark.asyncio
    async def test_ingest_all_defaults_to_every_race(self, builder, seed):
        await seed(guid="20251212_R4_C1")
        await seed(guid="20251213_R1_C1")
        assert await builder.ingest_all() == {"total": 2, "ingested": 2}
