"""Turn a race aggregate into embedded documents in its vector store."""

import logging
from typing import Iterable, Optional

from equiscope.errors import RaceNotFoundError
from equiscope.racing.aggregate import RaceAggregate, RunnerEntry
from equiscope.racing.repository import RaceRepository
from equiscope.vectors.registry import VectorStoreRegistry
from equiscope.vectors.store import VectorDocument

logger = logging.getLogger(__name__)

HISTORY_DOC_STARTS = 5


def _num(value: float) -> str:
    """Render 1200.0 as "1200" and 57.5 as "57.5"."""
    if value is None:
        return "N/A"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def overview_text(race: RaceAggregate) -> str:
    """Race overview; the chat templates match these labels line by line."""
    meeting_date = race.meeting_date.isoformat() if race.meeting_date else "N/A"
    return "\n".join([
        f"Course: {race.name}",
        f"Hippodrome: {race.venue}",
        f"Date: {meeting_date}",
        f"Heure: {race.start_time}",
        f"Distance: {race.distance}m",
        f"Terrain: {race.ground}",
        f"Discipline: {race.discipline}",
        f"Catégorie: {race.category}",
        f"Allocation: {race.prize or 'N/A'}",
        f"Nombre de partants: {len(race.runners)}",
    ])


def runner_text(runner: RunnerEntry) -> str:
    horse = runner.horse
    return "\n".join([
        f"N°{runner.num} - {horse.name}",
        f"Âge: {horse.age} ans",
        f"Sexe: {horse.sex}",
        f"Jockey: {runner.jockey}",
        f"Entraîneur: {runner.trainer}",
        f"Musique: {horse.form}",
        f"Gains carrière: {_num(horse.earnings)}€",
        f"Poids: {_num(runner.weight)}kg",
        f"Corde: {runner.gate}",
    ])


def _unique_id(base: str, seen: set[str]) -> str:
    """Suffix repeated ids (two interviews for one runner) so none overwrite."""
    doc_id = base
    n = 2
    while doc_id in seen:
        doc_id = f"{base}_{n}"
        n += 1
    seen.add(doc_id)
    return doc_id


def build_documents(race: RaceAggregate) -> list[VectorDocument]:
    """Split a race into retrievable documents (embeddings left empty).

    Categories without data produce no documents.
    """
    guid = race.guid
    seen: set[str] = set()
    docs = [VectorDocument(
        id=_unique_id(f"{guid}_overview", seen),
        content=overview_text(race),
        type="race_overview",
        race_guid=guid,
    )]

    for runner in race.runners:
        docs.append(VectorDocument(
            id=_unique_id(f"{guid}_horse_{runner.num}", seen),
            content=runner_text(runner),
            type="horse",
            race_guid=guid,
            horse_slug=runner.horse.slug,
            num_partant=runner.num,
        ))

    prono = race.pronostic
    if prono:
        selections = ", ".join(f"N°{s.num} {s.name}" for s in prono.selections) or "N/A"
        base = f"N°{prono.base.num} {prono.base.name}" if prono.base else "N/A"
        outsider = f"N°{prono.outsider.num} {prono.outsider.name}" if prono.outsider else "N/A"
        docs.append(VectorDocument(
            id=_unique_id(f"{guid}_pronostic", seen),
            content=(
                f"Pronostic Expert:\n{prono.headline}\n"
                f"Sélections: {selections}\nBase: {base}\nOutsider: {outsider}"
            ),
            type="pronostic",
            race_guid=guid,
        ))

    names = {r.num: r.horse.name for r in race.runners}
    for note in race.notes:
        if not note.text:
            continue
        docs.append(VectorDocument(
            id=_unique_id(f"{guid}_note_{note.num}", seen),
            content=f"Note N°{note.num} {note.horse_name or names.get(note.num, '')}: {note.text}",
            type="note",
            race_guid=guid,
            num_partant=note.num,
        ))

    for interview in race.interviews:
        if not interview.text:
            continue
        docs.append(VectorDocument(
            id=_unique_id(f"{guid}_interview_{interview.num}", seen),
            content=f"Interview {interview.person}: {interview.text}",
            type="interview",
            race_guid=guid,
            num_partant=interview.num or None,
        ))

    for runner in race.runners:
        horse = runner.horse
        if horse.history:
            lines = [
                f"{h.date.isoformat() if h.date else 'N/A'}: {h.position or 'NP'} à {h.venue} ({h.distance}m)"
                for h in horse.history[:HISTORY_DOC_STARTS]
            ]
            docs.append(VectorDocument(
                id=_unique_id(f"{guid}_history_{runner.num}", seen),
                content=f"Historique de {horse.name}:\n" + "\n".join(lines),
                type="horse_history",
                race_guid=guid,
                horse_slug=horse.slug,
                num_partant=runner.num,
            ))
        if horse.stats:
            s = horse.stats
            docs.append(VectorDocument(
                id=_unique_id(f"{guid}_stats_{runner.num}", seen),
                content=(
                    f"Statistiques de {horse.name}:\n"
                    f"Victoires: {s.wins}\nPlaces: {s.places}\nCourses: {s.races}\n"
                    f"Taux de réussite: {_num(s.success_rate)}%"
                ),
                type="horse_stats",
                race_guid=guid,
                horse_slug=horse.slug,
                num_partant=runner.num,
            ))

    for i, ref in enumerate(race.references):
        result = "-".join(str(n) for n in ref.arrival) or "N/A"
        docs.append(VectorDocument(
            id=_unique_id(f"{guid}_reference_{i}", seen),
            content=(
                f"Course de référence {i + 1}:\nDate: {ref.date}\nHippodrome: {ref.venue}\n"
                f"Distance: {ref.distance}m\nDiscipline: {ref.discipline}\nRésultat: {result}"
            ),
            type="reference_race",
            race_guid=guid,
        ))

    if race.tracking:
        avg_vmax = sum(t.vmax for t in race.tracking) / len(race.tracking)
        docs.append(VectorDocument(
            id=_unique_id(f"{guid}_tracking", seen),
            content=(
                f"Données GPS disponibles pour {len(race.tracking)} chevaux\n"
                f"Vitesse max moyenne: {round(avg_vmax, 1)}km/h"
            ),
            type="tracking",
            race_guid=guid,
        ))

    if race.notule and race.notule.analysis:
        docs.append(VectorDocument(
            id=_unique_id(f"{guid}_notule", seen),
            content=f"Analyse de course: {race.notule.analysis}",
            type="notule",
            race_guid=guid,
        ))

    return docs


class RaceDocumentBuilder:
    """Ingests races into their per-race vector stores."""

    def __init__(self, repository: RaceRepository, registry: VectorStoreRegistry):
        self.repository = repository
        self.registry = registry

    async def ingest_race(self, guid: str) -> int:
        """Rebuild the document set of one race.

        The previous set is replaced atomically, so re-ingesting never
        accumulates stale documents and a failed embedding leaves the old
        set in place.

        Returns:
            Number of documents written.

        Raises:
            RaceNotFoundError: the race is not in the database.
            UpstreamUnavailableError: an embedding call failed.
        """
        race = await self.repository.get_race_aggregate(guid)
        if race is None:
            raise RaceNotFoundError(guid)

        store = await self.registry.get_store(guid)
        docs = build_documents(race)
        logger.info(
            f"Ingesting {guid} ({race.name}): {len(race.runners)} runners, {len(docs)} documents"
        )

        # One call per document, in order; a failure aborts before any write
        for doc in docs:
            doc.embedding = await store.embedder.embed_text(doc.content)

        await store.replace_race_documents(guid, docs)

        types = sorted({d.type for d in docs})
        logger.info(f"Ingested {len(docs)} documents for {guid} ({', '.join(types)})")
        return len(docs)

    async def ingest_all(self, guids: Optional[Iterable[str]] = None) -> dict:
        """Ingest many races, logging and counting per-race failures.

        Returns:
            {"total": n, "ingested": m}
        """
        if guids is None:
            guids = await self.repository.list_race_guids()
        guids = list(guids)

        ingested = 0
        for guid in guids:
            try:
                await self.ingest_race(guid)
                ingested += 1
            except Exception as e:
                logger.error(f"Failed to ingest {guid}: {e}")

        logger.info(f"Bulk ingestion complete: {ingested}/{len(guids)} races")
        return {"total": len(guids), "ingested": ingested}
