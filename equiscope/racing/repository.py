"""Read access to races and horses, returning typed aggregates."""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from equiscope.errors import HorseNotFoundError
from equiscope.models.race import Horse, Meeting, Race, Runner
from equiscope.racing.aggregate import (
    HistoryRace,
    HorseInfo,
    RaceAggregate,
    RunnerEntry,
    parse_history,
    parse_horse_stats,
    parse_interviews,
    parse_notes,
    parse_notule,
    parse_odds,
    parse_pronostic,
    parse_references,
    parse_tracking,
)
from equiscope.racing.guid import guid_aliases

logger = logging.getLogger(__name__)


def _horse_info(horse: Horse) -> HorseInfo:
    return HorseInfo(
        slug=horse.slug,
        name=horse.name,
        uuid=horse.uuid or "",
        sex=horse.sex or "",
        age=horse.age or 0,
        earnings=horse.earnings or 0.0,
        form=horse.form or "",
        history=parse_history(horse.history_json),
        stats=parse_horse_stats(horse.stats_json),
        jockey_form=horse.jockey_form,
        trainer_form=horse.trainer_form,
    )


def build_aggregate(race: Race) -> RaceAggregate:
    """Convert a loaded Race row (with meeting, runners and horses) into a RaceAggregate."""
    odds = parse_odds(race.pari_simple_json)
    notes = parse_notes(race.notes_json)
    odds_by_num = {o.num: o for o in odds}
    rating_by_num = {n.num: n.rating for n in notes if n.rating is not None}

    runners = []
    for r in race.runners:
        snapshot = odds_by_num.get(r.number)
        runners.append(RunnerEntry(
            num=r.number,
            horse=_horse_info(r.horse),
            jockey=r.jockey or "",
            trainer=r.trainer or "",
            weight=r.weight or 0.0,
            gate=r.gate or "",
            odds=r.current_odds if r.current_odds is not None else (snapshot.odds if snapshot else None),
            rating=r.rating if r.rating is not None else rating_by_num.get(r.number),
        ))

    return RaceAggregate(
        guid=race.guid,
        name=race.name,
        venue=race.meeting.venue if race.meeting else "",
        meeting_date=race.meeting.date if race.meeting else None,
        start_time=race.start_time or "",
        distance=race.distance or 0,
        ground=race.ground or "",
        discipline=race.discipline or "",
        category=race.category or "",
        prize=race.prize,
        runners=runners,
        pronostic=parse_pronostic(race.pronostic_json),
        odds=odds,
        notes=notes,
        interviews=parse_interviews(race.interviews_json),
        tracking=parse_tracking(race.tracking_json),
        notule=parse_notule(race.notule_json),
        references=parse_references(race.references_json),
    )


class RaceRepository:
    """Read-side collaborator for the vector and analytics layers.

    Opens a short-lived session per call so it can be shared by background
    jobs and request handlers alike.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_race_aggregate(self, guid: str) -> Optional[RaceAggregate]:
        """Load a race with runners and sub-resources; None when unknown."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Race)
                .where(Race.guid.in_(guid_aliases(guid)))
                .options(
                    selectinload(Race.meeting),
                    selectinload(Race.runners).selectinload(Runner.horse),
                )
            )
            race = result.scalars().first()
            if race is None:
                logger.debug(f"Race {guid} not in database")
                return None
            return build_aggregate(race)

    async def get_runner_history(self, slug: str) -> list[HistoryRace]:
        """Past starts of a horse, most recent first."""
        async with self._session_factory() as db:
            horse = await db.get(Horse, slug)
            if horse is None:
                raise HorseNotFoundError(slug)
            return parse_history(horse.history_json)

    async def list_race_guids(self, meeting_date: Optional[date] = None) -> list[str]:
        """GUIDs of all races, optionally restricted to one meeting date."""
        async with self._session_factory() as db:
            query = select(Race.guid).join(Meeting, Race.meeting_id == Meeting.id)
            if meeting_date is not None:
                query = query.where(Meeting.date == meeting_date)
            result = await db.execute(query.order_by(Race.guid))
            return list(result.scalars().all())
