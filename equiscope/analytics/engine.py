"""Race analytics: builds runner profiles and computes every chart."""

import logging
from datetime import date
from typing import Optional

from equiscope.analytics import connections, field_charts, form_charts, history_charts, market_charts
from equiscope.analytics.profile import RunnerProfile, build_profile, discipline_family, mean, rnd, rnd1
from equiscope.config import DEFAULT_DISTANCE_RANGES, paris_today, settings
from equiscope.errors import RaceNotFoundError
from equiscope.racing.aggregate import RaceAggregate
from equiscope.racing.repository import RaceRepository

logger = logging.getLogger(__name__)


def race_overview(race: RaceAggregate) -> dict:
    return {
        "guid": race.guid,
        "name": race.name,
        "venue": race.venue,
        "date": race.meeting_date.isoformat() if race.meeting_date else None,
        "time": race.start_time,
        "distance": race.distance,
        "ground": race.ground,
        "discipline": race.discipline,
        "category": race.category,
        "prize": race.prize or "N/A",
        "runner_count": len(race.runners),
    }


def aggregated_stats(race: RaceAggregate, runners: list[RunnerProfile]) -> dict:
    if not runners:
        return {"avg_age": 0, "avg_weight": 0, "avg_earnings": 0, "total_races": 0, "disciplines": []}
    return {
        "avg_age": rnd1(mean([r.age for r in runners])),
        "avg_weight": rnd1(mean([r.weight for r in runners])),
        "avg_earnings": rnd(mean([r.earnings_declared for r in runners])),
        "total_races": sum(r.career.races for r in runners),
        "disciplines": [race.discipline] if race.discipline else [],
    }


def compute_chart_bundle(
    race: RaceAggregate,
    today: Optional[date] = None,
    distance_ranges: Optional[dict[str, tuple[int, int]]] = None,
) -> dict:
    """Pure computation of the full chart bundle for one race."""
    today = today or paris_today()
    distance_ranges = distance_ranges or DEFAULT_DISTANCE_RANGES
    ranges = tuple(distance_ranges[discipline_family(race.discipline)])
    runners = [build_profile(r, race, distance_ranges) for r in race.runners]
    track = race.venue

    charts = {
        "win_rate": history_charts.win_rate(runners),
        "distance": history_charts.distance(runners),
        "jockey": connections.jockey(runners),
        "trainer": connections.trainer(runners),
        "ground": history_charts.ground(runners),
        "consistency": form_charts.consistency(runners),
        "momentum": form_charts.momentum(runners),
        "peak": form_charts.peak(runners),
        "course_perf": history_charts.course_perf(runners, track),
        "recency": history_charts.recency(runners),
        "seasonal": history_charts.seasonal(runners),
        "draw_bias": field_charts.draw_bias(runners),
        "equipment": field_charts.equipment(runners),
        "pedigree": history_charts.pedigree(runners),
        "pace": form_charts.pace(runners),
        "head_to_head": market_charts.head_to_head(runners),
        "speed_figures": form_charts.speed_figures(runners),
        "trip_notes": form_charts.trip_notes(runners),
        "track_bias": history_charts.track_bias(runners, track),
        "combos": connections.combos(runners),
        "weight": field_charts.weight(runners),
        "earnings": field_charts.earnings(runners),
        "profile": field_charts.profile(runners),
        "odds": market_charts.odds(runners),
        "ratings": market_charts.ratings(runners),
        "value_bet": market_charts.value_bet(runners),
        "race_class": field_charts.race_class(runners),
        "volume": market_charts.volume(runners, race.odds),
        "weight_evolution": history_charts.weight_evolution(runners),
        "class_progression": history_charts.class_progression(runners),
        "odds_accuracy": market_charts.odds_accuracy(runners),
        "market_confidence": market_charts.market_confidence(runners, race.odds),
        "speed": form_charts.speed(runners),
        "jockey_form": form_charts.jockey_form(runners),
        "trainer_form": form_charts.trainer_form(runners),
        "tandem_form": form_charts.tandem_form(runners),
        "money_flow": market_charts.money_flow(runners, race.odds),
        "market_sentiment": market_charts.market_sentiment(runners),
        "fitness_curve": history_charts.fitness_curve(runners),
        "weight_impact": history_charts.weight_impact(runners),
        "field_composition": form_charts.field_composition(runners),
        "expert_consensus": market_charts.expert_consensus(runners),
        "sectional_times": history_charts.sectional_times(runners),
        "strike_rate_by_track": connections.strike_rate_by_track(runners, track),
        "trip_handicapping": field_charts.trip_handicapping(runners),
        "race_shape": form_charts.race_shape(runners),
        "stable_confidence": market_charts.stable_confidence(runners),
        "form_cycle": form_charts.form_cycle(runners),
        "class_drop_rise": history_charts.class_drop_rise(runners, race.distance),
        "speed_rating": form_charts.speed_rating(runners),
        "layoff_impact": history_charts.layoff_impact(runners, today),
        "age_analysis": field_charts.age_analysis(runners, race.discipline),
        "distance_change": history_charts.distance_change(runners, race.distance),
        "winner_profile": field_charts.winner_profile(runners),
        "value_index": market_charts.value_index(runners, race.odds),
        "competition_level": field_charts.competition_level(runners),
        "finishing_kick": form_charts.finishing_kick(runners),
        "barrier_trial": history_charts.barrier_trial(runners, today),
        "pace_pressure": form_charts.pace_pressure(runners),
        "hot_streak": form_charts.hot_streak(runners),
        "track_condition_spec": history_charts.track_condition_spec(runners, race.ground),
        "distance_specialist": history_charts.distance_specialist(runners, race.distance, ranges),
        "bounce_candidate": form_charts.bounce_candidate(runners),
    }

    return {
        "race_overview": race_overview(race),
        "runners": [r.to_dict() for r in runners],
        "aggregated_stats": aggregated_stats(race, runners),
        "charts": charts,
        "form_data": form_charts.form_data(runners),
    }


class RaceAnalyticsService:
    """Loads a race and computes its chart bundle. Holds no state between calls."""

    def __init__(
        self,
        repository: RaceRepository,
        distance_ranges: Optional[dict[str, tuple[int, int]]] = None,
    ):
        self.repository = repository
        self.distance_ranges = distance_ranges or settings.distance_ranges

    async def compute_charts(self, guid: str, today: Optional[date] = None) -> dict:
        race = await self.repository.get_race_aggregate(guid)
        if race is None:
            raise RaceNotFoundError(guid)
        bundle = compute_chart_bundle(race, today=today, distance_ranges=self.distance_ranges)
        logger.debug(f"Computed {len(bundle['charts'])} charts for {guid} ({len(race.runners)} runners)")
        return bundle
