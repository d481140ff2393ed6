"""Per-runner feature extraction shared by every chart.

A RunnerProfile is built once per runner from the race aggregate: parsed
form, career record from the history, and the distance/ground/discipline
splits. Chart functions only read profiles.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from equiscope.config import DEFAULT_DISTANCE_RANGES
from equiscope.racing.aggregate import HistoryRace, JudgeNote, OddsEntry, RaceAggregate, RunnerEntry
from equiscope.racing.form import build_form_string, parse_form

FORM_LIMIT = 10
RECENT_STARTS = 5
HISTORY_WINDOW = 10

GROUND_BUCKETS = ("bon", "souple", "lourd")
PEAK_AGE = {"flat": 4, "trot": 5, "obstacle": 7}


# ──────────────────────────────────────────────
# Rounding
# ──────────────────────────────────────────────

def rnd(x: float) -> int:
    """Round half up (2.5 -> 3), unlike Python's banker's rounding."""
    return int(math.floor(x + 0.5))


def rnd1(x: float) -> float:
    """Round half up to one decimal."""
    return math.floor(x * 10 + 0.5) / 10


def mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def pvariance(values: list[float]) -> float:
    """Population variance."""
    if not values:
        return 0.0
    avg = mean(values)
    return sum((v - avg) ** 2 for v in values) / len(values)


# ──────────────────────────────────────────────
# Discipline / distance / ground bucketing
# ──────────────────────────────────────────────

def discipline_family(discipline: Optional[str]) -> str:
    """Bucket a provider discipline label into flat, trot or obstacle."""
    d = (discipline or "").lower()
    if any(k in d for k in ("trot", "attel", "mont")):
        return "trot"
    if any(k in d for k in ("obstacle", "haie", "steeple", "cross")):
        return "obstacle"
    return "flat"


def distance_bucket(distance: int, ranges: tuple[int, int]) -> str:
    short, long = ranges
    if distance < short:
        return "short"
    if distance >= long:
        return "long"
    return "medium"


def ground_buckets(ground: Optional[str]) -> list[str]:
    """Buckets named in a going description ("BON SOUPLE" is both)."""
    g = (ground or "").upper()
    return [b for b in GROUND_BUCKETS if b.upper() in g]


# ──────────────────────────────────────────────
# Per-runner stats
# ──────────────────────────────────────────────

@dataclass
class CareerStats:
    wins: int = 0
    places: int = 0
    races: int = 0
    win_rate: int = 0
    place_rate: int = 0
    earnings: float = 0.0

    def to_dict(self) -> dict:
        return {
            "wins": self.wins,
            "places": self.places,
            "races": self.races,
            "win_rate": self.win_rate,
            "place_rate": self.place_rate,
            "earnings": self.earnings,
        }


@dataclass
class DisciplineStats:
    wins: int
    races: int
    win_rate: int
    avg_position: float


def _win_rate(races: list[HistoryRace]) -> int:
    if not races:
        return 0
    return rnd(sum(1 for r in races if r.position == 1) / len(races) * 100)


def compute_career_stats(history: list[HistoryRace]) -> CareerStats:
    if not history:
        return CareerStats()
    wins = sum(1 for r in history if r.position == 1)
    places = sum(1 for r in history if 1 <= r.position <= 3)
    races = len(history)
    return CareerStats(
        wins=wins,
        places=places,
        races=races,
        win_rate=rnd(wins / races * 100),
        place_rate=rnd(places / races * 100),
        earnings=sum(r.earnings for r in history),
    )


def compute_discipline_stats(history: list[HistoryRace], discipline: str) -> Optional[DisciplineStats]:
    family = discipline_family(discipline)
    races = [r for r in history if discipline_family(r.discipline) == family]
    if not races:
        return None
    wins = sum(1 for r in races if r.position == 1)
    total_position = sum(r.position for r in races if r.position > 0)
    return DisciplineStats(
        wins=wins,
        races=len(races),
        win_rate=rnd(wins / len(races) * 100),
        avg_position=rnd1(total_position / len(races)),
    )


def compute_distance_stats(history: list[HistoryRace], ranges: tuple[int, int]) -> Optional[dict]:
    """Win rate per distance bucket; None without history."""
    if not history:
        return None
    buckets: dict[str, list[HistoryRace]] = {"short": [], "medium": [], "long": []}
    for r in history:
        buckets[distance_bucket(r.distance, ranges)].append(r)
    return {name: _win_rate(races) for name, races in buckets.items()}


def compute_ground_stats(history: list[HistoryRace]) -> Optional[dict]:
    """Win rate per going bucket; None without history."""
    if not history:
        return None
    buckets: dict[str, list[HistoryRace]] = {b: [] for b in GROUND_BUCKETS}
    for r in history:
        for b in ground_buckets(r.ground):
            buckets[b].append(r)
    return {name: _win_rate(races) for name, races in buckets.items()}


# ──────────────────────────────────────────────
# Runner profile
# ──────────────────────────────────────────────

@dataclass
class RunnerProfile:
    """Everything the charts need to know about one runner."""

    num: int
    horse_name: str
    horse_slug: str
    age: int
    sex: str
    jockey: str
    trainer: str
    weight: float
    gate: str
    odds: Optional[float]
    rating: Optional[float]
    form: str
    positions: list[int]
    career: CareerStats
    history: list[HistoryRace] = field(default_factory=list)  # last 10 starts
    recent_history: list[HistoryRace] = field(default_factory=list)  # last 5 starts
    discipline_stats: Optional[DisciplineStats] = None
    distance_stats: Optional[dict] = None
    ground_stats: Optional[dict] = None
    jockey_form: str = ""
    trainer_form: str = ""
    earnings_declared: float = 0.0
    market: Optional[OddsEntry] = None
    note: Optional[JudgeNote] = None

    @property
    def gate_number(self) -> int:
        try:
            return int(str(self.gate).strip())
        except ValueError:
            return 0

    def label(self) -> dict:
        """Common identification fields of every chart row."""
        return {"name": f"#{self.num}", "full_name": self.horse_name}

    def to_dict(self) -> dict:
        return {
            "num": self.num,
            "horse_name": self.horse_name,
            "horse_slug": self.horse_slug,
            "age": self.age,
            "sex": self.sex,
            "jockey": self.jockey,
            "trainer": self.trainer,
            "weight": self.weight,
            "gate": self.gate,
            "odds": self.odds,
            "rating": self.rating,
            "form": self.form,
            "positions": self.positions,
            "career_stats": self.career.to_dict(),
            "recent_history": [
                {
                    "date": h.date.isoformat() if h.date else None,
                    "track": h.venue,
                    "distance": h.distance,
                    "position": h.position,
                    "ground": h.ground,
                    "discipline": h.discipline,
                }
                for h in self.recent_history
            ],
            "discipline_stats": (
                {
                    "wins": self.discipline_stats.wins,
                    "races": self.discipline_stats.races,
                    "win_rate": self.discipline_stats.win_rate,
                    "avg_position": self.discipline_stats.avg_position,
                }
                if self.discipline_stats else None
            ),
            "distance_stats": self.distance_stats,
            "ground_stats": self.ground_stats,
            "jockey_form": self.jockey_form,
            "trainer_form": self.trainer_form,
        }


def build_profile(
    runner: RunnerEntry,
    race: RaceAggregate,
    distance_ranges: Optional[dict[str, tuple[int, int]]] = None,
) -> RunnerProfile:
    ranges = (distance_ranges or DEFAULT_DISTANCE_RANGES)[discipline_family(race.discipline)]
    horse = runner.horse
    history = horse.history

    return RunnerProfile(
        num=runner.num,
        horse_name=horse.name,
        horse_slug=horse.slug,
        age=horse.age,
        sex=horse.sex,
        jockey=runner.jockey,
        trainer=runner.trainer,
        weight=runner.weight,
        gate=runner.gate,
        odds=runner.odds,
        rating=runner.rating,
        form=horse.form,
        positions=parse_form(horse.form, FORM_LIMIT),
        career=compute_career_stats(history),
        history=history[:HISTORY_WINDOW],
        recent_history=history[:RECENT_STARTS],
        discipline_stats=compute_discipline_stats(history, race.discipline),
        distance_stats=compute_distance_stats(history, tuple(ranges)),
        ground_stats=compute_ground_stats(history),
        # Precomputed strings win; otherwise re-encode the horse's own history
        jockey_form=horse.jockey_form or build_form_string(history, HISTORY_WINDOW),
        trainer_form=horse.trainer_form or build_form_string(history, HISTORY_WINDOW),
        earnings_declared=horse.earnings,
        market=race.odds_for(runner.num),
        note=race.note_for(runner.num),
    )
