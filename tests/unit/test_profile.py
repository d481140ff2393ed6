"""Unit tests for runner profiles and shared analytics helpers."""

from datetime import date

from equiscope.analytics.profile import (
    build_profile,
    compute_career_stats,
    compute_discipline_stats,
    compute_distance_stats,
    compute_ground_stats,
    discipline_family,
    distance_bucket,
    ground_buckets,
    rnd,
    rnd1,
)
from equiscope.racing.aggregate import HistoryRace, HorseInfo, JudgeNote, OddsEntry, RaceAggregate, RunnerEntry


def _h(position: int, discipline: str = "Plat", distance: int = 2000, ground: str = "Bon", earnings: float = 0.0) -> HistoryRace:
    return HistoryRace(
        date=date(2025, 11, 1),
        position=position,
        discipline=discipline,
        distance=distance,
        ground=ground,
        earnings=earnings,
    )


class TestRounding:
    """Tests for half-up rounding."""

    def test_rnd_rounds_half_up(self):
        assert rnd(2.5) == 3
        assert rnd(3.5) == 4
        assert rnd(-2.5) == -2
        assert rnd(2.49) == 2

    def test_rnd1(self):
        assert rnd1(0.25) == 0.3
        assert rnd1(2.0) == 2.0
        assert rnd1(1.04) == 1.0


class TestBuckets:
    """Tests for discipline, distance and ground bucketing."""

    def test_discipline_family(self):
        assert discipline_family("Attelé") == "trot"
        assert discipline_family("Trot monté") == "trot"
        assert discipline_family("Haies") == "obstacle"
        assert discipline_family("Steeple-chase") == "obstacle"
        assert discipline_family("Plat") == "flat"
        assert discipline_family(None) == "flat"

    def test_distance_bucket_boundaries(self):
        assert distance_bucket(1399, (1400, 2400)) == "short"
        assert distance_bucket(1400, (1400, 2400)) == "medium"
        assert distance_bucket(2400, (1400, 2400)) == "long"

    def test_ground_buckets(self):
        assert ground_buckets("BON SOUPLE") == ["bon", "souple"]
        assert ground_buckets("Lourd") == ["lourd"]
        assert ground_buckets(None) == []


class TestCareerStats:
    """Tests for history-derived statistics."""

    def test_career(self):
        stats = compute_career_stats([_h(1, earnings=5000), _h(2, earnings=2000), _h(0), _h(5)])
        assert (stats.wins, stats.places, stats.races) == (1, 2, 4)
        assert stats.win_rate == 25
        assert stats.place_rate == 50
        assert stats.earnings == 7000

    def test_empty_history(self):
        stats = compute_career_stats([])
        assert stats.races == 0
        assert stats.win_rate == 0

    def test_discipline_stats_match_family(self):
        history = [_h(1, "Attelé"), _h(3, "Monté"), _h(1, "Plat")]
        stats = compute_discipline_stats(history, "Trot attelé")
        assert stats.races == 2
        assert stats.wins == 1
        assert stats.win_rate == 50
        assert stats.avg_position == 2.0

    def test_discipline_stats_none_without_matches(self):
        assert compute_discipline_stats([_h(1, "Plat")], "Haies") is None

    def test_distance_and_ground_stats(self):
        history = [_h(1, distance=1200, ground="Bon"), _h(4, distance=2000, ground="Souple"), _h(1, distance=2600, ground="Bon souple")]
        assert compute_distance_stats(history, (1400, 2400)) == {"short": 100, "medium": 0, "long": 100}
        assert compute_ground_stats(history) == {"bon": 100, "souple": 50, "lourd": 0}

    def test_distance_and_ground_stats_none_without_history(self):
        assert compute_distance_stats([], (1400, 2400)) is None
        assert compute_ground_stats([]) is None


class TestBuildProfile:
    """Tests for build_profile."""

    def _race(self, horse: HorseInfo) -> RaceAggregate:
        return RaceAggregate(
            guid="20251212_R4_C1",
            name="Prix Test",
            venue="Longchamp",
            meeting_date=date(2025, 12, 12),
            distance=2000,
            discipline="Plat",
            runners=[RunnerEntry(num=3, horse=horse, jockey="C. Soumillon", weight=58.0, gate="7", odds=4.5)],
            odds=[OddsEntry(num=3, odds=4.5, total_stake=1200.0)],
            notes=[JudgeNote(num=3, text="Bien placé", rating=15.0)],
        )

    def test_profile_fields(self):
        horse = HorseInfo(slug="h", name="Alpha", age=4, form="1p3p15pDp", earnings=30000.0, history=[_h(1), _h(3)])
        race = self._race(horse)
        profile = build_profile(race.runners[0], race)

        assert profile.positions == [1, 3, 10, 10]
        assert profile.label() == {"name": "#3", "full_name": "Alpha"}
        assert profile.gate_number == 7
        assert profile.market.total_stake == 1200.0
        assert profile.note.rating == 15.0
        assert profile.career.races == 2
        assert profile.jockey_form == "1p3p"
        assert profile.earnings_declared == 30000.0

    def test_non_numeric_gate(self):
        horse = HorseInfo(slug="h", name="Alpha")
        race = self._race(horse)
        race.runners[0].gate = "?"
        assert build_profile(race.runners[0], race).gate_number == 0

    def test_custom_distance_ranges(self):
        horse = HorseInfo(slug="h", name="Alpha", history=[_h(1, distance=2000)])
        race = self._race(horse)
        ranges = {"flat": (2100, 3000), "trot": (2000, 3000), "obstacle": (3000, 4500)}
        profile = build_profile(race.runners[0], race, ranges)
        assert profile.distance_stats == {"short": 100, "medium": 0, "long": 0}

    def test_to_dict(self):
        horse = HorseInfo(slug="h", name="Alpha", history=[_h(2)])
        race = self._race(horse)
        data = build_profile(race.runners[0], race).to_dict()
        assert data["horse_name"] == "Alpha"
        assert data["career_stats"]["races"] == 1
        assert data["recent_history"][0]["position"] == 2
        assert data["discipline_stats"]["races"] == 1
