"""Charts derived from the runners' past starts (dates, venues, distances, going)."""

from __future__ import annotations

from datetime import date

from equiscope.analytics.profile import (
    RunnerProfile,
    distance_bucket,
    ground_buckets,
    mean,
    rnd,
    rnd1,
)
from equiscope.racing.aggregate import HistoryRace
from equiscope.racing.form import DNF_POSITION


def _rate(hits: int, total: int) -> int:
    return rnd(hits / total * 100) if total else 0


def _finish(h: HistoryRace) -> int:
    """Finishing position with unplaced starts (0) scored like non-finishers."""
    return h.position if h.position > 0 else DNF_POSITION


def _placed(h: HistoryRace) -> bool:
    return 1 <= h.position <= 3


def _gaps(history: list[HistoryRace]) -> list[tuple[int, HistoryRace]]:
    """(days since the previous start, start) for consecutive dated starts."""
    gaps = []
    for current, previous in zip(history, history[1:]):
        if current.date and previous.date:
            gaps.append(((current.date - previous.date).days, current))
    return gaps


def win_rate(runners: list[RunnerProfile]) -> list[dict]:
    rows = [
        {
            **r.label(),
            "win_rate": r.career.win_rate,
            "place_rate": r.career.place_rate,
            "total_races": r.career.races,
        }
        for r in runners
        if r.career.races > 0
    ]
    return sorted(rows, key=lambda x: x["win_rate"], reverse=True)


def distance(runners: list[RunnerProfile]) -> list[dict]:
    return [{**r.label(), **r.distance_stats} for r in runners if r.distance_stats]


def ground(runners: list[RunnerProfile]) -> list[dict]:
    return [{**r.label(), **r.ground_stats} for r in runners if r.ground_stats]


def _at_track(r: RunnerProfile, track: str) -> list[HistoryRace]:
    return [h for h in r.recent_history if h.venue == track]


def course_perf(runners: list[RunnerProfile], track: str) -> list[dict]:
    rows = []
    for r in runners:
        races = _at_track(r, track)
        if not races:
            continue
        rows.append({
            **r.label(),
            "win_rate": _rate(sum(1 for h in races if h.position == 1), len(races)),
            "place_rate": _rate(sum(1 for h in races if _placed(h)), len(races)),
            "avg_position": rnd1(mean([_finish(h) for h in races])),
            "races": len(races),
            "track": track,
        })
    return sorted(rows, key=lambda x: x["win_rate"], reverse=True)


def track_bias(runners: list[RunnerProfile], track: str) -> list[dict]:
    rows = []
    for r in runners:
        races = _at_track(r, track)
        if not races:
            continue
        rows.append({
            **r.label(),
            "avg_position": rnd1(mean([_finish(h) for h in races])),
            "win_rate": _rate(sum(1 for h in races if h.position == 1), len(races)),
            "races": len(races),
            "track": track,
        })
    return sorted(rows, key=lambda x: x["avg_position"])


def recency(runners: list[RunnerProfile]) -> list[dict]:
    """Win rate when fresh (<=14 days), normal (<=42) or rusty (>42)."""
    rows = []
    for r in runners:
        if len(r.recent_history) < 2:
            continue
        runs = [(days, h.position == 1) for days, h in _gaps(r.recent_history) if 0 < days < 365]
        if not runs:
            continue
        fresh = [won for days, won in runs if days <= 14]
        normal = [won for days, won in runs if 14 < days <= 42]
        rusty = [won for days, won in runs if days > 42]
        rows.append({
            **r.label(),
            "fresh": _rate(sum(fresh), len(fresh)),
            "normal": _rate(sum(normal), len(normal)),
            "rusty": _rate(sum(rusty), len(rusty)),
        })
    return rows


def _season(month: int) -> str:
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "autumn"
    return "winter"


def seasonal(runners: list[RunnerProfile]) -> list[dict]:
    rows = []
    for r in runners:
        dated = [h for h in r.recent_history if h.date]
        if len(dated) < 4:
            continue
        seasons: dict[str, list[int]] = {"spring": [], "summer": [], "autumn": [], "winter": []}
        for h in dated:
            seasons[_season(h.date.month)].append(h.position)
        rows.append({
            **r.label(),
            **{name: _rate(positions.count(1), len(positions)) for name, positions in seasons.items()},
        })
    return rows


def pedigree(runners: list[RunnerProfile]) -> list[dict]:
    """Aptitude for today's discipline family."""
    return [
        {**r.label(), "aptitude": r.discipline_stats.win_rate, "races": r.discipline_stats.races}
        for r in runners
        if r.discipline_stats
    ]


def class_progression(runners: list[RunnerProfile]) -> list[dict]:
    """Race level by distance band over the last starts. Needs 3 starts."""
    rows = []
    for r in runners:
        if len(r.recent_history) < 3:
            continue
        levels = [
            {"race": i + 1, "level": 3 if h.distance > 2000 else 2 if h.distance > 1600 else 1}
            for i, h in enumerate(r.recent_history)
        ]
        rows.append({**r.label(), "data": levels})
    return rows


def weight_evolution(runners: list[RunnerProfile]) -> list[dict]:
    """Carried weight over past starts against today's weight. Needs 2 weighted starts."""
    rows = []
    for r in runners:
        weighted = [h for h in r.history if h.weight > 0]
        if len(weighted) < 2:
            continue
        rows.append({
            **r.label(),
            "current_weight": r.weight,
            "last_weight": weighted[0].weight,
            "change": rnd1(r.weight - weighted[0].weight) if r.weight else None,
            "data": [{"race": i + 1, "weight": h.weight} for i, h in enumerate(weighted)],
        })
    return rows


def fitness_curve(runners: list[RunnerProfile]) -> list[dict]:
    """Per-run fitness from spacing (14-28 days best) and finishing position."""
    rows = []
    for r in runners:
        if len(r.recent_history) < 3:
            continue
        scores = []
        for days, h in _gaps(r.recent_history):
            score = 100
            if days < 7:
                score -= 30
            elif days > 42:
                score -= 40
            elif 14 <= days <= 28:
                score += 20
            score -= (_finish(h) - 1) * 5
            scores.append(max(0, min(100, score)))
        if not scores:
            continue
        rows.append({
            **r.label(),
            "current_fitness": scores[0],
            "peak_fitness": max(scores),
            "avg_fitness": rnd(mean(scores)),
            "trend": "Improving" if len(scores) > 1 and scores[0] > scores[1] else "Declining",
        })
    return sorted(rows, key=lambda x: x["current_fitness"], reverse=True)


def weight_impact(runners: list[RunnerProfile]) -> list[dict]:
    """Average finish carrying light / usual / heavy weights. Needs 3 weighted finishes."""
    rows = []
    for r in runners:
        runs = [h for h in r.history if h.weight > 0 and h.position > 0]
        if len(runs) < 3:
            continue
        avg_weight = mean([h.weight for h in runs])
        light = [h.position for h in runs if h.weight < avg_weight - 1]
        heavy = [h.position for h in runs if h.weight > avg_weight + 1]
        normal = [h.position for h in runs if avg_weight - 1 <= h.weight <= avg_weight + 1]
        rows.append({
            **r.label(),
            "current_weight": r.weight,
            "avg_weight": rnd1(avg_weight),
            "light_avg_pos": rnd1(mean(light)) if light else None,
            "normal_avg_pos": rnd1(mean(normal)) if normal else None,
            "heavy_avg_pos": rnd1(mean(heavy)) if heavy else None,
            "penalty": rnd1(r.weight - avg_weight) if r.weight else 0.0,
        })
    return sorted(rows, key=lambda x: x["current_weight"])


def sectional_times(runners: list[RunnerProfile]) -> list[dict]:
    """Top speeds (km/h) recorded on recent starts."""
    rows = []
    for r in runners:
        if len(r.recent_history) < 2:
            continue
        speeds = [h.vmax for h in r.recent_history if h.vmax]
        if not speeds:
            continue
        rows.append({
            **r.label(),
            "avg_speed": rnd1(mean(speeds)),
            "top_speed": max(speeds),
            "races": len(speeds),
        })
    return sorted(rows, key=lambda x: x["avg_speed"], reverse=True)


def layoff_impact(runners: list[RunnerProfile], today: date) -> list[dict]:
    rows = []
    for r in runners:
        if len(r.recent_history) < 2 or not r.recent_history[0].date:
            continue
        days = (today - r.recent_history[0].date).days
        if days < 7:
            impact, score = "Too Fresh", 70
        elif days <= 21:
            impact, score = "Optimal", 100
        elif days <= 42:
            impact, score = "Acceptable", 85
        elif days <= 90:
            impact, score = "Rusty", 60
        else:
            impact, score = "Very Rusty", 40
        rows.append({**r.label(), "days_since": days, "impact": impact, "score": score})
    return sorted(rows, key=lambda x: x["score"], reverse=True)


def barrier_trial(runners: list[RunnerProfile], today: date) -> list[dict]:
    """Readiness from the last start's recency and result."""
    rows = []
    for r in runners:
        if not r.recent_history or not r.recent_history[0].date:
            continue
        days = (today - r.recent_history[0].date).days
        last = r.positions[0] if r.positions else 10
        if days <= 14 and last <= 3:
            score = 90
        elif days <= 21 and last <= 5:
            score = 75
        elif days <= 30:
            score = 60
        else:
            score = 50
        rows.append({**r.label(), "trial_score": score, "days_since": days, "last_performance": last})
    return sorted(rows, key=lambda x: x["trial_score"], reverse=True)


def class_drop_rise(runners: list[RunnerProfile], current_distance: int) -> list[dict]:
    """Today's distance against the average of the last three starts."""
    rows = []
    for r in runners:
        if len(r.recent_history) < 3:
            continue
        recent = mean([h.distance for h in r.recent_history[:3]])
        change = current_distance - recent
        if change > 200:
            movement, advantage = "Rising", -10
        elif change < -200:
            movement, advantage = "Dropping", 15
        else:
            movement, advantage = "Same", 0
        rows.append({
            **r.label(),
            "movement": movement,
            "class_change": rnd(change),
            "advantage": advantage,
            "current_class": current_distance,
            "recent_class": rnd(recent),
        })
    return sorted(rows, key=lambda x: x["advantage"], reverse=True)


def distance_change(runners: list[RunnerProfile], current_distance: int) -> list[dict]:
    rows = []
    for r in runners:
        if not r.recent_history or r.recent_history[0].distance <= 0:
            continue
        last = r.recent_history[0].distance
        change = current_distance - last
        pct = rnd(change / last * 100)
        if abs(pct) < 10:
            impact = "Minimal"
        elif pct > 10:
            impact = "Stepping Up"
        else:
            impact = "Dropping Back"
        rows.append({
            **r.label(),
            "last_distance": last,
            "current_distance": current_distance,
            "change": change,
            "change_percent": pct,
            "impact": impact,
        })
    return sorted(rows, key=lambda x: abs(x["change_percent"]))


def track_condition_spec(runners: list[RunnerProfile], going: str) -> list[dict]:
    buckets = ground_buckets(going)
    condition = (going or "").upper()
    rows = []
    for r in runners:
        if not r.ground_stats:
            continue
        score = r.ground_stats[buckets[0]] if buckets else 50
        rows.append({
            **r.label(),
            "specialist_score": score,
            "expertise": "Specialist" if score >= 30 else "Capable" if score >= 15 else "Unproven",
            "condition": condition,
        })
    return sorted(rows, key=lambda x: x["specialist_score"], reverse=True)


def distance_specialist(
    runners: list[RunnerProfile], current_distance: int, ranges: tuple[int, int]
) -> list[dict]:
    bucket = distance_bucket(current_distance, ranges)
    rows = []
    for r in runners:
        if not r.distance_stats:
            continue
        suitability = r.distance_stats[bucket]
        rows.append({
            **r.label(),
            "suitability": suitability,
            "rating": "Ideal" if suitability >= 30 else "Suitable" if suitability >= 15 else "Questionable",
            "current_distance": current_distance,
        })
    return sorted(rows, key=lambda x: x["suitability"], reverse=True)
