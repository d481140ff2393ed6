"""Charts derived from parsed form positions (most recent first)."""

from __future__ import annotations

import math

from equiscope.analytics.profile import RunnerProfile, mean, pvariance, rnd, rnd1
from equiscope.racing.form import parse_form

SERIES_LENGTH = 10


def _early_late(positions: list[int]) -> tuple[float, float]:
    """Average of the three most recent and the three oldest positions."""
    return mean(positions[:3]), mean(positions[-3:])


def _is_front_runner(r: RunnerProfile) -> bool:
    return len(r.positions) >= 3 and mean(r.positions[:3]) < 4


def consistency(runners: list[RunnerProfile]) -> list[dict]:
    """Score = max(0, 100 - 20 * stddev of positions). Needs 3 runs."""
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        sd = math.sqrt(pvariance(r.positions))
        rows.append({
            **r.label(),
            "consistency": rnd(max(0.0, 100 - sd * 20)),
            "avg_position": rnd1(mean(r.positions)),
            "std_dev": rnd1(sd),
        })
    return sorted(rows, key=lambda x: x["consistency"], reverse=True)


def momentum(runners: list[RunnerProfile]) -> list[dict]:
    """Last three runs against the three before. Needs 4 runs."""
    rows = []
    for r in runners:
        if len(r.positions) < 4:
            continue
        recent_avg = mean(r.positions[0:3])
        previous_avg = mean(r.positions[3:6])
        value = rnd(-(recent_avg - previous_avg) * 20)
        rows.append({
            **r.label(),
            "momentum": value,
            "recent_avg": rnd1(recent_avg),
            "previous_avg": rnd1(previous_avg),
            "trend": "Improving" if value > 10 else "Declining" if value < -10 else "Stable",
        })
    return sorted(rows, key=lambda x: x["momentum"], reverse=True)


def peak(runners: list[RunnerProfile]) -> list[dict]:
    """Win rate over the last five runs against the whole parsed form. Needs 5 runs."""
    rows = []
    for r in runners:
        if len(r.positions) < 5:
            continue
        recent = r.positions[:5]
        recent_rate = recent.count(1) / len(recent) * 100
        career_rate = r.positions.count(1) / len(r.positions) * 100
        diff = recent_rate - career_rate
        rows.append({
            **r.label(),
            "recent": rnd(recent_rate),
            "career": rnd(career_rate),
            "peak": rnd(diff),
            "status": "Peak Form" if diff > 10 else "Below Par" if diff < -10 else "Normal",
        })
    return sorted(rows, key=lambda x: x["peak"], reverse=True)


def pace(runners: list[RunnerProfile]) -> list[dict]:
    """Early vs finishing speed, speed = (11 - position) * 10. Needs 3 runs."""
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        early_speed = rnd(mean([11 - p for p in r.positions[:3]]) * 10)
        finish_speed = rnd(mean([11 - p for p in r.positions[-3:]]) * 10)
        if early_speed > finish_speed + 10:
            style = "Front-runner"
        elif finish_speed > early_speed + 10:
            style = "Closer"
        else:
            style = "Balanced"
        rows.append({**r.label(), "early_speed": early_speed, "finish_speed": finish_speed, "style": style})
    return rows


def speed_figures(runners: list[RunnerProfile]) -> list[dict]:
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        figures = [max(0, rnd(100 - p / 10 * 100)) for p in r.positions]
        rows.append({
            **r.label(),
            "avg": rnd(mean(figures)),
            "best": max(figures),
            "last": figures[0],
        })
    return sorted(rows, key=lambda x: x["avg"], reverse=True)


def trip_notes(runners: list[RunnerProfile]) -> list[dict]:
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        early, late = _early_late(r.positions)
        if early < 4:
            style = "Front-Runner"
        elif late < early - 2:
            style = "Closer"
        else:
            style = "Balanced"
        rows.append({**r.label(), "early": rnd1(early), "late": rnd1(late), "style": style})
    return rows


def speed(runners: list[RunnerProfile]) -> list[dict]:
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        avg = mean(r.positions)
        rows.append({**r.label(), "speed": max(0, rnd(100 - avg * 8)), "avg_position": rnd1(avg)})
    return sorted(rows, key=lambda x: x["speed"], reverse=True)


def form_cycle(runners: list[RunnerProfile]) -> list[dict]:
    """Needs 6 runs; positive trend means the horse is getting closer to the front."""
    rows = []
    for r in runners:
        if len(r.positions) < 6:
            continue
        recent_avg = mean(r.positions[0:3])
        previous_avg = mean(r.positions[3:6])
        trend = previous_avg - recent_avg
        rows.append({
            **r.label(),
            "cycle": "Improving" if trend > 2 else "Declining" if trend < -2 else "Stable",
            "score": max(0, min(100, rnd(50 + trend * 10))),
            "recent_avg": rnd1(recent_avg),
            "previous_avg": rnd1(previous_avg),
            "trend": rnd1(trend),
        })
    return sorted(rows, key=lambda x: x["score"], reverse=True)


def speed_rating(runners: list[RunnerProfile]) -> list[dict]:
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        positions = r.positions[:5]
        avg = mean(positions)
        rating = max(0.0, 100 - avg * 8)
        consistency_bonus = max(0.0, 10 - pvariance(positions))
        rating += consistency_bonus
        if positions[0] <= 3:
            rating += 10
        rating += r.career.win_rate / 2
        rows.append({
            **r.label(),
            "speed_rating": rnd(min(100.0, rating)),
            "avg_position": rnd1(avg),
            "consistency": rnd(consistency_bonus),
            "class": r.career.win_rate,
        })
    return sorted(rows, key=lambda x: x["speed_rating"], reverse=True)


def finishing_kick(runners: list[RunnerProfile]) -> list[dict]:
    """Run-to-run improvement over the last five runs. Needs 5 runs."""
    rows = []
    for r in runners:
        if len(r.positions) < 5:
            continue
        positions = r.positions[:5]
        # Negative difference: the newer run finished closer to the front
        diffs = [positions[i + 1] - positions[i] for i in range(len(positions) - 1)]
        avg = mean(diffs)
        if avg < -1:
            kick_type = "Strong Closer"
        elif avg < 0:
            kick_type = "Closer"
        elif avg < 1:
            kick_type = "Steady"
        else:
            kick_type = "Fader"
        rows.append({
            **r.label(),
            "kick_score": max(0, min(100, rnd(50 - avg * 10))),
            "kick_type": kick_type,
            "avg_improvement": rnd1(avg),
        })
    return sorted(rows, key=lambda x: x["kick_score"], reverse=True)


def bounce_candidate(runners: list[RunnerProfile]) -> list[dict]:
    """Regression risk after a run far better than the horse's norm. Needs 5 runs."""
    rows = []
    for r in runners:
        if len(r.positions) < 5:
            continue
        last = r.positions[0]
        best = min(r.positions)
        avg = mean(r.positions)
        if last == best and last < avg - 3:
            risk = 80
        elif last <= 2 and last < avg - 2:
            risk = 60
        elif last < avg:
            risk = 30
        else:
            risk = 10
        rows.append({
            **r.label(),
            "bounce_risk": risk,
            "last_position": last,
            "career_best": best,
            "avg_position": rnd1(avg),
            "warning": "High Risk" if risk >= 60 else "Moderate Risk" if risk >= 40 else "Low Risk",
        })
    return sorted(rows, key=lambda x: x["bounce_risk"], reverse=True)


def pace_pressure(runners: list[RunnerProfile]) -> list[dict]:
    front_runners = sum(1 for r in runners if _is_front_runner(r))
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        is_front = mean(r.positions[:3]) < 4
        if is_front:
            score = 30 + front_runners * 10
        else:
            score = 70 - front_runners * 5
        rows.append({
            **r.label(),
            "pressure_score": max(0, min(100, score)),
            "style": "Front Runner" if is_front else "Closer",
            "front_runners_in_field": front_runners,
        })
    return sorted(rows, key=lambda x: x["pressure_score"])


def field_composition(runners: list[RunnerProfile]) -> dict:
    distribution = {"front_runners": 0, "closers": 0, "balanced": 0}
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        early, late = _early_late(r.positions)
        if early < 4:
            style = "Front-Runner"
            distribution["front_runners"] += 1
        elif late < early - 2:
            style = "Closer"
            distribution["closers"] += 1
        else:
            style = "Balanced"
            distribution["balanced"] += 1
        rows.append({**r.label(), "style": style, "early_avg": rnd1(early), "late_avg": rnd1(late)})

    fronts = distribution["front_runners"]
    if fronts > 3:
        advantage = "Closers"
    elif distribution["closers"] > fronts:
        advantage = "Front-Runners"
    else:
        advantage = "Balanced"
    return {
        "distribution": distribution,
        "pace_pressure": "High" if fronts > 3 else "Low" if fronts < 2 else "Moderate",
        "tactical_advantage": advantage,
        "runners": rows,
    }


def race_shape(runners: list[RunnerProfile]) -> dict:
    distribution = {"front_runners": 0, "pressers": 0, "closers": 0}
    rows = []
    for r in runners:
        if len(r.positions) < 3:
            continue
        early, late = _early_late(r.positions)
        if early < 4:
            style, score = "Front-Runner", 10
            distribution["front_runners"] += 1
        elif early < 7 and late < early:
            style, score = "Presser", 7
            distribution["pressers"] += 1
        else:
            style, score = "Closer", 4
            distribution["closers"] += 1
        rows.append({
            **r.label(),
            "style": style,
            "style_score": score,
            "early_avg": rnd1(early),
            "late_avg": rnd1(late),
        })

    fronts = distribution["front_runners"]
    if fronts > 3:
        advantage = "Closers"
    elif distribution["closers"] > fronts:
        advantage = "Front-Runners"
    else:
        advantage = "Balanced"
    return {
        "runners": rows,
        "distribution": distribution,
        "pace_scenario": "Hot Pace" if fronts > 3 else "Slow Pace" if fronts < 2 else "Moderate Pace",
        "advantage": advantage,
    }


def hot_streak(runners: list[RunnerProfile]) -> list[dict]:
    """Recent wins of jockey, trainer (5 runs, 15 each) and horse (3 runs, 20 each)."""
    rows = []
    for r in runners:
        score = 0
        if r.jockey_form:
            score += parse_form(r.jockey_form, 5).count(1) * 15
        if r.trainer_form:
            score += parse_form(r.trainer_form, 5).count(1) * 15
        score += r.positions[:3].count(1) * 20
        rows.append({
            **r.label(),
            "streak_score": min(100, score),
            "status": "Hot" if score >= 60 else "Warm" if score >= 30 else "Cold",
        })
    return sorted(rows, key=lambda x: x["streak_score"], reverse=True)


# ──────────────────────────────────────────────
# Line-chart series (x = runs ago)
# ──────────────────────────────────────────────

def _series(runners: list[RunnerProfile], positions_of) -> list[dict]:
    per_runner = {}
    for r in runners:
        positions = positions_of(r)
        if positions is not None:
            per_runner[r.horse_name] = positions

    points = []
    for i in range(SERIES_LENGTH):
        point: dict = {"race": i + 1}
        for name, positions in per_runner.items():
            point[name] = positions[i] if i < len(positions) else None
        points.append(point)
    return points


def jockey_form(runners: list[RunnerProfile]) -> list[dict]:
    return _series(runners, lambda r: parse_form(r.jockey_form, SERIES_LENGTH) if r.jockey_form else None)


def trainer_form(runners: list[RunnerProfile]) -> list[dict]:
    return _series(runners, lambda r: parse_form(r.trainer_form, SERIES_LENGTH) if r.trainer_form else None)


def tandem_form(runners: list[RunnerProfile]) -> list[dict]:
    return _series(runners, lambda r: r.positions if r.positions else None)


def form_data(runners: list[RunnerProfile]) -> list[dict]:
    """Positions from the raw history with tooltip metadata per run."""
    points = []
    for i in range(SERIES_LENGTH):
        point: dict = {"race": i + 1}
        for r in runners:
            if i >= len(r.history):
                point[r.horse_name] = None
                continue
            h = r.history[i]
            point[r.horse_name] = h.position if h.position > 0 else None
            point[f"{r.horse_name}_meta"] = {
                "position": h.position,
                "date": h.date.isoformat() if h.date else "N/A",
                "course": h.venue,
                "race_name": h.race_name,
                "distance": h.distance,
                "condition": h.ground,
                "discipline": h.discipline,
                "jockey": h.jockey or "N/A",
                "weight": h.weight,
                "time": h.time or "N/A",
                "comment": h.comment,
                "vmax": h.vmax,
                "last_600m": h.last_600m,
                "last_200m": h.last_200m,
            }
        points.append(point)
    return points
