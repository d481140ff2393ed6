"""Charts describing the field as entered today: weights, draws, ages, class."""

from __future__ import annotations

from equiscope.analytics.profile import (
    PEAK_AGE,
    RunnerProfile,
    discipline_family,
    mean,
    pvariance,
    rnd,
    rnd1,
)

BASE_WEIGHT = 55  # kg


def weight(runners: list[RunnerProfile]) -> list[dict]:
    return [
        {**r.label(), "weight": r.weight, "handicap": rnd1(r.weight - BASE_WEIGHT)}
        for r in runners
        if r.weight > 0
    ]


def earnings(runners: list[RunnerProfile]) -> list[dict]:
    rows = [{**r.label(), "earnings_k": rnd(r.career.earnings / 1000)} for r in runners]
    return sorted(rows, key=lambda x: x["earnings_k"], reverse=True)


def profile(runners: list[RunnerProfile]) -> list[dict]:
    return [{**r.label(), "age": r.age, "races": r.career.races} for r in runners]


def race_class(runners: list[RunnerProfile]) -> list[dict]:
    """Class band implied by the earnings accumulated over past starts."""
    rows = []
    for r in runners:
        e = r.career.earnings
        rows.append({
            **r.label(),
            "group": 5 if e > 100_000 else 0,
            "listed": 3 if 50_000 < e <= 100_000 else 0,
            "handicap": 5 if 20_000 < e <= 50_000 else 0,
            "claiming": 3 if 5_000 < e <= 20_000 else 0,
            "other": r.career.races if e <= 5_000 else 0,
        })
    return rows


def _zone(gate: int, field_size: int) -> str:
    if gate <= 3:
        return "Inside"
    if gate > field_size - 3:
        return "Outside"
    return "Middle"


def draw_bias(runners: list[RunnerProfile]) -> list[dict]:
    """Today's draw of every runner with a known gate."""
    field_size = len(runners)
    return [
        {**r.label(), "current_gate": r.gate_number, "zone": _zone(r.gate_number, field_size)}
        for r in runners
        if r.gate_number > 0
    ]


def trip_handicapping(runners: list[RunnerProfile]) -> list[dict]:
    """Trip difficulty (1-10) from the draw in big fields."""
    field_size = len(runners)
    rows = []
    for r in runners:
        gate = r.gate_number
        if gate <= 0:
            continue
        difficulty = 5
        if gate <= 3 and field_size > 12:
            difficulty += 2
        if gate > field_size - 3 and field_size > 12:
            difficulty += 1
        if 3 < gate < field_size - 3:
            difficulty -= 1
        rows.append({
            **r.label(),
            "gate": gate,
            "difficulty": max(1, min(10, difficulty)),
            "position": _zone(gate, field_size),
        })
    return sorted(rows, key=lambda x: x["difficulty"])


def age_analysis(runners: list[RunnerProfile], discipline: str) -> list[dict]:
    peak_age = PEAK_AGE[discipline_family(discipline)]
    rows = []
    for r in runners:
        if r.age <= 0:
            continue
        if r.age < peak_age - 1:
            status = "Developing"
        elif r.age <= peak_age + 1:
            status = "Peak"
        else:
            status = "Veteran"
        rows.append({
            **r.label(),
            "age": r.age,
            "peak_age": peak_age,
            "age_score": max(0, 100 - abs(r.age - peak_age) * 15),
            "status": status,
            "experience": r.career.races,
        })
    return sorted(rows, key=lambda x: x["age_score"], reverse=True)


def winner_profile(runners: list[RunnerProfile]) -> list[dict]:
    """How closely each runner matches a typical winner (0-100)."""
    rows = []
    for r in runners:
        score = 0.0
        if r.positions and r.positions[0] <= 3:
            score += 30
        score += min(25, r.career.win_rate * 1.5)
        if len(r.positions) >= 3:
            score += max(0.0, 20 - pvariance(r.positions[:5]))
        if r.career.earnings > 50_000:
            score += 15
        elif r.career.earnings > 20_000:
            score += 10
        score += 10 if r.career.races >= 10 else r.career.races

        if score >= 80:
            level = "Strong Match"
        elif score >= 60:
            level = "Good Match"
        elif score >= 40:
            level = "Fair Match"
        else:
            level = "Weak Match"
        rows.append({**r.label(), "profile_score": rnd(score), "match_level": level})
    return sorted(rows, key=lambda x: x["profile_score"], reverse=True)


def competition_level(runners: list[RunnerProfile]) -> list[dict]:
    """Win rate and earnings relative to the field average."""
    if not runners:
        return []
    avg_win_rate = mean([r.career.win_rate for r in runners])
    avg_earnings = mean([r.career.earnings for r in runners])
    rows = []
    for r in runners:
        win_rate_diff = r.career.win_rate - avg_win_rate
        earnings_pct = (r.career.earnings - avg_earnings) / avg_earnings * 100 if avg_earnings else 0.0
        edge = rnd(win_rate_diff * 2 + earnings_pct / 10)
        if edge > 20:
            standing = "Class Above"
        elif edge > 0:
            standing = "Above Average"
        elif edge > -20:
            standing = "Average"
        else:
            standing = "Outclassed"
        rows.append({
            **r.label(),
            "competitive_edge": edge,
            "standing": standing,
            "win_rate_vs_field": rnd(win_rate_diff),
            "earnings_vs_field": rnd(earnings_pct),
        })
    return sorted(rows, key=lambda x: x["competitive_edge"], reverse=True)


def equipment(runners: list[RunnerProfile]) -> list[dict]:
    """Blinkers and shoeing declared in the judge notes, first-time changes flagged."""
    rows = []
    for r in runners:
        note = r.note
        if note is None or not (note.blinkers or note.shoeing):
            continue
        rows.append({
            **r.label(),
            "blinkers": note.blinkers or None,
            "blinkers_first_time": note.blinkers_first_time,
            "shoeing": note.shoeing or None,
            "shoeing_first_time": note.shoeing_first_time,
            "changes": int(note.blinkers_first_time) + int(note.shoeing_first_time),
        })
    return sorted(rows, key=lambda x: x["changes"], reverse=True)
