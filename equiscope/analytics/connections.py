"""Jockey, trainer and partnership charts aggregated across the field."""

from __future__ import annotations

from equiscope.analytics.profile import RunnerProfile, rnd, rnd1


def _short_name(name: str) -> str:
    parts = (name or "").split()
    return parts[-1] if parts else ""


def _aggregate(runners: list[RunnerProfile], key_of) -> dict[str, dict]:
    stats: dict[str, dict] = {}
    for r in runners:
        s = stats.setdefault(key_of(r), {"wins": 0, "places": 0, "total": 0, "horses": []})
        s["horses"].append(f"#{r.num}")
        s["wins"] += r.career.wins
        s["places"] += r.career.places
        s["total"] += r.career.races
    return stats


def _rows(stats: dict[str, dict], short_names: bool) -> list[dict]:
    rows = []
    for name, s in stats.items():
        if s["total"] <= 0:
            continue
        rows.append({
            "name": _short_name(name) if short_names else name,
            "full_name": name,
            "win_rate": rnd1(s["wins"] / s["total"] * 100),
            "place_rate": rnd1(s["places"] / s["total"] * 100),
            "total_races": s["total"],
            "horses": ", ".join(s["horses"]),
        })
    return sorted(rows, key=lambda x: x["win_rate"], reverse=True)


def jockey(runners: list[RunnerProfile]) -> list[dict]:
    """Career record of the horses each jockey rides today."""
    return _rows(_aggregate(runners, lambda r: r.jockey), short_names=True)


def trainer(runners: list[RunnerProfile]) -> list[dict]:
    return _rows(_aggregate(runners, lambda r: r.trainer), short_names=True)


def combos(runners: list[RunnerProfile]) -> list[dict]:
    """Trainer/jockey pairings, keyed by surnames."""
    return _rows(
        _aggregate(runners, lambda r: f"{_short_name(r.trainer)}/{_short_name(r.jockey)}"),
        short_names=False,
    )


def strike_rate_by_track(runners: list[RunnerProfile], track: str) -> dict:
    """Wins at today's venue for each jockey and trainer (2+ starts there)."""
    jockeys: dict[str, dict] = {}
    trainers: dict[str, dict] = {}
    for r in runners:
        races = [h for h in r.recent_history if h.venue == track]
        if not races:
            continue
        wins = sum(1 for h in races if h.position == 1)
        for stats, name in ((jockeys, r.jockey), (trainers, r.trainer)):
            s = stats.setdefault(name, {"wins": 0, "races": 0, "horses": []})
            s["horses"].append(f"#{r.num}")
            s["races"] += len(races)
            s["wins"] += wins

    def _rows_for(stats: dict[str, dict]) -> list[dict]:
        rows = [
            {
                "name": _short_name(name),
                "full_name": name,
                "strike_rate": rnd(s["wins"] / s["races"] * 100) if s["races"] else 0,
                "wins": s["wins"],
                "races": s["races"],
                "horses": ", ".join(s["horses"]),
            }
            for name, s in stats.items()
            if s["races"] >= 2
        ]
        return sorted(rows, key=lambda x: x["strike_rate"], reverse=True)

    return {"jockeys": _rows_for(jockeys), "trainers": _rows_for(trainers)}
