"""Charts combining form with the betting market and expert ratings.

Odds are decimal (rapp_evol); implied probability is 100 / odds. Judge
ratings are on a 0-20 scale.
"""

from __future__ import annotations

from equiscope.analytics.profile import RunnerProfile, rnd
from equiscope.racing.aggregate import OddsEntry


def _implied(odds: float) -> float:
    return 100 / odds


def _priced(runners: list[RunnerProfile]) -> list[RunnerProfile]:
    return [r for r in runners if r.odds]


def odds(runners: list[RunnerProfile]) -> list[dict]:
    rows = [{**r.label(), "odds": r.odds} for r in _priced(runners)]
    return sorted(rows, key=lambda x: x["odds"])


def ratings(runners: list[RunnerProfile]) -> list[dict]:
    rows = [{**r.label(), "rating": r.rating} for r in runners if r.rating]
    return sorted(rows, key=lambda x: x["rating"], reverse=True)


def head_to_head(runners: list[RunnerProfile]) -> list[dict]:
    """The four shortest-priced runners side by side."""
    contenders = sorted(_priced(runners), key=lambda r: r.odds)[:4]
    return [
        {
            **r.label(),
            "odds": r.odds,
            "rating": r.rating or 0,
            "win_rate": r.career.win_rate,
            "earnings": rnd(r.career.earnings / 1000),
        }
        for r in contenders
    ]


def value_bet(runners: list[RunnerProfile]) -> list[dict]:
    rows = []
    for r in _priced(runners):
        if r.career.win_rate <= 0:
            continue
        value = max(0, rnd((r.career.win_rate - _implied(r.odds)) * 10))
        rows.append({**r.label(), "value": value, "odds": r.odds, "win_rate": r.career.win_rate})
    return sorted(rows, key=lambda x: x["value"], reverse=True)


def odds_accuracy(runners: list[RunnerProfile]) -> list[dict]:
    rows = []
    for r in _priced(runners):
        if r.career.win_rate <= 0:
            continue
        implied = _implied(r.odds)
        actual = r.career.win_rate
        rows.append({
            **r.label(),
            "outperform": rnd(actual - implied) if actual > implied else 0,
            "expected": rnd(actual) if abs(actual - implied) < 5 else 0,
            "underperform": rnd(implied - actual) if actual < implied else 0,
            "implied_prob": rnd(implied),
            "actual_prob": rnd(actual),
        })
    return sorted(rows, key=lambda x: x["outperform"], reverse=True)


def volume(runners: list[RunnerProfile], market: list[OddsEntry]) -> list[dict]:
    """Money staked per runner, in thousands."""
    if not market:
        return []
    rows = []
    for r in runners:
        stake_k = rnd(r.market.total_stake / 1000) if r.market else 0
        if stake_k > 0:
            rows.append({**r.label(), "volume_k": stake_k})
    return sorted(rows, key=lambda x: x["volume_k"], reverse=True)


def market_confidence(runners: list[RunnerProfile], market: list[OddsEntry]) -> list[dict]:
    """Share of the total pool staked on each priced runner."""
    if not market:
        return []
    total = sum(o.total_stake for o in market)
    rows = []
    for r in _priced(runners):
        stake = r.market.total_stake if r.market else 0.0
        rows.append({
            **r.label(),
            "confidence": rnd(stake / total * 100) if total > 0 else 0,
            "odds": r.odds,
        })
    return sorted(rows, key=lambda x: x["confidence"], reverse=True)


def money_flow(runners: list[RunnerProfile], market: list[OddsEntry]) -> list[dict]:
    """Direction of the price: shortening means smart money."""
    if not market:
        return []
    rows = []
    for r in _priced(runners):
        if r.market is None:
            continue
        stake = r.market.total_stake
        odds_change = -5 if r.market.trend == "-" else 5 if r.market.trend == "+" else 0
        if odds_change < 0:
            trend = "Smart Money"
        elif odds_change > 0:
            trend = "Public Fade"
        else:
            trend = "Stable"
        rows.append({
            **r.label(),
            "volume_change": 10 if stake > 0 else 0,
            "odds_change": odds_change,
            "current_volume": rnd(stake / 1000),
            "trend": trend,
        })
    return sorted(rows, key=lambda x: x["current_volume"], reverse=True)


def market_sentiment(runners: list[RunnerProfile]) -> list[dict]:
    """Expert rating (scaled to 100) against the market's implied chance."""
    rows = []
    for r in runners:
        if not (r.odds and r.rating):
            continue
        implied = _implied(r.odds)
        expert = r.rating * 5
        sentiment = expert - implied
        if sentiment > 15:
            category = "Undervalued"
        elif sentiment < -15:
            category = "Overvalued"
        else:
            category = "Fair Value"
        rows.append({
            **r.label(),
            "crowd_confidence": rnd(implied),
            "expert_rating": rnd(expert),
            "sentiment": rnd(sentiment),
            "category": category,
        })
    return sorted(rows, key=lambda x: x["sentiment"], reverse=True)


def expert_consensus(runners: list[RunnerProfile]) -> list[dict]:
    rows = []
    for r in runners:
        if not r.rating or r.rating <= 0:
            continue
        top_pick = r.rating >= 15
        contrarian = r.rating < 10 and bool(r.odds) and r.odds < 8
        if top_pick:
            category = "Consensus Pick"
        elif contrarian:
            category = "Contrarian Play"
        else:
            category = "Mixed Opinion"
        rows.append({
            **r.label(),
            "consensus_score": rnd(r.rating),
            "rating": r.rating,
            "odds": r.odds or 0,
            "is_top_pick": top_pick,
            "is_contrarian": contrarian,
            "category": category,
        })
    return sorted(rows, key=lambda x: x["consensus_score"], reverse=True)


def value_index(runners: list[RunnerProfile], market: list[OddsEntry]) -> list[dict]:
    """Edge over the market blended with a form quality score."""
    if not market:
        return []
    rows = []
    for r in _priced(runners):
        implied = _implied(r.odds)
        value = r.career.win_rate - implied
        roi = rnd(value / implied * 100) if value > 0 else 0

        quality = 50
        if r.positions and r.positions[0] <= 3:
            quality += 20
        if r.career.win_rate > 15:
            quality += 15
        if r.career.races >= 10:
            quality += 15

        index = rnd(value * 2 + quality / 2)
        if index > 30:
            category = "Strong Value"
        elif index > 15:
            category = "Good Value"
        elif index > 0:
            category = "Fair Value"
        else:
            category = "Overbet"
        rows.append({
            **r.label(),
            "value_index": index,
            "value": rnd(value),
            "roi": roi,
            "quality": quality,
            "odds": r.odds,
            "category": category,
        })
    return sorted(rows, key=lambda x: x["value_index"], reverse=True)


def stable_confidence(runners: list[RunnerProfile]) -> list[dict]:
    """Signals that connections expect a big run (50 base, capped at 100)."""
    rows = []
    for r in runners:
        score = 50
        strong_record = r.career.win_rate > 15
        if strong_record:
            score += 15
        favourite = bool(r.market and r.market.favourite)
        if favourite:
            score += 20
        if r.market and r.market.trend == "-":
            score += 10
        recent_form = bool(r.positions) and r.positions[0] <= 3
        if recent_form:
            score += 15
        rows.append({
            **r.label(),
            "confidence": min(100, score),
            "signals": {
                "jockey_quality": strong_record,
                "betting_support": favourite,
                "recent_form": recent_form,
            },
        })
    return sorted(rows, key=lambda x: x["confidence"], reverse=True)
