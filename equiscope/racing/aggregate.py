"""Typed race aggregate and the parsers for its JSON sub-resources.

The provider's sub-resources (pronostic, notes, interviews, odds, tracking,
notule, references, horse history/stats) are stored as JSON text on the race
and horse rows. They are decoded once here, at the read boundary, so the
document builder and the analytics engine only ever see typed values.
A blob that cannot be decoded is treated as absent.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Sub-resource types
# ──────────────────────────────────────────────

@dataclass
class HistoryRace:
    """One past start of a horse."""

    date: Optional[date]
    venue: str = "N/A"
    race_name: str = "N/A"
    distance: int = 0
    position: int = 0  # 0 = unplaced / non-finisher / unknown
    discipline: str = "Plat"
    ground: str = "N/A"
    jockey: str = ""
    weight: float = 0.0
    time: str = ""
    comment: str = ""
    earnings: float = 0.0
    vmax: Optional[float] = None
    last_600m: Optional[str] = None
    last_200m: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat() if self.date else None,
            "venue": self.venue,
            "race_name": self.race_name,
            "distance": self.distance,
            "position": self.position,
            "discipline": self.discipline,
            "ground": self.ground,
            "jockey": self.jockey,
            "weight": self.weight,
            "time": self.time,
            "comment": self.comment,
            "earnings": self.earnings,
            "vmax": self.vmax,
            "last_600m": self.last_600m,
            "last_200m": self.last_200m,
        }


@dataclass
class HorseStats:
    wins: int = 0
    places: int = 0
    races: int = 0
    success_rate: float = 0.0


@dataclass
class PronosticPick:
    num: int
    name: str


@dataclass
class Pronostic:
    """Expert handicapper's pre-race selection."""

    headline: str = ""
    selections: list[PronosticPick] = field(default_factory=list)
    base: Optional[PronosticPick] = None
    outsider: Optional[PronosticPick] = None
    top_chances: list[int] = field(default_factory=list)
    dismissed: list[int] = field(default_factory=list)


@dataclass
class JudgeNote:
    num: int
    horse_name: str = ""
    text: str = ""
    rating: Optional[float] = None  # 0-20
    blinkers: str = ""
    blinkers_first_time: bool = False
    shoeing: str = ""
    shoeing_first_time: bool = False


@dataclass
class Interview:
    num: int
    person: str = ""
    text: str = ""
    rating: Optional[float] = None


@dataclass
class OddsEntry:
    num: int
    odds: Optional[float] = None
    reference_odds: Optional[float] = None
    favourite: bool = False
    trend: str = "="  # "+", "-" or "="
    total_stake: float = 0.0


@dataclass
class TrackingEntry:
    num: int
    horse_name: str = ""
    position: int = 0
    vmax: float = 0.0
    official_time: str = ""
    last_600m: str = ""
    last_200m: str = ""
    avg_position: Optional[float] = None
    mid_race_position: Optional[float] = None


@dataclass
class Notule:
    headline: str = ""
    analysis: str = ""


@dataclass
class ReferenceRace:
    date: str = "N/A"
    venue: str = "N/A"
    name: str = ""
    distance: int = 0
    discipline: str = ""
    arrival: list[int] = field(default_factory=list)
    message: str = ""


# ──────────────────────────────────────────────
# Aggregate
# ──────────────────────────────────────────────

@dataclass
class HorseInfo:
    slug: str
    name: str
    uuid: str = ""
    sex: str = ""
    age: int = 0
    earnings: float = 0.0
    form: str = ""
    history: list[HistoryRace] = field(default_factory=list)
    stats: Optional[HorseStats] = None
    jockey_form: Optional[str] = None
    trainer_form: Optional[str] = None


@dataclass
class RunnerEntry:
    num: int
    horse: HorseInfo
    jockey: str = ""
    trainer: str = ""
    weight: float = 0.0
    gate: str = ""
    odds: Optional[float] = None
    rating: Optional[float] = None


@dataclass
class RaceAggregate:
    guid: str
    name: str
    venue: str
    meeting_date: Optional[date]
    start_time: str = ""
    distance: int = 0
    ground: str = ""
    discipline: str = ""
    category: str = ""
    prize: Optional[str] = None
    runners: list[RunnerEntry] = field(default_factory=list)
    pronostic: Optional[Pronostic] = None
    odds: list[OddsEntry] = field(default_factory=list)
    notes: list[JudgeNote] = field(default_factory=list)
    interviews: list[Interview] = field(default_factory=list)
    tracking: list[TrackingEntry] = field(default_factory=list)
    notule: Optional[Notule] = None
    references: list[ReferenceRace] = field(default_factory=list)

    def odds_for(self, num: int) -> Optional[OddsEntry]:
        for o in self.odds:
            if o.num == num:
                return o
        return None

    def note_for(self, num: int) -> Optional[JudgeNote]:
        for n in self.notes:
            if n.num == num:
                return n
        return None


# ──────────────────────────────────────────────
# Parsing helpers
# ──────────────────────────────────────────────

def _load(raw: Any) -> Any:
    """Decode a JSON text column; already-decoded values pass through."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, (dict, list)):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring malformed JSON blob: {e}")
        return None


def _as_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    s = str(value).strip()
    digits = ""
    for ch in s:
        if ch.isdigit():
            digits += ch
        else:
            break
    return int(digits) if digits else default


def _as_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(str(value).replace(",", "."))
    except (TypeError, ValueError):
        return default


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value)[:10]
    for fmt in ("%Y-%m-%d", "%Y%m%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


def _items(data: Any, *keys: str) -> list:
    """Return the list held directly in ``data`` or under the first matching key."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


# ──────────────────────────────────────────────
# Sub-resource parsers
# ──────────────────────────────────────────────

def parse_history(raw: Any) -> list[HistoryRace]:
    """Parse a horse history blob ({"results": [...]}) most recent first."""
    results = []
    for r in _items(_load(raw), "results"):
        if not isinstance(r, dict):
            continue
        info = r.get("selected_partant_info") or {}
        reunion = r.get("reunion") or {}
        hippodrome = reunion.get("hippodrome") or {}
        results.append(HistoryRace(
            date=_parse_date(reunion.get("date_reunion") or r.get("date_reunion") or r.get("date")),
            venue=hippodrome.get("name") or r.get("venue") or "N/A",
            race_name=r.get("libcourt_prix_course") or "N/A",
            distance=_as_int(r.get("distance")),
            position=_as_int(info.get("num_place_arrivee") or info.get("place") or r.get("position")),
            discipline=r.get("discipline") or "Plat",
            ground=r.get("etat_terrain") or r.get("ground") or "N/A",
            jockey=info.get("nom_monte") or "",
            weight=_as_float(info.get("pds_calc_hand_partant")),
            time=info.get("temps_part") or r.get("temps_officiel") or "",
            comment=info.get("notule_partant_text") or "",
            earnings=_as_float(info.get("gains")),
            vmax=_as_float(info.get("vmax") or r.get("vmax"), None),
            last_600m=info.get("derniers_600m") or r.get("derniers_600m"),
            last_200m=info.get("derniers_200m") or r.get("derniers_200m"),
        ))
    return results


def parse_horse_stats(raw: Any) -> Optional[HorseStats]:
    data = _load(raw)
    if not isinstance(data, dict):
        return None
    career = ((data.get("carriere") or {}).get("all")) or {}
    wins = _as_int(data.get("nb_victoires", career.get("nbVictoire")))
    places = _as_int(data.get("nb_places", career.get("nbPlace")))
    races = _as_int(data.get("nb_courses", career.get("nbCourse")))
    rate = data.get("taux_reussite")
    if rate is None:
        rate = round(wins / races * 100) if races else 0
    return HorseStats(wins=wins, places=places, races=races, success_rate=_as_float(rate))


def _pick(num: Any, name: Any) -> Optional[PronosticPick]:
    n = _as_int(num)
    if not n:
        return None
    return PronosticPick(num=n, name=name or "")


def parse_pronostic(raw: Any) -> Optional[Pronostic]:
    data = _load(raw)
    if not isinstance(data, dict):
        return None

    names: dict[int, str] = {}
    selections: list[PronosticPick] = []

    if isinstance(data.get("selections"), list):
        for s in data["selections"]:
            pick = _pick(s.get("num_partant"), s.get("nom_cheval"))
            if pick:
                selections.append(pick)
                names[pick.num] = pick.name
    else:
        analyses = sorted(
            (a for a in data.get("pronostic_analyses") or [] if isinstance(a, dict)),
            key=lambda a: a.get("position") or 99,
        )
        for a in analyses:
            num = a.get("num_partant") or (a.get("partant") or {}).get("num_partant")
            pick = _pick(num, (a.get("cheval") or {}).get("nom_cheval"))
            if pick:
                selections.append(pick)
                names[pick.num] = pick.name

    def _resolve(single: Any, many: Any) -> Optional[PronosticPick]:
        if isinstance(single, dict):
            return _pick(single.get("num_partant"), single.get("nom_cheval"))
        if isinstance(many, list) and many:
            num = _as_int(many[0])
            return PronosticPick(num=num, name=names.get(num, "")) if num else None
        return None

    return Pronostic(
        headline=data.get("chapeau") or data.get("presentation") or "",
        selections=selections,
        base=_resolve(data.get("base"), data.get("bases")),
        outsider=_resolve(data.get("outsider"), data.get("outsiders")),
        top_chances=[_as_int(n) for n in data.get("belles_chances") or []],
        dismissed=[_as_int(n) for n in data.get("delaisses") or []],
    )


def parse_notes(raw: Any) -> list[JudgeNote]:
    notes = []
    for n in _items(_load(raw), "notes"):
        if not isinstance(n, dict):
            continue
        num = _as_int(n.get("num_partant"))
        if not num:
            continue
        internal = n.get("interne_note_partant") or {}
        rating = internal.get("note_equidia", n.get("note"))
        notes.append(JudgeNote(
            num=num,
            horse_name=n.get("nom_cheval") or (n.get("cheval") or {}).get("nom_cheval") or "",
            text=n.get("texte_note") or n.get("texte") or "",
            rating=_as_float(rating, None),
            blinkers=n.get("oeil_partant") or "",
            blinkers_first_time=bool(n.get("oeil_partant_first_time")),
            shoeing=n.get("deferrer_partant") or "",
            shoeing_first_time=bool(n.get("deferrer_partant_first_time")),
        ))
    return notes


def parse_interviews(raw: Any) -> list[Interview]:
    interviews = []
    for i in _items(_load(raw), "interviews", "interview_partants"):
        if not isinstance(i, dict):
            continue
        num = i.get("num_partant") or (i.get("partant") or {}).get("num_partant")
        interviews.append(Interview(
            num=_as_int(num),
            person=i.get("personne") or "",
            text=i.get("texte") or "",
            rating=_as_float(i.get("note"), None),
        ))
    return interviews


def parse_odds(raw: Any) -> list[OddsEntry]:
    entries = []
    for o in _items(_load(raw), "runners", "pari_simple"):
        if not isinstance(o, dict):
            continue
        num = _as_int(o.get("num_partant"))
        if not num:
            continue
        stake = o.get("montant_enjeu_total")
        history = o.get("history") or []
        if stake is None and history and isinstance(history[-1], dict):
            stake = history[-1].get("montant_enjeu_total")
        entries.append(OddsEntry(
            num=num,
            odds=_as_float(o.get("rapp_evol"), None),
            reference_odds=_as_float(o.get("rapp_ref"), None),
            favourite=bool(o.get("favori")),
            trend=o.get("tendance_signe") or "=",
            total_stake=_as_float(stake),
        ))
    return entries


def parse_tracking(raw: Any) -> list[TrackingEntry]:
    entries = []
    for t in _items(_load(raw), "tracking"):
        if not isinstance(t, dict):
            continue
        gps = t.get("interne_tracking_gps") or {}
        entries.append(TrackingEntry(
            num=_as_int(t.get("num_partant")),
            horse_name=(t.get("cheval") or {}).get("nom_cheval") or "",
            position=_as_int(t.get("num_place_arrivee")),
            vmax=_as_float(gps.get("vmax")),
            official_time=gps.get("temps_officiel") or "",
            last_600m=gps.get("derniers_600m") or "",
            last_200m=gps.get("derniers_200m") or "",
            avg_position=_as_float(gps.get("pos_moy"), None),
            mid_race_position=_as_float(gps.get("pos_mi_course"), None),
        ))
    return entries


def parse_notule(raw: Any) -> Optional[Notule]:
    data = _load(raw)
    if not isinstance(data, dict):
        return None
    return Notule(headline=data.get("accroche") or "", analysis=data.get("analyse") or "")


def parse_references(raw: Any) -> list[ReferenceRace]:
    data = _load(raw)
    if isinstance(data, dict) and isinstance(data.get("results"), dict):
        data = data["results"]
    refs = []
    for r in _items(data, "references"):
        if not isinstance(r, dict):
            continue
        reunion = r.get("reunion") or {}
        hippodrome = reunion.get("hippodrome") or r.get("hippodrome") or {}
        refs.append(ReferenceRace(
            date=reunion.get("date_reunion") or r.get("date_reunion") or "N/A",
            venue=hippodrome.get("name") or "N/A",
            name=r.get("libcourt_prix_course") or "",
            distance=_as_int(r.get("distance")),
            discipline=r.get("discipline") or "",
            arrival=[_as_int(n) for n in r.get("arrivee") or []],
            message=r.get("reference_message") or "",
        ))
    return refs
