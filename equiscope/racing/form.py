"""Form-string ("musique") parsing.

A form string lists a horse's recent results, most recent first, one token
per race: an optional non-finisher letter (D disqualified, T fell, J jumped
out / refused, A pulled up), the finishing position digits, and a discipline
code letter (p flat, t trot, a harness, m mounted trot, h hurdles, s steeple,
c cross-country). Examples: ``1p3p5p``, ``Dp2p``, ``4a0aDa``.

Positions are clamped at 10 so horses with long and short careers compare on
the same scale; every non-finisher counts as 10.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

MAX_POSITION = 10
DNF_POSITION = 10

# Non-finisher letter with optional digits, or plain digits, then the discipline
_TOKEN_RE = re.compile(r"(?:([DTJA])(\d*)|(\d+))([PTAMHSC])", re.IGNORECASE)

_DISCIPLINE_CODES = {
    "plat": "p",
    "trot": "t",
    "attele": "a",
    "attelé": "a",
    "monte": "m",
    "monté": "m",
    "haies": "h",
    "haie": "h",
    "steeple": "s",
    "steeple-chase": "s",
    "steeplechase": "s",
    "cross": "c",
    "obstacle": "h",
}


def parse_tokens(form: Optional[str]) -> list[tuple[int, str, bool]]:
    """Decode every token into (position, discipline_code, dnf)."""
    if not form or not isinstance(form, str):
        return []

    tokens = []
    for m in _TOKEN_RE.finditer(form):
        prefix, prefix_digits, digits, code = m.groups()
        if prefix:
            tokens.append((DNF_POSITION, code.lower(), True))
            continue
        position = int(digits)
        if position == 0 or position > MAX_POSITION:
            position = MAX_POSITION
        tokens.append((position, code.lower(), False))
    return tokens


def parse_form(form: Optional[str], limit: int = 10, discipline: Optional[str] = None) -> list[int]:
    """Parse a form string into finishing positions, most recent first.

    Args:
        form: Form notation, e.g. "1p3pDp".
        limit: Maximum number of positions returned.
        discipline: Optional discipline code ("p", "t", ...) to keep only
            races of that discipline. Applied before truncation.
    """
    tokens = parse_tokens(form)
    if discipline:
        code = discipline.lower()
        tokens = [t for t in tokens if t[1] == code]
    return [position for position, _, _ in tokens[:max(0, limit)]]


def discipline_code(discipline: Optional[str]) -> str:
    """Map a provider discipline label to its one-letter form code."""
    if not discipline:
        return "p"
    d = discipline.strip().lower()
    if d in _DISCIPLINE_CODES:
        return _DISCIPLINE_CODES[d]
    for label, code in _DISCIPLINE_CODES.items():
        if label in d:
            return code
    return "p"


def build_form_string(results: Iterable, limit: int = 10) -> str:
    """Re-encode history entries (objects with position/discipline) as a form string.

    Unplaced or unknown positions are skipped.
    """
    parts = []
    for i, race in enumerate(results):
        if i >= limit:
            break
        position = getattr(race, "position", 0) or 0
        if position > 0:
            parts.append(f"{position}{discipline_code(getattr(race, 'discipline', None))}")
    return "".join(parts)
