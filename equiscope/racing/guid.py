"""Race identifier (GUID) parsing and vector store path derivation.

A race GUID looks like ``20251212_R4_C1``: meeting date, meeting number and
race number. Vector stores live at ``<root>/2025-12-12/R4/C01/context.db``;
the race token is always zero-padded to two digits so ``C1`` and ``C01``
resolve to the same file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

from equiscope.errors import InvalidRaceIdError

STORE_FILENAME = "context.db"

_DATE_RE = re.compile(r"^\d{8}$")
_MEETING_RE = re.compile(r"^R\d+$")
_RACE_RE = re.compile(r"^C(\d+)$")


@dataclass(frozen=True)
class RaceGuid:
    """Parsed race identifier."""

    raw: str
    meeting_date: date
    meeting: str  # "R4"
    race: str  # normalised "C01"

    @classmethod
    def parse(cls, guid: str) -> "RaceGuid":
        """Parse a GUID, failing fast on anything that is not YYYYMMDD_R<n>_C<n>."""
        parts = (guid or "").split("_")
        if len(parts) != 3:
            raise InvalidRaceIdError(
                f"Invalid race GUID format: {guid!r}. Expected format: YYYYMMDD_R<n>_C<n>"
            )
        date_str, meeting, race_raw = parts

        if not _DATE_RE.match(date_str):
            raise InvalidRaceIdError(f"Invalid race GUID date in {guid!r}: {date_str!r}")
        try:
            meeting_date = datetime.strptime(date_str, "%Y%m%d").date()
        except ValueError as e:
            raise InvalidRaceIdError(f"Invalid race GUID date in {guid!r}: {e}") from e

        if not _MEETING_RE.match(meeting):
            raise InvalidRaceIdError(f"Invalid meeting token in {guid!r}: {meeting!r}")

        m = _RACE_RE.match(race_raw)
        if not m:
            raise InvalidRaceIdError(f"Invalid race token in {guid!r}: {race_raw!r}")

        return cls(
            raw=guid,
            meeting_date=meeting_date,
            meeting=meeting,
            race=normalise_race_token(race_raw),
        )

    @property
    def date_folder(self) -> str:
        return self.meeting_date.isoformat()

    @property
    def key(self) -> str:
        """Canonical identity of the store (C1 and C01 share one key)."""
        return f"{self.meeting_date:%Y%m%d}_{self.meeting}_{self.race}"

    def store_dir(self, root: Path) -> Path:
        return Path(root) / self.date_folder / self.meeting / self.race

    def store_path(self, root: Path) -> Path:
        return self.store_dir(root) / STORE_FILENAME


def normalise_race_token(token: str) -> str:
    """``C1`` -> ``C01``; ``C012`` -> ``C12``; ``C123`` stays ``C123``."""
    digits = token[1:].lstrip("0") or "0"
    return f"C{digits.zfill(2)}"


def guid_aliases(guid: str) -> list[str]:
    """Every spelling of a race GUID that names the same race.

    ``20251212_R4_C01`` -> ``["20251212_R4_C01", "20251212_R4_C1"]``. A
    malformed GUID only matches itself.
    """
    try:
        parsed = RaceGuid.parse(guid)
    except InvalidRaceIdError:
        return [guid]
    prefix = f"{parsed.meeting_date:%Y%m%d}_{parsed.meeting}_C"
    digits = parsed.race[1:]
    aliases = [guid]
    for spelling in (prefix + digits, prefix + (digits.lstrip("0") or "0")):
        if spelling not in aliases:
            aliases.append(spelling)
    return aliases


def store_path_for(guid: str, root: Path) -> Path:
    """Derive the vector store file for a race GUID."""
    return RaceGuid.parse(guid).store_path(root)
