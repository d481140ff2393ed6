"""Race domain: identifiers, form notation and typed aggregates."""

from equiscope.racing.form import parse_form
from equiscope.racing.guid import RaceGuid, store_path_for

__all__ = ["parse_form", "RaceGuid", "store_path_for"]
