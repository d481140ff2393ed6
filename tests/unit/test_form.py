"""Unit tests for form-string (musique) parsing."""

from types import SimpleNamespace

from equiscope.racing.form import build_form_string, discipline_code, parse_form, parse_tokens


class TestParseForm:
    """Tests for parse_form."""

    def test_flat_positions_in_order(self):
        assert parse_form("1p3p5p", 10) == [1, 3, 5]

    def test_dnf_maps_to_ten(self):
        assert parse_form("Dp2p", 10) == [10, 2]

    def test_empty_and_none(self):
        assert parse_form("", 10) == []
        assert parse_form(None, 10) == []

    def test_discipline_filter_applied_before_limit(self):
        assert parse_form("1p1t1p", 10, "p") == [1, 1]
        assert parse_form("1t2p3t4p", 1, "p") == [2]

    def test_position_above_ten_is_clamped(self):
        assert parse_form("15p", 10) == [10]

    def test_zero_counts_as_unplaced(self):
        assert parse_form("0a1a", 10) == [10, 1]

    def test_limit_truncates(self):
        assert parse_form("1p2p3p4p5p6p", 3) == [1, 2, 3]
        assert parse_form("1p2p", 0) == []

    def test_case_insensitive(self):
        assert parse_form("1P dA 2a", 10) == [1, 10, 2]

    def test_garbage_never_raises(self):
        assert parse_form("(24) abc ???", 10) == []
        assert parse_form(12345, 10) == []

    def test_year_markers_ignored(self):
        assert parse_form("1a (25) 3a", 10) == [1, 3]


class TestParseTokens:
    """Tests for token decoding."""

    def test_tokens_carry_discipline_and_dnf(self):
        assert parse_tokens("2aDm") == [(2, "a", False), (10, "m", True)]


class TestDisciplineCode:
    """Tests for discipline label mapping."""

    def test_known_labels(self):
        assert discipline_code("Plat") == "p"
        assert discipline_code("Attelé") == "a"
        assert discipline_code("Monté") == "m"
        assert discipline_code("Steeple-chase") == "s"

    def test_unknown_defaults_to_flat(self):
        assert discipline_code(None) == "p"
        assert discipline_code("galop mystère") == "p"


class TestBuildFormString:
    """Tests for re-encoding history as a form string."""

    def test_skips_unplaced_and_respects_limit(self):
        results = [
            SimpleNamespace(position=1, discipline="Plat"),
            SimpleNamespace(position=0, discipline="Plat"),
            SimpleNamespace(position=4, discipline="Haies"),
            SimpleNamespace(position=2, discipline="Plat"),
        ]
        assert build_form_string(results, limit=3) == "1p4h"
