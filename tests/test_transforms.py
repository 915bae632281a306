"""
tests/test_transforms.py

Pytest unit tests for the scraping transform library.

Coverage
--------
- Spanish and numeric date formats, with and without year
- Year inference rolling forward past dates
- Date + time parsing formats
- Price extraction: free keywords, thousands grouping, decimal rounding
- HTML sanitization whitelist
- URL resolution
- Transform registry lookup and unknown-name error
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from app.scraping.transforms import (
    TransformKind,
    apply_transform,
    clean_whitespace,
    combine_date_and_time,
    extract_background_image,
    extract_labeled_value,
    extract_price,
    parse_spanish_date,
    parse_spanish_datetime,
    sanitize_html,
    strip_venue_suffix,
    to_absolute_url,
)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


class TestParseSpanishDate:
    @pytest.mark.parametrize(
        "text",
        [
            "15 de marzo de 2025",
            "15 de mar de 2025",
            "Sábado 15 de Marzo de 2025",
            "15/03/2025",
            "15-03-2025",
            "2025-03-15",
        ],
    )
    def test_formats_with_year(self, text: str) -> None:
        parsed = parse_spanish_date(text)
        assert parsed is not None
        assert (parsed.year, parsed.month, parsed.day) == (2025, 3, 15)

    def test_every_month_name(self) -> None:
        months = [
            "enero", "febrero", "marzo", "abril", "mayo", "junio",
            "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
        ]
        for number, name in enumerate(months, start=1):
            parsed = parse_spanish_date(f"3 de {name} de 2026")
            assert parsed == datetime(2026, number, 3)

    def test_yearless_date_uses_current_year_when_upcoming(self) -> None:
        assert parse_spanish_date("20 de diciembre", today=date(2025, 10, 1)) == datetime(2025, 12, 20)

    def test_yearless_date_rolls_forward_when_past(self) -> None:
        assert parse_spanish_date("09 NOV", today=date(2025, 12, 1)) == datetime(2026, 11, 9)

    def test_yearless_same_month_earlier_day_rolls_forward(self) -> None:
        assert parse_spanish_date("5/12", today=date(2025, 12, 10)) == datetime(2026, 12, 5)

    def test_today_is_not_rolled_forward(self) -> None:
        assert parse_spanish_date("10/12", today=date(2025, 12, 10)) == datetime(2025, 12, 10)

    def test_iso_with_offset_keeps_timezone(self) -> None:
        parsed = parse_spanish_date("2030-03-15T21:00:00-03:00")
        assert parsed is not None
        assert parsed.utcoffset() is not None
        assert parsed.hour == 21

    @pytest.mark.parametrize("text", ["", "Próximamente", "32 de marzo de 2025", "31/02/2025"])
    def test_unparseable_returns_none(self, text: str) -> None:
        assert parse_spanish_date(text) is None


class TestParseSpanishDatetime:
    def test_weekday_day_month_time(self) -> None:
        parsed = parse_spanish_datetime("Martes 11 NOV - 20:45 hrs", today=date(2025, 10, 1))
        assert parsed == datetime(2025, 11, 11, 20, 45)

    def test_long_form_with_a_las(self) -> None:
        assert parse_spanish_datetime("15 de marzo de 2025 a las 21:00") == datetime(2025, 3, 15, 21, 0)

    def test_numeric_with_time(self) -> None:
        assert parse_spanish_datetime("15/03/2025 21:30") == datetime(2025, 3, 15, 21, 30)

    def test_date_without_time_is_midnight(self) -> None:
        assert parse_spanish_datetime("15/03/2025") == datetime(2025, 3, 15)

    def test_combine_keeps_existing_time(self) -> None:
        day = datetime(2025, 3, 15, 20, 0)
        assert combine_date_and_time(day, "22:00") == day

    def test_combine_hour_only_suffix(self) -> None:
        assert combine_date_and_time(datetime(2025, 3, 15), "21 hs") == datetime(2025, 3, 15, 21, 0)


# ---------------------------------------------------------------------------
# Prices
# ---------------------------------------------------------------------------


class TestExtractPrice:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Free", 0),
            ("Gratis", 0),
            ("Entrada libre", 0),
            ("Show gratis!", 0),
            ("Freestyle Night $3000", 3000),
            ("Freedom Tour $ 4.500", 4500),
            ("$5.000", 5000),
            ("$ 1.500", 1500),
            ("22400.0", 22400),
            ("22400.50", 22401),
            ("22400.49", 22400),
            ("$12.500,50", 12501),
            ("Desde $ 35.000 - $ 80.000", 35000),
        ],
    )
    def test_amounts(self, text: str, expected: int) -> None:
        assert extract_price(text) == expected

    @pytest.mark.parametrize("text", ["", "Consultar", "Agotado"])
    def test_unparseable_returns_none(self, text: str) -> None:
        assert extract_price(text) is None


# ---------------------------------------------------------------------------
# Text and URLs
# ---------------------------------------------------------------------------


class TestTextTransforms:
    def test_clean_whitespace_collapses_spaces_and_blank_lines(self) -> None:
        assert clean_whitespace("  Los   Piojos \n\n\n  en vivo  ") == "Los Piojos\nen vivo"

    def test_clean_whitespace_empty(self) -> None:
        assert clean_whitespace("   ") is None

    def test_sanitize_html_keeps_whitelist_and_drops_scripts(self) -> None:
        html = (
            '<div><p onclick="x()">Hola <strong>mundo</strong></p>'
            '<script>alert(1)</script><a href="https://a.com" style="c">link</a></div>'
        )
        sanitized = sanitize_html(html)
        assert sanitized == '<p>Hola <strong>mundo</strong></p><a href="https://a.com">link</a>'

    def test_sanitize_html_drops_javascript_href(self) -> None:
        assert sanitize_html('<a href="javascript:alert(1)">x</a>') == "<a>x</a>"

    def test_strip_venue_suffix(self) -> None:
        assert strip_venue_suffix("Dillom en Café Berlín") == "Dillom"
        assert strip_venue_suffix("Dillom") == "Dillom"

    def test_extract_labeled_value(self) -> None:
        assert extract_labeled_value("Recinto: Café Berlín") == "Café Berlín"
        assert extract_labeled_value("sin etiqueta") is None

    def test_extract_background_image(self) -> None:
        style = "background-image: url('https://cdn.example.com/a.jpg');"
        assert extract_background_image(style) == "https://cdn.example.com/a.jpg"


class TestToAbsoluteUrl:
    def test_absolute_untouched(self) -> None:
        assert to_absolute_url("https://other.com/x", "https://example.com") == "https://other.com/x"

    @pytest.mark.parametrize(
        ("value", "base"),
        [
            ("/evento/1", "https://example.com"),
            ("evento/1", "https://example.com/"),
            ("/evento/1", "https://example.com/"),
        ],
    )
    def test_single_slash_join(self, value: str, base: str) -> None:
        assert to_absolute_url(value, base) == "https://example.com/evento/1"

    def test_protocol_relative(self) -> None:
        assert to_absolute_url("//cdn.example.com/a.jpg") == "https://cdn.example.com/a.jpg"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestTransformRegistry:
    def test_from_name_resolves_kind(self) -> None:
        assert TransformKind.from_name(" Extract_Price ") is TransformKind.EXTRACT_PRICE

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown transform 'to_upper'"):
            TransformKind.from_name("to_upper")

    def test_apply_transform_passes_base_url(self) -> None:
        assert apply_transform(TransformKind.TO_ABSOLUTE_URL, "/a", "https://example.com") == "https://example.com/a"

    def test_every_kind_is_total(self) -> None:
        for kind in TransformKind:
            apply_transform(kind, "???", None)
