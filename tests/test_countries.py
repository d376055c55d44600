"""Tests for country name normalization."""

from worldpulse_ingest.countries import (
    COUNTRY_ALIASES,
    DEFAULT_COUNTRIES,
    normalize_country_name,
    region_for,
)


class TestNormalizeCountryName:
    """Test normalize_country_name()."""

    def test_alias_maps_to_canonical(self) -> None:
        """Known aliases map to the canonical name."""
        assert normalize_country_name("United States of America") == "United States"
        assert normalize_country_name("  usa ") == "United States"
        assert normalize_country_name("Republic of Serbia") == "Serbia"

    def test_unknown_name_passes_through_trimmed(self) -> None:
        """Unknown names are kept, with whitespace collapsed."""
        assert normalize_country_name("  New   Zealand ") == "New Zealand"

    def test_idempotent_for_every_alias(self) -> None:
        """Normalizing a normalized name changes nothing."""
        for alias in COUNTRY_ALIASES:
            once = normalize_country_name(alias)
            assert normalize_country_name(once) == once

    def test_default_countries_are_canonical(self) -> None:
        """Every default country is already canonical."""
        for country in DEFAULT_COUNTRIES:
            assert normalize_country_name(country) == country
        assert len(DEFAULT_COUNTRIES) == len(set(DEFAULT_COUNTRIES))


class TestRegionFor:
    """Test region_for()."""

    def test_known_country(self) -> None:
        """A listed country resolves to its region."""
        assert region_for("Iceland") == "Europe"
        assert region_for("USA") == "North America"

    def test_unknown_country(self) -> None:
        """An unlisted country falls into Other."""
        assert region_for("Atlantis") == "Other"

    def test_known_country_case_folded(self) -> None:
        """Region lookup ignores case."""
        assert normalize_country_name("iceland") == "Iceland"
        assert normalize_country_name("SOUTH AFRICA") == "South Africa"
