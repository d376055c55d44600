"""Country name canonicalization and region lookup.

Map data, user input and model output all spell some countries
differently; every cache and queue operation goes through
normalize_country_name so each country has exactly one key.
"""

import re

# lowercase alias -> canonical name. Canonical names never appear as aliases
# of something else, which keeps normalization idempotent.
COUNTRY_ALIASES: dict[str, str] = {
    "united states of america": "United States",
    "usa": "United States",
    "us": "United States",
    "u.s.": "United States",
    "u.s.a.": "United States",
    "america": "United States",
    "england": "United Kingdom",
    "uk": "United Kingdom",
    "great britain": "United Kingdom",
    "britain": "United Kingdom",
    "russian federation": "Russia",
    "republic of serbia": "Serbia",
    "macedonia": "North Macedonia",
    "republic of macedonia": "North Macedonia",
    "the former yugoslav republic of macedonia": "North Macedonia",
    "czechia": "Czech Republic",
    "the bahamas": "Bahamas",
    "united republic of tanzania": "Tanzania",
    "ivory coast": "Côte d'Ivoire",
    "cote d'ivoire": "Côte d'Ivoire",
    "democratic republic of congo": "Democratic Republic of the Congo",
    "dr congo": "Democratic Republic of the Congo",
    "drc": "Democratic Republic of the Congo",
    "congo (kinshasa)": "Democratic Republic of the Congo",
    "congo (brazzaville)": "Republic of the Congo",
    "congo": "Republic of the Congo",
    "east timor": "Timor-Leste",
    "guinea bissau": "Guinea-Bissau",
    "swaziland": "Eswatini",
    "burma": "Myanmar",
    "south korea": "South Korea",
    "republic of korea": "South Korea",
    "korea, republic of": "South Korea",
    "north korea": "North Korea",
    "democratic people's republic of korea": "North Korea",
    "korea, democratic people's republic of": "North Korea",
    "iran (islamic republic of)": "Iran",
    "islamic republic of iran": "Iran",
    "syrian arab republic": "Syria",
    "lao pdr": "Laos",
    "lao people's democratic republic": "Laos",
    "viet nam": "Vietnam",
    "west bank": "Palestine",
    "state of palestine": "Palestine",
    "turkiye": "Turkey",
    "türkiye": "Turkey",
    "uae": "United Arab Emirates",
    "bolivia (plurinational state of)": "Bolivia",
    "venezuela (bolivarian republic of)": "Venezuela",
    "republic of moldova": "Moldova",
}

REGIONS: dict[str, list[str]] = {
    "North America": [
        "United States", "Canada", "Mexico", "Cuba", "Guatemala", "Haiti",
        "Dominican Republic", "Honduras", "Nicaragua", "El Salvador",
        "Costa Rica", "Panama", "Jamaica", "Belize", "Bahamas",
    ],
    "South America": [
        "Brazil", "Argentina", "Colombia", "Peru", "Chile", "Venezuela",
        "Ecuador", "Bolivia", "Paraguay", "Uruguay", "Guyana", "Suriname",
    ],
    "Europe": [
        "Russia", "Germany", "United Kingdom", "France", "Italy", "Spain",
        "Ukraine", "Poland", "Romania", "Netherlands", "Belgium",
        "Czech Republic", "Greece", "Portugal", "Sweden", "Hungary", "Belarus",
        "Austria", "Serbia", "Switzerland", "Bulgaria", "Denmark", "Finland",
        "Slovakia", "Norway", "Ireland", "Croatia", "Moldova",
        "Bosnia and Herzegovina", "Albania", "Lithuania", "North Macedonia",
        "Slovenia", "Latvia", "Estonia", "Iceland",
    ],
    "Asia": [
        "China", "India", "Indonesia", "Pakistan", "Bangladesh", "Japan",
        "Philippines", "Vietnam", "Turkey", "Thailand", "Myanmar",
        "South Korea", "Afghanistan", "Uzbekistan", "Malaysia", "Nepal",
        "North Korea", "Taiwan", "Sri Lanka", "Kazakhstan", "Cambodia",
        "Singapore", "Mongolia",
    ],
    "Middle East": [
        "Iran", "Egypt", "Saudi Arabia", "Yemen", "Iraq", "Syria", "Jordan",
        "Israel", "Lebanon", "Palestine", "Oman", "Kuwait", "Qatar", "Bahrain",
        "United Arab Emirates",
    ],
    "Africa": [
        "Nigeria", "Ethiopia", "Democratic Republic of the Congo", "Tanzania",
        "South Africa", "Kenya", "Uganda", "Algeria", "Sudan", "Morocco",
        "Angola", "Mozambique", "Ghana", "Madagascar", "Cameroon",
        "Côte d'Ivoire", "Niger", "Burkina Faso", "Mali", "Somalia",
        "Zimbabwe", "Rwanda", "Tunisia", "Libya",
    ],
    "Oceania": ["Australia", "Papua New Guinea", "New Zealand", "Fiji"],
}

OTHER_REGION = "Other"

# Default sweep list: every country with a region
DEFAULT_COUNTRIES: list[str] = [
    country for countries in REGIONS.values() for country in countries
]

_COUNTRY_TO_REGION: dict[str, str] = {
    country: region for region, countries in REGIONS.items() for country in countries
}

_CANONICAL_BY_LOWER: dict[str, str] = {country.lower(): country for country in DEFAULT_COUNTRIES}

_WHITESPACE = re.compile(r"\s+")


def normalize_country_name(raw_name: str) -> str:
    """Return the canonical entity key for a raw country name.

    Collapses whitespace and maps known aliases and known country names
    case-insensitively. Unknown names pass through trimmed, so the
    function is total, and applying it twice gives the same result as
    applying it once.

    Args:
        raw_name: Country name as written by a map, a user or the model

    Returns:
        Canonical country name
    """
    cleaned = _WHITESPACE.sub(" ", raw_name).strip()
    lowered = cleaned.lower()
    return COUNTRY_ALIASES.get(lowered) or _CANONICAL_BY_LOWER.get(lowered, cleaned)


def region_for(country_name: str) -> str:
    """Region of a canonical country name, or "Other"."""
    return _COUNTRY_TO_REGION.get(normalize_country_name(country_name), OTHER_REGION)
