"""Country table and normalization helpers for receiver/sender addresses."""

from __future__ import annotations

from typing import Dict, NamedTuple, Optional

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


class Country(NamedTuple):
    code: str
    name: str
    has_states: bool = False
    default_state: str = ""


_COUNTRY_LIST = (
    # Countries whose addresses require a state/province
    Country("US", "United States", True, "NY"),
    Country("CA", "Canada", True, "ON"),
    Country("AU", "Australia", True, "NSW"),
    Country("BR", "Brazil", True, "SP"),
    Country("IN", "India", True, "DL"),
    Country("MX", "Mexico", True, "CMX"),
    # Europe
    Country("GB", "United Kingdom"),
    Country("DE", "Germany"),
    Country("FR", "France"),
    Country("IT", "Italy"),
    Country("ES", "Spain"),
    Country("NL", "Netherlands"),
    Country("BE", "Belgium"),
    Country("CH", "Switzerland"),
    Country("AT", "Austria"),
    Country("SE", "Sweden"),
    Country("NO", "Norway"),
    Country("DK", "Denmark"),
    Country("FI", "Finland"),
    Country("IE", "Ireland"),
    Country("PT", "Portugal"),
    Country("GR", "Greece"),
    Country("PL", "Poland"),
    Country("CZ", "Czech Republic"),
    Country("HU", "Hungary"),
    Country("RO", "Romania"),
    Country("BG", "Bulgaria"),
    Country("HR", "Croatia"),
    Country("UA", "Ukraine"),
    Country("TR", "Turkey"),
    # Middle East and Africa
    Country("AE", "United Arab Emirates"),
    Country("SA", "Saudi Arabia"),
    Country("IL", "Israel"),
    Country("EG", "Egypt"),
    Country("ZA", "South Africa"),
    # Asia Pacific
    Country("JP", "Japan"),
    Country("CN", "China"),
    Country("KR", "South Korea"),
    Country("SG", "Singapore"),
    Country("NZ", "New Zealand"),
    # Latin America
    Country("AR", "Argentina"),
    Country("CL", "Chile"),
    Country("CO", "Colombia"),
)

COUNTRIES: Dict[str, Country] = {c.code: c for c in _COUNTRY_LIST}

_NAME_TO_CODE = {c.name.lower(): c.code for c in _COUNTRY_LIST}
_NAME_TO_CODE.update({"usa": "US", "united states of america": "US", "uk": "GB", "türkiye": "TR"})


def get_country(code: str) -> Optional[Country]:
    return COUNTRIES.get((code or "").upper())


def has_states(code: str) -> bool:
    country = get_country(code)
    return bool(country and country.has_states)


def normalize_country_code(value: Optional[str]) -> str:
    """
    ISO alpha-2 code for a code or country name.

    Unknown names fall back to their first two letters, upper-cased.
    Empty input returns "".
    """
    text = (value or "").strip()
    if not text:
        return ""
    if len(text) == 2 and text.upper() in COUNTRIES:
        return text.upper()

    lowered = text.lower()
    if lowered in _NAME_TO_CODE:
        return _NAME_TO_CODE[lowered]
    for name, code in _NAME_TO_CODE.items():
        if name in lowered or lowered in name:
            return code

    logger.warning(f"Unknown country '{text}', using first two letters")
    return text[:2].upper()


_TURKISH_MAP = str.maketrans({
    "ğ": "g", "Ğ": "G",
    "ü": "u", "Ü": "U",
    "ş": "s", "Ş": "S",
    "ı": "i", "İ": "I",
    "ö": "o", "Ö": "O",
    "ç": "c", "Ç": "C",
})


def transliterate(text: str) -> str:
    """Replace Turkish letters with their ASCII equivalents."""
    return (text or "").translate(_TURKISH_MAP)

