"""Reference tables for address components: Swiss postal ranges, cities,
country names and street-type words.
"""

from __future__ import annotations

import re
import unicodedata
from typing import NamedTuple, Optional


class PostalRange(NamedTuple):
    low: int
    high: int
    canton: str


# ---------------------------------------------------------------------------
# Swiss postal codes (NPA/PLZ) by canton, from Swiss Post range allocation
# ---------------------------------------------------------------------------

SWISS_POSTAL_RANGES: tuple[PostalRange, ...] = (
    PostalRange(1000, 1299, "VD"),
    PostalRange(1300, 1399, "VD/VS"),
    PostalRange(1400, 1499, "VD"),
    PostalRange(1500, 1699, "FR/VD"),
    PostalRange(1700, 1799, "FR"),
    PostalRange(1800, 1899, "VD/VS"),
    PostalRange(1900, 1999, "VS"),
    PostalRange(2000, 2299, "NE"),
    PostalRange(2300, 2499, "NE/BE"),
    PostalRange(2500, 2599, "BE"),
    PostalRange(2600, 2699, "BE/SO"),
    PostalRange(2700, 2799, "BE/JU"),
    PostalRange(2800, 2999, "JU"),
    PostalRange(3000, 3999, "BE"),
    PostalRange(4000, 4999, "BS/BL/SO/AG"),
    PostalRange(5000, 5999, "AG/SO"),
    PostalRange(6000, 6999, "LU/ZG/SZ/NW/OW/UR/TI"),
    PostalRange(7000, 7999, "GR"),
    PostalRange(8000, 8999, "ZH/SH/TG/SG"),
    PostalRange(9000, 9999, "SG/AR/AI/TG/SH"),
)


def canton_for_postal_code(code: int) -> Optional[str]:
    for r in SWISS_POSTAL_RANGES:
        if r.low <= code <= r.high:
            return r.canton
    return None


def is_valid_swiss_postal_code(code: int) -> bool:
    return canton_for_postal_code(code) is not None


# ---------------------------------------------------------------------------
# Cities and countries (multilingual variants, lower-case)
# ---------------------------------------------------------------------------

SWISS_CITIES: dict[str, tuple[str, ...]] = {
    "zurich": ("zürich", "zurich", "zurigo"),
    "geneva": ("genève", "geneva", "genf", "ginevra"),
    "basel": ("basel", "bâle", "basilea"),
    "bern": ("bern", "berne", "berna"),
    "lausanne": ("lausanne", "losanna"),
    "winterthur": ("winterthur", "winterthour"),
    "lucerne": ("luzern", "lucerne", "lucerna"),
    "stgallen": ("st. gallen", "st.gallen", "saint-gall", "san gallo"),
    "lugano": ("lugano",),
    "biel": ("biel", "bienne"),
    "thun": ("thun", "thoune"),
    "fribourg": ("fribourg", "freiburg", "friburgo"),
    "neuchatel": ("neuchâtel", "neuchatel", "neuenburg"),
    "sion": ("sion", "sitten"),
    "chur": ("chur", "coire", "coira"),
    "montreux": ("montreux",),
    "zug": ("zug", "zoug"),
}

EU_COUNTRIES: dict[str, tuple[str, ...]] = {
    "switzerland": ("switzerland", "suisse", "schweiz", "svizzera", "ch"),
    "germany": ("germany", "allemagne", "deutschland", "de"),
    "france": ("france", "frankreich", "francia", "fr"),
    "italy": ("italy", "italie", "italien", "italia", "it"),
    "austria": ("austria", "autriche", "österreich", "at"),
    "liechtenstein": ("liechtenstein", "li"),
    "belgium": ("belgium", "belgique", "belgien", "belgio", "be"),
    "netherlands": ("netherlands", "pays-bas", "niederlande", "paesi bassi", "nl"),
    "luxembourg": ("luxembourg", "luxemburg", "lussemburgo", "lu"),
}

# ---------------------------------------------------------------------------
# Street-type words
# ---------------------------------------------------------------------------

# Glued to the end of the name: "Bahnhofstrasse", "Hauptstr."
STREET_SUFFIXES: tuple[str, ...] = (
    "strasse", "straße", "str.", "weg", "gasse", "platz", "allee", "ring", "damm",
)

# Leading word of the name: "Rue de Lausanne", "Via Roma", "Baker Street"
STREET_PREFIXES: tuple[str, ...] = (
    # French
    "rue", "avenue", "av.", "boulevard", "bd", "chemin", "ch.", "place", "route",
    "rte", "allée", "impasse", "passage", "quai",
    # Italian
    "via", "viale", "piazza", "corso", "vicolo", "largo",
)

# Trailing separate word (English): "Baker Street"
STREET_TRAILING_WORDS: tuple[str, ...] = (
    "street", "road", "lane", "drive", "court", "avenue", "way", "circle",
)


def normalize_city(city: str) -> str:
    """Lower-case and strip accents ("Zürich" -> "zurich", "Straße" -> "strasse")."""
    folded = city.strip().lower().replace("ß", "ss")
    decomposed = unicodedata.normalize("NFKD", folded)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


_KNOWN_CITIES: frozenset[str] = frozenset(
    normalize_city(variant) for variants in SWISS_CITIES.values() for variant in variants
)


def is_known_swiss_city(city: str) -> bool:
    return normalize_city(city) in _KNOWN_CITIES


def postal_digits(postal: str) -> str:
    return re.sub(r"\D", "", postal)
