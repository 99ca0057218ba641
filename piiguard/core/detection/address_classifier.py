"""Address component classifier.

Labels fragments of text as street names, street numbers, postal codes,
cities and countries so the linker can group them into full addresses.
Handles Swiss and EU formats in German, French, Italian and English.

Components never overlap one another: finders run in a fixed order
(streets, numbers, postal codes, cities, countries) and a later finder
skips spans already claimed by an earlier one.
"""

from __future__ import annotations

import logging
import re

from piiguard.core.detection import postal_data as pd
from piiguard.core.detection import validators as v
from piiguard.core.detection.detection_config import PROXIMITY_THRESHOLD
from piiguard.models.schemas import AddressComponent, AddressComponentType

logger = logging.getLogger(__name__)

_UP = "A-ZÀ-ÖØ-Ý"
_LO = "a-zà-öø-ÿß"
_WORD = rf"[{_UP}][{_LO}]{{1,30}}"
_SP = r"[^\S\n]{1,3}"          # horizontal whitespace only


def _alternation(words: tuple[str, ...]) -> str:
    return "|".join(re.escape(w) for w in sorted(set(words), key=len, reverse=True))


# ---------------------------------------------------------------------------
# Compiled patterns
# ---------------------------------------------------------------------------

# "Bahnhofstrasse", "Hauptstr.", "Seeweg"
_STREET_GLUED = re.compile(
    rf"\b[{_UP}][{_LO}]{{1,40}}(?i:{_alternation(pd.STREET_SUFFIXES)})(?=[\s,]|$)"
)

# "Rue de Lausanne", "Avenue des Alpes", "Via Roma", "Chemin du Lac Bleu"
_STREET_LEADING = re.compile(
    rf"\b(?i:{_alternation(pd.STREET_PREFIXES)}){_SP}"
    rf"(?:(?i:de{_SP}la|de|du|des|della|del|degli|dei){_SP}|(?i:d'|l'))?"
    rf"{_WORD}(?:{_SP}{_WORD}){{0,2}}"
)

# "Baker Street", "Abbey Road"
_STREET_TRAILING = re.compile(
    rf"\b{_WORD}{_SP}(?i:{_alternation(pd.STREET_TRAILING_WORDS)})\b"
)

_HOUSE_NUMBER = re.compile(r"\b\d{1,4}[a-zA-Z]?(?:\s?[-–]\s?\d{1,4}[a-zA-Z]?)?\b")
_NUMBER_GAP = re.compile(r"^[^\S\n]{0,3},?[^\S\n]{0,3}$")

_SWISS_POSTAL = re.compile(r"\b(?:CH[-\s]?)?([1-9]\d{3})\b")
_EU5_POSTAL = re.compile(r"\b(?:(?:D|DE|F|FR|I|IT)[-\s])?(\d{5})\b")
_AT_POSTAL = re.compile(r"\b(?:A|AT)-(\d{4})\b")

_CITY_AFTER_POSTAL = re.compile(
    rf"{_SP}({_WORD}(?:-[{_UP}{_LO}][{_LO}]{{0,30}}){{0,3}}(?:{_SP}{_WORD})?)"
)

_COUNTRY_NAME = re.compile(
    rf"\b(?i:{_alternation(tuple(n for vs in pd.EU_COUNTRIES.values() for n in vs if len(n) > 2))})\b"
)
# Two-letter codes only in upper case after a comma or at line start: ", CH"
_COUNTRY_CODE = re.compile(
    rf"(?:,[^\S\n]{{0,3}}|^[^\S\n]{{0,3}})"
    rf"({'|'.join(sorted(n.upper() for vs in pd.EU_COUNTRIES.values() for n in vs if len(n) == 2))})"
    r"(?=\s|$|\.)",
    re.MULTILINE,
)

_KNOWN_CITY = re.compile(
    rf"\b(?i:{_alternation(tuple(c for vs in pd.SWISS_CITIES.values() for c in vs))})\b"
)


class AddressClassifier:
    """Find address components in text."""

    def __init__(
        self,
        max_component_distance: int = PROXIMITY_THRESHOLD,
        swiss_postal_confidence: float = 0.8,
    ):
        self.max_component_distance = max_component_distance
        self.swiss_postal_confidence = swiss_postal_confidence

    def classify(self, text: str) -> list[AddressComponent]:
        """All address components in *text*, sorted by start offset."""
        if not text:
            return []

        found: list[AddressComponent] = []
        found += self.find_street_names(text, found)
        found += self.find_street_numbers(text, found)
        found += self.find_postal_codes(text, found)
        found += self.find_cities(text, found)
        found += self.find_countries(text, found)

        found.sort(key=lambda c: c.start)
        logger.debug(f"Classified {len(found)} address components")
        return found

    # -- Streets -------------------------------------------------------------

    def find_street_names(self, text: str, taken: list[AddressComponent]) -> list[AddressComponent]:
        out: list[AddressComponent] = []
        for pattern in (_STREET_LEADING, _STREET_GLUED, _STREET_TRAILING):
            for m in pattern.finditer(text):
                name = m.group(0).rstrip()
                if len(name) < 5:
                    continue
                start, end = m.start(), m.start() + len(name)
                if _is_taken(taken + out, start, end):
                    continue
                out.append(_component(AddressComponentType.STREET_NAME, text, start, end))
        return out

    def find_street_numbers(self, text: str, taken: list[AddressComponent]) -> list[AddressComponent]:
        """House numbers directly after a street ("Seeweg 12a") or before it ("10, rue ...")."""
        streets = [c for c in taken if c.type == AddressComponentType.STREET_NAME]
        if not streets:
            return []

        out: list[AddressComponent] = []
        for m in _HOUSE_NUMBER.finditer(text):
            start, end = m.start(), m.end()
            if _is_taken(taken + out, start, end):
                continue
            if any(self._adjacent(text, street, start, end) for street in streets):
                out.append(_component(AddressComponentType.STREET_NUMBER, text, start, end))
        return out

    def _adjacent(self, text: str, street: AddressComponent, start: int, end: int) -> bool:
        if 0 <= start - street.end <= self.max_component_distance:
            return bool(_NUMBER_GAP.match(text[street.end:start]))
        if 0 <= street.start - end <= self.max_component_distance:
            return bool(_NUMBER_GAP.match(text[end:street.start]))
        return False

    # -- Postal codes --------------------------------------------------------

    def find_postal_codes(self, text: str, taken: list[AddressComponent]) -> list[AddressComponent]:
        out: list[AddressComponent] = []

        for m in _SWISS_POSTAL.finditer(text):
            code = int(m.group(1))
            prefixed = m.start(1) > m.start()
            if not pd.is_valid_swiss_postal_code(code):
                continue
            # A bare four-digit number is only a postal code when a city follows
            if not prefixed and not self._city_follows(text, m.start(1), m.end(1)):
                continue
            if _is_taken(taken + out, m.start(), m.end()):
                continue
            out.append(_component(
                AddressComponentType.POSTAL_CODE, text, m.start(), m.end(),
                confidence=self.swiss_postal_confidence,
            ))

        for pattern in (_EU5_POSTAL, _AT_POSTAL):
            for m in pattern.finditer(text):
                prefixed = m.start(1) > m.start()
                if not prefixed and not self._city_follows(text, m.start(1), m.end(1), swiss=False):
                    continue
                if _is_taken(taken + out, m.start(), m.end()):
                    continue
                out.append(_component(AddressComponentType.POSTAL_CODE, text, m.start(), m.end()))
        return out

    @staticmethod
    def _city_follows(text: str, start: int, end: int, swiss: bool = True) -> bool:
        m = _CITY_AFTER_POSTAL.match(text, end)
        if not m:
            return False
        if swiss:
            # Screens out years ("2024 Rapport", "1998 Januar")
            return v.validate_swiss_address(text[start:m.end(1)], text, start)
        first = m.group(1).split()[0].lower()
        return first not in v.NON_CITY_WORDS and first not in v.MONTH_NAMES

    # -- Cities / countries ----------------------------------------------------

    def find_cities(self, text: str, taken: list[AddressComponent]) -> list[AddressComponent]:
        out: list[AddressComponent] = []

        for m in _KNOWN_CITY.finditer(text):
            if not _is_taken(taken + out, m.start(), m.end()):
                out.append(_component(AddressComponentType.CITY, text, m.start(), m.end()))

        for postal in (c for c in taken if c.type == AddressComponentType.POSTAL_CODE):
            m = _CITY_AFTER_POSTAL.match(text, postal.end)
            if not m:
                continue
            start, end = m.start(1), m.end(1)
            if _is_taken(taken + out, start, end):
                # Retry with the first word only ("8001 Zürich Bahnhofstrasse")
                first = re.match(_WORD, text[start:end])
                if first is None:
                    continue
                end = start + first.end()
                if _is_taken(taken + out, start, end):
                    continue
            out.append(_component(AddressComponentType.CITY, text, start, end))
        return out

    def find_countries(self, text: str, taken: list[AddressComponent]) -> list[AddressComponent]:
        out: list[AddressComponent] = []
        for m in _COUNTRY_NAME.finditer(text):
            if not _is_taken(taken + out, m.start(), m.end()):
                out.append(_component(AddressComponentType.COUNTRY, text, m.start(), m.end()))
        for m in _COUNTRY_CODE.finditer(text):
            if not _is_taken(taken + out, m.start(1), m.end(1)):
                out.append(_component(AddressComponentType.COUNTRY, text, m.start(1), m.end(1)))
        return out


def _is_taken(components: list[AddressComponent], start: int, end: int) -> bool:
    return any(start < c.end and c.start < end for c in components)


def _component(
    ctype: AddressComponentType,
    text: str,
    start: int,
    end: int,
    confidence: float = 0.7,
) -> AddressComponent:
    return AddressComponent(
        type=ctype,
        text=text[start:end],
        start=start,
        end=end,
        confidence=confidence,
    )
