"""
Gazetteer - canonical place names for Al-Ahsa and spelling correction rules
Handles common typos in neighborhood names and the city vs neighborhood distinction
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from models import GazetteerEntry

logger = logging.getLogger(__name__)

# City -> member neighborhoods, most requested first
CITY_NEIGHBORHOODS = {
    "المبرز": [
        "محاسن",
        "محاسن ارامكو",
        "الراشدية",
        "الفيصلية",
        "الناصرية",
        "العزيزية",
        "المحمدية",
        "الخالدية",
        "الصالحية",
        "المنصورة",
        "الجامعية",
        "التعاونية",
        "الروضة",
        "البستانية",
        "المطيرفية",
    ],
    "الهفوف": [
        "الكوت",
        "الحزم",
        "البندرية",
        "العيون",
        "النعاثل",
        "السلمانية",
        "العمران",
        "المثلث",
        "الملك فهد",
        "اليحيى",
        "الشهابية",
    ],
    "الاحساء": [
        "عين موسى",
        "البطالية",
        "الطرف",
        "الجفر",
        "القارة",
        "الشعبة",
        "الحليلة",
        "الدالوة",
        "أم الساهك",
        "الكلابية",
        "المنيزلة",
        "الجشة",
        "التويثير",
        "الحفيرة",
    ],
}

# Words that open a compound place name ("حي ...", "شارع ..."); never split right after them
LOCATIVE_PREFIXES = (
    "حي",
    "شارع",
    "طريق",
    "مجمع",
    "خلف",
    "مقابل",
    "بجوار",
    "دوار",
    "ميدان",
    "مركز",
    "نهاية",
    "مخطط",
)

# Misspelling -> official name
AREA_CORRECTIONS = {
    "الخالديه": "الخالدية",
    "الخالديةأ": "الخالدية أ",
    "الخالديةب": "الخالدية ب",
    "الخالديةج": "الخالدية ج",
    "الخالدية أ": "الخالدية أ",
    "الخالدية ب": "الخالدية ب",
    "الخالدية ج": "الخالدية ج",
    "المحمديه": "المحمدية",
    "المحمديةأ": "المحمدية أ",
    "المحمديةب": "المحمدية ب",
    "الفيصليه": "الفيصلية",
    "الفيصليةأ": "الفيصلية أ",
    "الفيصليةب": "الفيصلية ب",
    "العزيزيه": "العزيزية",
    "العزيزيةأ": "العزيزية أ",
    "المنصوره": "المنصورة",
    "المنصورهأ": "المنصورة أ",
    "الراشديه": "الراشدية",
    "الراشديةأ": "الراشدية أ",
    "الصالحيه": "الصالحية",
    "الصالحيةأ": "الصالحية أ",
    "المبرزأ": "المبرز أ",
    "المبرزب": "المبرز ب",
    "الهفوفأ": "الهفوف أ",
    "الهفوفب": "الهفوف ب",
    "العمرانأ": "العمران أ",
    "العمرانب": "العمران ب",
    "المثلثأ": "المثلث أ",
    "المثلثب": "المثلث ب",
    "الملك فهد": "الملك فهد",
    "الملك فهدأ": "الملك فهد أ",
    # ه typed for ة
    "الجامعيه": "الجامعية",
    "التعاونيه": "التعاونية",
    "السلمانيه": "السلمانية",
    "الناصريه": "الناصرية",
    "الروضه": "الروضة",
    "البستانيه": "البستانية",
    "العليه": "العلية",
    "المطيرفيه": "المطيرفية",
    "اليحيه": "اليحيى",
}

VALID_AREAS = (
    "الخالدية",
    "الخالدية أ",
    "الخالدية ب",
    "الخالدية ج",
    "المحمدية",
    "المحمدية أ",
    "المحمدية ب",
    "الفيصلية",
    "الفيصلية أ",
    "الفيصلية ب",
    "العزيزية",
    "العزيزية أ",
    "المنصورة",
    "المنصورة أ",
    "الراشدية",
    "الراشدية أ",
    "الصالحية",
    "الصالحية أ",
    "المبرز",
    "المبرز أ",
    "المبرز ب",
    "الهفوف",
    "الهفوف أ",
    "الهفوف ب",
    "العمران",
    "العمران أ",
    "العمران ب",
    "المثلث",
    "المثلث أ",
    "المثلث ب",
    "الملك فهد",
    "الملك فهد أ",
    "الجامعية",
    "التعاونية",
    "السلمانية",
    "الناصرية",
    "الروضة",
    "البستانية",
    "العلية",
    "المطيرفية",
    "اليحيى",
    "المزروعية",
    "الشهابية",
    "عين موسى",
    "البطالية",
    "الطرف",
    "الجفر",
    "القارة",
    "الشعبة",
    "الحليلة",
    "الدالوة",
    "أم الساهك",
    "الكلابية",
    "المنيزلة",
    "الجشة",
    "التويثير",
    "الحفيرة",
    "المركز",
)

DECORATION_PATTERN = re.compile(r'[*()«»"]+')
SEGMENT_SEPARATORS = re.compile(r"[،,/\-]|\s+أو\s+")
# A word-initial و is read as "and"; names such as وادي keep it only after a locative prefix
CONJUNCTION_SPLIT = re.compile(r"\s+و")


def _squash(name: str) -> str:
    return re.sub(r"\s+", "", name).lower()


class SpellingRule(ABC):
    """A locale-specific orthographic fallback tried after the correction tables."""

    @abstractmethod
    def apply(self, name: str, gazetteer: "Gazetteer") -> Optional[str]:
        raise NotImplementedError


class FeminineEndingRule(SpellingRule):
    """Arabic ه / ة confusion at the end of a word (الروضه vs الروضة)."""

    HA = "ه"
    TA_MARBUTA = "ة"

    def apply(self, name, gazetteer):
        if name.endswith(self.HA):
            candidate = name[:-1] + self.TA_MARBUTA
            if gazetteer.is_known(candidate):
                return candidate
        if name.endswith(self.TA_MARBUTA):
            candidate = name[:-1] + self.HA
            if candidate in gazetteer.corrections:
                return gazetteer.corrections[candidate]
            if gazetteer.is_known(candidate):
                return candidate
        return None


class Gazetteer:
    """Static place-name tables with the normalization rules applied to them."""

    def __init__(
        self,
        corrections: Mapping[str, str] = AREA_CORRECTIONS,
        valid_areas: Sequence[str] = VALID_AREAS,
        city_neighborhoods: Mapping[str, Sequence[str]] = CITY_NEIGHBORHOODS,
        locative_prefixes: Sequence[str] = LOCATIVE_PREFIXES,
        spelling_rules: Sequence[SpellingRule] = (FeminineEndingRule(),),
    ):
        self.corrections = dict(corrections)
        self.valid_areas = tuple(valid_areas)
        self.city_neighborhoods = {city: tuple(members) for city, members in city_neighborhoods.items()}
        self.locative_prefixes = frozenset(locative_prefixes)
        self.spelling_rules = tuple(spelling_rules)

        self._valid_set = set(self.valid_areas)
        self._squashed_corrections = {}
        for wrong, correct in self.corrections.items():
            self._squashed_corrections.setdefault(_squash(wrong), correct)
        self._entries = self._build_entries()

    def _build_entries(self) -> Dict[str, GazetteerEntry]:
        variants: Dict[str, List[str]] = {}
        for wrong, correct in self.corrections.items():
            if wrong != correct:
                variants.setdefault(correct, []).append(wrong)

        membership = {}
        for city, members in self.city_neighborhoods.items():
            for member in members:
                membership.setdefault(member, city)

        names = list(dict.fromkeys(list(self.valid_areas) + list(membership) + list(self.city_neighborhoods)))
        return {
            name: GazetteerEntry(
                canonical=name,
                variants=tuple(variants.get(name, ())),
                city=membership.get(name),
            )
            for name in names
        }

    @property
    def cities(self) -> List[str]:
        return list(self.city_neighborhoods)

    @property
    def entries(self) -> List[GazetteerEntry]:
        return list(self._entries.values())

    def is_known(self, name: str) -> bool:
        return name in self._valid_set

    def normalize(self, name: Optional[str]) -> str:
        """Correct a place name to its canonical spelling; unknown names come back trimmed."""
        if not name:
            return ""
        normalized = name.strip()

        if normalized in self.corrections:
            corrected = self.corrections[normalized]
            if corrected != normalized:
                logger.debug(f"Area name corrected: '{name}' -> '{corrected}'")
            return corrected

        squashed = _squash(normalized)
        if squashed in self._squashed_corrections:
            corrected = self._squashed_corrections[squashed]
            logger.debug(f"Area name corrected (case/space): '{name}' -> '{corrected}'")
            return corrected

        for rule in self.spelling_rules:
            corrected = rule.apply(normalized, self)
            if corrected:
                logger.debug(f"Area name corrected ({type(rule).__name__}): '{name}' -> '{corrected}'")
                return corrected

        return normalized

    def normalize_many(self, names: Iterable[str]) -> List[str]:
        if not names:
            return []
        return [n for n in (self.normalize(name) for name in names) if n]

    def is_valid(self, name: str) -> bool:
        return self.is_known(self.normalize(name))

    def lookup(self, name: str) -> Optional[GazetteerEntry]:
        return self._entries.get(self.normalize(name))

    def is_city(self, name: Optional[str]) -> bool:
        if not name:
            return False
        normalized = self.normalize(name).lower()
        return any(city.lower() == normalized for city in self.city_neighborhoods)

    def get_neighborhoods_for_city(self, city: Optional[str]) -> List[str]:
        if not city:
            return []
        return list(self.city_neighborhoods.get(self.normalize(city), ()))

    def expand_city_to_neighborhoods(self, name: Optional[str], limit: int = 5) -> List[str]:
        """A city expands to its most requested neighborhoods; anything else stays a single area."""
        if not name:
            return []
        normalized = self.normalize(name)
        if self.is_city(normalized):
            neighborhoods = self.get_neighborhoods_for_city(normalized)[:limit]
            logger.debug(f"'{normalized}' is a city, expanding to {len(neighborhoods)} neighborhoods")
            return neighborhoods
        return [normalized]

    def _split_conjunctions(self, segment: str) -> List[str]:
        pieces: List[str] = []
        for chunk in CONJUNCTION_SPLIT.split(segment):
            chunk = chunk.strip()
            if not chunk:
                continue
            if pieces and pieces[-1].split()[-1] in self.locative_prefixes:
                # "حي وادي ..." is one place, not two
                pieces[-1] = f"{pieces[-1]} و{chunk}"
            else:
                pieces.append(chunk)
        return pieces

    def extract_neighborhoods(self, text: Optional[str]) -> List[str]:
        """Pull individual neighborhood names out of a free-text list.

        Splits on commas, slashes, dashes and "أو", then on the conjunction
        "و" unless it directly follows a locative prefix. Each name is
        normalized; short or purely numeric tokens are dropped and duplicates
        removed in first-seen order.
        """
        if not text:
            return []

        clean = DECORATION_PATTERN.sub(" ", text)
        clean = re.sub(r"\s+", " ", clean).strip()

        found: List[str] = []
        for segment in SEGMENT_SEPARATORS.split(clean):
            segment = segment.strip()
            if not segment:
                continue
            for piece in self._split_conjunctions(segment):
                normalized = self.normalize(piece)
                if len(normalized) > 2 and not normalized.isdigit():
                    found.append(normalized)

        return list(dict.fromkeys(found))

    def get_suggestions(self, name: Optional[str], limit: int = 5) -> List[str]:
        if not name:
            return []
        normalized = self.normalize(name)
        if not normalized:
            return []
        if self.is_known(normalized):
            return [normalized]

        term = normalized.lower()
        suggestions = [area for area in self.valid_areas if term in area.lower()]

        if not suggestions:
            for word in normalized.split():
                if len(word) < 3:
                    continue
                for area in self.valid_areas:
                    if word.lower() in area.lower() and area not in suggestions:
                        suggestions.append(area)

        return suggestions[:limit]

    def filter_by_area(self, listings: Sequence[Any], requested_area: Optional[str]) -> List[Any]:
        """Keep listings located in (or around) the requested area.

        ``listings`` holds mappings or objects exposing ``neighborhood``.
        """
        if not requested_area:
            return list(listings)

        requested = self.normalize(requested_area).lower()
        kept = []
        for listing in listings:
            if isinstance(listing, Mapping):
                location = listing.get("neighborhood") or listing.get("location") or ""
            else:
                location = getattr(listing, "neighborhood", None) or ""
            location = self.normalize(str(location)).lower()
            if location and (location == requested or requested in location or location in requested):
                kept.append(listing)

        if len(kept) < len(listings):
            logger.debug(f"Filtered listings: {len(listings)} -> {len(kept)} (matching '{requested_area}')")
        return kept


GAZETTEER = Gazetteer()

normalize_area_name = GAZETTEER.normalize
normalize_area_names = GAZETTEER.normalize_many
is_valid_area = GAZETTEER.is_valid
is_city = GAZETTEER.is_city
get_neighborhoods_for_city = GAZETTEER.get_neighborhoods_for_city
expand_city_to_neighborhoods = GAZETTEER.expand_city_to_neighborhoods
extract_neighborhoods = GAZETTEER.extract_neighborhoods
get_suggestions = GAZETTEER.get_suggestions
filter_by_area = GAZETTEER.filter_by_area
