# Property Requirement Parser
# Extracts structured search criteria from free-form request messages

import base64
import logging
import re
import threading
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from config import DEFAULT_PARSER_CONFIG, ParserConfig
from gazetteer import GAZETTEER, Gazetteer
from models import Requirement, detect_purpose

logger = logging.getLogger(__name__)


class ParseOutcome(Enum):
    DUPLICATE = "duplicate"


# Returned instead of a Requirement when the same text was parsed moments ago
DUPLICATE = ParseOutcome.DUPLICATE

DIGIT_TABLE = str.maketrans("٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹", "01234567890123456789")

# Compound types come before the generic types they contain
PROPERTY_TYPES: List[Tuple[str, str]] = [
    ("شقة دبلكسية", "شقة دبلكسية"),
    ("شقة دبلكس", "شقة دبلكس"),
    ("دبلكس", "دبلكس"),
    ("استراحة", "استراحة"),
    ("شالية", "شالية"),
    ("شاليه", "شالية"),
    ("محطة بنزين", "محطة بنزين"),
    ("محطة", "محطة"),
    ("محل تجاري", "محل تجاري"),
    ("محل", "محل"),
    ("مستودع", "مستودع"),
    ("مزرعة", "مزرعة"),
    ("عمارة", "عمارة"),
    ("فيلا", "فيلا"),
    ("بيت", "بيت"),
    ("منزل", "منزل"),
    ("شقة", "شقة"),
    ("أرض", "أرض"),
    ("ارض", "ارض"),
]

RANGE_CONNECTORS = r"(?:إلى|الى|حتى|-|–)"
RANGE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*" + RANGE_CONNECTORS + r"\s*(\d+(?:\.\d+)?)")
NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
PHONE_PATTERN = re.compile(r"(?<!\d)(\+?\d{10,13}|05\d{8})(?!\d)")

TYPE_LABELS = r"(?:نوع العقار|العقار المطلوب|نوع الطلب)"
PRICE_LABELS = r"(?:حدود كم السعر|السعر المطلوب|حدود السعر|الميزانية|السعر)"
AREA_LABELS = r"(?:المساحة المطلوبة|المساحة|المساحه)"
NEIGHBORHOOD_LABELS = r"(?:الأحياء المفضلة|الأحياء المفضله|الاحياء المفضلة|الأحياء|الاحياء|الحي|الموقع)"
SUB_CATEGORY_LABELS = r"(?:التصنيف الفرعي|التصنيف فرعي|تصنيف فرعي)"
METRE_UNITS = r"(?:متر|م²|م\b)"

SUB_CATEGORY_KEYWORDS = ("صك",)


def to_western_digits(text: str) -> str:
    """Convert Arabic-Indic digits to ASCII digits."""
    return text.translate(DIGIT_TABLE)


def _format_number(value: float) -> str:
    return str(int(value)) if value == int(value) else str(value)


def expand_number_words(text: str) -> str:
    """Replace spelled-out amounts (نصف مليون, 2 مليون, 500 ألف) with digits."""
    # Thousands separators between digit groups: 900,000 -> 900000
    result = re.sub(r"(?<=\d)[,٬](?=\d{3}(?!\d))", "", text)

    result = re.sub(r"نصف\s*مليون", "500000", result)
    result = re.sub(r"ربع\s*مليون", "250000", result)
    result = re.sub(
        r"(\d+(?:\.\d+)?)\s*(?:مليون|ملايين|ملیون)",
        lambda m: _format_number(float(m.group(1)) * 1000000),
        result,
    )
    # Bare "مليون" means one million
    result = re.sub(r"(^|\s)(?:مليون|ملیون)(?=\s|$)", r"\g<1>1000000", result)
    result = re.sub(
        r"(\d+(?:\.\d+)?)\s*(?:ألف|الف|آلاف|الاف)",
        lambda m: _format_number(float(m.group(1)) * 1000),
        result,
    )
    return result


def find_labeled_line(text: str, labels: str) -> Optional[str]:
    """Return the rest of the line after a label and colon, or after the bare label."""
    match = re.search(labels + r"[^:\n]{0,20}:[\s*]*([^\n]*)", text)
    if not match:
        match = re.search(labels + r"[\s*]+([^\n]+)", text)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def parse_range(line: str) -> Tuple[Optional[float], Optional[float], bool]:
    """Read "A to B" or a single number from a line.

    Returns (low, high, is_range); a lone number comes back as (None, N, False).
    """
    range_match = RANGE_PATTERN.search(line)
    if range_match:
        low, high = float(range_match.group(1)), float(range_match.group(2))
        if low > high:
            low, high = high, low
        return low, high, True

    number = NUMBER_PATTERN.search(line)
    if number:
        return None, float(number.group(0)), False
    return None, None, False


def extract_property_type(text: str) -> Optional[str]:
    """Extract the property type, preferring the labelled line over the whole text."""
    candidates = []
    labelled = find_labeled_line(text, TYPE_LABELS)
    if labelled:
        candidates.append(labelled)
    candidates.append(text)

    for candidate in candidates:
        lowered = candidate.lower()
        for pattern, property_type in PROPERTY_TYPES:
            if pattern in lowered:
                return property_type
    return None


def extract_contact_number(text: str) -> Optional[str]:
    """Extract the first phone number."""
    match = PHONE_PATTERN.search(text)
    return match.group(1) if match else None


def extract_sub_category(text: str) -> Optional[str]:
    """Extract the sub-category from its label, else from known keywords."""
    labelled = find_labeled_line(text, SUB_CATEGORY_LABELS)
    if labelled:
        return labelled
    for keyword in SUB_CATEGORY_KEYWORDS:
        if keyword in text:
            return keyword
    return None


def extract_client_name(text: str) -> Optional[str]:
    """Extract the client name written on the line after a leading "طلب"."""
    match = re.match(r"^\s*طلب\s*\n\s*([^\n]+)\n", text)
    if not match:
        return None
    name = match.group(1).strip()
    if ":" in name or not 2 < len(name) < 50:
        return None
    return name


def extract_price(text: str) -> Tuple[Optional[float], Optional[float]]:
    """Extract the requested price range; a single number is a ceiling."""
    line = find_labeled_line(text, PRICE_LABELS)
    if not line:
        return None, None
    low, high, _ = parse_range(line)
    return low, high


class RequirementParser:
    """Parses request messages, rejecting identical messages re-delivered within a short window."""

    def __init__(
        self,
        config: ParserConfig = DEFAULT_PARSER_CONFIG,
        gazetteer: Gazetteer = GAZETTEER,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.gazetteer = gazetteer
        self.clock = clock
        self._recent: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _cache_key(self, text: str) -> str:
        encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
        return encoded[: self.config.dedup_key_length]

    def is_duplicate(self, text: str) -> bool:
        """Record the text and report whether it was already seen within the TTL."""
        key = self._cache_key(text)
        ttl = self.config.dedup_ttl_seconds
        now = self.clock()
        with self._lock:
            last_seen = self._recent.get(key)
            if last_seen is not None and now - last_seen < ttl:
                return True
            self._recent[key] = now
            if len(self._recent) > self.config.dedup_max_entries:
                expired = [k for k, seen in self._recent.items() if now - seen > ttl]
                for k in expired:
                    del self._recent[k]
        return False

    def clear_cache(self):
        with self._lock:
            self._recent.clear()

    def extract_area(self, text: str) -> Tuple[Optional[float], Optional[float]]:
        """Extract the requested area range, discarding implausible values."""
        line = find_labeled_line(text, AREA_LABELS)
        if line is None or not NUMBER_PATTERN.search(line):
            unit_match = re.search(r"(?<!\d)(\d{2,4})\s*" + METRE_UNITS, text)
            line = unit_match.group(1) if unit_match else None
        if not line:
            return None, None

        low_bound, high_bound = self.config.area_bounds
        low, high, is_range = parse_range(line)
        if high is None:
            return None, None

        if is_range:
            if low_bound <= low <= high_bound and low_bound <= high <= high_bound:
                return low, high
            logger.debug(f"Area range out of bounds: {low} - {high}")
            return None, None

        if not low_bound <= high <= high_bound:
            logger.debug(f"Area value out of bounds: {high}")
            return None, None
        if self.config.symmetric_single_area:
            tolerance = self.config.single_area_tolerance
            return high * (1 - tolerance), high * (1 + tolerance)
        # Legacy convention: a single area is an upper bound
        return 0, high

    def extract_neighborhoods(self, text: str) -> List[str]:
        line = find_labeled_line(text, NEIGHBORHOOD_LABELS)
        if not line:
            return []
        return self.gazetteer.extract_neighborhoods(line)

    def parse(self, text: str) -> Union[Requirement, ParseOutcome]:
        """Parse one request message into a Requirement.

        Returns DUPLICATE when the identical text was parsed within the
        dedup window. Fields that cannot be read are left as None.
        """
        if self.is_duplicate(text):
            logger.info(f"Skipping identical request received within {self.config.dedup_ttl_seconds}s")
            return DUPLICATE

        digits_only = to_western_digits(text)
        normalized = expand_number_words(digits_only)
        logger.debug(f"Normalized request text:\n{normalized}")

        price_min, price_max = extract_price(normalized)
        area_min, area_max = self.extract_area(normalized)

        requirement = Requirement(
            property_type=extract_property_type(normalized),
            purpose=detect_purpose(normalized),
            price_min=price_min,
            price_max=price_max,
            area_min=area_min,
            area_max=area_max,
            neighborhoods=self.extract_neighborhoods(normalized),
            contact_number=extract_contact_number(digits_only),
            sub_category=extract_sub_category(normalized),
            client_name=extract_client_name(text),
            raw_text=text,
        )
        logger.debug(f"Parsed requirement: {requirement.model_dump(exclude={'raw_text'})}")
        return requirement


def _format_amount(value: Optional[float]) -> str:
    return f"{value:,.0f}" if value is not None else "-"


def format_requirement_summary(requirement: Requirement) -> str:
    """Render the confirmation summary sent back to the client."""
    lines = []
    missing = []

    if requirement.property_type:
        lines.append(f"🏠 نوع العقار: {requirement.property_type}")
    else:
        lines.append("🏠 نوع العقار: ❌ لم يتم تحديده")
        missing.append("نوع العقار")

    if requirement.purpose:
        lines.append(f"📋 الغرض: {requirement.purpose.value}")
    else:
        lines.append("📋 الغرض: ❌ لم يتم تحديده")
        missing.append("الغرض")

    if requirement.has_price_preference:
        if requirement.price_min is not None:
            lines.append(
                f"💰 السعر: من {_format_amount(requirement.price_min)} إلى {_format_amount(requirement.price_max)} ريال"
            )
        else:
            lines.append(f"💰 السعر: حتى {_format_amount(requirement.price_max)} ريال")
    else:
        lines.append("💰 السعر: لم يتم تحديده (يمكن إضافته)")

    if requirement.has_area_preference:
        lines.append(
            f"📏 المساحة: من {_format_amount(requirement.area_min or 0)} إلى {_format_amount(requirement.area_max)} متر مربع"
        )
    else:
        lines.append("📏 المساحة: لم يتم تحديدها (يمكن إضافتها)")

    if requirement.has_location_preference:
        lines.append(f"📍 الأحياء: {'، '.join(requirement.neighborhoods)}")
    else:
        lines.append("📍 الأحياء: لم يتم تحديدها (يمكن إضافتها)")

    if requirement.contact_number:
        lines.append(f"📞 رقم التواصل: {requirement.contact_number}")

    if missing:
        lines.append("\n⚠️ ملاحظة: بعض المعلومات لم يتم اكتشافها تلقائياً")
        lines.append("يمكنك الموافقة على البحث أو إعادة إدخال البيانات بشكل أوضح")

    return "\n".join(lines)


default_parser = RequirementParser()


def parse_requirement(text: str) -> Union[Requirement, ParseOutcome]:
    """Parse with the shared default parser (and its dedup cache)."""
    return default_parser.parse(text)
