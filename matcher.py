#!/usr/bin/env python3
"""
Property Matcher - scores catalog offers against a parsed property request
Filters on type and purpose, then weighs price, area and location
"""

import argparse
import json
import logging
import math
import os
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from config import DEFAULT_CONFIG, DecayProfile, MatchingConfig, init_logger
from gazetteer import GAZETTEER
from models import (
    Breakdown,
    Listing,
    QualityLabel,
    Requirement,
    ScoreResult,
    canonical_purpose,
    flatten_record,
)
from parser import DUPLICATE, RequirementParser, format_requirement_summary

logger = logging.getLogger(__name__)

# Related property types score 90 against each other
TYPE_SYNONYM_GROUPS = [
    ["بيت", "منزل", "دور", "فيلا"],
    ["شقة", "شقة سكنية"],
    ["دبلكس", "شقة دبلكسية", "شقة دبلكس"],
    ["أرض", "ارض"],
    ["عمارة", "بناية"],
    ["استراحة", "شاليه", "شالية"],
    ["محل", "محل تجاري"],
]

QUALITY_LABELS = (
    QualityLabel.EXCELLENT,
    QualityLabel.VERY_GOOD,
    QualityLabel.GOOD,
    QualityLabel.ACCEPTABLE,
)

Match = Tuple[Any, ScoreResult]

# Catalog keys holding the listing area, in the order Listing reads them
AREA_KEYS = ("area", "arc_space")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def type_similarity(requested: Optional[str], offered: Optional[str]) -> float:
    """Calculate property type similarity (0-100); a missing side means no preference."""
    if not requested or not offered:
        return 100
    req_type = requested.lower().strip()
    off_type = offered.lower().strip()

    if req_type == off_type:
        return 100

    for group in TYPE_SYNONYM_GROUPS:
        req_in_group = any(s in req_type or req_type in s for s in group)
        off_in_group = any(s in off_type or off_type in s for s in group)
        if req_in_group and off_in_group:
            return 90

    if req_type in off_type or off_type in req_type:
        return 70
    return 0


def purpose_similarity(requested: Optional[str], offered: Optional[str]) -> float:
    """Sale vs rental must agree; a missing side means no preference."""
    if not requested or not offered:
        return 100
    return 100 if canonical_purpose(requested) == canonical_purpose(offered) else 0


def range_similarity(
    low: Optional[float], high: Optional[float], value: Optional[float], profile: DecayProfile
) -> float:
    """Score how well a value fits a requested range (0-100).

    Inside the range scores 100. Just outside, within the allowed variance
    (a fraction of the range width), the score falls linearly to the near
    floor. Further out it decays against the nearer bound's magnitude (or the
    maximum, for profiles that scale shortfalls by it) down to the far floor.
    A missing or non-positive value scores 0; an open request scores 100.
    """
    if value is None or value <= 0:
        return 0
    if low is None and high is None:
        return 100

    lower = low if low is not None else 0
    if value >= lower and (high is None or value <= high):
        return 100

    # With no ceiling, the floor's own size stands in for the range width
    width = (high - lower) if high is not None else lower

    if value < lower:
        distance = lower - value
        allowed = width * profile.below_variance
        bound, slope = lower, profile.below_slope
        if profile.below_scale_by_max and high is not None:
            bound = high
    else:
        distance = value - high
        allowed = width * profile.above_variance
        bound, slope = high, profile.above_slope

    if distance <= allowed:
        return 100 - (distance / allowed) * (100 - profile.near_floor)

    if bound <= 0:
        return profile.far_floor
    excess = distance - allowed
    return max(profile.far_floor, profile.near_floor - (excess / bound) * slope)


def location_similarity(
    requested: Sequence[str],
    neighborhood: Optional[str],
    city: Optional[str],
    config: MatchingConfig = DEFAULT_CONFIG,
) -> float:
    """Calculate location similarity (0-100) between requested neighborhoods and an offer."""
    if not requested:
        return 100

    offer_location = " ".join(part for part in (neighborhood, city) if part).lower().strip()
    if not offer_location:
        return 0

    for name in requested:
        wanted = name.lower().strip()
        if wanted and (wanted in offer_location or offer_location in wanted):
            return 100

    offer_words = [w for w in offer_location.split() if len(w) > 2]
    request_words = [w for name in requested for w in name.lower().split() if len(w) > 2]
    matching = sum(1 for ow in offer_words if any(rw in ow or ow in rw for rw in request_words))
    if matching and offer_words:
        return round_half_up(50 + (matching / len(offer_words)) * 40)

    if city and any(
        assoc in name and assoc in city for name in requested for assoc in config.associated_cities
    ):
        return config.same_city_score

    return 0


def quality_label(score: int, config: MatchingConfig = DEFAULT_CONFIG) -> QualityLabel:
    for threshold, label in zip(config.quality_thresholds, QUALITY_LABELS):
        if score >= threshold:
            return label
    return QualityLabel.WEAK


def score_property(
    requirement: Requirement, listing: Any, config: MatchingConfig = DEFAULT_CONFIG
) -> ScoreResult:
    """Score one listing against a requirement.

    Type and purpose act as filters; a listing that fails either scores 0
    with the reason recorded. Otherwise price, area and location are weighed
    into a 0-100 score.
    """
    listing = Listing.from_record(listing)

    type_score = type_similarity(requirement.property_type, listing.property_type)
    purpose_score = purpose_similarity(
        requirement.purpose.value if requirement.purpose else None, listing.purpose
    )

    if type_score < config.type_filter_min or purpose_score < 100:
        reason = "Property type mismatch" if type_score < config.type_filter_min else "Purpose mismatch (بيع/إيجار)"
        logger.debug(f"Rejected listing {listing.property_type!r} / {listing.purpose!r}: {reason}")
        return ScoreResult(
            score=0,
            matched=False,
            breakdown=Breakdown(type=round_half_up(type_score), purpose=round_half_up(purpose_score)),
            quality_label=QualityLabel.WEAK,
            reason=reason,
        )

    price_score = range_similarity(requirement.price_min, requirement.price_max, listing.price, config.price)
    area_score = range_similarity(requirement.area_min, requirement.area_max, listing.area, config.area)
    location_score = location_similarity(
        requirement.neighborhoods,
        GAZETTEER.normalize(listing.neighborhood) or None,
        listing.city,
        config,
    )

    weights = config.weights
    total = round_half_up(
        price_score * weights["price"] + area_score * weights["area"] + location_score * weights["location"]
    )
    total = max(0, min(100, total))

    breakdown = Breakdown(
        type=round_half_up(type_score),
        purpose=round_half_up(purpose_score),
        price=round_half_up(price_score),
        area=round_half_up(area_score),
        location=round_half_up(location_score),
    )
    logger.debug(f"Scored listing: {total} {breakdown.model_dump()}")

    return ScoreResult(
        score=total,
        matched=total >= config.match_threshold,
        breakdown=breakdown,
        quality_label=quality_label(total, config),
    )


def rank(
    requirement: Requirement,
    listings: Sequence[Any],
    min_score: Optional[int] = None,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> List[Match]:
    """Score every listing and return those at or above min_score, best first.

    Listings are returned exactly as given; ties keep catalog order.
    """
    if min_score is None:
        min_score = config.match_threshold

    matches = []
    for record in listings:
        try:
            result = score_property(requirement, record, config)
        except ValidationError as e:
            logger.warning(f"Skipping malformed listing: {e}")
            continue
        if result.score >= min_score:
            matches.append((record, result))

    # list.sort is stable, so equal scores keep catalog order
    matches.sort(key=lambda m: m[1].score, reverse=True)
    return matches


def _field_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).lower().strip()


def _area_text(record: Any) -> str:
    """The area as written in the catalog record, before numeric coercion."""
    if isinstance(record, Listing):
        return _field_text(record.area)
    data = flatten_record(record)
    if isinstance(data, dict):
        for key in AREA_KEYS:
            if data.get(key) is not None:
                return _field_text(data[key])
    return ""


def is_duplicate_listing(first: Any, second: Any) -> bool:
    """Two offers are the same property when category, area and neighborhood agree,
    sub-categories agree where both are given, and prices are within 10%."""
    if first is None or second is None:
        return False
    a = Listing.from_record(first)
    b = Listing.from_record(second)

    category_a, category_b = _field_text(a.property_type), _field_text(b.property_type)
    area_a, area_b = _area_text(first), _area_text(second)
    hood_a, hood_b = _field_text(a.neighborhood), _field_text(b.neighborhood)
    sub_a, sub_b = _field_text(a.sub_category), _field_text(b.sub_category)

    category_matches = bool(category_a) and category_a == category_b
    area_matches = bool(area_a) and area_a == area_b
    neighborhood_matches = bool(hood_a) and hood_a == hood_b
    sub_category_matches = not sub_a or not sub_b or sub_a == sub_b

    if a.price is None and b.price is None:
        price_matches = True
    elif a.price is None or b.price is None:
        price_matches = False
    else:
        average = (a.price + b.price) / 2
        price_matches = a.price == b.price or abs(a.price - b.price) <= average * 0.1

    duplicate = (
        category_matches and area_matches and neighborhood_matches and sub_category_matches and price_matches
    )
    if duplicate:
        logger.debug(f"Duplicate listing: {category_a} / {area_a} / {hood_a} / {a.price} ~ {b.price}")
    return duplicate


def _record_to_dict(record: Any) -> Dict[str, Any]:
    if isinstance(record, Listing):
        return record.model_dump()
    return record


def matches_to_json(matches: Sequence[Match]) -> List[Dict[str, Any]]:
    return [
        {"listing": _record_to_dict(record), "result": result.model_dump(mode="json")}
        for record, result in matches
    ]


class PropertyMatcher:
    def __init__(
        self,
        catalog_path: str = "database.json",
        config: MatchingConfig = DEFAULT_CONFIG,
        parser: Optional[RequirementParser] = None,
        debug: bool = False,
    ):
        self.debug = debug
        if debug:
            init_logger("DEBUG")
        self.config = config
        self.catalog_path = catalog_path
        self.parser = parser or RequirementParser()
        self.inventory = self.load_inventory()

    def load_inventory(self) -> List[Dict]:
        """Load the listing catalog from a JSON file"""
        if not os.path.exists(self.catalog_path):
            logger.warning(f"Catalog not found: {self.catalog_path}")
            return []
        try:
            with open(self.catalog_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read catalog {self.catalog_path}: {e}")
            return []

        if isinstance(data, dict):
            data = data.get("listings", [])
        if not isinstance(data, list):
            logger.warning(f"Catalog {self.catalog_path} does not hold a list of listings")
            return []
        logger.info(f"Loaded {len(data)} listings from {self.catalog_path}")
        return data

    def match(self, requirement: Requirement, min_score: Optional[int] = None) -> List[Match]:
        return rank(requirement, self.inventory, min_score, self.config)

    def find_matches(self, requirement_text: str, min_score: Optional[int] = None) -> List[Match]:
        """Parse a request and rank the catalog against it"""
        requirement = self.parser.parse(requirement_text)
        if requirement is DUPLICATE:
            return []
        return self.match(requirement, min_score)

    def display_results(self, matches: Sequence[Match]):
        """Display matching results"""
        if not matches:
            print("No matching properties found.")
            return

        print(f"\nFound {len(matches)} matching properties:")
        print("=" * 80)
        for i, (record, result) in enumerate(matches, 1):
            listing = Listing.from_record(record)
            print(f"\n{i}. {listing.property_type or 'N/A'} - {listing.purpose or 'N/A'}")
            print(f"   Score: {result.score}% ({result.quality_label.value})")

            details = []
            if listing.price:
                details.append(f"Price: {listing.price:,.0f}")
            if listing.area:
                details.append(f"Area: {listing.area:,.0f} m²")
            location = " ".join(p for p in (listing.neighborhood, listing.city) if p)
            if location:
                details.append(f"Location: {location}")
            print(f"   Details: {', '.join(details) or 'N/A'}")

            b = result.breakdown
            print(f"   Breakdown: price {b.price} | area {b.area} | location {b.location}")


def main():
    """Main CLI interface"""
    parser = argparse.ArgumentParser(description="Match a property request against a listing catalog")
    parser.add_argument("--catalog", default="database.json", help="JSON file with catalog listings")
    parser.add_argument("--min-score", type=int, default=None, help="Lowest score to report (default 80)")
    parser.add_argument("--text", help="Request text (read from stdin when omitted)")
    parser.add_argument("--output", help="Write matches as JSON to this file")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    args = parser.parse_args()

    init_logger("DEBUG" if args.debug else "WARNING")

    try:
        text = args.text if args.text is not None else sys.stdin.read()
        if not text.strip():
            print("No input provided. Please paste a property request.")
            return 1

        matcher = PropertyMatcher(catalog_path=args.catalog, debug=args.debug)
        requirement = matcher.parser.parse(text)
        if requirement is DUPLICATE:
            print("Identical request received moments ago; skipping.")
            return 0

        print(format_requirement_summary(requirement))
        matches = matcher.match(requirement, args.min_score)
        matcher.display_results(matches)

        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                json.dump(
                    {"requirement": requirement.model_dump(mode="json"), "matches": matches_to_json(matches)},
                    f,
                    indent=2,
                    ensure_ascii=False,
                )
            print(f"\nDetailed results saved to {args.output}")
    except Exception as e:
        print(f"❌ An error occurred: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
