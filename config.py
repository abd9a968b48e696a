"""
Matching configuration - tuned constants for parsing and scoring
"""

import logging
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class DecayProfile(BaseModel):
    """Distance-decay shape shared by the price and area dimensions.

    A value inside the requested range scores 100. Within the allowed
    variance (a fraction of the range width) the score falls linearly to
    ``near_floor``; past it, the score keeps falling by ``*_slope`` points per
    bound-sized step of excess distance, never below ``far_floor``.

    The step is the nearer bound, except that ``below_scale_by_max`` measures
    shortfalls below the minimum against the requested maximum instead.
    """

    model_config = ConfigDict(frozen=True)

    below_variance: float
    above_variance: float
    near_floor: float
    below_slope: float
    above_slope: float
    far_floor: float
    below_scale_by_max: bool = False


PRICE_PROFILE = DecayProfile(
    below_variance=0.25,
    above_variance=0.25,
    near_floor=75,
    below_slope=75,
    above_slope=75,
    far_floor=0,
)

# Undersized space gets a wider allowance than oversized space
AREA_PROFILE = DecayProfile(
    below_variance=0.40,
    above_variance=0.25,
    near_floor=70,
    below_slope=60,
    above_slope=50,
    far_floor=10,
    below_scale_by_max=True,
)


class MatchingConfig(BaseModel):
    """Weights and thresholds used by the similarity scorer."""

    model_config = ConfigDict(frozen=True)

    weights: Dict[str, float] = Field(
        default_factory=lambda: {"price": 0.4, "area": 0.3, "location": 0.3}
    )
    price: DecayProfile = PRICE_PROFILE
    area: DecayProfile = AREA_PROFILE
    type_filter_min: int = 70
    match_threshold: int = 80
    # Lower edges of the excellent, very good, good and acceptable buckets
    quality_thresholds: Tuple[int, int, int, int] = (90, 80, 70, 60)
    # Cities whose name in a requested neighborhood earns a same-city score
    associated_cities: Tuple[str, ...] = ("الهفوف", "المبرز", "العمران")
    same_city_score: int = 40


class ParserConfig(BaseModel):
    """Settings for the requirement parser and its dedup cache."""

    model_config = ConfigDict(frozen=True)

    dedup_ttl_seconds: float = 5.0
    dedup_max_entries: int = 100
    dedup_key_length: int = 100
    area_bounds: Tuple[int, int] = (10, 10000)
    # Legacy behaviour reads a single area number as an upper bound (0, N).
    # When enabled, it is read as "around N" instead.
    symmetric_single_area: bool = False
    single_area_tolerance: float = 0.2


DEFAULT_CONFIG = MatchingConfig()
DEFAULT_PARSER_CONFIG = ParserConfig()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def init_logger(level: str = "INFO", name: Optional[str] = None) -> logging.Logger:
    """Initialize a console logger; repeated calls reuse the existing handler."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
