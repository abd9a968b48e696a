#!/usr/bin/env python3
"""
Unit tests for the requirement parser
"""

import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import ParserConfig
from models import Purpose, Requirement
from parser import (
    DUPLICATE,
    RequirementParser,
    expand_number_words,
    format_requirement_summary,
    parse_requirement,
    to_western_digits,
)

FULL_REQUEST = """طلب
أبو محمد
نوع العقار: فيلا
الغرض: شراء
السعر: من 500 ألف إلى مليون
المساحة: من 300 إلى 500
الأحياء المفضلة: الروضه، الخالدية
رقم التواصل: 0551234567"""


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestNumberNormalization:
    def test_native_digits(self):
        assert to_western_digits("٤٥٠ و ۱۲") == "450 و 12"

    def test_number_words(self):
        assert expand_number_words("نصف مليون") == "500000"
        assert expand_number_words("ربع مليون") == "250000"
        assert expand_number_words("2 مليون") == "2000000"
        assert expand_number_words("2.5 مليون") == "2500000"
        assert expand_number_words("من 900 ألف") == "من 900000"
        assert expand_number_words("حدود مليون ريال") == "حدود 1000000 ريال"

    def test_thousands_separators(self):
        assert expand_number_words("1,300,000") == "1300000"


class TestRequirementParser:
    def setup_method(self):
        self.clock = FakeClock()
        self.parser = RequirementParser(clock=self.clock)

    def parse(self, text):
        result = self.parser.parse(text)
        assert isinstance(result, Requirement)
        return result

    def test_full_request(self):
        req = self.parse(FULL_REQUEST)

        assert req.client_name == "أبو محمد"
        assert req.property_type == "فيلا"
        assert req.purpose == Purpose.BUY
        assert (req.price_min, req.price_max) == (500000, 1000000)
        assert (req.area_min, req.area_max) == (300, 500)
        assert req.neighborhoods == ("الروضة", "الخالدية")
        assert req.contact_number == "0551234567"
        assert req.sub_category is None
        assert req.raw_text == FULL_REQUEST

    def test_single_area_is_upper_bound(self):
        req = self.parse("المساحة: 300")
        assert req.area_min == 0
        assert req.area_max == 300

    def test_single_area_symmetric_option(self):
        parser = RequirementParser(ParserConfig(symmetric_single_area=True), clock=self.clock)
        req = parser.parse("المساحة: 300")
        assert req.area_min == pytest.approx(240)
        assert req.area_max == pytest.approx(360)

    def test_area_native_digits(self):
        req = self.parse("المساحة: ٤٠٠")
        assert (req.area_min, req.area_max) == (0, 400)

    def test_area_out_of_bounds_not_detected(self):
        assert self.parse("المساحة: 5").area_max is None
        assert self.parse("المساحة: 20000").area_max is None
        assert self.parse("المساحة: من 5 إلى 300").area_min is None

    def test_area_from_metre_unit(self):
        req = self.parse("أبغى أرض 600 متر في الروضة")
        assert (req.area_min, req.area_max) == (0, 600)
        assert req.property_type == "أرض"

    def test_half_million_price(self):
        req = self.parse("السعر: نصف مليون")
        assert req.price_max == 500000
        assert req.price_min is None

    def test_price_range_connectors(self):
        assert self.parse("السعر: 400000 - 600000").price_min == 400000
        req = self.parse("حدود السعر: 700 ألف حتى 2 مليون")
        assert (req.price_min, req.price_max) == (700000, 2000000)

    def test_price_range_without_colon(self):
        req = self.parse("السعر من 300000 الى 450000")
        assert (req.price_min, req.price_max) == (300000, 450000)

    def test_inverted_range_is_ordered(self):
        req = self.parse("السعر: من 900000 إلى 500000")
        assert req.price_min <= req.price_max
        assert (req.price_min, req.price_max) == (500000, 900000)

    def test_price_without_digits(self):
        req = self.parse("السعر: حسب السوق")
        assert req.price_min is None
        assert req.price_max is None

    def test_compound_type_wins(self):
        assert self.parse("نوع العقار: شقة دبلكس").property_type == "شقة دبلكس"
        assert self.parse("محل تجاري للإيجار").property_type == "محل تجاري"

    def test_purpose(self):
        assert self.parse("فيلا للبيع").purpose == Purpose.BUY
        assert self.parse("شقة للإيجار").purpose == Purpose.RENT
        assert self.parse("شقة في الروضة").purpose is None

    def test_sub_category(self):
        assert self.parse("التصنيف الفرعي: تجاري").sub_category == "تجاري"
        assert self.parse("أرض بصك").sub_category == "صك"

    def test_phone_first_match(self):
        req = self.parse("جوال: +966551234567\nجوال آخر: 0509876543")
        assert req.contact_number == "+966551234567"

    def test_missing_fields_are_none(self):
        req = self.parse("مرحبا")
        assert req.property_type is None
        assert req.purpose is None
        assert req.price_max is None
        assert req.area_max is None
        assert req.neighborhoods == ()
        assert req.contact_number is None
        assert req.client_name is None

    def test_duplicate_within_window(self):
        assert isinstance(self.parser.parse(FULL_REQUEST), Requirement)
        self.clock.now = 1.0
        assert self.parser.parse(FULL_REQUEST) is DUPLICATE
        self.clock.now = 7.0
        assert isinstance(self.parser.parse(FULL_REQUEST), Requirement)

    def test_different_text_is_not_duplicate(self):
        assert isinstance(self.parser.parse("السعر: 100000"), Requirement)
        assert isinstance(self.parser.parse("السعر: 200000"), Requirement)

    def test_cache_pruned_past_limit(self):
        parser = RequirementParser(ParserConfig(dedup_max_entries=2), clock=self.clock)
        for text in ("أ", "ب", "ج"):
            parser.parse(text)
        assert len(parser._recent) == 3
        self.clock.now = 10.0
        parser.parse("د")
        assert len(parser._recent) == 1

    def test_module_parser_rejects_redelivery(self):
        text = "طلب تجريبي للتكرار\nالسعر: 123456"
        assert isinstance(parse_requirement(text), Requirement)
        assert parse_requirement(text) is DUPLICATE


class TestRequirementSummary:
    def test_summary_lists_detected_fields(self):
        req = RequirementParser().parse(FULL_REQUEST)
        summary = format_requirement_summary(req)
        assert "فيلا" in summary
        assert "الروضة، الخالدية" in summary
        assert "500,000" in summary
        assert "ملاحظة" not in summary

    def test_summary_flags_missing_type(self):
        summary = format_requirement_summary(Requirement(raw_text="مرحبا"))
        assert "لم يتم تحديده" in summary
        assert "ملاحظة" in summary


if __name__ == "__main__":
    pytest.main([__file__])
