#!/usr/bin/env python3
"""
Unit tests for the place-name gazetteer
"""

import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gazetteer import (
    AREA_CORRECTIONS,
    CITY_NEIGHBORHOODS,
    VALID_AREAS,
    Gazetteer,
    SpellingRule,
    expand_city_to_neighborhoods,
    extract_neighborhoods,
    filter_by_area,
    get_neighborhoods_for_city,
    get_suggestions,
    is_city,
    is_valid_area,
    normalize_area_name,
    normalize_area_names,
)


class TestNormalize:
    def test_exact_correction(self):
        assert normalize_area_name("الخالديه") == "الخالدية"
        assert normalize_area_name("اليحيه") == "اليحيى"

    def test_space_insensitive_correction(self):
        assert normalize_area_name("الملكفهد") == "الملك فهد"
        assert normalize_area_name("الخالدية  ب") == "الخالدية ب"

    def test_trims_unknown_names(self):
        assert normalize_area_name("  حي جديد  ") == "حي جديد"
        assert normalize_area_name("") == ""
        assert normalize_area_name(None) == ""

    def test_ha_to_ta_marbuta(self):
        """A valid name typed with a trailing ه is corrected"""
        assert "المزروعيه" not in AREA_CORRECTIONS
        assert normalize_area_name("المزروعيه") == "المزروعية"

    def test_ta_marbuta_to_ha_reverse(self):
        assert normalize_area_name("اليحية") == "اليحيى"

    def test_unknown_ha_ending_left_alone(self):
        assert normalize_area_name("مكه") == "مكه"

    def test_idempotent(self):
        samples = list(AREA_CORRECTIONS) + list(VALID_AREAS) + [
            " الروضه ",
            "الملكفهد",
            "اليحية",
            "مكه",
            "حي الورود",
            "abc",
        ]
        for name in samples:
            once = normalize_area_name(name)
            assert normalize_area_name(once) == once, name

    def test_spelling_rules_are_swappable(self):
        plain = Gazetteer(spelling_rules=())
        assert plain.normalize("المزروعيه") == "المزروعيه"
        assert plain.normalize("الخالديه") == "الخالدية"

    def test_spelling_rule_is_abstract(self):
        with pytest.raises(TypeError):
            SpellingRule()

    def test_custom_spelling_rule(self):
        class AlefRule(SpellingRule):
            def apply(self, name, gazetteer):
                candidate = name.replace("ا", "أ", 1)
                return candidate if gazetteer.is_known(candidate) else None

        gazetteer = Gazetteer(spelling_rules=(AlefRule(),))
        assert gazetteer.normalize("ام الساهك") == "أم الساهك"

    def test_normalize_many_drops_empty(self):
        assert normalize_area_names(["الروضه", "", "  "]) == ["الروضة"]
        assert normalize_area_names(None) == []

    def test_is_valid_area(self):
        assert is_valid_area("الروضه")
        assert not is_valid_area("حي غير موجود")


class TestCities:
    def test_is_city(self):
        assert is_city("المبرز")
        assert is_city("الهفوف")
        assert not is_city("الروضة")
        assert not is_city("")

    def test_neighborhoods_for_city(self):
        assert get_neighborhoods_for_city("المبرز") == CITY_NEIGHBORHOODS["المبرز"]
        assert get_neighborhoods_for_city("الروضة") == []

    def test_expand_city_returns_top_members(self):
        for city in CITY_NEIGHBORHOODS:
            expanded = expand_city_to_neighborhoods(city)
            assert 0 < len(expanded) <= 5
            assert all(n in get_neighborhoods_for_city(city) for n in expanded)

    def test_expand_neighborhood_returns_itself(self):
        assert expand_city_to_neighborhoods("الروضه") == ["الروضة"]
        assert expand_city_to_neighborhoods("") == []


class TestExtractNeighborhoods:
    def test_split_on_separators(self):
        text = "الروضة، الخالديه / المحمدية أو العزيزية - الناصرية"
        assert extract_neighborhoods(text) == ["الروضة", "الخالدية", "المحمدية", "العزيزية", "الناصرية"]

    def test_split_on_conjunction(self):
        assert extract_neighborhoods("البطالية وشارع الحيات") == ["البطالية", "شارع الحيات"]
        assert extract_neighborhoods("المبرز والهفوف") == ["المبرز", "الهفوف"]

    def test_conjunction_after_locative_prefix_kept(self):
        assert extract_neighborhoods("الروضة ومخطط وادي النخيل") == ["الروضة", "مخطط وادي النخيل"]

    def test_leading_waw_read_as_conjunction(self):
        assert extract_neighborhoods("الروضة وادي") == ["الروضة", "ادي"]
        assert extract_neighborhoods("شارع وادي") == ["شارع وادي"]

    def test_drops_short_numeric_and_duplicate_tokens(self):
        assert extract_neighborhoods("الروضة, الروضه, 12, حي") == ["الروضة"]

    def test_strips_decoration(self):
        assert extract_neighborhoods("*الروضة*، (الخالدية)") == ["الروضة", "الخالدية"]

    def test_empty(self):
        assert extract_neighborhoods("") == []
        assert extract_neighborhoods(None) == []


class TestSuggestionsAndLookup:
    def test_valid_name_suggests_itself(self):
        assert get_suggestions("الروضه") == ["الروضة"]

    def test_substring_suggestions(self):
        assert get_suggestions("الخالد") == ["الخالدية", "الخالدية أ", "الخالدية ب", "الخالدية ج"]

    def test_per_word_fallback(self):
        assert get_suggestions("حي المحمدية الجديدة") == ["المحمدية", "المحمدية أ", "المحمدية ب"]

    def test_suggestions_capped_at_five(self):
        assert len(get_suggestions("ال")) == 5
        assert get_suggestions("") == []

    def test_lookup_entry(self):
        gazetteer = Gazetteer()
        entry = gazetteer.lookup("الخالديه")
        assert entry.canonical == "الخالدية"
        assert "الخالديه" in entry.variants
        assert entry.city == "المبرز"
        assert gazetteer.lookup("مكان مجهول") is None
        assert len(gazetteer.entries) >= len(VALID_AREAS)

    def test_filter_by_area(self):
        listings = [
            {"id": 1, "neighborhood": "الروضه"},
            {"id": 2, "neighborhood": "الخالدية أ"},
            {"id": 3, "neighborhood": ""},
            {"id": 4, "location": "الروضة الشمالية"},
        ]
        assert [l["id"] for l in filter_by_area(listings, "الروضة")] == [1, 4]
        assert [l["id"] for l in filter_by_area(listings, "الخالدية")] == [2]
        assert filter_by_area(listings, None) == listings


if __name__ == "__main__":
    pytest.main([__file__])
