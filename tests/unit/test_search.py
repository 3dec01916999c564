"""
Unit tests for smart search.
"""

import pytest

from cookit.errors import ValidationError
from cookit.search import NAME_MATCH_SCORE, smart_search, split_query


class ListCorpus:
    def __init__(self, recipes):
        self.recipes = recipes

    def get_all_recipes(self):
        return list(self.recipes)


KNOWN = {"egg", "rice", "kimchi", "Water"}


class TestSplitQuery:

    def test_separates_known_ingredients(self):
        ingredients, remaining = split_query("egg fried rice", KNOWN)

        assert ingredients == ["egg", "rice"]
        assert remaining == "fried"

    def test_known_names_ignore_case(self):
        ingredients, remaining = split_query("WATER Stew", KNOWN)

        assert ingredients == ["WATER"]
        assert remaining == "Stew"


class TestSmartSearch:
    """Test smart_search()."""

    def test_ingredient_counts(self, sample_recipes):
        result = smart_search("egg rice", ListCorpus(sample_recipes), KNOWN)

        counts = {hit.recipe.id: hit.ingredient_match_count for hit in result.hits}
        assert counts["R1"] == 2
        assert counts["R4"] == 1
        assert "R2" not in counts
        assert result.detected_ingredients == ["egg", "rice"]
        assert result.search_terms == []

    def test_name_match_outranks_ingredient_matches(self, sample_recipes):
        """'Porridge' in the name scores +100, above any ingredient count."""
        result = smart_search("egg rice porridge", ListCorpus(sample_recipes), KNOWN)

        top = result.hits[0]
        assert top.recipe.id == "R3"
        assert top.name_match_score == NAME_MATCH_SCORE
        assert top.total_score == NAME_MATCH_SCORE + 1
        assert result.search_terms == ["porridge"]

    def test_sorted_by_total_score(self, sample_recipes):
        result = smart_search("egg rice", ListCorpus(sample_recipes), KNOWN)

        totals = [hit.total_score for hit in result.hits]
        assert totals == sorted(totals, reverse=True)

    def test_multi_word_name_query(self, sample_recipes):
        result = smart_search("Tuna Rice Ball", ListCorpus(sample_recipes), {"tuna"})

        # "Rice Ball" is not a known ingredient, so it is matched against names
        assert [hit.recipe.id for hit in result.hits] == ["R8"]

    def test_no_matches(self, sample_recipes):
        result = smart_search("lasagna", ListCorpus(sample_recipes), KNOWN)

        assert result.hits == []
        assert result.to_dict()["recipes"] == []

    def test_response_shape(self, sample_recipes):
        data = smart_search("kimchi", ListCorpus(sample_recipes), KNOWN).to_dict()

        assert data["success"] is True
        assert data["searchInfo"] == {"detectedIngredients": ["kimchi"], "searchTerms": []}
        assert data["recipes"][0]["id"] == "R5"
        assert data["recipes"][0]["totalMatchScore"] == 1

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_empty_query(self, sample_recipes, query):
        with pytest.raises(ValidationError):
            smart_search(query, ListCorpus(sample_recipes), KNOWN)
