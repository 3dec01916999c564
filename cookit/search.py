"""
Keyword search over the recipe corpus.

Query words that are known ingredient names are counted against each recipe's
ingredient field; the remaining words, joined back together, are looked up in
the recipe name. A name hit outweighs any number of ingredient hits.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from cookit.data.models import Recipe, normalize_token
from cookit.errors import ValidationError
from cookit.matching.ranker import RecipeCorpus

logger = logging.getLogger(__name__)

NAME_MATCH_SCORE = 100


@dataclass(frozen=True)
class SearchHit:
    recipe: Recipe
    ingredient_match_count: int
    name_match_score: int

    @property
    def total_score(self) -> int:
        return self.ingredient_match_count + self.name_match_score

    def to_dict(self) -> Dict[str, Any]:
        data = self.recipe.to_dict()
        data.update({
            "ingredientMatchCount": self.ingredient_match_count,
            "nameMatchScore": self.name_match_score,
            "totalMatchScore": self.total_score,
        })
        return data


@dataclass(frozen=True)
class SearchResult:
    detected_ingredients: List[str]
    search_terms: List[str]
    hits: List[SearchHit]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "searchInfo": {
                "detectedIngredients": list(self.detected_ingredients),
                "searchTerms": list(self.search_terms),
            },
            "recipes": [hit.to_dict() for hit in self.hits],
        }


def split_query(query: str, known_names: Iterable[str]):
    """
    Split a query into (ingredient terms, remaining name query).

    Matching against known names ignores case.
    """
    known = {normalize_token(name) for name in known_names if name}
    ingredients = []
    general = []
    for term in query.split():
        if normalize_token(term) in known:
            ingredients.append(term)
        else:
            general.append(term)
    return ingredients, " ".join(general)


def smart_search(query: str, corpus: RecipeCorpus, known_names: Iterable[str]) -> SearchResult:
    """
    Search recipes by ingredient words and name.

    Args:
        query: Free-text search query
        corpus: Source of recipes
        known_names: Ingredient display names used to recognise ingredient words

    Returns:
        SearchResult with hits sorted by total score, highest first

    Raises:
        ValidationError: The query is empty
    """
    if not query or not query.strip():
        raise ValidationError("Empty search query", public_message="A search query is required.")

    ingredients, remaining = split_query(query.strip(), known_names)
    lowered_ingredients = [normalize_token(term) for term in ingredients]
    lowered_remaining = remaining.lower()
    logger.info(f"[SEARCH] ingredients={ingredients} name_query='{remaining}'")

    hits = []
    for recipe in corpus.get_all_recipes():
        field = recipe.raw_ingredients.lower()
        count = sum(1 for term in lowered_ingredients if term in field)
        name_score = NAME_MATCH_SCORE if lowered_remaining and lowered_remaining in recipe.name.lower() else 0
        if count or name_score:
            hits.append(SearchHit(recipe, count, name_score))

    # Stable: ties keep corpus order
    hits.sort(key=lambda hit: hit.total_score, reverse=True)

    return SearchResult(
        detected_ingredients=ingredients,
        search_terms=[remaining] if remaining else [],
        hits=hits,
    )
