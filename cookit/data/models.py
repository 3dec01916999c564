"""
Data models for the Cookit server.

These models define the core entities used throughout the system:
- Recipe: corpus recipes with a typed passthrough bag for presentation fields
- IngredientProfile: what a user holds, dislikes and is allergic to
- ScoredRecipe: ephemeral ranking result
- RecommendationHistory: bounded anti-repetition memory
- TasteProfile: four-letter quiz classification
- Candidate / RecommendedRecipe: curation input and output
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cookit.config import HISTORY_CAPACITY


def normalize_token(value: str) -> str:
    """Lowercase and trim an ingredient label."""
    return value.strip().lower()


def normalize_tokens(values: Optional[Sequence[str]]) -> List[str]:
    """Normalize a list of labels, dropping blanks and duplicates (first seen wins)."""
    tokens = []
    seen = set()
    for value in values or []:
        if not isinstance(value, str):
            continue
        token = normalize_token(value)
        if token and token not in seen:
            seen.add(token)
            tokens.append(token)
    return tokens


def parse_ingredient_field(raw: Optional[str]) -> List[str]:
    """Split a comma-separated ingredient field into lowercase trimmed tokens."""
    if not raw:
        return []
    return [token for token in (normalize_token(part) for part in raw.split(",")) if token]


# Source document keys of the public recipe dataset the corpus was built from
DOCUMENT_NAME_KEYS = ("RCP_NM", "name")
DOCUMENT_INGREDIENT_KEYS = ("RCP_PARTS_DTLS", "ingredients")
DOCUMENT_CATEGORY_KEYS = ("RCP_PAT2", "category")
KNOWN_DOCUMENT_KEYS = frozenset(DOCUMENT_NAME_KEYS + DOCUMENT_INGREDIENT_KEYS + DOCUMENT_CATEGORY_KEYS + ("id",))


def _first_present(doc: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if doc.get(key) is not None:
            return doc[key]
    return None


@dataclass(frozen=True)
class Recipe:
    """Corpus recipe. Read-only for the duration of a request."""

    id: str
    name: str
    raw_ingredients: str
    category: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)  # Images, manual steps, nutrition...

    @property
    def ingredient_tokens(self) -> List[str]:
        """Parsed ingredient tokens, in source order."""
        return parse_ingredient_field(self.raw_ingredients)

    @classmethod
    def from_document(cls, recipe_id: str, doc: Dict[str, Any]) -> "Recipe":
        """
        Build a Recipe from a stored document.

        Known fields are read from either the dataset keys (RCP_NM, RCP_PARTS_DTLS,
        RCP_PAT2) or plain keys (name, ingredients, category). Everything else is
        kept untouched in extras.
        """
        name = _first_present(doc, DOCUMENT_NAME_KEYS)
        raw = _first_present(doc, DOCUMENT_INGREDIENT_KEYS)
        category = _first_present(doc, DOCUMENT_CATEGORY_KEYS)

        if isinstance(raw, list):
            raw = ", ".join(str(item) for item in raw)

        extras = {k: v for k, v in doc.items() if k not in KNOWN_DOCUMENT_KEYS}

        return cls(
            id=str(recipe_id),
            name=str(name or ""),
            raw_ingredients=str(raw or ""),
            category=category,
            extras=extras,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Flatten for JSON responses: known fields plus passthrough extras.

        Known fields are emitted under both the plain and the dataset keys so
        clients reading RCP_NM / RCP_PARTS_DTLS / RCP_PAT2 keep working.
        """
        data = dict(self.extras)
        data.update({
            "id": self.id,
            "name": self.name,
            "ingredients": self.raw_ingredients,
            "category": self.category,
            "RCP_NM": self.name,
            "RCP_PARTS_DTLS": self.raw_ingredients,
            "RCP_PAT2": self.category,
        })
        return data

    def to_document(self) -> Dict[str, Any]:
        """Document form used for storage (plain keys)."""
        doc = dict(self.extras)
        doc.update({
            "name": self.name,
            "ingredients": self.raw_ingredients,
            "category": self.category,
        })
        return doc


@dataclass
class IngredientProfile:
    """A user's ingredient lists. Tokens are normalized on construction."""

    held: List[str] = field(default_factory=list)
    disliked: List[str] = field(default_factory=list)
    allergic: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.held = normalize_tokens(self.held)
        self.disliked = normalize_tokens(self.disliked)
        self.allergic = normalize_tokens(self.allergic)

    @property
    def is_empty(self) -> bool:
        return not self.held

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "ingredients": list(self.held),
            "disliked_ingredients": list(self.disliked),
            "allergic_ingredients": list(self.allergic),
        }


@dataclass(frozen=True)
class ScoredRecipe:
    """Ranking result for one recipe. Recomputed on every request."""

    recipe: Recipe
    match_score: float
    matched_ingredients: Tuple[str, ...] = ()

    @property
    def recipe_id(self) -> str:
        return self.recipe.id


@dataclass(frozen=True)
class HistoryEntry:
    recipe_id: str
    recommended_at: datetime


@dataclass(frozen=True)
class RecommendationHistory:
    """
    Bounded FIFO of previously recommended recipes.

    Length never exceeds capacity; appending past capacity drops the oldest
    entries first. version is the store's optimistic-concurrency counter.
    """

    entries: Tuple[HistoryEntry, ...] = ()
    recommended_at: Optional[datetime] = None
    version: int = 0
    capacity: int = HISTORY_CAPACITY

    @property
    def recipe_ids(self) -> List[str]:
        return [e.recipe_id for e in self.entries]

    @property
    def timestamps(self) -> List[datetime]:
        return [e.recommended_at for e in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, recipe_id: str) -> bool:
        return any(e.recipe_id == recipe_id for e in self.entries)

    def append(self, recipe_ids: Sequence[str], now: datetime) -> "RecommendationHistory":
        """Return a new history with recipe_ids appended at time now, trimmed to capacity."""
        entries = self.entries + tuple(HistoryEntry(rid, now) for rid in recipe_ids)
        excess = len(entries) - self.capacity
        if excess > 0:
            entries = entries[excess:]
        return replace(self, entries=entries, recommended_at=now)

    @classmethod
    def from_lists(
        cls,
        recipe_ids: Sequence[str],
        timestamps: Sequence[datetime],
        recommended_at: Optional[datetime] = None,
        version: int = 0,
    ) -> "RecommendationHistory":
        """Rebuild from the parallel id/timestamp lists the store keeps."""
        if len(recipe_ids) != len(timestamps):
            raise ValueError(
                f"History lists differ in length: {len(recipe_ids)} ids, {len(timestamps)} timestamps"
            )
        entries = tuple(HistoryEntry(str(rid), ts) for rid, ts in zip(recipe_ids, timestamps))
        history = cls(entries=entries, recommended_at=recommended_at, version=version)
        # Stored lists written by older code may exceed capacity
        if len(entries) > history.capacity:
            history = replace(history, entries=entries[-history.capacity:])
        return history


@dataclass(frozen=True)
class TasteProfile:
    """Four-letter taste code (FMBT) plus the per-axis sums it came from."""

    code: str
    scores: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {"fmbt": self.code, "scores": dict(self.scores)}


@dataclass(frozen=True)
class Candidate:
    """Shortlist entry annotated for the external recommender."""

    recipe_id: str
    name: str
    category: Optional[str]
    match_score: float
    matched_ingredients: Tuple[str, ...]
    contains_disliked: bool
    contains_allergic: bool
    previously_recommended: bool

    def to_prompt_dict(self) -> Dict[str, Any]:
        return {
            "id": self.recipe_id,
            "name": self.name,
            "category": self.category,
            "matchScore": round(self.match_score, 4),
            "matchedIngredients": list(self.matched_ingredients),
            "containsDisliked": self.contains_disliked,
            "containsAllergic": self.contains_allergic,
            "isPreviouslyRecommended": self.previously_recommended,
        }


@dataclass(frozen=True)
class Selection:
    """One pick returned by the external recommender."""

    recipe_id: str
    rationale: str


class ReplyStatus(Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class RecommenderReply:
    """Outcome of one recommender round-trip: selections, or a reason it has none."""

    status: ReplyStatus
    selections: Tuple[Selection, ...] = ()

    @classmethod
    def ok(cls, selections: Sequence[Selection]) -> "RecommenderReply":
        return cls(status=ReplyStatus.OK, selections=tuple(selections))

    @classmethod
    def rate_limited(cls) -> "RecommenderReply":
        return cls(status=ReplyStatus.RATE_LIMITED)


class CurationOutcome(Enum):
    SELECTED = "selected"
    RATE_LIMITED = "rate_limited"
    INSUFFICIENT_SELECTIONS = "insufficient_selections"

    @property
    def is_fallback(self) -> bool:
        return self is not CurationOutcome.SELECTED


@dataclass(frozen=True)
class RecommendedRecipe:
    """Final recommendation entry."""

    recipe: Recipe
    match_score: float
    rationale: str
    taste_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.recipe.to_dict()
        data.update({
            "match_score": round(self.match_score, 4),
            "fmbt_info": self.taste_code,
            "recommend_reason": self.rationale,
        })
        return data


@dataclass(frozen=True)
class SavedRecipe:
    """Recipe snapshot a user kept for later."""

    recipe: Recipe
    saved_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = self.recipe.to_dict()
        data["saved_at"] = self.saved_at.isoformat()
        return data
