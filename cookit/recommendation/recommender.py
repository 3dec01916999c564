"""
External recipe recommender backed by an LLM.

Builds the selection prompt from annotated candidates and the user's taste
profile, makes one request, and parses the picks. Rate limiting comes back as
a reply status so the curator can fall back; every other failure is raised.
"""

import json
import time
import logging
from typing import List, Optional, Protocol, Sequence

from cookit.config import DEFAULT_RECOMMENDER_MODEL, RECOMMENDATION_COUNT
from cookit.data.models import Candidate, IngredientProfile, RecommenderReply, Selection
from cookit.errors import ExternalServiceError, RateLimitedError
from cookit.llm_provider import LLMProvider
from cookit.taste_profile import LETTER_MEANINGS

logger = logging.getLogger(__name__)

SELECTION_CRITERIA = (
    "Never pick a recipe that contains an allergic ingredient (containsAllergic: true).",
    "Avoid recipes with disliked ingredients (containsDisliked: true) where possible.",
    "Prefer a high ingredient match score (matchScore).",
    "Take the user's taste profile into account.",
    "Prefer variety across categories.",
    "Avoid previously recommended recipes (isPreviouslyRecommended: true) where possible.",
)


class Recommender(Protocol):
    """Anything that can pick recipes from annotated candidates."""

    def recommend(
        self,
        candidates: Sequence[Candidate],
        profile: IngredientProfile,
        taste_code: Optional[str],
    ) -> RecommenderReply:
        ...


def build_system_prompt(count: int = RECOMMENDATION_COUNT) -> str:
    """System prompt listing the selection criteria in priority order."""
    rules = "\n".join(f"{i}. {rule}" for i, rule in enumerate(SELECTION_CRITERIA, start=1))
    return (
        f"You pick the best {count} recipes for a user from a list of candidates.\n"
        f"Apply these criteria in order:\n{rules}"
    )


def build_user_prompt(
    candidates: Sequence[Candidate],
    profile: IngredientProfile,
    taste_code: Optional[str],
    count: int = RECOMMENDATION_COUNT,
) -> str:
    """User prompt with preferences, taste legend and the candidate list as JSON."""
    legend = "\n".join(
        f"- {letter} ({name}): {meaning}"
        for axis in LETTER_MEANINGS
        for letter, name, meaning in axis
    )
    candidate_json = json.dumps([c.to_prompt_dict() for c in candidates], ensure_ascii=False, indent=1)
    example = ",\n".join(
        '    {"id": "<recipe id>", "rationale": "<why this recipe>"}' for _ in range(count)
    )

    return f"""User preferences:
- Ingredients on hand: {", ".join(profile.held) or "(none)"}
- Disliked ingredients: {", ".join(profile.disliked) or "(none)"}
- Allergic ingredients: {", ".join(profile.allergic) or "(none)"}
- Taste profile: {taste_code or "unknown"}

Taste profile letters:
{legend}

Candidates:
{candidate_json}

Return ONLY a JSON object in exactly this format, with {count} entries:
{{
  "selections": [
{example}
  ]
}}"""


def parse_selections(content: str) -> List[Selection]:
    """
    Parse the model's reply into selections.

    Tolerates markdown code fences and prose around the JSON object.

    Raises:
        ExternalServiceError: The reply is not the expected JSON shape
    """
    content = content.strip()

    # Remove markdown code blocks if present
    if content.startswith("```"):
        parts = content.split("```")
        content = parts[1] if len(parts) > 1 else ""
        if content.startswith("json"):
            content = content[4:]
    content = content.strip()

    # Extract JSON object if the model added explanation text
    if not content.startswith("{"):
        start_idx = content.find("{")
        if start_idx != -1:
            content = content[start_idx:]
    if not content.endswith("}"):
        end_idx = content.rfind("}")
        if end_idx != -1:
            content = content[:end_idx + 1]

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"Recommender reply is not valid JSON: {e}") from e

    raw_selections = data.get("selections") if isinstance(data, dict) else None
    if not isinstance(raw_selections, list):
        raise ExternalServiceError("Recommender reply has no 'selections' list")

    selections = []
    for item in raw_selections:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            logger.warning(f"[RECOMMENDER] Skipping malformed selection: {item!r}")
            continue
        selections.append(Selection(
            recipe_id=str(item["id"]),
            rationale=str(item.get("rationale") or item.get("reason") or ""),
        ))
    return selections


class LLMRecommender:
    """Recommender that asks an LLM to choose among candidates."""

    def __init__(
        self,
        provider: LLMProvider,
        model: str = DEFAULT_RECOMMENDER_MODEL,
        max_tokens: int = 500,
        count: int = RECOMMENDATION_COUNT,
    ):
        self.provider = provider
        self.model = model
        self.max_tokens = max_tokens
        self.count = count

    def recommend(
        self,
        candidates: Sequence[Candidate],
        profile: IngredientProfile,
        taste_code: Optional[str],
    ) -> RecommenderReply:
        """
        Ask the model for its picks.

        Returns:
            RecommenderReply with selections, or with RATE_LIMITED status

        Raises:
            ExternalServiceError: Network failure or unusable reply
        """
        prompt = build_user_prompt(candidates, profile, taste_code, self.count)
        logger.info(f"[RECOMMENDER] Model: {self.model}, candidates: {len(candidates)}")

        try:
            llm_start = time.time()
            response = self.provider.create_message(
                model=self.model,
                max_tokens=self.max_tokens,
                system=build_system_prompt(self.count),
                messages=[{"role": "user", "content": prompt}],
            )
            logger.info(f"[RECOMMENDER] LLM call completed in {time.time() - llm_start:.3f}s")
        except RateLimitedError:
            logger.warning("[RECOMMENDER] Rate limited, reporting for fallback")
            return RecommenderReply.rate_limited()

        try:
            content = response.content[0].text
        except (AttributeError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"Recommender reply has no text content: {e}") from e

        selections = parse_selections(content)
        logger.info(f"[RECOMMENDER] Selections: {[s.recipe_id for s in selections]}")
        return RecommenderReply.ok(selections)
