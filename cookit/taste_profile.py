"""
Taste-profile (FMBT) classification.

A short quiz is answered along four independent axes. Each axis's answers are
summed; a sum at or above the threshold picks the axis's first letter,
otherwise its second. The four letters form the profile code, e.g. "EFSB".
"""

import logging
from numbers import Real
from typing import Dict, Optional, Sequence

from cookit.config import TASTE_THRESHOLD
from cookit.data.models import TasteProfile
from cookit.errors import ValidationError

logger = logging.getLogger(__name__)

# (score key, high letter, low letter) per axis, in code order
AXES = (
    ("E_C", "E", "C"),
    ("F_S", "F", "S"),
    ("S_G", "S", "G"),
    ("B_M", "B", "M"),
)

# (letter, name, meaning) pairs per axis; used for prompts and descriptions
LETTER_MEANINGS = (
    (("E", "Exploratory", "enjoys trying new foods"),
     ("C", "Conservative", "prefers familiar foods")),
    (("F", "Fast", "eats quickly"),
     ("S", "Slow", "takes time over meals")),
    (("S", "Solo", "prefers eating alone"),
     ("G", "Group", "prefers eating with others")),
    (("B", "Bold", "likes strong, spicy flavours"),
     ("M", "Mild", "likes mild, healthy flavours")),
)


def _axis_sum(responses: Optional[Sequence], axis_key: str) -> int:
    if responses is None:
        return 0
    total = 0
    for answer in responses:
        # bool is a Real subclass but never a valid quiz answer
        if isinstance(answer, bool) or not isinstance(answer, Real):
            raise ValidationError(
                f"Non-numeric answer {answer!r} on axis {axis_key}",
                public_message="Quiz answers must be numbers.",
            )
        total += answer
    return int(total)


def classify(axis_responses: Sequence[Optional[Sequence]], threshold: int = TASTE_THRESHOLD) -> TasteProfile:
    """
    Classify four axes of quiz answers into a taste-profile code.

    Args:
        axis_responses: Exactly four answer sequences, in axis order
            (a missing sequence counts as no answers)
        threshold: Inclusive lower bound for the first letter of each axis

    Returns:
        TasteProfile with the code and the per-axis sums

    Raises:
        ValidationError: Not four axes, or a non-numeric answer
    """
    if axis_responses is None or len(axis_responses) != len(AXES):
        raise ValidationError(
            f"Expected {len(AXES)} axes of answers, got {0 if axis_responses is None else len(axis_responses)}",
            public_message="Quiz responses are incomplete.",
        )

    scores: Dict[str, int] = {}
    letters = []
    for (key, high, low), responses in zip(AXES, axis_responses):
        total = _axis_sum(responses, key)
        scores[key] = total
        letters.append(high if total >= threshold else low)

    profile = TasteProfile(code="".join(letters), scores=scores)
    logger.debug(f"Classified taste profile {profile.code} from scores {scores}")
    return profile


def describe(code: str) -> str:
    """Compose a readable description for a taste code from its letters."""
    if len(code) != len(LETTER_MEANINGS):
        raise ValidationError(f"Invalid taste code {code!r}")

    parts = []
    for letter, axis in zip(code, LETTER_MEANINGS):
        match = next(((name, meaning) for l, name, meaning in axis if l == letter), None)
        if match is None:
            raise ValidationError(f"Invalid taste code {code!r}")
        parts.append(f"{match[0]} ({match[1]})")
    return ", ".join(parts)
