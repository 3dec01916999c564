"""
String similarity between ingredient names.

Two metrics are blended: character-level edit distance, which tolerates typos
and inflections ("tomato" / "tomatoes"), and whitespace-token overlap, which
rewards shared words in multi-word names ("soy sauce" / "dark soy sauce").
"""

from rapidfuzz.distance import Levenshtein

DEFAULT_ALPHA = 0.5


def edit_distance_similarity(a: str, b: str) -> float:
    """
    1 - levenshtein(a, b) / max(len(a), len(b)).

    Two empty strings are identical and score 1.0.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def _tokens(value: str) -> set:
    return set(value.lower().split())


def token_overlap_similarity(a: str, b: str) -> float:
    """Jaccard index of lowercase whitespace tokens; 0.0 when both are empty."""
    tokens_a = _tokens(a)
    tokens_b = _tokens(b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def hybrid_similarity(a: str, b: str, alpha: float = DEFAULT_ALPHA) -> float:
    """
    Blend of token overlap (weight alpha) and edit distance (weight 1 - alpha).

    Args:
        a: First ingredient name
        b: Second ingredient name
        alpha: Token-overlap weight in [0, 1]

    Returns:
        Similarity in [0, 1]
    """
    if not 0.0 <= alpha <= 1.0:
        raise ValueError(f"alpha must be within [0, 1], got {alpha}")
    return alpha * token_overlap_similarity(a, b) + (1 - alpha) * edit_distance_similarity(a, b)
