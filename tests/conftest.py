"""
Pytest configuration and shared fixtures.

Fixtures are reusable test setup that can be injected into tests.
"""

import json
import pytest
import tempfile
import shutil
from datetime import datetime
from typing import List, Optional

from cookit.data.database import DatabaseInterface
from cookit.data.models import IngredientProfile, Recipe
from cookit.errors import RateLimitedError
from cookit.llm_provider import LLMProvider, MockResponse, MockTextBlock


@pytest.fixture
def temp_db_dir():
    """
    Create a temporary database directory for testing.

    This fixture is automatically cleaned up after each test.
    """
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def db(temp_db_dir):
    """
    Create a fresh DatabaseInterface for each test.

    Usage in tests:
        def test_something(db):
            db.update_ingredients("user-1", held=["egg"])
    """
    return DatabaseInterface(db_dir=temp_db_dir)


@pytest.fixture
def egg_rice_recipe():
    """Recipe that fully matches the sample profile."""
    return Recipe(
        id="R1",
        name="Egg Fried Rice",
        raw_ingredients="egg, rice, salt",
        category="Rice",
        extras={"ATT_FILE_NO_MAIN": "http://example.com/r1.jpg", "MANUAL01": "Beat the eggs."},
    )


@pytest.fixture
def beef_pepper_recipe():
    """Recipe with nothing in common with the sample profile."""
    return Recipe(
        id="R2",
        name="Pepper Steak",
        raw_ingredients="beef, pepper",
        category="Main",
    )


@pytest.fixture
def sample_recipes(egg_rice_recipe, beef_pepper_recipe):
    """Small corpus: the two scenario recipes plus filler with varying overlap."""
    fillers = [
        Recipe(id="R3", name="Rice Porridge", raw_ingredients="rice, water, salt", category="Rice"),
        Recipe(id="R4", name="Steamed Egg", raw_ingredients="egg, water, scallion", category="Side"),
        Recipe(id="R5", name="Kimchi Stew", raw_ingredients="kimchi, pork, tofu", category="Soup"),
        Recipe(id="R6", name="Omelette Rice", raw_ingredients="egg, rice, ketchup, onion", category="Rice"),
        Recipe(id="R7", name="Peanut Noodles", raw_ingredients="noodle, peanut butter, soy sauce", category="Noodle"),
        Recipe(id="R8", name="Tuna Rice Ball", raw_ingredients="rice, tuna, seaweed", category="Rice"),
    ]
    return [egg_rice_recipe, beef_pepper_recipe] + fillers


@pytest.fixture
def seeded_db(db, sample_recipes):
    """Database with the sample corpus loaded."""
    db.add_recipes(sample_recipes)
    return db


@pytest.fixture
def sample_profile():
    """Sample ingredient profile for testing."""
    return IngredientProfile(
        held=["Egg", " rice "],
        disliked=["onion"],
        allergic=["peanut"],
    )


@pytest.fixture
def fixed_now():
    return datetime(2025, 3, 14, 12, 0, 0)


class ScriptedLLMProvider(LLMProvider):
    """
    LLM provider that replays canned replies.

    Each entry of replies is either reply text or an exception instance to
    raise. The last entry repeats once the script runs out.
    """

    def __init__(self, replies: List):
        self.replies = list(replies)
        self.calls = []

    def create_message(self, model, max_tokens, messages, system=None, **kwargs):
        self.calls.append({"model": model, "messages": messages, "system": system})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return MockResponse(content=[MockTextBlock(text=reply)], model=model)

    @property
    def is_null(self) -> bool:
        return False


def selections_reply(ids: List[str], rationale: Optional[str] = None) -> str:
    """Build a recommender reply selecting the given IDs."""
    return json.dumps({
        "selections": [{"id": rid, "rationale": rationale or f"Pick {rid}"} for rid in ids]
    })


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedLLMProvider instances."""
    def _make(*replies):
        return ScriptedLLMProvider(list(replies))
    return _make


@pytest.fixture
def rate_limited_provider():
    return ScriptedLLMProvider([RateLimitedError("429 from recommender")])


@pytest.fixture
def make_reply():
    """Factory for recommender reply text: make_reply(["R1", "R3"])."""
    return selections_reply
