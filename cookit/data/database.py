"""
Database interface for the Cookit server.

Manages two SQLite databases:
- recipes.db: Recipe corpus documents (read-only at request time)
- user_data.db: Ingredient profiles, quiz results, recommendation history,
  saved recipes, the detector ingredient map and taste descriptions
"""

import sqlite3
import json
import logging
from typing import List, Optional, Dict, Any, Iterable, Sequence
from datetime import datetime
from pathlib import Path

from .models import IngredientProfile, Recipe, RecommendationHistory, SavedRecipe, TasteProfile, normalize_tokens

logger = logging.getLogger(__name__)


def _loads(value: Optional[str], default):
    return json.loads(value) if value else default


class DatabaseInterface:
    """Interface for interacting with SQLite databases."""

    def __init__(self, db_dir: str = "data"):
        """
        Initialize database interface.

        Args:
            db_dir: Directory containing database files
        """
        self.db_dir = Path(db_dir)
        self.db_dir.mkdir(parents=True, exist_ok=True)

        self.recipes_db = self.db_dir / "recipes.db"
        self.user_db = self.db_dir / "user_data.db"

        self._init_recipes_database()
        self._init_user_database()

    def _init_recipes_database(self):
        """Initialize recipe corpus schema."""
        with sqlite3.connect(self.recipes_db) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS recipes (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    document_json TEXT NOT NULL
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_recipes_position ON recipes(position)")
            conn.commit()

    def _init_user_database(self):
        """Initialize user data database schema."""
        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()

            # One row per user; list fields are JSON arrays
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,

                    ingredients TEXT,
                    disliked_ingredients TEXT,
                    allergic_ingredients TEXT,

                    quiz_responses TEXT,
                    fmbt TEXT,
                    fmbt_scores TEXT,

                    recommended_recipes TEXT,
                    recommended_recipe_times TEXT,
                    recommended_at TEXT,
                    history_version INTEGER DEFAULT 0,

                    saved_recipes TEXT,

                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Detector class name -> display ingredient name
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS ingredient_map (
                    class_name TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS taste_descriptions (
                    code TEXT PRIMARY KEY,
                    description TEXT NOT NULL
                )
            """)

            conn.commit()

    # ==================== Recipe Corpus ====================

    def add_recipes(self, recipes: Iterable[Recipe]) -> int:
        """
        Insert or replace recipes, appending new ones to the end of corpus order.

        Args:
            recipes: Recipes to store

        Returns:
            Number of recipes written
        """
        count = 0
        with sqlite3.connect(self.recipes_db) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COALESCE(MAX(position), -1) FROM recipes")
            next_position = cursor.fetchone()[0] + 1

            for recipe in recipes:
                cursor.execute("SELECT position FROM recipes WHERE id = ?", (recipe.id,))
                row = cursor.fetchone()
                if row:
                    position = row[0]
                else:
                    position = next_position
                    next_position += 1

                cursor.execute(
                    "INSERT OR REPLACE INTO recipes (id, position, document_json) VALUES (?, ?, ?)",
                    (recipe.id, position, json.dumps(recipe.to_document(), ensure_ascii=False)),
                )
                count += 1
            conn.commit()

        logger.info(f"Stored {count} recipes")
        return count

    def get_all_recipes(self) -> List[Recipe]:
        """
        Get every recipe in corpus order.

        Rows that fail to parse are skipped with a warning.
        """
        with sqlite3.connect(self.recipes_db) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute("SELECT id, document_json FROM recipes ORDER BY position")
            rows = cursor.fetchall()

        recipes = []
        for row in rows:
            try:
                recipes.append(self._row_to_recipe(row))
            except (json.JSONDecodeError, TypeError) as e:
                logger.warning(f"Error parsing recipe {row['id']}: {e}")
        return recipes

    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        """
        Get a specific recipe by ID.

        Args:
            recipe_id: Recipe ID

        Returns:
            Recipe object or None if not found
        """
        with sqlite3.connect(self.recipes_db) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute("SELECT id, document_json FROM recipes WHERE id = ?", (str(recipe_id),))
            row = cursor.fetchone()

            if row:
                return self._row_to_recipe(row)
            return None

    def _row_to_recipe(self, row: sqlite3.Row) -> Recipe:
        """Convert database row to Recipe object."""
        return Recipe.from_document(row["id"], json.loads(row["document_json"]))

    # ==================== Users & Ingredient Profiles ====================

    def ensure_user(self, user_id: str) -> bool:
        """
        Create an empty user row if none exists.

        Returns:
            True if the user was created, False if it already existed
        """
        now = datetime.now().isoformat()
        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR IGNORE INTO users
                (user_id, ingredients, disliked_ingredients, allergic_ingredients, created_at, updated_at)
                VALUES (?, '[]', '[]', '[]', ?, ?)
                """,
                (user_id, now, now),
            )
            created = cursor.rowcount > 0
            conn.commit()

        if created:
            logger.info(f"Created user {user_id}")
        return created

    def user_exists(self, user_id: str) -> bool:
        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM users WHERE user_id = ?", (user_id,))
            return cursor.fetchone() is not None

    def get_profile(self, user_id: str) -> IngredientProfile:
        """
        Get a user's ingredient lists.

        Returns:
            IngredientProfile (empty when the user does not exist)
        """
        with sqlite3.connect(self.user_db) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT ingredients, disliked_ingredients, allergic_ingredients
                FROM users WHERE user_id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()

        if not row:
            return IngredientProfile()

        return IngredientProfile(
            held=_loads(row["ingredients"], []),
            disliked=_loads(row["disliked_ingredients"], []),
            allergic=_loads(row["allergic_ingredients"], []),
        )

    def update_ingredients(
        self,
        user_id: str,
        held: Optional[Sequence[str]] = None,
        disliked: Optional[Sequence[str]] = None,
        allergic: Optional[Sequence[str]] = None,
    ) -> IngredientProfile:
        """
        Replace any of the user's ingredient lists. None leaves a list unchanged.

        Returns:
            The updated IngredientProfile
        """
        self.ensure_user(user_id)

        updates = {}
        if held is not None:
            updates["ingredients"] = normalize_tokens(held)
        if disliked is not None:
            updates["disliked_ingredients"] = normalize_tokens(disliked)
        if allergic is not None:
            updates["allergic_ingredients"] = normalize_tokens(allergic)

        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            params = [json.dumps(value, ensure_ascii=False) for value in updates.values()]
            params.extend([datetime.now().isoformat(), user_id])

            with sqlite3.connect(self.user_db) as conn:
                conn.execute(f"UPDATE users SET {assignments}, updated_at = ? WHERE user_id = ?", params)
                conn.commit()
            logger.info(f"Updated {', '.join(updates)} for user {user_id}")

        return self.get_profile(user_id)

    # ==================== Recommendation History ====================

    def get_history(self, user_id: str) -> RecommendationHistory:
        """Get a user's recommendation history (empty when none)."""
        with sqlite3.connect(self.user_db) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT recommended_recipes, recommended_recipe_times, recommended_at, history_version
                FROM users WHERE user_id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()

        if not row:
            return RecommendationHistory()

        ids = _loads(row["recommended_recipes"], [])
        times = [datetime.fromisoformat(t) for t in _loads(row["recommended_recipe_times"], [])]
        recommended_at = datetime.fromisoformat(row["recommended_at"]) if row["recommended_at"] else None
        return RecommendationHistory.from_lists(ids, times, recommended_at, version=row["history_version"] or 0)

    def set_history(
        self,
        user_id: str,
        recipe_ids: Sequence[str],
        timestamps: Sequence[datetime],
        recommended_at: datetime,
        expected_version: Optional[int] = None,
    ) -> bool:
        """
        Write the history lists and marker in one statement.

        Args:
            user_id: User ID
            recipe_ids: Recommended recipe IDs, oldest first
            timestamps: Matching recommendation times
            recommended_at: Time of the latest recommendation
            expected_version: Only write if the stored version still matches
                (None writes unconditionally)

        Returns:
            True if written, False if the stored version had moved on
        """
        if len(recipe_ids) != len(timestamps):
            raise ValueError("recipe_ids and timestamps must have the same length")

        self.ensure_user(user_id)

        sql = """
            UPDATE users SET
                recommended_recipes = ?,
                recommended_recipe_times = ?,
                recommended_at = ?,
                history_version = history_version + 1,
                updated_at = ?
            WHERE user_id = ?
        """
        params = [
            json.dumps(list(recipe_ids)),
            json.dumps([t.isoformat() for t in timestamps]),
            recommended_at.isoformat(),
            datetime.now().isoformat(),
            user_id,
        ]
        if expected_version is not None:
            sql += " AND history_version = ?"
            params.append(expected_version)

        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            written = cursor.rowcount > 0
            conn.commit()

        if not written:
            logger.warning(f"[HISTORY] Version conflict for user {user_id} (expected {expected_version})")
        return written

    # ==================== Taste Profile ====================

    def get_quiz_responses(self, user_id: str) -> Optional[List[List[float]]]:
        """
        Get the four axes of quiz answers.

        Returns:
            List of four answer lists, or None if the user does not exist
        """
        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT quiz_responses FROM users WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()

        if not row:
            return None
        responses = _loads(row[0], [])
        # Pad to four axes; unanswered axes count as empty
        return (responses + [[] for _ in range(4)])[:4]

    def save_quiz_responses(self, user_id: str, responses: Sequence[Sequence[float]]):
        """Store quiz answers (one list per axis)."""
        self.ensure_user(user_id)
        with sqlite3.connect(self.user_db) as conn:
            conn.execute(
                "UPDATE users SET quiz_responses = ?, updated_at = ? WHERE user_id = ?",
                (json.dumps([list(axis or []) for axis in responses]), datetime.now().isoformat(), user_id),
            )
            conn.commit()

    def save_taste_profile(self, user_id: str, profile: TasteProfile):
        """Persist a computed taste code and its scores."""
        self.ensure_user(user_id)
        with sqlite3.connect(self.user_db) as conn:
            conn.execute(
                "UPDATE users SET fmbt = ?, fmbt_scores = ?, updated_at = ? WHERE user_id = ?",
                (profile.code, json.dumps(profile.scores), datetime.now().isoformat(), user_id),
            )
            conn.commit()
        logger.info(f"Saved taste profile {profile.code} for user {user_id}")

    def get_taste_profile(self, user_id: str) -> Optional[TasteProfile]:
        with sqlite3.connect(self.user_db) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute("SELECT fmbt, fmbt_scores FROM users WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()

        if not row or not row["fmbt"]:
            return None
        return TasteProfile(code=row["fmbt"], scores=_loads(row["fmbt_scores"], {}))

    def get_taste_description(self, code: str) -> Optional[str]:
        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT description FROM taste_descriptions WHERE code = ?", (code,))
            row = cursor.fetchone()
            return row[0] if row else None

    def set_taste_description(self, code: str, description: str):
        with sqlite3.connect(self.user_db) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO taste_descriptions (code, description) VALUES (?, ?)",
                (code, description),
            )
            conn.commit()

    # ==================== Ingredient Map ====================

    def save_ingredient_map(self, mapping: Dict[str, str]) -> int:
        """Insert or replace detector class -> display name rows."""
        with sqlite3.connect(self.user_db) as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO ingredient_map (class_name, display_name) VALUES (?, ?)",
                [(k, v) for k, v in mapping.items() if k and v],
            )
            conn.commit()
        logger.info(f"Stored {len(mapping)} ingredient map entries")
        return len(mapping)

    def load_ingredient_map(self) -> Dict[str, str]:
        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT class_name, display_name FROM ingredient_map")
            return {class_name: display_name for class_name, display_name in cursor.fetchall()}

    # ==================== Saved Recipes ====================

    def _read_saved(self, cursor: sqlite3.Cursor, user_id: str) -> Optional[List[Dict[str, Any]]]:
        cursor.execute("SELECT saved_recipes FROM users WHERE user_id = ?", (user_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return _loads(row[0], [])

    def _write_saved(self, cursor: sqlite3.Cursor, user_id: str, saved: List[Dict[str, Any]]):
        cursor.execute(
            "UPDATE users SET saved_recipes = ?, updated_at = ? WHERE user_id = ?",
            (json.dumps(saved, ensure_ascii=False), datetime.now().isoformat(), user_id),
        )

    @staticmethod
    def _newest_first(saved: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        # Stable sort keeps insertion order among equal timestamps, so reverse first
        return sorted(reversed(saved), key=lambda entry: datetime.fromisoformat(entry["saved_at"]), reverse=True)

    def save_recipe_for_user(self, user_id: str, recipe: Recipe) -> bool:
        """
        Add a recipe snapshot to the user's saved list.

        Returns:
            True if saved, False if the recipe was already saved
        """
        self.ensure_user(user_id)
        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()
            # Write lock before reading so concurrent saves cannot drop each other's entry
            cursor.execute("BEGIN IMMEDIATE")
            saved = self._read_saved(cursor, user_id) or []

            if any(entry["id"] == recipe.id for entry in saved):
                conn.rollback()
                return False

            saved.append({
                "id": recipe.id,
                "document": recipe.to_document(),
                "saved_at": datetime.now().isoformat(),
            })
            self._write_saved(cursor, user_id, saved)
            conn.commit()

        logger.info(f"User {user_id} saved recipe {recipe.id}")
        return True

    def get_saved_recipes(self, user_id: str) -> Optional[List[SavedRecipe]]:
        """
        Get saved recipes, newest first.

        Returns:
            List of SavedRecipe, or None if the user does not exist
        """
        with sqlite3.connect(self.user_db) as conn:
            saved = self._read_saved(conn.cursor(), user_id)

        if saved is None:
            return None

        return [
            SavedRecipe(
                recipe=Recipe.from_document(entry["id"], entry["document"]),
                saved_at=datetime.fromisoformat(entry["saved_at"]),
            )
            for entry in self._newest_first(saved)
        ]

    def delete_saved_recipe(self, user_id: str, index: int) -> Optional[bool]:
        """
        Delete the saved recipe at a position of the newest-first listing.

        The lookup and the write run in one IMMEDIATE transaction, so two
        concurrent deletes of the same index remove two different entries.

        Returns:
            True if deleted, False if index is out of range, None if the user does not exist
        """
        with sqlite3.connect(self.user_db) as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            saved = self._read_saved(cursor, user_id)
            if saved is None or index < 0 or index >= len(saved):
                conn.rollback()
                return None if saved is None else False

            target_id = self._newest_first(saved)[index]["id"]
            self._write_saved(cursor, user_id, [entry for entry in saved if entry["id"] != target_id])
            conn.commit()

        logger.info(f"User {user_id} removed saved recipe {target_id}")
        return True
