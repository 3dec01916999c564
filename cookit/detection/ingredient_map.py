"""
Detector class name -> display ingredient name lookup.

Built once at startup (from the database or a CSV export) and read-only
afterwards.
"""

import csv
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

# Header names accepted for the two CSV columns
CLASS_COLUMNS = ("class_name", "english")
DISPLAY_COLUMNS = ("display_name", "ingredient", "식재료")


class IngredientMap:
    """Immutable mapping from detector classes to ingredient names."""

    def __init__(self, mapping: Mapping[str, str]):
        cleaned: Dict[str, str] = {}
        for class_name, display_name in mapping.items():
            if class_name and display_name:
                cleaned[class_name.strip()] = display_name.strip()
        self._mapping = MappingProxyType(cleaned)
        self._known_names = frozenset(cleaned.values())

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, class_name: str) -> bool:
        return class_name in self._mapping

    @property
    def mapping(self) -> Mapping[str, str]:
        return self._mapping

    @property
    def known_names(self) -> FrozenSet[str]:
        """Every display name; used to recognise ingredient words in search queries."""
        return self._known_names

    def display_name(self, class_name: str) -> Optional[str]:
        return self._mapping.get(class_name)

    def resolve(self, class_names: Iterable[str]) -> List[str]:
        """Map detector classes to display names, dropping unknowns and duplicates."""
        names = []
        seen = set()
        for class_name in class_names:
            name = self._mapping.get(class_name)
            if name is None:
                logger.debug(f"[DETECT] Unmapped class: {class_name}")
                continue
            if name not in seen:
                seen.add(name)
                names.append(name)
        return names

    @classmethod
    def from_database(cls, db) -> "IngredientMap":
        """Load from the ingredient_map table."""
        ingredient_map = cls(db.load_ingredient_map())
        logger.info(f"Loaded ingredient map from database: {len(ingredient_map)} entries")
        return ingredient_map

    @classmethod
    def from_csv(cls, path: Path) -> "IngredientMap":
        """
        Load from a CSV file with a class column and a display-name column.

        Raises:
            ValueError: The header has no recognisable columns
        """
        path = Path(path)
        with path.open(newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            fields = reader.fieldnames or []
            class_col = next((c for c in CLASS_COLUMNS if c in fields), None)
            display_col = next((c for c in DISPLAY_COLUMNS if c in fields), None)
            if not class_col or not display_col:
                raise ValueError(f"{path} needs one of {CLASS_COLUMNS} and one of {DISPLAY_COLUMNS} columns")

            mapping = {row[class_col]: row[display_col] for row in reader}

        ingredient_map = cls(mapping)
        logger.info(f"Loaded ingredient map from {path}: {len(ingredient_map)} entries")
        return ingredient_map
