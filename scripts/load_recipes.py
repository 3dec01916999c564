#!/usr/bin/env python3
"""
Load the recipe corpus, detector ingredient map and taste descriptions into
the Cookit SQLite databases.

The corpus may be a JSON export (a list of documents, or an object keyed by
recipe ID) or a CSV file with one document per row. Documents keep every
field; RCP_SEQ or id is used as the recipe ID when present.

Usage:
    python scripts/load_recipes.py --input recipes.json
    python scripts/load_recipes.py --input recipes.csv --ingredient-map ingredients.csv
    python scripts/load_recipes.py --descriptions fmbt_descriptions.json
"""

import csv
import json
import logging
import argparse
from pathlib import Path
from typing import Any, Dict, Iterator, Tuple
import sys

from cookit.data.database import DatabaseInterface
from cookit.data.models import Recipe
from cookit.detection.ingredient_map import IngredientMap

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

ID_KEYS = ("RCP_SEQ", "id")


def _document_id(doc: Dict[str, Any], position: int) -> str:
    for key in ID_KEYS:
        if doc.get(key) not in (None, ""):
            return str(doc[key])
    return str(position + 1)


def iter_documents(path: Path) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Yield (recipe_id, document) pairs in file order."""
    if path.suffix.lower() == ".csv":
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            for position, row in enumerate(csv.DictReader(f)):
                yield _document_id(row, position), row
        return

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        for recipe_id, doc in data.items():
            yield str(recipe_id), doc
    else:
        for position, doc in enumerate(data):
            yield _document_id(doc, position), doc


def load_corpus(path: Path, db: DatabaseInterface, batch_size: int = 1000) -> int:
    """
    Load recipes into recipes.db in batches.

    Returns:
        Number of recipes stored
    """
    batch = []
    total_count = 0
    error_count = 0

    for recipe_id, doc in iter_documents(path):
        try:
            batch.append(Recipe.from_document(recipe_id, doc))
        except (AttributeError, TypeError) as e:
            error_count += 1
            logger.warning(f"Error processing recipe {recipe_id}: {e}")
            continue

        if len(batch) >= batch_size:
            total_count += db.add_recipes(batch)
            logger.info(f"Loaded {total_count} recipes...")
            batch = []

    if batch:
        total_count += db.add_recipes(batch)

    logger.info(f"Loaded {total_count} recipes successfully")
    if error_count > 0:
        logger.warning(f"Encountered {error_count} errors")
    return total_count


def load_descriptions(path: Path, db: DatabaseInterface) -> int:
    """Load taste-code descriptions from a JSON object {code: description}."""
    with open(path, "r", encoding="utf-8") as f:
        descriptions = json.load(f)

    for code, entry in descriptions.items():
        # Accept both {"EFSB": "..."} and {"EFSB": {"description": "..."}}
        text = entry.get("description") if isinstance(entry, dict) else entry
        if text:
            db.set_taste_description(code, text)

    logger.info(f"Loaded {len(descriptions)} taste descriptions")
    return len(descriptions)


def main():
    parser = argparse.ArgumentParser(description="Load Cookit recipe data into SQLite")
    parser.add_argument("--input", type=Path, help="Recipe corpus (JSON or CSV)")
    parser.add_argument("--ingredient-map", type=Path, help="Detector class -> ingredient name CSV")
    parser.add_argument("--descriptions", type=Path, help="Taste-code descriptions JSON")
    parser.add_argument(
        "--db-dir",
        type=Path,
        default="data",
        help="Database directory (default: data)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=1000,
        help="Batch size for inserts (default: 1000)",
    )

    args = parser.parse_args()

    if not (args.input or args.ingredient_map or args.descriptions):
        parser.error("nothing to load: pass --input, --ingredient-map or --descriptions")

    for path in (args.input, args.ingredient_map, args.descriptions):
        if path and not path.exists():
            logger.error(f"File not found: {path}")
            sys.exit(1)

    db = DatabaseInterface(str(args.db_dir))

    if args.input:
        load_corpus(args.input, db, args.batch_size)
    if args.ingredient_map:
        ingredient_map = IngredientMap.from_csv(args.ingredient_map)
        db.save_ingredient_map(dict(ingredient_map.mapping))
    if args.descriptions:
        load_descriptions(args.descriptions, db)

    logger.info("Done!")


if __name__ == "__main__":
    main()
