"""
Ingredient detection - detector client and class-name lookup table.
"""

from cookit.detection.ingredient_map import IngredientMap
from cookit.detection.detector import Detection, IngredientDetector

__all__ = ["IngredientMap", "Detection", "IngredientDetector"]
