import logging
import math
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pandas as pd

from config import CONFIG

logger = logging.getLogger(__name__)

MEAL_TYPES = CONFIG["meal_types"]

# ====================================================================


class CatalogError(ValueError):
    """A catalog file is missing or does not have the expected columns."""


@dataclass(frozen=True)
class MealRecord:
    meal_id: int
    name: str
    category: str
    protein: float
    carbs: float
    fat: float
    kcal: float
    cost: float
    is_vegan: bool
    is_lactose_free: bool
    is_gluten_free: bool
    kcal_diff: Optional[float] = None

    @property
    def breakfast(self) -> int:
        return 1 if self.category == "breakfast" else 0

    @property
    def lunch(self) -> int:
        return 1 if self.category == "lunch" else 0

    @property
    def dinner(self) -> int:
        return 1 if self.category == "dinner" else 0

    def variable_attributes(self) -> Dict:
        """
        Attribute mapping the solver sees for this meal's decision variable.
        The meal's own id is included as a self-selector so a per-meal cap
        can be placed on it independently of the category totals.
        """
        attrs = {
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
            "kcal": self.kcal,
            "cost": self.cost,
            self.category: 1,
            self.meal_id: 1,
        }
        if self.kcal_diff is not None:
            attrs["kcal_diff"] = self.kcal_diff
        return attrs


def _as_bool(value) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    token = str(value).strip().lower()
    if token in ("true", "1", "yes", "y"):
        return True
    if token in ("false", "0", "no", "n"):
        return False
    return None


def _as_number(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number < 0:
        return None
    return number


def load_meal_table(csv_path: str) -> pd.DataFrame:
    if not os.path.exists(csv_path):
        raise CatalogError(f"Meal file not found: {csv_path}")
    try:
        df = pd.read_csv(csv_path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise CatalogError(f"Cannot read {os.path.basename(csv_path)}: {e}") from e
    needed = CONFIG["required_columns"]
    missing = [c for c in needed if c not in df.columns]
    if missing:
        raise CatalogError(f"{os.path.basename(csv_path)} is missing columns: {missing}")
    df["meal_name"] = df["meal_name"].astype(str).str.strip()
    for c in CONFIG["numeric_columns"] + ["kcal_diff"]:
        if c in df.columns:
            df[c] = pd.to_numeric(df[c], errors="coerce")
    return df


def load_raw_meals(csv_path: str, category: str) -> Dict[str, dict]:
    """Read one category file into a name -> attributes collection."""
    df = load_meal_table(csv_path)
    raw: Dict[str, dict] = {}
    for row in df.to_dict("records"):
        name = row.pop("meal_name")
        if name in raw:
            logger.warning("Duplicate meal %r in %s, keeping the last row", name, csv_path)
        row[category] = 1
        raw[name] = row
    logger.debug("Loaded %d %s rows from %s", len(raw), category, csv_path)
    return raw


def _to_record(meal_id: int, name: str, entry: dict) -> Optional[MealRecord]:
    categories = [t for t in MEAL_TYPES if entry.get(t) == 1]
    if len(categories) != 1:
        logger.warning("Skipping meal %r: expected exactly one category flag, got %s", name, categories)
        return None

    numbers = {c: _as_number(entry.get(c)) for c in CONFIG["numeric_columns"]}
    flags = {c: _as_bool(entry.get(c)) for c in CONFIG["flag_columns"]}
    bad = [c for c, v in list(numbers.items()) + list(flags.items()) if v is None]
    if bad:
        logger.warning("Skipping malformed meal %r: invalid or missing %s", name, bad)
        return None

    return MealRecord(
        meal_id=meal_id,
        name=name,
        category=categories[0],
        kcal_diff=_as_number(entry.get("kcal_diff")),
        **numbers,
        **flags,
    )


def convert_meals(collections: List[Dict[str, dict]]) -> Dict[int, MealRecord]:
    """
    Merge raw collections (in load order) and index them by MealId.

    A name seen again in a later collection replaces the earlier entry in
    place. Ids come from enumeration over the merged keys; a skipped entry
    ("default" or malformed) still consumes its index.
    """
    merged: Dict[str, dict] = {}
    for collection in collections:
        for name, entry in collection.items():
            if name in merged:
                logger.warning("Meal %r appears in more than one category, later entry wins", name)
            merged[name] = entry

    meals: Dict[int, MealRecord] = {}
    for index, (name, entry) in enumerate(merged.items()):
        if name == "default":
            continue
        record = _to_record(index, name, entry)
        if record is not None:
            meals[index] = record
    return meals


def build_ints(meals: Dict[int, MealRecord]) -> Dict[int, int]:
    return {meal_id: 1 for meal_id in meals}


def build_self_caps(meals: Dict[int, MealRecord]) -> Dict[int, dict]:
    return {meal_id: {"max": 1} for meal_id in meals}


def load_catalog(meals_dir: Optional[str] = None) -> Dict[int, MealRecord]:
    meals_dir = meals_dir or CONFIG["meals_dir"]
    collections = [
        load_raw_meals(os.path.join(meals_dir, filename), category)
        for category, filename in CONFIG["category_files"]
    ]
    meals = convert_meals(collections)
    logger.info("Catalog ready: %d meals from %s", len(meals), meals_dir)
    return meals


def by_category(meals: Dict[int, MealRecord]) -> Dict[str, List[MealRecord]]:
    out: Dict[str, List[MealRecord]] = {t: [] for t in MEAL_TYPES}
    for record in meals.values():
        out[record.category].append(record)
    return out


def category_sizes(meals: Dict[int, MealRecord]) -> Tuple[int, ...]:
    groups = by_category(meals)
    return tuple(len(groups[t]) for t in MEAL_TYPES)
