import math
from dataclasses import dataclass, field
from typing import Dict

from config import CONFIG

SEXES = ("m", "f")


class ProfileError(ValueError):
    pass


@dataclass(frozen=True)
class Preferences:
    meatless: bool = False
    lactose_free: bool = False
    gluten_free: bool = False

    @classmethod
    def from_dict(cls, data: Dict) -> "Preferences":
        return cls(
            meatless=bool(data.get("meatless", False)),
            lactose_free=bool(data.get("lactose_free", data.get("lactoseFree", False))),
            gluten_free=bool(data.get("gluten_free", data.get("glutenFree", False))),
        )

    def to_dict(self) -> Dict[str, bool]:
        return {
            "meatless": self.meatless,
            "lactose_free": self.lactose_free,
            "gluten_free": self.gluten_free,
        }


@dataclass(frozen=True)
class UserProfile:
    weight: float          # kg
    height: float          # cm
    age: int               # years
    sex: str               # "m" | "f"
    activity_level: str    # "low" | "moderate" | "high"
    target: str            # "loose" | "gain" | "maintain"
    wealth_level: str      # "student" | "average" | "elon_musk"
    preferences: Preferences = field(default_factory=Preferences)

    def __post_init__(self):
        for name in ("weight", "height", "age"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ProfileError(f"{name} must be a positive number")
        choices = {
            "sex": SEXES,
            "activity_level": tuple(CONFIG["activity_adjustment"]),
            "target": tuple(CONFIG["target_offset"]),
            "wealth_level": tuple(CONFIG["cost_ceiling"]),
        }
        for name, allowed in choices.items():
            if getattr(self, name) not in allowed:
                raise ProfileError(f"{name} must be one of {allowed}, got {getattr(self, name)!r}")

    @classmethod
    def from_dict(cls, data: Dict) -> "UserProfile":
        try:
            fields = dict(
                weight=float(data["weight"]),
                height=float(data["height"]),
                age=int(data["age"]),
                sex=str(data["sex"]).lower(),
                activity_level=str(data.get("activity_level", data.get("activityLevel"))).lower(),
                target=str(data["target"]).lower(),
                wealth_level=str(data.get("wealth_level", data.get("wealthLevel"))).lower(),
            )
        except KeyError as e:
            raise ProfileError(f"Missing profile field: {e}") from e
        except (TypeError, ValueError) as e:
            raise ProfileError(f"Invalid profile: {e}") from e
        return cls(preferences=Preferences.from_dict(data.get("preferences") or {}), **fields)

    def to_dict(self) -> Dict:
        return {
            "weight": self.weight,
            "height": self.height,
            "age": self.age,
            "sex": self.sex,
            "activity_level": self.activity_level,
            "target": self.target,
            "wealth_level": self.wealth_level,
            "preferences": self.preferences.to_dict(),
        }


# ========================== TARGETS ==========================

def calculate_bmr(profile: UserProfile) -> float:
    # Mifflin-St Jeor
    base = 10 * profile.weight + 6.25 * profile.height - 5 * profile.age
    return base + 5 if profile.sex == "m" else base - 161


def maintenance_calories(profile: UserProfile) -> int:
    """Daily maintenance kcal, rounded up to the nearest 10."""
    daily = calculate_bmr(profile) + CONFIG["activity_adjustment"][profile.activity_level]
    return int(math.ceil(daily / 10) * 10)


def calculate_calories(profile: UserProfile) -> Dict[str, float]:
    """
    Weekly calorie range for the solver.

    loose/gain get a {min, max} window of fixed width; maintain only has a
    lower bound.
    """
    daily = maintenance_calories(profile) + CONFIG["target_offset"][profile.target]
    weekly_min = daily * CONFIG["days"]
    if profile.target == "maintain":
        return {"min": weekly_min}
    return {"min": weekly_min, "max": weekly_min + CONFIG["weekly_calorie_window"]}


def calculate_cost(wealth_level: str) -> Dict[str, float]:
    if wealth_level not in CONFIG["cost_ceiling"]:
        raise ProfileError(f"Unknown wealth level: {wealth_level!r}")
    return {"max": CONFIG["cost_ceiling"][wealth_level]}


def meal_type_constraints() -> Dict[str, Dict[str, int]]:
    return {t: {"min": n, "max": n} for t, n in CONFIG["meal_counts"].items()}
