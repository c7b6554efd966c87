import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

import pulp

from catalog import MEAL_TYPES, MealRecord, build_ints, build_self_caps, category_sizes, load_catalog
from config import CONFIG
from user_profile import (
    Preferences, UserProfile, calculate_calories, calculate_cost, meal_type_constraints
)

logger = logging.getLogger(__name__)

# ====================================================================


class InsufficientCategoryPool(RuntimeError):
    """A solver result does not hold enough meals of some category to fill a week."""

    def __init__(self, shortfall: Dict[str, int]):
        self.shortfall = shortfall
        detail = ", ".join(f"{t}: {n}" for t, n in shortfall.items())
        super().__init__(f"Not enough meals selected to fill {CONFIG['days']} days ({detail})")


@dataclass
class DayPlan:
    breakfast: MealRecord
    lunch: MealRecord
    dinner: MealRecord
    total: Dict[str, int]


# ---- Preference filter ----

def filter_by_preferences(meals: Dict[int, MealRecord], prefs: Preferences) -> Dict[int, MealRecord]:
    return {
        meal_id: m for meal_id, m in meals.items()
        if (not prefs.lactose_free or m.is_lactose_free)
        and (not prefs.gluten_free or m.is_gluten_free)
        and (not prefs.meatless or m.is_vegan)
    }


# ---- Model builder ----

def per_meal_kcal(calorie_target: Dict[str, float]) -> float:
    slots = sum(CONFIG["meal_counts"].values())
    return calorie_target["min"] / slots


def build_base_model(meals: Dict[int, MealRecord], calorie_target: Dict[str, float]) -> Dict:
    """
    Variables, integer markers and the constraints shared by both solves:
    one-per-meal caps, 7/7/7 category counts and the weekly calorie range.

    Meals without a catalog kcal_diff get |kcal - per-slot target|.
    """
    slot_kcal = per_meal_kcal(calorie_target)
    variables = {}
    for meal_id, record in meals.items():
        attrs = record.variable_attributes()
        attrs.setdefault("kcal_diff", abs(record.kcal - slot_kcal))
        variables[meal_id] = attrs

    constraints = {
        **build_self_caps(meals),
        "kcal": dict(calorie_target),
        **meal_type_constraints(),
    }
    return {
        "constraints": constraints,
        "variables": variables,
        "ints": build_ints(meals),
    }


def cost_model(base: Dict, cost_target: Dict[str, float]) -> Dict:
    return {
        **base,
        "optimize": "cost",
        "opType": "min",
        "constraints": {**base["constraints"], "cost": dict(cost_target)},
    }


def calorie_model(base: Dict) -> Dict:
    return {
        **base,
        "optimize": "kcal_diff",
        "opType": "min",
    }


# ---- Solver ----

def _satisfied(value: float, bounds: Dict[str, float]) -> bool:
    if "equal" in bounds and value != bounds["equal"]:
        return False
    if "min" in bounds and value < bounds["min"]:
        return False
    if "max" in bounds and value > bounds["max"]:
        return False
    return True


def infeasible_result() -> Dict:
    return {"feasible": False, "result": 0, "bounded": True, "isIntegral": False}


class PulpSolver:
    """
    Solves an optimization model given as plain dicts
    (optimize / opType / constraints / variables / ints) with pulp + CBC and
    returns a flat result: metadata keys plus one 0/1 entry per meal id.
    """

    def __init__(self, verbose: Optional[bool] = None):
        self.verbose = CONFIG["verbose_solver"] if verbose is None else verbose

    def solve(self, model: Dict) -> Dict:
        variables = model["variables"]
        ints = model.get("ints", {})
        sense = pulp.LpMinimize if model["opType"] == "min" else pulp.LpMaximize
        prob = pulp.LpProblem("WeeklyMealPlanner", sense)

        # ---- Decision vars ----
        x_vars = {
            var_id: pulp.LpVariable(f"x_{var_id}", lowBound=0,
                                    cat="Integer" if var_id in ints else "Continuous")
            for var_id in variables
        }

        # ---- Objective ----
        objective = model["optimize"]
        prob += pulp.lpSum(attrs.get(objective, 0) * x_vars[v] for v, attrs in variables.items())

        # ---- Constraints ----
        n_rows = 0
        for name, bounds in model["constraints"].items():
            terms = [(attrs[name], x_vars[v]) for v, attrs in variables.items() if name in attrs]
            if not terms:
                if not _satisfied(0, bounds):
                    logger.info("Constraint %r cannot be met by any remaining meal", name)
                    return infeasible_result()
                continue
            expr = pulp.lpSum(coef * var for coef, var in terms)
            n_rows += len([b for b in ("equal", "min", "max") if b in bounds])
            if "equal" in bounds:
                prob += expr == bounds["equal"], f"{name}_eq"
            if "min" in bounds:
                prob += expr >= bounds["min"], f"{name}_min"
            if "max" in bounds:
                prob += expr <= bounds["max"], f"{name}_max"

        logger.debug("Solving %s %s over %d variables, %d constraints",
                     model["opType"], objective, len(x_vars), n_rows)

        # ---- Solve ----
        status = prob.solve(pulp.PULP_CBC_CMD(msg=self.verbose))
        status_name = pulp.LpStatus[status]
        if status_name != "Optimal":
            logger.info("Solver status for %s: %s", objective, status_name)
            result = infeasible_result()
            result["bounded"] = status_name != "Unbounded"
            return result

        result = {
            "feasible": True,
            "result": pulp.value(prob.objective) or 0,
            "bounded": True,
            "isIntegral": True,
        }
        for var_id, var in x_vars.items():
            result[var_id] = int(round(var.varValue or 0))
        return result


# ---- Plan assembler ----

def _lookup(meals: Dict[int, MealRecord], key) -> Optional[MealRecord]:
    record = meals.get(key)
    if record is None and isinstance(key, str) and key.isdigit():
        record = meals.get(int(key))
    return record


def day_totals(meals: List[MealRecord]) -> Dict[str, int]:
    totals = {m: math.floor(sum(getattr(r, m) for r in meals)) for m in ["protein", "carbs", "fat", "kcal"]}
    totals["cost"] = math.floor(sum(r.cost for r in meals) * CONFIG["cost_scale"])
    return totals


def assemble_plan(result: Dict, meals: Dict[int, MealRecord]) -> List[DayPlan]:
    """
    Turn a feasible solver result into a week of DayPlans.

    Breakfasts and lunches are taken lightest first; dinners heaviest first,
    so the lightest breakfast shares a day with the heaviest dinner.
    """
    metadata = set(CONFIG["result_metadata"])
    pools: Dict[str, List[MealRecord]] = {t: [] for t in MEAL_TYPES}
    for key, chosen in result.items():
        if key in metadata or chosen != 1:
            continue
        record = _lookup(meals, key)
        if record is None:
            continue
        pools[record.category].append(record)

    days = CONFIG["days"]
    shortfall = {t: len(pool) for t, pool in pools.items() if len(pool) < days}
    if shortfall:
        raise InsufficientCategoryPool(shortfall)

    breakfasts = sorted(pools["breakfast"], key=lambda r: r.kcal)
    lunches = sorted(pools["lunch"], key=lambda r: r.kcal)
    dinners = sorted(pools["dinner"], key=lambda r: r.kcal)

    week = []
    for i in range(days):
        breakfast = breakfasts[i]
        lunch = lunches[i]
        dinner = dinners[len(dinners) - 1 - i]
        week.append(DayPlan(
            breakfast=breakfast,
            lunch=lunch,
            dinner=dinner,
            total=day_totals([breakfast, lunch, dinner]),
        ))
    return week


# ---- Entry point ----

def plan(profile: UserProfile,
         catalog: Optional[Dict[int, MealRecord]] = None,
         solver=None) -> Dict[str, Dict]:
    """
    Run both weekly solves for a profile.

    Returns {"cost_optimal": ..., "calorie_optimal": ...}; each value is
    {"feasible": False} or {"feasible": True, "result": objective, "days": [...]}.
    Raises InsufficientCategoryPool if a solver reports feasible but the
    assignment cannot fill the week.
    """
    meals = catalog if catalog is not None else load_catalog()
    solver = solver or PulpSolver()

    allowed = filter_by_preferences(meals, profile.preferences)
    logger.info("Planning with %d of %d meals (breakfast/lunch/dinner: %s)",
                len(allowed), len(meals), category_sizes(allowed))

    calorie_target = calculate_calories(profile)
    cost_target = calculate_cost(profile.wealth_level)
    base = build_base_model(allowed, calorie_target)

    plans = {}
    for label, model in [("cost_optimal", cost_model(base, cost_target)),
                         ("calorie_optimal", calorie_model(base))]:
        result = solver.solve(model)
        if not result.get("feasible"):
            logger.warning("No feasible %s plan (kcal %s, cost %s)", label, calorie_target, cost_target)
            plans[label] = {"feasible": False}
            continue
        plans[label] = {
            "feasible": True,
            "result": result.get("result"),
            "days": assemble_plan(result, meals),
        }
    return plans


# ---- Formatting ----

def _meal_line(label: str, r: MealRecord) -> str:
    return f"  {label:<9}: {r.name}  ({int(r.protein)}P {int(r.carbs)}C {int(r.fat)}F, {int(r.kcal)} kcal)"


def format_week(plan_result: Dict, title: str = "Weekly Plan") -> str:
    if not plan_result.get("feasible"):
        return f"❌ {title}: no feasible plan"
    parts = [f"✅ {title}"]
    for i, day in enumerate(plan_result["days"], 1):
        t = day.total
        parts.append(f"Day {i}: {t['kcal']} kcal, {t['protein']}P {t['carbs']}C {t['fat']}F, cost {t['cost']}")
        parts.append(_meal_line("Breakfast", day.breakfast))
        parts.append(_meal_line("Lunch", day.lunch))
        parts.append(_meal_line("Dinner", day.dinner))
    return "\n".join(parts)
