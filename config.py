# ========================== CONFIGURATION ==========================
import os

CONFIG = {
    # --- Data sources ---
    "meals_dir": os.getenv("MEALS_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")),
    # load order fixes MealId assignment
    "category_files": [
        ("breakfast", "meals_breakfast.csv"),
        ("dinner", "meals_dinner.csv"),
        ("lunch", "meals_lunch.csv"),
    ],

    # --- Calorie targets (Mifflin-St Jeor, flat kcal/day addends) ---
    "activity_adjustment": {
        "low": 150,
        "moderate": 300,
        "high": 450,
    },
    "target_offset": {
        "loose": -500,   # deficit
        "gain": 500,     # surplus
        "maintain": 0,
    },
    "weekly_calorie_window": 1000,  # max = min + window (not for maintain)
    "days": 7,

    # --- Weekly budget ceilings ---
    "cost_ceiling": {
        "student": 300,
        "average": 500,
        "elon_musk": 2000,
    },
    "cost_scale": 2,  # catalog costs are per half portion

    # --- Meal Structure ---
    "meal_types": ["breakfast", "lunch", "dinner"],
    "meal_counts": {
        "breakfast": 7,
        "lunch": 7,
        "dinner": 7,
    },

    # --- Solver ---
    "verbose_solver": os.getenv("VERBOSE_SOLVER", "0") == "1",
    "result_metadata": ["feasible", "result", "bounded", "isIntegral"],

    # --- Required columns in every meals_*.csv ---
    "required_columns": [
        "meal_name", "protein", "carbs", "fat", "kcal", "cost",
        "is_vegan", "is_lactose_free", "is_gluten_free",
    ],
    "numeric_columns": ["protein", "carbs", "fat", "kcal", "cost"],
    "flag_columns": ["is_vegan", "is_lactose_free", "is_gluten_free"],
}
# ===================================================================
