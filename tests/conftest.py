from dataclasses import replace

import pytest

from catalog import convert_meals
from user_profile import Preferences, UserProfile


def raw_category(category, base_kcal, vegan=True, count=8):
    """count meals, each 10 kcal and 0.5 cost heavier than the previous."""
    return {
        f"{category} {i}": {
            category: 1,
            "protein": 10 + i, "carbs": 40 + i, "fat": 10,
            "kcal": base_kcal + 10 * i,
            "cost": 1 + 0.5 * i,
            "is_vegan": vegan, "is_lactose_free": True, "is_gluten_free": i % 2 == 0,
        }
        for i in range(count)
    }


@pytest.fixture
def small_catalog():
    # ids: breakfast 0-7, dinner 8-15, lunch 16-23
    return convert_meals([
        raw_category("breakfast", 300),
        raw_category("dinner", 600, vegan=False),
        raw_category("lunch", 500),
    ])


@pytest.fixture
def example_profile():
    return UserProfile(
        weight=68, height=172, age=25, sex="m",
        activity_level="low", target="loose", wealth_level="student",
    )


@pytest.fixture
def meatless_profile(example_profile):
    return replace(example_profile, preferences=Preferences(meatless=True))


class StubSolver:
    """Returns canned results in order and records the models it was given."""

    def __init__(self, *results):
        self.results = list(results)
        self.models = []

    def solve(self, model):
        self.models.append(model)
        return dict(self.results.pop(0))


@pytest.fixture
def stub_solver():
    return StubSolver
