import logging

import pytest

from catalog import (
    CatalogError, build_ints, build_self_caps, by_category, convert_meals, load_catalog,
    load_meal_table, load_raw_meals,
)

HEADER = "meal_name,protein,carbs,fat,kcal,cost,is_vegan,is_lactose_free,is_gluten_free\n"


def entry(category, kcal=400, **extra):
    row = {category: 1, "protein": 20, "carbs": 40, "fat": 10, "kcal": kcal, "cost": 3,
           "is_vegan": True, "is_lactose_free": True, "is_gluten_free": False}
    row.update(extra)
    return row


def test_ids_follow_load_order_across_collections():
    meals = convert_meals([
        {"Oats": entry("breakfast"), "Toast": entry("breakfast")},
        {"Stew": entry("dinner")},
        {"Soup": entry("lunch")},
    ])
    assert [(i, m.name, m.category) for i, m in meals.items()] == [
        (0, "Oats", "breakfast"), (1, "Toast", "breakfast"), (2, "Stew", "dinner"), (3, "Soup", "lunch"),
    ]


def test_default_key_is_skipped_but_consumes_its_index():
    meals = convert_meals([{"default": entry("breakfast"), "Oats": entry("breakfast")}])
    assert "default" not in {m.name for m in meals.values()}
    assert list(meals) == [1]


def test_variable_attributes_carry_self_selector(small_catalog):
    record = small_catalog[3]
    attrs = record.variable_attributes()
    assert attrs[3] == 1
    assert attrs["breakfast"] == 1
    assert "dinner" not in attrs
    assert attrs["kcal"] == record.kcal
    assert "kcal_diff" not in attrs


def test_category_flags(small_catalog):
    record = small_catalog[10]
    assert (record.breakfast, record.lunch, record.dinner) == (0, 0, 1)


def test_ints_and_self_caps_cover_every_meal(small_catalog):
    assert build_ints(small_catalog) == {i: 1 for i in range(24)}
    assert build_self_caps(small_catalog) == {i: {"max": 1} for i in range(24)}


def test_malformed_entries_are_skipped_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="catalog"):
        meals = convert_meals([{
            "No kcal": entry("lunch", kcal=float("nan")),
            "Bad flag": entry("lunch", is_vegan="sometimes"),
            "Negative": entry("lunch", cost=-1),
            "Two slots": entry("lunch", dinner=1),
            "Fine": entry("lunch"),
        }])
    assert [m.name for m in meals.values()] == ["Fine"]
    assert meals[4].meal_id == 4
    assert "No kcal" in caplog.text
    assert "Two slots" in caplog.text


def test_duplicate_name_later_collection_wins(caplog):
    with caplog.at_level(logging.WARNING, logger="catalog"):
        meals = convert_meals([
            {"Porridge": entry("breakfast", kcal=300)},
            {"Porridge": entry("dinner", kcal=500)},
        ])
    assert len(meals) == 1
    assert meals[0].category == "dinner"
    assert meals[0].kcal == 500
    assert "Porridge" in caplog.text


def test_kcal_diff_from_catalog_is_kept():
    meals = convert_meals([{"Oats": entry("breakfast", kcal_diff=12.5)}])
    assert meals[0].kcal_diff == 12.5
    assert meals[0].variable_attributes()["kcal_diff"] == 12.5


def test_load_raw_meals_reads_csv(tmp_path):
    path = tmp_path / "meals_lunch.csv"
    path.write_text(
        HEADER
        + "default,0,0,0,0,0,True,True,True\n"
        + " Lentil Soup ,24,60,6,400,2.5,True,True,True\n"
        + "Lasagna,36,64,36,720,5,False,False,False\n"
    )
    raw = load_raw_meals(str(path), "lunch")
    assert list(raw) == ["default", "Lentil Soup", "Lasagna"]
    assert raw["Lentil Soup"]["lunch"] == 1

    meals = convert_meals([raw])
    assert [m.name for m in meals.values()] == ["Lentil Soup", "Lasagna"]
    soup, lasagna = meals[1], meals[2]
    assert soup.kcal == 400.0 and soup.is_gluten_free is True
    assert lasagna.is_vegan is False and lasagna.cost == 5.0


def test_missing_columns_raise(tmp_path):
    path = tmp_path / "meals_lunch.csv"
    path.write_text("meal_name,kcal\nSoup,400\n")
    with pytest.raises(CatalogError, match="missing columns"):
        load_meal_table(str(path))


def test_missing_file_raises(tmp_path):
    with pytest.raises(CatalogError):
        load_meal_table(str(tmp_path / "nope.csv"))


def test_bundled_catalog():
    meals = load_catalog()
    groups = by_category(meals)
    assert all(len(groups[t]) >= 7 for t in ("breakfast", "lunch", "dinner"))
    assert "default" not in {m.name for m in meals.values()}
    assert all(m.meal_id == i for i, m in meals.items())
    # breakfast ids come first, then dinner, then lunch
    first_dinner = min(m.meal_id for m in groups["dinner"])
    assert max(m.meal_id for m in groups["breakfast"]) < first_dinner
    assert max(m.meal_id for m in groups["dinner"]) < min(m.meal_id for m in groups["lunch"])


def test_empty_file_raises_catalog_error(tmp_path):
    path = tmp_path / "meals_lunch.csv"
    path.write_text("")
    with pytest.raises(CatalogError, match="Cannot read"):
        load_meal_table(str(path))


def test_unparseable_file_raises_catalog_error(tmp_path):
    path = tmp_path / "meals_lunch.csv"
    path.write_text(HEADER + 'Soup,1,2,3,400,2,True,True,True\n"Broken,1,2\n')
    with pytest.raises(CatalogError):
        load_meal_table(str(path))
