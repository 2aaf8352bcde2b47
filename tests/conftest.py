from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for `recipe_optimizer` without an install
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from recipe_optimizer import Recipe, Resource, ResourceProduction  # noqa: E402


def water_resources(water: float = 1.0, with_co2: bool = False) -> dict[str, Resource]:
    res = {
        "water": Resource(id=1, name="Water", unit="Cup", natural_production=water),
        "ice": Resource(id=2, name="Ice", unit="Cube", natural_production=0),
        "pot": Resource(id=3, name="Pot Time", unit="Pot Month", natural_production=1),
        "flower": Resource(id=4, name="Flower", unit="Item", natural_production=0),
    }
    if with_co2:
        res["co2"] = Resource(id=5, name="Carbon Dioxide", unit="Gram", natural_production=300)
    return res


def garden_recipes(water: float = 1.0, with_co2: bool = False) -> list[Recipe]:
    r = water_resources(water, with_co2)
    growing = [
        ResourceProduction(r["water"], -1),
        ResourceProduction(r["pot"], -3),
        ResourceProduction(r["flower"], 1),
    ]
    if with_co2:
        growing.append(ResourceProduction(r["co2"], -100))
    return [
        Recipe(
            id=1,
            name="Freezing",
            production=[ResourceProduction(r["water"], -2), ResourceProduction(r["ice"], 3)],
            utility=0,
        ),
        Recipe(id=2, name="Ice Consumption", production=[ResourceProduction(r["ice"], -1)], utility=1),
        Recipe(id=3, name="Flower Growing", production=growing, utility=0),
        Recipe(id=4, name="Flower Consumption", production=[ResourceProduction(r["flower"], -1)], utility=2),
    ]


@pytest.fixture
def garden():
    return garden_recipes()


@pytest.fixture
def garden_co2():
    return garden_recipes(with_co2=True)
