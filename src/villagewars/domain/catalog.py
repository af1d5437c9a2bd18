"""Default catalog data installed into new worlds."""

from __future__ import annotations

from .enums import EffectType, ResourceType
from .models import ArtifactEffect, BuildingType, QuestDefinition, UnitType

W, C, I, F = ResourceType.WOOD, ResourceType.CLAY, ResourceType.IRON, ResourceType.CROP


def _cost(wood: int, clay: int, iron: int, crop: int) -> dict[ResourceType, int]:
    return {W: wood, C: clay, I: iron, F: crop}


RESOURCE_FIELDS: dict[ResourceType, str] = {
    W: "woodcutter",
    C: "clay_pit",
    I: "iron_mine",
    F: "crop_field",
}

DEFENSIVE_BUILDINGS = ("wall", "watchtower", "trap", "rally_point")


def default_unit_types() -> dict[str, UnitType]:
    """Return the unit roster every world starts with."""

    units = [
        UnitType("infantry", "Infantry", 10, 15, 5.0, 40, _cost(100, 50, 25, 50), 300,
                 {"barracks": 1}),
        UnitType("archer", "Archer", 15, 10, 4.0, 30, _cost(50, 100, 75, 25), 450,
                 {"barracks": 3}),
        UnitType("cavalry", "Cavalry", 20, 5, 15.0, 80, _cost(25, 75, 100, 100), 600,
                 {"barracks": 5}),
        UnitType("siege", "Siege Engine", 50, 20, 2.0, 0, _cost(200, 150, 300, 50), 900,
                 {"barracks": 10}),
        UnitType("scout", "Scout", 0, 2, 20.0, 0, _cost(30, 40, 20, 10), 240,
                 {"barracks": 1}),
    ]
    return {unit.key: unit for unit in units}


def default_building_types() -> dict[str, BuildingType]:
    """Return the building catalog every world starts with."""

    buildings = [
        BuildingType("main_building", "Main Building", _cost(70, 40, 60, 20), 600),
        BuildingType("woodcutter", "Woodcutter", _cost(40, 100, 50, 60), 260, produces=W),
        BuildingType("clay_pit", "Clay Pit", _cost(80, 40, 80, 50), 220, produces=C),
        BuildingType("iron_mine", "Iron Mine", _cost(100, 80, 30, 60), 450, produces=I),
        BuildingType("crop_field", "Crop Field", _cost(70, 90, 70, 20), 150, produces=F),
        BuildingType("warehouse", "Warehouse", _cost(130, 160, 90, 40), 500,
                     requirements={"main_building": 1}),
        BuildingType("granary", "Granary", _cost(80, 100, 70, 20), 400,
                     requirements={"main_building": 1}),
        BuildingType("barracks", "Barracks", _cost(210, 140, 260, 120), 800,
                     requirements={"main_building": 3, "rally_point": 1}),
        BuildingType("marketplace", "Marketplace", _cost(80, 70, 120, 70), 700,
                     requirements={"main_building": 3, "warehouse": 1, "granary": 1}),
        BuildingType("rally_point", "Rally Point", _cost(110, 160, 90, 70), 400),
        BuildingType("wall", "Wall", _cost(70, 90, 170, 70), 600,
                     requirements={"main_building": 2}),
        BuildingType("watchtower", "Watchtower", _cost(100, 100, 120, 40), 650,
                     requirements={"wall": 1}),
        BuildingType("trap", "Trapper", _cost(80, 120, 70, 90), 500,
                     requirements={"rally_point": 1}),
        BuildingType("treasury", "Treasury", _cost(2880, 2740, 2580, 990), 3600,
                     requirements={"main_building": 10}, population_required=200),
    ]
    return {building.key: building for building in buildings}


def default_quests() -> dict[str, QuestDefinition]:
    """Return the quest catalog every world starts with."""

    quests = [
        QuestDefinition(
            "welcome",
            "Welcome",
            "Raise your main building to level 2.",
            rewards=_cost(500, 500, 500, 500),
            building_levels={"main_building": 2},
        ),
        QuestDefinition(
            "resource_production",
            "Resource Production",
            "Upgrade every resource field to level 2.",
            rewards=_cost(1000, 1000, 1000, 1000),
            building_levels={key: 2 for key in RESOURCE_FIELDS.values()},
        ),
        QuestDefinition(
            "first_army",
            "First Army",
            "Train ten infantry.",
            rewards=_cost(300, 300, 300, 600),
            troops={"infantry": 10},
        ),
        QuestDefinition(
            "growing_village",
            "Growing Village",
            "Reach a population of 150.",
            rewards=_cost(800, 800, 800, 800),
            population=150,
        ),
        QuestDefinition(
            "expansion",
            "Expansion",
            "Own two villages.",
            rewards=_cost(2000, 2000, 2000, 2000),
            villages=2,
        ),
        QuestDefinition(
            "warlord",
            "Warlord",
            "Win five battles.",
            rewards=_cost(750, 750, 750, 250),
            battles_won=5,
            repeatable=True,
        ),
    ]
    return {quest.key: quest for quest in quests}


def default_artifact_effects() -> dict[str, tuple[str, list[ArtifactEffect]]]:
    """Return named artifact templates: name -> (description, effects)."""

    return {
        "Horn of Plenty": (
            "Boosts resource production of the holding village.",
            [ArtifactEffect(EffectType.PRODUCTION_BONUS, 25.0, 72.0)],
        ),
        "Blade of the Conqueror": (
            "Sharpens every attack sent from the holding village.",
            [ArtifactEffect(EffectType.ATTACK_BONUS, 15.0, 48.0)],
        ),
        "Aegis Stone": (
            "Hardens the defences of the holding village.",
            [ArtifactEffect(EffectType.DEFENSE_BONUS, 20.0, None)],
        ),
        "Boots of Haste": (
            "Troops and merchants travel faster.",
            [ArtifactEffect(EffectType.SPEED_BONUS, 30.0, 24.0)],
        ),
        "Architect's Plans": (
            "Construction and training complete sooner.",
            [
                ArtifactEffect(EffectType.BUILDING_BONUS, 25.0, 48.0),
                ArtifactEffect(EffectType.TROOP_BONUS, 15.0, 48.0),
            ],
        ),
        "Merchant's Seal": (
            "Reduces market fees.",
            [ArtifactEffect(EffectType.TRADE_BONUS, 50.0, None)],
        ),
    }
