"""
Built-in scoresheet templates that can be stamped onto any game.

dnd5e: D&D 5th edition character sheet. Ability modifiers are calculated from
the scores, skills from the modifiers, and passive perception reads the
perception skill declared in a later subcategory.
"""

from typing import Callable, Dict, List

from app.models.scoresheet_field import FieldType
from app.services.scoresheet_values import FieldSpec, SubcategorySpec, TemplateSpec

ABILITIES = [
    ("strength", "str"),
    ("dexterity", "dex"),
    ("constitution", "con"),
    ("intelligence", "int"),
    ("wisdom", "wis"),
    ("charisma", "cha"),
]

SKILLS = [
    ("acrobatics", "Acrobatics", "dex"),
    ("animal_handling", "Animal Handling", "wis"),
    ("arcana", "Arcana", "int"),
    ("athletics", "Athletics", "str"),
    ("deception", "Deception", "cha"),
    ("history", "History", "int"),
    ("insight", "Insight", "wis"),
    ("intimidation", "Intimidation", "cha"),
    ("investigation", "Investigation", "int"),
    ("medicine", "Medicine", "wis"),
    ("nature", "Nature", "int"),
    ("perception", "Perception", "wis"),
    ("performance", "Performance", "cha"),
    ("persuasion", "Persuasion", "cha"),
    ("religion", "Religion", "int"),
    ("sleight_of_hand", "Sleight of Hand", "dex"),
    ("stealth", "Stealth", "dex"),
    ("survival", "Survival", "wis"),
]

ALIGNMENTS = [
    "Lawful Good",
    "Neutral Good",
    "Chaotic Good",
    "Lawful Neutral",
    "True Neutral",
    "Chaotic Neutral",
    "Lawful Evil",
    "Neutral Evil",
    "Chaotic Evil",
]

# Max spell slots per level 1..9
SPELL_SLOT_CAPS = [4, 3, 3, 3, 3, 2, 2, 1, 1]


def _number(field_id: str, name: str, default: float = 0, min_value=None, max_value=None) -> FieldSpec:
    return FieldSpec(
        field_id=field_id,
        name=name,
        type=FieldType.number,
        default_value=default,
        min_value=min_value,
        max_value=max_value,
    )


def _text(field_id: str, name: str, default: str = "") -> FieldSpec:
    return FieldSpec(field_id=field_id, name=name, type=FieldType.text, default_value=default)


def _calc(field_id: str, name: str, formula: str) -> FieldSpec:
    return FieldSpec(field_id=field_id, name=name, type=FieldType.calculation, formula=formula)


def build_dnd5e_template() -> TemplateSpec:
    abilities: List[FieldSpec] = [
        _number(ability, ability.capitalize(), default=10, min_value=1, max_value=30) for ability, _ in ABILITIES
    ]
    abilities += [
        _calc(f"{short}_mod", f"{ability.capitalize()} Modifier", f"Math.floor(({ability} - 10) / 2)")
        for ability, short in ABILITIES
    ]

    return TemplateSpec(
        name="D&D 5e Character Sheet",
        subcategories=[
            SubcategorySpec(
                name="Character Information",
                fields=[
                    _text("character_name", "Character Name"),
                    _text("class", "Class"),
                    _text("race", "Race"),
                    _text("background", "Background"),
                    FieldSpec(field_id="alignment", name="Alignment", type=FieldType.dropdown, options=list(ALIGNMENTS)),
                    _number("experience", "Experience Points", min_value=0),
                    _number("level", "Level", default=1, min_value=1, max_value=20),
                    _calc("proficiency_bonus", "Proficiency Bonus", "Math.floor((level - 1) / 4) + 2"),
                ],
            ),
            SubcategorySpec(name="Ability Scores", fields=abilities),
            SubcategorySpec(
                name="Combat Stats",
                fields=[
                    _number("armor_class", "Armor Class", default=10),
                    _calc("initiative", "Initiative", "dex_mod"),
                    _number("speed", "Speed", default=30),
                    _number("hit_point_max", "Hit Point Maximum", default=10),
                    _number("current_hit_points", "Current Hit Points", default=10),
                    _number("temporary_hit_points", "Temporary Hit Points", default=0),
                    _text("hit_dice", "Hit Dice", default="1d8"),
                    _calc("passive_perception", "Passive Perception", "10 + perception"),
                ],
            ),
            SubcategorySpec(
                name="Skills",
                fields=[_calc(skill_id, f"{label} ({short.capitalize()})", f"{short}_mod") for skill_id, label, short in SKILLS],
            ),
            SubcategorySpec(
                name="Equipment",
                fields=[
                    _number("copper", "Copper (CP)", min_value=0),
                    _number("silver", "Silver (SP)", min_value=0),
                    _number("electrum", "Electrum (EP)", min_value=0),
                    _number("gold", "Gold (GP)", min_value=0),
                    _number("platinum", "Platinum (PP)", min_value=0),
                    _calc(
                        "total_wealth_gp",
                        "Total Wealth (GP)",
                        "copper / 100 + silver / 10 + electrum / 2 + gold + platinum * 10",
                    ),
                    _text("equipment_list", "Equipment List"),
                ],
            ),
            SubcategorySpec(
                name="Features & Traits",
                fields=[
                    _text("features", "Features & Traits"),
                    _text("proficiencies", "Proficiencies"),
                    _text("languages", "Languages"),
                ],
            ),
            SubcategorySpec(
                name="Spellcasting",
                fields=[
                    _text("spellcasting_class", "Spellcasting Class"),
                    FieldSpec(
                        field_id="spellcasting_ability",
                        name="Spellcasting Ability",
                        type=FieldType.dropdown,
                        options=["Intelligence", "Wisdom", "Charisma"],
                    ),
                    _number("spell_save_dc", "Spell Save DC", default=8),
                    _number("spell_attack_bonus", "Spell Attack Bonus", default=0),
                    _text("cantrips", "Cantrips"),
                ]
                + [
                    _number(f"level{level}_slots", f"Level {level} Slots", min_value=0, max_value=cap)
                    for level, cap in enumerate(SPELL_SLOT_CAPS, start=1)
                ],
            ),
        ],
    )


PRESETS: Dict[str, Callable[[], TemplateSpec]] = {
    "dnd5e": build_dnd5e_template,
}
