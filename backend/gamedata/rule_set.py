"""
RuleSet - read-only lookup over the static rule records and level tables
Injected into every engine call; never stored as a module global.
"""

from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .models import (
    Background, CharacterClass, Equipment, Feat, ItemGrant, Race, RuleTables, Spell
)


ABILITIES: Tuple[str, ...] = ('STR', 'DEX', 'CON', 'INT', 'WIS', 'CHA')

SKILL_TO_ABILITY: Dict[str, str] = {
    'Acrobatics': 'DEX',
    'Animal Handling': 'WIS',
    'Arcana': 'INT',
    'Athletics': 'STR',
    'Deception': 'CHA',
    'History': 'INT',
    'Insight': 'WIS',
    'Intimidation': 'CHA',
    'Investigation': 'INT',
    'Medicine': 'WIS',
    'Nature': 'INT',
    'Perception': 'WIS',
    'Performance': 'CHA',
    'Persuasion': 'CHA',
    'Religion': 'INT',
    'Sleight of Hand': 'DEX',
    'Stealth': 'DEX',
    'Survival': 'WIS',
}

EDITIONS: Tuple[str, ...] = ('2014', '2024')
MIN_LEVEL = 1
MAX_LEVEL = 20
SLOT_LEVELS = 9
DEFAULT_PROFICIENCY_BONUS = 2
PACKAGE_FALLBACK_KEY = '*'


class RuleSet:
    """
    Immutable view of races, classes, backgrounds, equipment, spells, feats
    and the level progression tables.

    Classes are resolved per edition: a class's ``edition_overrides`` entry
    for the requested edition replaces the matching top-level fields.
    """

    def __init__(self, races: Iterable[Race], classes: Iterable[CharacterClass],
                 backgrounds: Iterable[Background], equipment: Iterable[Equipment],
                 spells: Iterable[Spell], feats: Iterable[Feat], tables: RuleTables):
        self._races = MappingProxyType({r.slug: r for r in races})
        self._backgrounds = MappingProxyType({b.slug: b for b in backgrounds})
        self._equipment = MappingProxyType({e.slug: e for e in equipment})
        self._spells = MappingProxyType({s.slug: s for s in spells})
        self._feats = MappingProxyType({f.slug: f for f in feats})
        self._tables = tables

        resolved = {}
        for cls in classes:
            for edition in EDITIONS:
                resolved[(cls.slug, edition)] = self._apply_edition(cls, edition)
        self._classes = MappingProxyType(resolved)

        logger.debug(
            f"RuleSet ready: {len(self._races)} races, {len(resolved) // len(EDITIONS)} classes, "
            f"{len(self._backgrounds)} backgrounds, {len(self._equipment)} equipment, "
            f"{len(self._spells)} spells, {len(self._feats)} feats"
        )

    @staticmethod
    def _apply_edition(cls: CharacterClass, edition: str) -> CharacterClass:
        overrides = cls.edition_overrides.get(edition)
        if not overrides:
            return cls
        merged = cls.model_dump()
        merged.update(overrides)
        return CharacterClass.model_validate(merged)

    # Record lookups

    @property
    def tables(self) -> RuleTables:
        return self._tables

    def get_race(self, slug: Optional[str]) -> Optional[Race]:
        return self._races.get(slug) if slug else None

    def get_class(self, slug: Optional[str], edition: str = '2014') -> Optional[CharacterClass]:
        if not slug:
            return None
        return self._classes.get((slug, edition)) or self._classes.get((slug, EDITIONS[0]))

    def get_background(self, key: Optional[str]) -> Optional[Background]:
        """Look up a background by slug, falling back to a case-insensitive name match"""
        if not key:
            return None
        background = self._backgrounds.get(key)
        if background is None:
            lowered = key.strip().lower()
            background = next(
                (b for b in self._backgrounds.values() if b.name.lower() == lowered), None
            )
        return background

    def get_equipment(self, slug: Optional[str]) -> Optional[Equipment]:
        return self._equipment.get(slug) if slug else None

    def get_spell(self, slug: Optional[str]) -> Optional[Spell]:
        return self._spells.get(slug) if slug else None

    def get_feat(self, slug: Optional[str]) -> Optional[Feat]:
        return self._feats.get(slug) if slug else None

    def list_races(self) -> List[Race]:
        return list(self._races.values())

    def list_classes(self, edition: str = '2014') -> List[CharacterClass]:
        return [c for (slug, ed), c in self._classes.items() if ed == edition]

    def list_backgrounds(self) -> List[Background]:
        return list(self._backgrounds.values())

    def list_spells(self, class_slug: Optional[str] = None, level: Optional[int] = None) -> List[Spell]:
        spells = self._spells.values()
        if class_slug:
            spells = [s for s in spells if class_slug in s.classes]
        if level is not None:
            spells = [s for s in spells if s.level == level]
        return list(spells)

    # Level tables

    @staticmethod
    def _level_index(level: int) -> Optional[int]:
        if MIN_LEVEL <= level <= MAX_LEVEL:
            return level - 1
        return None

    def proficiency_bonus(self, level: int, default: Optional[int] = DEFAULT_PROFICIENCY_BONUS) -> Optional[int]:
        """Proficiency bonus for a level, or ``default`` when the level is off the table"""
        index = self._level_index(level)
        table = self._tables.proficiency_bonus_by_level
        if index is None or index >= len(table):
            return default
        return table[index]

    def asi_levels(self, cls: CharacterClass) -> List[int]:
        return list(cls.asi_levels) if cls.asi_levels is not None else list(self._tables.default_asi_levels)

    def spell_slots(self, cls: Optional[CharacterClass], level: int) -> List[int]:
        """Spell slots per slot level (index 0 is 1st level) for a class at a level"""
        empty = [0] * SLOT_LEVELS
        if cls is None or cls.spellcasting is None:
            return empty
        progression = self._tables.spell_slot_progressions.get(cls.spellcasting.slot_progression)
        index = self._level_index(level)
        if not progression or index is None or index >= len(progression):
            return empty
        row = list(progression[index])[:SLOT_LEVELS]
        return row + [0] * (SLOT_LEVELS - len(row))

    def cantrips_known(self, class_slug: str, level: int) -> int:
        table = self._tables.cantrips_known_by_class.get(class_slug)
        index = self._level_index(level)
        if not table or index is None or index >= len(table):
            return 0
        return table[index]

    def spells_known(self, class_slug: str, level: int) -> Optional[int]:
        """Spells known for ``known`` casters, None for classes without a table"""
        table = self._tables.spells_known_by_class.get(class_slug)
        index = self._level_index(level)
        if not table or index is None or index >= len(table):
            return None
        return table[index]

    def equipment_package(self, class_slug: str, level: int) -> List[ItemGrant]:
        """Items of the highest package tier whose ``min_level`` is at most ``level``"""
        packages = self._tables.equipment_packages
        tiers = packages.get(class_slug) or packages.get(PACKAGE_FALLBACK_KEY) or []
        eligible = [t for t in tiers if t.min_level <= level]
        if not eligible:
            return []
        return list(max(eligible, key=lambda t: t.min_level).items)
