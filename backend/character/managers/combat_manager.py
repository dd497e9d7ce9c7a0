"""
Combat Manager - handles armor class, hit point arithmetic and combat statistics
Armor class is always recomputed from the equipped items, never patched.
"""

from typing import Any, Dict, Optional
from loguru import logger

from gamedata.models import CharacterClass, Equipment
from ..models import Character


UNARMORED_BASE_AC = 10
DEFAULT_SHIELD_BONUS = 2
DEFAULT_MEDIUM_MAX_DEX = 2


class CombatManager:
    """
    Combat Manager
    Uses CharacterManager as hub for rule data access
    """

    def __init__(self, character_manager):
        """
        Initialize the CombatManager

        Args:
            character_manager: Reference to parent CharacterManager
        """
        self.character_manager = character_manager
        self.rule_set = character_manager.rule_set

    def calculate_armor_class(self, character: Character) -> Dict[str, Any]:
        """
        Calculate total AC and its components

        Unarmored: 10 + DEX. Light: base + DEX. Medium: base + min(DEX, max bonus).
        Heavy: base. A shield in a weapon slot adds its bonus on top.

        Returns:
            Dict with total, base, dex_bonus, shield_bonus and the armor slug used
        """
        dex_mod = character.ability_mod('DEX')
        armor = self._get_equipped_armor(character)

        if armor is None:
            base, dex_bonus = UNARMORED_BASE_AC, dex_mod
        else:
            base = armor.base_ac if armor.base_ac is not None else UNARMORED_BASE_AC
            category = armor.armor_category
            if category == 'Heavy':
                dex_bonus = 0
            elif category == 'Medium':
                max_dex = armor.max_dex_bonus if armor.max_dex_bonus is not None else DEFAULT_MEDIUM_MAX_DEX
                dex_bonus = min(dex_mod, max_dex)
            else:
                dex_bonus = dex_mod

        shield_bonus = 0
        for slug in character.equipped_weapons:
            item = self.rule_set.get_equipment(slug)
            if item is not None and item.is_shield:
                shield_bonus += item.base_ac if item.base_ac is not None else DEFAULT_SHIELD_BONUS

        return {
            'total': base + dex_bonus + shield_bonus,
            'base': base,
            'dex_bonus': dex_bonus,
            'shield_bonus': shield_bonus,
            'armor': armor.slug if armor else None,
        }

    def recalculate_armor_class(self, character: Character) -> int:
        ac = self.calculate_armor_class(character)['total']
        if ac != character.armor_class:
            logger.debug(f"CombatManager: AC {character.armor_class} -> {ac} for {character.name}")
        character.armor_class = ac
        return ac

    def _get_equipped_armor(self, character: Character) -> Optional[Equipment]:
        if not character.equipped_armor:
            return None
        armor = self.rule_set.get_equipment(character.equipped_armor)
        if armor is None:
            logger.warning(f"Equipped armor '{character.equipped_armor}' is not in the rule set, treating as unarmored")
        return armor

    # Hit points

    @staticmethod
    def level_one_hit_points(die_value: int, con_mod: int, racial_bonus: int = 0) -> int:
        """Hit points at level 1: die value + CON modifier + racial bonus, at least 1"""
        return max(1, die_value + con_mod + racial_bonus)

    @staticmethod
    def hit_point_increase(hit_die: int, con_mod: int) -> int:
        """Hit points gained or lost per level: max(1, hd/2 + 1 + CON)"""
        return max(1, hit_die // 2 + 1 + con_mod)

    def level_hp_increase(self, character: Character, cls: CharacterClass) -> int:
        return self.hit_point_increase(cls.hit_die, character.ability_mod('CON'))

    def get_combat_summary(self, character: Character) -> Dict[str, Any]:
        """Get combat-relevant values for display"""
        ability_manager = self.character_manager.get_manager('ability')
        return {
            'armor_class': self.calculate_armor_class(character),
            'hit_points': {'current': character.hit_points, 'max': character.max_hit_points},
            'hit_dice': character.hit_dice.model_dump(),
            'initiative': character.initiative,
            'speed': character.speed,
            'proficiency_bonus': character.proficiency_bonus,
            'saving_throws': ability_manager.saving_throws(character) if ability_manager else {},
            'equipped_armor': character.equipped_armor,
            'equipped_weapons': list(character.equipped_weapons),
        }
