"""
Spell Manager - derives the spellcasting block and manages spell slots and cantrips
"""

from typing import Any, Dict, List, Optional, Tuple
from loguru import logger

from gamedata.models import CharacterClass
from gamedata.rule_set import SLOT_LEVELS
from ..exceptions import InvalidChoiceError
from ..models import Character, SpellSelection, Spellcasting


SPELL_DC_BASE = 8


def _unique(values: List[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class SpellManager:
    """
    Spell Manager
    Uses CharacterManager as hub for rule data access
    """

    def __init__(self, character_manager):
        """
        Initialize the SpellManager

        Args:
            character_manager: Reference to parent CharacterManager
        """
        self.character_manager = character_manager
        self.rule_set = character_manager.rule_set

    # Derivation

    def has_spellcasting_at(self, cls: CharacterClass, level: int) -> bool:
        """Whether the class tables grant any slots, cantrips or spells at ``level``"""
        if cls.spellcasting is None:
            return False
        return (
            any(self.rule_set.spell_slots(cls, level))
            or self.rule_set.cantrips_known(cls.slug, level) > 0
            or bool(self.rule_set.spells_known(cls.slug, level))
        )

    def cantrip_limit(self, character: Character) -> int:
        """Cantrips allowed by the class table plus any bonus cantrips"""
        bonus = character.spellcasting.bonus_cantrips if character.spellcasting else 0
        return self.rule_set.cantrips_known(character.class_slug, character.level) + bonus

    def max_slot_level(self, slots: List[int]) -> int:
        return max((i + 1 for i, count in enumerate(slots) if count > 0), default=0)

    def derive_spellcasting(self, character: Character, cls: CharacterClass,
                            selection: SpellSelection, bonus_cantrips: int = 0) -> Optional[Spellcasting]:
        """
        Build the spellcasting block for a freshly derived character

        Args:
            character: Character with abilities, level and proficiency bonus set
            cls: Edition-resolved class
            selection: Spells picked during creation
            bonus_cantrips: Extra cantrips granted by class options

        Returns:
            Spellcasting block, or None when the class has no spellcasting at this level
        """
        if not self.has_spellcasting_at(cls, character.level):
            return None

        info = cls.spellcasting
        slots = self.rule_set.spell_slots(cls, character.level)
        cantrip_limit = self.rule_set.cantrips_known(cls.slug, character.level) + bonus_cantrips

        cantrips = _unique(selection.selected_cantrips)
        if len(cantrips) > cantrip_limit:
            logger.warning(f"Trimming {len(cantrips) - cantrip_limit} cantrips over the limit of {cantrip_limit} for {character.name}")
            cantrips = cantrips[:cantrip_limit]

        spellcasting = Spellcasting(
            ability=info.ability,
            spell_save_dc=0,
            spell_attack_bonus=0,
            spell_slots=slots,
            used_spell_slots=[0] * SLOT_LEVELS,
            spellcasting_type=info.type,
            cantrips_known=cantrips,
            bonus_cantrips=bonus_cantrips,
        )

        if info.type == 'known':
            known = _unique(selection.known_spells)
            limit = self.rule_set.spells_known(cls.slug, character.level)
            if limit is not None and len(known) > limit:
                logger.warning(f"Trimming known spells to {limit} for {character.name}")
                known = known[:limit]
            spellcasting.spells_known = known
        elif info.type == 'prepared':
            spellcasting.spells_known = self.available_spells(cls.slug, slots)
            spellcasting.prepared_spells = _unique(selection.prepared_spells)
        else:
            spellcasting.spellbook = _unique(selection.spellbook)
            spellcasting.prepared_spells = _unique(selection.daily_prepared)

        character.spellcasting = spellcasting
        self.recalculate_spell_stats(character)
        return spellcasting

    def available_spells(self, class_slug: str, slots: List[int]) -> List[str]:
        """Leveled class spells castable with the given slots"""
        top = self.max_slot_level(slots)
        return [
            s.slug for s in self.rule_set.list_spells(class_slug)
            if 1 <= s.level <= top
        ]

    def recalculate_spell_stats(self, character: Character):
        """Spell save DC = 8 + PB + mod, spell attack = PB + mod"""
        sc = character.spellcasting
        if sc is None:
            return
        mod = character.ability_mod(sc.ability)
        sc.spell_save_dc = SPELL_DC_BASE + character.proficiency_bonus + mod
        sc.spell_attack_bonus = character.proficiency_bonus + mod

    def refresh_spell_slots(self, character: Character, cls: CharacterClass):
        """
        Bring the spellcasting block in line with the tables at the current level

        Creates an empty block when the class first gains spellcasting and drops
        it when the tables no longer grant anything. Used slots are clamped.
        """
        if cls.spellcasting is None:
            return

        if not self.has_spellcasting_at(cls, character.level):
            if character.spellcasting is not None:
                logger.info(f"{character.name} loses spellcasting at level {character.level}")
            character.spellcasting = None
            return

        slots = self.rule_set.spell_slots(cls, character.level)
        if character.spellcasting is None:
            logger.info(f"{character.name} gains spellcasting at level {character.level}")
            character.spellcasting = Spellcasting(
                ability=cls.spellcasting.ability,
                spell_save_dc=0,
                spell_attack_bonus=0,
                spellcasting_type=cls.spellcasting.type,
                bonus_cantrips=self.character_manager.get_manager('class').option_bonus_cantrips(character, cls),
            )

        sc = character.spellcasting
        sc.spell_slots = slots
        sc.used_spell_slots = [min(used, total) for used, total in zip(sc.used_spell_slots, slots)]
        if sc.spellcasting_type == 'prepared':
            sc.spells_known = self.available_spells(cls.slug, slots)
        self.recalculate_spell_stats(character)

    def trim_cantrips(self, character: Character) -> List[str]:
        """Drop the most recently learned cantrips above the current limit"""
        sc = character.spellcasting
        if sc is None:
            return []
        limit = self.cantrip_limit(character)
        removed = sc.cantrips_known[limit:]
        if removed:
            sc.cantrips_known = sc.cantrips_known[:limit]
            for level, picks in list(sc.cantrip_choices_by_level.items()):
                kept = [c for c in picks if c not in removed]
                if kept:
                    sc.cantrip_choices_by_level[level] = kept
                else:
                    del sc.cantrip_choices_by_level[level]
            logger.info(f"{character.name} forgets cantrips {removed}")
        return removed

    def missing_cantrips(self, character: Character) -> int:
        if character.spellcasting is None:
            return 0
        return max(0, self.cantrip_limit(character) - len(character.spellcasting.cantrips_known))

    def add_cantrip(self, character: Character, slug: str):
        """
        Learn a cantrip and record it against the current level

        Raises:
            InvalidChoiceError: If the cantrip is already known or is a leveled spell
        """
        sc = character.spellcasting
        if sc is None:
            raise InvalidChoiceError(f"{character.name} has no spellcasting")
        if slug in sc.cantrips_known:
            raise InvalidChoiceError(f"Cantrip {slug} is already known")
        spell = self.rule_set.get_spell(slug)
        if spell is not None and spell.level != 0:
            raise InvalidChoiceError(f"{spell.name} is not a cantrip")
        sc.cantrips_known.append(slug)
        sc.cantrip_choices_by_level.setdefault(character.level, []).append(slug)

    def remove_level_cantrips(self, character: Character, level: int) -> List[str]:
        """Forget the cantrips picked when reaching ``level``"""
        sc = character.spellcasting
        if sc is None:
            return []
        picks = sc.cantrip_choices_by_level.pop(level, [])
        sc.cantrips_known = [c for c in sc.cantrips_known if c not in picks]
        return picks

    # Spell slots

    def _check_slot_request(self, character: Character, slot_level: int) -> Optional[str]:
        if character.spellcasting is None:
            return f"{character.name} cannot cast spells"
        if not 1 <= slot_level <= SLOT_LEVELS:
            return f"Spell slot level must be between 1 and {SLOT_LEVELS}, got {slot_level}"
        return None

    def expend_spell_slot(self, character: Character, slot_level: int) -> Tuple[bool, str]:
        """
        Mark one slot of ``slot_level`` as used

        Returns:
            (changed, message)
        """
        problem = self._check_slot_request(character, slot_level)
        if problem:
            return False, problem
        sc = character.spellcasting
        index = slot_level - 1
        if sc.used_spell_slots[index] >= sc.spell_slots[index]:
            return False, f"No level {slot_level} spell slots remaining"
        sc.used_spell_slots[index] += 1
        remaining = sc.spell_slots[index] - sc.used_spell_slots[index]
        return True, f"Expended a level {slot_level} spell slot ({remaining} remaining)"

    def regain_spell_slot(self, character: Character, slot_level: int) -> Tuple[bool, str]:
        """
        Restore one used slot of ``slot_level``

        Returns:
            (changed, message)
        """
        problem = self._check_slot_request(character, slot_level)
        if problem:
            return False, problem
        sc = character.spellcasting
        index = slot_level - 1
        if sc.used_spell_slots[index] == 0:
            return False, f"No used level {slot_level} spell slots to regain"
        sc.used_spell_slots[index] -= 1
        remaining = sc.spell_slots[index] - sc.used_spell_slots[index]
        return True, f"Regained a level {slot_level} spell slot ({remaining} remaining)"

    def reset_spell_slots(self, character: Character) -> int:
        """Zero every used slot, returning how many were restored"""
        sc = character.spellcasting
        if sc is None:
            return 0
        restored = sum(sc.used_spell_slots)
        sc.used_spell_slots = [0] * SLOT_LEVELS
        return restored

    def get_spell_summary(self, character: Character) -> Dict[str, Any]:
        sc = character.spellcasting
        if sc is None:
            return {'spellcaster': False}
        return {
            'spellcaster': True,
            'ability': sc.ability,
            'spell_save_dc': sc.spell_save_dc,
            'spell_attack_bonus': sc.spell_attack_bonus,
            'slots': [
                {'level': i + 1, 'total': total, 'used': used}
                for i, (total, used) in enumerate(zip(sc.spell_slots, sc.used_spell_slots)) if total
            ],
            'cantrips_known': list(sc.cantrips_known),
            'cantrip_limit': self.cantrip_limit(character),
        }
