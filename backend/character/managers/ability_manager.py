"""
Ability Manager - handles ability scores, modifiers and skills
Applies racial and background bonuses, ability score improvements and
recomputes every value derived from a modifier.
"""

from typing import Dict, Iterable, List, Optional
from loguru import logger

from gamedata.models import Race, RaceOption
from gamedata.rule_set import ABILITIES, SKILL_TO_ABILITY
from ..models import AbilityScore, Character, SkillBonusEntry, SkillEntry, ability_modifier


MAX_ABILITY_SCORE = 20
ABILITY_SCORE_FLOOR = 1
ABILITY_SCORE_CEILING = 30
ASI_TOTAL_POINTS = 2


class AbilityManager:
    """Manages character ability scores and the skills derived from them"""

    def __init__(self, character_manager):
        """
        Initialize the AbilityManager

        Args:
            character_manager: Reference to parent CharacterManager
        """
        self.character_manager = character_manager
        self.rule_set = character_manager.rule_set

    def racial_bonuses(self, race: Race, variant: Optional[RaceOption] = None,
                       lineage: Optional[RaceOption] = None) -> Dict[str, int]:
        """
        Combine the ability bonuses of a race, its variant and its lineage

        A variant's bonuses replace the base race's; a lineage adds its own.

        Returns:
            Dict mapping ability to total racial bonus
        """
        bonuses = dict(variant.ability_bonuses if variant else race.ability_bonuses)
        if lineage:
            for ability, value in lineage.ability_bonuses.items():
                bonuses[ability] = bonuses.get(ability, 0) + value
        return bonuses

    def build_abilities(self, raw_scores: Dict[str, int], *bonus_sets: Dict[str, int]) -> Dict[str, AbilityScore]:
        """
        Final ability scores from raw scores plus any number of bonus maps

        Totals are capped to [1, 30].

        Args:
            raw_scores: Scores chosen by the player
            bonus_sets: Racial, background or other bonus maps to add

        Returns:
            Dict mapping ability to AbilityScore
        """
        abilities = {}
        for ability in ABILITIES:
            score = raw_scores.get(ability, 10)
            for bonuses in bonus_sets:
                score += bonuses.get(ability, 0)
            capped = min(max(score, ABILITY_SCORE_FLOOR), ABILITY_SCORE_CEILING)
            if capped != score:
                logger.warning(f"{ability} score {score} capped to {capped}")
            abilities[ability] = AbilityScore.from_score(capped)
        return abilities

    def build_skills(self, character: Character, proficient: Iterable[str],
                     expertise: Iterable[str] = ()) -> Dict[str, SkillEntry]:
        """
        Build the full skill map for a character

        Expertise implies proficiency. Unknown skill names are ignored.
        """
        expertise_set = {s for s in expertise if s in SKILL_TO_ABILITY}
        proficient_set = {s for s in proficient if s in SKILL_TO_ABILITY} | expertise_set
        for name in set(proficient) | set(expertise):
            if name not in SKILL_TO_ABILITY:
                logger.warning(f"Ignoring unknown skill '{name}'")

        skills = {
            name: SkillEntry(proficient=name in proficient_set, expertise=name in expertise_set)
            for name in SKILL_TO_ABILITY
        }
        character.skills = skills
        self.recalculate_skills(character)
        return skills

    def skill_value(self, character: Character, skill_name: str) -> int:
        entry = character.skills.get(skill_name) or SkillEntry()
        value = character.ability_mod(SKILL_TO_ABILITY[skill_name])
        if entry.proficient:
            value += character.proficiency_bonus * (2 if entry.expertise else 1)
        for bonus in character.skill_bonuses:
            if bonus.skill == skill_name:
                value += character.ability_mod(bonus.ability)
        return value

    def recalculate_skills(self, character: Character):
        """Recompute every skill value from modifiers, proficiency and overlays"""
        for name, entry in character.skills.items():
            if name in SKILL_TO_ABILITY:
                entry.value = self.skill_value(character, name)

    def add_skill_bonuses(self, character: Character, bonuses: Iterable, source: str):
        """Record ability-modifier overlays on skills, skipping exact duplicates"""
        existing = {(b.skill, b.ability, b.source) for b in character.skill_bonuses}
        for bonus in bonuses:
            key = (bonus.skill, bonus.ability, source)
            if key not in existing:
                character.skill_bonuses.append(SkillBonusEntry(skill=bonus.skill, ability=bonus.ability, source=source))
                existing.add(key)

    def saving_throws(self, character: Character) -> Dict[str, int]:
        """Saving throw bonus per ability"""
        proficient = set(character.proficiencies.saving_throws)
        return {
            ability: character.ability_mod(ability) + (character.proficiency_bonus if ability in proficient else 0)
            for ability in ABILITIES
        }

    def validate_increases(self, character: Character, increases: Dict[str, int]) -> List[str]:
        """
        Check an ability score improvement allocation

        Returns:
            List of problems, empty when the allocation is valid
        """
        errors = []
        unknown = [a for a in increases if a not in ABILITIES]
        if unknown:
            errors.append(f"Unknown abilities: {', '.join(unknown)}")
        if any(v < 1 for v in increases.values()):
            errors.append("Each increase must be at least 1")
        total = sum(increases.values())
        if total != ASI_TOTAL_POINTS:
            errors.append(f"Increases must total {ASI_TOTAL_POINTS}, got {total}")
        for ability, value in increases.items():
            if ability in character.abilities and character.abilities[ability].score + value > MAX_ABILITY_SCORE:
                errors.append(f"{ability} would exceed {MAX_ABILITY_SCORE}")
        return errors

    def apply_increases(self, character: Character, increases: Dict[str, int]):
        """Add (or with negative values, revert) ability score changes and refresh derived values"""
        for ability, value in increases.items():
            current = character.abilities[ability].score
            new_score = max(ABILITY_SCORE_FLOOR, min(ABILITY_SCORE_CEILING, current + value))
            character.abilities[ability] = AbilityScore.from_score(new_score)
            logger.debug(f"AbilityManager: {ability} {current} -> {new_score}")
        self.recalculate_derived(character)

    def recalculate_derived(self, character: Character):
        """
        Refresh every value that depends on ability modifiers or proficiency bonus

        Modifiers, skills, initiative, spell save DC and attack bonus, and armor class.
        """
        for ability, entry in character.abilities.items():
            if entry.modifier != ability_modifier(entry.score):
                character.abilities[ability] = AbilityScore.from_score(entry.score)
        self.recalculate_skills(character)
        character.initiative = character.ability_mod('DEX')

        spell_manager = self.character_manager.get_manager('spell')
        if spell_manager:
            spell_manager.recalculate_spell_stats(character)
        combat_manager = self.character_manager.get_manager('combat')
        if combat_manager:
            combat_manager.recalculate_armor_class(character)
