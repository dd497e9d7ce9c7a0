"""
Character creation service that derives a complete Character from creation input
"""
from typing import Iterable, List, Optional

from loguru import logger

from gamedata.models import Background, CharacterClass, Race
from utils.dice import DiceRoller
from .exceptions import IncompleteDataError
from .models import (
    Character, CreationInput, Currency, FeaturesAndTraits, HitDice, ProficiencySet, SubclassPending
)


COMMON_LANGUAGE = 'Common'


def _merge_unique(*groups: Iterable[str]) -> List[str]:
    merged = []
    for group in groups:
        for value in group:
            if value not in merged:
                merged.append(value)
    return merged


class CharacterCreationService:
    """Service to derive new characters from the choices made in the creation wizard"""

    def __init__(self, character_manager):
        self.character_manager = character_manager
        self.rule_set = character_manager.rule_set

    def derive(self, creation: CreationInput) -> Character:
        """
        Derive a fully normalized character

        Args:
            creation: Raw choices from the creation wizard

        Returns:
            Character that satisfies every invariant

        Raises:
            IncompleteDataError: If the race or class slug is unknown
        """
        race = self.rule_set.get_race(creation.race_slug)
        if race is None:
            raise IncompleteDataError(f"Unknown race '{creation.race_slug}'")
        cls = self.rule_set.get_class(creation.class_slug, creation.edition)
        if cls is None:
            raise IncompleteDataError(f"Unknown class '{creation.class_slug}' for edition {creation.edition}")

        background = None
        if creation.background:
            background = self.rule_set.get_background(creation.background)
            if background is None:
                logger.warning(f"Unknown background '{creation.background}', no background benefits applied")

        character = self._create_base(creation, race, cls, background)

        # Everything below mutates the freshly created record
        self._update_skills(character, creation, race, background)
        self._update_class_options(character, creation, cls)
        self._update_subclass(character, creation, cls)
        self._update_spellcasting(character, creation, cls)
        self._update_inventory(character, creation, cls, background)
        self._update_features(character, creation, race, cls)
        self._update_languages(character, creation, race, cls, background)
        self._update_proficiencies(character, race, cls, background)

        self.character_manager.get_manager('ability').recalculate_derived(character)
        logger.info(
            f"Derived {character.name}: level {character.level} {race.name} {cls.name}, "
            f"HP {character.max_hit_points}, AC {character.armor_class}"
        )
        return character

    def roll_hit_points(self, class_slug: str, edition: str = '2014',
                        roller: Optional[DiceRoller] = None) -> int:
        """
        Roll the class hit die for level 1 hit points

        Raises:
            IncompleteDataError: If the class slug is unknown
        """
        cls = self.rule_set.get_class(class_slug, edition)
        if cls is None:
            raise IncompleteDataError(f"Unknown class '{class_slug}'")
        roller = roller or self.character_manager.dice
        return roller.roll_dice(1, cls.hit_die)[0]

    def _create_base(self, creation: CreationInput, race: Race, cls: CharacterClass,
                     background: Optional[Background]) -> Character:
        """Abilities, proficiency bonus, hit points and hit dice"""
        ability_manager = self.character_manager.get_manager('ability')
        combat_manager = self.character_manager.get_manager('combat')

        variant = race.get_variant(creation.variant_slug)
        lineage = race.get_lineage(creation.lineage_slug)
        if creation.variant_slug and variant is None:
            logger.warning(f"Unknown variant '{creation.variant_slug}' for {race.name}")
        if creation.lineage_slug and lineage is None:
            logger.warning(f"Unknown lineage '{creation.lineage_slug}' for {race.name}")

        abilities = ability_manager.build_abilities(
            creation.abilities,
            ability_manager.racial_bonuses(race, variant, lineage),
            creation.background_ability_bonuses,
        )
        con_mod = abilities['CON'].modifier
        level = creation.level

        if creation.hp_calculation_method == 'rolled' and creation.rolled_hp is not None:
            die_value = min(creation.rolled_hp, cls.hit_die)
        else:
            if creation.hp_calculation_method == 'rolled':
                logger.warning(f"Rolled hit points requested for {creation.name} without a roll, using the maximum")
            die_value = cls.hit_die
        max_hp = combat_manager.level_one_hit_points(die_value, con_mod, race.hp_bonus_per_level * level)
        max_hp += (level - 1) * combat_manager.hit_point_increase(cls.hit_die, con_mod)

        return Character(
            name=creation.name,
            race=race.name,
            race_slug=race.slug,
            lineage_slug=lineage.slug if lineage else None,
            variant_slug=variant.slug if variant else None,
            class_name=cls.name,
            class_slug=cls.slug,
            level=level,
            alignment=creation.alignment,
            background=background.name if background else (creation.background or ''),
            edition=creation.edition,
            abilities=abilities,
            hit_points=max_hp,
            max_hit_points=max_hp,
            hit_dice=HitDice(current=level, max=level, die_type=cls.hit_die),
            speed=race.speed,
            proficiency_bonus=self.rule_set.proficiency_bonus(level),
            selected_feats=_merge_unique(creation.selected_feats),
            fighting_style=creation.selected_fighting_style,
            currency=Currency(gp=creation.starting_gold),
            features_and_traits=FeaturesAndTraits(
                personality=creation.personality,
                ideals=creation.ideals,
                bonds=creation.bonds,
                flaws=creation.flaws,
            ),
        )

    def _update_skills(self, character: Character, creation: CreationInput, race: Race,
                       background: Optional[Background]):
        proficient = _merge_unique(
            creation.selected_skills,
            background.skill_proficiencies if background else [],
            race.skill_proficiencies,
        )
        self.character_manager.get_manager('ability').build_skills(
            character, proficient, creation.expertise_skills
        )

    def _update_class_options(self, character: Character, creation: CreationInput, cls: CharacterClass):
        """Store class option choices and apply their skill overlays"""
        class_manager = self.character_manager.get_manager('class')
        ability_manager = self.character_manager.get_manager('ability')

        character.class_options = dict(creation.class_options)
        for option in class_manager.selected_options(character, cls):
            ability_manager.add_skill_bonuses(character, option.skill_bonuses, option.name)
        ability_manager.recalculate_skills(character)

    def _update_subclass(self, character: Character, creation: CreationInput, cls: CharacterClass):
        class_manager = self.character_manager.get_manager('class')
        if creation.subclass_slug:
            subclass = cls.get_subclass(creation.subclass_slug)
            if subclass is None:
                logger.warning(f"Unknown subclass '{creation.subclass_slug}' for {cls.name}")
            elif character.level < cls.subclass_level:
                logger.warning(f"{subclass.name} is not available before level {cls.subclass_level}, ignoring")
            else:
                character.subclass = subclass.slug

        if class_manager.needs_subclass(character, cls):
            character.pending_choices = [SubclassPending(options=class_manager.subclass_options(cls))]

    def _update_spellcasting(self, character: Character, creation: CreationInput, cls: CharacterClass):
        bonus_cantrips = self.character_manager.get_manager('class').option_bonus_cantrips(character, cls)
        self.character_manager.get_manager('spell').derive_spellcasting(
            character, cls, creation.spell_selection, bonus_cantrips
        )

    def _update_inventory(self, character: Character, creation: CreationInput, cls: CharacterClass,
                          background: Optional[Background]):
        """Build the merged inventory and equip starting items flagged as equipped"""
        inventory_manager = self.character_manager.get_manager('inventory')
        character.inventory = inventory_manager.build_inventory(creation, cls, background)

        for item in creation.starting_inventory:
            if not item.equipped:
                continue
            changed, message = inventory_manager.equip_item(character, item.equipment_slug)
            if not changed:
                logger.warning(f"Could not equip starting item for {character.name}: {message}")

        self.character_manager.get_manager('combat').recalculate_armor_class(character)

    def _update_features(self, character: Character, creation: CreationInput, race: Race, cls: CharacterClass):
        self.character_manager.get_manager('class').refresh_features(character, cls)

        traits = list(race.racial_traits)
        variant = race.get_variant(creation.variant_slug)
        lineage = race.get_lineage(creation.lineage_slug)
        for option in (variant, lineage):
            if option:
                traits.extend(option.racial_traits)
        character.features_and_traits.racial_traits = _merge_unique(traits)

    def _update_languages(self, character: Character, creation: CreationInput, race: Race,
                          cls: CharacterClass, background: Optional[Background]):
        """Common plus racial, class, background and chosen languages, sorted"""
        languages = {COMMON_LANGUAGE}
        languages.update(race.languages)
        languages.update(cls.languages)
        if background:
            languages.update(background.languages)
        languages.update(creation.known_languages)
        character.languages = sorted(languages)

    def _update_proficiencies(self, character: Character, race: Race, cls: CharacterClass,
                              background: Optional[Background]):
        options = self.character_manager.get_manager('class').selected_options(character, cls)
        character.proficiencies = ProficiencySet(
            armor=_merge_unique(
                cls.proficiencies.armor, race.proficiencies.armor,
                *(o.armor_proficiencies for o in options)
            ),
            weapons=_merge_unique(
                cls.proficiencies.weapons, race.proficiencies.weapons,
                *(o.weapon_proficiencies for o in options)
            ),
            tools=_merge_unique(
                cls.proficiencies.tools, race.proficiencies.tools,
                background.tool_proficiencies if background else []
            ),
            saving_throws=list(cls.saving_throws),
        )
