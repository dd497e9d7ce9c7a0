"""
Class Manager - handles level progression, pending choices and class features
Level up and level down are exact inverses of each other for level, proficiency
bonus, hit points, hit dice, spell slots and cantrips known.
"""

from typing import Any, Dict, List, Optional
from loguru import logger

from gamedata.models import CharacterClass, ClassOption
from gamedata.rule_set import MAX_LEVEL, MIN_LEVEL
from ..exceptions import IncompleteDataError, InvalidChoiceError
from ..models import (
    AsiChoice, AsiPending, CantripPending, Character, SubclassPending
)


FIGHTING_STYLE_PREFIX = 'Fighting Style: '


class ClassManager:
    """Manages character level progression and class-driven choices"""

    def __init__(self, character_manager):
        """
        Initialize the ClassManager

        Args:
            character_manager: Reference to the parent CharacterManager
        """
        self.character_manager = character_manager
        self.rule_set = character_manager.rule_set

    def get_class(self, character: Character) -> CharacterClass:
        cls = self.rule_set.get_class(character.class_slug, character.edition)
        if cls is None:
            raise IncompleteDataError(f"Unknown class '{character.class_slug}' for {character.name}")
        return cls

    # Class options

    def selected_options(self, character: Character, cls: CharacterClass) -> List[ClassOption]:
        """Resolve the character's class option choices against the class data"""
        options = []
        for choice_id, option_slug in character.class_options.items():
            option = cls.options.get(choice_id, {}).get(option_slug)
            if option is None:
                logger.warning(f"Unknown class option {choice_id}={option_slug} for {cls.name}")
                continue
            options.append(option)
        return options

    def option_bonus_cantrips(self, character: Character, cls: CharacterClass) -> int:
        return sum(o.bonus_cantrips for o in self.selected_options(character, cls))

    # Features

    def compute_class_features(self, character: Character, cls: CharacterClass) -> List[str]:
        """
        Class features up to the character's level, then subclass features,
        the fighting style and class option features
        """
        features = cls.features_up_to(character.level)
        subclass = cls.get_subclass(character.subclass)
        if subclass:
            for feature_level in sorted(subclass.features_by_level):
                if feature_level <= character.level:
                    features.extend(subclass.features_by_level[feature_level])
        if character.fighting_style:
            features.append(f"{FIGHTING_STYLE_PREFIX}{character.fighting_style}")
        features.extend(o.name for o in self.selected_options(character, cls))
        return features

    def refresh_features(self, character: Character, cls: CharacterClass):
        character.features_and_traits.class_features = self.compute_class_features(character, cls)

    def subclass_options(self, cls: CharacterClass) -> List[str]:
        return [s.slug for s in cls.subclasses]

    def needs_subclass(self, character: Character, cls: CharacterClass) -> bool:
        return bool(cls.subclasses) and not character.subclass and character.level >= cls.subclass_level

    # Level progression

    def level_up(self, character: Character) -> Dict[str, Any]:
        """
        Advance one level

        Increases proficiency bonus, hit points (healing to full), hit dice and
        spell slots, then works out which choices the new level asks for.

        Args:
            character: Working copy to mutate

        Returns:
            Dict with changed, message, pending choices and the hit point gain
        """
        if character.level >= MAX_LEVEL:
            return {'changed': False, 'message': f"{character.name} is already at max level!", 'pending': []}

        cls = self.get_class(character)
        combat_manager = self.character_manager.get_manager('combat')
        spell_manager = self.character_manager.get_manager('spell')

        old_level = character.level
        character.level = old_level + 1
        character.proficiency_bonus = self.rule_set.proficiency_bonus(character.level, default=character.proficiency_bonus)

        hp_gain = combat_manager.level_hp_increase(character, cls)
        character.max_hit_points += hp_gain
        character.hit_points = character.max_hit_points
        character.hit_dice.max += 1
        character.hit_dice.current += 1

        spell_manager.refresh_spell_slots(character, cls)

        pending = []
        if character.level in self.rule_set.asi_levels(cls):
            pending.append(AsiPending())
        missing = spell_manager.missing_cantrips(character)
        if missing:
            pending.append(CantripPending(count=missing))
        if self.needs_subclass(character, cls):
            pending.append(SubclassPending(options=self.subclass_options(cls)))
        character.pending_choices = pending

        self.refresh_features(character, cls)
        self.character_manager.get_manager('ability').recalculate_derived(character)

        logger.info(f"{character.name} levelled up {old_level} -> {character.level} (+{hp_gain} HP, {len(pending)} pending choices)")
        return {
            'changed': True,
            'message': f"{character.name} is now level {character.level}!",
            'pending': pending,
            'old_level': old_level,
            'new_level': character.level,
            'hp_change': hp_gain,
        }

    def level_down(self, character: Character) -> Dict[str, Any]:
        """
        Remove one level, undoing what the matching level up granted

        The ability score improvement and cantrips chosen at the removed level are
        reverted before hit points are recalculated, a subclass chosen below its
        unlock level is cleared and any cantrips above the table are forgotten.

        Args:
            character: Working copy to mutate

        Returns:
            Dict with changed, message and the hit point loss
        """
        if character.level <= MIN_LEVEL:
            return {'changed': False, 'message': f"{character.name} is already at level 1.", 'pending': []}

        cls = self.get_class(character)
        combat_manager = self.character_manager.get_manager('combat')
        spell_manager = self.character_manager.get_manager('spell')
        ability_manager = self.character_manager.get_manager('ability')

        old_level = character.level
        self._revert_asi(character, old_level)
        removed_cantrips = spell_manager.remove_level_cantrips(character, old_level)

        hp_loss = combat_manager.level_hp_increase(character, cls)
        character.level = old_level - 1
        character.proficiency_bonus = self.rule_set.proficiency_bonus(character.level, default=character.proficiency_bonus)
        character.max_hit_points = max(1, character.max_hit_points - hp_loss)
        character.hit_points = character.max_hit_points
        character.hit_dice.max = max(1, character.hit_dice.max - 1)
        character.hit_dice.current = min(character.hit_dice.current, character.hit_dice.max)

        spell_manager.refresh_spell_slots(character, cls)

        if character.subclass and character.level < cls.subclass_level:
            logger.info(f"{character.name} loses subclass {character.subclass} below level {cls.subclass_level}")
            character.subclass = None
        removed_cantrips += spell_manager.trim_cantrips(character)

        character.pending_choices = []
        self.refresh_features(character, cls)
        ability_manager.recalculate_derived(character)

        logger.info(f"{character.name} levelled down {old_level} -> {character.level} (-{hp_loss} HP)")
        return {
            'changed': True,
            'message': f"{character.name} is now level {character.level}.",
            'pending': [],
            'old_level': old_level,
            'new_level': character.level,
            'hp_change': -hp_loss,
            'removed_cantrips': removed_cantrips,
        }

    def _revert_asi(self, character: Character, level: int):
        choice = character.asi_choices.pop(level, None)
        if choice is None:
            return
        if choice.increases:
            self.character_manager.get_manager('ability').apply_increases(
                character, {a: -v for a, v in choice.increases.items()}
            )
        if choice.feat and choice.feat in character.selected_feats:
            character.selected_feats.remove(choice.feat)
        logger.info(f"{character.name}: reverted level {level} ability score improvement")

    # Pending choice resolution

    def _take_pending(self, character: Character, choice_type: str):
        pending = next((p for p in character.pending_choices if p.type == choice_type), None)
        if pending is None:
            raise InvalidChoiceError(f"No pending {choice_type} choice for {character.name}")
        return pending

    def apply_asi(self, character: Character, increases: Optional[Dict[str, int]] = None,
                  feat: Optional[str] = None) -> Dict[str, Any]:
        """
        Resolve a pending ability score improvement

        Args:
            character: Working copy to mutate
            increases: Ability -> points, totalling 2 with no score above 20
            feat: Feat slug taken instead of the increases

        Raises:
            InvalidChoiceError: No ASI is pending or the allocation is invalid
        """
        pending = self._take_pending(character, 'asi')
        if bool(increases) == bool(feat):
            raise InvalidChoiceError("Choose either ability increases or a feat")

        ability_manager = self.character_manager.get_manager('ability')
        if feat:
            feat_record = self.rule_set.get_feat(feat)
            if feat_record is None:
                raise InvalidChoiceError(f"Unknown feat {feat}")
            if feat in character.selected_feats:
                raise InvalidChoiceError(f"{feat_record.name} is already selected")
            character.selected_feats.append(feat)
            message = f"{character.name} gains the {feat_record.name} feat"
        else:
            errors = ability_manager.validate_increases(character, increases)
            if errors:
                raise InvalidChoiceError('; '.join(errors))
            ability_manager.apply_increases(character, increases)
            message = f"{character.name} improves " + ', '.join(f"{a} +{v}" for a, v in increases.items())

        character.asi_choices[character.level] = AsiChoice(increases=dict(increases or {}), feat=feat)
        character.pending_choices.remove(pending)
        logger.info(message)
        return {'changed': True, 'message': message, 'pending': list(character.pending_choices)}

    def select_cantrip(self, character: Character, slug: str) -> Dict[str, Any]:
        """
        Resolve one pending cantrip pick

        Raises:
            InvalidChoiceError: No cantrip is pending or the cantrip is not allowed
        """
        pending = self._take_pending(character, 'cantrip')
        self.character_manager.get_manager('spell').add_cantrip(character, slug)
        if pending.count > 1:
            pending.count -= 1
        else:
            character.pending_choices.remove(pending)
        return {'changed': True, 'message': f"{character.name} learns {slug}", 'pending': list(character.pending_choices)}

    def select_subclass(self, character: Character, slug: str) -> Dict[str, Any]:
        """
        Resolve a pending subclass choice

        Raises:
            InvalidChoiceError: No subclass is pending or the subclass is unknown
        """
        pending = self._take_pending(character, 'subclass')
        cls = self.get_class(character)
        subclass = cls.get_subclass(slug)
        if subclass is None:
            raise InvalidChoiceError(f"Unknown subclass {slug} for {cls.name}")

        character.subclass = subclass.slug
        character.pending_choices.remove(pending)
        self.refresh_features(character, cls)
        message = f"{character.name} follows the {subclass.name}"
        logger.info(message)
        return {'changed': True, 'message': message, 'pending': list(character.pending_choices)}

    def get_class_summary(self, character: Character) -> Dict[str, Any]:
        cls = self.get_class(character)
        subclass = cls.get_subclass(character.subclass)
        asi_levels = self.rule_set.asi_levels(cls)
        return {
            'class': cls.name,
            'subclass': subclass.name if subclass else None,
            'level': character.level,
            'hit_die': cls.hit_die,
            'subclass_level': cls.subclass_level,
            'next_asi_level': next((lvl for lvl in asi_levels if lvl > character.level), None),
            'features': list(character.features_and_traits.class_features),
            'pending_choices': [p.model_dump() for p in character.pending_choices],
        }
