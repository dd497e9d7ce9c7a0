"""
CharacterManager - hub wiring the rule managers to a RuleSet and a dice roller
Every command runs in a transaction on a deep copy of the input character and
returns a CommandResult; the input is never mutated.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from loguru import logger

from gamedata.rule_set import RuleSet
from utils.dice import DiceRoller
from .events import CharacterEvent, EventEmitter, EventType, ItemEvent, LevelChangedEvent
from .exceptions import CharacterInvariantError
from .models import Character, CommandResult, CreationInput


class Transaction:
    """A working copy of a character that is either committed or discarded"""

    def __init__(self, manager: 'CharacterManager', character: Character, command: str):
        self.id = f"txn_{int(time.time() * 1000)}"
        self.manager = manager
        self.command = command
        self.original = character
        self.working = character.model_copy(deep=True)
        self.timestamp = time.time()

    def rollback(self, message: Optional[str] = None) -> CommandResult:
        """Discard the working copy and hand back the untouched original"""
        logger.debug(f"Rolling back {self.command} ({self.id}): {message}")
        return CommandResult(character=self.original, message=message, changed=False)

    def commit(self, message: Optional[str] = None, pending: Optional[List[Any]] = None,
               summary=None) -> CommandResult:
        """
        Verify the working copy and finalize it

        Raises:
            CharacterInvariantError: If the working copy breaks an invariant
        """
        self.manager.verify(self.working)
        logger.debug(f"Committed {self.command} ({self.id}) in {time.time() - self.timestamp:.4f}s")
        return CommandResult(
            character=self.working,
            message=message,
            pending=list(pending or []),
            changed=True,
            summary=summary,
        )


class CharacterManager(EventEmitter):
    """
    Rules engine hub
    Owns the manager registry and exposes one method per engine command
    """

    def __init__(self, rule_set: RuleSet, dice: Optional[DiceRoller] = None):
        """
        Initialize the character manager

        Args:
            rule_set: Rule data shared by every command
            dice: Dice roller used by rolled hit points and short rests
        """
        super().__init__()
        if rule_set is None:
            raise ValueError("rule_set is required")
        self.rule_set = rule_set
        self.dice = dice or DiceRoller()

        # Manager registry
        self._managers: Dict[str, Any] = {}
        self._creation_service = None

        logger.info("CharacterManager initialized")

    # Manager registry

    def register_manager(self, name: str, manager_class: Type):
        """
        Register a subsystem manager

        Args:
            name: Manager name (e.g., 'class', 'spell')
            manager_class: Manager class to instantiate with this hub
        """
        if not callable(manager_class):
            raise ValueError(f"Manager class {name} is not callable")

        try:
            manager_instance = manager_class(self)
        except Exception as e:
            logger.error(f"Failed to create {name} manager: {e}")
            raise RuntimeError(f"Could not create {name} manager: {e}") from e

        self._managers[name] = manager_instance
        logger.debug(f"Registered {name} manager")

    def get_manager(self, name: str):
        """
        Get a registered manager by name.

        Args:
            name: Manager name

        Returns:
            Manager instance or None if not registered
        """
        return self._managers.get(name)

    def get_all_managers(self) -> Dict[str, Any]:
        return dict(self._managers)

    @property
    def creation_service(self):
        if self._creation_service is None:
            from .character_creation_service import CharacterCreationService
            self._creation_service = CharacterCreationService(self)
        return self._creation_service

    # Validation

    def validate_character(self, character: Character) -> Tuple[bool, List[str]]:
        """
        Check a character against its own invariants and the rule data

        On top of the record's own checks this verifies armor class, the
        proficiency bonus and the cantrip limit against the rule set.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = character.invariant_violations()

        combat_manager = self.get_manager('combat')
        if combat_manager:
            expected_ac = combat_manager.calculate_armor_class(character)['total']
            if character.armor_class != expected_ac:
                errors.append(f"armor_class {character.armor_class} should be {expected_ac}")

        expected_pb = self.rule_set.proficiency_bonus(character.level, default=None)
        if expected_pb is not None and character.proficiency_bonus != expected_pb:
            errors.append(f"proficiency_bonus {character.proficiency_bonus} should be {expected_pb}")

        spell_manager = self.get_manager('spell')
        if spell_manager and character.spellcasting is not None:
            limit = spell_manager.cantrip_limit(character)
            known = len(character.spellcasting.cantrips_known)
            if known > limit:
                errors.append(f"{known} cantrips known, limit is {limit}")

        return len(errors) == 0, errors

    def verify(self, character: Character):
        """Raise CharacterInvariantError if the character is inconsistent"""
        is_valid, errors = self.validate_character(character)
        if not is_valid:
            logger.error(f"Character {character.id} failed validation: {errors}")
            raise CharacterInvariantError(errors)

    # Commands

    def _execute(self, character: Character, command: str,
                 operation: Callable[[Character], Union[Dict[str, Any], Tuple[bool, str]]]) -> CommandResult:
        txn = Transaction(self, character, command)
        outcome = operation(txn.working)
        if isinstance(outcome, tuple):
            changed, message = outcome
            outcome = {'changed': changed, 'message': message}
        if not outcome.get('changed', True):
            return txn.rollback(outcome.get('message'))
        return txn.commit(outcome.get('message'), outcome.get('pending'), outcome.get('summary'))

    def create_character(self, creation: CreationInput) -> CommandResult:
        """
        Derive a new character from creation input

        Raises:
            IncompleteDataError: If the race or class is unknown
        """
        character = self.creation_service.derive(creation)
        self.verify(character)
        self.emit(CharacterEvent(
            event_type=EventType.CHARACTER_CREATED, source_manager='creation',
            character_id=character.id, message=f"Created {character.name}"
        ))
        return CommandResult(character=character, message=f"Created {character.name}",
                             pending=list(character.pending_choices))

    def roll_hit_points(self, class_slug: str, edition: str = '2014') -> int:
        return self.creation_service.roll_hit_points(class_slug, edition, self.dice)

    def level_up(self, character: Character) -> CommandResult:
        result = self._execute(character, 'level_up', self.get_manager('class').level_up)
        if result.changed:
            self._emit_level_change(character, result)
        return result

    def level_down(self, character: Character) -> CommandResult:
        result = self._execute(character, 'level_down', self.get_manager('class').level_down)
        if result.changed:
            self._emit_level_change(character, result)
        return result

    def _emit_level_change(self, before: Character, result: CommandResult):
        self.emit(LevelChangedEvent(
            event_type=EventType.LEVEL_GAINED, source_manager='class',
            character_id=before.id, old_level=before.level, new_level=result.character.level,
            pending_choices=[p.model_dump() for p in result.pending],
        ))

    def apply_asi(self, character: Character, increases: Optional[Dict[str, int]] = None,
                  feat: Optional[str] = None) -> CommandResult:
        result = self._execute(
            character, 'apply_asi',
            lambda c: self.get_manager('class').apply_asi(c, increases=increases, feat=feat)
        )
        self._emit_choice_resolved(result)
        return result

    def select_cantrip(self, character: Character, slug: str) -> CommandResult:
        result = self._execute(character, 'select_cantrip', lambda c: self.get_manager('class').select_cantrip(c, slug))
        self._emit_choice_resolved(result)
        return result

    def select_subclass(self, character: Character, slug: str) -> CommandResult:
        result = self._execute(character, 'select_subclass', lambda c: self.get_manager('class').select_subclass(c, slug))
        self._emit_choice_resolved(result)
        return result

    def _emit_choice_resolved(self, result: CommandResult):
        self.emit(CharacterEvent(
            event_type=EventType.CHOICE_RESOLVED, source_manager='class',
            character_id=result.character.id, message=result.message
        ))

    def short_rest(self, character: Character, dice: int) -> CommandResult:
        """
        Raises:
            InvalidRestRequestError: If dice is outside [1, current hit dice]
        """
        result = self._execute(character, 'short_rest', lambda c: self.get_manager('rest').short_rest(c, dice))
        self._emit_rest(result)
        return result

    def long_rest(self, character: Character) -> CommandResult:
        result = self._execute(character, 'long_rest', self.get_manager('rest').long_rest)
        self._emit_rest(result)
        return result

    def _emit_rest(self, result: CommandResult):
        self.emit(CharacterEvent(
            event_type=EventType.REST_COMPLETED, source_manager='rest',
            character_id=result.character.id, message=result.message
        ))

    def equip(self, character: Character, slug: str) -> CommandResult:
        result = self._execute(character, 'equip', lambda c: self.get_manager('inventory').equip_item(c, slug))
        self._emit_item(result, slug, 'equipped')
        return result

    def unequip(self, character: Character, slug: str) -> CommandResult:
        result = self._execute(character, 'unequip', lambda c: self.get_manager('inventory').unequip_item(c, slug))
        self._emit_item(result, slug, 'unequipped')
        return result

    def add_item(self, character: Character, slug: str, quantity: int = 1) -> CommandResult:
        result = self._execute(character, 'add_item', lambda c: self.get_manager('inventory').add_item(c, slug, quantity))
        self._emit_item(result, slug, 'added', quantity)
        return result

    def remove_item(self, character: Character, slug: str, quantity: int = 1) -> CommandResult:
        result = self._execute(character, 'remove_item', lambda c: self.get_manager('inventory').remove_item(c, slug, quantity))
        self._emit_item(result, slug, 'removed', quantity)
        return result

    def _emit_item(self, result: CommandResult, slug: str, action: str, quantity: int = 1):
        if result.changed:
            self.emit(ItemEvent(
                event_type=EventType.INVENTORY_CHANGED, source_manager='inventory',
                character_id=result.character.id, equipment_slug=slug, action=action, quantity=quantity
            ))

    def expend_spell_slot(self, character: Character, slot_level: int) -> CommandResult:
        result = self._execute(character, 'expend_spell_slot', lambda c: self.get_manager('spell').expend_spell_slot(c, slot_level))
        self._emit_slots(result)
        return result

    def regain_spell_slot(self, character: Character, slot_level: int) -> CommandResult:
        result = self._execute(character, 'regain_spell_slot', lambda c: self.get_manager('spell').regain_spell_slot(c, slot_level))
        self._emit_slots(result)
        return result

    def _emit_slots(self, result: CommandResult):
        if result.changed:
            self.emit(CharacterEvent(
                event_type=EventType.SPELL_SLOTS_CHANGED, source_manager='spell',
                character_id=result.character.id, message=result.message
            ))

    # Summaries

    def get_character_summary(self, character: Character) -> Dict[str, Any]:
        """Get a summary of the character aggregated from the managers"""
        return {
            'id': character.id,
            'name': character.name,
            'race': character.race,
            'class': self.get_manager('class').get_class_summary(character),
            'combat': self.get_manager('combat').get_combat_summary(character),
            'inventory': self.get_manager('inventory').get_inventory_summary(character),
            'spellcasting': self.get_manager('spell').get_spell_summary(character),
        }
