"""
Factory functions for creating properly configured CharacterManager instances.
"""

from typing import Optional
from loguru import logger

from gamedata.rule_set import RuleSet
from utils.dice import DiceRoller
from .character_manager import CharacterManager
from .manager_registry import get_all_manager_specs


def create_character_manager(rule_set: RuleSet, dice: Optional[DiceRoller] = None) -> CharacterManager:
    """
    Factory function that creates a CharacterManager with every manager registered.

    Args:
        rule_set: Rule data shared by every command
        dice: Dice roller, a fresh unseeded one when omitted

    Returns:
        CharacterManager instance with all managers registered
    """
    manager = CharacterManager(rule_set, dice=dice)

    for name, manager_class in get_all_manager_specs():
        manager.register_manager(name, manager_class)

    logger.info(f"Created CharacterManager with {len(manager.get_all_managers())} managers registered")
    return manager
