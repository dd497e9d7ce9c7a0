"""
Central registry for all character managers.
Defines the standard set of managers and their registration order.
"""

from typing import Type, List, Tuple
from .managers import (
    AbilityManager,
    ClassManager,
    CombatManager,
    InventoryManager,
    RestManager,
    SpellManager,
)

# Managers only reach each other through get_manager at call time, so order
# only affects the order of the registration log lines
MANAGER_REGISTRY: List[Tuple[str, Type]] = [
    ('ability', AbilityManager),     # Scores, modifiers, skills
    ('combat', CombatManager),       # Armor class and hit point arithmetic
    ('inventory', InventoryManager), # Starting inventory, equip/unequip/add/remove
    ('spell', SpellManager),         # Spellcasting block, slots and cantrips
    ('class', ClassManager),         # Level progression and pending choices
    ('rest', RestManager),           # Short and long rests
]


def get_all_manager_specs() -> List[Tuple[str, Type]]:
    """
    Get all manager specifications for registration.

    Returns:
        List of (name, class) tuples in proper registration order
    """
    return MANAGER_REGISTRY.copy()


def get_manager_names() -> List[str]:
    """
    Get just the names of all registered managers.

    Returns:
        List of manager names
    """
    return [name for name, _ in MANAGER_REGISTRY]
