from .ability_manager import AbilityManager
from .class_manager import ClassManager
from .combat_manager import CombatManager
from .inventory_manager import InventoryManager
from .rest_manager import RestManager
from .spell_manager import SpellManager

__all__ = [
    'AbilityManager',
    'ClassManager',
    'CombatManager',
    'InventoryManager',
    'RestManager',
    'SpellManager',
]
