from .character_manager import CharacterManager
from .character_session import CharacterSession
from .events import EventEmitter, EventType, EventData
from .factory import create_character_manager
from .manager_registry import get_all_manager_specs, get_manager_names

__all__ = [
    'CharacterManager',
    'CharacterSession',
    'EventEmitter',
    'EventType',
    'EventData',
    'create_character_manager',
    'get_all_manager_specs',
    'get_manager_names'
]
