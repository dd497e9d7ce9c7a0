"""
Event system for character management
Provides pub/sub pattern between the engine hub, the session and its listeners
"""

import time
from typing import Any, Dict, List, Callable, Optional
from dataclasses import dataclass, field
from enum import Enum
from loguru import logger


class EventType(Enum):
    """Standard event types for character management"""
    CHARACTER_CREATED = 'character_created'
    CHARACTER_UPDATED = 'character_updated'
    CHARACTER_DELETED = 'character_deleted'
    LEVEL_GAINED = 'level_gained'
    LEVEL_LOST = 'level_lost'
    CHOICE_RESOLVED = 'choice_resolved'
    ITEM_EQUIPPED = 'item_equipped'
    ITEM_UNEQUIPPED = 'item_unequipped'
    INVENTORY_CHANGED = 'inventory_changed'
    REST_COMPLETED = 'rest_completed'
    SPELL_SLOTS_CHANGED = 'spell_slots_changed'
    PERSISTENCE_FAILED = 'persistence_failed'


@dataclass
class EventData:
    """Base class for event data"""
    event_type: EventType
    source_manager: str
    timestamp: float = field(default_factory=time.time)

    def validate(self) -> bool:
        """Validate event data"""
        return True


@dataclass
class CharacterEvent(EventData):
    """A character record was created, replaced or deleted"""
    character_id: str = ''
    message: Optional[str] = None

    def validate(self) -> bool:
        return bool(self.character_id)


@dataclass
class LevelChangedEvent(EventData):
    """Data for level up and level down events"""
    character_id: str = ''
    old_level: int = 0
    new_level: int = 0
    pending_choices: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        if self.new_level > self.old_level:
            self.event_type = EventType.LEVEL_GAINED
        else:
            self.event_type = EventType.LEVEL_LOST


@dataclass
class ItemEvent(EventData):
    """Data for equip, unequip and inventory change events"""
    character_id: str = ''
    equipment_slug: str = ''
    action: str = 'equipped'  # 'equipped', 'unequipped', 'added' or 'removed'
    quantity: int = 0

    def __post_init__(self):
        if self.action == 'equipped':
            self.event_type = EventType.ITEM_EQUIPPED
        elif self.action == 'unequipped':
            self.event_type = EventType.ITEM_UNEQUIPPED
        else:
            self.event_type = EventType.INVENTORY_CHANGED


@dataclass
class PersistenceFailedEvent(EventData):
    """A background write of a published character failed"""
    character_id: str = ''
    operation: str = 'put'
    error: str = ''

    def __post_init__(self):
        self.event_type = EventType.PERSISTENCE_FAILED


class EventEmitter:
    """Base class for objects that can emit and listen to events"""

    def __init__(self):
        self._observers: Dict[EventType, List[Callable]] = {}
        self._event_history: List[EventData] = []

    def on(self, event_type: EventType, callback: Callable[[EventData], None]):
        """
        Register a callback for an event type

        Args:
            event_type: The type of event to listen for
            callback: Function to call with the EventData when the event is emitted
        """
        self._observers.setdefault(event_type, []).append(callback)
        logger.debug(f"Registered callback for {event_type.value}")

    def off(self, event_type: EventType, callback: Callable[[EventData], None]):
        """
        Unregister a callback for an event type

        Args:
            event_type: The type of event
            callback: The callback to remove
        """
        if event_type in self._observers:
            try:
                self._observers[event_type].remove(callback)
                logger.debug(f"Unregistered callback for {event_type.value}")
            except ValueError:
                pass  # Callback not in list

    def emit(self, event: EventData):
        """
        Emit an event to all registered observers

        A failing observer is logged and does not stop the remaining observers.

        Args:
            event: The event to deliver
        """
        if not event.validate():
            logger.error(f"Invalid event data for {event.event_type.value}")
            return

        self._event_history.append(event)

        callbacks = self._observers.get(event.event_type, [])
        if callbacks:
            logger.debug(f"Emitting {event.event_type.value} from {event.source_manager}")
        for callback in list(callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in event callback for {event.event_type.value}: {e}")

    def emit_batch(self, events: List[EventData]):
        """
        Emit multiple events in order

        Args:
            events: List of events to emit
        """
        for event in events:
            self.emit(event)

    def get_event_history(self, event_type: Optional[EventType] = None) -> List[EventData]:
        """
        Get history of emitted events

        Args:
            event_type: Optional filter by event type

        Returns:
            List of event data
        """
        if event_type:
            return [e for e in self._event_history if e.event_type == event_type]
        return self._event_history.copy()

    def clear_event_history(self):
        """Clear the event history"""
        self._event_history.clear()
