"""
Character Session - in-memory view of every character, persisted in the background

Commands are computed by the engine hub, published to the in-memory view
straight away and then written to the store as a background task. A failed
write is logged, recorded as a notification and emitted as
PERSISTENCE_FAILED; the published value is kept.
"""

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional, Set

from loguru import logger

from .character_manager import CharacterManager
from .events import CharacterEvent, EventEmitter, EventType, PersistenceFailedEvent
from .exceptions import CharacterNotFoundError
from .models import Character, CommandResult, CreationInput
from .storage import CharacterStore


# Engine commands that take an existing character as their first argument
SESSION_COMMANDS = frozenset({
    'level_up', 'level_down', 'apply_asi', 'select_cantrip', 'select_subclass',
    'short_rest', 'long_rest', 'equip', 'unequip', 'add_item', 'remove_item',
    'expend_spell_slot', 'regain_spell_slot',
})


class CharacterSession(EventEmitter):
    """Publish-then-persist session over a CharacterStore"""

    def __init__(self, store: CharacterStore, engine: CharacterManager):
        """
        Args:
            store: Async persistence collaborator
            engine: Hub that runs every command
        """
        super().__init__()
        self.store = store
        self.engine = engine
        self._characters: Dict[str, Character] = {}
        self._pending_writes: Set[asyncio.Task] = set()
        self._last_write: Dict[str, asyncio.Task] = {}
        self._notifications: List[Dict[str, Any]] = []
        self.is_loaded = False

    async def load(self) -> int:
        """Populate the in-memory view from the store, returning how many were loaded"""
        characters = await self.store.get_all()
        self._characters = {c.id: c for c in characters}
        self.is_loaded = True
        logger.info(f"CharacterSession loaded {len(characters)} characters")
        return len(characters)

    # Reads

    def get(self, character_id: str) -> Character:
        """
        Raises:
            CharacterNotFoundError: If the id is not in the session
        """
        character = self._characters.get(character_id)
        if character is None:
            raise CharacterNotFoundError(character_id)
        return character

    def list(self) -> List[Character]:
        return list(self._characters.values())

    # Commands

    def create(self, creation: CreationInput) -> CommandResult:
        result = self.engine.create_character(creation)
        self.publish(result.character, EventType.CHARACTER_CREATED, result.message)
        return result

    def run(self, character_id: str, command: str, *args, **kwargs) -> CommandResult:
        """
        Run an engine command against a session character and publish the result

        Args:
            character_id: Character to run the command on
            command: Name of a CharacterManager command
            *args, **kwargs: Passed on to the command

        Returns:
            The command's CommandResult; unchanged results are not published
        """
        if command not in SESSION_COMMANDS:
            raise ValueError(f"Unknown command '{command}'")
        character = self.get(character_id)
        result = getattr(self.engine, command)(character, *args, **kwargs)
        if result.changed:
            self.publish(result.character, EventType.CHARACTER_UPDATED, result.message)
        else:
            logger.debug(f"{command} left {character_id} unchanged: {result.message}")
        return result

    def delete(self, character_id: str):
        """
        Raises:
            CharacterNotFoundError: If the id is not in the session
        """
        character = self.get(character_id)
        del self._characters[character_id]
        self.emit(CharacterEvent(
            event_type=EventType.CHARACTER_DELETED, source_manager='session',
            character_id=character_id, message=f"Deleted {character.name}"
        ))
        self._schedule(self.store.delete(character_id), character_id, 'delete')

    def add_characters(self, characters: Iterable[Character]) -> List[Character]:
        """Publish already validated characters, e.g. from an import"""
        added = []
        for character in characters:
            self.publish(character, EventType.CHARACTER_CREATED, f"Imported {character.name}")
            added.append(character)
        return added

    # Publish and persist

    def publish(self, character: Character, event_type: EventType = EventType.CHARACTER_UPDATED,
                message: Optional[str] = None):
        """Replace the in-memory value, notify listeners and schedule the write"""
        self._characters[character.id] = character
        self.emit(CharacterEvent(
            event_type=event_type, source_manager='session',
            character_id=character.id, message=message
        ))
        self._schedule(self.store.put(character), character.id, 'put')

    def _schedule(self, write, character_id: str, operation: str):
        # Writes for one id are chained so the store sees them in publish order
        previous = self._last_write.get(character_id)
        task = asyncio.create_task(self._persist(write, character_id, operation, previous), name=character_id)
        self._last_write[character_id] = task
        self._pending_writes.add(task)
        task.add_done_callback(self._write_done)

    def _write_done(self, task: asyncio.Task):
        self._pending_writes.discard(task)
        character_id = task.get_name()
        if self._last_write.get(character_id) is task:
            del self._last_write[character_id]

    async def _persist(self, write, character_id: str, operation: str,
                       previous: Optional[asyncio.Task] = None):
        if previous is not None:
            await asyncio.wait({previous})
        try:
            await write
        except Exception as e:
            logger.error(f"Failed to {operation} character {character_id}: {e}")
            self._notifications.append({
                'character_id': character_id,
                'operation': operation,
                'error': str(e),
                'timestamp': time.time(),
            })
            self.emit(PersistenceFailedEvent(
                event_type=EventType.PERSISTENCE_FAILED, source_manager='session',
                character_id=character_id, operation=operation, error=str(e)
            ))

    async def flush(self):
        """Wait until every scheduled write has finished"""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    # Notifications

    def get_notifications(self) -> List[Dict[str, Any]]:
        return list(self._notifications)

    def clear_notifications(self) -> int:
        count = len(self._notifications)
        self._notifications.clear()
        return count
