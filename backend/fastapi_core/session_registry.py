"""
FastAPI Session Registry

Owns the long-lived services behind the HTTP surface: the rule set, the
engine hub, the character session and the export service. One registry is
built per application in the lifespan handler and stored on ``app.state``.
"""

import time
from typing import Any, Dict, Optional

from loguru import logger

from character.character_manager import CharacterManager
from character.character_session import CharacterSession
from character.export_service import CharacterExportService
from character.factory import create_character_manager
from character.storage import CharacterStore, InMemoryCharacterStore, JsonFileCharacterStore
from config.settings import Settings
from gamedata.loader import load_rule_set
from gamedata.rule_set import RuleSet
from utils.dice import DiceRoller


def create_store(settings: Settings) -> CharacterStore:
    """Build the storage backend selected in settings"""
    if settings.storage_backend == 'memory':
        logger.info("Using in-memory character storage")
        return InMemoryCharacterStore()
    logger.info(f"Using JSON character storage in {settings.storage_dir}")
    return JsonFileCharacterStore(settings.storage_dir)


class SessionRegistry:
    """Services shared by every request of one application"""

    def __init__(self, rule_set: RuleSet, store: CharacterStore, dice: Optional[DiceRoller] = None):
        self.rule_set = rule_set
        self.engine: CharacterManager = create_character_manager(rule_set, dice=dice)
        self.session = CharacterSession(store, self.engine)
        self.export_service = CharacterExportService(self.engine)
        self.started_at = time.time()

    @classmethod
    def from_settings(cls, settings: Settings) -> 'SessionRegistry':
        """
        Load the rule set and storage named by the settings

        Raises:
            RuleSetError: If the rule data cannot be loaded
        """
        rule_set = load_rule_set(settings.data_dir)
        return cls(rule_set, create_store(settings), dice=DiceRoller(seed=settings.dice_seed))

    async def start(self):
        await self.session.load()

    async def stop(self):
        pending = self.session.pending_writes
        if pending:
            logger.info(f"Waiting for {pending} pending character writes")
        await self.session.flush()

    def get_status(self) -> Dict[str, Any]:
        return {
            'loaded': self.session.is_loaded,
            'characters': len(self.session.list()),
            'pending_writes': self.session.pending_writes,
            'notifications': len(self.session.get_notifications()),
            'uptime': round(time.time() - self.started_at, 3),
        }
