"""
Character persistence collaborators

``CharacterStore`` is the async key-value protocol the session persists
through. Two implementations: an in-memory dict and one JSON file per
character id, written atomically.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union, runtime_checkable

from loguru import logger
from pydantic import ValidationError

from .exceptions import CharacterForgeError
from .models import Character


@runtime_checkable
class CharacterStore(Protocol):
    async def get(self, character_id: str) -> Optional[Character]: ...

    async def get_all(self) -> List[Character]: ...

    async def put(self, character: Character) -> None: ...

    async def delete(self, character_id: str) -> bool: ...


class InMemoryCharacterStore:
    """Store that keeps validated copies in a dict"""

    def __init__(self):
        self._characters: Dict[str, Character] = {}

    async def get(self, character_id: str) -> Optional[Character]:
        character = self._characters.get(character_id)
        return character.model_copy(deep=True) if character else None

    async def get_all(self) -> List[Character]:
        return [c.model_copy(deep=True) for c in self._characters.values()]

    async def put(self, character: Character) -> None:
        self._characters[character.id] = character.model_copy(deep=True)

    async def delete(self, character_id: str) -> bool:
        return self._characters.pop(character_id, None) is not None


async def _run_blocking(func, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: func(*args, **kwargs))


def _safe_name(name: str) -> str:
    return "".join(c for c in name if c.isalnum() or c in ("_", "-")).strip()


class JsonFileCharacterStore:
    """Store with one ``<id>.json`` file per character"""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def _path(self, character_id: str) -> Path:
        safe = _safe_name(character_id)
        if not safe:
            raise ValueError(f"Invalid character id {character_id!r}")
        return self.base_dir / f"{safe}.json"

    def _load(self, path: Path) -> Optional[Character]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return Character.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError, CharacterForgeError) as e:
            logger.error(f"Skipping unreadable character file {path}: {e}")
            return None

    async def get(self, character_id: str) -> Optional[Character]:
        path = self._path(character_id)
        if not path.exists():
            return None
        return await _run_blocking(self._load, path)

    async def get_all(self) -> List[Character]:
        def _load_all():
            if not self.base_dir.is_dir():
                return []
            characters = []
            for path in sorted(self.base_dir.glob("*.json")):
                character = self._load(path)
                if character is not None:
                    characters.append(character)
            return characters
        return await _run_blocking(_load_all)

    async def put(self, character: Character) -> None:
        path = self._path(character.id)
        data = character.model_dump(mode='json')

        def _save():
            self.base_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, prefix=".tmp_", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, path)
            finally:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
        await _run_blocking(_save)
        logger.debug(f"Saved character {character.id} to {path}")

    async def delete(self, character_id: str) -> bool:
        path = self._path(character_id)

        def _delete():
            if not path.exists():
                return False
            path.unlink()
            return True
        return await _run_blocking(_delete)
