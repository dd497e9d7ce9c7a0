"""
Character export service for JSON bulk export and import
"""
import json
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from loguru import logger
from pydantic import ValidationError

from .exceptions import CharacterInvariantError
from .models import Character, new_character_id


class CharacterExportService:
    """Service to move characters in and out of the JSON interchange format (an array of records)"""

    def __init__(self, character_manager=None):
        """
        Args:
            character_manager: Optional hub; when given, imported records are
                also checked against the rule set (armor class, proficiency bonus)
        """
        self.character_manager = character_manager

    def export_characters(self, characters: Iterable[Character], indent: Optional[int] = 2) -> str:
        """Serialize characters to a JSON array"""
        records = [c.model_dump(mode='json') for c in characters]
        logger.info(f"Exporting {len(records)} characters")
        return json.dumps(records, indent=indent)

    def export_to_file(self, characters: Iterable[Character], output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)
        output_path.write_text(self.export_characters(characters), encoding='utf-8')
        return output_path

    def import_characters(self, data: Union[str, bytes, List[Any]]) -> List[Character]:
        """
        Validate an exported array and give every record a fresh id

        Args:
            data: JSON text or an already decoded list

        Returns:
            Validated characters

        Raises:
            CharacterInvariantError: If the payload is not an array or any record is invalid
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise CharacterInvariantError([f"Invalid JSON: {e}"]) from e
        if not isinstance(data, list):
            raise CharacterInvariantError(["Import data must be a JSON array of characters"])

        characters = []
        for index, record in enumerate(data):
            if not isinstance(record, dict):
                raise CharacterInvariantError([f"Record {index} is not an object"])
            try:
                character = Character.model_validate({**record, 'id': new_character_id()})
            except ValidationError as e:
                problems = [f"Record {index}: {err['loc']}: {err['msg']}" for err in e.errors()]
                raise CharacterInvariantError(problems) from e
            except CharacterInvariantError as e:
                raise CharacterInvariantError([f"Record {index}: {v}" for v in e.violations]) from e

            if self.character_manager is not None:
                is_valid, errors = self.character_manager.validate_character(character)
                if not is_valid:
                    raise CharacterInvariantError([f"Record {index}: {err}" for err in errors])
            characters.append(character)

        logger.info(f"Imported {len(characters)} characters")
        return characters

    def import_from_file(self, input_path: Union[str, Path]) -> List[Character]:
        return self.import_characters(Path(input_path).read_text(encoding='utf-8'))
