"""
Rule Data Loader - builds a RuleSet from the JSON files in a data directory
"""

import json
from pathlib import Path
from typing import Any, List, Optional, Type, TypeVar, Union

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from character.exceptions import RuleSetError
from .models import Background, CharacterClass, Equipment, Feat, Race, RuleTables, Spell
from .rule_set import RuleSet


DEFAULT_DATA_DIR = Path(__file__).parent / 'data'

T = TypeVar('T')


def _read_json(path: Path) -> Any:
    if not path.is_file():
        raise RuleSetError(f"Rule data file not found: {path}")
    try:
        with path.open('r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise RuleSetError(f"Malformed rule data in {path.name}: {e}") from e


def _load_records(path: Path, record_type: Type[T]) -> List[T]:
    raw = _read_json(path)
    try:
        return TypeAdapter(List[record_type]).validate_python(raw)
    except ValidationError as e:
        raise RuleSetError(f"Invalid {record_type.__name__} records in {path.name}: {e}") from e


def load_rule_set(data_dir: Optional[Union[str, Path]] = None) -> RuleSet:
    """
    Load every rule data file from ``data_dir``

    Args:
        data_dir: Directory holding races.json, classes.json, backgrounds.json,
            equipment.json, spells.json, feats.json and tables.json.
            Defaults to the bundled SRD subset.

    Returns:
        A fully validated RuleSet

    Raises:
        RuleSetError: If a file is missing, is not JSON or fails validation
    """
    base = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
    logger.info(f"Loading rule data from {base}")

    tables_raw = _read_json(base / 'tables.json')
    try:
        tables = RuleTables.model_validate(tables_raw)
    except ValidationError as e:
        raise RuleSetError(f"Invalid level tables in tables.json: {e}") from e

    return RuleSet(
        races=_load_records(base / 'races.json', Race),
        classes=_load_records(base / 'classes.json', CharacterClass),
        backgrounds=_load_records(base / 'backgrounds.json', Background),
        equipment=_load_records(base / 'equipment.json', Equipment),
        spells=_load_records(base / 'spells.json', Spell),
        feats=_load_records(base / 'feats.json', Feat),
        tables=tables,
    )
