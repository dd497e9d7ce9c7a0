"""
Character Forge Configuration

Settings are read (in order of precedence) from:
1. Process environment variables prefixed with CHARFORGE_.
2. A '.env' file loaded through python-dotenv.
3. Built-in defaults.
"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from utils.paths import get_writable_dir


DEFAULT_DATA_DIR = Path(__file__).parent.parent / 'gamedata' / 'data'
STORAGE_BACKENDS = ('memory', 'json')


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Settings:
    """
    Centralized runtime configuration for the rules engine and its HTTP surface.

    Values are resolved once at construction; create a new instance to pick up
    changed environment variables (tests do this with monkeypatch).
    """

    def __init__(self):
        self.data_dir: Path = Path(os.getenv('CHARFORGE_DATA_DIR') or DEFAULT_DATA_DIR)

        self.storage_backend: str = os.getenv('CHARFORGE_STORAGE', 'json').strip().lower()
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"CHARFORGE_STORAGE must be one of {', '.join(STORAGE_BACKENDS)}, "
                f"got '{self.storage_backend}'"
            )

        env_storage_dir = os.getenv('CHARFORGE_STORAGE_DIR')
        self._storage_dir: Optional[Path] = Path(env_storage_dir) if env_storage_dir else None

        self.host: str = os.getenv('CHARFORGE_HOST', '127.0.0.1')
        self.port: int = int(os.getenv('CHARFORGE_PORT', '8000'))
        self.debug: bool = _env_bool('CHARFORGE_DEBUG')
        self.log_level: str = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.log_to_files: bool = _env_bool('CHARFORGE_LOG_FILES', True)
        self.dice_seed: Optional[int] = int(os.environ['CHARFORGE_DICE_SEED']) if os.getenv('CHARFORGE_DICE_SEED') else None

    @property
    def storage_dir(self) -> Path:
        """Directory for JSON character files, created on first access"""
        if self._storage_dir is None:
            self._storage_dir = get_writable_dir('characters')
        else:
            self._storage_dir.mkdir(parents=True, exist_ok=True)
        return self._storage_dir

    def get_info(self) -> dict:
        return {
            'data_dir': str(self.data_dir),
            'storage_backend': self.storage_backend,
            'storage_dir': str(self._storage_dir) if self._storage_dir else None,
            'host': self.host,
            'port': self.port,
            'debug': self.debug,
            'log_level': self.log_level,
            'log_to_files': self.log_to_files,
        }


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide Settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
