"""
Tests for environment-driven settings.
"""
import pytest

from config.settings import DEFAULT_DATA_DIR, Settings


ENV_VARS = [
    'CHARFORGE_DATA_DIR', 'CHARFORGE_STORAGE', 'CHARFORGE_STORAGE_DIR', 'CHARFORGE_HOST',
    'CHARFORGE_PORT', 'CHARFORGE_DEBUG', 'CHARFORGE_LOG_FILES', 'CHARFORGE_DICE_SEED', 'LOG_LEVEL',
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:

    def test_defaults(self, clean_env):
        settings = Settings()
        assert settings.data_dir == DEFAULT_DATA_DIR
        assert settings.storage_backend == 'json'
        assert settings.host == '127.0.0.1'
        assert settings.port == 8000
        assert settings.debug is False
        assert settings.log_level == 'INFO'
        assert settings.log_to_files is True
        assert settings.dice_seed is None

    def test_environment_overrides(self, clean_env, tmp_path):
        clean_env.setenv('CHARFORGE_DATA_DIR', str(tmp_path))
        clean_env.setenv('CHARFORGE_STORAGE', 'Memory')
        clean_env.setenv('CHARFORGE_PORT', '9100')
        clean_env.setenv('CHARFORGE_DEBUG', 'yes')
        clean_env.setenv('CHARFORGE_LOG_FILES', 'false')
        clean_env.setenv('CHARFORGE_DICE_SEED', '1234')
        clean_env.setenv('LOG_LEVEL', 'debug')
        settings = Settings()
        assert settings.data_dir == tmp_path
        assert settings.storage_backend == 'memory'
        assert settings.port == 9100
        assert settings.debug is True
        assert settings.log_to_files is False
        assert settings.dice_seed == 1234
        assert settings.log_level == 'DEBUG'

    def test_unknown_storage_backend(self, clean_env):
        clean_env.setenv('CHARFORGE_STORAGE', 'postgres')
        with pytest.raises(ValueError, match='CHARFORGE_STORAGE'):
            Settings()

    def test_storage_dir_created_on_access(self, clean_env, tmp_path):
        target = tmp_path / "saved" / "characters"
        clean_env.setenv('CHARFORGE_STORAGE_DIR', str(target))
        settings = Settings()
        assert not target.exists()
        assert settings.storage_dir == target
        assert target.is_dir()

    def test_storage_dir_falls_back_to_writable_dir(self, clean_env, tmp_path):
        clean_env.setenv('CHARFORGE_HOME', str(tmp_path))
        assert Settings().storage_dir == tmp_path / "characters"

    def test_get_info(self, clean_env):
        info = Settings().get_info()
        assert info['storage_backend'] == 'json'
        assert info['storage_dir'] is None
        assert set(info) == {
            'data_dir', 'storage_backend', 'storage_dir', 'host', 'port', 'debug', 'log_level', 'log_to_files',
        }
