import pytest

from couple_categorizer.utils.settings import CategorizerSettings, DatabaseSettings

CATEGORIZER_VARS = [
    'CATEGORIZER_CONFIDENCE_THRESHOLD',
    'CATEGORIZER_ALIAS_LIST_LIMIT',
    'CATEGORIZER_STORE_MAX_ATTEMPTS',
    'CATEGORIZER_ALIAS_TIMEOUT_SECONDS',
    'CATEGORIZER_LOG_LEVEL',
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in CATEGORIZER_VARS + ['DB_HOST', 'DB_PORT', 'DB_NAME']:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = CategorizerSettings.from_env()

    assert settings.confidence_threshold == 0.55
    assert settings.alias_list_limit == 50
    assert settings.store_max_attempts == 10
    assert settings.alias_timeout_seconds == 2.0
    assert settings.log_level == 'INFO'


def test_overrides(clean_env):
    clean_env.setenv('CATEGORIZER_CONFIDENCE_THRESHOLD', '0.6')
    clean_env.setenv('CATEGORIZER_ALIAS_LIST_LIMIT', '20')
    clean_env.setenv('CATEGORIZER_LOG_LEVEL', 'debug')

    settings = CategorizerSettings.from_env()

    assert settings.confidence_threshold == 0.6
    assert settings.alias_list_limit == 20
    assert settings.log_level == 'DEBUG'


def test_zero_timeout_disables_it(clean_env):
    clean_env.setenv('CATEGORIZER_ALIAS_TIMEOUT_SECONDS', '0')
    assert CategorizerSettings.from_env().alias_timeout_seconds is None


def test_invalid_number_falls_back(clean_env):
    clean_env.setenv('CATEGORIZER_STORE_MAX_ATTEMPTS', 'lots')
    assert CategorizerSettings.from_env().store_max_attempts == 10


def test_database_settings(clean_env):
    clean_env.setenv('DB_HOST', 'db.internal')
    clean_env.setenv('DB_PORT', '6543')

    settings = DatabaseSettings.from_env()

    assert settings.host == 'db.internal'
    assert settings.port == 6543
    assert settings.database == 'budget_db'
