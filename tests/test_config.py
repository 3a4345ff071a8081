"""
Configuration loader and logging setup tests.
"""
import json
import logging
import logging.handlers

import pytest

from velohub import config as config_module
from velohub.config import ENV_OVERRIDES, get_hub_config, get_redis_config, reload_config
from velohub.log import setup_logging


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the loader at an empty directory and clear overrides."""
    monkeypatch.setenv('VELOHUB_CONFIG_DIR', str(tmp_path))
    for env_name in ENV_OVERRIDES:
        monkeypatch.delenv(env_name, raising=False)
    monkeypatch.setattr(config_module, '_config_cache', None)
    monkeypatch.setattr(config_module, '_config_loaded', False)
    return tmp_path


def write_config(directory, data):
    (directory / 'config.json').write_text(json.dumps(data))


class TestConfigLoader:

    def test_defaults_without_file(self):
        config = get_hub_config()
        assert config['redis'] == {'host': 'localhost', 'port': 6379, 'password': None, 'db': 0}
        assert config['hub']['request_timeout'] == 10
        assert config['hub']['id'].startswith('hub-')
        assert config['logging']['level'] == 'INFO'

    def test_file_overrides_defaults(self, isolated_config):
        write_config(isolated_config, {
            'hub': {'id': 'hub-main', 'owner': 'alice'},
            'redis': {'host': 'redis.internal', 'port': '6380'},
        })
        config = get_hub_config()
        assert config['hub']['id'] == 'hub-main'
        assert config['hub']['poll_timeout'] == 1
        assert config['redis']['host'] == 'redis.internal'
        assert config['redis']['port'] == 6380

    def test_environment_overrides_file(self, isolated_config, monkeypatch):
        write_config(isolated_config, {'redis': {'host': 'from-file'}})
        monkeypatch.setenv('REDIS_HOST', 'from-env')
        monkeypatch.setenv('REDIS_DB', '3')
        monkeypatch.setenv('VELOHUB_OWNER', 'bob')

        config = get_hub_config()
        assert config['redis']['host'] == 'from-env'
        assert config['redis']['db'] == 3
        assert config['hub']['owner'] == 'bob'

    def test_template_values(self, isolated_config, monkeypatch):
        write_config(isolated_config, {'redis': {'password': '${HUB_REDIS_SECRET}'}})
        monkeypatch.setenv('HUB_REDIS_SECRET', 's3cret')
        assert get_redis_config()['password'] == 's3cret'

    def test_unset_template_fails(self, isolated_config, monkeypatch):
        monkeypatch.delenv('HUB_REDIS_SECRET', raising=False)
        write_config(isolated_config, {'redis': {'password': '${HUB_REDIS_SECRET}'}})
        with pytest.raises(RuntimeError, match='HUB_REDIS_SECRET'):
            get_hub_config()

    def test_malformed_file(self, isolated_config):
        (isolated_config / 'config.json').write_text('{"hub": ')
        with pytest.raises(RuntimeError, match='malformed'):
            get_hub_config()

    def test_cached_until_reload(self, isolated_config, monkeypatch):
        first = get_hub_config()
        monkeypatch.setenv('VELOHUB_HUB_ID', 'hub-reloaded')
        assert get_hub_config() is first
        assert reload_config()['hub']['id'] == 'hub-reloaded'


class TestLogging:

    @pytest.fixture
    def logger_name(self):
        name = 'velohub.test-logging'
        yield name
        logging.getLogger(name).handlers.clear()

    def test_console_only(self, logger_name):
        logger = setup_logging({'level': 'debug'}, name=logger_name)
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)

    def test_rotating_file(self, tmp_path, logger_name):
        log_file = tmp_path / 'logs' / 'hub.log'
        logger = setup_logging({'file': str(log_file), 'max_bytes': 1024, 'backup_count': 2},
                               name=logger_name)
        rotating = [h for h in logger.handlers
                    if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == 1024
        assert log_file.parent.is_dir()

    def test_repeat_setup_replaces_handlers(self, logger_name):
        setup_logging(name=logger_name)
        logger = setup_logging(name=logger_name)
        assert len(logger.handlers) == 1

    def test_unknown_level_falls_back_to_info(self, logger_name):
        assert setup_logging({'level': 'chatty'}, name=logger_name).level == logging.INFO
