"""Unit tests for the app_config module."""
import logging
import os
from unittest.mock import patch

import pytest
import yaml

from translator_sync.app_config import DEFAULT_DIRECTORIES, AppConfig, load_app_config
from translator_sync.errors import ConfigurationError
from translator_sync.service_factory import ProviderConfig


def write_config(project_dir, data):
    path = project_dir / 'translator-sync.yaml'
    path.write_text(yaml.dump(data), encoding='utf-8')
    return path


class TestAppConfig:
    """Test cases for the AppConfig dataclass."""

    def test_defaults(self):
        config = AppConfig()
        assert config.primary_language == 'en'
        assert config.directories == DEFAULT_DIRECTORIES
        assert config.directories is not DEFAULT_DIRECTORIES
        assert config.providers == []
        assert config.cache_enabled is True

    def test_translation_context(self):
        context = AppConfig(domain='ui', tone='casual', max_length=40).translation_context()
        assert (context.domain, context.tone, context.max_length) == ('ui', 'casual', 40)
        assert context.preserve_variables is True


class TestLoadAppConfig:
    """Test cases for the load_app_config function."""

    def test_missing_file_uses_defaults(self, project_dir, capsys):
        config = load_app_config(project_root=str(project_dir))

        assert config.primary_language == 'en'
        assert config.providers == []
        assert config.config_file is None
        assert "not found" in capsys.readouterr().err

    def test_values_from_yaml(self, project_dir):
        path = write_config(project_dir, {
            'primary_language': 'de',
            'directories': 'locales',
            'project_description': 'Customer dashboard for a bank',
            'batch_size': 20,
            'max_concurrent_locales': 2,
            'rate_limit': {'capacity': 5, 'per_second': 1},
            'cache': {'enabled': False, 'ttl_seconds': 60},
            'context': {'domain': 'ui', 'tone': 'formal', 'max_length': 80},
            'logging': {'log_level': 'WARNING', 'log_to_console': False},
            'provider': {'service': 'openai', 'api_key': 'sk-test', 'model': 'gpt-4o-mini'},
        })

        config = load_app_config(project_root=str(project_dir))

        assert config.primary_language == 'de'
        assert config.directories == ['locales']
        assert config.batch_size == 20
        assert config.max_concurrent_locales == 2
        assert (config.rate_limit_capacity, config.rate_limit_per_second) == (5, 1)
        assert config.cache_enabled is False
        assert config.cache_ttl_seconds == 60
        assert config.translation_context().max_length == 80
        assert config.log_level == 'WARNING'
        assert config.config_file == str(path)
        assert config.providers == [ProviderConfig('openai', api_key='sk-test', model='gpt-4o-mini')]

    def test_environment_overrides_provider_section(self, project_dir):
        write_config(project_dir, {'provider': {'service': 'openai', 'model': 'gpt-4o'}})
        env = {'TRANSLATOR_SERVICE': 'deepseek', 'TRANSLATOR_API_KEY': 'ds-key', 'TRANSLATOR_TIMEOUT': '45'}

        with patch.dict(os.environ, env):
            config = load_app_config(project_root=str(project_dir))

        provider = config.providers[0]
        assert provider.provider == 'deepseek'
        assert provider.api_key == 'ds-key'
        assert provider.model == 'gpt-4o'
        assert provider.timeout == 45.0

    def test_api_key_lookup(self, project_dir):
        write_config(project_dir, {
            'provider': {'service': 'openai', 'api_key_env': 'MY_OPENAI_KEY'},
            'fallback_providers': [{'service': 'groq'}],
        })

        with patch.dict(os.environ, {'MY_OPENAI_KEY': 'from-named-var', 'GROQ_API_KEY': 'from-default-var'}):
            config = load_app_config(project_root=str(project_dir))

        assert [(p.provider, p.api_key) for p in config.providers] == [
            ('openai', 'from-named-var'),
            ('groq', 'from-default-var'),
        ]

    def test_fallback_services_from_environment(self, project_dir):
        write_config(project_dir, {'fallback_providers': [{'service': 'groq'}]})
        env = {'TRANSLATOR_SERVICE': 'openai', 'TRANSLATOR_FALLBACK_SERVICES': 'deepseek, mock'}

        with patch.dict(os.environ, env):
            config = load_app_config(project_root=str(project_dir))

        assert [p.provider for p in config.providers] == ['openai', 'deepseek', 'mock']

    def test_dotenv_file_is_loaded(self, project_dir):
        (project_dir / '.env').write_text("TRANSLATOR_SERVICE=groq\nGROQ_API_KEY=gsk-test\n", encoding='utf-8')

        config = load_app_config(project_root=str(project_dir))

        assert config.providers == [ProviderConfig('groq', api_key='gsk-test')]

    def test_config_file_from_environment(self, project_dir):
        custom = project_dir / 'custom.yaml'
        custom.write_text(yaml.dump({'primary_language': 'fr'}), encoding='utf-8')

        with patch.dict(os.environ, {'TRANSLATOR_CONFIG_FILE': str(custom)}):
            config = load_app_config(project_root=str(project_dir))

        assert config.primary_language == 'fr'

    def test_explicit_missing_file_is_an_error(self, project_dir):
        with pytest.raises(ConfigurationError, match="not found"):
            load_app_config(config_path=str(project_dir / 'missing.yaml'), project_root=str(project_dir))

    def test_explicit_invalid_yaml_is_an_error(self, project_dir):
        path = project_dir / 'broken.yaml'
        path.write_text("primary_language: [unclosed", encoding='utf-8')
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_app_config(config_path=str(path), project_root=str(project_dir))

    def test_default_invalid_yaml_falls_back_to_defaults(self, project_dir, capsys):
        (project_dir / 'translator-sync.yaml').write_text("primary_language: [unclosed", encoding='utf-8')

        config = load_app_config(project_root=str(project_dir))

        assert config.primary_language == 'en'
        assert "Invalid YAML" in capsys.readouterr().err

    def test_non_numeric_environment_value(self, project_dir):
        with patch.dict(os.environ, {'TRANSLATOR_SERVICE': 'openai', 'TRANSLATOR_MAX_RETRIES': 'many'}):
            with pytest.raises(ConfigurationError, match="TRANSLATOR_MAX_RETRIES"):
                load_app_config(project_root=str(project_dir))

    def test_invalid_batch_size(self, project_dir):
        write_config(project_dir, {'batch_size': 0})
        with pytest.raises(ConfigurationError, match="batch_size"):
            load_app_config(project_root=str(project_dir))

    def test_provider_entry_without_service(self, project_dir):
        write_config(project_dir, {'fallback_providers': [{'model': 'gpt-4o'}]})
        with pytest.raises(ConfigurationError, match="service"):
            load_app_config(project_root=str(project_dir))

    def test_verbose_forces_debug_logging(self, project_dir):
        write_config(project_dir, {'logging': {'log_level': 'ERROR', 'log_to_console': False}})

        config = load_app_config(verbose=True, project_root=str(project_dir))

        assert config.log_level == 'DEBUG'
        assert logging.getLogger('translator_sync').level == logging.DEBUG

    def test_log_file_is_created(self, project_dir):
        log_file = project_dir / 'logs' / 'sync.log'
        write_config(project_dir, {'logging': {'log_file_path': str(log_file), 'log_to_console': False}})

        load_app_config(project_root=str(project_dir))
        logging.getLogger('translator_sync.app_config').warning("hello log file")

        for handler in logging.getLogger('translator_sync').handlers:
            handler.flush()
        assert "hello log file" in log_file.read_text(encoding='utf-8')
