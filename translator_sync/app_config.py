"""Application configuration: .env, YAML file and environment overrides."""
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from translator_sync.errors import ConfigurationError
from translator_sync.logging_config import setup_logger
from translator_sync.service_factory import ProviderConfig
from translator_sync.translator import TranslationContext

DEFAULT_CONFIG_FILENAME = 'translator-sync.yaml'
DEFAULT_DIRECTORIES = ['./locales', './public/locales', './src/locales']
DEFAULT_CACHE_FILE = '.translator-sync-cache.json'


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    # Locales
    primary_language: str = 'en'
    directories: List[str] = field(default_factory=lambda: list(DEFAULT_DIRECTORIES))

    # Providers, in fallback order
    providers: List[ProviderConfig] = field(default_factory=list)

    # Translation guidance
    project_description: Optional[str] = None
    domain: Optional[str] = None
    tone: Optional[str] = None
    max_length: Optional[int] = None
    quality_threshold: float = 6

    # Dispatch settings
    rate_limit_capacity: float = 10
    rate_limit_per_second: float = 2
    batch_size: int = 50
    max_concurrent_locales: int = 3

    # Cache
    cache_enabled: bool = True
    cache_file: Optional[str] = DEFAULT_CACHE_FILE
    cache_capacity: int = 10000
    cache_ttl_seconds: float = 60 * 60 * 24 * 30

    # Run settings
    dry_run: bool = False
    cost_warning_threshold: float = 1.0

    # Logging
    log_level: str = 'INFO'
    log_file_path: Optional[str] = None
    log_to_console: bool = True

    config_file: Optional[str] = None

    def translation_context(self) -> TranslationContext:
        return TranslationContext(domain=self.domain, tone=self.tone, max_length=self.max_length)


def _load_dotenv_files(project_root: str) -> Optional[str]:
    """Load .env from the project root or its docker directory. Returns the file used."""
    for dotenv_path in (os.path.join(project_root, '.env'), os.path.join(project_root, 'docker', '.env')):
        if os.path.exists(dotenv_path):
            load_dotenv(dotenv_path)
            return dotenv_path
    return None


def _resolve_config_path(project_root: str, config_path: Optional[str]) -> str:
    # An explicit path wins over TRANSLATOR_CONFIG_FILE (which may come from .env)
    config_file = config_path or os.environ.get(
        'TRANSLATOR_CONFIG_FILE', os.path.join(project_root, DEFAULT_CONFIG_FILENAME)
    )
    return os.path.abspath(config_file)


def _load_yaml_config(config_file: str, required: bool = False) -> Dict[str, Any]:
    """
    Load the YAML configuration file.

    A missing, empty or invalid file falls back to defaults with a notice on
    stderr, since logging is not configured yet at this point.

    Raises:
        ConfigurationError: If ``required`` is set and the file cannot be used.
    """
    if not os.path.exists(config_file):
        if required:
            raise ConfigurationError(f"Configuration file '{config_file}' not found.")
        print(f"Notice: Configuration file '{config_file}' not found. Using defaults and environment.",
              file=sys.stderr)
        return {}

    try:
        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
    except yaml.YAMLError as e:
        if required:
            raise ConfigurationError(f"Invalid YAML in configuration file '{config_file}': {e}") from e
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
        return {}
    except OSError as e:
        if required:
            raise ConfigurationError(f"Could not read configuration file '{config_file}': {e}") from e
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        return {}

    if loaded_config is None:
        print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
              file=sys.stderr)
        return {}
    if not isinstance(loaded_config, dict):
        if required:
            raise ConfigurationError(f"Configuration file '{config_file}' must contain a YAML mapping.")
        print(f"Error: Configuration file '{config_file}' must contain a YAML mapping. Using defaults.",
              file=sys.stderr)
        return {}
    return loaded_config


def _env_number(name: str, convert, default):
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return convert(value)
    except ValueError as e:
        raise ConfigurationError(f"Environment variable {name} must be a number, got '{value}'") from e


def _provider_from_mapping(entry: Dict[str, Any]) -> ProviderConfig:
    """Build a ProviderConfig from a YAML mapping; ``api_key_env`` names an env var holding the key."""
    if not isinstance(entry, dict) or not entry.get('service'):
        raise ConfigurationError(f"Provider entries need a 'service' field, got: {entry!r}")
    service = str(entry['service']).lower()
    api_key = entry.get('api_key')
    if not api_key and entry.get('api_key_env'):
        api_key = os.environ.get(entry['api_key_env'])
    if not api_key:
        api_key = os.environ.get(f"{service.upper()}_API_KEY")
    try:
        return ProviderConfig(
            provider=service,
            api_key=api_key,
            model=entry.get('model'),
            base_url=entry.get('base_url'),
            timeout=float(entry['timeout']) if entry.get('timeout') is not None else None,
            max_retries=int(entry['max_retries']) if entry.get('max_retries') is not None else None,
            temperature=float(entry.get('temperature', 0.1)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid settings for provider '{service}': {e}") from e


def _build_provider_chain(config: Dict[str, Any]) -> List[ProviderConfig]:
    """
    Primary provider from the ``provider`` section overridden by TRANSLATOR_* variables,
    then the fallbacks from TRANSLATOR_FALLBACK_SERVICES or ``fallback_providers``.
    """
    primary = dict(config.get('provider') or {})
    env_overrides = {
        'service': os.environ.get('TRANSLATOR_SERVICE'),
        'model': os.environ.get('TRANSLATOR_MODEL'),
        'api_key': os.environ.get('TRANSLATOR_API_KEY'),
        'base_url': os.environ.get('TRANSLATOR_BASE_URL'),
        'timeout': _env_number('TRANSLATOR_TIMEOUT', float, None),
        'max_retries': _env_number('TRANSLATOR_MAX_RETRIES', int, None),
    }
    primary.update({key: value for key, value in env_overrides.items() if value is not None})

    chain = []
    if primary.get('service'):
        chain.append(_provider_from_mapping(primary))

    fallback_env = os.environ.get('TRANSLATOR_FALLBACK_SERVICES')
    if fallback_env:
        fallbacks = [{'service': name.strip()} for name in fallback_env.split(',') if name.strip()]
    else:
        fallbacks = config.get('fallback_providers') or []
    chain.extend(_provider_from_mapping(entry) for entry in fallbacks)
    return chain


def _setup_logger_from_config(config: Dict[str, Any], verbose: bool) -> logging.Logger:
    log_config = config.get('logging', {}) or {}
    log_level_str = 'DEBUG' if verbose else str(log_config.get('log_level', 'INFO')).upper()
    return setup_logger(log_level_str, log_config.get('log_file_path'), log_config.get('log_to_console', True))


def load_app_config(
        config_path: Optional[str] = None,
        verbose: bool = False,
        project_root: Optional[str] = None
) -> AppConfig:
    """
    Load application configuration from .env, the YAML file and environment variables.

    Args:
        config_path: Explicit configuration file; it must exist and be valid.
        verbose: Force DEBUG logging.
        project_root: Directory searched for ``.env`` and the default config file.
            Defaults to the current working directory.

    Returns:
        AppConfig: The loaded application configuration.

    Raises:
        ConfigurationError: If a value cannot be used.
    """
    project_root = project_root or os.getcwd()
    dotenv_file = _load_dotenv_files(project_root)
    config_file = _resolve_config_path(project_root, config_path)
    config = _load_yaml_config(config_file, required=config_path is not None)

    logger = _setup_logger_from_config(config, verbose)
    if dotenv_file:
        logger.info("Loaded environment variables from: %s", dotenv_file)
    else:
        logger.debug("No .env file found in '%s'. Relying on system environment variables.", project_root)

    rate_limit = config.get('rate_limit', {}) or {}
    cache = config.get('cache', {}) or {}
    context = config.get('context', {}) or {}
    log_config = config.get('logging', {}) or {}

    directories = config.get('directories', DEFAULT_DIRECTORIES)
    if isinstance(directories, str):
        directories = [directories]

    try:
        app_config = AppConfig(
            primary_language=str(config.get('primary_language', 'en')),
            directories=list(directories),
            providers=_build_provider_chain(config),
            project_description=config.get('project_description'),
            domain=context.get('domain'),
            tone=context.get('tone'),
            max_length=int(context['max_length']) if context.get('max_length') else None,
            quality_threshold=float(config.get('quality_threshold', 6)),
            rate_limit_capacity=float(rate_limit.get('capacity', 10)),
            rate_limit_per_second=float(rate_limit.get('per_second', 2)),
            batch_size=int(config.get('batch_size', 50)),
            max_concurrent_locales=int(config.get('max_concurrent_locales', 3)),
            cache_enabled=bool(cache.get('enabled', True)),
            cache_file=cache.get('file', DEFAULT_CACHE_FILE),
            cache_capacity=int(cache.get('capacity', 10000)),
            cache_ttl_seconds=float(cache.get('ttl_seconds', 60 * 60 * 24 * 30)),
            dry_run=bool(config.get('dry_run', False)),
            cost_warning_threshold=float(config.get('cost_warning_threshold', 1.0)),
            log_level=logging.getLevelName(logger.level),
            log_file_path=log_config.get('log_file_path'),
            log_to_console=bool(log_config.get('log_to_console', True)),
            config_file=config_file if os.path.exists(config_file) else None,
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value in configuration file '{config_file}': {e}") from e

    if app_config.max_concurrent_locales <= 0:
        raise ConfigurationError("max_concurrent_locales must be positive")
    if app_config.batch_size <= 0:
        raise ConfigurationError("batch_size must be positive")
    if app_config.rate_limit_capacity <= 0 or app_config.rate_limit_per_second <= 0:
        raise ConfigurationError("rate_limit capacity and per_second must be positive")

    logger.debug("Provider chain: %s", ", ".join(p.provider for p in app_config.providers) or "<empty>")
    return app_config
