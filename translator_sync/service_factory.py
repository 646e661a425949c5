"""Builds translation services from provider configuration."""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from translator_sync.errors import ConfigurationError
from translator_sync.openai_provider import OpenAIProvider
from translator_sync.translator import MockTranslationService, TranslationService

logger = logging.getLogger(__name__)

# All supported vendors speak the OpenAI chat completions API.
PROVIDER_DEFAULTS: Dict[str, Dict] = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "model": "gpt-4.1-nano",
        "timeout": 30.0,
        "max_retries": 3,
    },
    "deepseek": {
        "base_url": "https://api.deepseek.com/v1",
        "model": "deepseek-chat",
        "timeout": 60.0,
        "max_retries": 3,
    },
    "groq": {
        "base_url": "https://api.groq.com/openai/v1",
        "model": "llama-3-8b-instant",
        "timeout": 30.0,
        "max_retries": 3,
    },
}

MOCK_PROVIDER = "mock"
MIN_TIMEOUT_SECONDS = 1.0


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable settings of one provider in the fallback chain."""
    provider: str
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = None  # seconds
    max_retries: Optional[int] = None
    temperature: float = 0.1


def get_available_providers() -> List[str]:
    return [MOCK_PROVIDER, *PROVIDER_DEFAULTS]


def validate_provider_config(config: ProviderConfig) -> None:
    """
    Reject provider settings that cannot work.

    Raises:
        ConfigurationError: On an unknown provider, a missing API key, a
            timeout below one second or a negative retry count.
    """
    if not config.provider:
        raise ConfigurationError("Provider is required")
    if config.provider not in get_available_providers():
        raise ConfigurationError(
            f"Unsupported provider: {config.provider}. "
            f"Choose one of: {', '.join(get_available_providers())}"
        )
    if config.provider != MOCK_PROVIDER and not config.api_key:
        raise ConfigurationError(f"API key is required for provider: {config.provider}")
    if config.timeout is not None and config.timeout < MIN_TIMEOUT_SECONDS:
        raise ConfigurationError("Timeout must be at least 1 second")
    if config.max_retries is not None and config.max_retries < 0:
        raise ConfigurationError("Max retries must be non-negative")
    if not 0.0 <= config.temperature <= 2.0:
        raise ConfigurationError("Temperature must be between 0 and 2")


def create_service(config: ProviderConfig) -> TranslationService:
    """
    Create a translation service for one provider.

    Unset fields are filled from ``PROVIDER_DEFAULTS``.

    Raises:
        ConfigurationError: If the configuration does not validate.
    """
    validate_provider_config(config)

    if config.provider == MOCK_PROVIDER:
        logger.warning("Using the mock translation service; texts will not really be translated.")
        return MockTranslationService()

    defaults = PROVIDER_DEFAULTS[config.provider]
    service = OpenAIProvider(
        api_key=config.api_key,
        model=config.model or defaults["model"],
        base_url=config.base_url or defaults["base_url"],
        timeout=config.timeout if config.timeout is not None else defaults["timeout"],
        max_retries=config.max_retries if config.max_retries is not None else defaults["max_retries"],
        temperature=config.temperature,
        name=config.provider,
    )
    logger.info("Configured %s provider with model %s", config.provider, service.model)
    return service


def create_services_from_config(configs: List[ProviderConfig]) -> List[TranslationService]:
    """Create the ordered provider chain. An empty chain is a configuration error."""
    if not configs:
        raise ConfigurationError(
            "No translation provider configured. Set TRANSLATOR_SERVICE to one of: "
            + ", ".join(PROVIDER_DEFAULTS)
        )
    return [create_service(config) for config in configs]
