import unittest

from translator_sync.errors import ConfigurationError
from translator_sync.openai_provider import OpenAIProvider
from translator_sync.service_factory import (
    ProviderConfig,
    create_service,
    create_services_from_config,
    get_available_providers,
    validate_provider_config,
)
from translator_sync.translator import MockTranslationService


class TestValidateProviderConfig(unittest.TestCase):
    def test_unknown_provider(self):
        with self.assertRaisesRegex(ConfigurationError, "Unsupported provider: anthropic"):
            validate_provider_config(ProviderConfig("anthropic", api_key="k"))

    def test_missing_api_key(self):
        with self.assertRaisesRegex(ConfigurationError, "API key is required"):
            validate_provider_config(ProviderConfig("openai"))

    def test_mock_needs_no_key(self):
        validate_provider_config(ProviderConfig("mock"))

    def test_timeout_below_one_second(self):
        with self.assertRaises(ConfigurationError):
            validate_provider_config(ProviderConfig("openai", api_key="k", timeout=0.5))

    def test_negative_retries(self):
        with self.assertRaises(ConfigurationError):
            validate_provider_config(ProviderConfig("openai", api_key="k", max_retries=-1))

    def test_temperature_range(self):
        with self.assertRaises(ConfigurationError):
            validate_provider_config(ProviderConfig("openai", api_key="k", temperature=2.5))


class TestCreateService(unittest.TestCase):
    def test_available_providers(self):
        self.assertEqual(get_available_providers(), ["mock", "openai", "deepseek", "groq"])

    def test_mock_service(self):
        with self.assertLogs("translator_sync.service_factory", level="WARNING"):
            service = create_service(ProviderConfig("mock"))
        self.assertIsInstance(service, MockTranslationService)

    def test_defaults_are_filled_in(self):
        service = create_service(ProviderConfig("deepseek", api_key="k"))
        self.assertIsInstance(service, OpenAIProvider)
        self.assertEqual(service.name, "deepseek")
        self.assertEqual(service.model, "deepseek-chat")
        self.assertEqual(service.timeout, 60.0)
        self.assertEqual(service.max_retries, 3)

    def test_explicit_settings_win(self):
        service = create_service(
            ProviderConfig("openai", api_key="k", model="gpt-4o-mini", timeout=10, max_retries=0)
        )
        self.assertEqual(service.model, "gpt-4o-mini")
        self.assertEqual(service.timeout, 10)
        self.assertEqual(service.max_retries, 0)

    def test_chain_keeps_order(self):
        services = create_services_from_config([
            ProviderConfig("groq", api_key="k"),
            ProviderConfig("openai", api_key="k"),
        ])
        self.assertEqual([service.name for service in services], ["groq", "openai"])

    def test_empty_chain(self):
        with self.assertRaises(ConfigurationError):
            create_services_from_config([])


if __name__ == '__main__':
    unittest.main()
