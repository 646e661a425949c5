"""The TranslationService capability shared by vendor adapters and the dispatcher."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class TranslationContext:
    """Optional guidance passed along with a batch."""
    domain: Optional[str] = None  # technical, marketing, ui, legal, medical
    tone: Optional[str] = None  # formal, casual, professional, conversational
    preserve_variables: bool = True
    max_length: Optional[int] = None
    custom_instructions: Optional[str] = None


@dataclass
class UsageStats:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "UsageStats") -> "UsageStats":
        return UsageStats(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class TranslationService(ABC):
    """
    Capability implemented by every translation provider.

    ``translate_batch`` returns a mapping from each input text to its
    translation. Every input text must be a key of the result.
    """

    name: str = "service"
    model: str = ""
    timeout: float = 30.0  # seconds per call
    max_retries: int = 3

    @abstractmethod
    async def translate_batch(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: Optional[TranslationContext] = None
    ) -> Dict[str, str]:
        """
        Translate a batch of unique texts.

        Args:
            source_lang: Source language code (e.g. "en").
            target_lang: Target language code (e.g. "de").
            texts: Ordered list of unique source texts.
            context: Optional translation guidance.

        Returns:
            Dict[str, str]: source text -> translated text.
        """

    def get_usage_stats(self) -> UsageStats:
        return UsageStats()


class MockTranslationService(TranslationService):
    """Returns every text prefixed with ``translated: ``. For tests and dry runs only."""

    name = "mock"

    def __init__(self):
        self.calls: List[List[str]] = []

    async def translate_batch(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: Optional[TranslationContext] = None
    ) -> Dict[str, str]:
        if not texts:
            return {}
        self.calls.append(list(texts))
        return {text: f"translated: {text}" for text in texts}
