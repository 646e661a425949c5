"""Translation provider for OpenAI and OpenAI-compatible chat completion APIs."""
import logging
import math
import re
from typing import Dict, List, Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError,
)
from openai.types.chat import ChatCompletionUserMessageParam

from translator_sync.cost_calculator import count_tokens
from translator_sync.errors import ProviderError, ProviderErrorKind
from translator_sync.translator import TranslationContext, TranslationService, UsageStats
from translator_sync.variables import get_variable_instructions

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "ar": "Arabic",
    "hi": "Hindi",
    "nl": "Dutch",
    "sv": "Swedish",
    "no": "Norwegian",
    "da": "Danish",
    "fi": "Finnish",
    "pl": "Polish",
    "cs": "Czech",
    "hu": "Hungarian",
    "tr": "Turkish",
}

DOMAIN_INSTRUCTIONS = {
    "technical": "Use technical terminology and precise language.",
    "marketing": "Use engaging, persuasive language suitable for marketing.",
    "ui": "Use concise, clear language suitable for user interfaces.",
    "legal": "Use formal, precise legal terminology.",
    "medical": "Use appropriate medical terminology.",
}

TONE_INSTRUCTIONS = {
    "formal": "Use formal, professional language.",
    "casual": "Use casual, friendly language.",
    "professional": "Use business-professional language.",
    "conversational": "Use natural, conversational language.",
}

MIN_MAX_TOKENS = 500
MAX_MAX_TOKENS = 4000

NUMBERING_PATTERN = re.compile(r'^\d+\.\s*')
BULLET_PATTERN = re.compile(r'^[-*]\s*')


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def _escape_newlines(text: str) -> str:
    return text.replace("\n", "\\n")


def _parse_retry_after(exc: Exception) -> Optional[float]:
    """Read a Retry-After hint (seconds or ``<n>ms``) from an SDK error, if present."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after-ms")
    if value:
        try:
            return float(value) / 1000
        except ValueError:
            return None
    value = headers.get("retry-after")
    if not value:
        return None
    value = value.strip()
    try:
        if value.endswith("ms"):
            return float(value[:-2]) / 1000
        return float(value)
    except ValueError:
        logger.debug("Unparseable Retry-After header: %s", value)
        return None


def classify_openai_error(exc: OpenAIError, provider: str) -> ProviderError:
    """
    Map an ``openai`` SDK exception onto a ``ProviderError``.

    Args:
        exc: The exception raised by the SDK.
        provider: Provider name recorded on the error.

    Returns:
        ProviderError: The classified error. The SDK exception is kept as ``__cause__`` by callers.
    """
    retry_after = _parse_retry_after(exc)
    message = str(exc)

    # APITimeoutError subclasses APIConnectionError
    if isinstance(exc, (APITimeoutError, APIConnectionError)):
        return ProviderError(ProviderErrorKind.NETWORK_ERROR, message, provider, retry_after)

    if isinstance(exc, APIStatusError):
        status = exc.status_code
        code = getattr(exc, "code", None)
        if status == 429:
            if code == "insufficient_quota" or "insufficient_quota" in message:
                kind = ProviderErrorKind.QUOTA_EXCEEDED
            else:
                kind = ProviderErrorKind.RATE_LIMITED
        elif status in (401, 403):
            kind = ProviderErrorKind.AUTH_FAILED
        elif status == 402:
            kind = ProviderErrorKind.QUOTA_EXCEEDED
        elif status in (400, 404, 422):
            kind = ProviderErrorKind.INVALID_REQUEST
        else:
            kind = ProviderErrorKind.SERVICE_UNAVAILABLE
        return ProviderError(kind, message, provider, retry_after)

    return ProviderError(ProviderErrorKind.SERVICE_UNAVAILABLE, message, provider, retry_after)


class OpenAIProvider(TranslationService):
    """
    Translates batches with a single chat completion per batch.

    Works with any endpoint that speaks the OpenAI chat completions API
    (OpenAI, DeepSeek, Groq). The SDK's own retries are disabled; retrying
    and fallback are the dispatcher's job.
    """

    def __init__(
            self,
            api_key: str,
            model: str = "gpt-4.1-nano",
            base_url: Optional[str] = None,
            timeout: float = 30.0,
            max_retries: int = 3,
            temperature: float = 0.1,
            name: str = "openai",
            client: Optional[AsyncOpenAI] = None
    ):
        self.name = name
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.temperature = temperature
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self._usage = UsageStats()

    async def translate_batch(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: Optional[TranslationContext] = None
    ) -> Dict[str, str]:
        if not texts:
            return {}

        prompt = self.build_prompt(source_lang, target_lang, texts, context or TranslationContext())
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[ChatCompletionUserMessageParam(role="user", content=prompt)],
                temperature=self.temperature,
                max_tokens=self.calculate_max_tokens(texts),
            )
        except OpenAIError as api_exc:
            logger.warning("API error from %s: %s - %s", self.name, api_exc.__class__.__name__, api_exc)
            raise classify_openai_error(api_exc, self.name) from api_exc

        usage = getattr(response, "usage", None)
        if usage is not None:
            self._usage = self._usage + UsageStats(
                input_tokens=usage.prompt_tokens or 0,
                output_tokens=usage.completion_tokens or 0,
            )

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        return self.parse_response(texts, content)

    def build_prompt(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: TranslationContext
    ) -> str:
        context_instructions = self.build_context_instructions(context)

        variable_instructions = [get_variable_instructions(text) for text in texts]
        unique_instructions = "\n".join(dict.fromkeys(i for i in variable_instructions if i))
        variable_section = f"VARIABLE PRESERVATION:\n{unique_instructions}\n" if unique_instructions else ""

        # One input per line; embedded newlines travel as a literal \n
        numbered = "\n".join(f"{i}. {_escape_newlines(text)}" for i, text in enumerate(texts, 1))

        return f"""You are a professional translator. Translate the following texts from {language_name(source_lang)} to {language_name(target_lang)}.

{context_instructions}
CRITICAL REQUIREMENTS:
- Preserve ALL variables and placeholders EXACTLY as they appear in the source
- Maintain the same formatting (a literal \\n marks a line break and must be kept)
- Return translations in the same order as input
- Return exactly {len(texts)} lines
- Be culturally appropriate for the target language
- Do not add explanations or comments
- Each line of output should correspond to one input text

{variable_section}
Input texts (one per line):
{numbered}

Output format (one translation per line, same order, no numbers):"""

    @staticmethod
    def build_context_instructions(context: TranslationContext) -> str:
        instructions = []
        if context.domain and context.domain in DOMAIN_INSTRUCTIONS:
            instructions.append(DOMAIN_INSTRUCTIONS[context.domain])
        if context.tone and context.tone in TONE_INSTRUCTIONS:
            instructions.append(TONE_INSTRUCTIONS[context.tone])
        if context.preserve_variables:
            instructions.append("CRITICAL: Preserve ALL variables and placeholders exactly.")
        if context.max_length:
            instructions.append(f"Keep translations concise, ideally under {context.max_length} characters.")
        if context.custom_instructions:
            instructions.append(context.custom_instructions)
        return "CONTEXT:\n" + "\n".join(instructions) + "\n" if instructions else ""

    def calculate_max_tokens(self, texts: List[str]) -> int:
        """Completion budget: twice the source token count, bounded to a sane range."""
        source_tokens = count_tokens("\n".join(texts), self.model)
        return max(MIN_MAX_TOKENS, min(MAX_MAX_TOKENS, math.ceil(source_tokens * 2)))

    @staticmethod
    def parse_response(texts: List[str], response_text: str) -> Dict[str, str]:
        """
        Match output lines to input texts by position.

        Numbering and bullet artifacts are stripped. When the line count does
        not match the text count the pairing cannot be trusted, so nothing is
        returned and the caller treats the batch as incomplete.
        A single-text batch takes the whole response, line breaks included.
        """
        if len(texts) == 1:
            translation = NUMBERING_PATTERN.sub("", response_text.strip(), count=1)
            return {texts[0]: translation.replace("\\n", "\n")} if translation else {}

        lines = [line.strip() for line in response_text.split("\n") if line.strip()]
        if len(lines) != len(texts):
            logger.warning("Expected %d translated lines, got %d", len(texts), len(lines))
            return {}

        result: Dict[str, str] = {}
        for text, line in zip(texts, lines):
            translation = BULLET_PATTERN.sub("", NUMBERING_PATTERN.sub("", line, count=1), count=1).strip()
            if "\n" in text:
                translation = translation.replace("\\n", "\n")
            result[text] = translation
        return result

    def get_usage_stats(self) -> UsageStats:
        return UsageStats(self._usage.input_tokens, self._usage.output_tokens)
