"""
Translation dispatcher: cache, rate limiting, fallback chain and variable checks.

The dispatcher is itself a ``TranslationService`` so it can be used anywhere
a single provider can.
"""
import asyncio
import dataclasses
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from translator_sync.cost_calculator import CostResult, calculate_cost
from translator_sync.errors import AllProvidersFailedError, ProviderError, ProviderErrorKind
from translator_sync.rate_limiter import RateLimiter
from translator_sync.translation_cache import TranslationCache
from translator_sync.translator import TranslationContext, TranslationService, UsageStats
from translator_sync.variables import missing_variables

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
MAX_RETRY_DELAY = 60.0
MIN_PROJECT_CONTEXT_LENGTH = 10

PROJECT_CONTEXT_TEMPLATE = """PROJECT CONTEXT: {description}

Based on this project context, adapt your translations to match the appropriate:
- Language style and tone
- Target audience expectations
- Domain-specific terminology
- Length constraints for UI elements

The translations should feel natural and appropriate for this specific project type and audience."""


@dataclass
class PreservationWarning:
    """A translation that dropped variables of its source. The translation is still used."""
    text: str
    translation: str
    missing: List[str]


@dataclass
class BatchResult:
    translations: Dict[str, str]
    warnings: List[PreservationWarning] = field(default_factory=list)
    cache_hits: int = 0


@dataclass
class ProviderUsage:
    successful_calls: int = 0
    failed_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0


class TranslationDispatcher(TranslationService):
    """
    Routes batches through the cache and an ordered chain of providers.

    Transient failures (rate limited, service unavailable, network) are
    retried on the same provider with exponential backoff and jitter, then
    the next provider is tried. Auth and quota failures move on at once.
    Invalid requests are raised immediately since no provider would accept
    them either.

    Args:
        providers: Providers in fallback order.
        rate_limiter: Shared limiter; one token is spent per provider call.
        cache: Optional translation cache.
        project_context: Refined project description added to every prompt.
        batch_size: Maximum number of texts per provider call.
        base_delay: Base delay in seconds for the exponential backoff.
        sleep: Coroutine used to wait between retries.
    """

    name = "dispatcher"

    def __init__(
            self,
            providers: List[TranslationService],
            rate_limiter: Optional[RateLimiter] = None,
            cache: Optional[TranslationCache] = None,
            project_context: Optional[str] = None,
            batch_size: int = DEFAULT_BATCH_SIZE,
            base_delay: float = 1.0,
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if batch_size <= 0:
            raise ValueError("Batch size must be positive")
        self.providers = list(providers)
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.project_context = project_context
        self.batch_size = batch_size
        self.base_delay = base_delay
        self._sleep = sleep
        self._usage: Dict[str, ProviderUsage] = {}

    async def translate_batch(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: Optional[TranslationContext] = None
    ) -> Dict[str, str]:
        result = await self.dispatch(source_lang, target_lang, texts, context)
        return result.translations

    async def dispatch(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: Optional[TranslationContext] = None
    ) -> BatchResult:
        """
        Translate ``texts`` and report variable preservation problems.

        Args:
            source_lang: Source language code.
            target_lang: Target language code.
            texts: Texts to translate; duplicates are translated once.
            context: Optional translation guidance.

        Returns:
            BatchResult: Every input text mapped to its translation, plus warnings
            and the number of texts served from the cache.

        Raises:
            AllProvidersFailedError: If no provider could translate a chunk.
                ``partial`` holds what was translated before the failure.
            ProviderError: On an invalid request.
        """
        context = self._effective_context(context)
        translations: Dict[str, str] = {}
        cache_hits = 0
        pending: List[str] = []

        for text in dict.fromkeys(texts):
            if not text.strip():
                translations[text] = text
                continue
            cached = self.cache.get(source_lang, target_lang, text) if self.cache else None
            if cached is not None:
                translations[text] = cached
                cache_hits += 1
            else:
                pending.append(text)

        if cache_hits:
            logger.debug("%d of %d texts served from cache for %s", cache_hits, len(texts), target_lang)

        for start in range(0, len(pending), self.batch_size):
            chunk = pending[start:start + self.batch_size]
            try:
                fresh = await self._translate_with_fallback(source_lang, target_lang, chunk, context)
            except AllProvidersFailedError as exc:
                raise AllProvidersFailedError(exc.errors, partial=translations) from exc
            for text in chunk:
                translations[text] = fresh[text]
                if self.cache is not None:
                    self.cache.set(source_lang, target_lang, text, fresh[text])

        warnings = []
        if context.preserve_variables:
            for text, translation in translations.items():
                missing = missing_variables(text, translation)
                if missing:
                    warnings.append(PreservationWarning(text, translation, missing))

        return BatchResult(translations=translations, warnings=warnings, cache_hits=cache_hits)

    def _effective_context(self, context: Optional[TranslationContext]) -> TranslationContext:
        """Merge the project description into the caller's custom instructions."""
        context = context or TranslationContext()
        description = (self.project_context or "").strip()
        if len(description) < MIN_PROJECT_CONTEXT_LENGTH:
            return context
        project_instructions = PROJECT_CONTEXT_TEMPLATE.format(description=description)
        combined = "\n\n".join(filter(None, [context.custom_instructions, project_instructions]))
        return dataclasses.replace(context, custom_instructions=combined)

    async def _translate_with_fallback(
            self,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: TranslationContext
    ) -> Dict[str, str]:
        errors: List[ProviderError] = []
        for provider in self.providers:
            try:
                return await self._call_with_retries(provider, source_lang, target_lang, texts, context)
            except ProviderError as exc:
                if not exc.kind.falls_through:
                    raise
                errors.append(exc)
                logger.warning("Provider %s failed: %s", provider.name, exc)
        raise AllProvidersFailedError(errors)

    async def _call_with_retries(
            self,
            provider: TranslationService,
            source_lang: str,
            target_lang: str,
            texts: List[str],
            context: TranslationContext
    ) -> Dict[str, str]:
        usage = self._usage.setdefault(provider.name, ProviderUsage())
        attempt = 0
        while True:
            attempt += 1
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()

            try:
                result = await asyncio.wait_for(
                    provider.translate_batch(source_lang, target_lang, texts, context),
                    timeout=provider.timeout,
                )
                missing = [text for text in texts if text not in result]
                if missing:
                    raise ProviderError(
                        ProviderErrorKind.SERVICE_UNAVAILABLE,
                        f"Response covered {len(texts) - len(missing)} of {len(texts)} texts",
                        provider.name,
                    )
            except asyncio.TimeoutError:
                error = ProviderError(
                    ProviderErrorKind.NETWORK_ERROR,
                    f"No response within {provider.timeout} seconds",
                    provider.name,
                )
            except ProviderError as exc:
                error = exc
            else:
                usage.successful_calls += 1
                return {text: result[text] for text in texts}

            usage.failed_calls += 1
            logger.error("API error occurred: %s", error)
            if not error.kind.is_retryable:
                raise error
            if not await self._handle_retry(attempt, provider.max_retries, provider.name, error):
                raise error

    async def _handle_retry(self, attempt: int, max_retries: int, provider_name: str,
                            error: ProviderError) -> bool:
        """
        Wait before the next attempt using exponential backoff with jitter.

        A Retry-After hint from the provider takes precedence over the backoff.

        Args:
            attempt: The attempt that just failed, starting at 1.
            max_retries: Retries allowed after the first attempt.
            provider_name: Used for logging.
            error: The classified failure.

        Returns:
            bool: True if the call should be retried, False otherwise.
        """
        if attempt > max_retries:
            logger.error("Provider %s failed after %d attempt(s).", provider_name, attempt)
            return False
        if error.retry_after is not None:
            delay = error.retry_after
        else:
            delay = self.base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1)
        delay = min(delay, MAX_RETRY_DELAY)
        logger.info("Retrying %s in %.2f seconds (Attempt %d/%d)", provider_name, delay, attempt, max_retries)
        await self._sleep(delay)
        return True

    def get_provider_usage(self) -> Dict[str, ProviderUsage]:
        """Call counts per provider, with token totals reported by each provider."""
        report = {}
        for provider in self.providers:
            calls = self._usage.get(provider.name, ProviderUsage())
            stats = provider.get_usage_stats()
            report[provider.name] = ProviderUsage(
                successful_calls=calls.successful_calls,
                failed_calls=calls.failed_calls,
                input_tokens=stats.input_tokens,
                output_tokens=stats.output_tokens,
            )
        return report

    def get_usage_stats(self) -> UsageStats:
        total = UsageStats()
        for provider in self.providers:
            total = total + provider.get_usage_stats()
        return total

    def total_cost(self) -> CostResult:
        input_cost = output_cost = 0.0
        for provider in self.providers:
            stats = provider.get_usage_stats()
            if not provider.model or not (stats.input_tokens or stats.output_tokens):
                continue
            cost = calculate_cost(provider.model, stats.input_tokens, stats.output_tokens)
            input_cost += cost.input_cost
            output_cost += cost.output_cost
        return CostResult(input_cost=input_cost, output_cost=output_cost, total_cost=input_cost + output_cost)
