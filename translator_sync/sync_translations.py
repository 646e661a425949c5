"""Command line entry point: ``translator-sync sync [directories...]``."""
import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import List, Optional

from translator_sync.app_config import AppConfig, load_app_config
from translator_sync.context_refiner import ContextRefiner, format_quality_assessment, is_quality_sufficient
from translator_sync.dispatcher import TranslationDispatcher
from translator_sync.errors import ConfigurationError, MalformedInputError, SyncError
from translator_sync.rate_limiter import RateLimiter
from translator_sync.service_factory import create_services_from_config
from translator_sync.synchronizer import LocaleSynchronizer, SyncSummary
from translator_sync.translation_cache import JsonFileCacheStore, TranslationCache

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_CANCELLED = 130

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="translator-sync",
        description="Keep translation files of all locales in sync with the primary locale.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Translate missing keys and remove obsolete ones.")
    sync_parser.add_argument("directories", nargs="*",
                             help="Translation directories (default: directories from the config file).")
    sync_parser.add_argument("--dry-run", action="store_true", help="Show what would change without writing.")
    sync_parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    sync_parser.add_argument("--config", help="Path to the YAML configuration file.")
    return parser


def resolve_directories(requested: List[str]) -> List[str]:
    found = []
    for directory in requested:
        resolved = os.path.abspath(directory)
        if os.path.isdir(resolved):
            logger.debug("Found translation directory: %s", resolved)
            found.append(resolved)
        else:
            logger.debug("Directory not found: %s", resolved)
    return found


def build_cache(config: AppConfig) -> Optional[TranslationCache]:
    if not config.cache_enabled:
        return None
    store = JsonFileCacheStore(config.cache_file) if config.cache_file else None
    return TranslationCache(config.cache_capacity, config.cache_ttl_seconds, store=store)


async def refine_project_context(config: AppConfig, dispatcher: TranslationDispatcher) -> Optional[str]:
    """Refine the configured project description once per run."""
    if not config.project_description:
        return None
    refiner = ContextRefiner(TranslationDispatcher(dispatcher.providers, dispatcher.rate_limiter))
    refined = await refiner.refine(config.project_description)
    logger.info(format_quality_assessment(refined))
    if not is_quality_sufficient(refined, config.quality_threshold):
        logger.warning("Translations may lack context; consider improving project_description.")
    return refined.refined_description or config.project_description


async def run_sync(config: AppConfig, directories: List[str]) -> SyncSummary:
    providers = create_services_from_config(config.providers)
    rate_limiter = RateLimiter(config.rate_limit_capacity, config.rate_limit_per_second)
    dispatcher = TranslationDispatcher(
        providers,
        rate_limiter=rate_limiter,
        cache=build_cache(config),
        batch_size=config.batch_size,
    )
    dispatcher.project_context = await refine_project_context(config, dispatcher)

    synchronizer = LocaleSynchronizer(
        dispatcher,
        primary_language=config.primary_language,
        max_concurrent_locales=config.max_concurrent_locales,
        dry_run=config.dry_run,
        context=config.translation_context(),
        show_progress=config.log_to_console,
        cost_warning_threshold=config.cost_warning_threshold,
    )

    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, synchronizer.cancel)
        handler_installed = True
    except NotImplementedError:
        logger.debug("Signal handlers are not supported on this platform")
    try:
        return await synchronizer.sync_directories(directories)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the command line interface.

    Returns:
        int: 0 on success, 1 on a fatal error (configuration, missing or
        malformed primary locale, no translation files), 2 if some target
        locale failed, 130 if the run was interrupted before every locale finished.
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_app_config(args.config, verbose=args.verbose)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FATAL
    if args.dry_run:
        config.dry_run = True

    directories = resolve_directories(args.directories or config.directories)
    if not directories:
        logger.error("No translation directories found. Check your configuration or provide a directory path.")
        return EXIT_FATAL

    try:
        summary = asyncio.run(run_sync(config, directories))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_FATAL
    except (SyncError, MalformedInputError) as e:
        logger.error("%s", e)
        return EXIT_FATAL

    print(summary.format(), file=sys.stderr)
    if summary.was_cancelled:
        return EXIT_CANCELLED
    if summary.has_failures:
        return EXIT_PARTIAL_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
