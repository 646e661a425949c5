"""
Key-set synchronization between a primary locale and its target locales.

Two directory layouts are understood:

- language directories: ``locales/en/common.json``, ``locales/de/common.json``
- flat files: ``locales/en.json``, ``locales/de.ftl``, ``locales/messages.de.json``
"""
import asyncio
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tqdm.asyncio import tqdm

from translator_sync.cost_calculator import CostResult, format_cost
from translator_sync.dispatcher import PreservationWarning, TranslationDispatcher
from translator_sync.errors import (
    AllProvidersFailedError,
    MalformedInputError,
    NoTranslationFilesError,
    PrimaryLocaleMissingError,
    ProviderError,
    SyncCancelledError,
    UnsupportedFormatError,
)
from translator_sync.format_detector import FileFormat, detect_file_format, is_supported_file
from translator_sync.json_parser import StructureRegistry
from translator_sync.translator import TranslationContext
from translator_sync.universal_parser import parse_translation_file, serialize_translation_file

logger = logging.getLogger(__name__)

LANGUAGE_CODE_PATTERN = re.compile(r'^[a-z]{2,3}(?:[-_][A-Za-z]{2,4})?$', re.IGNORECASE)
LANGUAGE_SUFFIX_PATTERN = re.compile(r'^(?P<resource>.+)\.(?P<lang>[a-z]{2,3}(?:[-_][A-Za-z]{2,4})?)$',
                                     re.IGNORECASE)


@dataclass
class KeyDiff:
    to_translate: List[str]
    to_remove: List[str]
    unchanged: List[str]

    @property
    def is_noop(self) -> bool:
        return not self.to_translate and not self.to_remove


@dataclass
class SyncTask:
    primary_path: str
    target_path: str
    target_language: str


@dataclass
class FileResult:
    target_path: str
    language: str
    status: str  # updated, unchanged, skipped, failed, cancelled
    keys_translated: int = 0
    keys_removed: int = 0
    cache_hits: int = 0
    warnings: List[PreservationWarning] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class SyncSummary:
    files_processed: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    files_cancelled: int = 0
    keys_translated: int = 0
    keys_removed: int = 0
    preservation_warnings: int = 0
    cache_hits: int = 0
    cache_hit_rate: float = 0.0
    cost: CostResult = field(default_factory=lambda: CostResult(0.0, 0.0, 0.0))
    errors: Dict[str, str] = field(default_factory=dict)
    dry_run: bool = False

    def add(self, result: FileResult) -> None:
        if result.status == "skipped":
            self.files_skipped += 1
        elif result.status == "cancelled":
            self.files_cancelled += 1
        elif result.status == "failed":
            self.files_failed += 1
        else:
            self.files_processed += 1
        if result.error:
            self.errors[result.target_path] = result.error
        self.keys_translated += result.keys_translated
        self.keys_removed += result.keys_removed
        self.preservation_warnings += len(result.warnings)
        self.cache_hits += result.cache_hits

    @property
    def has_failures(self) -> bool:
        return self.files_failed > 0

    @property
    def was_cancelled(self) -> bool:
        return self.files_cancelled > 0

    def format(self) -> str:
        lines = [
            "Summary:",
            f"  Files processed: {self.files_processed}",
            f"  Files skipped: {self.files_skipped}",
            f"  Files failed: {self.files_failed}",
            f"  Keys translated: {self.keys_translated}",
            f"  Keys removed: {self.keys_removed}",
            f"  Preservation warnings: {self.preservation_warnings}",
            f"  Cache hit rate: {self.cache_hit_rate:.0%}",
        ]
        if self.cost.total_cost > 0:
            lines.append(f"  Cost: {format_cost(self.cost)}")
        if self.files_cancelled:
            lines.append(f"  Files cancelled: {self.files_cancelled}")
        if self.dry_run:
            lines.append("  Mode: Dry run (no files modified)")
        for path, error in self.errors.items():
            lines.append(f"  Error in {path}: {error}")
        return "\n".join(lines)


def compute_key_diff(primary: Dict[str, Any], target: Dict[str, Any]) -> KeyDiff:
    """
    Compare key sets only; values are never compared.

    ``to_translate`` and ``unchanged`` follow primary order, ``to_remove`` follows target order.
    """
    return KeyDiff(
        to_translate=[key for key in primary if key not in target],
        to_remove=[key for key in target if key not in primary],
        unchanged=[key for key in primary if key in target],
    )


def merge_translations(
        primary: Dict[str, Any],
        target: Dict[str, Any],
        translations: Dict[str, str]
) -> Dict[str, Any]:
    """
    Build the new target map in primary key order.

    Existing target values are kept. Missing string values take their
    translation from ``translations`` (keyed by source text); missing
    non-string values are copied. Keys whose text has no translation are
    left out so that the next run picks them up again.
    """
    merged: Dict[str, Any] = {}
    for key, value in primary.items():
        if key in target:
            merged[key] = target[key]
        elif not isinstance(value, str):
            merged[key] = value
        elif value in translations:
            merged[key] = translations[value]
    return merged


def extract_language_from_path(file_path: str) -> Optional[str]:
    """
    Find the language code encoded in a translation file path.

    Checked in order: the parent directory (``de/common.json``), the file
    name (``de.json``, ``pt-BR.ftl``) and a language suffix (``messages.de.json``).

    Returns:
        Optional[str]: The language code, or None if the path carries none.
    """
    parent = os.path.basename(os.path.dirname(file_path))
    if parent and LANGUAGE_CODE_PATTERN.match(parent):
        return parent
    stem = os.path.splitext(os.path.basename(file_path))[0]
    if LANGUAGE_CODE_PATTERN.match(stem):
        return stem
    match = LANGUAGE_SUFFIX_PATTERN.match(stem)
    if match:
        return match.group('lang')
    return None


def _same_language(a: Optional[str], b: str) -> bool:
    return a is not None and a.replace('_', '-').lower() == b.replace('_', '-').lower()


def _flat_resource_name(filename: str) -> str:
    """``messages.de.json`` -> ``messages``; ``de.json`` -> ``""``."""
    stem = os.path.splitext(filename)[0]
    if LANGUAGE_CODE_PATTERN.match(stem):
        return ""
    match = LANGUAGE_SUFFIX_PATTERN.match(stem)
    return match.group('resource') if match else stem


def _list_language_dirs(directory: str) -> List[str]:
    return sorted(
        entry for entry in os.listdir(directory)
        if os.path.isdir(os.path.join(directory, entry)) and LANGUAGE_CODE_PATTERN.match(entry)
    )


def _list_translation_files(directory: str) -> List[str]:
    """Supported files below ``directory``, as sorted relative paths."""
    found = []
    for root, _dirs, files in os.walk(directory):
        for filename in files:
            if is_supported_file(filename):
                found.append(os.path.relpath(os.path.join(root, filename), directory))
    return sorted(found)


def _list_flat_files(directory: str) -> List[str]:
    return sorted(f for f in os.listdir(directory)
                  if os.path.isfile(os.path.join(directory, f)) and is_supported_file(f))


def _primary_language_dir(directory: str, language_dirs: List[str], primary_language: str) -> str:
    primary_dir = next((d for d in language_dirs if _same_language(d, primary_language)), None)
    if primary_dir is None:
        raise PrimaryLocaleMissingError(directory, primary_language)
    return primary_dir


def find_primary_files(directory: str, primary_language: str) -> List[str]:
    """
    List the primary locale files of ``directory``, with or without targets next to them.

    Raises:
        NoTranslationFilesError: If the directory holds no supported files.
        PrimaryLocaleMissingError: If no file belongs to the primary language.
    """
    if not os.path.isdir(directory):
        raise NoTranslationFilesError(directory)

    language_dirs = _list_language_dirs(directory)
    if language_dirs:
        primary_root = os.path.join(directory, _primary_language_dir(directory, language_dirs, primary_language))
        primary_files = _list_translation_files(primary_root)
        if not primary_files:
            raise PrimaryLocaleMissingError(primary_root, primary_language)
        return [os.path.join(primary_root, relative) for relative in primary_files]

    files = _list_flat_files(directory)
    if not files:
        raise NoTranslationFilesError(directory)
    primaries = [f for f in files if _same_language(extract_language_from_path(f), primary_language)]
    if not primaries:
        raise PrimaryLocaleMissingError(directory, primary_language)
    return [os.path.join(directory, primary) for primary in primaries]


def discover_locale_files(directory: str, primary_language: str) -> List[SyncTask]:
    """
    Pair every primary locale file with its target locale files.

    In the language directory layout every primary file gets a counterpart
    in every other language directory, whether or not it exists yet. In the
    flat layout only existing files are paired, by resource name.

    Raises:
        NoTranslationFilesError: If the directory holds no supported files.
        PrimaryLocaleMissingError: If no file belongs to the primary language.
    """
    primary_paths = find_primary_files(directory, primary_language)

    language_dirs = _list_language_dirs(directory)
    if language_dirs:
        primary_dir = _primary_language_dir(directory, language_dirs, primary_language)
        primary_root = os.path.join(directory, primary_dir)
        return [
            SyncTask(
                primary_path=primary_path,
                target_path=os.path.join(directory, language, os.path.relpath(primary_path, primary_root)),
                target_language=language,
            )
            for primary_path in primary_paths
            for language in language_dirs
            if language != primary_dir
        ]

    files = _list_flat_files(directory)
    tasks = []
    for primary_path in primary_paths:
        primary = os.path.basename(primary_path)
        resource = _flat_resource_name(primary)
        for candidate in files:
            language = extract_language_from_path(candidate)
            if candidate == primary or language is None or _same_language(language, primary_language):
                continue
            if _flat_resource_name(candidate) == resource:
                tasks.append(SyncTask(
                    primary_path=primary_path,
                    target_path=os.path.join(directory, candidate),
                    target_language=language,
                ))
    return tasks


def read_translation_file(file_path: str, registry: StructureRegistry) -> Dict[str, Any]:
    with open(file_path, 'r', encoding='utf-8') as f:
        content = f.read()
    return parse_translation_file(file_path, content, registry)


def write_file_atomically(file_path: str, content: str) -> None:
    """Write through a temporary file in the same directory and rename it into place."""
    directory = os.path.dirname(os.path.abspath(file_path))
    os.makedirs(directory, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=directory, prefix=f".{os.path.basename(file_path)}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        os.replace(temp_path, file_path)
    except OSError:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise


class LocaleSynchronizer:
    """
    Runs the read, diff, translate, merge and write pipeline for every target locale.

    Target locales run concurrently up to ``max_concurrent_locales``; the
    steps of one locale run in sequence. One structure registry is kept per
    synchronizer so each JSON file is written back with its own layout.

    Args:
        dispatcher: Translation dispatcher shared by all locales.
        primary_language: Language code of the primary locale.
        max_concurrent_locales: Fan-out limit.
        dry_run: Compute everything but write nothing.
        context: Translation guidance for every batch.
        show_progress: Display a tqdm progress bar.
        cost_warning_threshold: Log a warning when a run costs more (USD).
    """

    def __init__(
            self,
            dispatcher: TranslationDispatcher,
            primary_language: str,
            max_concurrent_locales: int = 4,
            dry_run: bool = False,
            context: Optional[TranslationContext] = None,
            show_progress: bool = True,
            cost_warning_threshold: float = 1.0
    ):
        if max_concurrent_locales <= 0:
            raise ValueError("max_concurrent_locales must be positive")
        self.dispatcher = dispatcher
        self.primary_language = primary_language
        self.max_concurrent_locales = max_concurrent_locales
        self.dry_run = dry_run
        self.context = context
        self.show_progress = show_progress
        self.cost_warning_threshold = cost_warning_threshold
        self.registry = StructureRegistry()
        self._cancel_event = asyncio.Event()

    def cancel(self) -> None:
        """Abort in-flight provider calls. Unfinished locales are not written."""
        logger.warning("Cancellation requested; unfinished locales will not be written.")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    async def sync_directories(self, directories: List[str]) -> SyncSummary:
        summary = SyncSummary(dry_run=self.dry_run)
        for directory in directories:
            await self.sync_directory(directory, summary)
        self._finish_summary(summary)
        return summary

    async def sync_directory(self, directory: str, summary: Optional[SyncSummary] = None) -> SyncSummary:
        """
        Synchronize every target locale found in ``directory``.

        Raises:
            PrimaryLocaleMissingError: If the primary locale file is missing.
            NoTranslationFilesError: If nothing recognizable is in the directory.
            MalformedInputError: If a primary locale file cannot be parsed.
        """
        standalone = summary is None
        summary = summary if summary is not None else SyncSummary(dry_run=self.dry_run)
        logger.info("Processing directory: %s", directory)

        primaries: Dict[str, Dict[str, Any]] = {}
        for primary_path in find_primary_files(directory, self.primary_language):
            primaries[primary_path] = self._read_primary(primary_path)
            logger.info("Primary file: %s (%d keys)", primary_path, len(primaries[primary_path]))

        tasks = discover_locale_files(directory, self.primary_language)

        if not tasks:
            logger.warning("No target locales found next to the primary locale in %s", directory)

        semaphore = asyncio.Semaphore(self.max_concurrent_locales)
        locale_tasks = [
            asyncio.create_task(self._sync_target(task, primaries[task.primary_path], semaphore))
            for task in tasks
        ]
        for coro in tqdm.as_completed(locale_tasks, desc=f"Syncing {os.path.basename(directory) or directory}",
                                      unit="locale", disable=not self.show_progress or not locale_tasks):
            summary.add(await coro)

        if standalone:
            self._finish_summary(summary)
        return summary

    def _read_primary(self, primary_path: str) -> Dict[str, Any]:
        try:
            return read_translation_file(primary_path, self.registry)
        except FileNotFoundError as e:
            raise PrimaryLocaleMissingError(primary_path, self.primary_language) from e

    def _finish_summary(self, summary: SyncSummary) -> None:
        cache = self.dispatcher.cache
        summary.cache_hit_rate = cache.hit_rate if cache is not None else 0.0
        if cache is not None and not self.dry_run:
            cache.flush()
        summary.cost = self.dispatcher.total_cost()
        if summary.cost.total_cost > self.cost_warning_threshold:
            logger.warning("High cost alert: %s for this run", format_cost(summary.cost))

    async def _until_cancelled(self, coro):
        """Await ``coro`` unless the run is cancelled first."""
        work = asyncio.ensure_future(coro)
        stop = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
        if work in done:
            return work.result()
        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        raise SyncCancelledError("Run cancelled")

    async def _sync_target(
            self,
            task: SyncTask,
            primary: Dict[str, Any],
            semaphore: asyncio.Semaphore
    ) -> FileResult:
        async with semaphore:
            if self.cancelled:
                return FileResult(task.target_path, task.target_language, "cancelled")
            try:
                return await self.sync_file(task, primary)
            except SyncCancelledError:
                logger.info("Cancelled before %s was written", task.target_path)
                return FileResult(task.target_path, task.target_language, "cancelled")

    async def sync_file(self, task: SyncTask, primary: Dict[str, Any]) -> FileResult:
        """
        Bring one target locale file in line with the primary locale.

        Per-file problems are reported in the returned ``FileResult``: a
        malformed target or an invalid provider request fails the file, an
        unsupported target is skipped. If every provider fails, the entries
        that were translated anyway (cache hits) are still written.
        """
        target_path, language = task.target_path, task.target_language
        target_format = detect_file_format(target_path)

        if os.path.exists(target_path):
            try:
                target = read_translation_file(target_path, self.registry)
            except UnsupportedFormatError:
                logger.debug("Skipping unsupported file %s", target_path)
                return FileResult(target_path, language, "skipped")
            except MalformedInputError as e:
                logger.error("Failed to parse %s: %s", target_path, e)
                return FileResult(target_path, language, "failed", error=str(e))
        else:
            logger.info("Creating %s", target_path)
            target = {}
            structure = self.registry.get(task.primary_path)
            if structure is not None and target_format is FileFormat.JSON:
                self.registry.remember(target_path, structure)

        diff = compute_key_diff(primary, target)
        if diff.is_noop and os.path.exists(target_path):
            logger.debug("%s: All keys up to date", target_path)
            return FileResult(target_path, language, "unchanged")

        texts = [primary[key] for key in diff.to_translate if isinstance(primary[key], str)]
        logger.info("%s: %d missing keys, %d obsolete keys", target_path, len(diff.to_translate), len(diff.to_remove))

        translations: Dict[str, str] = {}
        warnings: List[PreservationWarning] = []
        cache_hits = 0
        error: Optional[str] = None
        if texts:
            try:
                result = await self._until_cancelled(
                    self.dispatcher.dispatch(self.primary_language, language, texts, self.context)
                )
                translations, warnings, cache_hits = result.translations, result.warnings, result.cache_hits
            except AllProvidersFailedError as e:
                logger.error("Failed to translate %s: %s", target_path, e)
                translations, error = e.partial, str(e)
            except ProviderError as e:
                logger.error("Failed to translate %s: %s", target_path, e)
                return FileResult(target_path, language, "failed", error=str(e))

        for warning in warnings:
            logger.warning("%s: translation of %r is missing %s", target_path, warning.text,
                           ", ".join(warning.missing))

        merged = merge_translations(primary, target, translations)
        translated = sum(1 for key in diff.to_translate if key in merged)

        if self.cancelled:
            raise SyncCancelledError("Run cancelled")

        content = serialize_translation_file(target_path, merged, self.registry, target_format)
        if self.dry_run:
            logger.info("[DRY RUN] Would update %s", target_path)
        else:
            write_file_atomically(target_path, content)
            logger.info("Updated %s", target_path)

        return FileResult(
            target_path,
            language,
            "failed" if error else "updated",
            keys_translated=translated,
            keys_removed=len(diff.to_remove),
            cache_hits=cache_hits,
            warnings=warnings,
            error=error,
        )
