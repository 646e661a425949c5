"""Format-agnostic entry points: detect the format of a file and dispatch to its codec."""
import logging
from typing import Any, Dict, Optional

from translator_sync.errors import UnsupportedFormatError
from translator_sync.format_detector import FileFormat, detect_file_format
from translator_sync.ftl_parser import parse_ftl_content, serialize_ftl_content
from translator_sync.json_parser import StructureRegistry, parse_json_content, serialize_json_content

logger = logging.getLogger(__name__)


def parse_translation_file(
        filename: str,
        content: str,
        registry: Optional[StructureRegistry] = None
) -> Dict[str, Any]:
    """
    Parse translation file content regardless of format.

    Args:
        filename: Path of the file; used for detection and as the JSON structure memo key.
        content: Raw file content.
        registry: JSON structure registry for the current run.

    Raises:
        UnsupportedFormatError: If the format cannot be detected.
        MalformedInputError: If the content cannot be parsed in its detected format.
    """
    file_format = detect_file_format(filename, content)

    if file_format is FileFormat.FTL:
        logger.debug("Parsing %s as FTL format", filename)
        return parse_ftl_content(content)
    if file_format is FileFormat.JSON:
        logger.debug("Parsing %s as JSON format", filename)
        return parse_json_content(content, filename, registry)
    raise UnsupportedFormatError(filename)


def serialize_translation_file(
        filename: str,
        translations: Dict[str, Any],
        registry: Optional[StructureRegistry] = None,
        file_format: Optional[FileFormat] = None
) -> str:
    """
    Serialize translations to the format implied by ``filename``.

    Files without a recognized extension need the ``file_format`` that was
    detected when they were read.
    """
    if file_format is None:
        file_format = detect_file_format(filename)

    if file_format is FileFormat.FTL:
        logger.debug("Serializing %s as FTL format", filename)
        return serialize_ftl_content(translations)
    if file_format is FileFormat.JSON:
        logger.debug("Serializing %s as JSON format", filename)
        return serialize_json_content(translations, filename, registry=registry)
    raise UnsupportedFormatError(filename)


def get_file_format(filename: str, content: Optional[str] = None) -> FileFormat:
    return detect_file_format(filename, content)


def formats_compatible(primary_file: str, target_file: str) -> bool:
    """
    Check if two files can be synchronized with each other.

    Formats do not have to match: each file is read and written in its own
    format and the in-memory mapping is format-agnostic.
    """
    return (
        detect_file_format(primary_file) is not FileFormat.UNKNOWN
        and detect_file_format(target_file) is not FileFormat.UNKNOWN
    )
