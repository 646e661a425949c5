"""
Lenient parser and serializer for Fluent (``.ftl``) translation files.

Only the primary value of each message is kept. Attributes (``.tooltip = ...``)
are recognized so that they do not leak into the value, but they are dropped.
"""
import logging
import re
import textwrap
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

ATTRIBUTE_PATTERN = re.compile(r'^\.[a-zA-Z][a-zA-Z0-9_-]*\s*=')
INDENT = "    "


def _finish_message(
        translations: Dict[str, str],
        key: Optional[str],
        first_line: str,
        continuation: List[str]
) -> None:
    if key is None:
        return
    lines = [first_line] if first_line else []
    if continuation:
        dedented = textwrap.dedent("\n".join(continuation))
        lines.extend(line for line in dedented.split("\n") if line.strip())
    translations[key] = "\n".join(lines)


def parse_ftl_content(content: str) -> Dict[str, str]:
    """
    Parse Fluent content into a message id -> value mapping.

    Malformed lines (no ``=`` or an empty key) are skipped rather than failing
    the whole file, since translation files are edited by hand.

    Args:
        content: Raw ``.ftl`` text.

    Returns:
        Dict[str, str]: Messages in file order. Multi-line values are joined with ``\\n``.
    """
    translations: Dict[str, str] = {}
    key: Optional[str] = None
    first_line = ""
    continuation: List[str] = []
    in_attribute = False

    for line_number, raw_line in enumerate(content.splitlines(), 1):
        line = raw_line.rstrip()
        stripped = line.strip()

        if not stripped:
            continue

        if line[0] in (' ', '\t'):
            if key is None:
                logger.debug("Skipping orphan indented line %d", line_number)
                continue
            if ATTRIBUTE_PATTERN.match(stripped):
                in_attribute = True
                continue
            if not in_attribute:
                continuation.append(line)
            continue

        _finish_message(translations, key, first_line, continuation)
        key, first_line, continuation, in_attribute = None, "", [], False

        if stripped.startswith('#'):
            continue

        if '=' not in line:
            logger.debug("Skipping malformed line %d: no '=' separator", line_number)
            continue

        raw_key, value = line.split('=', 1)
        raw_key = raw_key.strip()
        if not raw_key:
            logger.debug("Skipping malformed line %d: empty key", line_number)
            continue

        key = raw_key
        first_line = value.lstrip(' ')

    _finish_message(translations, key, first_line, continuation)
    return translations


def serialize_ftl_content(translations: Dict[str, str]) -> str:
    """
    Serialize a message id -> value mapping into Fluent content.

    Values containing newlines become a block: ``key =`` followed by every
    non-empty line indented by four spaces. Empty values are kept as ``key = ``.
    """
    output = []
    for key, value in translations.items():
        value = "" if value is None else str(value)
        if "\n" in value:
            output.append(f"{key} =\n")
            for line in value.split("\n"):
                line = line.rstrip()
                if line.strip():
                    output.append(f"{INDENT}{line}\n")
        else:
            output.append(f"{key} = {value}\n")
    return "".join(output)
