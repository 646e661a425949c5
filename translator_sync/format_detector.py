import json
import os
import re
from enum import Enum
from typing import List, Optional


class FileFormat(str, Enum):
    FTL = "ftl"
    JSON = "json"
    UNKNOWN = "unknown"


EXTENSION_FORMATS = {
    ".ftl": FileFormat.FTL,
    ".json": FileFormat.JSON,
}

FTL_DECLARATION_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9_-]*\s*=')


def detect_file_format(filename: str, content: Optional[str] = None) -> FileFormat:
    """
    Detect the translation file format.

    The extension is authoritative when it is recognized. Otherwise the content,
    when given, is sniffed.

    Args:
        filename: File name or path.
        content: Optional file content used when the extension is not recognized.

    Returns:
        FileFormat: FTL, JSON or UNKNOWN. UNKNOWN is final; callers must reject the file.
    """
    extension = os.path.splitext(filename)[1].lower()
    if extension in EXTENSION_FORMATS:
        return EXTENSION_FORMATS[extension]
    if content:
        return detect_format_from_content(content)
    return FileFormat.UNKNOWN


def is_valid_json(content: str) -> bool:
    try:
        json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return False
    return True


def _has_ftl_declarations(content: str) -> bool:
    """True when some ``key = value`` line sits outside any brace-delimited literal."""
    depth = 0
    for line in content.splitlines():
        if depth == 0 and FTL_DECLARATION_PATTERN.match(line):
            return True
        depth = max(0, depth + line.count('{') - line.count('}'))
    return False


def detect_format_from_content(content: str) -> FileFormat:
    trimmed = content.strip()
    if is_valid_json(trimmed):
        return FileFormat.JSON
    if _has_ftl_declarations(trimmed):
        return FileFormat.FTL
    return FileFormat.UNKNOWN


def get_supported_extensions(file_format: FileFormat) -> List[str]:
    return [ext for ext, fmt in EXTENSION_FORMATS.items() if fmt is file_format]


def get_all_supported_extensions() -> List[str]:
    return list(EXTENSION_FORMATS)


def is_supported_file(filename: str) -> bool:
    """Check whether a file has a supported translation file extension."""
    return os.path.splitext(filename)[1].lower() in EXTENSION_FORMATS
