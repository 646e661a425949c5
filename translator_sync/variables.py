"""
Embedded variable (placeholder) detection for translation strings.

Four syntaxes are recognized:

- ``{{name}}``  i18next / React style, may contain nested braces (``{{ fmt(x, {style}) }}``)
- ``%{name}``   Ruby i18n style
- ``{$name}``   Fluent style
- ``{name}``    Vue i18n / ICU style
"""
import logging
import re
from typing import List, Tuple

logger = logging.getLogger(__name__)

PERCENT_BRACE_PATTERN = re.compile(r'%\{[^{}]+\}')
DOLLAR_BRACE_PATTERN = re.compile(r'\{\$[^{}]+\}')
SINGLE_BRACE_PATTERN = re.compile(r'\{[^{}]+\}')

SYNTAX_DESCRIPTIONS = {
    'double': "React i18next format ({{variable}})",
    'fluent': "Fluent format ({$variable})",
    'ruby': "Ruby i18n format (%{variable})",
    'single': "Vue i18n / React Intl format ({variable})",
}


def _overlaps(start: int, end: int, spans: List[Tuple[int, int]]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def _find_double_brace_spans(text: str) -> List[Tuple[int, int]]:
    """
    Find balanced ``{{ ... }}`` spans, outermost first.

    A span opens at ``{{`` and closes where the brace depth returns to zero.
    It only counts when it closes with ``}}``; unterminated openers are ignored.
    """
    spans = []
    i = 0
    length = len(text)
    while i < length - 1:
        if text[i] != '{' or text[i + 1] != '{':
            i += 1
            continue
        depth = 0
        end = -1
        for j in range(i, length):
            char = text[j]
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    end = j
                    break
        if end != -1 and text[end - 1] == '}' and end - i >= 3:
            spans.append((i, end + 1))
            i = end + 1
        else:
            i += 1
    return spans


def _collect_spans(text: str) -> List[Tuple[int, int]]:
    consumed = _find_double_brace_spans(text)
    for pattern in (PERCENT_BRACE_PATTERN, DOLLAR_BRACE_PATTERN, SINGLE_BRACE_PATTERN):
        for match in pattern.finditer(text):
            if not _overlaps(match.start(), match.end(), consumed):
                consumed.append((match.start(), match.end()))
    return sorted(consumed)


def extract_variables(text: str) -> List[str]:
    """
    Extract embedded variables from a translation string.

    Args:
        text: The text to scan.

    Returns:
        The distinct variable tokens, in order of first appearance.
    """
    if not text:
        return []
    tokens = [text[start:end] for start, end in _collect_spans(text)]
    return list(dict.fromkeys(tokens))


def missing_variables(source: str, translation: str) -> List[str]:
    """Return the source variables that do not appear verbatim in the translation."""
    translation_vars = set(extract_variables(translation))
    return [token for token in extract_variables(source) if token not in translation_vars]


def validate_variable_preservation(source: str, translation: str) -> bool:
    """
    Check that a translation keeps every variable of its source text.

    Extra variables in the translation are tolerated.
    """
    missing = missing_variables(source, translation)
    for token in missing:
        logger.warning("Variable %s missing in translation", token)
    return not missing


def classify_variable(token: str) -> str:
    if token.startswith('{{') and token.endswith('}}'):
        return 'double'
    if token.startswith('%{'):
        return 'ruby'
    if token.startswith('{$'):
        return 'fluent'
    return 'single'


def get_variable_instructions(text: str) -> str:
    """Build the prompt hint listing the variable syntaxes found in ``text``."""
    variables = extract_variables(text)
    if not variables:
        return ""

    syntaxes = dict.fromkeys(SYNTAX_DESCRIPTIONS[classify_variable(token)] for token in variables)
    return (
        "CRITICAL: Preserve ALL variables exactly as they appear. "
        f"Detected formats: {', '.join(syntaxes)}. "
        f"Variables found: {', '.join(variables)}"
    )
