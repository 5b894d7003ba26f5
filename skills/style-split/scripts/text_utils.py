#!/usr/bin/env python3
"""
ABOUTME: Text helpers shared by the style-split services and the split_text CLI
ABOUTME: XML-safe sanitization, whitespace collapsing and short log previews
"""

import re

# XML 1.0 allows #x9, #xA, #xD and everything from #x20 up; lxml rejects the rest
_ILLEGAL_XML_CHARS = ''.join(
    chr(c) for c in range(0x20)
    if c not in (0x09, 0x0A, 0x0D)
)
_ILLEGAL_XML_TABLE = str.maketrans('', '', _ILLEGAL_XML_CHARS)

_WHITESPACE_RUN = re.compile(r'\s+')


def sanitize_xml_string(text: str) -> str:
    """
    Remove control characters that are illegal in XML 1.0.

    lxml raises ValueError when such characters are assigned to element text,
    so every string written into a styled tree goes through here first.

    Args:
        text: Text that may contain control characters

    Returns:
        Sanitized text. Returns input unchanged if not a non-empty string.
    """
    if not text or not isinstance(text, str):
        return text
    return text.translate(_ILLEGAL_XML_TABLE)


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim both ends."""
    if not text:
        return ''
    return _WHITESPACE_RUN.sub(' ', text).strip()


def format_text_preview(text: str, max_len: int = 30) -> str:
    """
    Format text for log output: collapse whitespace and truncate.

    Args:
        text: Text to format
        max_len: Maximum length before truncation

    Returns:
        Clean, truncated text with "..." suffix if truncated
    """
    clean = collapse_whitespace(text or '')
    if len(clean) > max_len:
        return clean[:max_len] + "..."
    return clean
