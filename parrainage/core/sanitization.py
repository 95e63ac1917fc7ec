"""
Text sanitization applied at the module boundary.

sanitize_text_field:     single-line plain text (titles, list items)
sanitize_textarea_field: multi-line plain text (definitions, paragraphs)

Both strip HTML tags (including the body of <script> and <style>
elements), drop control characters and trim the result. Only the
single-line variant collapses line breaks and runs of whitespace.
"""

import re
from typing import Any

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*?>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"[\r\n\t ]+")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return str(value)


def strip_all_tags(value: Any) -> str:
    text = _to_text(value)
    text = _SCRIPT_STYLE_RE.sub("", text)
    return _TAG_RE.sub("", text)


def sanitize_text_field(value: Any) -> str:
    text = strip_all_tags(value)
    text = _CONTROL_CHARS_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text)
    return text.strip()


def sanitize_textarea_field(value: Any) -> str:
    text = strip_all_tags(value)
    text = _CONTROL_CHARS_RE.sub("", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text.strip()
