"""
Input sanitisation for text sent to the LLM.

Lossy on purpose: HTML-like tags go first, then every character that is not
a word character, whitespace or one of ``.,!?-``.  With ``keep_unicode`` the
word class is Unicode-aware (accented French letters survive); without it the
class is ASCII-only.
"""
from __future__ import annotations

import re

_TAG_RE = re.compile(r'<[^>]*>')
_DISALLOWED_UNICODE_RE = re.compile(r'[^\w\s.,!?-]')
_DISALLOWED_ASCII_RE = re.compile(r'[^\w\s.,!?-]', re.ASCII)


def sanitize_input(text: str, keep_unicode: bool = True) -> str:
    without_tags = _TAG_RE.sub('', text)
    pattern = _DISALLOWED_UNICODE_RE if keep_unicode else _DISALLOWED_ASCII_RE
    return pattern.sub('', without_tags).strip()
