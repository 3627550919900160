"""Prompt-input sanitizer for provider-supplied text.

Protocol names and pool symbols come straight from third-party APIs and are
pasted into the advisory prompt. ``scrub()`` strips markup, neutralizes
instruction-like phrases and bounds the length before that happens.
"""
from __future__ import annotations

import html
import re

_INJECTION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(ignore|disregard|forget|override)\s+(all\s+)?(previous|prior|above|earlier)?\s*instructions?", re.IGNORECASE),
    re.compile(r"\byou\s+are\s+now\b", re.IGNORECASE),
    re.compile(r"\bact\s+as\b", re.IGNORECASE),
    re.compile(r"\bnew\s+(instructions?|directive|task)\b", re.IGNORECASE),
    re.compile(r"\bsystem\s+prompt\b", re.IGNORECASE),
    re.compile(r"\b(system|assistant|human|user)\s*:\s", re.IGNORECASE),
    # A pool label has no business steering where funds go
    re.compile(r"\b(send|transfer|deposit|withdraw)\s+(all|everything|funds|\d[\d.,]*)\b", re.IGNORECASE),
    re.compile(r"\b(private\s+key|seed\s+phrase|mnemonic)\b", re.IGNORECASE),
]

_HTML_TAG_RE = re.compile(r"<[^>]{0,200}>")
_WHITESPACE_RE = re.compile(r"\s+")
# JSON delimiters would confuse the greedy {...} extraction of the reply
_BRACES_RE = re.compile(r"[{}`]")


def scrub(text: str, max_length: int = 80) -> str:
    """Return ``text`` safe to embed in an advisory prompt line."""
    if not text:
        return ""

    text = html.unescape(text)
    text = _HTML_TAG_RE.sub(" ", text)
    for pattern in _INJECTION_PATTERNS:
        text = pattern.sub("[FILTERED]", text)
    text = _BRACES_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text[:max_length]
