"""
Response filters that shrink large bodies before they reach an LLM.

Two filters are available:

- ``filter_regex``: excerpts of the body around each match, with nearby
  excerpts merged into one context window.
- ``filter_jmespath``: a JMESPath query over a JSON body, re-serialised
  with two-space indentation.

Both attach metadata describing the reduction (token estimate and size of
the source and the result).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import jmespath
from jmespath.exceptions import JMESPathError

from qurl.log import component_logger

CHARS_PER_CONTEXT_LINE = 80
MIN_CONTEXT_CHARS = 100
DEFAULT_CONTEXT_LINES = 5


class FilterError(Exception):
    """Raised when a filter cannot be applied (bad pattern, bad JSON, bad expression)."""


@dataclass(frozen=True)
class FilterResult:
    """Filtered content plus ``_meta`` describing the reduction."""

    content: str
    meta: Dict[str, Any] = field(default_factory=dict)


def estimate_tokens(text: str) -> int:
    """Rough token count: four bytes per token."""
    return _byte_len(text) // 4


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _size_meta(source: str, returned: str, returned_empty: bool = False) -> Dict[str, Any]:
    return {
        "tokens": {
            "returned": 0 if returned_empty else estimate_tokens(returned),
            "source": estimate_tokens(source),
        },
        "bytes": {
            "returned": 0 if returned_empty else _byte_len(returned),
            "source": _byte_len(source),
        },
    }


# ── Regex ────────────────────────────────────────────────────────────────


def _merge_windows(windows: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
    merged = [windows[0]]
    for start, end in windows[1:]:
        last_start, last_end = merged[-1]
        if start <= last_end:
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def _byte_spans(regex: re.Pattern, body: str) -> List[Tuple[int, int]]:
    """
    UTF-8 byte offsets of every match, in order.

    An empty match that abuts the previous match is dropped, so patterns
    like ``a*`` count each run once.
    """
    spans: List[Tuple[int, int]] = []
    char_pos = byte_pos = 0
    prev_end = -1
    for match in regex.finditer(body):
        start, end = match.span()
        if start == end == prev_end:
            continue
        byte_pos += _byte_len(body[char_pos:start])
        byte_start = byte_pos
        byte_pos += _byte_len(body[start:end])
        char_pos = prev_end = end
        spans.append((byte_start, byte_pos))
    return spans


def filter_regex(
    body: str,
    pattern: str,
    context_lines: int = DEFAULT_CONTEXT_LINES,
    logger: Optional[logging.Logger] = None,
) -> FilterResult:
    """
    Return the parts of ``body`` surrounding each match of ``pattern``.

    Each match gets ``max(context_lines * 80, 100)`` bytes of context
    on either side; windows that touch or overlap are merged. No match is
    not an error: the result is empty and the counts are zero.

    Raises:
        FilterError: The pattern does not compile.
    """
    log = component_logger(logger, "filters")
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise FilterError(f"invalid regex pattern: {exc}") from exc

    context_chars = max(context_lines * CHARS_PER_CONTEXT_LINE, MIN_CONTEXT_CHARS)
    spans = _byte_spans(regex, body)
    log.debug(
        "regex filter matched",
        extra={"pattern": pattern, "context_chars": context_chars, "total_matches": len(spans)},
    )

    if not spans:
        meta = {"filter": {"type": "regex", "pattern": pattern, "total_matches": 0}}
        meta.update(_size_meta(body, "", returned_empty=True))
        return FilterResult(content="", meta=meta)

    raw = body.encode("utf-8")
    windows = [(max(0, start - context_chars), min(len(raw), end + context_chars)) for start, end in spans]
    merged = _merge_windows(windows)

    blocks = []
    for i, (start, end) in enumerate(merged, 1):
        # window edges may split a multi-byte character
        excerpt = raw[start:end].decode("utf-8", errors="replace")
        if start > 0:
            excerpt = "..." + excerpt
        if end < len(raw):
            excerpt = excerpt + "..."
        blocks.append(f"=== Context Window {i} (bytes {start}-{end}) ===\n{excerpt}")
    content = "\n\n".join(blocks)

    meta = {
        "filter": {
            "type": "regex",
            "pattern": pattern,
            "total_matches": len(spans),
            "merged_windows": len(merged),
        }
    }
    meta.update(_size_meta(body, content))
    log.debug(
        "regex filter applied",
        extra={"merged_windows": len(merged), "result_bytes": meta["bytes"]["returned"]},
    )
    return FilterResult(content=content, meta=meta)


# ── JMESPath ─────────────────────────────────────────────────────────────


def filter_jmespath(body: str, expression: str, logger: Optional[logging.Logger] = None) -> FilterResult:
    """
    Apply a JMESPath expression to a JSON body.

    ``result_count`` is the length of an array result, 1 for any other
    non-null result and 0 for null.

    Raises:
        FilterError: The body is not JSON or the expression is invalid.
    """
    log = component_logger(logger, "filters")
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise FilterError(f"invalid JSON response: {exc}") from exc

    try:
        result = jmespath.search(expression, data)
    except JMESPathError as exc:
        raise FilterError(f"invalid jmespath expression: {exc}") from exc

    content = json.dumps(result, indent=2, ensure_ascii=False)
    if isinstance(result, list):
        result_count = len(result)
    elif result is not None:
        result_count = 1
    else:
        result_count = 0

    meta: Dict[str, Any] = {
        "filter": {"type": "jmespath", "expression": expression, "result_count": result_count}
    }
    meta.update(_size_meta(body, content))
    log.debug("jmespath filter applied", extra={"expression": expression, "result_count": result_count})
    return FilterResult(content=content, meta=meta)
