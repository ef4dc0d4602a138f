import json
import re
from typing import Any, Dict, Iterator, Optional

from swiftclaim.utils.logger import logger

FENCE_RE = re.compile(
    r"(?:```|~~~)\s*([a-zA-Z0-9_-]+)?\s*\n(.*?)(?:```|~~~)",
    re.DOTALL
)
LANG_LINE_RE = re.compile(r"^\s*(json|javascript)\s*\n", re.IGNORECASE)


def _balanced_object(text: str) -> Optional[str]:
    """
    First top-level {...} span, skipping braces inside string literals.
    """
    depth = 0
    start = None
    in_string = escaped = False

    for pos, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            start = pos if depth == 0 else start
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
            if depth == 0:
                return text[start:pos + 1]
    return None


def _candidates(text: str) -> Iterator[str]:
    yield text

    fence = FENCE_RE.search(text)
    if fence:
        body = fence.group(2).strip()
        yield body
        yield LANG_LINE_RE.sub("", body)
        inner = _balanced_object(body)
        if inner:
            yield inner

    outer = _balanced_object(text)
    if outer:
        yield outer


def _as_dict(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def extract_json_object(result: Any) -> Optional[Dict[str, Any]]:
    """
    Pull the first JSON object out of an LLM answer.

    Tries the whole answer, then the first fenced block (``` or ~~~, with or without
    a language tag), then the first balanced object anywhere. None when nothing parses.
    """
    if not result or not isinstance(result, str):
        return None

    stripped = result.strip()
    for candidate in _candidates(stripped):
        obj = _as_dict(candidate)
        if obj is not None:
            return obj

    logger.debug(f"[safe_json] No JSON object in answer: {stripped[:120]!r}")
    return None
