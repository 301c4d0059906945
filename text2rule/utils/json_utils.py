"""
Helpers for pulling JSON out of free-form LLM responses.

Models wrap JSON in markdown fences or surround it with prose. These helpers
strip that away and hand back the decoded value, or None when no JSON framing
is present so callers can fall back to a local default.
"""
import json
import logging
import re
from typing import Any, Optional

from json_repair import repair_json

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang fence and a trailing ``` fence."""
    if not text:
        return ""
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
        text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def _slice(text: str, open_char: str, close_char: str) -> Optional[str]:
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start < 0 or end <= start:
        return None
    return text[start:end + 1]


def _repair(text: str) -> Optional[dict]:
    try:
        repaired = repair_json(text, return_objects=True)
    except Exception as e:
        logger.warning(f"json_repair failed: {e}")
        return None
    return repaired if isinstance(repaired, dict) and repaired else None


def repair_json_object(text: str) -> dict:
    """
    Parse a JSON object from an LLM response.

    Tries a direct parse, then json-repair, then the outermost {...} slice
    (parsed as is, then repaired).

    Raises:
        ValueError: if no object can be recovered
    """
    text = strip_code_fences(text)

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    sliced = _slice(text, "{", "}")
    if sliced is None:
        raise ValueError(f"No JSON object found in response: {text[:200]}...")

    repaired = _repair(text)
    if repaired is not None:
        return repaired

    try:
        return json.loads(sliced)
    except json.JSONDecodeError:
        pass

    repaired = _repair(sliced)
    if repaired is not None:
        return repaired

    raise ValueError(f"Could not parse JSON from response: {text[:200]}...")


def extract_json_object(text: Optional[str]) -> Optional[dict]:
    """Like repair_json_object but returns None instead of raising."""
    if not text:
        return None
    try:
        return repair_json_object(text)
    except ValueError as e:
        logger.warning(str(e))
        return None


def extract_json_array(text: Optional[str]) -> Optional[list]:
    """Return the outermost [...] array in ``text``, or None."""
    if not text:
        return None
    text = strip_code_fences(text)
    sliced = _slice(text, "[", "]")
    if sliced is None:
        logger.warning(f"No JSON array found in response: {text[:200]}...")
        return None

    try:
        parsed: Any = json.loads(sliced)
    except json.JSONDecodeError:
        try:
            parsed = repair_json(sliced, return_objects=True)
        except Exception as e:
            logger.warning(f"json_repair failed: {e}")
            return None

    return parsed if isinstance(parsed, list) else None
