"""
Extraction of the trailing {"actions": [...]} object from assistant replies.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from manifest_viewer.schemas.assistant import QuickAction

logger = logging.getLogger(__name__)

FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
# Coarse; candidates are confirmed by json.loads
RAW_ACTIONS_RE = re.compile(r'\{[\s\S]*?"actions"\s*:\s*\[[\s\S]*?\}[\s\S]*?\}')

_quick_action_adapter = TypeAdapter(QuickAction)


def _load_actions(candidate: str) -> Optional[List[Any]]:
    try:
        parsed = json.loads(candidate)
    except ValueError:
        return None
    if isinstance(parsed, dict) and isinstance(parsed.get("actions"), list):
        return parsed["actions"]
    return None


def _balanced_object_around(text: str, index: int) -> Optional[Tuple[int, int]]:
    start = text.rfind("{", 0, index + 1)
    if start < 0:
        return None
    depth = 0
    for pos in range(start, len(text)):
        ch = text[pos]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return start, pos + 1
    return None


def parse_actions(text: str) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Split an assistant reply into visible text and raw action dicts.

    Tries, in order: the last fenced JSON block, the last raw JSON object
    with an "actions" key, a brace-balanced scan around the last "actions"
    occurrence, and finally the last line on its own.
    """
    blocks = FENCED_BLOCK_RE.findall(text)
    for block in reversed(blocks):
        actions = _load_actions(block)
        if actions is not None:
            logger.debug("Actions parsed from fenced JSON")
            return FENCED_BLOCK_RE.sub("", text).strip(), actions

    for match in reversed(list(RAW_ACTIONS_RE.finditer(text))):
        actions = _load_actions(match.group(0))
        if actions is not None:
            logger.debug("Actions parsed from raw JSON block")
            return (text[:match.start()] + text[match.end():]).strip(), actions

    idx = text.rfind('"actions"')
    if idx != -1:
        span = _balanced_object_around(text, idx)
        if span:
            start, end = span
            actions = _load_actions(text[start:end])
            if actions is not None:
                logger.debug("Actions parsed via brace balance")
                return (text[:start] + text[end:]).strip(), actions

    lines = text.strip().split("\n")
    actions = _load_actions(lines[-1])
    if actions is not None:
        logger.debug("Actions parsed from last-line JSON")
        return "\n".join(lines[:-1]), actions
    return text, []


def validate_actions(raw_actions: List[Any]) -> List[QuickAction]:
    """Type-check raw action dicts; entries that do not validate are dropped."""
    actions = []
    for raw in raw_actions:
        try:
            actions.append(_quick_action_adapter.validate_python(raw))
        except ValidationError as e:
            logger.warning("Dropping invalid assistant action %s: %s", raw, e.errors()[:1])
    return actions
