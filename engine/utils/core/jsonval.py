import json
import re
from typing import Any

from utils.core.errors import NoStructuredPayload, PayloadMalformed
from utils.core.log import get_logger

"""
Pulling the JSON payload out of completion-service replies.

The model is told to answer with bare JSON but sometimes wraps it in prose or
code fences, so the payload is taken as everything from the first "{" to the
last "}" in the reply.
"""

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


def find_json_block(text: str) -> str:
    """Return the greedy brace-delimited substring of `text`."""
    match = _JSON_BLOCK.search(text or "")
    if not match:
        raise NoStructuredPayload("Could not find JSON in the AI response")
    return match.group(0)


def parse_json_block(text: str) -> dict[str, Any]:
    """Extract and decode the JSON object embedded in a completion reply."""
    logger = get_logger()
    block = find_json_block(text)
    try:
        return json.loads(block)
    except json.JSONDecodeError as e:
        logger.debug(f"Problematic JSON block: {block[:500]}")
        raise PayloadMalformed(f"JSON parsing failed: {e}") from e
