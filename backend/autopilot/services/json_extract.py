from __future__ import annotations

import json
import re
from typing import Any

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_CODE_FENCE = re.compile(r"```(?:json)?\n?")


def extract_json_object(text: str) -> Any:
    """Parse the outermost ``{...}`` block of a model answer.

    Falls back to parsing the whole text when no braces are found.
    Raises ValueError when nothing parses.
    """
    match = _JSON_BLOCK.search(text or "")
    return json.loads(match.group(0) if match else text)


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text or "").strip()
