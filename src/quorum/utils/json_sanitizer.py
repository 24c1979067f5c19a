"""extract and repair json from llm responses"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
COMMENT_PATTERN = re.compile(r"//.*?$|/\*.*?\*/", re.DOTALL | re.MULTILINE)
TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def _strip_code_fence(text: str) -> str:
    match = CODE_FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def find_balanced_object(text: str) -> Optional[str]:
    """
    balanced {...} region with the earliest opening brace, ignoring braces
    inside string literals. single pass over the text.
    """
    open_braces = []
    best = None
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            open_braces.append(index)
        elif char == "}" and open_braces:
            start = open_braces.pop()
            if not open_braces:
                return text[start:index + 1]
            # an enclosing brace may still close later
            if best is None or start < best[0]:
                best = (start, index)
    if best is None:
        return None
    return text[best[0]:best[1] + 1]


def repair_json(text: str) -> str:
    """remove comments and trailing commas"""
    text = COMMENT_PATTERN.sub("", text)
    text = TRAILING_COMMA.sub(r"\1", text)
    return text.strip()


def extract_json_payload(text: str) -> str:
    """extract json from model response"""
    candidate = _strip_code_fence(text)
    region = find_balanced_object(candidate)
    if region is None and candidate is not text:
        region = find_balanced_object(text)
    return region if region is not None else candidate


def safe_json_loads(text: str) -> Any:
    """parse text as json, repairing only when the plain parse fails"""
    payload = extract_json_payload(text)
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(repair_json(payload))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse JSON payload: {exc}") from exc
