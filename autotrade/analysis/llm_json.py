"""Helpers for pulling a JSON object out of free-form LLM text."""

import json
import re
from typing import Any, Optional

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """Return the first ``{...}`` block in *text* decoded as a dict.

    Markdown code fences are stripped first.  Returns ``None`` when no
    decodable object is present.
    """
    cleaned = _FENCE_RE.sub("", str(text or "").strip())
    match = _OBJECT_RE.search(cleaned)
    if match is None:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
