"""Option list codec for select/multiselect fields.

Options travel as a JSON array string (``'["Red","Blue"]'``).
"""
import json
from typing import Any, Iterable, List, Optional


def trim_nonblank(options: Optional[Iterable[Any]]) -> List[str]:
    if not options:
        return []
    cleaned = []
    for option in options:
        if option is None:
            continue
        text = str(option).strip()
        if text:
            cleaned.append(text)
    return cleaned


def encode(options: Optional[Iterable[Any]]) -> Optional[str]:
    """Serialize options, or return None when nothing non-blank is left."""
    cleaned = trim_nonblank(options)
    if not cleaned:
        return None
    return json.dumps(cleaned, ensure_ascii=False, separators=(",", ":"))


def decode(raw: Optional[str]) -> List[str]:
    """Parse an options string. Malformed input means no options configured."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return trim_nonblank(raw)
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError, ValueError):
        return []
    if not isinstance(parsed, list):
        return []
    return trim_nonblank(parsed)


def normalize(raw: Any) -> Optional[str]:
    """Canonical transport form of options given either as a list or a string."""
    return encode(decode(raw))
