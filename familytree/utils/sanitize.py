import html
import re
from typing import Optional

_SCRIPT_OR_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG = re.compile(r"<[^>]*>")


def strip_html_tags(value: str) -> str:
    value = _SCRIPT_OR_STYLE.sub("", value)
    value = _COMMENT.sub("", value)
    return _TAG.sub("", value)


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Strip markup, escape what is left, trim. Blank input becomes None."""
    if value is None:
        return None
    cleaned = html.escape(strip_html_tags(value), quote=True).strip()
    return cleaned or None


def sanitize_fields(data: dict, fields) -> dict:
    for key in fields:
        if isinstance(data.get(key), str):
            data[key] = sanitize_string(data[key])
    return data
