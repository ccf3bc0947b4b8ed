from __future__ import annotations

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


def sanitize_for_log(value: object, *, max_len: int = 500) -> str:
    """Single-line, bounded rendering of untrusted text (model output, provider errors)."""
    if value is None:
        return ""
    text = str(value)
    if not text and isinstance(value, BaseException):
        text = value.__class__.__name__
    # Newlines and control chars would let model output forge log lines.
    text = " ".join(_CONTROL_CHARS.sub(" ", text).split())
    if len(text) > max_len:
        return text[:max_len] + "..."
    return text
