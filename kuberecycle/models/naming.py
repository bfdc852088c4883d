"""Sanitization of resource names and label values.

Both functions are total, deterministic and idempotent:
``sanitize_name(sanitize_name(x)) == sanitize_name(x)`` for every ``x``.
Record names are re-derived from object names, so a sanitized value must
always survive another pass unchanged.
"""

from __future__ import annotations

import re

MAX_NAME_LENGTH = 253
MAX_LABEL_VALUE_LENGTH = 63

UNNAMED = "unnamed"
_PAD = "x"

_RE_INVALID_NAME_CHAR = re.compile(r"[^a-z0-9.-]")
_RE_INVALID_LABEL_CHAR = re.compile(r"[^A-Za-z0-9_.-]")
_RE_NAME_SEPARATOR_RUN = re.compile(r"[.-]{2,}")
_RE_LABEL_SEPARATOR_RUN = re.compile(r"[_.-]{2,}")

_NAME_SEPARATORS = "-."
_LABEL_SEPARATORS = "-_."


def _collapse(match: re.Match[str]) -> str:
    run = match.group()
    # a homogeneous run keeps its separator, a mixed run becomes a hyphen
    if len(set(run)) == 1:
        return run[0]
    return "-"


def _is_alnum(char: str) -> bool:
    return char.isascii() and char.isalnum()


def _finish(value: str, separators: str, max_length: int) -> str:
    value = value.strip(separators) or UNNAMED

    if not _is_alnum(value[0]):
        value = _PAD + value
    if not _is_alnum(value[-1]):
        value = value + _PAD

    if len(value) > max_length:
        value = value[:max_length]
        if not _is_alnum(value[-1]):
            value = value[:-1] + _PAD
    return value


def sanitize_name(raw: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Return *raw* as a valid RFC 1123 subdomain resource name.

    Lowercases, maps characters outside ``[a-z0-9-.]`` to ``-``, collapses
    separator runs, trims separators and truncates to *max_length*.
    Empty results become ``"unnamed"``.
    """
    value = _RE_INVALID_NAME_CHAR.sub("-", raw.lower())
    value = _RE_NAME_SEPARATOR_RUN.sub(_collapse, value)
    return _finish(value, _NAME_SEPARATORS, max_length)


def sanitize_label_value(raw: str) -> str:
    """Return *raw* as a valid label value (at most 63 characters).

    Label values are case sensitive, so case is preserved; characters
    outside ``[A-Za-z0-9-_.]`` become ``-``.
    """
    value = _RE_INVALID_LABEL_CHAR.sub("-", raw)
    value = _RE_LABEL_SEPARATOR_RUN.sub(_collapse, value)
    return _finish(value, _LABEL_SEPARATORS, MAX_LABEL_VALUE_LENGTH)


def is_valid_name(value: str, max_length: int = MAX_NAME_LENGTH) -> bool:
    """Return True when *value* satisfies the resource-name grammar."""
    return (
        0 < len(value) <= max_length
        and _RE_INVALID_NAME_CHAR.search(value) is None
        and _is_alnum(value[0])
        and _is_alnum(value[-1])
    )


def is_valid_label_value(value: str) -> bool:
    """Return True when *value* satisfies the label-value grammar (non-empty form)."""
    return (
        0 < len(value) <= MAX_LABEL_VALUE_LENGTH
        and _RE_INVALID_LABEL_CHAR.search(value) is None
        and _is_alnum(value[0])
        and _is_alnum(value[-1])
    )
