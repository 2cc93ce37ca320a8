import re
from typing import Any

_DIGITS_RE = re.compile(r"\d")
_STB_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9\-_/]{0,63}$")

_TRUTHY = ("true", "1", "yes", "y", "on")


def clean_str(val: Any, max_len: int = 255) -> str | None:
    """
    Collapse whitespace, trim, enforce max length. Returns None if empty after cleaning.
    Non-strings (spreadsheet numbers) are stringified first.
    """
    if val is None:
        return None
    if isinstance(val, float) and val.is_integer():
        val = int(val)
    s = re.sub(r"\s+", " ", str(val)).strip()
    if not s:
        return None
    return s[:max_len]


def clean_stb(val: Any) -> str | None:
    """STB numbers are matched exactly, so only trim (no case folding)."""
    s = clean_str(val, 64)
    if s is None:
        return None
    return s.replace(" ", "")


def is_valid_stb(val: str | None) -> bool:
    if not val:
        return False
    return bool(_STB_RE.match(val))


def normalize_mobile(val: Any) -> str | None:
    """
    Normalize an Indian mobile number to its 10 digits.
    Accepts +91 / 91 / 0 prefixes. Returns None if invalid or empty.
    """
    s = clean_str(val, 32)
    if not s:
        return None
    digits = "".join(_DIGITS_RE.findall(s))
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    if len(digits) != 10:
        return None
    return digits


def coerce_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    if isinstance(val, (int, float)):
        return val == 1
    if isinstance(val, str):
        return val.strip().lower() in _TRUTHY
    return False
