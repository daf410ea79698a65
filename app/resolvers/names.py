"""
app/resolvers/names.py

Text normalization shared by seller and client resolution.
"""

from __future__ import annotations

import re
import unicodedata

_NON_DIGIT_RE = re.compile(r"\D")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_person_name(value: str | None) -> str:
    """
    Lowercase, accent-free, single-spaced form of a person name.

    Returns an empty string for blank input and for names made only of digits,
    which spreadsheets use for placeholder or id-like "names".
    """

    if not value:
        return ""
    collapsed = _WHITESPACE_RE.sub(" ", strip_diacritics(str(value)).lower()).strip()
    if not collapsed or collapsed.replace(" ", "").isdigit():
        return ""
    return collapsed


def normalize_seller_text(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value).lower()).strip()


def digits_only(value: str | None) -> str:
    if not value:
        return ""
    return _NON_DIGIT_RE.sub("", str(value))


def first_token(value: str) -> str:
    parts = value.split()
    return parts[0] if parts else ""
