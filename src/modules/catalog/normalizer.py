"""Canonical forms of free-text hierarchy names.

Two names are "the same" iff their ``normalize`` forms are equal.  All
functions are pure and total: an empty (or ``None``) input yields ``""``.
"""

from __future__ import annotations

import re

from django.utils.text import slugify

_WHITESPACE = re.compile(r"\s+")
_NON_CODE = re.compile(r"[^A-Z0-9]+")


def normalize(name: str | None) -> str:
    """Trim, lowercase, and collapse internal whitespace runs to one space."""
    if not name:
        return ""
    return _WHITESPACE.sub(" ", name.strip().lower())


def sanitize_display(name: str | None) -> str:
    """Canonical stored display form: each word title-cased.

    First letter upper, remainder lower; whitespace runs collapse to one
    space.  ``"  coca   COLA "`` -> ``"Coca Cola"``.
    """
    if not name:
        return ""
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split())


def code_token(name: str | None) -> str:
    """SKU fragment: upper-case ``[A-Z0-9]`` runs joined by single hyphens.

    ``"Single Pack"`` -> ``"SINGLE-PACK"``, ``" 70g "`` -> ``"70G"``.
    """
    if not name:
        return ""
    return _NON_CODE.sub("-", name.strip().upper()).strip("-")


def slug_for(name: str | None) -> str:
    """URL slug for taxonomy entities (categories / subcategories)."""
    return slugify(name or "")
