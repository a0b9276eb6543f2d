"""Content fingerprinting for description-level deduplication."""

from __future__ import annotations

import hashlib


def fingerprint(text: str) -> str:
    """Return the hex MD5 digest of ``text``.

    Stored documents carry this value as ``description_hash``; switching the
    algorithm would orphan every fingerprint already persisted.
    """

    return hashlib.md5(text.encode("utf-8")).hexdigest()


__all__ = ["fingerprint"]
