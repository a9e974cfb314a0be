"""Collection path matching shared by the document store adapters."""

import re

WILDCARD = "*"


def collection_regex(path: str) -> str:
    """
    Build an anchored regular expression matching a collection path.

    ``*`` segments match exactly one path segment. The expression is
    valid for both Python ``re`` and PostgreSQL's ``~`` operator.
    """
    segments = path.strip("/").split("/")
    parts = ["[^/]+" if segment == WILDCARD else re.escape(segment) for segment in segments]
    return "^" + "/".join(parts) + "$"


def parent_of(path: str) -> str:
    """Return the collection path of a document path."""
    return path.strip("/").rsplit("/", 1)[0]


def validate_document_path(path: str) -> str:
    """
    Normalize a document path and reject ones that cannot name a document.

    Raises:
        ValueError: If the path has fewer than two segments or contains wildcards
    """
    normalized = path.strip("/")
    segments = normalized.split("/")
    if len(segments) < 2 or any(not s or s == WILDCARD for s in segments):
        raise ValueError(f"Invalid document path: {path!r}")
    return normalized
