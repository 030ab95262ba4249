"""Pure helpers for page slugs and materialized tree paths.

Paths and slugs are absolute, ``/``-separated strings. The root is ``/``,
a child of the root is ``/about``, a grandchild ``/about/team``.
"""

from __future__ import annotations

import re

from .errors import PathError

ROOT = "/"

_REPEATED_SLASH_RE = re.compile(r"/{2,}")


def slugify(value: str, *, allowed: str = "", fallback: str = "page") -> str:
    """Return a URL-safe segment derived from ``value``.

    Lowercases the input, replaces runs of characters other than ``a-z``,
    ``0-9`` and the ``allowed`` characters with hyphens and strips hyphens
    from both ends. Applying it twice gives the same result.
    """

    pattern = re.compile(r"[^a-z0-9" + re.escape(allowed) + r"]+")
    value = value.lower().strip()
    value = pattern.sub("-", value)
    value = value.strip("-")
    if not value:
        return fallback
    return value[:120].rstrip("-") or fallback


def require_absolute(path: str) -> str:
    if not path or not path.startswith(ROOT):
        raise PathError(path)
    return path


def child_path(parent: str, segment: str) -> str:
    """Join ``segment`` onto ``parent`` with a single separator."""

    require_absolute(parent)
    return _REPEATED_SLASH_RE.sub("/", f"{parent}/{segment}")


def ancestor_paths(path: str) -> list[str]:
    """Return the paths of every ancestor of ``path``, root first, self excluded."""

    require_absolute(path)
    if path == ROOT:
        return []
    components = [part for part in path.split("/") if part]
    paths = [ROOT]
    current = ""
    for component in components[:-1]:
        current += "/" + component
        paths.append(current)
    return paths


def boundary_prefixes(slug: str) -> list[str]:
    """Return ``slug`` and every ``/``-boundary prefix of it, shortest first."""

    require_absolute(slug)
    prefixes = [ROOT]
    current = ""
    for component in (part for part in slug.split("/") if part):
        current += "/" + component
        prefixes.append(current)
    if slug not in prefixes:
        prefixes.append(slug)
    return prefixes


def parent_path(path: str) -> str:
    require_absolute(path)
    if path == ROOT:
        raise PathError(path)
    parent = path.rsplit("/", 1)[0]
    return parent or ROOT


def last_segment(path: str) -> str:
    require_absolute(path)
    return path.rstrip("/").rsplit("/", 1)[-1]


def level_of(path: str) -> int:
    require_absolute(path)
    return len([part for part in path.split("/") if part])


def subtree_prefix(path: str) -> str:
    """Return the prefix shared by every descendant of ``path``."""

    require_absolute(path)
    return path if path.endswith("/") else path + "/"


def normalize_slug(value: str) -> str:
    """Clean a user-submitted address.

    Each segment is slugified, a leading ``/`` is forced, repeated
    separators collapse and a trailing ``/`` is dropped (the root stays ``/``).
    """

    value = slugify(value, allowed="/", fallback="")
    value = _REPEATED_SLASH_RE.sub("/", "/" + value)
    if len(value) > 1:
        value = value.rstrip("/")
    return value or ROOT
