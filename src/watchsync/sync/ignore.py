"""Exclusion patterns for file synchronization.

Patterns follow the rsync exclude style used in profiles:
- ``*`` matches within one path segment
- ``**`` matches across segments
- ``?`` matches one non-separator character
- a bare name (``node_modules``) matches that name at any depth

Patterns match at segment boundaries, so everything below an excluded
directory is excluded as well. Matching is case-insensitive.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

_GLOBSTAR = "\x00"


def _strip_pattern(pattern: str) -> str:
    # A trailing slash only marks a directory pattern
    normalized = pattern.replace("\\", "/")
    return normalized.rstrip("/") or normalized


def _pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern to a segment-anchored regex."""
    normalized = _strip_pattern(pattern)
    # A leading slash anchors the pattern at the sync root
    prefix = "(?:^|/)"
    if normalized.startswith("/") and len(normalized) > 1:
        prefix = "^/?"
        normalized = normalized[1:]
    normalized = normalized.replace("**", _GLOBSTAR)
    parts: list[str] = []
    for char in normalized:
        if char == _GLOBSTAR:
            parts.append(".*")
        elif char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
    return re.compile(f"{prefix}{''.join(parts)}(?:$|/)", re.IGNORECASE)


def _is_bare_name(pattern: str) -> bool:
    return not any(c in _strip_pattern(pattern) for c in "/*?")


def normalize_path(path: str) -> str:
    """Use forward slashes for consistency."""
    return path.replace("\\", "/")


class ExclusionMatcher:
    """Decides whether a path takes part in sync."""

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: Ordered exclude patterns.
        """
        self._patterns = tuple(p for p in (patterns or ()) if p)
        self._regexes = tuple(_pattern_to_regex(p) for p in self._patterns)
        self._bare_names = frozenset(
            _strip_pattern(p).lower() for p in self._patterns if _is_bare_name(p)
        )

    @property
    def patterns(self) -> tuple[str, ...]:
        """Get the raw patterns."""
        return self._patterns

    def is_excluded(self, path: str) -> bool:
        """Check if a path should be excluded.

        Args:
            path: Path to check, absolute or relative to the sync root.

        Returns:
            True if any pattern matches.
        """
        if not self._patterns:
            return False

        normalized = normalize_path(path)

        if self._bare_names:
            segments = {s.lower() for s in normalized.split("/") if s}
            if segments & self._bare_names:
                return True

        return any(regex.search(normalized) for regex in self._regexes)

    def __repr__(self) -> str:
        return f"ExclusionMatcher({list(self._patterns)!r})"
