"""
Title variant deduplication for ranked lists.

Editions, remasters, DLC and passes of the same game tend to sit
next to each other in rating-sorted lists. ``DeduplicationResolver``
reduces a title to a canonical key by stripping known trailing
suffixes and keeps only the first game per key. It never touches
storage.

The suffix table is English-centric and finite; variants it does not
know about are left as separate entries.
"""

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

T = TypeVar("T")

# Separators that introduce a suffix: colon, hyphen, en/em dash, or plain whitespace
SEPARATOR = r"(?:\s*[:\-–—]\s*|\s+)"

_APOSTROPHE = "['’]"

# Ordered: longer, more specific suffixes first
DEFAULT_EDITION_SUFFIXES: tuple[str, ...] = (
    "game of the year edition",
    "goty edition",
    "digital deluxe edition",
    "deluxe edition",
    "ultimate edition",
    rf"collector{_APOSTROPHE}s edition",
    "definitive edition",
    "complete edition",
    "gold edition",
    "premium edition",
    "standard edition",
    "special edition",
    "anniversary edition",
    "enhanced edition",
    rf"director{_APOSTROPHE}s cut",
    rf"friend{_APOSTROPHE}s pass",
    "season pass",
    "expansion pass",
    "remastered",
    "remaster",
    "remake",
    "dlc",
    "expansion",
    "bundle",
    "costume",
    "update",
)


def _default_title(item: Any) -> str:
    if isinstance(item, Mapping):
        return str(item.get("title") or item.get("name") or "")
    return str(getattr(item, "title", ""))


class DeduplicationResolver:
    """
    Groups title variants under one canonical key.

    Example:
        >>> resolver = DeduplicationResolver()
        >>> resolver.canonicalize("Clair Obscur: Expedition 33 - Deluxe Edition")
        'clair obscur: expedition 33'
    """

    def __init__(self, suffixes: Sequence[str] = DEFAULT_EDITION_SUFFIXES) -> None:
        self._patterns = [
            re.compile(rf"{SEPARATOR}(?:{suffix})\s*$", re.IGNORECASE) for suffix in suffixes
        ]

    def canonicalize(self, title: str) -> str:
        """
        Canonical key for ``title``.

        Suffixes are stripped repeatedly, so stacked variants such as
        "Foo Remastered - Deluxe Edition" reduce to "foo".
        """
        current = title.strip()
        changed = True
        while changed:
            changed = False
            for pattern in self._patterns:
                stripped = pattern.sub("", current).rstrip(" :-–—")
                if stripped and stripped != current:
                    current = stripped
                    changed = True
                    break
        return " ".join(current.casefold().split())

    def dedupe(
        self,
        games: Iterable[T],
        title_of: Callable[[T], str] = _default_title,
    ) -> list[T]:
        """
        Keep the first game of each canonical group, preserving order.

        Args:
            games: Games already sorted by the caller (best first)
            title_of: Title accessor; defaults to ``.title`` or ``["title"]``

        Returns:
            list: Subsequence of ``games`` with one entry per group
        """
        seen: set[str] = set()
        kept: list[T] = []
        for game in games:
            key = self.canonicalize(title_of(game))
            if key in seen:
                continue
            seen.add(key)
            kept.append(game)
        return kept

    def group(
        self,
        games: Iterable[T],
        title_of: Callable[[T], str] = _default_title,
    ) -> dict[str, list[T]]:
        """All games per canonical key, in input order."""
        groups: dict[str, list[T]] = {}
        for game in games:
            groups.setdefault(self.canonicalize(title_of(game)), []).append(game)
        return groups
