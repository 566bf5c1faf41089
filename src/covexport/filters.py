# SPDX-License-Identifier: AGPL-3.0

import re
from collections.abc import Iterable
from typing import Protocol


class CoverageFilter(Protocol):
    def matches_filename(self, filename: str) -> bool: ...


class NameRegexCoverageFilter:
    """Matches filenames containing a match for the given regex."""

    def __init__(self, regex: str):
        self.regex = regex
        self._pattern = re.compile(regex)

    def matches_filename(self, filename: str) -> bool:
        return self._pattern.search(filename) is not None

    def __repr__(self):
        return f"NameRegexCoverageFilter({self.regex!r})"


class CoverageFilters:
    """Matches if any of the contained filters matches.

    An empty collection matches nothing.
    """

    def __init__(self, filters: Iterable[CoverageFilter] = ()):
        self.filters: list[CoverageFilter] = list(filters)

    @staticmethod
    def from_regexes(regexes: Iterable[str]) -> "CoverageFilters":
        return CoverageFilters(NameRegexCoverageFilter(r) for r in regexes)

    def matches_filename(self, filename: str) -> bool:
        return any(f.matches_filename(filename) for f in self.filters)

    def __len__(self) -> int:
        return len(self.filters)
