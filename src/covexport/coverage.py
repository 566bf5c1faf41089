# SPDX-License-Identifier: AGPL-3.0

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol

from .exceptions import InconsistentCoverageError
from .logs import debug


class RegionKind(IntEnum):
    CODE = 0
    EXPANSION = 1
    SKIPPED = 2
    GAP = 3
    BRANCH = 4


@dataclass(frozen=True, slots=True)
class Segment:
    """A point in a file where the coverage counter state changes."""

    line: int
    col: int
    count: int
    has_count: bool
    is_region_entry: bool


@dataclass(frozen=True, slots=True)
class CountedRegion:
    line_start: int
    column_start: int
    line_end: int
    column_end: int
    execution_count: int
    file_id: int = 0
    expanded_file_id: int = 0
    kind: RegionKind = RegionKind.CODE

    @property
    def start(self) -> tuple[int, int]:
        return (self.line_start, self.column_start)


@dataclass(frozen=True)
class FunctionRecord:
    name: str
    execution_count: int
    regions: tuple[CountedRegion, ...] = ()

    # indexed by the regions' file_id; filenames[0] is the main file
    filenames: tuple[str, ...] = ()

    @property
    def main_filename(self) -> str | None:
        return self.filenames[0] if self.filenames else None

    def code_regions(self) -> Iterator[CountedRegion]:
        return (r for r in self.regions if r.kind == RegionKind.CODE)


@dataclass(frozen=True)
class ExpansionRecord:
    """An expansion site paired with the function record it expands into."""

    region: CountedRegion
    function: FunctionRecord


@dataclass(frozen=True)
class CoverageData:
    """Detailed coverage of one file.

    Iterating yields the segments in the order the mapping provided them,
    which is ascending source position.
    """

    filename: str
    segments: tuple[Segment, ...] = ()
    expansions: tuple[ExpansionRecord, ...] = ()

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)


class CoverageProvider(Protocol):
    """Read-only view of a computed coverage mapping.

    Implementations are shared across export worker threads without locking,
    so none of these methods may mutate the provider.
    """

    def unique_source_files(self) -> list[str]: ...

    def coverage_for_file(self, filename: str) -> CoverageData: ...

    def covered_functions(self) -> Iterable[FunctionRecord]: ...


@dataclass
class CoverageMapping:
    """In-memory coverage mapping, keyed by filename."""

    files: dict[str, CoverageData] = field(default_factory=dict)
    functions: list[FunctionRecord] = field(default_factory=list)

    def add_file(self, data: CoverageData) -> "CoverageMapping":
        if data.filename in self.files:
            raise InconsistentCoverageError(f"duplicate source file: {data.filename}")
        self.files[data.filename] = data
        return self

    def add_function(self, function: FunctionRecord) -> "CoverageMapping":
        self.functions.append(function)

        # functions may reference files with no segments of their own
        for filename in function.filenames:
            if filename not in self.files:
                debug(f"registering {filename} from function {function.name}")
                self.files[filename] = CoverageData(filename)

        return self

    def unique_source_files(self) -> list[str]:
        return sorted(self.files)

    def coverage_for_file(self, filename: str) -> CoverageData:
        try:
            return self.files[filename]
        except KeyError:
            raise InconsistentCoverageError(
                f"no coverage data for {filename}"
            ) from None

    def covered_functions(self) -> Iterator[FunctionRecord]:
        return iter(self.functions)
