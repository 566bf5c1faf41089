# SPDX-License-Identifier: AGPL-3.0

"""Per-file and aggregate coverage summaries.

Computes the statistics the exporter embeds into each file object. Percentages
are 0.0 whenever the corresponding count is 0.
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from .config import ExportOptions
from .constants import TOTALS_LABEL
from .coverage import CoverageData, CoverageProvider, FunctionRecord, Segment
from .logs import debug
from .pools import resolve_num_threads, thread_pool


def _percent(covered: int, count: int) -> float:
    if count == 0:
        return 0.0
    return covered / count * 100.0


@dataclass
class RegionCoverageInfo:
    covered: int = 0
    num_regions: int = 0

    @property
    def percent_covered(self) -> float:
        return _percent(self.covered, self.num_regions)

    def add(self, other: "RegionCoverageInfo") -> "RegionCoverageInfo":
        self.covered += other.covered
        self.num_regions += other.num_regions
        return self

    def merge(self, other: "RegionCoverageInfo") -> None:
        """Merge coverage of another instantiation of the same function."""
        self.covered = max(self.covered, other.covered)


@dataclass
class LineCoverageInfo:
    covered: int = 0
    num_lines: int = 0

    @property
    def percent_covered(self) -> float:
        return _percent(self.covered, self.num_lines)

    def add(self, other: "LineCoverageInfo") -> "LineCoverageInfo":
        self.covered += other.covered
        self.num_lines += other.num_lines
        return self


@dataclass
class FunctionCoverageInfo:
    executed: int = 0
    num_functions: int = 0

    @property
    def percent_covered(self) -> float:
        return _percent(self.executed, self.num_functions)

    def add_function(self, executed: bool) -> None:
        if executed:
            self.executed += 1
        self.num_functions += 1

    def add(self, other: "FunctionCoverageInfo") -> "FunctionCoverageInfo":
        self.executed += other.executed
        self.num_functions += other.num_functions
        return self


@dataclass
class FileCoverageSummary:
    name: str
    lines: LineCoverageInfo = field(default_factory=LineCoverageInfo)
    functions: FunctionCoverageInfo = field(default_factory=FunctionCoverageInfo)
    instantiations: FunctionCoverageInfo = field(default_factory=FunctionCoverageInfo)
    regions: RegionCoverageInfo = field(default_factory=RegionCoverageInfo)

    def __iadd__(self, other: "FileCoverageSummary") -> "FileCoverageSummary":
        self.lines.add(other.lines)
        self.functions.add(other.functions)
        self.instantiations.add(other.instantiations)
        self.regions.add(other.regions)
        return self


class Summarizer(Protocol):
    def __call__(
        self,
        coverage: CoverageProvider,
        source_files: Sequence[str],
        options: ExportOptions,
    ) -> tuple[list[FileCoverageSummary], FileCoverageSummary]: ...


#
# line statistics
#


@dataclass(frozen=True, slots=True)
class LineCoverageStats:
    line: int
    mapped: bool
    execution_count: int


def _starts_region(segment: Segment) -> bool:
    return segment.has_count and segment.is_region_entry


def line_coverage_stats(segments: Sequence[Segment]) -> Iterator[LineCoverageStats]:
    """Yield per-line statistics for the lines spanned by the given segments.

    The segments must be sorted by source position.
    """

    if not segments:
        return

    # the segment active at the start of the current line
    wrapped: Segment | None = None
    index = 0

    for line in range(segments[0].line, segments[-1].line + 1):
        line_segments = []
        while index < len(segments) and segments[index].line == line:
            line_segments.append(segments[index])
            index += 1

        starts_skipped = (
            bool(line_segments)
            and not line_segments[0].has_count
            and line_segments[0].is_region_entry
        )
        num_region_starts = sum(1 for s in line_segments if _starts_region(s))
        wrapped_has_count = wrapped is not None and wrapped.has_count

        mapped = not starts_skipped and (wrapped_has_count or num_region_starts > 0)
        count = 0
        if mapped:
            count = wrapped.count if wrapped_has_count else 0
            for segment in line_segments:
                if _starts_region(segment):
                    count = max(count, segment.count)

        yield LineCoverageStats(line, mapped, count)

        if line_segments:
            wrapped = line_segments[-1]


def summarize_lines(data: CoverageData) -> LineCoverageInfo:
    info = LineCoverageInfo()
    for stats in line_coverage_stats(data.segments):
        if stats.mapped:
            info.num_lines += 1
            if stats.execution_count > 0:
                info.covered += 1
    return info


#
# function and region statistics
#


def summarize_regions(function: FunctionRecord) -> RegionCoverageInfo:
    info = RegionCoverageInfo()
    for region in function.code_regions():
        info.num_regions += 1
        if region.execution_count > 0:
            info.covered += 1
    return info


def instantiation_groups(
    functions: Iterable[FunctionRecord],
) -> list[list[FunctionRecord]]:
    """Group instantiations of the same source function.

    Instantiations share the start of their first code region. Functions
    without code regions form a group of their own per name.
    """

    groups: dict[tuple, list[FunctionRecord]] = {}
    for function in functions:
        first = next(function.code_regions(), None)
        key = ("at", first.file_id, first.start) if first else ("name", function.name)
        groups.setdefault(key, []).append(function)
    return list(groups.values())


def prepare_single_file_report(
    coverage: CoverageProvider, filename: str
) -> FileCoverageSummary:
    report = FileCoverageSummary(filename)
    report.lines = summarize_lines(coverage.coverage_for_file(filename))

    functions = [f for f in coverage.covered_functions() if f.main_filename == filename]
    for group in instantiation_groups(functions):
        group_regions = None
        for instantiation in group:
            regions = summarize_regions(instantiation)
            report.instantiations.add_function(instantiation.execution_count > 0)
            if group_regions is None:
                group_regions = regions
            else:
                group_regions.merge(regions)

        report.functions.add_function(any(f.execution_count > 0 for f in group))
        report.regions.add(group_regions)

    return report


def prepare_file_reports(
    coverage: CoverageProvider,
    source_files: Sequence[str],
    options: ExportOptions,
) -> tuple[list[FileCoverageSummary], FileCoverageSummary]:
    """Summarize each file and accumulate the totals.

    Reports are returned in the order of source_files.
    """

    num_threads = resolve_num_threads(options.num_threads, len(source_files))
    debug(f"summarizing {len(source_files)} files with {num_threads} threads")

    with thread_pool(num_threads, name="covexport-summary") as pool:
        reports = list(
            pool.map(lambda f: prepare_single_file_report(coverage, f), source_files)
        )

    totals = FileCoverageSummary(TOTALS_LABEL)
    for report in reports:
        totals += report

    return reports, totals
