import pytest

import covexport.pools as pools
from covexport.config import ExportOptions
from covexport.coverage import CoverageData, FunctionRecord, Segment
from covexport.exceptions import InconsistentCoverageError
from covexport.report import (
    FileCoverageSummary,
    LineCoverageInfo,
    RegionCoverageInfo,
    instantiation_groups,
    line_coverage_stats,
    prepare_file_reports,
    prepare_single_file_report,
    summarize_lines,
)


def test_line_coverage_stats(a_segments):
    stats = list(line_coverage_stats(a_segments))
    assert [s.line for s in stats] == [1, 2, 3, 4, 5]
    assert all(s.mapped for s in stats)

    # line 4 is entirely covered by the zero-count region starting on line 3
    assert [s.execution_count for s in stats] == [1, 1, 1, 0, 1]


def test_line_coverage_skipped_region():
    segments = (
        Segment(1, 1, 5, True, True),
        Segment(2, 1, 0, False, True),
        Segment(3, 1, 0, False, False),
    )
    stats = {s.line: s for s in line_coverage_stats(segments)}
    assert stats[1].mapped and stats[1].execution_count == 5
    assert not stats[2].mapped
    assert not stats[3].mapped

    assert summarize_lines(CoverageData("skip.c", segments)) == LineCoverageInfo(
        covered=1, num_lines=1
    )


def test_line_coverage_no_segments():
    assert list(line_coverage_stats(())) == []
    assert summarize_lines(CoverageData("empty.c")) == LineCoverageInfo()


def test_instantiation_groups(functions):
    groups = instantiation_groups(functions)
    assert [[f.name for f in g] for g in groups] == [
        ["main"],
        ["_Z4tmplIiEvv", "_Z4tmplIlEvv"],
        ["helper"],
    ]


def test_functions_without_code_regions_grouped_by_name():
    functions = [FunctionRecord("f", 0), FunctionRecord("g", 1), FunctionRecord("f", 1)]
    groups = instantiation_groups(functions)
    assert [len(g) for g in groups] == [2, 1]


def test_single_file_report(mapping):
    report = prepare_single_file_report(mapping, "a.c")

    assert report.name == "a.c"
    assert (report.lines.covered, report.lines.num_lines) == (4, 5)
    assert (report.functions.executed, report.functions.num_functions) == (2, 2)
    assert (report.instantiations.executed, report.instantiations.num_functions) == (2, 3)

    # main: 1 of 2, template: max(0, 1) of 2; the gap region is not counted
    assert report.regions == RegionCoverageInfo(covered=2, num_regions=4)


def test_prepare_file_reports(mapping, options):
    reports, totals = prepare_file_reports(mapping, ["b.c", "a.c"], options)

    # reports come back in the requested order
    assert [r.name for r in reports] == ["b.c", "a.c"]

    assert totals.name == "Totals"
    assert (totals.lines.covered, totals.lines.num_lines) == (4, 7)
    assert (totals.functions.executed, totals.functions.num_functions) == (2, 3)
    assert (totals.instantiations.executed, totals.instantiations.num_functions) == (2, 4)
    assert (totals.regions.covered, totals.regions.num_regions) == (2, 5)


@pytest.mark.parametrize("num_threads", [1, 8])
def test_prepare_file_reports_threads(mapping, num_threads):
    options = ExportOptions(num_threads=num_threads)
    reports, _ = prepare_file_reports(mapping, ["a.c", "b.c"], options)
    assert [r.name for r in reports] == ["a.c", "b.c"]


def test_prepare_file_reports_missing_file(mapping, options):
    with pytest.raises(InconsistentCoverageError):
        prepare_file_reports(mapping, ["a.c", "nope.c"], options)


def test_summary_accumulation():
    totals = FileCoverageSummary("Totals")
    a = FileCoverageSummary("a", lines=LineCoverageInfo(1, 2))
    b = FileCoverageSummary("b", lines=LineCoverageInfo(3, 4))
    totals += a
    totals += b
    assert totals.lines == LineCoverageInfo(4, 6)
    assert totals.lines.percent_covered == pytest.approx(400 / 6)

    # summands are unchanged
    assert a.lines == LineCoverageInfo(1, 2)


def test_percent_of_nothing_is_zero():
    summary = FileCoverageSummary("x")
    assert summary.lines.percent_covered == 0.0
    assert summary.functions.percent_covered == 0.0
    assert summary.instantiations.percent_covered == 0.0
    assert summary.regions.percent_covered == 0.0


def test_resolve_num_threads(monkeypatch):
    monkeypatch.setattr(pools, "heavyweight_hardware_concurrency", lambda: 4)

    assert pools.resolve_num_threads(0, 10) == 4
    assert pools.resolve_num_threads(0, 2) == 2
    assert pools.resolve_num_threads(0, 0) == 1

    # explicit values are honored verbatim
    assert pools.resolve_num_threads(16, 2) == 16
    assert pools.resolve_num_threads(1, 100) == 1

    with pytest.raises(ValueError):
        pools.resolve_num_threads(-1, 10)


def test_hardware_concurrency_is_positive():
    assert pools.heavyweight_hardware_concurrency() >= 1
