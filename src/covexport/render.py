# SPDX-License-Identifier: AGPL-3.0

"""
JSON rendering of coverage records.

The export document has the following layout:

    {
      "version": "2.0.0",
      "type": "llvm.coverage.json.export",
      "data": [                       # one or more export objects
        {
          "files": [                  # sorted by filename
            {
              "filename": str,
              "segments": [[line, col, count, has_count, is_region_entry], ...],
              "expansions": [
                {
                  "filenames": [str, ...],
                  "source_region": region,
                  "target_regions": [region, ...]
                }, ...
              ],
              "summary": summary
            }, ...
          ],
          "totals": summary,
          "functions": [
            {"name": str, "count": int, "regions": [region, ...], "filenames": [str, ...]},
            ...
          ]
        }
      ]
    }

where a region is
[line_start, column_start, line_end, column_end, execution_count, file_id, expanded_file_id, kind]
and a summary is {"lines": {...}, "functions": {...}, "instantiations": {...}, "regions": {...}}.

"segments" and "expansions" are omitted with --summary-only, "expansions" with
--skip-expansions, and "functions" with either --summary-only or --skip-functions.
"""

from collections.abc import Iterable

from .config import ExportOptions
from .coverage import (
    CountedRegion,
    CoverageData,
    CoverageProvider,
    ExpansionRecord,
    FunctionRecord,
    Segment,
)
from .report import FileCoverageSummary


def render_segment(segment: Segment) -> list:
    return [
        segment.line,
        segment.col,
        int(segment.count),
        bool(segment.has_count),
        bool(segment.is_region_entry),
    ]


def render_region(region: CountedRegion) -> list:
    return [
        region.line_start,
        region.column_start,
        region.line_end,
        region.column_end,
        int(region.execution_count),
        region.file_id,
        region.expanded_file_id,
        int(region.kind),
    ]


def render_regions(regions: Iterable[CountedRegion]) -> list:
    return [render_region(region) for region in regions]


def render_expansion(expansion: ExpansionRecord) -> dict:
    return {
        "filenames": list(expansion.function.filenames),
        # the expansion site in the source file
        "source_region": render_region(expansion.region),
        # coverage of the expanded code
        "target_regions": render_regions(expansion.function.regions),
    }


def render_summary(summary: FileCoverageSummary) -> dict:
    return {
        "lines": {
            "count": summary.lines.num_lines,
            "covered": summary.lines.covered,
            "percent": summary.lines.percent_covered,
        },
        "functions": {
            "count": summary.functions.num_functions,
            "covered": summary.functions.executed,
            "percent": summary.functions.percent_covered,
        },
        "instantiations": {
            "count": summary.instantiations.num_functions,
            "covered": summary.instantiations.executed,
            "percent": summary.instantiations.percent_covered,
        },
        "regions": {
            "count": summary.regions.num_regions,
            "covered": summary.regions.covered,
            "notcovered": summary.regions.num_regions - summary.regions.covered,
            "percent": summary.regions.percent_covered,
        },
    }


def render_file_segments(file_coverage: CoverageData) -> list:
    return [render_segment(segment) for segment in file_coverage]


def render_file_expansions(file_coverage: CoverageData) -> list:
    return [render_expansion(expansion) for expansion in file_coverage.expansions]


def render_file(
    coverage: CoverageProvider,
    filename: str,
    file_report: FileCoverageSummary,
    options: ExportOptions,
) -> dict:
    file = {"filename": filename}

    if not options.export_summary_only:
        file_coverage = coverage.coverage_for_file(filename)
        file["segments"] = render_file_segments(file_coverage)
        if not options.skip_expansions:
            file["expansions"] = render_file_expansions(file_coverage)

    file["summary"] = render_summary(file_report)
    return file


def render_functions(functions: Iterable[FunctionRecord]) -> list:
    return [
        {
            "name": function.name,
            "count": int(function.execution_count),
            "regions": render_regions(function.regions),
            "filenames": list(function.filenames),
        }
        for function in functions
    ]
