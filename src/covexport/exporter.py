# SPDX-License-Identifier: AGPL-3.0

import json
import threading
from collections.abc import Sequence
from concurrent.futures import Future, wait
from typing import TextIO

from .config import ExportOptions
from .constants import EXPORT_TYPE, EXPORT_VERSION
from .coverage import CoverageProvider
from .exceptions import InconsistentCoverageError
from .filters import CoverageFilter
from .logs import EMPTY_EXPORT, debug, warn_code
from .pools import resolve_num_threads, thread_pool
from .render import render_file, render_functions, render_summary
from .report import FileCoverageSummary, Summarizer, prepare_file_reports


def render_files(
    coverage: CoverageProvider,
    source_files: Sequence[str],
    file_reports: Sequence[FileCoverageSummary],
    options: ExportOptions,
) -> list[dict]:
    """Render every file concurrently.

    The result is in completion order, not in the order of source_files.
    Blocks until all files are rendered; if any file failed to render, the
    first failure is raised once every task has finished.
    """

    if len(source_files) != len(file_reports):
        raise InconsistentCoverageError(
            f"got {len(file_reports)} summaries for {len(source_files)} files"
        )

    num_threads = resolve_num_threads(options.num_threads, len(source_files))
    debug(f"rendering {len(source_files)} files with {num_threads} threads")

    file_array: list[dict] = []
    file_array_lock = threading.Lock()

    def render_one(source_file: str, file_report: FileCoverageSummary) -> None:
        file = render_file(coverage, source_file, file_report, options)
        with file_array_lock:
            file_array.append(file)

    futures: list[Future] = []
    with thread_pool(num_threads) as pool:
        for source_file, file_report in zip(source_files, file_reports, strict=True):
            futures.append(pool.submit(render_one, source_file, file_report))

        wait(futures)

    for future in futures:
        if (exc := future.exception()) is not None:
            raise exc

    return file_array


def _filename_of(file: dict) -> str:
    filename = file.get("filename") if isinstance(file, dict) else None
    if not isinstance(filename, str):
        raise InconsistentCoverageError(f"rendered file without a filename: {file!r}")
    return filename


def sort_files(files: list[dict]) -> list[dict]:
    """Sort rendered files by filename, in place.

    str comparison orders by code point, which is the same order as the
    byte-wise comparison of the UTF-8 encoded names.
    """

    files.sort(key=_filename_of)
    return files


class CoverageExporterJson:
    """Exports a coverage mapping as an llvm.coverage.json.export document."""

    def __init__(
        self,
        coverage: CoverageProvider,
        options: ExportOptions,
        out: TextIO,
        summarizer: Summarizer = prepare_file_reports,
    ):
        self.coverage = coverage
        self.options = options
        self.out = out
        self.summarizer = summarizer

    def source_files(self, ignore_filters: CoverageFilter) -> list[str]:
        return [
            source_file
            for source_file in self.coverage.unique_source_files()
            if not ignore_filters.matches_filename(source_file)
        ]

    def export_document(self, source_files: Sequence[str]) -> dict:
        options = self.options

        file_reports, totals = self.summarizer(self.coverage, source_files, options)

        files = sort_files(
            render_files(self.coverage, source_files, file_reports, options)
        )

        export = {"files": files, "totals": render_summary(totals)}

        # skip function-level information if necessary
        if not options.export_summary_only and not options.skip_functions:
            export["functions"] = render_functions(self.coverage.covered_functions())

        return {
            "version": EXPORT_VERSION,
            "type": EXPORT_TYPE,
            "data": [export],
        }

    def render_root(self, files: CoverageFilter | Sequence[str]) -> dict:
        """Export either the given files, or every file not matched by the filter.

        The document is serialized completely before anything is written to
        the output, so a failed export writes nothing.
        """

        if hasattr(files, "matches_filename"):
            source_files = self.source_files(files)
        else:
            # a file is exported once, at its first mention
            source_files = list(dict.fromkeys(files))
            if len(source_files) != len(files):
                debug(f"dropped {len(files) - len(source_files)} repeated source files")

        if not source_files:
            warn_code(EMPTY_EXPORT, "no source files to export")

        document = self.export_document(source_files)
        self.out.write(json.dumps(document, separators=(",", ":")))
        return document


def export(
    coverage: CoverageProvider,
    files: CoverageFilter | Sequence[str],
    options: ExportOptions,
    out: TextIO,
) -> dict:
    return CoverageExporterJson(coverage, options, out).render_root(files)
