# SPDX-License-Identifier: AGPL-3.0

import io
import logging
import os
import sys
import traceback
from dataclasses import dataclass
from importlib import metadata

from covexport.config import Config as CovExportConfig
from covexport.config import (
    ConfigSource,
    ExportOptions,
    arg_parser,
    default_config,
    resolve_config_files,
    toml_parser,
)
from covexport.constants import VERBOSITY_PRINT_FILES, VERBOSITY_PRINT_LAYERS
from covexport.exceptions import CoverageExportException
from covexport.exporter import CoverageExporterJson
from covexport.filters import CoverageFilters
from covexport.loader import load_mapping
from covexport.logs import (
    IGNORED_ALL_FILES,
    PARSING_ERROR,
    debug,
    error,
    logger,
    logger_unique,
    warn_code,
)
from covexport.ui import ui
from covexport.utils import PhaseTimer, color_percent, cyan


def load_config(_args) -> CovExportConfig:
    config = default_config()

    # parse CLI args first, so that can get `--help` out of the way and resolve `--debug`
    # but don't apply the CLI overrides yet
    cli_overrides = arg_parser().parse_args(_args)

    # then for each config file, parse it and override the args
    config_files = resolve_config_files(_args)
    for config_file in config_files:
        if not os.path.exists(config_file):
            error(f"Config file not found: {config_file}")
            sys.exit(2)

        try:
            overrides = toml_parser().parse_file(config_file)
        except ValueError as err:
            warn_code(PARSING_ERROR, f"error: {config_file}: {err}")
            sys.exit(2)

        config = config.with_overrides(ConfigSource.config_file, **overrides)

    # finally apply the CLI overrides
    config = config.with_overrides(ConfigSource.command_line, **vars(cli_overrides))

    return config


def write_output(path: str, text: str) -> None:
    if path == "-":
        sys.stdout.write(text)
        sys.stdout.flush()
        return

    with open(path, "w") as f:
        f.write(text)


def print_file_summaries(document: dict) -> None:
    export = document["data"][0]
    for file in export["files"]:
        lines = file["summary"]["lines"]
        print(
            f"{cyan(file['filename'])}: {color_percent(lines['percent'])} lines",
            file=sys.stderr,
        )

    totals = export["totals"]["lines"]
    print(
        f"Totals: {totals['covered']}/{totals['count']} lines "
        f"({color_percent(totals['percent'])})",
        file=sys.stderr,
    )


@dataclass(frozen=True)
class MainResult:
    exitcode: int
    num_files: int = 0
    document: dict | None = None


def _main(_args=None) -> MainResult:
    timer = PhaseTimer("total")

    #
    # command line arguments
    #

    args = load_config(_args)

    if args.version:
        print(f"covexport {metadata.version('covexport')}")
        return MainResult(0)

    if args.debug:
        logger.setLevel(logging.DEBUG)
        logger_unique.setLevel(logging.DEBUG)

    if args.verbose >= VERBOSITY_PRINT_LAYERS:
        print(args.formatted_layers(), file=sys.stderr)

    try:
        options = ExportOptions.from_config(args)
    except ValueError as err:
        error(f"error: {err}")
        return MainResult(2)

    if not args.no_status and ui.is_interactive:
        ui.start_status()

    try:
        #
        # load
        #

        timer.start_phase("load")
        ui.update_status(f"Loading {args.input}")

        try:
            coverage = load_mapping(args.input)
        except (OSError, CoverageExportException) as err:
            error(f"Loading coverage failed: {type(err).__name__}: {err}")
            if args.debug:
                traceback.print_exc()
            return MainResult(1)

        # an explicit list of sources is exported as given
        ignore_filters = CoverageFilters.from_regexes(args.ignore_filename_regex)
        if args.sources:
            if ignore_filters:
                debug("explicit sources given, ignoring --ignore-filename-regex")
            files = list(args.sources)
        else:
            files = ignore_filters
            if coverage.files and all(
                ignore_filters.matches_filename(f) for f in coverage.files
            ):
                warn_code(IGNORED_ALL_FILES, "every source file matches an ignore regex")

        #
        # export
        #

        timer.start_phase("export")
        ui.update_status("Exporting coverage")

        # render completely before touching the output, so that a failure
        # leaves no partial document behind
        buffer = io.StringIO()
        try:
            document = CoverageExporterJson(coverage, options, buffer).render_root(files)
        except CoverageExportException as err:
            error(f"Export failed: {type(err).__name__}: {err}")
            if args.debug:
                traceback.print_exc()
            return MainResult(1)

        timer.start_phase("write")
        try:
            write_output(args.output, buffer.getvalue())
        except OSError as err:
            error(f"Writing {args.output} failed: {err}")
            return MainResult(1)

        if args.output != "-":
            debug(f"Export written to {args.output}")
    finally:
        ui.stop_status()

    timer.stop()

    num_files = len(document["data"][0]["files"])

    if args.verbose >= VERBOSITY_PRINT_FILES:
        print_file_summaries(document)

    if args.statistics:
        print(f"[time] {timer.report()}", file=sys.stderr)

    return MainResult(0, num_files, document)


# entrypoint for the `covexport` script
def main() -> int:
    exitcode = _main().exitcode
    return exitcode


# entrypoint for `python -m covexport`
if __name__ == "__main__":
    sys.exit(main())
