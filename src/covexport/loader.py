# SPDX-License-Identifier: AGPL-3.0

"""Rebuild a coverage mapping from a previously exported json document."""

import json
import sys
from typing import Any

from .constants import EXPORT_TYPE, EXPORT_VERSION
from .coverage import (
    CountedRegion,
    CoverageData,
    CoverageMapping,
    ExpansionRecord,
    FunctionRecord,
    RegionKind,
    Segment,
)
from .exceptions import CoverageFormatError
from .logs import debug, warn


def _major(version: str) -> str:
    return version.split(".", 1)[0]


def _expect_object(raw: Any, what: str) -> dict:
    if not isinstance(raw, dict):
        raise CoverageFormatError(f"expected {what} to be a json object, got {raw!r}")
    return raw


def _list_field(raw: dict, key: str, what: str) -> list:
    value = raw.get(key, [])
    if not isinstance(value, list):
        raise CoverageFormatError(f"expected `{key}` of {what} to be an array")
    return value


def _filenames(raw: dict, what: str) -> tuple[str, ...]:
    filenames = raw.get("filenames")
    if not isinstance(filenames, list) or not all(
        isinstance(f, str) for f in filenames
    ):
        raise CoverageFormatError(
            f"expected `filenames` of {what} to be an array of strings"
        )
    return tuple(filenames)


def parse_segment(raw: Any) -> Segment:
    # older exports append an is_gap_region flag, which we don't keep
    if not isinstance(raw, list) or len(raw) not in (5, 6):
        raise CoverageFormatError(f"expected a 5 or 6 element segment, got {raw!r}")

    line, col, count, has_count, is_region_entry = raw[:5]
    try:
        return Segment(
            int(line), int(col), int(count), bool(has_count), bool(is_region_entry)
        )
    except (TypeError, ValueError) as e:
        raise CoverageFormatError(f"malformed segment {raw!r}: {e}") from e


def parse_region(raw: Any) -> CountedRegion:
    if not isinstance(raw, list) or len(raw) != 8:
        raise CoverageFormatError(f"expected an 8 element region, got {raw!r}")

    try:
        kind = RegionKind(raw[7])
    except (TypeError, ValueError):
        raise CoverageFormatError(f"unknown region kind {raw[7]!r} in {raw!r}") from None

    try:
        return CountedRegion(*(int(x) for x in raw[:7]), kind=kind)
    except (TypeError, ValueError) as e:
        raise CoverageFormatError(f"malformed region {raw!r}: {e}") from e
def parse_expansion(raw: Any) -> ExpansionRecord:
    raw = _expect_object(raw, "an expansion")
    filenames = _filenames(raw, "an expansion")
    try:
        region = parse_region(raw["source_region"])
        target_regions = tuple(parse_region(r) for r in raw["target_regions"])
    except (KeyError, TypeError) as e:
        raise CoverageFormatError(f"malformed expansion: {e}") from e

    # exports don't carry the name of the expanded function
    function = FunctionRecord(
        name="",
        execution_count=region.execution_count,
        regions=target_regions,
        filenames=filenames,
    )
    return ExpansionRecord(region, function)


def parse_function(raw: Any) -> FunctionRecord:
    raw = _expect_object(raw, "a function")
    if not isinstance(name := raw.get("name"), str):
        raise CoverageFormatError(f"function without a name: {raw!r}")

    filenames = _filenames(raw, f"function {name}")
    regions = _list_field(raw, "regions", f"function {name}")
    try:
        return FunctionRecord(
            name=name,
            execution_count=int(raw["count"]),
            regions=tuple(parse_region(r) for r in regions),
            filenames=filenames,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CoverageFormatError(f"malformed function {name}: {e}") from e


def parse_file(raw: Any) -> CoverageData:
    raw = _expect_object(raw, "a file")
    if not isinstance(filename := raw.get("filename"), str):
        raise CoverageFormatError(f"file object without a filename: {raw!r}")

    if "segments" not in raw:
        debug(
            "file objects without segments, was the input exported with --summary-only?",
            allow_duplicate=False,
        )

    segments = _list_field(raw, "segments", filename)
    expansions = _list_field(raw, "expansions", filename)

    return CoverageData(
        filename=filename,
        segments=tuple(parse_segment(s) for s in segments),
        expansions=tuple(parse_expansion(e) for e in expansions),
    )


def parse_document(document: Any) -> CoverageMapping:
    if not isinstance(document, dict):
        raise CoverageFormatError("expected a json object at the top level")

    if (doc_type := document.get("type")) != EXPORT_TYPE:
        raise CoverageFormatError(f"unsupported document type: {doc_type!r}")

    version = document.get("version")
    if not isinstance(version, str) or _major(version) != _major(EXPORT_VERSION):
        raise CoverageFormatError(f"unsupported export version: {version!r}")

    data = document.get("data")
    if not isinstance(data, list) or not data:
        raise CoverageFormatError("expected a non-empty `data` array")

    if len(data) > 1:
        warn(f"only the first of {len(data)} export objects is loaded")

    export = _expect_object(data[0], "the export object")
    mapping = CoverageMapping()

    for raw_file in _list_field(export, "files", "the export object"):
        mapping.add_file(parse_file(raw_file))

    for raw_function in _list_field(export, "functions", "the export object"):
        mapping.add_function(parse_function(raw_function))

    debug(
        f"loaded {len(mapping.files)} files and {len(mapping.functions)} functions"
    )
    return mapping


def load_mapping(path: str) -> CoverageMapping:
    """Load a coverage mapping from a json export file ('-' reads stdin)."""

    try:
        if path == "-":
            document = json.load(sys.stdin)
        else:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
    except UnicodeDecodeError as e:
        raise CoverageFormatError(f"{path}: not valid utf-8: {e}") from e
    except json.JSONDecodeError as e:
        raise CoverageFormatError(f"{path}: invalid json: {e}") from e

    return parse_document(document)
