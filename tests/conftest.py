import pytest

from covexport.config import ExportOptions
from covexport.coverage import (
    CountedRegion,
    CoverageData,
    CoverageMapping,
    ExpansionRecord,
    FunctionRecord,
    RegionKind,
    Segment,
)


@pytest.fixture
def options() -> ExportOptions:
    return ExportOptions()


@pytest.fixture
def a_segments() -> tuple[Segment, ...]:
    return (
        Segment(1, 12, 1, True, True),
        Segment(3, 4, 0, True, True),
        Segment(4, 2, 1, True, False),
        Segment(5, 2, 0, False, False),
    )


@pytest.fixture
def a_expansion() -> ExpansionRecord:
    return ExpansionRecord(
        region=CountedRegion(2, 3, 2, 10, 1, 0, 1, RegionKind.EXPANSION),
        function=FunctionRecord(
            name="",
            execution_count=1,
            regions=(CountedRegion(1, 1, 1, 20, 1, 1, 0),),
            filenames=("a.c", "macros.h"),
        ),
    )


@pytest.fixture
def functions() -> list[FunctionRecord]:
    return [
        FunctionRecord(
            name="main",
            execution_count=1,
            regions=(
                CountedRegion(1, 12, 5, 2, 1),
                CountedRegion(3, 4, 4, 2, 0),
                CountedRegion(4, 1, 4, 2, 0, kind=RegionKind.GAP),
            ),
            filenames=("a.c",),
        ),
        # two instantiations of the same template
        FunctionRecord(
            name="_Z4tmplIiEvv",
            execution_count=0,
            regions=(CountedRegion(7, 1, 9, 2, 0), CountedRegion(8, 3, 8, 10, 0)),
            filenames=("a.c",),
        ),
        FunctionRecord(
            name="_Z4tmplIlEvv",
            execution_count=2,
            regions=(CountedRegion(7, 1, 9, 2, 2), CountedRegion(8, 3, 8, 10, 0)),
            filenames=("a.c",),
        ),
        FunctionRecord(
            name="helper",
            execution_count=0,
            regions=(CountedRegion(1, 1, 2, 2, 0),),
            filenames=("b.c",),
        ),
    ]


@pytest.fixture
def mapping(a_segments, a_expansion, functions) -> CoverageMapping:
    mapping = CoverageMapping()
    mapping.add_file(
        CoverageData("b.c", (Segment(1, 1, 0, True, True), Segment(2, 2, 0, False, False)))
    )
    mapping.add_file(CoverageData("a.c", a_segments, (a_expansion,)))
    for function in functions:
        mapping.add_function(function)
    return mapping
