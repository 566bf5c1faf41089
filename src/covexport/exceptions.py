"""
Coverage Export Exceptions
==========================

Exceptions raised while loading a coverage mapping or exporting it.
"""


class CoverageExportException(Exception):
    """
    Base class for any error that should abort the current export.

    A failed export never produces a partial document.
    """

    pass


class InconsistentCoverageError(CoverageExportException):
    """
    Raised when a collaborator breaks an invariant the exporter relies on,
    e.g. a listed file has no coverage data, or the number of summaries does
    not match the number of files.
    """

    pass


class CoverageFormatError(CoverageExportException):
    """
    Raised when an input document is not a supported coverage export.
    """

    pass
