# SPDX-License-Identifier: AGPL-3.0

# semantic version of the json export format
EXPORT_VERSION = "2.0.0"

# unique type identifier for json coverage export
EXPORT_TYPE = "llvm.coverage.json.export"

# label of the aggregate summary across all exported files
TOTALS_LABEL = "Totals"

VERBOSITY_PRINT_FILES = 1
VERBOSITY_PRINT_LAYERS = 2
