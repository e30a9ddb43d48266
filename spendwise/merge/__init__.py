"""Import/export merger package."""

from spendwise.merge.importer import (
    CSV_HEADER,
    ImportFormatError,
    merge_csv,
    merge_import,
    parse_backup,
    parse_csv,
    parse_csv_row,
    split_csv_line,
    summarize_import,
)
from spendwise.merge.exporter import (
    backup_to_json,
    build_backup,
    export_backup,
    export_csv,
    format_amount,
    quote_csv_field,
)

__all__ = [
    # Import
    "CSV_HEADER",
    "ImportFormatError",
    "merge_csv",
    "merge_import",
    "parse_backup",
    "parse_csv",
    "parse_csv_row",
    "split_csv_line",
    "summarize_import",
    # Export
    "backup_to_json",
    "build_backup",
    "export_backup",
    "export_csv",
    "format_amount",
    "quote_csv_field",
]
