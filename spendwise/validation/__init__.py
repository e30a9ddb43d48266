"""Entry validation package."""

from spendwise.validation.validator import (
    EntryValidationError,
    EntryValidator,
    parse_amount,
    parse_entry_date,
)

__all__ = [
    "EntryValidationError",
    "EntryValidator",
    "parse_amount",
    "parse_entry_date",
]
