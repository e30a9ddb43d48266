"""
Tests for the export encoders.
"""

import json
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from spendwise.merge import (
    export_backup,
    export_csv,
    format_amount,
    merge_import,
    parse_backup,
    parse_csv,
    quote_csv_field,
)
from spendwise.models.ledger import (
    CategoryItem,
    LedgerStore,
    RecurringFrequency,
    RecurringRule,
    Transaction,
)


def sample_store() -> LedgerStore:
    return LedgerStore(
        transactions=[
            Transaction(
                id="t1",
                amount=Decimal("150.00"),
                description='Book "Dune"',
                category="Education",
                date=date(2024, 5, 1),
            ),
            Transaction(
                id="t2",
                amount=Decimal("5000"),
                description="Car loan",
                category="Loan",
                date=date(2024, 5, 2),
                bank_name="HDFC Bank",
                recurring_id="r1",
            ),
        ],
        recurring_rules=[
            RecurringRule(
                id="r1",
                amount=Decimal("5000"),
                description="Car loan",
                category="Loan",
                bank_name="HDFC Bank",
                frequency=RecurringFrequency.MONTHLY,
                start_date=date(2024, 4, 2),
                next_occurrence_date=date(2024, 6, 2),
            ),
        ],
        custom_categories=[CategoryItem(id="custom_1", name="Pets", color="#123456")],
        budget=Decimal("40000"),
    )


class TestCsvExport:
    """Tests for CSV export."""

    def test_empty_ledger_exports_header_only(self):
        """Test that exporting nothing still yields a valid file."""
        assert export_csv([]) == "Date,Description,Category,Amount,Bank"

    def test_row_format(self):
        """Test quoting: description and bank quoted, amount plain."""
        lines = export_csv(sample_store().transactions).split("\n")
        assert lines[0] == "Date,Description,Category,Amount,Bank"
        assert lines[1] == '2024-05-01,"Book ""Dune""",Education,150,""'
        assert lines[2] == '2024-05-02,"Car loan",Loan,5000,"HDFC Bank"'

    def test_category_with_comma_is_quoted(self):
        """Test that a custom category name containing a comma stays one field."""
        tx = Transaction(
            amount=Decimal("10"),
            description="Toys",
            category="Kids, Pets",
            date=date(2024, 5, 1),
        )
        row = export_csv([tx]).split("\n")[1]
        assert row == '2024-05-01,"Toys","Kids, Pets",10,""'

    def test_exported_csv_reimports(self):
        """Test that our own CSV output parses back to the same values."""
        parsed = parse_csv(export_csv(sample_store().transactions))
        assert parsed.skipped == 0
        assert [(t.date, t.description, t.category, t.amount, t.bank_name) for t in parsed.transactions] == [
            (date(2024, 5, 1), 'Book "Dune"', "Education", Decimal("150"), None),
            (date(2024, 5, 2), "Car loan", "Loan", Decimal("5000"), "HDFC Bank"),
        ]

    def test_line_breaks_folded(self):
        """Test a multi-line description exports as one row and reimports."""
        tx = Transaction(
            amount=Decimal("10"),
            description="Groceries\nmilk, eggs\r\nbread",
            category="Food",
            date=date(2024, 5, 1),
        )
        text = export_csv([tx])
        assert text.split("\n")[1] == '2024-05-01,"Groceries milk, eggs bread",Food,10,""'

        parsed = parse_csv(text)
        assert parsed.skipped == 0
        assert parsed.transactions[0].description == "Groceries milk, eggs bread"

    def test_helpers(self):
        """Test field quoting and amount formatting."""
        assert quote_csv_field('say "hi"') == '"say ""hi"""'
        assert format_amount(Decimal("99.50")) == "99.5"
        assert format_amount(Decimal("100")) == "100"


class TestBackupExport:
    """Tests for JSON backup export."""

    def test_backup_shape(self):
        """Test the backup document keys and value encoding."""
        exported_at = datetime(2024, 5, 3, 8, 0, tzinfo=timezone.utc)
        document = json.loads(export_backup(sample_store(), exported_at))

        assert document["version"] == 1
        assert document["timestamp"].startswith("2024-05-03T08:00:00")
        assert document["monthlyBudget"] == 40000
        assert [e["id"] for e in document["expenses"]] == ["t1", "t2"]
        assert "bankName" not in document["expenses"][0]
        assert document["expenses"][1]["recurringId"] == "r1"
        assert document["recurringExpenses"][0]["nextOccurrenceDate"] == "2024-06-02"
        assert document["customCategories"][0]["isCustom"] is True

    def test_backup_restores_into_empty_ledger(self):
        """Test that a backup merged into an empty ledger reproduces it."""
        store = sample_store()
        restored = merge_import(LedgerStore(), parse_backup(export_backup(store)))
        assert restored == store


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
