"""
Tests for the import merger (JSON backups and CSV files).
"""

import json
import pytest
from datetime import date
from decimal import Decimal

from spendwise.merge import (
    ImportFormatError,
    merge_csv,
    merge_import,
    parse_backup,
    parse_csv,
    split_csv_line,
    summarize_import,
)
from spendwise.models.ledger import (
    CategoryItem,
    LedgerStore,
    Transaction,
)


def backup_text(**sections) -> str:
    document = {"version": 1, "timestamp": "2024-05-01T09:30:00Z"}
    document.update(sections)
    return json.dumps(document)


def tx_record(tx_id: str, amount=150, description="Coffee", category="Food", on="2024-05-01") -> dict:
    return {
        "id": tx_id,
        "amount": amount,
        "description": description,
        "category": category,
        "date": on,
    }


RULE_RECORD = {
    "id": "r1",
    "amount": 1200,
    "description": "Rent",
    "category": "Rent",
    "frequency": "MONTHLY",
    "startDate": "2024-01-15",
    "nextOccurrenceDate": "2024-05-15",
    "isActive": True,
}


class TestParseBackup:
    """Tests for decoding a JSON backup."""

    def test_valid_backup(self):
        """Test a complete backup decodes into typed records."""
        payload = parse_backup(backup_text(
            expenses=[tx_record("t1")],
            recurringExpenses=[RULE_RECORD],
            customCategories=[{"id": "custom_1", "name": "Pets", "color": "#123456", "isCustom": True}],
            monthlyBudget=40000,
        ))
        assert payload.expenses[0].amount == Decimal("150")
        assert payload.recurring_expenses[0].next_occurrence_date == date(2024, 5, 15)
        assert payload.monthly_budget == Decimal("40000")

    def test_malformed_json_rejected(self):
        """Test that text that is not JSON aborts the import."""
        with pytest.raises(ImportFormatError, match="not valid JSON"):
            parse_backup('{"expenses": [')

    def test_non_object_rejected(self):
        """Test that a JSON array is not a backup."""
        with pytest.raises(ImportFormatError, match="JSON object"):
            parse_backup("[]")

    def test_invalid_record_rejects_whole_backup(self):
        """Test that one bad record fails the import instead of being skipped."""
        with pytest.raises(ImportFormatError, match="invalid values"):
            parse_backup(backup_text(expenses=[tx_record("t1"), tx_record("t2", amount="lots")]))


class TestMergeImport:
    """Tests for merging a backup into the ledger by identity."""

    def _current(self) -> LedgerStore:
        return LedgerStore(
            transactions=[
                Transaction(
                    id="t1",
                    amount=Decimal("100"),
                    description="Original",
                    category="Food",
                    date=date(2024, 4, 1),
                ),
            ],
            budget=Decimal("50000"),
        )

    def test_existing_ids_are_never_overwritten(self):
        """Test that an incoming record with a known id is ignored."""
        incoming = parse_backup(backup_text(expenses=[tx_record("t1", amount=999), tx_record("t2")]))
        merged = merge_import(self._current(), incoming)

        assert [t.id for t in merged.transactions] == ["t1", "t2"]
        assert merged.find_transaction("t1").amount == Decimal("100")
        assert merged.find_transaction("t1").description == "Original"

    def test_import_twice_is_idempotent(self):
        """Test that re-importing the same backup adds nothing."""
        incoming = parse_backup(backup_text(
            expenses=[tx_record("t2"), tx_record("t3")],
            recurringExpenses=[RULE_RECORD],
        ))
        once = merge_import(self._current(), incoming)
        twice = merge_import(once, incoming)

        assert len(once.transactions) == 3
        assert twice.transactions == once.transactions
        assert twice.recurring_rules == once.recurring_rules

    def test_duplicate_ids_within_batch(self):
        """Test that a repeated id inside one backup is only taken once."""
        incoming = parse_backup(backup_text(expenses=[tx_record("t2"), tx_record("t2", amount=5)]))
        merged = merge_import(self._current(), incoming)
        assert len(merged.transactions) == 2
        assert merged.find_transaction("t2").amount == Decimal("150")

    def test_budget_replaced_when_declared(self):
        """Test that a declared budget always wins, including zero."""
        merged = merge_import(self._current(), parse_backup(backup_text(monthlyBudget=0)))
        assert merged.budget == Decimal("0")

    def test_budget_kept_when_absent(self):
        """Test that a backup without a budget leaves it alone."""
        merged = merge_import(self._current(), parse_backup(backup_text(expenses=[])))
        assert merged.budget == Decimal("50000")

    def test_missing_sections_leave_ledger_alone(self):
        """Test that omitted collections are not treated as empty replacements."""
        current = self._current()
        merged = merge_import(current, parse_backup(backup_text()))
        assert merged == current

    def test_only_custom_categories_imported(self):
        """Test that built-in definitions in a backup are ignored."""
        incoming = parse_backup(backup_text(customCategories=[
            {"id": "default_food", "name": "Food", "color": "#000000", "isCustom": False},
            {"id": "custom_1", "name": "Pets", "color": "#123456", "isCustom": True},
        ]))
        merged = merge_import(self._current(), incoming)
        assert [c.id for c in merged.custom_categories] == ["custom_1"]

    def test_category_name_clash_skipped(self):
        """Test a custom category is skipped when its name is taken, ignoring case."""
        current = self._current().model_copy(update={
            "custom_categories": [CategoryItem(id="custom_0", name="Gifts")],
        })
        incoming = parse_backup(backup_text(customCategories=[
            {"id": "c1", "name": "food", "color": "#000000", "isCustom": True},
            {"id": "c2", "name": "GIFTS", "color": "#000000", "isCustom": True},
            {"id": "c3", "name": "Pets", "color": "#123456", "isCustom": True},
            {"id": "c4", "name": "pets", "color": "#654321", "isCustom": True},
        ]))
        merged = merge_import(current, incoming)

        assert [c.id for c in merged.custom_categories] == ["custom_0", "c3"]
        names = [c.name.casefold() for c in merged.all_categories]
        assert len(names) == len(set(names))

    def test_imported_records_are_appended(self):
        """Test that accepted records go after existing ones."""
        current = self._current().model_copy(update={
            "custom_categories": [CategoryItem(id="custom_0", name="Gifts")],
        })
        incoming = parse_backup(backup_text(
            customCategories=[{"id": "custom_1", "name": "Pets", "color": "#123456", "isCustom": True}],
        ))
        merged = merge_import(current, incoming)
        assert [c.id for c in merged.custom_categories] == ["custom_0", "custom_1"]

    def test_summary_counts(self):
        """Test the import summary reflects what was actually added."""
        before = self._current()
        incoming = parse_backup(backup_text(
            expenses=[tx_record("t1"), tx_record("t2")],
            recurringExpenses=[RULE_RECORD],
            monthlyBudget=30000,
        ))
        summary = summarize_import(before, merge_import(before, incoming), incoming)
        assert summary.transactions_added == 1
        assert summary.rules_added == 1
        assert summary.categories_added == 0
        assert summary.budget_updated is True


class TestCsvSplitting:
    """Tests for splitting CSV lines on unquoted commas."""

    def test_comma_inside_quotes(self):
        """Test that a quoted comma is not a separator."""
        assert split_csv_line('2024-05-01,"Coffee, Large",Food,150,""') == [
            "2024-05-01",
            '"Coffee, Large"',
            "Food",
            "150",
            '""',
        ]

    def test_unterminated_quote(self):
        """Test that an odd quote count does not raise."""
        fields = split_csv_line('2024-05-01,"Coffee, Large",Food,150,"')
        assert len(fields) < 4


class TestParseCsv:
    """Tests for turning CSV text into transactions."""

    HEADER = "Date,Description,Category,Amount,Bank"

    def test_rows_become_transactions(self):
        """Test a well-formed file imports every row with fresh ids."""
        text = "\n".join([
            self.HEADER,
            '2024-05-01,"Coffee, Large",Food,150,""',
            '2024-05-02,"Car loan",Loan,5000,"HDFC Bank"',
        ])
        result = parse_csv(text)

        assert result.accepted == 2
        assert result.skipped == 0
        coffee, loan = result.transactions
        assert coffee.description == "Coffee, Large"
        assert coffee.amount == Decimal("150")
        assert coffee.bank_name is None
        assert loan.bank_name == "HDFC Bank"
        assert coffee.id != loan.id

    def test_doubled_quotes_are_unescaped(self):
        """Test that "" inside a quoted field becomes one quote."""
        text = f'{self.HEADER}\n2024-05-01,"Book ""Dune""",Education,499,""'
        result = parse_csv(text)
        assert result.transactions[0].description == 'Book "Dune"'

    def test_unterminated_quote_row_skipped(self):
        """Test a broken row is counted as skipped without failing the batch."""
        text = "\n".join([
            self.HEADER,
            '2024-05-01,"Coffee, Large",Food,150,"',
            '2024-05-02,"Tea",Food,20,""',
        ])
        result = parse_csv(text)
        assert result.accepted == 1
        assert result.skipped == 1
        assert result.transactions[0].description == "Tea"

    @pytest.mark.parametrize(
        "row",
        [
            '2024-05-01,"Coffee",Food',
            'yesterday,"Coffee",Food,150,""',
            '2024-05-01,"Coffee",Food,abc,""',
            '2024-05-01,"",Food,150,""',
            '2024-05-01,"Coffee",Food,-5,""',
        ],
    )
    def test_bad_rows_skipped(self, row):
        """Test that unusable rows are skipped and counted."""
        result = parse_csv(f"{self.HEADER}\n{row}")
        assert result.accepted == 0
        assert result.skipped == 1

    def test_blank_lines_ignored(self):
        """Test that blank lines are neither imported nor counted."""
        text = f'{self.HEADER}\n\n2024-05-01,"Tea",Food,20,""\n\n'
        result = parse_csv(text)
        assert result.accepted == 1
        assert result.skipped == 0

    def test_first_line_always_skipped(self):
        """Test that the first line is treated as a header."""
        result = parse_csv('2024-05-01,"Tea",Food,20,""')
        assert result.accepted == 0
        assert result.skipped == 0

    def test_missing_category_defaults_to_other(self):
        """Test that an empty category becomes Other."""
        result = parse_csv(f'{self.HEADER}\n2024-05-01,"Tea",,20,""')
        assert result.transactions[0].category == "Other"

    def test_alternative_date_format_and_bom(self):
        """Test slashed dates and a leading byte-order mark."""
        result = parse_csv(f'\ufeff{self.HEADER}\r\n2024/05/01,"Tea",Food,20\r\n')
        assert result.accepted == 1
        assert result.transactions[0].date == date(2024, 5, 1)

    def test_csv_import_twice_duplicates(self):
        """Test CSV carries no identity, so a second import doubles the rows."""
        text = f'{self.HEADER}\n2024-05-01,"Tea",Food,20,""\n2024-05-02,"Bus",Transport,30,""'
        store = LedgerStore()
        store = merge_csv(store, parse_csv(text))
        store = merge_csv(store, parse_csv(text))
        assert len(store.transactions) == 4
        assert len({t.id for t in store.transactions}) == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
