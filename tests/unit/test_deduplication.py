"""
Unit Tests - Deduplication Filter
"""
from datetime import date

from sf_performance.ingestion.deduplication import deduplicate, order_key


class TestDeduplicate:
    """Tests for deduplicate"""

    def test_keeps_unseen_records(self, make_record):
        """Test a clean batch passes through in order"""
        batch = [make_record(f"O-{i}", "A01", date(2024, 3, i)) for i in range(1, 4)]

        result = deduplicate(batch)

        assert result.records == batch
        assert result.skipped == 0

    def test_skips_existing_ids(self, make_record):
        """Test ids already stored are dropped"""
        batch = [make_record("O-1", "A01", date(2024, 3, 1)), make_record("O-2", "A01", date(2024, 3, 2))]

        result = deduplicate(batch, existing_ids={"O-1"})

        assert [r.order_id for r in result.records] == ["O-2"]
        assert result.skipped_existing == 1

    def test_first_occurrence_in_batch_wins(self, make_record):
        """Test repeated ids within one upload keep the first row"""
        first = make_record("O-1", "A01", date(2024, 3, 1))
        repeat = make_record("O-1", "A02", date(2024, 3, 9))

        result = deduplicate([first, repeat])

        assert result.records == [first]
        assert result.skipped_in_batch == 1

    def test_blank_ids_skipped(self, make_record):
        """Test records without an order id are dropped"""
        batch = [make_record("", "A01", date(2024, 3, 1)), make_record("  ", "A01", date(2024, 3, 2))]

        result = deduplicate(batch)

        assert result.records == []
        assert result.skipped_blank == 2

    def test_counts_add_up(self, make_record):
        """Test kept + skipped equals the batch size and no kept id is stored"""
        existing = {"O-2", "O-5"}
        batch = [
            make_record(order_id, "A01", date(2024, 3, 1))
            for order_id in ["O-1", "O-2", "O-1", "", "O-3", "O-5", "O-3", "O-4"]
        ]

        result = deduplicate(batch, existing)

        assert len(result.records) + result.skipped == len(batch)
        assert not {r.order_id for r in result.records} & existing
        assert [r.order_id for r in result.records] == ["O-1", "O-3", "O-4"]

    def test_ids_compared_trimmed(self, make_record):
        """Test surrounding whitespace does not create distinct ids"""
        result = deduplicate(
            [make_record(" O-1 ", "A01", date(2024, 3, 1))],
            existing_ids={"O-1"},
        )

        assert result.records == []
        assert order_key(make_record(" O-1 ", "A01", date(2024, 3, 1))) == "O-1"
