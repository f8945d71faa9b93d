"""
Tests for the record enricher: field mapping, sentinel substitution on lookup
failure, and tagged results for lines that produce no row.
"""

from unittest.mock import MagicMock

import apache_beam as beam
import pytest
from apache_beam.pvalue import TaggedOutput
from apache_beam.testing.test_pipeline import TestPipeline
from apache_beam.testing.util import assert_that, equal_to

from dataflow_patterns.clients.uuid_lookup import LOOKUP_SENTINEL, UuidLookupError
from dataflow_patterns.transforms.record_enrichment import (
    DROPPED_TAG,
    STATUS_FAILED,
    STATUS_OK,
    STATUS_SKIPPED,
    EnrichRecords,
    StringToRowDoFn,
    enrich,
    split_fields,
    to_enriched_row,
)


class StaticLookupClient:
    """Lookup client answering ``uuid-<key>``; fails for keys in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return None

    def get(self, key):
        if key in self.failing:
            raise UuidLookupError(f"connection refused for {key}")
        return f"uuid-{key}"


class TestSplitFields:
    """Test splitting of raw lines into fields."""

    def test_plain_split(self):
        assert split_fields("n,e,c") == ["n", "e", "c"]

    def test_no_trimming(self):
        assert split_fields(" n , e ") == [" n ", " e "]

    def test_empty_line_is_single_empty_field(self):
        assert split_fields("") == [""]

    def test_trailing_empty_fields_are_discarded(self):
        assert split_fields("n,e,,") == ["n", "e"]

    def test_inner_empty_fields_are_kept(self):
        assert split_fields("n,,c") == ["n", "", "c"]

    def test_only_delimiters(self):
        assert split_fields(",,") == []


class TestToEnrichedRow:
    """Test positional mapping onto the fixed column list."""

    def test_full_row(self):
        row = to_enriched_row("U", ["n", "e", "c"])
        assert row == {"UUID": "U", "name": "n", "email": "e", "count": "c"}
        assert list(row) == ["UUID", "name", "email", "count"]

    def test_extra_values_dropped(self):
        row = to_enriched_row("U", ["n", "e", "c", "x", "y"])
        assert row == {"UUID": "U", "name": "n", "email": "e", "count": "c"}


class TestEnrich:
    """Test the enrich() operation end to end with a lookup callable."""

    def test_well_formed_line(self):
        result = enrich("n,e,c", lambda key: "U")

        assert result.status == STATUS_OK
        assert result.ok
        assert result.row == {"UUID": "U", "name": "n", "email": "e", "count": "c"}
        assert result.lookup_failed is False

    def test_lookup_failure_uses_sentinel(self):
        def failing_lookup(key):
            raise UuidLookupError("timeout")

        result = enrich("n,e,c", failing_lookup)

        assert result.ok
        assert result.row == {"UUID": LOOKUP_SENTINEL, "name": "n", "email": "e", "count": "c"}
        assert result.lookup_failed is True

    def test_plain_io_error_uses_sentinel(self):
        def failing_lookup(key):
            raise ConnectionError("refused")

        result = enrich("n,e,c", failing_lookup)

        assert result.row["UUID"] == "ERROR"

    def test_short_line_leaves_columns_unset(self):
        result = enrich("n", lambda key: "U")

        assert result.ok
        assert result.row == {"UUID": "U", "name": "n"}
        assert "email" not in result.row
        assert "count" not in result.row

    def test_long_line_drops_extra_values(self):
        result = enrich("n,e,c,extra,more", lambda key: "U")

        assert result.row == {"UUID": "U", "name": "n", "email": "e", "count": "c"}

    def test_empty_line_produces_row(self):
        result = enrich("", lambda key: "U")

        assert result.row == {"UUID": "U", "name": ""}

    def test_lookup_keyed_on_entire_line(self):
        lookup = MagicMock(return_value="U")

        enrich("n,e,c", lookup)

        lookup.assert_called_once_with("n,e,c")

    def test_idempotent_with_stable_lookup(self):
        first = enrich("n,e,c", lambda key: "U")
        second = enrich("n,e,c", lambda key: "U")

        assert first == second

    def test_none_input_is_skipped(self):
        lookup = MagicMock(return_value="U")

        result = enrich(None, lookup)

        assert result.status == STATUS_SKIPPED
        assert result.row is None
        assert "None" in result.reason
        lookup.assert_not_called()

    def test_non_string_input_is_skipped(self):
        result = enrich(42, lambda key: "U")

        assert result.status == STATUS_SKIPPED
        assert "int" in result.reason

    def test_unexpected_error_is_failed_not_raised(self):
        def broken_lookup(key):
            raise ValueError("malformed response")

        result = enrich("n,e,c", broken_lookup)

        assert result.status == STATUS_FAILED
        assert result.row is None
        assert result.reason == "ValueError: malformed response"

    def test_dead_letter_record(self):
        result = enrich(None, lambda key: "U")

        assert result.to_dead_letter() == {
            "status": STATUS_SKIPPED,
            "line": None,
            "reason": "input line is None",
        }


class TestStringToRowDoFn:
    """Test the DoFn outside a pipeline."""

    def test_emits_row_on_main_output(self):
        dofn = StringToRowDoFn(StaticLookupClient())
        dofn.setup()

        outputs = list(dofn.process("n,e,c"))

        assert outputs == [{"UUID": "uuid-n,e,c", "name": "n", "email": "e", "count": "c"}]

    def test_lookup_failure_still_emits_row(self):
        dofn = StringToRowDoFn(StaticLookupClient(failing={"n,e,c"}))

        outputs = list(dofn.process("n,e,c"))

        assert outputs == [{"UUID": "ERROR", "name": "n", "email": "e", "count": "c"}]

    def test_dropped_line_goes_to_tagged_output(self):
        dofn = StringToRowDoFn(StaticLookupClient())

        outputs = list(dofn.process(None))

        assert len(outputs) == 1
        assert isinstance(outputs[0], TaggedOutput)
        assert outputs[0].tag == DROPPED_TAG
        assert outputs[0].value["status"] == STATUS_SKIPPED

    def test_lifecycle_enters_and_exits_client(self):
        client = MagicMock()
        dofn = StringToRowDoFn(client)

        dofn.setup()
        dofn.teardown()

        client.__enter__.assert_called_once()
        client.__exit__.assert_called_once_with(None, None, None)


class TestEnrichRecordsTransform:
    """Test the EnrichRecords PTransform on the DirectRunner."""

    def test_rows_and_dropped_outputs(self):
        with TestPipeline() as p:
            lines = p | beam.Create(["a,b,c", "down,x,1", None])
            enriched = lines | EnrichRecords(StaticLookupClient(failing={"down,x,1"}))

            assert_that(
                enriched.rows,
                equal_to([
                    {"UUID": "uuid-a,b,c", "name": "a", "email": "b", "count": "c"},
                    {"UUID": "ERROR", "name": "down", "email": "x", "count": "1"},
                ]),
                label="CheckRows",
            )
            assert_that(
                enriched[DROPPED_TAG] | beam.Map(lambda r: (r["status"], r["line"])),
                equal_to([(STATUS_SKIPPED, None)]),
                label="CheckDropped",
            )


@pytest.mark.parametrize(
    "line, expected",
    [
        ("n,e,c", {"UUID": "U", "name": "n", "email": "e", "count": "c"}),
        ("n,e", {"UUID": "U", "name": "n", "email": "e"}),
        ("n,e,c,d", {"UUID": "U", "name": "n", "email": "e", "count": "c"}),
    ],
)
def test_field_count_determines_populated_columns(line, expected):
    assert enrich(line, lambda key: "U").row == expected
