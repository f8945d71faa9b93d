# -*- coding: utf-8 -*-
# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
"""
Record enrichment for comma-delimited lines.

Each line is split into fields, an external lookup resolves a UUID for the
whole line, and the values are mapped positionally onto the fixed column list
``[UUID, name, email, count]``. A failed lookup substitutes the ``"ERROR"``
sentinel and still produces a row. Lines that cannot be processed are not
lost: they come back as tagged ``SKIPPED`` / ``FAILED`` results and are routed
to a ``dropped`` side output by ``StringToRowDoFn``.
"""
import logging
from collections.abc import Callable
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Tuple

import apache_beam as beam
from apache_beam.metrics import Metrics
from apache_beam.pvalue import PCollection

from dataflow_patterns.clients.uuid_lookup import LOOKUP_SENTINEL

# --- Configure Logging ---
logger = logging.getLogger(__name__)

# --- Type Hints ---
EnrichedRow = Dict[str, str]
LookupFn = Callable[[str], str]

# --- Constants ---
FIELD_DELIMITER = ","
COLUMN_NAMES = ("UUID", "name", "email", "count")
STATUS_OK = "OK"
STATUS_SKIPPED = "SKIPPED"
STATUS_FAILED = "FAILED"
DROPPED_TAG = "dropped"


class EnrichmentResult(NamedTuple):
    """Outcome of enriching one line. ``row`` is set only when status is OK."""
    status: str
    line: Any
    row: Optional[EnrichedRow] = None
    reason: Optional[str] = None
    lookup_failed: bool = False

    @classmethod
    def success(cls, line: str, row: EnrichedRow, lookup_failed: bool = False) -> "EnrichmentResult":
        return cls(STATUS_OK, line, row, None, lookup_failed)

    @classmethod
    def skipped(cls, line: Any, reason: str) -> "EnrichmentResult":
        return cls(STATUS_SKIPPED, line, None, reason)

    @classmethod
    def failed(cls, line: Any, error: BaseException) -> "EnrichmentResult":
        return cls(STATUS_FAILED, line, None, f"{type(error).__name__}: {error}")

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dead_letter(self) -> Dict[str, Any]:
        """Record written to the dead-letter output for a dropped line."""
        return {"status": self.status, "line": self.line, "reason": self.reason}


def split_fields(line: str) -> List[str]:
    """Splits on the delimiter, discarding trailing empty fields.

    An empty line yields a single empty field; a line made only of delimiters
    yields no fields.
    """
    if line == "":
        return [""]
    fields = line.split(FIELD_DELIMITER)
    while fields and fields[-1] == "":
        fields.pop()
    return fields


def to_enriched_row(uuid: str, fields: List[str]) -> EnrichedRow:
    """Maps ``[uuid] + fields`` onto ``COLUMN_NAMES``; extra values are dropped."""
    values = [uuid] + list(fields)
    return dict(zip(COLUMN_NAMES, values))


def resolve_uuid(line: str, lookup: LookupFn) -> Tuple[str, bool]:
    """Returns ``(uuid, lookup_failed)``; I/O failures resolve to the sentinel."""
    try:
        return lookup(line), False
    except IOError as e:
        logger.warning(f"Lookup failed for line '{line}': {e}. Using sentinel '{LOOKUP_SENTINEL}'.")
        return LOOKUP_SENTINEL, True


def enrich(line: Any, lookup: LookupFn) -> EnrichmentResult:
    """Enriches a single raw line.

    The lookup is keyed on the entire original line, not on a parsed field.
    Never raises: unusable input is ``SKIPPED``, unexpected errors ``FAILED``.
    """
    if line is None:
        return EnrichmentResult.skipped(line, "input line is None")
    if not isinstance(line, str):
        return EnrichmentResult.skipped(line, f"expected str, got {type(line).__name__}")
    try:
        fields = split_fields(line)
        uuid, lookup_failed = resolve_uuid(line, lookup)
        return EnrichmentResult.success(line, to_enriched_row(uuid, fields), lookup_failed)
    except Exception as e:
        logger.error(f"Error enriching line: {line}. Error: {e}", exc_info=True)
        return EnrichmentResult.failed(line, e)


# =============================================================================
# Beam DoFn and PTransform
# =============================================================================

class StringToRowDoFn(beam.DoFn):
    """ Converts raw lines to enriched rows; dropped lines go to ``DROPPED_TAG``. """
    def __init__(self, lookup_client):
        self._lookup_client = lookup_client
        self.rows_enriched = Metrics.counter(self.__class__, "rows_enriched")
        self.rows_skipped = Metrics.counter(self.__class__, "rows_skipped")
        self.rows_failed = Metrics.counter(self.__class__, "rows_failed")
        self.lookup_errors = Metrics.counter(self.__class__, "lookup_errors")

    def setup(self):
        self._lookup_client.__enter__()

    def process(self, element: Any) -> Iterator[Any]:
        result = enrich(element, self._lookup_client.get)
        if result.ok:
            self.rows_enriched.inc()
            if result.lookup_failed: self.lookup_errors.inc()
            yield result.row
            return

        if result.status == STATUS_SKIPPED: self.rows_skipped.inc()
        else: self.rows_failed.inc()
        logger.warning(f"Dropping line ({result.status}): {result.line!r}. Reason: {result.reason}")
        yield beam.pvalue.TaggedOutput(DROPPED_TAG, result.to_dead_letter())

    def teardown(self):
        self._lookup_client.__exit__(None, None, None)


class EnrichRecords(beam.PTransform):
    """
    Enriches a PCollection of raw lines.

    Returns a tagged output tuple: ``rows`` holds the enriched dicts and
    ``dropped`` holds dead-letter records for lines that produced no row.
    """
    def __init__(self, lookup_client):
        super().__init__()
        self._lookup_client = lookup_client

    def expand(self, pcoll: PCollection):
        return (
            pcoll
            | "StringToRow" >> beam.ParDo(StringToRowDoFn(self._lookup_client)).with_outputs(
                DROPPED_TAG, main="rows")
        )
