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
Builds Bigtable row mutations from raw lines.

The raw line is the row key; every row gets one cell in a fixed column
family and qualifier. The cell value is supplied by the caller, typically a
single value computed once per pipeline run.
"""
import logging
import random
from typing import Iterator, Union

import apache_beam as beam
from apache_beam.metrics import Metrics
from google.cloud.bigtable.row import DirectRow

# --- Configure Logging ---
logger = logging.getLogger(__name__)

DEFAULT_COLUMN_FAMILY = "cf"
DEFAULT_QUALIFIER = "qualifier"
MAX_ROW_KEY_BYTES = 4 * 1024


def default_cell_value() -> str:
    """A random ``value_<n>`` so each run visibly changes the table."""
    return f"value_{60 * random.random()}"


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def line_to_direct_row(line: str, column_family: str, qualifier: str, value: Union[str, bytes]) -> DirectRow:
    """Returns a ``DirectRow`` keyed on ``line`` with a single cell set."""
    row = DirectRow(row_key=_to_bytes(line))
    row.set_cell(column_family, _to_bytes(qualifier), _to_bytes(value))
    return row


class LineToBigtableRowDoFn(beam.DoFn):
    """ Emits one ``DirectRow`` per line whose row key Bigtable accepts. """
    def __init__(
        self,
        value: Union[str, bytes],
        column_family: str = DEFAULT_COLUMN_FAMILY,
        qualifier: str = DEFAULT_QUALIFIER,
    ):
        if not column_family: raise ValueError("`column_family` must be provided.")
        if not qualifier: raise ValueError("`qualifier` must be provided.")
        self._value = value
        self._column_family = column_family
        self._qualifier = qualifier
        self.rows_mutated = Metrics.counter(self.__class__, "rows_mutated")
        self.empty_row_keys = Metrics.counter(self.__class__, "empty_row_keys")
        self.oversized_row_keys = Metrics.counter(self.__class__, "oversized_row_keys")

    def process(self, element: str) -> Iterator[DirectRow]:
        # Bigtable rejects empty row keys and keys over 4 KiB.
        if not element:
            self.empty_row_keys.inc()
            logger.debug("Skipping empty line for Bigtable mutation.")
            return
        if len(_to_bytes(element)) > MAX_ROW_KEY_BYTES:
            self.oversized_row_keys.inc()
            logger.warning(f"Skipping line over {MAX_ROW_KEY_BYTES} bytes for Bigtable mutation: {element[:64]!r}...")
            return
        self.rows_mutated.inc()
        yield line_to_direct_row(element, self._column_family, self._qualifier, self._value)
