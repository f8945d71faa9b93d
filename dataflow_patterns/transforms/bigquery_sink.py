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
"""BigQuery sink for enriched rows."""
import logging

import apache_beam as beam
from apache_beam.io.gcp.bigquery import BigQueryDisposition, WriteToBigQuery
from apache_beam.pvalue import PCollection

# --- Configure Logging ---
logger = logging.getLogger(__name__)

ENRICHED_ROW_SCHEMA = "UUID:STRING,name:STRING,email:STRING,count:INTEGER"


class WriteEnrichedRows(beam.PTransform):
    """
    Writes enriched row dicts to ``table``, truncating previous contents.

    By default the table must already exist. With ``create_if_needed`` the
    table is created from ``ENRICHED_ROW_SCHEMA``.
    """
    def __init__(self, table: str, create_if_needed: bool = False):
        super().__init__()
        if not table: raise ValueError("`table` must be provided.")
        self.table = table
        self.create_if_needed = create_if_needed

    def write_kwargs(self) -> dict:
        """Keyword arguments passed to ``WriteToBigQuery``."""
        kwargs = {
            "write_disposition": BigQueryDisposition.WRITE_TRUNCATE,
            "create_disposition": BigQueryDisposition.CREATE_NEVER,
        }
        if self.create_if_needed:
            kwargs["create_disposition"] = BigQueryDisposition.CREATE_IF_NEEDED
            kwargs["schema"] = ENRICHED_ROW_SCHEMA
        return kwargs

    def expand(self, pcoll: PCollection):
        logger.info(f"Writing enriched rows to {self.table} (create_if_needed={self.create_if_needed}).")
        return pcoll | "WriteToBigQuery" >> WriteToBigQuery(self.table, **self.write_kwargs())
