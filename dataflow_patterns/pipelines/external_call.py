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
Pattern: pushing data to multiple storage locations with an external call.

Reads lines from a CSV file, enriches each one with a UUID from a REST
service and writes the rows to BigQuery, while every raw line is also written
to Bigtable as a row mutation. Lines that produce no row are logged and,
with ``--dead_letter_output``, written out as JSON lines.

Example (local)::

    python -m dataflow_patterns.pipelines.external_call \\
        --runner=DirectRunner \\
        --project=my-project \\
        --input=gs://my-bucket/sample-data.csv \\
        --output=my-project:my_dataset.patterns_one_email \\
        --temp_location=gs://my-bucket/temp \\
        --bigtable_project_id=my-project \\
        --bigtable_instance_id=my-instance \\
        --bigtable_table_id=my-table \\
        --lookup_base_url=http://uuid-service.internal

Use ``--runner=DataflowRunner`` and ``--staging_location`` to submit to Dataflow.
"""
import json
import logging
from typing import Any, Dict, Optional

import apache_beam as beam
from apache_beam.io.gcp.bigtableio import WriteToBigTable
from apache_beam.options.pipeline_options import PipelineOptions

from dataflow_patterns.clients.uuid_lookup import UuidLookupClient
from dataflow_patterns.options import ExternalCallOptions, validate_options
from dataflow_patterns.transforms.bigquery_sink import WriteEnrichedRows
from dataflow_patterns.transforms.bigtable_mutations import LineToBigtableRowDoFn, default_cell_value
from dataflow_patterns.transforms.record_enrichment import DROPPED_TAG, EnrichRecords

# --- Configure Logging ---
logger = logging.getLogger(__name__)


def _log_dropped(record: Dict[str, Any]) -> Dict[str, Any]:
    logger.debug(f"Dead letter: {record}")
    return record


def build_pipeline(
    pipeline: beam.Pipeline,
    options: ExternalCallOptions,
    *,
    lookup_client=None,
    bigquery_writer: Optional[beam.PTransform] = None,
    bigtable_writer: Optional[beam.PTransform] = None,
    cell_value: Optional[str] = None,
):
    """Adds the read, enrich and write steps to ``pipeline``.

    ``lookup_client``, ``bigquery_writer`` and ``bigtable_writer`` default to
    the real service client and sinks built from ``options``. Returns the
    enrichment output tuple (``rows`` and ``dropped``).
    """
    validate_options(options)

    if lookup_client is None:
        lookup_client = UuidLookupClient(
            options.lookup_base_url,
            timeout_secs=options.lookup_timeout_secs,
            max_retries=options.lookup_max_retries,
        )
    if bigquery_writer is None:
        bigquery_writer = WriteEnrichedRows(options.output, create_if_needed=options.bq_create_if_needed)
    if bigtable_writer is None:
        bigtable_writer = WriteToBigTable(
            project_id=options.bigtable_project_id,
            instance_id=options.bigtable_instance_id,
            table_id=options.bigtable_table_id,
        )
    # One value per run, shared by every mutation.
    if cell_value is None:
        cell_value = options.bigtable_cell_value or default_cell_value()
    logger.info(f"Bigtable cell value for this run: {cell_value}")

    csv = pipeline | "ReadLinesCSV" >> beam.io.ReadFromText(options.input)

    enriched = csv | "ConvertToBQRow" >> EnrichRecords(lookup_client)
    enriched.rows | "WriteToBQ" >> bigquery_writer

    (
        csv
        | "ConvertToBigtableMutation" >> beam.ParDo(LineToBigtableRowDoFn(
            cell_value,
            column_family=options.bigtable_column_family,
            qualifier=options.bigtable_column_qualifier,
        ))
        | "WriteToBigtable" >> bigtable_writer
    )

    dropped = enriched[DROPPED_TAG] | "LogDropped" >> beam.Map(_log_dropped)
    if options.dead_letter_output:
        (
            dropped
            | "DeadLetterToJson" >> beam.Map(lambda r: json.dumps(r, default=str))
            | "WriteDeadLetter" >> beam.io.WriteToText(options.dead_letter_output, file_name_suffix=".jsonl")
        )

    return enriched


def run(argv=None):
    """Parses options, builds the pipeline and waits for it to finish."""
    pipeline_options = PipelineOptions(argv)
    options = pipeline_options.view_as(ExternalCallOptions)

    pipeline = beam.Pipeline(options=pipeline_options)
    build_pipeline(pipeline, options)
    result = pipeline.run()
    result.wait_until_finish()
    return result


def main():
    logging.getLogger().setLevel(logging.INFO)
    run()


if __name__ == '__main__':
    main()
