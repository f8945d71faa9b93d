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
Pipeline options for the external-call pipeline.

Generic execution options (``--runner``, ``--project``, ``--temp_location``,
``--staging_location``, ``--region``) are Beam's own and pass straight through.
"""
from apache_beam.options.pipeline_options import PipelineOptions

from dataflow_patterns.clients.uuid_lookup import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_SECS
from dataflow_patterns.transforms.bigtable_mutations import DEFAULT_COLUMN_FAMILY, DEFAULT_QUALIFIER

REQUIRED_OPTIONS = (
    "input",
    "output",
    "bigtable_project_id",
    "bigtable_instance_id",
    "bigtable_table_id",
    "lookup_base_url",
)


class ExternalCallOptions(PipelineOptions):
    @classmethod
    def _add_argparse_args(cls, parser):
        parser.add_argument(
            '--input',
            type=str,
            help='Path of the CSV file to read, e.g. gs://bucket/sample-data.csv'
        )
        parser.add_argument(
            '--output',
            type=str,
            help='BigQuery output table, PROJECT:DATASET.TABLE'
        )
        parser.add_argument(
            '--bigtable_project_id',
            type=str,
            help='Project of the Bigtable instance'
        )
        parser.add_argument(
            '--bigtable_instance_id',
            type=str,
            help='Bigtable instance ID'
        )
        parser.add_argument(
            '--bigtable_table_id',
            type=str,
            help='Bigtable table ID'
        )
        parser.add_argument(
            '--bigtable_column_family',
            type=str,
            default=DEFAULT_COLUMN_FAMILY,
            help=f'Column family for the written cell (default: {DEFAULT_COLUMN_FAMILY})'
        )
        parser.add_argument(
            '--bigtable_column_qualifier',
            type=str,
            default=DEFAULT_QUALIFIER,
            help=f'Column qualifier for the written cell (default: {DEFAULT_QUALIFIER})'
        )
        parser.add_argument(
            '--bigtable_cell_value',
            type=str,
            default=None,
            help='Cell value written for every row (default: random value per run)'
        )
        parser.add_argument(
            '--lookup_base_url',
            type=str,
            help='Base URL of the UUID service, e.g. http://host:port'
        )
        parser.add_argument(
            '--lookup_timeout_secs',
            type=float,
            default=DEFAULT_TIMEOUT_SECS,
            help=f'Timeout for each UUID lookup (default: {DEFAULT_TIMEOUT_SECS})'
        )
        parser.add_argument(
            '--lookup_max_retries',
            type=int,
            default=DEFAULT_MAX_RETRIES,
            help=f'Retries for failed UUID lookups (default: {DEFAULT_MAX_RETRIES})'
        )
        parser.add_argument(
            '--bq_create_if_needed',
            action='store_true',
            default=False,
            help='Create the BigQuery table if it does not exist'
        )
        parser.add_argument(
            '--dead_letter_output',
            type=str,
            default=None,
            help='Path prefix for JSON lines of records that produced no row (optional)'
        )


def validate_options(options: ExternalCallOptions) -> None:
    """Raises ValueError naming every missing required option."""
    missing = [name for name in REQUIRED_OPTIONS if not getattr(options, name, None)]
    if missing:
        raise ValueError(f"Missing required pipeline options: {', '.join('--' + m for m in missing)}")
