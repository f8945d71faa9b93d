import logging

import apache_beam as beam
from apache_beam.options.pipeline_options import PipelineOptions
from apache_beam.transforms.enrichment import Enrichment

from dataflow_patterns.clients.uuid_lookup import UuidLookupClient
from dataflow_patterns.transforms.record_enrichment import EnrichRecords

# --- Configuration ---
# Replace with the base URL of your UUID service.
UUID_SERVICE_URL = "http://localhost:8080"  # <--- IMPORTANT: REPLACE THIS!


def run_pipeline():
    options = PipelineOptions()

    # --- 1. Sample input lines: name,email,count ---
    input_lines = [
        "James,james@example.com,3",
        "Mary,mary@example.com,5",
        "John",                                   # Short line: email/count left unset
        "Linda,linda@example.com,7,extra,values", # Extra values are dropped
    ]

    with beam.Pipeline(options=options) as p:
        lines = p | "CreateLines" >> beam.Create(input_lines)

        # --- 2. Enrich raw lines into UUID/name/email/count rows ---
        enriched = lines | "EnrichLines" >> EnrichRecords(UuidLookupClient(UUID_SERVICE_URL))
        enriched.rows | "PrintRows" >> beam.Map(print)
        enriched.dropped | "PrintDropped" >> beam.Map(print)

        # --- 3. Same client through Beam's Enrichment transform on beam.Row ---
        (
            lines
            | "ToBeamRow" >> beam.Map(lambda line: beam.Row(line=line))
            | "EnrichBeamRows" >> Enrichment(source_handler=UuidLookupClient(UUID_SERVICE_URL))
            | "PrintBeamRows" >> beam.Map(print)
        )


if __name__ == "__main__":
    logging.getLogger().setLevel(logging.INFO)  # Set to DEBUG to see each lookup
    print(f"Enriching sample lines against UUID service at {UUID_SERVICE_URL}")
    print("Rows for failed lookups carry UUID='ERROR'.")
    print("--------------------------------------------------------------------")
    run_pipeline()
    print("--------------------------------------------------------------------")
    print("Beam pipeline finished.")
