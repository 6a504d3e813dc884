from __future__ import annotations

from docai_provisioner.config import RunConfig
from docai_provisioner.documentai import processors_url
from docai_provisioner.types import ProcessorRecord


def next_steps(*, config: RunConfig, processor: ProcessorRecord, dataset: str, table: str) -> list[str]:
    """Manual follow-ups and quick checks printed after a run."""
    lines = [
        "Important next steps you may need to perform manually:",
        "  - Verify the processor in Cloud Console: Document AI -> Processors. "
        "Ensure the processor ID and location are correct.",
    ]
    if not processor.processor_id:
        lines.append(
            "  - Processor creation did not yield an ID: create a processor in the Console, "
            "export PROCESSOR_ID and re-run to redeploy the function."
        )
    lines += [
        "Quick checks:",
        "  - List processors:",
        '    curl -H "Authorization: Bearer $(gcloud auth print-access-token)" '
        f'"{processors_url(config.project_id, config.parser_location)}"',
        "  - Query BigQuery (example):",
        "    bq query --use_legacy_sql=false "
        f"'SELECT * FROM `{config.project_id}.{dataset}.{table}` LIMIT 10;'",
    ]
    return lines
