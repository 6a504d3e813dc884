from __future__ import annotations

import logging
from pathlib import Path

from google.api_core.exceptions import NotFound
from google.cloud import bigquery

from docai_provisioner.config import BQ_LOCATION

logger = logging.getLogger(__name__)

TABLE_CREATED = "created"
TABLE_EXISTS = "exists"
TABLE_SKIPPED = "skipped"


def _exists(getter, ref: str) -> bool:
    try:
        getter(ref)
    except NotFound:
        return False
    return True


def ensure_dataset(
    client: bigquery.Client,
    *,
    project_id: str,
    dataset: str,
    location: str = BQ_LOCATION,
) -> bool:
    """Create ``project.dataset`` if absent. Returns True when created."""
    ref = f"{project_id}.{dataset}"
    if _exists(client.get_dataset, ref):
        logger.info("Dataset %s exists.", dataset)
        return False

    logger.info("Creating BigQuery dataset %s in %s...", dataset, location)
    ds = bigquery.Dataset(ref)
    ds.location = location
    client.create_dataset(ds)
    return True


def ensure_table(
    client: bigquery.Client,
    *,
    project_id: str,
    dataset: str,
    table: str,
    schema_path: Path,
) -> str:
    """Create the table from a JSON schema file if absent.

    Returns ``created``, ``exists`` or ``skipped`` (schema file missing).
    """
    if not schema_path.is_file():
        logger.warning(
            "Schema file not found at %s. Skipping table creation. "
            "Make sure schema is available before creating the table.",
            schema_path,
        )
        return TABLE_SKIPPED

    ref = f"{project_id}.{dataset}.{table}"
    if _exists(client.get_table, ref):
        logger.info("Table %s.%s already exists.", dataset, table)
        return TABLE_EXISTS

    logger.info("Creating BigQuery table %s.%s using schema %s...", dataset, table, schema_path)
    schema = client.schema_from_json(str(schema_path))
    client.create_table(bigquery.Table(ref, schema=schema))
    return TABLE_CREATED
