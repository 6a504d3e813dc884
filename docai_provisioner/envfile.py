"""The ``.env.yaml`` hand-off between the provisioner and the deployed function.

The key set is read by the function at cold start; renaming a key here
requires the same change on the function side.
"""

from __future__ import annotations

import logging
import os
from collections.abc import MutableMapping, Sequence
from pathlib import Path

import yaml

from docai_provisioner.config import RunConfig
from docai_provisioner.types import BucketSpec, ProcessorRecord

logger = logging.getLogger(__name__)

ENV_KEYS: tuple[str, ...] = (
    "PROJECT_ID",
    "PROCESSOR_ID",
    "PARSER_LOCATION",
    "INPUT_BUCKET",
    "OUTPUT_BUCKET",
    "ARCHIVE_BUCKET",
    "BQ_DATASET",
    "BQ_TABLE",
)

_ROLE_KEYS = {"input": "INPUT_BUCKET", "output": "OUTPUT_BUCKET", "archived": "ARCHIVE_BUCKET"}


def build_env(
    *,
    config: RunConfig,
    processor: ProcessorRecord,
    buckets: Sequence[BucketSpec],
    dataset: str,
    table: str,
) -> dict[str, str]:
    by_role = {b.role: b.name for b in buckets}
    missing = [r for r in _ROLE_KEYS if r not in by_role]
    if missing:
        raise ValueError(f"Missing bucket roles: {', '.join(missing)}")

    values = {
        "PROJECT_ID": config.project_id,
        "PROCESSOR_ID": processor.processor_id,
        "PARSER_LOCATION": config.parser_location,
        "INPUT_BUCKET": by_role["input"],
        "OUTPUT_BUCKET": by_role["output"],
        "ARCHIVE_BUCKET": by_role["archived"],
        "BQ_DATASET": dataset,
        "BQ_TABLE": table,
    }
    return {k: values[k] for k in ENV_KEYS}


def write_env_file(path: Path, values: dict[str, str]) -> None:
    """Overwrite ``path`` with a flat YAML mapping of string values."""
    unknown = set(values) - set(ENV_KEYS)
    if unknown:
        raise ValueError(f"Unexpected env keys: {', '.join(sorted(unknown))}")

    path.parent.mkdir(parents=True, exist_ok=True)
    doc = {k: str(values.get(k, "")) for k in ENV_KEYS}
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(doc, f, default_flow_style=False, sort_keys=False)
    logger.info("Wrote env file for Cloud Function: %s", path)


def read_env_file(path: Path) -> dict[str, str]:
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        return {}
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


def export_env(values: dict[str, str], environ: MutableMapping[str, str] | None = None) -> None:
    env = os.environ if environ is None else environ
    for k, v in values.items():
        env[k] = v
