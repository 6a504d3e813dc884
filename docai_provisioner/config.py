"""Environment-variable-driven configuration for the provisioner.

Resource names are fixed: the deployed function reads them back from the
env file, so they are not overridable. Operational knobs (work directory,
retry budget, delays) come from env vars with the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from docai_provisioner.errors import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


# -- Naming (bit-exact, shared with the deployed function) --------------------
BUCKET_ROLES: tuple[str, ...] = ("input", "output", "archived")
BQ_DATASET: str = "invoice_parser_results"
BQ_TABLE: str = "doc_ai_extracted_entities"
BQ_LOCATION: str = "US"
FUNCTION_NAME: str = "process-invoices"
FUNCTION_ENTRY_POINT: str = "process_invoice"
FUNCTION_RUNTIME: str = "python313"
FUNCTION_TIMEOUT: str = "400s"
TRIGGER_EVENT: str = "google.storage.object.finalize"
STORAGE_CLASS: str = "STANDARD"
PROCESSOR_TYPE: str = "FORM_PARSER_PROCESSOR"
DEFAULT_PARSER_LOCATION: str = "us"

REQUIRED_SERVICES: tuple[str, ...] = (
    "documentai.googleapis.com",
    "cloudfunctions.googleapis.com",
    "cloudbuild.googleapis.com",
    "artifactregistry.googleapis.com",
    "bigquery.googleapis.com",
    "storage.googleapis.com",
)

# Sentinel printed by `gcloud config get-value` when nothing is configured.
UNSET_SENTINEL: str = "(unset)"

# -- Work directory -----------------------------------------------------------
WORKDIR: Path = Path(os.getenv("DOCAI_WORKDIR", str(Path.home() / "document-ai-challenge")))
STARTER_URI: str = os.getenv("DOCAI_STARTER_URI", "gs://spls/gsp367")

# -- Timing / retries ---------------------------------------------------------
DEPLOY_MAX_ATTEMPTS: int = _env_int("DOCAI_DEPLOY_MAX_ATTEMPTS", 6)
DEPLOY_BACKOFF_SECONDS: int = _env_int("DOCAI_DEPLOY_BACKOFF_SECONDS", 15)
API_SETTLE_SECONDS: int = _env_int("DOCAI_API_SETTLE_SECONDS", 6)
HTTP_TIMEOUT_SECONDS: int = _env_int("DOCAI_HTTP_TIMEOUT_SECONDS", 60)

# -- Logging ------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("DOCAI_LOG_LEVEL", "INFO")
LOG_JSON: bool = _env_bool("DOCAI_LOG_JSON", False) or bool(os.getenv("K_SERVICE"))


@dataclass(frozen=True)
class WorkPaths:
    """Locations inside the staged lab work directory."""

    root: Path

    @property
    def schema_file(self) -> Path:
        return self.root / "scripts" / "table-schema" / f"{BQ_TABLE}.json"

    @property
    def function_source(self) -> Path:
        return self.root / "scripts" / "cloud-functions" / FUNCTION_NAME

    @property
    def env_file(self) -> Path:
        return self.function_source / ".env.yaml"

    @property
    def invoices_dir(self) -> Path:
        return self.root / "invoices"


@dataclass(frozen=True)
class RunConfig:
    project_id: str
    region: str
    processor_display_name: str
    parser_location: str = DEFAULT_PARSER_LOCATION

    def validate(self) -> None:
        missing = [
            k
            for k, v in {
                "project_id": self.project_id,
                "region": self.region,
                "processor_display_name": self.processor_display_name,
                "parser_location": self.parser_location,
            }.items()
            if not v
        ]
        if missing:
            raise ConfigurationError(f"Missing run configuration: {', '.join(missing)}")


def resolve_project_id(raw: str | None) -> str:
    """Normalize the output of ``gcloud config get-value core/project``."""
    project = (raw or "").strip()
    if not project or project == UNSET_SENTINEL:
        raise ConfigurationError(
            "No project configured in gcloud. "
            "Please run: gcloud config set project <YOUR_PROJECT_ID>"
        )
    return project
