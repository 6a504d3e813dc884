"""Provisioning pipeline for the Document AI invoice lab.

Steps run in a fixed order and each one consumes only what earlier steps
produced. Check-then-create keeps every resource step safe to re-run.
Soft failures are recorded as warnings in the :class:`RunReport` and the
run carries on with degraded state; fatal failures stop the run and set
the exit code (1 for configuration/control-plane errors, 2 when the
deployment retry budget is exhausted).
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, MutableMapping
from pathlib import Path

import httpx
import yaml
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery, storage

from docai_provisioner import config as settings
from docai_provisioner.bigquery import TABLE_SKIPPED, ensure_dataset, ensure_table
from docai_provisioner.config import RunConfig, WorkPaths, resolve_project_id
from docai_provisioner.deploy import DeploymentRetrier
from docai_provisioner.diagnostics import next_steps
from docai_provisioner.documentai import ProcessorProvisioner, extract_processor_name
from docai_provisioner.envfile import build_env, export_env, read_env_file, write_env_file
from docai_provisioner.errors import DeploymentExhaustedError, GcloudError, ProvisioningError
from docai_provisioner.gcloud import Gcloud, compute_service_account, runtime_service_account
from docai_provisioner.gcs import bucket_specs, copy_prefix, ensure_bucket, upload_directory
from docai_provisioner.prompts import InputFn, collect_inputs
from docai_provisioner.types import (
    STATUS_FATAL,
    STATUS_OK,
    STATUS_SKIPPED,
    STATUS_WARNING,
    BucketSpec,
    IamBinding,
    ProcessorRecord,
    RunReport,
)

logger = logging.getLogger(__name__)

PUBLISHER_ROLE = "roles/pubsub.publisher"
REGISTRY_READER_ROLE = "roles/artifactregistry.reader"


class ProvisioningRunner:
    def __init__(
        self,
        *,
        gcloud: Gcloud | None = None,
        storage_client: storage.Client | None = None,
        bigquery_client: bigquery.Client | None = None,
        processors: ProcessorProvisioner | None = None,
        input_fn: InputFn = input,
        sleep: Callable[[float], None] = time.sleep,
        environ: MutableMapping[str, str] | None = None,
        workdir: Path | None = None,
        starter_uri: str | None = settings.STARTER_URI,
        max_attempts: int = settings.DEPLOY_MAX_ATTEMPTS,
        backoff_seconds: float = settings.DEPLOY_BACKOFF_SECONDS,
        settle_seconds: float = settings.API_SETTLE_SECONDS,
    ) -> None:
        self._gcloud = gcloud or Gcloud()
        self._storage = storage_client
        self._bq = bigquery_client
        self._processors = processors or ProcessorProvisioner()
        self._input = input_fn
        self._sleep = sleep
        self._environ = os.environ if environ is None else environ
        self._paths = WorkPaths(workdir or settings.WORKDIR)
        self._starter_uri = starter_uri
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._settle = settle_seconds
        self.report = RunReport()
        self._current_step = "init"

    # -- Pipeline --------------------------------------------------------------

    def run(self) -> RunReport:
        try:
            cfg = self._resolve_config()
            self._enable_apis(cfg)
            self._ensure_clients(cfg)
            self._stage_starter_files()
            processor = self._create_processor(cfg)
            buckets = self._create_buckets(cfg)
            self._create_warehouse(cfg)
            self._apply_iam(cfg)
            self._write_env(cfg, processor, buckets)
            self._deploy(cfg, buckets)
            self._upload_samples(buckets)
            self._diagnostics(cfg, processor)
        except ProvisioningError as e:
            logger.error("%s", e)
            self.report.add(self._current_step, STATUS_FATAL, str(e))
            self.report.exit_code = e.exit_code
        except (GoogleAPIError, GoogleAuthError, OSError, ValueError) as e:
            logger.error("%s failed: %s", self._current_step, e)
            self.report.add(self._current_step, STATUS_FATAL, f"{type(e).__name__}: {e}")
            self.report.exit_code = 1

        logger.info("DONE summary=%s exit_code=%d", self.report.summary(), self.report.exit_code)
        for w in self.report.warnings:
            logger.warning("[%s] %s", w.step, w.detail)
        return self.report

    def _step(self, name: str) -> None:
        self._current_step = name
        logger.info("== %s", name)

    # -- Steps -----------------------------------------------------------------

    def _resolve_config(self) -> RunConfig:
        self._step("project")
        account = self._gcloud.active_account()
        if account:
            logger.info("Active account: %s", account)
        else:
            logger.warning("No active gcloud account found")

        project_id = resolve_project_id(self._gcloud.get_project())
        logger.info("Using project: %s", project_id)
        self._environ["PROJECT_ID"] = project_id
        self.report.add("project", STATUS_OK, project_id)

        self._step("inputs")
        cfg = collect_inputs(project_id, self._input)
        self._environ["REGION"] = cfg.region
        self._environ["PARSER_LOCATION"] = cfg.parser_location
        self._environ["PROCESSOR_DISPLAY_NAME"] = cfg.processor_display_name
        self.report.add("inputs", STATUS_OK, f"region={cfg.region} parser_location={cfg.parser_location}")
        return cfg

    def _enable_apis(self, cfg: RunConfig) -> None:
        self._step("apis")
        logger.info("Enabling required APIs...")
        self._gcloud.enable_services(cfg.project_id, settings.REQUIRED_SERVICES)
        if self._settle > 0:
            self._sleep(self._settle)
        self.report.add("apis", STATUS_OK, ",".join(settings.REQUIRED_SERVICES))

    def _ensure_clients(self, cfg: RunConfig) -> None:
        self._step("clients")
        if self._storage is None:
            self._storage = storage.Client(project=cfg.project_id)
        if self._bq is None:
            self._bq = bigquery.Client(project=cfg.project_id)

    def _stage_starter_files(self) -> None:
        self._step("starter_files")
        if not self._starter_uri:
            self.report.add("starter_files", STATUS_SKIPPED, "no starter URI configured")
            return
        logger.info("Copying starter files from %s to %s...", self._starter_uri, self._paths.root)
        try:
            self._paths.root.mkdir(parents=True, exist_ok=True)
            n = copy_prefix(self._storage, self._starter_uri, self._paths.root)
        except (GoogleAPIError, GoogleAuthError, OSError, ValueError) as e:
            logger.warning("Could not copy starter files from %s: %s", self._starter_uri, e)
            self.report.add("starter_files", STATUS_WARNING, f"copy from {self._starter_uri} failed: {e}")
            return
        self.report.add("starter_files", STATUS_OK, f"{n} files")

    def _create_processor(self, cfg: RunConfig) -> ProcessorRecord:
        self._step("processor")
        logger.info("Creating Document AI Form Parser processor in location: %s", cfg.parser_location)
        body: str | None = None
        try:
            body = self._processors.create(
                project_id=cfg.project_id,
                display_name=cfg.processor_display_name,
                location=cfg.parser_location,
            )
        except (GoogleAuthError, httpx.HTTPError, RuntimeError) as e:
            logger.warning("Processor create request failed: %s", e)

        name = extract_processor_name(body)
        if name:
            record = ProcessorRecord.from_name(name)
            logger.info("Created processor: %s", record.name)
            logger.info("Processor ID: %s", record.processor_id)
            self._environ["PROCESSOR_ID"] = record.processor_id
            self.report.add("processor", STATUS_OK, record.name)
            return record

        logger.warning("Could not extract processor name from API response. Response was: %s", body)
        manual = self._environ.get("PROCESSOR_ID", "").strip()
        previous = self._previous_processor_id()
        if manual:
            logger.info("Using PROCESSOR_ID from environment: %s", manual)
            record = ProcessorRecord.from_id(manual)
            detail = f"extraction failed; using PROCESSOR_ID={manual} from environment"
        elif previous:
            logger.info("Using PROCESSOR_ID from %s: %s", self._paths.env_file, previous)
            record = ProcessorRecord.from_id(previous)
            detail = f"extraction failed; reusing PROCESSOR_ID={previous} from the previous env file"
        else:
            record = ProcessorRecord.from_name(None)
            detail = (
                "could not extract processor ID; create a processor in the Console "
                "and set PROCESSOR_ID before deploying the function"
            )
        self.report.add("processor", STATUS_WARNING, detail)
        return record

    def _previous_processor_id(self) -> str:
        path = self._paths.env_file
        if not path.is_file():
            return ""
        try:
            return read_env_file(path).get("PROCESSOR_ID", "").strip()
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read previous env file %s: %s", path, e)
            return ""

    def _create_buckets(self, cfg: RunConfig) -> list[BucketSpec]:
        self._step("buckets")
        specs = bucket_specs(cfg.project_id, cfg.region)
        created = [s.name for s in specs if ensure_bucket(self._storage, s, project_id=cfg.project_id)]
        self.report.add("buckets", STATUS_OK, f"created={created}" if created else "all exist")
        return specs

    def _create_warehouse(self, cfg: RunConfig) -> None:
        self._step("dataset")
        created = ensure_dataset(
            self._bq,
            project_id=cfg.project_id,
            dataset=settings.BQ_DATASET,
            location=settings.BQ_LOCATION,
        )
        self.report.add("dataset", STATUS_OK, "created" if created else "exists")

        self._step("table")
        outcome = ensure_table(
            self._bq,
            project_id=cfg.project_id,
            dataset=settings.BQ_DATASET,
            table=settings.BQ_TABLE,
            schema_path=self._paths.schema_file,
        )
        if outcome == TABLE_SKIPPED:
            self.report.add("table", STATUS_WARNING, f"schema file not found at {self._paths.schema_file}")
        else:
            self.report.add("table", STATUS_OK, outcome)

    def _apply_iam(self, cfg: RunConfig) -> None:
        self._step("iam")
        logger.info("Applying required IAM roles (best-effort)...")
        bindings = [IamBinding(f"serviceAccount:{runtime_service_account(cfg.project_id)}", PUBLISHER_ROLE)]
        try:
            number = self._gcloud.project_number(cfg.project_id)
        except GcloudError as e:
            logger.warning("Could not look up project number: %s", e)
            self.report.add("iam", STATUS_WARNING, f"skipped {REGISTRY_READER_ROLE}: no project number")
        else:
            bindings.append(IamBinding(f"serviceAccount:{compute_service_account(number)}", REGISTRY_READER_ROLE))

        for b in bindings:
            try:
                self._gcloud.add_iam_binding(cfg.project_id, b)
            except GcloudError as e:
                logger.warning("IAM binding %s for %s failed: %s", b.role, b.member, e)
                self.report.add("iam", STATUS_WARNING, f"{b.role} for {b.member}: {e}")
                continue
            self.report.add("iam", STATUS_OK, f"{b.role} for {b.member}")

    def _write_env(self, cfg: RunConfig, processor: ProcessorRecord, buckets: list[BucketSpec]) -> None:
        self._step("env_file")
        values = build_env(
            config=cfg,
            processor=processor,
            buckets=buckets,
            dataset=settings.BQ_DATASET,
            table=settings.BQ_TABLE,
        )
        write_env_file(self._paths.env_file, values)
        export_env(values, self._environ)
        self.report.add("env_file", STATUS_OK, str(self._paths.env_file))

    def _deploy(self, cfg: RunConfig, buckets: list[BucketSpec]) -> None:
        self._step("deploy")
        input_bucket = next(b.name for b in buckets if b.role == "input")
        logger.info("Deploying Cloud Function (gen2) '%s' to region %s...", settings.FUNCTION_NAME, cfg.region)

        def deploy_once() -> None:
            self._gcloud.deploy_function(
                region=cfg.region,
                service_account=runtime_service_account(cfg.project_id),
                source=self._paths.function_source,
                env_file=self._paths.env_file,
                input_bucket=input_bucket,
            )

        outcome = DeploymentRetrier(
            deploy_once,
            max_attempts=self._max_attempts,
            backoff_seconds=self._backoff,
            sleep=self._sleep,
        ).run()
        if not outcome.succeeded:
            raise DeploymentExhaustedError(outcome.attempts)
        self.report.add("deploy", STATUS_OK, f"attempts={outcome.attempts}")

    def _upload_samples(self, buckets: list[BucketSpec]) -> None:
        self._step("samples")
        input_bucket = next(b.name for b in buckets if b.role == "input")
        src = self._paths.invoices_dir
        if not src.is_dir():
            logger.info("No local sample invoices found at %s. Skipping upload.", src)
            self.report.add("samples", STATUS_SKIPPED, f"{src} not found")
            return

        logger.info("Uploading sample invoices from %s to gs://%s/", src, input_bucket)
        try:
            n = upload_directory(self._storage, input_bucket, src)
        except (GoogleAPIError, GoogleAuthError, OSError) as e:
            logger.warning("Upload failed or no invoices to upload: %s", e)
            self.report.add("samples", STATUS_WARNING, f"upload failed: {e}")
            return
        self.report.add("samples", STATUS_OK, f"{n} files")

    def _diagnostics(self, cfg: RunConfig, processor: ProcessorRecord) -> None:
        self._step("diagnostics")
        logger.info("Setup complete (or mostly complete).")
        for line in next_steps(
            config=cfg, processor=processor, dataset=settings.BQ_DATASET, table=settings.BQ_TABLE
        ):
            logger.info("%s", line)
        self.report.add("diagnostics", STATUS_OK)
