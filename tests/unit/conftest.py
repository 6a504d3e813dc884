"""Unit test conftest — in-memory doubles for gcloud, Cloud Storage and BigQuery."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import NotFound

from docai_provisioner.errors import GcloudError

PROCESSOR_BODY = '{"name": "projects/123/locations/us/processors/ABCDEF", "displayName": "my-proc"}'


class FakeGcloud:
    def __init__(self, *, project: str = "demo-proj", number: str = "123") -> None:
        self.project = project
        self.number = number
        self.calls: list[tuple] = []
        self.enable_error: GcloudError | None = None
        self.number_error: GcloudError | None = None
        self.failing_roles: set[str] = set()
        self.deploy_failures = 0
        self.deploy_attempts = 0

    def active_account(self) -> str | None:
        return "student@example.com"

    def get_project(self) -> str:
        self.calls.append(("get_project",))
        return self.project

    def enable_services(self, project_id, services) -> None:
        self.calls.append(("enable_services", project_id, tuple(services)))
        if self.enable_error:
            raise self.enable_error

    def project_number(self, project_id) -> str:
        self.calls.append(("project_number", project_id))
        if self.number_error:
            raise self.number_error
        return self.number

    def add_iam_binding(self, project_id, binding) -> None:
        self.calls.append(("add_iam_binding", project_id, binding.member, binding.role))
        if binding.role in self.failing_roles:
            raise GcloudError(["projects", "add-iam-policy-binding"], 1, "PERMISSION_DENIED")

    def deploy_function(self, **kwargs) -> None:
        self.deploy_attempts += 1
        self.calls.append(("deploy_function", kwargs))
        if self.deploy_attempts <= self.deploy_failures:
            raise GcloudError(["functions", "deploy"], 1, "service account not ready")

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


class FakeStorage:
    def __init__(self, existing: set[str] | None = None, starter: dict[str, bytes] | None = None) -> None:
        self.existing = set(existing or ())
        self.created: list[str] = []
        self.uploaded: list[tuple[str, str]] = []
        self.starter = dict(starter or {})

    def lookup_bucket(self, name):
        return MagicMock(name=name) if name in self.existing else None

    def bucket(self, name):
        b = MagicMock()
        b.name = name

        def _blob(blob_name):
            blob = MagicMock()
            blob.upload_from_filename.side_effect = lambda path: self.uploaded.append((name, blob_name))
            return blob

        b.blob.side_effect = _blob
        return b

    def create_bucket(self, bucket, project=None, location=None):
        self.created.append(bucket.name)
        self.existing.add(bucket.name)
        return bucket

    def list_blobs(self, bucket, prefix=""):
        out = []
        for name, data in self.starter.items():
            if not name.startswith(prefix):
                continue
            blob = MagicMock()
            blob.name = name
            blob.download_to_filename.side_effect = lambda path, data=data: Path(path).write_bytes(data)
            out.append(blob)
        return out


class FakeBigQuery:
    def __init__(self, datasets: set[str] | None = None, tables: set[str] | None = None) -> None:
        self.datasets = set(datasets or ())
        self.tables = set(tables or ())
        self.created_datasets: list[str] = []
        self.created_tables: list[str] = []

    def get_dataset(self, ref):
        if ref not in self.datasets:
            raise NotFound(f"Dataset {ref} not found")
        return MagicMock()

    def create_dataset(self, ds):
        self.created_datasets.append(ds.dataset_id)
        self.datasets.add(f"{ds.project}.{ds.dataset_id}")
        return ds

    def get_table(self, ref):
        if ref not in self.tables:
            raise NotFound(f"Table {ref} not found")
        return MagicMock()

    def schema_from_json(self, path):
        return []

    def create_table(self, table):
        self.created_tables.append(table.table_id)
        self.tables.add(f"{table.project}.{table.dataset_id}.{table.table_id}")
        return table


class FakeProcessors:
    def __init__(self, body: str | None = PROCESSOR_BODY, error: Exception | None = None) -> None:
        self.body = body
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs) -> str | None:
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.body


@pytest.fixture
def fake_gcloud() -> FakeGcloud:
    return FakeGcloud()


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def fake_bq() -> FakeBigQuery:
    return FakeBigQuery()


@pytest.fixture
def fake_processors() -> FakeProcessors:
    return FakeProcessors()


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """A staged lab work directory with schema, function source and one invoice."""
    root = tmp_path / "document-ai-challenge"
    schema = root / "scripts" / "table-schema" / "doc_ai_extracted_entities.json"
    schema.parent.mkdir(parents=True)
    schema.write_text('[{"name": "input_file_name", "type": "STRING", "mode": "NULLABLE"}]')
    (root / "scripts" / "cloud-functions" / "process-invoices").mkdir(parents=True)
    invoices = root / "invoices"
    invoices.mkdir()
    (invoices / "invoice-1.pdf").write_bytes(b"%PDF-1.4 fake")
    return root


@pytest.fixture
def answers():
    """Scripted operator answers: region, display name, parser location."""

    def _make(*values: str):
        it = iter(values)
        return lambda prompt: next(it)

    return _make
