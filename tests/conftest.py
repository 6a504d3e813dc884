"""Shared test fixtures for the docai-provisioner test suite."""

from __future__ import annotations

import pytest

_RUN_ENV_KEYS = (
    "PROJECT_ID",
    "PROCESSOR_ID",
    "PARSER_LOCATION",
    "INPUT_BUCKET",
    "OUTPUT_BUCKET",
    "ARCHIVE_BUCKET",
    "BQ_DATASET",
    "BQ_TABLE",
    "REGION",
    "PROCESSOR_DISPLAY_NAME",
)


@pytest.fixture(autouse=True)
def _clean_run_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep values exported by a developer's own shell out of the tests."""
    for key in _RUN_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
