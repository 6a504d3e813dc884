"""Thin wrapper over the ``gcloud`` CLI.

Used for the control-plane calls that have no convenient client library in
this project's stack: reading the active CLI configuration, enabling
services, IAM policy bindings and gen2 function deploys. Every call is
synchronous; a non-zero exit raises :class:`GcloudError`.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from docai_provisioner.config import (
    FUNCTION_ENTRY_POINT,
    FUNCTION_NAME,
    FUNCTION_RUNTIME,
    FUNCTION_TIMEOUT,
    TRIGGER_EVENT,
)
from docai_provisioner.errors import ConfigurationError, GcloudError
from docai_provisioner.types import IamBinding

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


class Gcloud:
    def __init__(self, *, binary: str | None = None, runner: Runner = subprocess.run) -> None:
        self._binary = binary or shutil.which("gcloud") or "gcloud"
        self._run = runner

    def run(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess:
        cmd = [self._binary, *args]
        logger.debug("exec: %s", " ".join(cmd))
        try:
            proc = self._run(cmd, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"{self._binary} not found. Install the Google Cloud SDK and put gcloud on PATH"
            ) from e
        if check and proc.returncode != 0:
            raise GcloudError(list(args), proc.returncode, proc.stderr or "")
        return proc

    # -- Configuration ---------------------------------------------------------

    def get_project(self) -> str:
        """Raw ``core/project`` value; may be empty or ``(unset)``."""
        proc = self.run(["config", "get-value", "core/project"], check=False)
        if proc.returncode != 0:
            return ""
        return (proc.stdout or "").strip()

    def active_account(self) -> str | None:
        proc = self.run(
            ["auth", "list", "--filter=status:ACTIVE", "--format=value(account)"],
            check=False,
        )
        account = (proc.stdout or "").strip()
        return account or None

    def project_number(self, project_id: str) -> str:
        proc = self.run(["projects", "describe", project_id, "--format=value(projectNumber)"])
        number = (proc.stdout or "").strip()
        if not number:
            raise GcloudError(["projects", "describe", project_id], 0, "empty projectNumber")
        return number

    # -- Provisioning ----------------------------------------------------------

    def enable_services(self, project_id: str, services: Sequence[str]) -> None:
        self.run(["services", "enable", *services, "--project", project_id])

    def add_iam_binding(self, project_id: str, binding: IamBinding) -> None:
        self.run(
            [
                "projects",
                "add-iam-policy-binding",
                project_id,
                f"--member={binding.member}",
                f"--role={binding.role}",
                "--condition=None",
                "--quiet",
            ]
        )

    def deploy_function(
        self,
        *,
        region: str,
        service_account: str,
        source: Path,
        env_file: Path,
        input_bucket: str,
    ) -> None:
        self.run(
            [
                "functions",
                "deploy",
                FUNCTION_NAME,
                "--gen2",
                f"--region={region}",
                f"--entry-point={FUNCTION_ENTRY_POINT}",
                f"--runtime={FUNCTION_RUNTIME}",
                f"--service-account={service_account}",
                f"--source={source}",
                f"--timeout={FUNCTION_TIMEOUT}",
                f"--env-vars-file={env_file}",
                f"--trigger-resource=gs://{input_bucket}",
                f"--trigger-event={TRIGGER_EVENT}",
                "--allow-unauthenticated",
                "--quiet",
            ]
        )


def runtime_service_account(project_id: str) -> str:
    return f"{project_id}@appspot.gserviceaccount.com"


def compute_service_account(project_number: str) -> str:
    return f"{project_number}-compute@developer.gserviceaccount.com"
