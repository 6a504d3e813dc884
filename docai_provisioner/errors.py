from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for failures that abort a provisioning run."""

    exit_code = 1


class ConfigurationError(ProvisioningError):
    """No usable project or operator input; the operator must fix external state."""

    exit_code = 1


class GcloudError(ProvisioningError):
    """A ``gcloud`` invocation exited non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        cmd = " ".join(self.args_list[:3])
        tail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(f"{cmd} failed with exit code {returncode}: {tail}")


class DeploymentExhaustedError(ProvisioningError):
    """Every function deployment attempt failed."""

    exit_code = 2

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            f"Deployment failed after {attempts} attempts. "
            "Check permissions and logs and re-run when ready."
        )
