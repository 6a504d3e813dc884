"""Fixed-delay retry loop around the function deployment.

Newly enabled APIs and freshly created service accounts take a while to
become usable, so the first few deploys commonly fail. The loop is
``Attempting(1) .. Attempting(max)`` ending in ``Succeeded`` or
``Exhausted``; the delay between attempts is constant.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from docai_provisioner.config import DEPLOY_BACKOFF_SECONDS, DEPLOY_MAX_ATTEMPTS
from docai_provisioner.errors import GcloudError
from docai_provisioner.types import DeploymentAttempt

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
EXHAUSTED = "exhausted"


@dataclass
class DeploymentOutcome:
    state: str  # succeeded|exhausted
    attempts: int
    delays: list[float] = field(default_factory=list)
    last_error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == SUCCEEDED


class DeploymentRetrier:
    def __init__(
        self,
        deploy_fn: Callable[[], None],
        *,
        max_attempts: int = DEPLOY_MAX_ATTEMPTS,
        backoff_seconds: float = DEPLOY_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")
        self._deploy = deploy_fn
        self._max = max_attempts
        self._backoff = backoff_seconds
        self._sleep = sleep

    def run(self) -> DeploymentOutcome:
        delays: list[float] = []
        last_err: str | None = None
        for n in range(1, self._max + 1):
            attempt = DeploymentAttempt(attempt=n, max_attempts=self._max, backoff_seconds=self._backoff)
            logger.info("Attempt %d of %d...", attempt.attempt, attempt.max_attempts)
            try:
                self._deploy()
            except GcloudError as e:
                last_err = f"{type(e).__name__}: {e}"
                if attempt.is_last:
                    logger.error("Deploy failed (attempt %d/%d): %s", n, self._max, last_err)
                    break
                logger.warning("Deploy failed (attempt %d/%d), retrying in %ss: %s", n, self._max, self._backoff, last_err)
                self._sleep(self._backoff)
                delays.append(self._backoff)
                continue

            logger.info("Cloud Function deployed successfully.")
            return DeploymentOutcome(state=SUCCEEDED, attempts=n, delays=delays)

        return DeploymentOutcome(state=EXHAUSTED, attempts=self._max, delays=delays, last_error=last_err)
