from __future__ import annotations

import logging

from docai_provisioner.config import LOG_LEVEL
from docai_provisioner.logging_config import setup_logging
from docai_provisioner.orchestrator import ProvisioningRunner


def run() -> int:
    setup_logging(level=LOG_LEVEL)
    logger = logging.getLogger("docai_provisioner")
    logger.info("Document AI Challenge Lab - quick setup")

    try:
        report = ProvisioningRunner().run()
    except KeyboardInterrupt:
        logger.error("Interrupted by operator")
        return 130
    return report.exit_code


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
