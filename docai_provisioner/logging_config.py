"""Logging setup for the provisioner CLI.

Plain text on a terminal; structured JSON when running under Cloud Run /
Cloud Build or when DOCAI_LOG_JSON is set. Python level names already match
Cloud Logging severities, so ``levelname`` is emitted as ``severity``.
"""

from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter

from docai_provisioner.config import LOG_JSON

COMPONENT = "docai-provisioner"

_QUIET_LOGGERS = ("google.auth", "urllib3", "httpx", "httpcore")


def json_formatter() -> JsonFormatter:
    return JsonFormatter(
        fmt="%(message)s %(levelname)s %(name)s %(funcName)s",
        rename_fields={"levelname": "severity", "name": "logger"},
        static_fields={"component": COMPONENT},
    )


def text_formatter() -> logging.Formatter:
    return logging.Formatter("%(asctime)s %(levelname)-8s %(name)s  %(message)s", datefmt="%H:%M:%S")


def setup_logging(*, level: str = "INFO", json_output: bool | None = None) -> None:
    use_json = LOG_JSON if json_output is None else json_output

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(json_formatter() if use_json else text_formatter())
    root.addHandler(handler)

    # chatty at DEBUG
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))
