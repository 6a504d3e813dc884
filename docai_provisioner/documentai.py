"""Document AI processor creation over the REST API.

The create call's body is treated as semi-trusted: the processor resource
name is pulled out with a JSON parse plus two optional field paths, and an
unrecognised body never raises. The caller decides how to degrade.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

import google.auth
import httpx
from google.auth.transport.requests import Request

from docai_provisioner.config import HTTP_TIMEOUT_SECONDS, PROCESSOR_TYPE

logger = logging.getLogger(__name__)

_CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
_NAME_PREFIX = "projects/"


def _default_token() -> str:
    credentials, _ = google.auth.default(scopes=[_CLOUD_PLATFORM_SCOPE])
    credentials.refresh(Request())
    token = getattr(credentials, "token", None)
    if not token:
        raise RuntimeError("Application default credentials returned an empty access token")
    return token


def api_endpoint(location: str) -> str:
    if location == "us":
        return "https://documentai.googleapis.com"
    return f"https://{location}-documentai.googleapis.com"


def processors_url(project_id: str, location: str) -> str:
    return f"{api_endpoint(location)}/v1/projects/{project_id}/locations/{location}/processors"


def _as_processor_name(value: Any) -> str | None:
    if isinstance(value, str) and value.startswith(_NAME_PREFIX):
        return value
    return None


def extract_processor_name(body: str | None) -> str | None:
    """Return ``projects/.../processors/<id>`` from a create response, or None.

    Tries the top-level ``name`` first, then the ``processors[*].name`` of a
    listing-shaped body. Error bodies and non-JSON text yield None.
    """
    if not body:
        return None
    try:
        obj = json.loads(body)
    except ValueError:
        return None
    if not isinstance(obj, dict):
        return None

    name = _as_processor_name(obj.get("name"))
    if name:
        return name

    processors = obj.get("processors")
    if isinstance(processors, list):
        for p in processors:
            if isinstance(p, dict):
                name = _as_processor_name(p.get("name"))
                if name:
                    return name
    return None


class ProcessorProvisioner:
    """Issues the create-processor request and hands back the raw body."""

    def __init__(
        self,
        *,
        token_provider: Callable[[], str] = _default_token,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._token = token_provider
        self._http = http_client

    def create(self, *, project_id: str, display_name: str, location: str) -> str:
        """POST a Form Parser processor; returns the response text regardless of status.

        Raises on credential or transport errors only.
        """
        token = self._token()
        url = processors_url(project_id, location)
        payload = {"displayName": display_name, "type": PROCESSOR_TYPE}
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

        if self._http is not None:
            resp = self._http.post(url, headers=headers, json=payload)
        else:
            with httpx.Client(timeout=float(HTTP_TIMEOUT_SECONDS)) as client:
                resp = client.post(url, headers=headers, json=payload)

        if resp.status_code >= 400:
            logger.warning("Processor create returned HTTP %d", resp.status_code)
        return resp.text
