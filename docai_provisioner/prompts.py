from __future__ import annotations

from collections.abc import Callable

from docai_provisioner.config import DEFAULT_PARSER_LOCATION, RunConfig
from docai_provisioner.errors import ConfigurationError

InputFn = Callable[[str], str]

_MAX_ASKS = 3


def _ask(input_fn: InputFn, prompt: str, *, default: str | None = None) -> str:
    for _ in range(_MAX_ASKS):
        try:
            answer = input_fn(prompt).strip()
        except EOFError as e:
            if default is not None:
                return default
            raise ConfigurationError(f"No answer for: {prompt.strip()}") from e
        if answer:
            return answer
        if default is not None:
            return default
    raise ConfigurationError(f"No answer for: {prompt.strip()}")


def collect_inputs(project_id: str, input_fn: InputFn = input) -> RunConfig:
    """Ask the operator for region, processor display name and parser location."""
    region = _ask(input_fn, "Enter the GCP REGION (example: us-central1): ")
    display_name = _ask(
        input_fn,
        "Enter a DISPLAY NAME for the Document AI Processor (example: my-form-processor): ",
    )
    location = _ask(
        input_fn,
        f"Enter the PARSER LOCATION for Document AI (default: {DEFAULT_PARSER_LOCATION}): ",
        default=DEFAULT_PARSER_LOCATION,
    )
    cfg = RunConfig(
        project_id=project_id,
        region=region,
        processor_display_name=display_name,
        parser_location=location,
    )
    cfg.validate()
    return cfg
