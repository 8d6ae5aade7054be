"""GitHub Actions runner integration: inputs, outputs, log groups, job summary."""
import logging
import os
import sys
import uuid
from typing import List

from .errors import InputValidationError
from .models import DeployResult

logger = logging.getLogger(__name__)

CONSOLE_URL = "https://console.yandex.cloud/folders/{folder_id}/functions/functions/{function_id}/overview"
SUMMARY_HEADING = "Yandex Cloud Function Deployment Summary"

_TRUE_VALUES = ("true", "True", "TRUE")
_FALSE_VALUES = ("false", "False", "FALSE")


def _input_env_name(name: str) -> str:
    return f"INPUT_{name.replace(' ', '_').upper()}"


def get_input(name: str, default: str = "") -> str:
    """Read an action input the way the runner passes it (INPUT_<NAME>)."""
    value = os.getenv(_input_env_name(name), "").strip()
    return value or default


def get_multiline_input(name: str) -> List[str]:
    value = os.getenv(_input_env_name(name), "")
    return [line.strip() for line in value.splitlines() if line.strip()]


def get_boolean_input(name: str, default: bool = False) -> bool:
    """
    Read a boolean input (YAML 1.2 core schema: true/True/TRUE, false/False/FALSE).

    Raises:
        InputValidationError: If the value is not a supported boolean
    """
    value = get_input(name)
    if not value:
        return default
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise InputValidationError(
        f"Input does not meet YAML 1.2 \"Core Schema\": {name}\n"
        "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
    )


def is_github_actions() -> bool:
    return os.getenv("GITHUB_ACTIONS") == "true"


def start_group(title: str) -> None:
    if is_github_actions():
        print(f"::group::{title}", flush=True)
    else:
        logger.info(title)


def end_group() -> None:
    if is_github_actions():
        print("::endgroup::", flush=True)


def set_output(name: str, value: str) -> None:
    """Append an output to $GITHUB_OUTPUT, if the runner provides one."""
    path = os.getenv("GITHUB_OUTPUT")
    if not path:
        logger.debug(f"output {name}={value}")
        return
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")


def report_error(message: str) -> None:
    """Print an error annotation (or a plain error outside of Actions)."""
    if is_github_actions():
        print(f"::error::{message}", flush=True)
    else:
        print(f"Error: {message}", file=sys.stderr)


def render_summary(result: DeployResult) -> str:
    """Render the job summary markdown for a deployment result."""
    items = []
    if result.function_name:
        items.append(f"Function Name: {result.function_name}")
    if result.function_id and result.folder_id:
        url = CONSOLE_URL.format(folder_id=result.folder_id, function_id=result.function_id)
        items.append(f'Function ID: <a href="{url}">{result.function_id}</a>')
    if result.version_id:
        items.append(f"Version ID: {result.version_id}")
    if result.bucket:
        items.append(f"Bucket: {result.bucket}")
    if result.bucket_object_name:
        items.append(f"Bucket Object: {result.bucket_object_name}")
    if result.error_message:
        items.append(f"❌ Error: {result.error_message}")
    else:
        items.append("✅ Success")

    lines = [f"## {SUMMARY_HEADING}", ""]
    lines.extend(f"- {item}" for item in items)
    return "\n".join(lines) + "\n"


def write_summary(result: DeployResult) -> None:
    """Append the deployment summary to $GITHUB_STEP_SUMMARY."""
    path = os.getenv("GITHUB_STEP_SUMMARY")
    if not path:
        return
    with open(path, "a", encoding="utf-8") as f:
        f.write(render_summary(result))
