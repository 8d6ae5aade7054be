"""Assembly of deployment settings from CLI flags, action inputs and config."""
import logging
from typing import Any, Dict, List, Optional

from . import github
from .errors import InputValidationError
from .models import DeployInputs
from .parsing import parse_log_level, parse_memory

logger = logging.getLogger(__name__)

REQUIRED_INPUTS = ("folder-id", "function-name", "runtime", "entrypoint")


def _attr(name: str) -> str:
    return name.replace("-", "_")


def _text(args, name: str, default: str = "") -> str:
    value = getattr(args, _attr(name), None)
    if value is not None:
        return value
    return github.get_input(name, default)


def _lines(args, name: str) -> List[str]:
    value = getattr(args, _attr(name), None)
    if value:
        return list(value)
    return github.get_multiline_input(name)


def _flag(args, name: str) -> bool:
    value = getattr(args, _attr(name), None)
    if value:
        return True
    return github.get_boolean_input(name)


def _integer(args, name: str, default: int) -> int:
    value = _text(args, name, str(default))
    try:
        return int(value)
    except ValueError:
        raise InputValidationError(f"{name} must be an integer, got '{value}'")


def load_deploy_inputs(args, config: Optional[Dict[str, Any]] = None) -> DeployInputs:
    """
    Collect deployment settings.

    Priority order for every setting:
    1. Command line flag
    2. Action input (INPUT_<NAME> environment variable)
    3. Config file (folder ID only)
    4. Built-in default

    Raises:
        InputValidationError: If a required input is missing or malformed
    """
    folder_default = ""
    if config and "yandex_cloud" in config:
        folder_default = config["yandex_cloud"].get("folder_id", "")

    values = {name: _text(args, name) for name in REQUIRED_INPUTS}
    if not values["folder-id"]:
        values["folder-id"] = folder_default

    missing = [name for name, value in values.items() if not value]
    if missing:
        raise InputValidationError(f"Input required and not supplied: {', '.join(missing)}")

    return DeployInputs(
        folder_id=values["folder-id"],
        function_name=values["function-name"],
        runtime=values["runtime"],
        entrypoint=values["entrypoint"],
        memory=parse_memory(_text(args, "memory", "128Mb")),
        include=_lines(args, "include"),
        exclude=_lines(args, "exclude"),
        source_root=_text(args, "source-root", "."),
        execution_timeout=_integer(args, "execution-timeout", 5),
        environment=_lines(args, "environment"),
        service_account=_text(args, "service-account"),
        service_account_name=_text(args, "service-account-name"),
        bucket=_text(args, "bucket"),
        description=_text(args, "description"),
        secrets=_lines(args, "secrets"),
        network_id=_text(args, "network-id"),
        tags=_lines(args, "tags"),
        logs_disabled=_flag(args, "logs-disabled"),
        logs_group_id=_text(args, "logs-group-id"),
        log_level=parse_log_level(_text(args, "log-level")),
        mounts=_lines(args, "mounts"),
        async_invocation=_flag(args, "async"),
        async_sa_id=_text(args, "async-sa-id"),
        async_sa_name=_text(args, "async-sa-name"),
        async_retries_count=_integer(args, "async-retries-count", 3),
        async_success_ymq_arn=_text(args, "async-success-ymq-arn"),
        async_success_sa_id=_text(args, "async-success-sa-id"),
        async_success_sa_name=_text(args, "async-success-sa-name"),
        async_failure_ymq_arn=_text(args, "async-failure-ymq-arn"),
        async_failure_sa_id=_text(args, "async-failure-sa-id"),
        async_failure_sa_name=_text(args, "async-failure-sa-name"),
    )
