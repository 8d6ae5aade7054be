"""Parsers for deployment inputs.

Each parser turns the raw text of an input (usually a list of lines from a
multiline value) into domain values and raises InputValidationError on
anything it cannot interpret. Nothing here touches the network or the
filesystem.
"""
import json
import re
from typing import Dict, List, Optional

from .errors import InputValidationError
from .models import MountSpec, SecretReference, ServiceAccountKey

KB = 1024
MB = 1024 * KB
GB = 1024 * MB

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARN", "ERROR", "FATAL")
LOG_LEVEL_UNSPECIFIED = "LEVEL_UNSPECIFIED"

_MEMORY_RE = re.compile(r"^(\d+)\s?(mb|gb)$", re.IGNORECASE)
# <mount-point>:<bucket>[/<prefix>][:ro]
_MOUNT_RE = re.compile(r"^([^:]+):([^:/]+)(?:/([^:]*))?(?::(ro))?$")

SA_KEY_REQUIRED_FIELDS = ("id", "private_key", "service_account_id")


def _non_blank(lines: Optional[List[str]]) -> List[str]:
    return [line for line in (lines or []) if line and line.strip()]


def parse_glob_patterns(patterns: Optional[List[str]]) -> List[str]:
    """Drop empty and whitespace-only glob patterns."""
    return _non_blank(patterns)


def parse_lockbox_variables(lines: Optional[List[str]]) -> List[SecretReference]:
    """
    Parse Lockbox secret references.

    Args:
        lines: Strings in format ENV_VAR=secret-id/version-id/key

    Returns:
        SecretReference per non-blank line, in input order

    Raises:
        InputValidationError: If any part of a reference is missing
    """
    secrets = []
    for line in _non_blank(lines):
        environment_variable, _, values = line.strip().partition("=")
        parts = values.split("/")
        secret_id = parts[0] if len(parts) > 0 else ""
        version_id = parts[1] if len(parts) > 1 else ""
        key = parts[2] if len(parts) > 2 else ""
        if not environment_variable or not secret_id or not version_id or not key:
            raise InputValidationError(f"Broken reference to Lockbox Secret: {line}")
        secrets.append(SecretReference(
            environment_variable=environment_variable,
            id=secret_id,
            version_id=version_id,
            key=key,
        ))
    return secrets


def parse_environment_variables(lines: Optional[List[str]]) -> Dict[str, str]:
    """Parse KEY=value lines; only the first '=' separates key from value."""
    environment = {}
    for line in _non_blank(lines):
        key, sep, value = line.partition("=")
        if not sep or not key.strip():
            raise InputValidationError(f"Broken environment variable: {line}")
        environment[key.strip()] = value.strip()
    return environment


def parse_memory(text: str) -> int:
    """Parse '128Mb', '1 GB' and similar into bytes."""
    match = _MEMORY_RE.match(text.strip())
    if not match:
        raise InputValidationError("memory has unknown format")
    multiplier = MB if match.group(2).lower() == "mb" else GB
    return int(match.group(1)) * multiplier


def parse_log_level(text: Optional[str]) -> str:
    """Map a log level input onto the name of a Cloud Logging level."""
    if not text or not text.strip():
        return LOG_LEVEL_UNSPECIFIED
    level = text.strip().upper()
    if level not in LOG_LEVELS:
        raise InputValidationError("Log level has unknown value")
    return level


def parse_mounts(lines: Optional[List[str]]) -> List[MountSpec]:
    mounts = []
    for line in _non_blank(lines):
        line = line.strip()
        match = _MOUNT_RE.match(line)
        if not match:
            raise InputValidationError(
                f"Invalid mount syntax: '{line}'. Expected <mount-point>:<bucket>[/<prefix>][:ro]"
            )
        name, bucket, prefix, ro = match.groups()
        mounts.append(MountSpec(name=name, bucket=bucket, prefix=prefix, read_only=ro == "ro"))
    return mounts


def parse_service_account_key(text: str) -> ServiceAccountKey:
    """
    Parse and validate a service account authorized key JSON.

    Args:
        text: Raw JSON as issued by `yc iam key create`

    Returns:
        ServiceAccountKey with the fields the SDK needs

    Raises:
        InputValidationError: If JSON is invalid or required fields are missing
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputValidationError(f"Service Account key is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise InputValidationError("Service Account key must be a JSON object")

    missing = [name for name in SA_KEY_REQUIRED_FIELDS if name not in data]
    if missing:
        raise InputValidationError(
            "Service Account key provided in \"yc-sa-json-credentials\" is missing "
            f"required fields: {', '.join(missing)}"
        )

    return ServiceAccountKey(
        id=data["id"],
        service_account_id=data["service_account_id"],
        private_key=data["private_key"],
    )
