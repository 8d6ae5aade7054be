"""Service account resolution and async invocation settings."""
import logging
from typing import Optional

from .errors import InputValidationError, ServiceAccountNotFoundError
from .models import AsyncInvocationSettings, DeployInputs, YmqTarget

logger = logging.getLogger(__name__)


def resolve_service_account_id(
    client, folder_id: str, service_account_id: str, service_account_name: str
) -> Optional[str]:
    """
    Resolve a service account given by ID or by name.

    Priority order:
    1. service_account_id, returned as is
    2. service_account_name, looked up in the folder

    Returns:
        Service account ID, or None if neither ID nor name is provided

    Raises:
        ServiceAccountNotFoundError: If no account has the given name
    """
    if service_account_id:
        return service_account_id
    if not service_account_name:
        return None

    found = client.find_service_account_id(folder_id, service_account_name)
    if not found:
        raise ServiceAccountNotFoundError(f"Service account with name {service_account_name} not found")
    logger.debug(f"Resolved service account {service_account_name} to {found}")
    return found


def _validate_target(queue_arn: str, sa_id: str, sa_name: str, kind: str) -> None:
    if not queue_arn:
        return
    if not sa_id and not sa_name:
        raise InputValidationError(
            f"Either async-{kind}-sa-id or async-{kind}-sa-name must be set if async-{kind}-ymq-arn is set"
        )
    if sa_id and sa_name:
        raise InputValidationError(
            f"Either async-{kind}-sa-id or async-{kind}-sa-name must be set, but not both"
        )


def validate_async(inputs: DeployInputs) -> bool:
    """
    Validate async invocation inputs.

    A success or failure YMQ queue needs exactly one of the matching service
    account ID or name. Nothing is checked when async invocation is off.

    Raises:
        InputValidationError: If a rule is violated
    """
    if not inputs.async_invocation:
        return True
    _validate_target(inputs.async_success_ymq_arn, inputs.async_success_sa_id,
                     inputs.async_success_sa_name, "success")
    _validate_target(inputs.async_failure_ymq_arn, inputs.async_failure_sa_id,
                     inputs.async_failure_sa_name, "failure")
    return True


def _target(client, folder_id: str, queue_arn: str, sa_id: str, sa_name: str) -> Optional[YmqTarget]:
    if not queue_arn:
        return None
    return YmqTarget(
        queue_arn=queue_arn,
        service_account_id=resolve_service_account_id(client, folder_id, sa_id, sa_name),
    )


def create_async_invocation_config(client, inputs: DeployInputs) -> Optional[AsyncInvocationSettings]:
    """
    Build async invocation settings for a function version.

    The invoking service account falls back to the function service
    account when no async-specific one is configured.

    Returns:
        Settings, or None when async invocation is disabled
    """
    if not inputs.async_invocation:
        return None
    validate_async(inputs)

    folder_id = inputs.folder_id
    success = _target(client, folder_id, inputs.async_success_ymq_arn,
                      inputs.async_success_sa_id, inputs.async_success_sa_name)
    failure = _target(client, folder_id, inputs.async_failure_ymq_arn,
                      inputs.async_failure_sa_id, inputs.async_failure_sa_name)

    service_account_id = resolve_service_account_id(client, folder_id, inputs.async_sa_id, inputs.async_sa_name)
    if service_account_id is None:
        service_account_id = resolve_service_account_id(
            client, folder_id, inputs.service_account, inputs.service_account_name
        )

    return AsyncInvocationSettings(
        retries_count=inputs.async_retries_count,
        service_account_id=service_account_id,
        success_target=success,
        failure_target=failure,
    )
