"""Workflow for packaging sources and creating a function version."""
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..domains import github
from ..domains.archive import EntryObserver, build_archive, ensure_inline_size, resolve_source_root
from ..domains.errors import AuthenticationError
from ..domains.models import AsyncInvocationSettings, DeployInputs, DeployResult, MountSpec, SecretReference
from ..domains.parsing import parse_environment_variables, parse_lockbox_variables, parse_mounts
from ..domains.service_accounts import create_async_invocation_config, resolve_service_account_id, validate_async
from ..domains.storage import package_object_name, sha256_hex, upload_package
from .secret_resolution import resolve_latest_lockbox_versions

logger = logging.getLogger(__name__)


@dataclass
class ParsedInputs:
    """Multiline inputs parsed up front, before any file or network access."""
    environment: Dict[str, str]
    secrets: List[SecretReference]
    mounts: List[MountSpec]


def parse_inputs(inputs: DeployInputs) -> ParsedInputs:
    """
    Parse and validate every free-form input.

    Raises:
        InputValidationError: On the first malformed value
    """
    validate_async(inputs)
    return ParsedInputs(
        environment=parse_environment_variables(inputs.environment),
        secrets=parse_lockbox_variables(inputs.secrets),
        mounts=parse_mounts(inputs.mounts),
    )


def package_sources(inputs: DeployInputs, on_entry: Optional[EntryObserver] = None) -> bytes:
    """Zip the function sources selected by include/exclude globs."""
    github.start_group("ZipDirectory")
    try:
        root = resolve_source_root(inputs.source_root)
        contents = build_archive(root, inputs.include, inputs.exclude, on_entry=on_entry)
        logger.info(f"Buffer size: {len(contents)}b")
        return contents
    finally:
        github.end_group()


def get_or_create_function_id(client, inputs: DeployInputs) -> str:
    """Find the function by name in the folder, creating it if absent."""
    github.start_group("Find function id")
    try:
        function_id = client.find_function_id(inputs.folder_id, inputs.function_name)
        if function_id:
            logger.info(
                f"There is the function named '{inputs.function_name}' in the folder already. "
                f"Its id is '{function_id}'"
            )
        else:
            repository = os.getenv("GITHUB_REPOSITORY", "")
            function_id = client.create_function(
                inputs.folder_id, inputs.function_name, f"Created from {repository}"
            )
            logger.info(
                f"There was no function named '{inputs.function_name}' in the folder. "
                f"So it was created. Id is '{function_id}'"
            )
        github.set_output("function-id", function_id)
        return function_id
    finally:
        github.end_group()


def create_function_version(
    client,
    function_id: str,
    contents: bytes,
    bucket_object_name: str,
    inputs: DeployInputs,
    parsed: ParsedInputs,
) -> str:
    """
    Create a new function version from the packaged sources.

    The archive is referenced from the bucket when one is configured and
    sent inline otherwise.

    Raises:
        ArchiveTooLargeError: If an inline archive exceeds the limit
        SecretResolutionError: If 'latest' secrets cannot be pinned
        ServiceAccountNotFoundError: If a service account name is unknown
    """
    github.start_group("Create function version")
    try:
        logger.info(f"Function '{inputs.function_name}' {function_id}")
        logger.info(f'Parsed memory: "{inputs.memory}"')
        logger.info(f'Parsed timeout: "{inputs.execution_timeout}"')

        service_account_id = resolve_service_account_id(
            client, inputs.folder_id, inputs.service_account, inputs.service_account_name
        )
        secrets = resolve_latest_lockbox_versions(client, inputs.folder_id, parsed.secrets)
        async_config: Optional[AsyncInvocationSettings] = create_async_invocation_config(client, inputs)

        package = None
        content = None
        if inputs.bucket:
            logger.info(f'From bucket: "{inputs.bucket}"')
            package = (inputs.bucket, bucket_object_name, sha256_hex(contents))
        else:
            ensure_inline_size(contents)
            content = contents

        version_id = client.create_function_version(
            function_id=function_id,
            runtime=inputs.runtime,
            entrypoint=inputs.entrypoint,
            memory=inputs.memory,
            execution_timeout=inputs.execution_timeout,
            service_account_id=service_account_id,
            description=inputs.description,
            environment=parsed.environment,
            secrets=secrets,
            tags=inputs.tags,
            network_id=inputs.network_id,
            logs_disabled=inputs.logs_disabled,
            logs_group_id=inputs.logs_group_id,
            log_level=inputs.log_level,
            mounts=parsed.mounts,
            async_invocation=async_config,
            content=content,
            package=package,
        )
        logger.info(f"Function version created: {version_id}")
        github.set_output("version-id", version_id)
        return version_id
    finally:
        github.end_group()


def deploy(client, inputs: DeployInputs, credentials=None, on_entry: Optional[EntryObserver] = None) -> DeployResult:
    """
    Run a full deployment and write the job summary, successful or not.

    Args:
        client: YandexCloudClient (or an object with the same methods)
        inputs: Deployment settings
        credentials: Credentials used to upload to the bucket; required with a bucket
        on_entry: Observer of archive entries

    Returns:
        DeployResult of the successful run

    Raises:
        DeployError: Or any API/filesystem error; the summary records it
    """
    result = DeployResult(function_name=inputs.function_name, folder_id=inputs.folder_id, bucket=inputs.bucket)
    try:
        parsed = parse_inputs(inputs)
        if inputs.bucket and credentials is None:
            raise AuthenticationError("Bucket upload requires credentials")
        logger.info("Function inputs set")
        contents = package_sources(inputs, on_entry=on_entry)
        result.function_id = get_or_create_function_id(client, inputs)
        if inputs.bucket:
            result.bucket_object_name = package_object_name(result.function_id)
            upload_package(inputs.bucket, result.bucket_object_name, contents, credentials.iam_token_for_storage())
        result.version_id = create_function_version(
            client, result.function_id, contents, result.bucket_object_name, inputs, parsed
        )
        github.set_output("time", time.strftime("%H:%M:%S %Z"))
        return result
    except Exception as e:
        result.error_message = str(e)
        raise
    finally:
        github.write_summary(result)
