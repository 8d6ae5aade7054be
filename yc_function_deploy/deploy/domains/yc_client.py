"""Yandex Cloud API client wrapper."""
import logging
from typing import Dict, List, Optional, Tuple

import yandexcloud
from google.protobuf.duration_pb2 import Duration
from yandex.cloud.iam.v1.service_account_service_pb2 import ListServiceAccountsRequest
from yandex.cloud.iam.v1.service_account_service_pb2_grpc import ServiceAccountServiceStub
from yandex.cloud.lockbox.v1.secret_service_pb2 import GetSecretRequest, ListSecretsRequest
from yandex.cloud.lockbox.v1.secret_service_pb2_grpc import SecretServiceStub
from yandex.cloud.logging.v1.log_entry_pb2 import LogLevel
from yandex.cloud.serverless.functions.v1 import function_pb2
from yandex.cloud.serverless.functions.v1.function_service_pb2 import (
    CreateFunctionMetadata,
    CreateFunctionRequest,
    CreateFunctionVersionMetadata,
    CreateFunctionVersionRequest,
    ListFunctionsRequest,
)
from yandex.cloud.serverless.functions.v1.function_service_pb2_grpc import FunctionServiceStub

from .models import (
    AsyncInvocationSettings,
    LockboxSecretInfo,
    MountSpec,
    SecretReference,
    ServiceAccountKey,
    YmqTarget,
)

logger = logging.getLogger(__name__)


class YandexCloudClient:
    """Wrapper around the yandexcloud SDK for the services a deployment uses."""

    def __init__(self, sdk: yandexcloud.SDK):
        self.sdk = sdk
        self._secrets = None
        self._functions = None
        self._service_accounts = None

    @classmethod
    def from_credentials(
        cls,
        iam_token: Optional[str] = None,
        service_account_key: Optional[ServiceAccountKey] = None,
    ) -> "YandexCloudClient":
        """Create a client authenticated with an IAM token or an authorized key."""
        if service_account_key is not None:
            return cls(yandexcloud.SDK(service_account_key=service_account_key.as_sdk_key()))
        return cls(yandexcloud.SDK(iam_token=iam_token))

    @property
    def secrets(self) -> SecretServiceStub:
        """Lazy-initialize Lockbox secret service stub."""
        if self._secrets is None:
            self._secrets = self.sdk.client(SecretServiceStub)
        return self._secrets

    @property
    def functions(self) -> FunctionServiceStub:
        """Lazy-initialize Serverless Functions service stub."""
        if self._functions is None:
            self._functions = self.sdk.client(FunctionServiceStub)
        return self._functions

    @property
    def service_accounts(self) -> ServiceAccountServiceStub:
        """Lazy-initialize IAM service account stub."""
        if self._service_accounts is None:
            self._service_accounts = self.sdk.client(ServiceAccountServiceStub)
        return self._service_accounts

    # Lockbox

    @staticmethod
    def _secret_info(secret) -> LockboxSecretInfo:
        current_version_id = secret.current_version.id if secret.HasField("current_version") else None
        return LockboxSecretInfo(id=secret.id, name=secret.name, current_version_id=current_version_id or None)

    def get_secret(self, secret_id: str) -> LockboxSecretInfo:
        """
        Fetch Lockbox secret metadata by ID.

        Raises:
            grpc.RpcError: If the secret does not exist or is not accessible
        """
        return self._secret_info(self.secrets.Get(GetSecretRequest(secret_id=secret_id)))

    def list_secrets(
        self, folder_id: str, page_size: int = 100, page_token: str = ""
    ) -> Tuple[List[LockboxSecretInfo], str]:
        """Fetch one page of folder secrets and the token of the next page."""
        response = self.secrets.List(ListSecretsRequest(
            folder_id=folder_id,
            page_size=page_size,
            page_token=page_token,
        ))
        return [self._secret_info(s) for s in response.secrets], response.next_page_token

    # IAM

    def find_service_account_id(self, folder_id: str, name: str) -> Optional[str]:
        response = self.service_accounts.List(ListServiceAccountsRequest(
            folder_id=folder_id,
            filter=f'name = "{name}"',
        ))
        if not response.service_accounts:
            return None
        return response.service_accounts[0].id

    # Serverless Functions

    def find_function_id(self, folder_id: str, name: str) -> Optional[str]:
        response = self.functions.List(ListFunctionsRequest(
            folder_id=folder_id,
            filter=f"name = '{name}'",
        ))
        if not response.functions:
            return None
        return response.functions[0].id

    def create_function(self, folder_id: str, name: str, description: str) -> str:
        """Create a function and wait for the operation; returns its ID."""
        logger.debug(f"Creating function {name} in folder {folder_id}")
        result = self.sdk.create_operation_and_get_result(
            CreateFunctionRequest(folder_id=folder_id, name=name, description=description),
            service=FunctionServiceStub,
            method_name="Create",
            response_type=function_pb2.Function,
            meta_type=CreateFunctionMetadata,
        )
        return result.meta.function_id

    def create_function_version(
        self,
        function_id: str,
        runtime: str,
        entrypoint: str,
        memory: int,
        execution_timeout: int,
        service_account_id: Optional[str] = None,
        description: str = "",
        environment: Optional[Dict[str, str]] = None,
        secrets: Optional[List[SecretReference]] = None,
        tags: Optional[List[str]] = None,
        network_id: str = "",
        logs_disabled: bool = False,
        logs_group_id: str = "",
        log_level: str = "LEVEL_UNSPECIFIED",
        mounts: Optional[List[MountSpec]] = None,
        async_invocation: Optional[AsyncInvocationSettings] = None,
        content: Optional[bytes] = None,
        package: Optional[Tuple[str, str, str]] = None,
    ) -> str:
        """
        Create a function version and wait for the operation.

        Args:
            content: Zip archive sent inline
            package: (bucket, object name, sha256) of an uploaded archive

        Returns:
            ID of the created version
        """
        request = CreateFunctionVersionRequest(
            function_id=function_id,
            runtime=runtime,
            entrypoint=entrypoint,
            resources=function_pb2.Resources(memory=memory),
            execution_timeout=Duration(seconds=execution_timeout),
            service_account_id=service_account_id or "",
            description=description,
            environment=environment or {},
            secrets=[
                function_pb2.Secret(
                    id=s.id,
                    version_id=s.version_id,
                    key=s.key,
                    environment_variable=s.environment_variable,
                )
                for s in secrets or []
            ],
            tag=tags or [],
            connectivity=function_pb2.Connectivity(network_id=network_id),
            log_options=self._log_options(logs_disabled, logs_group_id, log_level),
            mounts=[self._mount(m) for m in mounts or []],
        )
        if async_invocation is not None:
            request.async_invocation_config.CopyFrom(self._async_config(async_invocation))
        if package is not None:
            bucket, object_name, sha256 = package
            request.package.CopyFrom(function_pb2.Package(
                bucket_name=bucket,
                object_name=object_name,
                sha256=sha256,
            ))
        else:
            request.content = content or b""

        logger.debug(f"Creating version of function {function_id}")
        result = self.sdk.create_operation_and_get_result(
            request,
            service=FunctionServiceStub,
            method_name="CreateVersion",
            response_type=function_pb2.Version,
            meta_type=CreateFunctionVersionMetadata,
        )
        return result.meta.function_version_id

    @staticmethod
    def _log_options(disabled: bool, log_group_id: str, level: str) -> function_pb2.LogOptions:
        options = function_pb2.LogOptions(disabled=disabled, min_level=LogLevel.Level.Value(level))
        # log_group_id is part of a oneof; leave it unset to use the default group
        if log_group_id:
            options.log_group_id = log_group_id
        return options

    @staticmethod
    def _mount(mount: MountSpec) -> function_pb2.Mount:
        mode = function_pb2.Mount.READ_ONLY if mount.read_only else function_pb2.Mount.READ_WRITE
        return function_pb2.Mount(
            name=mount.name,
            mode=mode,
            object_storage=function_pb2.Mount.ObjectStorage(
                bucket_id=mount.bucket,
                prefix=mount.prefix or "",
            ),
        )

    @staticmethod
    def _target(target: Optional[YmqTarget]) -> function_pb2.AsyncInvocationConfig.ResponseTarget:
        response_target = function_pb2.AsyncInvocationConfig.ResponseTarget
        if target is None:
            return response_target(empty_target=function_pb2.EmptyTarget())
        return response_target(ymq_target=function_pb2.YMQTarget(
            queue_arn=target.queue_arn,
            service_account_id=target.service_account_id or "",
        ))

    def _async_config(self, settings: AsyncInvocationSettings) -> function_pb2.AsyncInvocationConfig:
        return function_pb2.AsyncInvocationConfig(
            retries_count=settings.retries_count,
            service_account_id=settings.service_account_id or "",
            success_target=self._target(settings.success_target),
            failure_target=self._target(settings.failure_target),
        )
