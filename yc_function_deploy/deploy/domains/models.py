"""Domain models for function packaging and deployment."""
from dataclasses import dataclass, field, replace
from typing import List, Optional, Union

LATEST_VERSION = "latest"


@dataclass(frozen=True)
class ArchiveEntry:
    """A file scheduled for the archive and the name it gets inside it."""
    source_path: str
    name: str


@dataclass(frozen=True)
class SecretReference:
    """Lockbox secret bound to an environment variable of the function."""
    environment_variable: str
    id: str
    version_id: str
    key: str

    @property
    def is_latest(self) -> bool:
        return self.version_id == LATEST_VERSION

    def pinned(self, version_id: str, secret_id: Optional[str] = None) -> "SecretReference":
        """Return a copy pinned to a concrete version (and optionally a real secret ID)."""
        return replace(self, version_id=version_id, id=secret_id or self.id)


@dataclass(frozen=True)
class LockboxSecretInfo:
    """The part of Lockbox secret metadata needed to pin a version."""
    id: str
    name: str
    current_version_id: Optional[str] = None


# Outcome of resolving a single 'latest' reference.

@dataclass(frozen=True)
class Resolved:
    secret: SecretReference


@dataclass(frozen=True)
class Fallback:
    original: SecretReference


@dataclass(frozen=True)
class Failed:
    message: str


ResolutionResult = Union[Resolved, Fallback, Failed]


@dataclass(frozen=True)
class MountSpec:
    """Object Storage bucket mounted into the function filesystem."""
    name: str
    bucket: str
    prefix: Optional[str] = None
    read_only: bool = False


@dataclass(frozen=True)
class YmqTarget:
    queue_arn: str
    service_account_id: Optional[str] = None


@dataclass
class AsyncInvocationSettings:
    """Async invocation config; a None target is sent as an empty target."""
    retries_count: int
    service_account_id: Optional[str] = None
    success_target: Optional[YmqTarget] = None
    failure_target: Optional[YmqTarget] = None


@dataclass
class ServiceAccountKey:
    """Authorized key of a service account, as issued by IAM."""
    id: str
    service_account_id: str
    private_key: str

    def as_sdk_key(self) -> dict:
        return {
            "id": self.id,
            "service_account_id": self.service_account_id,
            "private_key": self.private_key,
        }


@dataclass
class DeployInputs:
    """All settings of a single deployment run."""
    folder_id: str
    function_name: str
    runtime: str
    entrypoint: str
    memory: int = 128 * 1024 * 1024
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    source_root: str = "."
    execution_timeout: int = 5
    environment: List[str] = field(default_factory=list)
    service_account: str = ""
    service_account_name: str = ""
    bucket: str = ""
    description: str = ""
    secrets: List[str] = field(default_factory=list)
    network_id: str = ""
    tags: List[str] = field(default_factory=list)
    logs_disabled: bool = False
    logs_group_id: str = ""
    log_level: str = "LEVEL_UNSPECIFIED"
    mounts: List[str] = field(default_factory=list)
    async_invocation: bool = False
    async_sa_id: str = ""
    async_sa_name: str = ""
    async_retries_count: int = 3
    async_success_ymq_arn: str = ""
    async_success_sa_id: str = ""
    async_success_sa_name: str = ""
    async_failure_ymq_arn: str = ""
    async_failure_sa_id: str = ""
    async_failure_sa_name: str = ""


@dataclass
class DeployResult:
    """What a deployment run produced, whether or not it succeeded."""
    function_name: Optional[str] = None
    folder_id: Optional[str] = None
    function_id: str = ""
    version_id: str = ""
    bucket: str = ""
    bucket_object_name: str = ""
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return not self.error_message
