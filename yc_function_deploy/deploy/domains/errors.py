"""Exceptions raised while packaging and deploying a function."""


class DeployError(Exception):
    """Base class for deployment failures."""
    pass


class InputValidationError(DeployError):
    """An input value has an unsupported format."""
    pass


class ArchiveTooLargeError(DeployError):
    """The archive exceeds the inline upload limit and no bucket is set."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Zip file is too big: {size} bytes. Provide bucket name.")
        self.size = size
        self.limit = limit


class SecretResolutionError(DeployError):
    """One or more 'latest' Lockbox secret versions could not be resolved."""

    def __init__(self, messages):
        self.messages = list(messages)
        super().__init__(
            f"Failed to resolve latest versions for secrets: {', '.join(self.messages)}"
        )


class ServiceAccountNotFoundError(DeployError):
    """Service account lookup by name returned nothing."""
    pass


class AuthenticationError(DeployError):
    """No usable credentials, or the token exchange failed."""
    pass


class ConfigError(DeployError):
    """Configuration error exception."""
    pass
