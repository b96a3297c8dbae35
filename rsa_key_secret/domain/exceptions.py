"""
Domain exceptions for private key provisioning.
Zero external dependencies. Adapters translate SDK errors into these where the
caller needs context (which secret, which step); everything else propagates.
"""

from typing import Optional


class KeyProvisioningError(Exception):
    """Base class for every error raised by this package."""


class InvalidSpec(KeyProvisioningError, ValueError):
    """Rejected locally before anything is sent to an external service."""


class ConfigurationError(KeyProvisioningError):
    """A required setting is missing or malformed."""


class ProvisioningFailed(KeyProvisioningError):
    """The provisioning backend reported a failure (or could not be reached)."""

    def __init__(self, secret_name: str, step: str, reason: Optional[str] = None) -> None:
        self.secret_name = secret_name
        self.step = step
        self.reason = reason
        message = f"Provisioning of secret {secret_name!r} failed during {step}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class PolicyConflict(KeyProvisioningError):
    """A statement contradicts one already present on the target policy."""


class DependencyUnresolved(KeyProvisioningError):
    """A prerequisite operation never reached a stable state, or the graph has a cycle."""


class ProvisioningInProgress(KeyProvisioningError):
    """Another create/replacement for the same secret name is already in flight."""


class SecretNotReady(KeyProvisioningError):
    """The operation needs a provisioned secret and there is none (yet)."""
