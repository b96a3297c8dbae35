"""
Port (interface) for the external private key generation backend.
Infrastructure adapters (e.g. LambdaProvisioningBackend) must implement this interface.
The backend's internals (key generation, Secrets Manager calls, its own
retry/poll contract) are opaque; only the request/response contract is visible.
"""

from abc import ABC, abstractmethod

from rsa_key_secret.domain.entities.provisioning import ProvisioningRequest, ProvisioningResponse


class IProvisioningBackend(ABC):
    @abstractmethod
    def register_execution_identity(self) -> str:
        """Return the ARN of the identity the backend runs as."""
        ...

    @abstractmethod
    def resource_version(self) -> str:
        """Return a content fingerprint of the backend's own code/configuration."""
        ...

    @abstractmethod
    def submit(self, request: ProvisioningRequest) -> ProvisioningResponse:
        """Dispatch *request* and block until the backend reports success or failure.

        Reapplying an identical request (same spec, same resource_version)
        must be a no-op on the backend side.
        """
        ...
