"""
Port (interface) for the certificate-signing-request component.
Infrastructure adapters (e.g. LambdaCertificateRequestIssuer) must implement this interface.
"""

from abc import ABC, abstractmethod

from rsa_key_secret.domain.entities.certificate import (
    CertificateRequestHandle,
    CertificateRequestHandoff,
)


class ICertificateRequestIssuer(ABC):
    @abstractmethod
    def execution_identity(self) -> str:
        """Return the ARN of the identity that will read the private key."""
        ...

    @abstractmethod
    def request(self, handoff: CertificateRequestHandoff) -> CertificateRequestHandle: ...
