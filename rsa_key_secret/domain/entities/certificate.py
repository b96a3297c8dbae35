"""
Domain entities for the hand-off to the certificate-signing-request component.
Zero external dependencies. Pure Python dataclasses only.
"""

from dataclasses import dataclass
from typing import Optional

from rsa_key_secret.domain.entities.secret import KeyRef


@dataclass(frozen=True)
class DistinguishedName:
    common_name: str
    country: Optional[str] = None
    state_or_province: Optional[str] = None
    locality: Optional[str] = None
    organization_name: Optional[str] = None
    organizational_unit_name: Optional[str] = None
    email_address: Optional[str] = None


@dataclass(frozen=True)
class KeyHandle:
    """Everything the CSR component needs to locate and decrypt the private key."""

    secret_arn: str
    encryption_key: Optional[KeyRef] = None


@dataclass(frozen=True)
class CertificateRequestHandoff:
    key_handle: KeyHandle
    distinguished_name: DistinguishedName
    key_usage: str
    extended_key_usage: Optional[str] = None


@dataclass(frozen=True)
class CertificateRequestHandle:
    request_id: str
    key_handle: KeyHandle
