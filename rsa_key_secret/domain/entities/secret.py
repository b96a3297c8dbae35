"""
Domain entities for the private key secret.
Zero external dependencies. Pure Python dataclasses only.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rsa_key_secret.domain.exceptions import InvalidSpec


class DeletionPolicy(str, Enum):
    RETAIN = "Retain"
    DELETE = "Delete"


class SecretState(str, Enum):
    """Lifecycle of one SecretSpec. READY and FAILED are terminal."""

    REQUESTED = "Requested"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    FAILED = "Failed"


@dataclass(frozen=True)
class KeyRef:
    """A KMS key managed outside this system."""

    key_id: str
    key_arn: str


@dataclass(frozen=True)
class SecretSpec:
    """What the caller asks for. Immutable once submitted.

    key_size is only checked for being a positive integer here; the set of
    modulus sizes the generation backend accepts is its own business.
    """

    secret_name: str
    key_size: int
    description: Optional[str] = None
    encryption_key: Optional[KeyRef] = None
    deletion_policy: DeletionPolicy = DeletionPolicy.RETAIN

    def validate(self) -> None:
        """Raises InvalidSpec for anything that must never reach the backend."""
        if not self.secret_name or not self.secret_name.strip():
            raise InvalidSpec("secret_name must be a non-empty string")
        if any(ch in self.secret_name for ch in "*?"):
            raise InvalidSpec(f"secret_name may not contain wildcards: {self.secret_name!r}")
        if isinstance(self.key_size, bool) or not isinstance(self.key_size, int):
            raise InvalidSpec(f"key_size must be an integer, got {self.key_size!r}")
        if self.key_size <= 0:
            raise InvalidSpec(f"key_size must be positive, got {self.key_size}")
        if self.encryption_key is not None and not self.encryption_key.key_arn:
            raise InvalidSpec("encryption_key must carry a key ARN")

    def requires_replacement(self, other: "SecretSpec") -> bool:
        """Key material is immutable: any change to what it is or where it lives replaces it."""
        return (
            self.secret_name != other.secret_name
            or self.key_size != other.key_size
            or self.encryption_key != other.encryption_key
        )


@dataclass(frozen=True)
class ProvisionedSecret:
    arn: str
    version_hash: str
