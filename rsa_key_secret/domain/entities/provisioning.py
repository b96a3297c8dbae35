"""
Domain entities for provisioning requests and the provisioning graph.
Zero external dependencies. Pure Python dataclasses only.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

RESOURCE_TYPE_TAG = "RsaPrivateKeySecret"


class OperationKind(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


class ProvisioningStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass(frozen=True)
class ProvisioningRequest:
    """One dispatch to the generation backend.

    resource_version is the content hash of the backend's own code: it is part
    of the idempotency key, so a changed backend forces a re-application even
    when everything else is identical.
    """

    operation_kind: OperationKind
    resource_version: str
    secret_name: str
    key_size: int
    description: Optional[str] = None
    encryption_key_id: Optional[str] = None
    secret_arn: Optional[str] = None
    resource_type_tag: str = RESOURCE_TYPE_TAG


@dataclass(frozen=True)
class ProvisioningResponse:
    status: ProvisioningStatus
    secret_arn: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ProvisioningStatus.SUCCESS


@dataclass(frozen=True)
class ProvisioningOperation:
    """A node of the provisioning graph, identified by name."""

    name: str


@dataclass(frozen=True)
class DependencyEdge:
    """*dependent* must not execute until *prerequisite* has completed."""

    dependent: ProvisioningOperation
    prerequisite: ProvisioningOperation
