"""
Port (interface) for attaching permission statements to identities and keys.
Infrastructure adapters (e.g. IamKmsPolicyAttachment) must implement this interface.
All writes are additive: an adapter merges into what is already attached and
never removes or narrows an existing statement.
"""

from abc import ABC, abstractmethod

from rsa_key_secret.domain.entities.policy import Policy, PolicyStatement
from rsa_key_secret.domain.entities.secret import KeyRef


class IPolicyAttachment(ABC):
    @abstractmethod
    def identity_exists(self, principal: str) -> bool:
        """True once the identity is created and stable enough to be referenced."""
        ...

    @abstractmethod
    def attach_identity_policy(self, principal: str, policy: Policy) -> None:
        """Attach *policy* to *principal* as its own named policy object."""
        ...

    @abstractmethod
    def add_to_identity_policy(self, principal: str, statement: PolicyStatement) -> None:
        """Append *statement* to the principal's default policy."""
        ...

    @abstractmethod
    def add_to_key_policy(self, key: KeyRef, statement: PolicyStatement) -> None:
        """Append *statement* to the key's own resource policy.

        Raises:
            PolicyConflict: if the key policy already contradicts *statement*.
        """
        ...
