"""
Application service: builds the condition-scoped permission statements.

Business decisions owned here:
  - Which Secrets Manager / KMS actions each party gets.
  - The dual condition on every KMS grant: the call must come through Secrets
    Manager in this region (kms:ViaService) AND carry this secret's ARN in its
    encryption context. A broad Decrypt on the key policy is therefore inert
    for anything but Secrets Manager's envelope encryption of this one secret.

Pure data construction: no I/O, no retries.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Optional, Union

from rsa_key_secret.domain.entities.arn import ArnPattern
from rsa_key_secret.domain.entities.policy import ALL_RESOURCES, PolicyStatement
from rsa_key_secret.domain.exceptions import InvalidSpec

SECRET_LIFECYCLE_ACTIONS = (
    "secretsmanager:CreateSecret",
    "secretsmanager:DeleteSecret",
    "secretsmanager:UpdateSecret",
)
KEY_USE_ACTIONS = ("kms:Decrypt", "kms:GenerateDataKey")
SECRET_READ_ACTION = "secretsmanager:GetSecretValue"
KEY_READ_ACTION = "kms:Decrypt"

VIA_SERVICE_KEY = "kms:ViaService"
SECRET_ARN_CONTEXT_KEY = "kms:EncryptionContext:SecretARN"
DEFAULT_VALIDATION_SENTINEL = "RequestToValidateKeyAccess"


@dataclass(frozen=True)
class ReadGrant:
    """The statements that let one principal read the secret value.

    The key statements are None when the secret uses the store's default key.
    """

    secret_statement: PolicyStatement
    key_resource_statement: Optional[PolicyStatement] = None
    key_principal_statement: Optional[PolicyStatement] = None


def _require(**values: object) -> None:
    for name, value in values.items():
        if not value or not str(value).strip():
            raise InvalidSpec(f"{name} must be a non-empty string")


def via_secrets_manager(region: str) -> str:
    return f"secretsmanager.{region}.amazonaws.com"


def key_grant_sid(secret_name: str, key_arn: str) -> str:
    """Sid of the identity-side key grant, one per (secret, key) pair.

    Sids only allow alphanumerics.
    """
    name = re.sub(r"[^0-9A-Za-z]", "", secret_name)
    digest = hashlib.sha256(key_arn.encode("utf-8")).hexdigest()[:8]
    return f"AWSSecretsManager{name}CMK{digest}"


class PolicyComposer:
    def __init__(self, validation_sentinel: Optional[str] = DEFAULT_VALIDATION_SENTINEL) -> None:
        """
        Args:
            validation_sentinel: Extra value accepted in the identity-side
                                 SecretARN condition, so the backend can check
                                 its key access before the secret exists.
                                 None disables it.
        """
        self._validation_sentinel = validation_sentinel

    def allow_secret_lifecycle(self, principal: str, secret_pattern: ArnPattern) -> PolicyStatement:
        """Create/update/delete on the secret pattern, and nothing wider."""
        _require(principal=principal, secret_pattern=str(secret_pattern))
        if not str(secret_pattern).rsplit(":", 1)[-1].strip("*?-"):
            raise InvalidSpec(f"refusing account-wide secret pattern {secret_pattern}")
        return PolicyStatement.build(actions=SECRET_LIFECYCLE_ACTIONS, resources=[secret_pattern])

    def allow_key_use_via_store(
        self,
        principal: str,
        key_resource_selector: str,
        region: str,
        secret_pattern: Union[ArnPattern, str],
        sid: Optional[str] = None,
    ) -> PolicyStatement:
        """Decrypt / GenerateDataKey for *principal*, only through Secrets Manager.

        With ``key_resource_selector == "*"`` the statement is meant for the
        key's own resource policy: it names the principal and matches the
        secret with ArnLike. With a key ARN it is an identity-side grant: no
        principal, and the secret reference is a StringLike allow-list of the
        pattern plus the validation sentinel.
        """
        _require(
            principal=principal,
            key_resource_selector=key_resource_selector,
            region=region,
            secret_pattern=str(secret_pattern),
        )
        if key_resource_selector == ALL_RESOURCES:
            return PolicyStatement.build(
                actions=KEY_USE_ACTIONS,
                resources=[ALL_RESOURCES],
                principal=principal,
                conditions={
                    "StringEquals": {VIA_SERVICE_KEY: via_secrets_manager(region)},
                    "ArnLike": {SECRET_ARN_CONTEXT_KEY: secret_pattern},
                },
                sid=sid,
            )
        accepted = [str(secret_pattern)]
        if self._validation_sentinel:
            accepted.append(self._validation_sentinel)
        return PolicyStatement.build(
            actions=KEY_USE_ACTIONS,
            resources=[key_resource_selector],
            conditions={
                "StringEquals": {VIA_SERVICE_KEY: via_secrets_manager(region)},
                "StringLike": {SECRET_ARN_CONTEXT_KEY: accepted},
            },
            sid=sid,
        )

    def allow_read_secret_value(
        self,
        principal: str,
        secret_arn: str,
        key_arn: Optional[str],
        region: str,
    ) -> ReadGrant:
        """Statements for *principal* to read the secret value.

        The secret's real ARN is known by now, so the principal-side key grant
        narrows to an exact ArnEquals match.
        """
        _require(principal=principal, secret_arn=secret_arn, region=region)
        secret_statement = PolicyStatement.build(actions=[SECRET_READ_ACTION], resources=[secret_arn])
        if key_arn is None:
            return ReadGrant(secret_statement=secret_statement)
        _require(key_arn=key_arn)
        via = {VIA_SERVICE_KEY: via_secrets_manager(region)}
        return ReadGrant(
            secret_statement=secret_statement,
            key_resource_statement=PolicyStatement.build(
                actions=[KEY_READ_ACTION],
                resources=[ALL_RESOURCES],
                principal=principal,
                conditions={"StringEquals": via, "ArnLike": {SECRET_ARN_CONTEXT_KEY: secret_arn}},
            ),
            key_principal_statement=PolicyStatement.build(
                actions=[KEY_READ_ACTION],
                resources=[key_arn],
                conditions={"StringEquals": via, "ArnEquals": {SECRET_ARN_CONTEXT_KEY: secret_arn}},
            ),
        )
