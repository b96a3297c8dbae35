"""
Infrastructure adapter: AWS IAM inline policies + KMS key policies -> IPolicyAttachment.

Every write is read-merge-write: the current document is fetched, statements
already granted (by content, not by Sid) are skipped, and foreign statements are
written back untouched. Nothing is ever removed.
"""

import json
import logging
import os
import threading
from typing import Any, Iterable, Optional
from urllib.parse import unquote

import boto3
from botocore.exceptions import ClientError, WaiterError

from rsa_key_secret.domain.entities.policy import Policy, PolicyStatement
from rsa_key_secret.domain.entities.secret import KeyRef
from rsa_key_secret.domain.exceptions import InvalidSpec
from rsa_key_secret.domain.ports.policy_attachment_port import IPolicyAttachment

logger = logging.getLogger(__name__)

DEFAULT_POLICY_NAME = "DefaultPolicy"
KEY_POLICY_NAME = "default"
POLICY_VERSION = "2012-10-17"


def parse_identity(principal: str) -> tuple[str, str]:
    """Split an IAM role/user ARN into ("role" | "user", name).

    Raises:
        InvalidSpec: for anything that is not an IAM role or user ARN.
    """
    parts = principal.split(":", 5)
    if len(parts) != 6 or parts[0] != "arn" or parts[2] != "iam":
        raise InvalidSpec(f"Not an IAM identity ARN: {principal!r}")
    kind, _, path_and_name = parts[5].partition("/")
    if kind not in ("role", "user") or not path_and_name:
        raise InvalidSpec(f"Only IAM roles and users can receive grants, got {principal!r}")
    return kind, path_and_name.rsplit("/", 1)[-1]


def _load_document(raw: Any) -> dict:
    if not raw:
        return {"Version": POLICY_VERSION, "Statement": []}
    if isinstance(raw, str):
        # IAM returns URL-encoded JSON when not decoded by the SDK
        raw = json.loads(unquote(raw) if raw.lstrip().startswith("%") else raw)
    statements = raw.get("Statement") or []
    if isinstance(statements, dict):
        statements = [statements]
    return {"Version": raw.get("Version", POLICY_VERSION), "Statement": list(statements)}


def merge_statements(name: str, document: dict, statements: Iterable[PolicyStatement]) -> Optional[dict]:
    """Return the merged document, or None when nothing new was granted."""
    policy = Policy.from_json(name, document)
    merged = list(document["Statement"])
    for statement in statements:
        if policy.add(statement):
            merged.append(statement.to_json())
    if len(merged) == len(document["Statement"]):
        return None
    return {"Version": document["Version"], "Statement": merged}


class IamKmsPolicyAttachment(IPolicyAttachment):
    """Attaches statements with the IAM and KMS APIs."""

    def __init__(
        self,
        region: Optional[str] = None,
        iam_client: Any = None,
        kms_client: Any = None,
        default_policy_name: str = DEFAULT_POLICY_NAME,
        wait_attempts: int = 20,
    ) -> None:
        region = region or os.environ.get("AWS_DEFAULT_REGION", "us-east-1")
        self._iam = iam_client or boto3.client("iam")
        self._kms = kms_client or boto3.client("kms", region_name=region)
        self._default_policy_name = default_policy_name
        self._wait_attempts = wait_attempts
        self._lock = threading.Lock()

    def identity_exists(self, principal: str) -> bool:
        kind, name = parse_identity(principal)
        waiter = self._iam.get_waiter(f"{kind}_exists")
        params = {"RoleName": name} if kind == "role" else {"UserName": name}
        try:
            waiter.wait(WaiterConfig={"Delay": 1, "MaxAttempts": self._wait_attempts}, **params)
        except WaiterError as exc:
            logger.warning("IAM %s %s did not become available: %s", kind, name, exc)
            return False
        return True

    def attach_identity_policy(self, principal: str, policy: Policy) -> None:
        self._merge_inline(principal, policy.name, policy.statements)

    def add_to_identity_policy(self, principal: str, statement: PolicyStatement) -> None:
        self._merge_inline(principal, self._default_policy_name, [statement])

    def add_to_key_policy(self, key: KeyRef, statement: PolicyStatement) -> None:
        with self._lock:
            current = self._kms.get_key_policy(KeyId=key.key_arn, PolicyName=KEY_POLICY_NAME)
            merged = merge_statements(KEY_POLICY_NAME, _load_document(current.get("Policy")), [statement])
            if merged is None:
                logger.debug("Key policy of %s already grants %s", key.key_arn, sorted(statement.actions))
                return
            self._kms.put_key_policy(
                KeyId=key.key_arn,
                PolicyName=KEY_POLICY_NAME,
                Policy=json.dumps(merged),
            )
            logger.debug("Updated key policy of %s", key.key_arn)

    def _merge_inline(self, principal: str, policy_name: str, statements: Iterable[PolicyStatement]) -> None:
        kind, name = parse_identity(principal)
        identity = {"RoleName": name} if kind == "role" else {"UserName": name}
        get_policy = self._iam.get_role_policy if kind == "role" else self._iam.get_user_policy
        put_policy = self._iam.put_role_policy if kind == "role" else self._iam.put_user_policy

        with self._lock:
            try:
                raw = get_policy(PolicyName=policy_name, **identity)["PolicyDocument"]
            except ClientError as exc:
                if exc.response.get("Error", {}).get("Code") != "NoSuchEntity":
                    raise
                raw = None
            merged = merge_statements(policy_name, _load_document(raw), statements)
            if merged is None:
                logger.debug("%s already holds the statements in %s", principal, policy_name)
                return
            put_policy(PolicyName=policy_name, PolicyDocument=json.dumps(merged), **identity)
            logger.debug("Updated inline policy %s of %s", policy_name, principal)
