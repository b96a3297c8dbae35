"""
Shared fixtures: in-memory implementations of the domain ports.
"""

from typing import Optional

import pytest

from rsa_key_secret.application.services.secret_provisioning_orchestrator import (
    SecretProvisioningOrchestrator,
)
from rsa_key_secret.domain.entities.arn import AwsEnvironment
from rsa_key_secret.domain.entities.certificate import CertificateRequestHandle, CertificateRequestHandoff
from rsa_key_secret.domain.entities.policy import Policy, PolicyStatement
from rsa_key_secret.domain.entities.provisioning import (
    OperationKind,
    ProvisioningRequest,
    ProvisioningResponse,
    ProvisioningStatus,
)
from rsa_key_secret.domain.entities.secret import KeyRef
from rsa_key_secret.domain.ports.certificate_request_port import ICertificateRequestIssuer
from rsa_key_secret.domain.ports.policy_attachment_port import IPolicyAttachment
from rsa_key_secret.domain.ports.provisioning_backend_port import IProvisioningBackend

ACCOUNT = "123456789012"
REGION = "us-east-1"
ROLE_ARN = f"arn:aws:iam::{ACCOUNT}:role/PrivateKeyHandlerRole"
CSR_ROLE_ARN = f"arn:aws:iam::{ACCOUNT}:role/CsrHandlerRole"
KEY_ARN = f"arn:aws:kms:{REGION}:{ACCOUNT}:key/1234abcd-12ab-34cd-56ef-1234567890ab"


class FakeBackend(IProvisioningBackend):
    def __init__(self) -> None:
        self.version = "v1"
        self.requests: list[ProvisioningRequest] = []
        self.fail_with: Optional[str] = None
        self.on_submit = None
        self.journal: Optional[list] = None
        self._suffixes = iter(["AbCdEf", "GhIjKl", "MnOpQr", "StUvWx"])
        self._arns: dict[str, str] = {}

    def register_execution_identity(self) -> str:
        return ROLE_ARN

    def resource_version(self) -> str:
        return self.version

    def submit(self, request: ProvisioningRequest) -> ProvisioningResponse:
        self.requests.append(request)
        if self.journal is not None:
            self.journal.append(("submit", request.operation_kind.value))
        if self.on_submit is not None:
            self.on_submit(request)
        if self.fail_with:
            return ProvisioningResponse(status=ProvisioningStatus.FAILED, error_message=self.fail_with)
        if request.operation_kind is OperationKind.DELETE:
            self._arns.pop(request.secret_name, None)
            return ProvisioningResponse(status=ProvisioningStatus.SUCCESS, secret_arn=request.secret_arn)
        if request.operation_kind is OperationKind.CREATE or request.secret_name not in self._arns:
            self._arns[request.secret_name] = (
                f"arn:aws:secretsmanager:{REGION}:{ACCOUNT}:secret:{request.secret_name}-{next(self._suffixes)}"
            )
        return ProvisioningResponse(status=ProvisioningStatus.SUCCESS, secret_arn=self._arns[request.secret_name])

    def dispatched(self, kind: OperationKind) -> list[ProvisioningRequest]:
        return [r for r in self.requests if r.operation_kind is kind]


class InMemoryPolicyAttachment(IPolicyAttachment):
    DEFAULT = "DefaultPolicy"

    def __init__(self, identities=(ROLE_ARN, CSR_ROLE_ARN)) -> None:
        self.identities = set(identities)
        self.identity_policies: dict[str, dict[str, Policy]] = {}
        self.key_policies: dict[str, Policy] = {}
        self.journal: list = []

    def identity_exists(self, principal: str) -> bool:
        return principal in self.identities

    def attach_identity_policy(self, principal: str, policy: Policy) -> None:
        self.journal.append(("attach", policy.name))
        target = self._policy(principal, policy.name)
        target.extend(policy.statements)

    def add_to_identity_policy(self, principal: str, statement: PolicyStatement) -> None:
        self.journal.append(("identity", principal))
        self._policy(principal, self.DEFAULT).add(statement)

    def add_to_key_policy(self, key: KeyRef, statement: PolicyStatement) -> None:
        self.journal.append(("key", key.key_arn))
        self.key_policies.setdefault(key.key_arn, Policy(name="default")).add(statement)

    def _policy(self, principal: str, name: str) -> Policy:
        return self.identity_policies.setdefault(principal, {}).setdefault(name, Policy(name=name))

    def statements_of(self, principal: str, name: str = DEFAULT) -> list[PolicyStatement]:
        policy = self.identity_policies.get(principal, {}).get(name)
        return list(policy.statements) if policy else []

    def key_statements(self, key_arn: str = KEY_ARN) -> list[PolicyStatement]:
        policy = self.key_policies.get(key_arn)
        return list(policy.statements) if policy else []


class FakeCertificateIssuer(ICertificateRequestIssuer):
    def __init__(self) -> None:
        self.handoffs: list[CertificateRequestHandoff] = []

    def execution_identity(self) -> str:
        return CSR_ROLE_ARN

    def request(self, handoff: CertificateRequestHandoff) -> CertificateRequestHandle:
        self.handoffs.append(handoff)
        return CertificateRequestHandle(request_id=f"csr-{len(self.handoffs)}", key_handle=handoff.key_handle)


@pytest.fixture
def environment() -> AwsEnvironment:
    return AwsEnvironment(partition="aws", region=REGION, account_id=ACCOUNT)


@pytest.fixture
def key_ref() -> KeyRef:
    return KeyRef(key_id="1234abcd-12ab-34cd-56ef-1234567890ab", key_arn=KEY_ARN)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def policies() -> InMemoryPolicyAttachment:
    return InMemoryPolicyAttachment()


@pytest.fixture
def certificates() -> FakeCertificateIssuer:
    return FakeCertificateIssuer()


@pytest.fixture
def orchestrator(backend, policies, environment, certificates) -> SecretProvisioningOrchestrator:
    return SecretProvisioningOrchestrator(
        backend=backend,
        policies=policies,
        environment=environment,
        certificates=certificates,
    )
