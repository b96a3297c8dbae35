"""
Application service: provisions an RSA private key secret and manages access to it.

Business decisions owned here:
  - Provisioning flow: register execution identity -> resolve the secret ARN
    pattern -> lifecycle policy on the role -> (key policy statement + separate
    key-grant policy) -> one dispatch to the generation backend.
  - Dispatch kind: an unchanged spec and backend version is a no-op, a changed
    backend version forces an UPDATE, a changed key/name/size is a replacement.
  - Read grants are append-only and may be repeated freely.

Infrastructure adapters (IProvisioningBackend, IPolicyAttachment,
ICertificateRequestIssuer) are injected; no boto3 or botocore imports appear here.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Callable, Iterator, Optional

from rsa_key_secret.application.services.arn_pattern_resolver import ArnPatternResolver
from rsa_key_secret.application.services.dependency_graph import DependencyGraphBuilder
from rsa_key_secret.application.services.policy_composer import PolicyComposer, key_grant_sid
from rsa_key_secret.domain.entities.arn import ArnPattern, AwsEnvironment
from rsa_key_secret.domain.entities.certificate import (
    CertificateRequestHandle,
    CertificateRequestHandoff,
    DistinguishedName,
    KeyHandle,
)
from rsa_key_secret.domain.entities.policy import ALL_RESOURCES, Policy
from rsa_key_secret.domain.entities.provisioning import (
    DependencyEdge,
    OperationKind,
    ProvisioningOperation,
    ProvisioningRequest,
    ProvisioningResponse,
)
from rsa_key_secret.domain.entities.secret import (
    DeletionPolicy,
    ProvisionedSecret,
    SecretSpec,
    SecretState,
)
from rsa_key_secret.domain.exceptions import (
    ConfigurationError,
    DependencyUnresolved,
    InvalidSpec,
    ProvisioningFailed,
    ProvisioningInProgress,
    SecretNotReady,
)
from rsa_key_secret.domain.ports.certificate_request_port import ICertificateRequestIssuer
from rsa_key_secret.domain.ports.policy_attachment_port import IPolicyAttachment
from rsa_key_secret.domain.ports.provisioning_backend_port import IProvisioningBackend

logger = logging.getLogger(__name__)

ROLE_OP = ProvisioningOperation("ExecutionRolePolicy")
KEY_POLICY_OP = ProvisioningOperation("KeyResourcePolicy")
KEY_GRANT_OP = ProvisioningOperation("GrantLambdaRoleKeyAccess")
SECRET_OP = ProvisioningOperation("Resource")

_ALLOWED_TRANSITIONS = {
    None: {SecretState.REQUESTED},
    SecretState.REQUESTED: {SecretState.PROVISIONING, SecretState.FAILED},
    SecretState.PROVISIONING: {SecretState.READY, SecretState.FAILED},
    SecretState.READY: {SecretState.REQUESTED},
    SecretState.FAILED: {SecretState.REQUESTED},
}

_in_flight: set[str] = set()
_in_flight_lock = threading.Lock()


@contextmanager
def _exclusive(secret_name: str) -> Iterator[None]:
    """Process-wide guard: one create/replacement/delete per secret name at a time."""
    with _in_flight_lock:
        if secret_name in _in_flight:
            raise ProvisioningInProgress(f"Secret {secret_name!r} is already being provisioned")
        _in_flight.add(secret_name)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(secret_name)


class SecretProvisioningOrchestrator:
    def __init__(
        self,
        backend: IProvisioningBackend,
        policies: IPolicyAttachment,
        environment: AwsEnvironment,
        composer: Optional[PolicyComposer] = None,
        graph: Optional[DependencyGraphBuilder] = None,
        certificates: Optional[ICertificateRequestIssuer] = None,
    ) -> None:
        """
        Args:
            backend:      IProvisioningBackend implementation (e.g. LambdaProvisioningBackend).
            policies:     IPolicyAttachment implementation (e.g. IamKmsPolicyAttachment).
            environment:  Partition / region / account the secret lives in.
            composer:     PolicyComposer; the default accepts the standard validation sentinel.
            graph:        DependencyGraphBuilder.
            certificates: ICertificateRequestIssuer, required only for derive_certificate_request().
        """
        self._backend = backend
        self._policies = policies
        self._environment = environment
        self._resolver = ArnPatternResolver(environment)
        self._composer = composer or PolicyComposer()
        self._graph = graph or DependencyGraphBuilder()
        self._certificates = certificates
        self._lock = threading.RLock()

        self._state: Optional[SecretState] = None
        self._spec: Optional[SecretSpec] = None
        self._provisioned: Optional[ProvisionedSecret] = None
        self._provisioned_spec: Optional[SecretSpec] = None
        self._secret_pattern: Optional[ArnPattern] = None
        self.last_edges: frozenset[DependencyEdge] = frozenset()

    @property
    def state(self) -> Optional[SecretState]:
        return self._state

    @property
    def spec(self) -> Optional[SecretSpec]:
        return self._spec

    @property
    def provisioned(self) -> Optional[ProvisionedSecret]:
        """The materialized secret; None unless the last create succeeded."""
        return self._provisioned if self._state is SecretState.READY else None

    @property
    def secret_pattern(self) -> Optional[ArnPattern]:
        return self._secret_pattern

    # ------------------------------------------------------------------
    # create / replace / delete
    # ------------------------------------------------------------------

    def create(self, spec: SecretSpec) -> ProvisionedSecret:
        """Provision the secret described by *spec*.

        Raises:
            InvalidSpec:            before any external call, on a malformed spec.
            ProvisioningInProgress: if the same secret name is already in flight.
            DependencyUnresolved:   if the execution identity never became stable.
            ProvisioningFailed:     if the backend reported a failure.
            PolicyConflict:         if the key policy contradicts the grant.
        """
        spec.validate()
        with _exclusive(spec.secret_name), self._lock:
            version = self._backend.resource_version()
            if (
                self._state is SecretState.READY
                and self._spec == spec
                and self._provisioned is not None
                and self._provisioned.version_hash == version
            ):
                logger.info("Secret %r unchanged at version %s; nothing to dispatch", spec.secret_name, version)
                return self._provisioned

            previous, previous_spec = self._provisioned, self._provisioned_spec
            replacing = previous_spec is not None and previous_spec.requires_replacement(spec)
            if previous is None or replacing:
                kind, existing_arn = OperationKind.CREATE, None
            else:
                kind, existing_arn = OperationKind.UPDATE, previous.arn

            self._spec = spec
            self._transition(SecretState.REQUESTED)
            try:
                provisioned = self._provision(spec, version, kind, existing_arn)
            except Exception:
                self._transition(SecretState.FAILED)
                raise

            self._provisioned = provisioned
            self._provisioned_spec = spec
            self._transition(SecretState.READY)

            if replacing and previous is not None and previous_spec is not None:
                self._retire(previous_spec, previous, current_name=spec.secret_name)
            return provisioned

    def delete(self) -> None:
        """Remove the secret according to its deletion policy and forget it locally."""
        with self._lock:
            self._require_ready()
            name = (self._provisioned_spec or self._spec).secret_name
        with _exclusive(name), self._lock:
            # a create may have finished while we waited for the name
            provisioned = self._require_ready()
            spec = self._provisioned_spec or self._spec
            if spec.secret_name != name:
                raise ProvisioningInProgress(f"Secret {name!r} was replaced by {spec.secret_name!r} meanwhile")
            if spec.deletion_policy is DeletionPolicy.DELETE:
                response = self._dispatch(
                    self._request(spec, provisioned.version_hash, OperationKind.DELETE, provisioned.arn)
                )
                self._check(spec, OperationKind.DELETE, response)
                logger.info("Deleted secret %s", provisioned.arn)
            else:
                logger.info("Retaining secret %s (deletion policy %s)", provisioned.arn, spec.deletion_policy.value)
            self._state = None
            self._spec = None
            self._provisioned = None
            self._provisioned_spec = None
            self._secret_pattern = None

    # ------------------------------------------------------------------
    # post-creation access
    # ------------------------------------------------------------------

    def grant_read(self, principal: str) -> None:
        """Let *principal* read the secret value. Repeating a grant changes nothing."""
        with self._lock:
            provisioned = self._require_ready()
            key = self._spec.encryption_key if self._spec else None
            grant = self._composer.allow_read_secret_value(
                principal,
                provisioned.arn,
                key.key_arn if key else None,
                self._environment.region,
            )
            self._policies.add_to_identity_policy(principal, grant.secret_statement)
            if key is not None and grant.key_resource_statement and grant.key_principal_statement:
                self._policies.add_to_key_policy(key, grant.key_resource_statement)
                self._policies.add_to_identity_policy(principal, grant.key_principal_statement)
            logger.info("Granted read on %s to %s", provisioned.arn, principal)

    def derive_certificate_request(
        self,
        distinguished_name: DistinguishedName,
        key_usage: str,
        extended_key_usage: Optional[str] = None,
    ) -> CertificateRequestHandle:
        """Hand this private key to the CSR component.

        The CSR component's identity is granted read on the secret first; CSR
        construction itself happens on the other side.
        """
        if self._certificates is None:
            raise ConfigurationError("No certificate request issuer configured")
        if not distinguished_name.common_name:
            raise InvalidSpec("distinguished_name.common_name must be a non-empty string")
        if not key_usage:
            raise InvalidSpec("key_usage must be a non-empty string")
        with self._lock:
            provisioned = self._require_ready()
            key = self._spec.encryption_key if self._spec else None
            self.grant_read(self._certificates.execution_identity())
        handoff = CertificateRequestHandoff(
            key_handle=KeyHandle(secret_arn=provisioned.arn, encryption_key=key),
            distinguished_name=distinguished_name,
            key_usage=key_usage,
            extended_key_usage=extended_key_usage,
        )
        handle = self._certificates.request(handoff)
        logger.info("Requested certificate %s for %s", handle.request_id, provisioned.arn)
        return handle

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _provision(
        self,
        spec: SecretSpec,
        version: str,
        kind: OperationKind,
        existing_arn: Optional[str],
    ) -> ProvisionedSecret:
        role_arn = self._backend.register_execution_identity()
        if not self._policies.identity_exists(role_arn):
            raise DependencyUnresolved(f"Execution identity {role_arn} never reached a stable state")

        pattern = self._resolver.resolve_secret(spec.secret_name)
        self._secret_pattern = pattern
        region = self._environment.region
        lifecycle = self._composer.allow_secret_lifecycle(role_arn, pattern)
        request = self._request(spec, version, kind, existing_arn)

        steps: dict[ProvisioningOperation, Callable[[], object]] = {
            ROLE_OP: lambda: self._policies.add_to_identity_policy(role_arn, lifecycle),
        }
        key_grant_op = None
        edges: frozenset[DependencyEdge] = frozenset()
        key = spec.encryption_key
        if key is not None:
            key_statement = self._composer.allow_key_use_via_store(role_arn, ALL_RESOURCES, region, pattern)
            sid = key_grant_sid(spec.secret_name, key.key_arn)
            grant_policy = Policy(
                name=f"{KEY_GRANT_OP.name}{sid}",
                statements=[self._composer.allow_key_use_via_store(role_arn, key.key_arn, region, pattern, sid=sid)],
            )
            steps[KEY_POLICY_OP] = lambda: self._policies.add_to_key_policy(key, key_statement)
            steps[KEY_GRANT_OP] = lambda: self._policies.attach_identity_policy(role_arn, grant_policy)
            key_grant_op = KEY_GRANT_OP
            edges |= self._graph.order_key_policy(KEY_POLICY_OP, ROLE_OP, KEY_GRANT_OP)
        edges |= self._graph.order_secret_provisioning(SECRET_OP, ROLE_OP, key_grant_op)
        dispatched: list[ProvisioningResponse] = []
        steps[SECRET_OP] = lambda: dispatched.append(self._dispatch(request))
        self.last_edges = edges

        self._transition(SecretState.PROVISIONING)
        for op in self._graph.linearize(steps, edges):
            logger.debug("Running %s for secret %r", op.name, spec.secret_name)
            steps[op]()

        response = dispatched[0]
        self._check(spec, kind, response)
        if not response.secret_arn:
            raise ProvisioningFailed(spec.secret_name, kind.value, "backend reported success without a SecretArn")
        if not pattern.matches(response.secret_arn):
            raise ProvisioningFailed(
                spec.secret_name,
                kind.value,
                f"returned ARN {response.secret_arn} does not match {pattern}",
            )
        logger.info("Secret %r is ready at %s (%s)", spec.secret_name, response.secret_arn, kind.value)
        return ProvisionedSecret(arn=response.secret_arn, version_hash=version)

    def _retire(self, spec: SecretSpec, provisioned: ProvisionedSecret, current_name: str) -> None:
        """Clean up a replaced secret. Failures are logged; the replacement stands."""
        if spec.deletion_policy is DeletionPolicy.RETAIN:
            logger.info("Replaced secret %s is retained", provisioned.arn)
            return
        # a renamed secret's old name is free for other creates; claim it too
        guard = _exclusive(spec.secret_name) if spec.secret_name != current_name else nullcontext()
        try:
            with guard:
                response = self._dispatch(
                    self._request(spec, provisioned.version_hash, OperationKind.DELETE, provisioned.arn)
                )
        except (ProvisioningFailed, ProvisioningInProgress) as exc:
            logger.warning("Could not delete replaced secret %s: %s", provisioned.arn, exc)
            return
        if response.succeeded:
            logger.info("Deleted replaced secret %s", provisioned.arn)
        else:
            logger.warning(
                "Could not delete replaced secret %s: %s", provisioned.arn, response.error_message
            )

    def _request(
        self,
        spec: SecretSpec,
        version: str,
        kind: OperationKind,
        existing_arn: Optional[str],
    ) -> ProvisioningRequest:
        return ProvisioningRequest(
            operation_kind=kind,
            resource_version=version,
            secret_name=spec.secret_name,
            key_size=spec.key_size,
            description=spec.description,
            encryption_key_id=spec.encryption_key.key_arn if spec.encryption_key else None,
            secret_arn=existing_arn,
        )

    def _dispatch(self, request: ProvisioningRequest) -> ProvisioningResponse:
        logger.info(
            "Dispatching %s for secret %r at version %s",
            request.operation_kind.value,
            request.secret_name,
            request.resource_version,
        )
        return self._backend.submit(request)

    @staticmethod
    def _check(spec: SecretSpec, kind: OperationKind, response: ProvisioningResponse) -> None:
        if not response.succeeded:
            raise ProvisioningFailed(spec.secret_name, kind.value, response.error_message)

    def _require_ready(self) -> ProvisionedSecret:
        if self._state is not SecretState.READY or self._provisioned is None:
            raise SecretNotReady(f"No provisioned secret (state: {self._state and self._state.value})")
        return self._provisioned

    def _transition(self, target: SecretState) -> None:
        if target not in _ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal state transition {self._state} -> {target}")
        logger.debug(
            "Secret %r: %s -> %s",
            self._spec.secret_name if self._spec else None,
            self._state and self._state.value,
            target.value,
        )
        self._state = target
