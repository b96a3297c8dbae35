"""
Composition Root: wires the AWS adapters into a SecretProvisioningOrchestrator.

Usage from a deployment script:

    from rsa_key_secret.domain.entities.secret import SecretSpec
    from rsa_key_secret.infrastructure.entrypoints.composition import build_orchestrator

    orchestrator = build_orchestrator()
    secret = orchestrator.create(SecretSpec(secret_name="db-root", key_size=2048))
    orchestrator.grant_read("arn:aws:iam::123456789012:role/app")
"""

from typing import Any, Optional

import boto3

from rsa_key_secret.application.services.policy_composer import PolicyComposer
from rsa_key_secret.application.services.secret_provisioning_orchestrator import (
    SecretProvisioningOrchestrator,
)
from rsa_key_secret.domain.entities.arn import AwsEnvironment
from rsa_key_secret.infrastructure.certificates.lambda_csr_issuer import LambdaCertificateRequestIssuer
from rsa_key_secret.infrastructure.config import Settings
from rsa_key_secret.infrastructure.observability.logging_config import configure_logging
from rsa_key_secret.infrastructure.policies.iam_kms_policy_attachment import IamKmsPolicyAttachment
from rsa_key_secret.infrastructure.provisioning.lambda_backend import LambdaProvisioningBackend


def resolve_environment(settings: Settings, sts_client: Any = None) -> AwsEnvironment:
    """Use the configured account, or ask STS who we are."""
    if settings.account_id:
        return AwsEnvironment(settings.partition, settings.region, settings.account_id)
    sts = sts_client or boto3.client("sts", region_name=settings.region)
    identity = sts.get_caller_identity()
    # arn:<partition>:sts::<account>:assumed-role/...
    partition = identity["Arn"].split(":")[1]
    return AwsEnvironment(partition, settings.region, identity["Account"])


def build_orchestrator(settings: Optional[Settings] = None) -> SecretProvisioningOrchestrator:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    environment = resolve_environment(settings)
    backend = LambdaProvisioningBackend(
        function_name=settings.handler_function,
        code_location=settings.handler_code,
        region=settings.region,
    )
    policies = IamKmsPolicyAttachment(region=settings.region)
    certificates = (
        LambdaCertificateRequestIssuer(settings.csr_function, region=settings.region)
        if settings.csr_function
        else None
    )
    return SecretProvisioningOrchestrator(
        backend=backend,
        policies=policies,
        environment=environment,
        composer=PolicyComposer(validation_sentinel=settings.validation_sentinel),
        certificates=certificates,
    )
