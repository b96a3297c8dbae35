"""
Infrastructure adapter: CSR handler Lambda -> ICertificateRequestIssuer.
Only the hand-off happens here: the handler reads the private key (it has been
granted read by the orchestrator) and builds the CSR on its side.
"""

import logging
import os
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from rsa_key_secret.domain.entities.certificate import CertificateRequestHandle, CertificateRequestHandoff
from rsa_key_secret.domain.exceptions import ProvisioningFailed
from rsa_key_secret.domain.ports.certificate_request_port import ICertificateRequestIssuer
from rsa_key_secret.infrastructure.provisioning.wire_models import CertificateRequestEvent, HandlerResult

logger = logging.getLogger(__name__)


class LambdaCertificateRequestIssuer(ICertificateRequestIssuer):
    def __init__(self, function_name: str, region: Optional[str] = None, client: Any = None) -> None:
        self._function_name = function_name
        self._client = client or boto3.client(
            "lambda",
            region_name=region or os.environ.get("AWS_DEFAULT_REGION", "us-east-1"),
        )

    def execution_identity(self) -> str:
        return self._client.get_function_configuration(FunctionName=self._function_name)["Role"]

    def request(self, handoff: CertificateRequestHandoff) -> CertificateRequestHandle:
        """Invoke the CSR handler with the key reference and naming fields.

        Raises:
            ProvisioningFailed: if the handler cannot be invoked or reports a failure.
        """
        secret_arn = handoff.key_handle.secret_arn
        step = f"certificate request via {self._function_name}"
        try:
            response = self._client.invoke(
                FunctionName=self._function_name,
                InvocationType="RequestResponse",
                Payload=CertificateRequestEvent.from_handoff(handoff).to_payload(),
            )
        except ClientError as exc:
            raise ProvisioningFailed(secret_arn, step, str(exc)) from exc

        payload = response["Payload"].read()
        if response.get("FunctionError"):
            raise ProvisioningFailed(secret_arn, step, payload.decode("utf-8", errors="replace"))
        try:
            result = HandlerResult.model_validate_json(payload)
        except ValidationError as exc:
            raise ProvisioningFailed(secret_arn, step, f"unreadable handler result: {exc}") from exc
        if result.status != "SUCCESS" or not result.physical_resource_id:
            raise ProvisioningFailed(secret_arn, step, result.reason or "no request id returned")

        logger.debug("CSR handler accepted %s as %s", secret_arn, result.physical_resource_id)
        return CertificateRequestHandle(request_id=result.physical_resource_id, key_handle=handoff.key_handle)
