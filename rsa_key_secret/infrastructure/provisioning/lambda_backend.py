"""
Infrastructure adapter: AWS Lambda custom resource handler -> IProvisioningBackend.

The handler generates the RSA key and creates/updates/deletes the Secrets
Manager entry itself; this adapter only invokes it synchronously and reads its
verdict. Retry/poll behavior belongs to the handler, not to this process.
"""

import logging
import os
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from rsa_key_secret.domain.entities.provisioning import (
    ProvisioningRequest,
    ProvisioningResponse,
    ProvisioningStatus,
)
from rsa_key_secret.domain.exceptions import ProvisioningFailed
from rsa_key_secret.domain.ports.provisioning_backend_port import IProvisioningBackend
from rsa_key_secret.infrastructure.provisioning.fingerprint import hash_file_or_directory
from rsa_key_secret.infrastructure.provisioning.wire_models import HandlerResult, PrivateKeyEvent

logger = logging.getLogger(__name__)


class LambdaProvisioningBackend(IProvisioningBackend):
    """Invokes the private key handler function with a custom resource event."""

    def __init__(
        self,
        function_name: str,
        code_location: str,
        region: Optional[str] = None,
        client: Any = None,
    ) -> None:
        """
        Args:
            function_name: Name or ARN of the handler function.
            code_location: Local path of the handler bundle; hashed into the resource version.
            region:        AWS region; defaults to AWS_DEFAULT_REGION.
            client:        Pre-built boto3 Lambda client (tests inject a Mock).
        """
        self._function_name = function_name
        self._code_location = code_location
        self._client = client or boto3.client(
            "lambda",
            region_name=region or os.environ.get("AWS_DEFAULT_REGION", "us-east-1"),
        )

    def register_execution_identity(self) -> str:
        configuration = self._client.get_function_configuration(FunctionName=self._function_name)
        logger.debug("Handler %s runs as %s", self._function_name, configuration["Role"])
        return configuration["Role"]

    def resource_version(self) -> str:
        return hash_file_or_directory(self._code_location)

    def submit(self, request: ProvisioningRequest) -> ProvisioningResponse:
        """Invoke the handler and translate its result.

        Raises:
            ProvisioningFailed: if the invocation itself fails or the handler
                                answers with something unreadable.
        """
        step = f"{request.operation_kind.value} invocation of {self._function_name}"
        event = PrivateKeyEvent.from_request(request)
        try:
            response = self._client.invoke(
                FunctionName=self._function_name,
                InvocationType="RequestResponse",
                Payload=event.to_payload(),
            )
        except ClientError as exc:
            raise ProvisioningFailed(request.secret_name, step, str(exc)) from exc

        payload = response["Payload"].read()
        if response.get("FunctionError"):
            # Unhandled error inside the handler: the payload is its error report.
            return ProvisioningResponse(
                status=ProvisioningStatus.FAILED,
                error_message=payload.decode("utf-8", errors="replace"),
            )
        try:
            result = HandlerResult.model_validate_json(payload)
        except ValidationError as exc:
            raise ProvisioningFailed(request.secret_name, step, f"unreadable handler result: {exc}") from exc
        logger.debug("Handler answered %s for %r", result.status, request.secret_name)
        return result.to_response()
