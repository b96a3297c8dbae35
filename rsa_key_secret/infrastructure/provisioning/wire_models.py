"""
Wire models for the Lambda handlers, shaped like CloudFormation custom resource
events so the same handlers serve both stack deployments and direct invocation.
All pydantic details are confined here; the domain sees only its own dataclasses.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from rsa_key_secret.domain.entities.certificate import CertificateRequestHandoff
from rsa_key_secret.domain.entities.provisioning import (
    ProvisioningRequest,
    ProvisioningResponse,
    ProvisioningStatus,
)

SECRET_ARN_ATTRIBUTE = "SecretArn"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_payload(self) -> bytes:
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


class PrivateKeyProperties(_WireModel):
    resource_version: str = Field(alias="resourceVersion")
    secret_name: str = Field(alias="secretName")
    key_size: int = Field(alias="keySize")
    description: Optional[str] = None
    kms_key_id: Optional[str] = Field(default=None, alias="kmsKeyId")


class PrivateKeyEvent(_WireModel):
    request_type: Literal["Create", "Update", "Delete"] = Field(alias="RequestType")
    resource_type: str = Field(alias="ResourceType")
    physical_resource_id: Optional[str] = Field(default=None, alias="PhysicalResourceId")
    resource_properties: PrivateKeyProperties = Field(alias="ResourceProperties")

    @classmethod
    def from_request(cls, request: ProvisioningRequest) -> "PrivateKeyEvent":
        return cls(
            request_type=request.operation_kind.value,
            resource_type=f"Custom::{request.resource_type_tag}",
            physical_resource_id=request.secret_arn,
            resource_properties=PrivateKeyProperties(
                resource_version=request.resource_version,
                secret_name=request.secret_name,
                key_size=request.key_size,
                description=request.description,
                kms_key_id=request.encryption_key_id,
            ),
        )


class DistinguishedNameProperties(_WireModel):
    common_name: str = Field(alias="commonName")
    country: Optional[str] = None
    state_or_province: Optional[str] = Field(default=None, alias="stateOrProvince")
    locality: Optional[str] = None
    organization_name: Optional[str] = Field(default=None, alias="organizationName")
    organizational_unit_name: Optional[str] = Field(default=None, alias="organizationalUnitName")
    email_address: Optional[str] = Field(default=None, alias="emailAddress")


class CertificateRequestProperties(_WireModel):
    private_key_secret_id: str = Field(alias="privateKeySecretId")
    kms_key_id: Optional[str] = Field(default=None, alias="kmsKeyId")
    dn: DistinguishedNameProperties
    key_usage: str = Field(alias="keyUsage")
    extended_key_usage: Optional[str] = Field(default=None, alias="extendedKeyUsage")


class CertificateRequestEvent(_WireModel):
    request_type: Literal["Create"] = Field(default="Create", alias="RequestType")
    resource_type: str = Field(default="Custom::CertificateSigningRequest", alias="ResourceType")
    resource_properties: CertificateRequestProperties = Field(alias="ResourceProperties")

    @classmethod
    def from_handoff(cls, handoff: CertificateRequestHandoff) -> "CertificateRequestEvent":
        dn = handoff.distinguished_name
        key = handoff.key_handle.encryption_key
        return cls(
            resource_properties=CertificateRequestProperties(
                private_key_secret_id=handoff.key_handle.secret_arn,
                kms_key_id=key.key_arn if key else None,
                dn=DistinguishedNameProperties(
                    common_name=dn.common_name,
                    country=dn.country,
                    state_or_province=dn.state_or_province,
                    locality=dn.locality,
                    organization_name=dn.organization_name,
                    organizational_unit_name=dn.organizational_unit_name,
                    email_address=dn.email_address,
                ),
                key_usage=handoff.key_usage,
                extended_key_usage=handoff.extended_key_usage,
            ),
        )


class HandlerResult(_WireModel):
    """What a custom resource handler reports back."""

    status: Literal["SUCCESS", "FAILED"] = Field(alias="Status")
    reason: Optional[str] = Field(default=None, alias="Reason")
    physical_resource_id: Optional[str] = Field(default=None, alias="PhysicalResourceId")
    data: dict[str, str] = Field(default_factory=dict, alias="Data")

    def to_response(self) -> ProvisioningResponse:
        if self.status == "SUCCESS":
            return ProvisioningResponse(
                status=ProvisioningStatus.SUCCESS,
                secret_arn=self.data.get(SECRET_ARN_ATTRIBUTE) or self.physical_resource_id,
            )
        return ProvisioningResponse(status=ProvisioningStatus.FAILED, error_message=self.reason)
