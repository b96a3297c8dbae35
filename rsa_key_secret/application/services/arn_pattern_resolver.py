"""
Application service: ARN formatting and forward-reference ARN patterns.
Depends only on Domain entities. No SDK imports.
"""

from rsa_key_secret.domain.entities.arn import ArnPattern, AwsEnvironment
from rsa_key_secret.domain.exceptions import InvalidSpec


class ArnPatternResolver:
    # Secrets Manager appends "-" and 6 random characters to every secret name.
    RANDOM_SUFFIX = "-??????"

    def __init__(self, environment: AwsEnvironment) -> None:
        self._environment = environment

    def format_arn(self, service: str, resource_type: str, separator: str, resource_name: str) -> str:
        env = self._environment
        return (
            f"arn:{env.partition}:{service}:{env.region}:{env.account_id}:"
            f"{resource_type}{separator}{resource_name}"
        )

    def resolve(self, service: str, resource_type: str, separator: str, name_hint: str) -> ArnPattern:
        """Build the pattern of the ARN *name_hint* will get once the store creates it.

        Raises:
            InvalidSpec: if *name_hint* is blank.
        """
        if not name_hint or not name_hint.strip():
            raise InvalidSpec("name_hint must be a non-empty string")
        return ArnPattern(
            self.format_arn(service, resource_type, separator, f"{name_hint}{self.RANDOM_SUFFIX}")
        )

    def resolve_secret(self, secret_name: str) -> ArnPattern:
        return self.resolve("secretsmanager", "secret", ":", secret_name)
