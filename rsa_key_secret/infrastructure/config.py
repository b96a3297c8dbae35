"""
Settings for the composition root, read from the process environment.
A local .env file is loaded first (python-dotenv) so development runs need no
exported variables.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from rsa_key_secret.application.services.policy_composer import DEFAULT_VALIDATION_SENTINEL
from rsa_key_secret.domain.exceptions import ConfigurationError


@dataclass(frozen=True)
class Settings:
    handler_function: str
    handler_code: str
    region: str = "us-east-1"
    partition: str = "aws"
    account_id: Optional[str] = None
    csr_function: Optional[str] = None
    validation_sentinel: Optional[str] = DEFAULT_VALIDATION_SENTINEL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, load_env_file: bool = True) -> "Settings":
        """Build settings from *environ* (default: os.environ).

        KEY_ACCESS_VALIDATION_SENTINEL set to an empty string disables the sentinel.

        Raises:
            ConfigurationError: if a required variable is missing.
        """
        if environ is None:
            if load_env_file:
                load_dotenv()
            environ = os.environ

        missing = [name for name in ("PRIVATE_KEY_HANDLER_FUNCTION", "PRIVATE_KEY_HANDLER_CODE") if not environ.get(name)]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

        sentinel = environ.get("KEY_ACCESS_VALIDATION_SENTINEL", DEFAULT_VALIDATION_SENTINEL)
        return cls(
            handler_function=environ["PRIVATE_KEY_HANDLER_FUNCTION"],
            handler_code=environ["PRIVATE_KEY_HANDLER_CODE"],
            region=environ.get("AWS_DEFAULT_REGION", "us-east-1"),
            partition=environ.get("AWS_PARTITION", "aws"),
            account_id=environ.get("AWS_ACCOUNT_ID") or None,
            csr_function=environ.get("CSR_HANDLER_FUNCTION") or None,
            validation_sentinel=sentinel or None,
            log_level=environ.get("LOG_LEVEL", "INFO"),
        )
