"""
Forwarder configuration.

The configuration is read from the environment once per process and passed
into the pipeline; nothing else in the code base reads these variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError
from .recipients import MappingTable

logger = logging.getLogger(__name__)

DEFAULT_SEND_CONCURRENCY = 10

_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off')


def _read_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None or value.strip() == '':
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be true or false, got: '{value}'")


def _read_positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        number = int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got: '{value}'")
    if number < 1:
        raise ConfigurationError(f"{name} must be at least 1, got: {number}")
    return number


@dataclass(frozen=True)
class ForwarderConfig:
    """
    Settings for one forwarder process.

    Attributes:
        email_bucket: S3 bucket SES stores incoming messages in
        mapping: Forward mapping table
        email_key_prefix: Prefix of the S3 object keys
        subject_prefix: Text prepended to every forwarded Subject
        allow_plus_sign: Treat "user+tag@domain" as "user@domain"
        send_concurrency: Maximum number of concurrent sends per message
    """
    email_bucket: str
    mapping: MappingTable
    email_key_prefix: str = ''
    subject_prefix: str = ''
    allow_plus_sign: bool = True
    send_concurrency: int = DEFAULT_SEND_CONCURRENCY

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ForwarderConfig':
        """
        Read and validate the configuration from environment variables.

        Args:
            environ: Variables to read (defaults to os.environ)

        Returns:
            ForwarderConfig: The validated configuration

        Raises:
            ConfigurationError: If a required variable is missing or invalid
        """
        if environ is None:
            environ = os.environ

        bucket = environ.get('MAIL_S3_BUCKET', '').strip()
        if not bucket:
            raise ConfigurationError(
                "MAIL_S3_BUCKET environment variable is required but not set. "
                "Set it to the bucket your SES receipt rule writes to."
            )

        mapping_json = environ.get('EMAIL_MAPPING', '').strip()
        if not mapping_json:
            raise ConfigurationError(
                "EMAIL_MAPPING environment variable is required but not set. "
                "Set it to a JSON object of rule keys to destination addresses."
            )

        config = cls(
            email_bucket=bucket,
            mapping=MappingTable.from_json(mapping_json),
            email_key_prefix=environ.get('MAIL_S3_PREFIX', ''),
            subject_prefix=environ.get('SUBJECT_PREFIX', ''),
            allow_plus_sign=_read_bool(environ, 'ALLOW_PLUS_SIGN', True),
            send_concurrency=_read_positive_int(
                environ, 'SEND_CONCURRENCY', DEFAULT_SEND_CONCURRENCY
            ),
        )

        logger.info(
            f"Forwarder configured: bucket={config.email_bucket}, "
            f"prefix='{config.email_key_prefix}', rules={len(config.mapping)}, "
            f"allow_plus_sign={config.allow_plus_sign}, "
            f"send_concurrency={config.send_concurrency}"
        )
        return config
