"""
SES sending for forwarded messages.

Sends complete raw MIME messages with SendRawEmail so the rewritten headers
reach the destinations exactly as produced.
"""

import logging
import os
from typing import Dict, Any, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# No retries: a failed send fails the invocation and Lambda decides on redelivery
ses_config = Config(
    retries={
        'max_attempts': 1,
        'mode': 'standard'
    },
    connect_timeout=10,
    read_timeout=60,
    max_pool_connections=20  # concurrent sends share this client
)

region = os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-east-1'))

# Module-level client (thread-safe, reused across invocations)
ses_client = boto3.client('ses', region_name=region, config=ses_config)
logger.info(f"SES client initialized: region={region}, max_attempts=1")


def send_raw_email(source: str, destinations: Sequence[str], raw_message: bytes) -> Dict[str, Any]:
    """
    Send a raw MIME message through SES.

    Args:
        source: Envelope sender (must be a verified identity)
        destinations: Envelope recipients
        raw_message: Complete raw message (headers and body)

    Returns:
        Dict: SES response (contains MessageId)

    Raises:
        ValueError: If source or destinations are empty
        ClientError: If SES rejects the message
    """
    if not source:
        raise ValueError("Source address cannot be empty")
    if not destinations:
        raise ValueError("Destinations cannot be empty")

    try:
        response = ses_client.send_raw_email(
            Source=source,
            Destinations=list(destinations),
            RawMessage={'Data': raw_message}
        )
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        error_message = e.response.get('Error', {}).get('Message', str(e))

        logger.error(
            f"SendRawEmail failed: source={source}, "
            f"destinations={len(destinations)}, size={len(raw_message)} bytes, "
            f"error_code={error_code}, error_message={error_message}"
        )

        raise

    logger.info(
        f"SendRawEmail successful: source={source}, "
        f"ses_message_id={response.get('MessageId', 'unknown')}"
    )
    return response
