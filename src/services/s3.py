"""
S3 operations for stored SES messages.

This module provides the functions the forwarder uses to read, delete and
list the raw messages SES writes to S3.
"""

import logging
from typing import List

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Configure S3 client with timeouts to prevent infinite hangs
s3_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=10,  # 10 seconds to establish connection
    read_timeout=60      # 60 seconds max for reading response
)

# Initialize S3 client at module level (thread-safe, reused across invocations)
s3_client = boto3.client('s3', config=s3_config)
logger.info("S3 client initialized with timeouts: connect=10s, read=60s, max_attempts=1")


def fetch_email_from_s3(bucket: str, key: str) -> bytes:
    """
    Fetch raw email content from S3.

    Args:
        bucket: S3 bucket name
        key: S3 object key (path to the email file)

    Returns:
        bytes: The raw email content as bytes

    Raises:
        ValueError: If the bucket or object does not exist
        ClientError: For other S3 errors

    Example:
        >>> email_bytes = fetch_email_from_s3(
        ...     bucket="my-ses-bucket",
        ...     key="inbound/0a1b2c3d4e5f"
        ... )
        >>> print(len(email_bytes))
        12345
    """
    logger.info(f"Fetching email at s3://{bucket}/{key}")
    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
        return response['Body'].read()
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', '')
        if error_code == 'NoSuchKey':
            logger.error(f"S3 object not found: s3://{bucket}/{key}")
            raise ValueError(f"Email file not found in S3: {key}")
        elif error_code == 'NoSuchBucket':
            logger.error(f"S3 bucket not found: {bucket}")
            raise ValueError(f"S3 bucket not found: {bucket}")
        else:
            logger.error(f"Failed to fetch from S3 s3://{bucket}/{key}: {e}")
            raise


def delete_email_from_s3(bucket: str, key: str) -> None:
    """
    Delete a stored email from S3.

    Args:
        bucket: S3 bucket name
        key: S3 object key

    Raises:
        ClientError: If S3 operation fails
    """
    logger.info(f"Deleting email at s3://{bucket}/{key}")
    try:
        s3_client.delete_object(Bucket=bucket, Key=key)
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        error_message = e.response.get('Error', {}).get('Message', str(e))

        logger.error(
            f"Failed to delete email from S3: "
            f"bucket={bucket}, key={key}, "
            f"error_code={error_code}, error_message={error_message}"
        )

        raise

    logger.info(f"Deleted email from S3: bucket={bucket}, key={key}")


def list_email_keys(bucket: str, prefix: str = '') -> List[str]:
    """
    List the keys of every stored email under a prefix.

    Args:
        bucket: S3 bucket name
        prefix: Key prefix to list (empty for the whole bucket)

    Returns:
        List of object keys in listing order
    """
    keys: List[str] = []
    paginator = s3_client.get_paginator('list_objects_v2')
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
        keys.extend(obj['Key'] for obj in page.get('Contents', []))

    logger.info(f"Found {len(keys)} email(s) under s3://{bucket}/{prefix}")
    return keys
