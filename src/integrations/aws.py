"""
AWS implementations of the pipeline collaborators.

Usage:
    from integrations.aws import S3MessageStore, SesMailSender

    pipeline = ForwardingPipeline(
        config,
        store=S3MessageStore(config.email_bucket, config.email_key_prefix),
        sender=SesMailSender(),
    )
"""

import logging
from typing import Sequence

from botocore.exceptions import BotoCoreError, ClientError

from domain.errors import SendError, StoreIOError
from services import s3 as s3_service
from services import ses as ses_service

logger = logging.getLogger(__name__)


class S3MessageStore:
    """
    Message store backed by the S3 bucket of an SES receipt rule.

    Attributes:
        bucket: S3 bucket name
        key_prefix: Prefix prepended to the message id to form the key
    """

    def __init__(self, bucket: str, key_prefix: str = ''):
        self.bucket = bucket
        self.key_prefix = key_prefix

    def object_key(self, message_id: str) -> str:
        return f"{self.key_prefix}{message_id}"

    def fetch(self, message_id: str) -> bytes:
        """
        Fetch the raw message stored for message_id.

        Raises:
            StoreIOError: If the object is missing or S3 fails
        """
        try:
            return s3_service.fetch_email_from_s3(self.bucket, self.object_key(message_id))
        except (ValueError, ClientError, BotoCoreError) as e:
            raise StoreIOError(f"Failed to load message body from S3: {e}") from e

    def delete(self, message_id: str) -> None:
        """
        Delete the raw message stored for message_id.

        Raises:
            StoreIOError: If S3 fails
        """
        try:
            s3_service.delete_email_from_s3(self.bucket, self.object_key(message_id))
        except (ClientError, BotoCoreError) as e:
            raise StoreIOError(f"Failed to delete message body from S3: {e}") from e


class SesMailSender:
    """Mail sender backed by SES SendRawEmail."""

    def send(self, envelope_from: str, envelope_to: Sequence[str], raw_message: bytes) -> str:
        """
        Send one rewritten message.

        Returns:
            str: SES message id of the sent copy

        Raises:
            SendError: If SES rejects or fails the send
        """
        try:
            response = ses_service.send_raw_email(envelope_from, envelope_to, raw_message)
        except (ValueError, ClientError, BotoCoreError) as e:
            raise SendError(f"Email sending failed: {e}") from e
        return response.get('MessageId', '')
