#!/usr/bin/env python3
"""
Resend stored emails through the forwarder.

Replays every message stored under the configured S3 bucket/prefix as if SES
had just received it for the first address of its To header. Useful after
fixing the forward mapping.

Usage:
    python src/resend_emails.py
    python src/resend_emails.py --bucket my-ses-bucket --prefix inbound/
    python src/resend_emails.py --delay 0.5
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from domain.config import ForwarderConfig
from domain.errors import ConfigurationError
from domain.models import ForwardEvent
from domain.pipeline import ForwardingPipeline
from integrations.aws import S3MessageStore, SesMailSender
from services import email as email_service
from services import s3 as s3_service

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 1.0


def resend_stored_emails(
    pipeline: ForwardingPipeline,
    bucket: str,
    prefix: str = '',
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep
) -> Dict[str, int]:
    """
    Run every stored email through the pipeline again.

    Args:
        pipeline: Pipeline wired to the same bucket/prefix
        bucket: S3 bucket holding the stored emails
        prefix: Key prefix of the stored emails
        delay_seconds: Pause between two messages
        sleep: Sleep function (replaced in tests)

    Returns:
        Dict with counts of resent, skipped and failed messages
    """
    counts = {'resent': 0, 'skipped': 0, 'failed': 0}
    keys = s3_service.list_email_keys(bucket, prefix)

    for key in keys:
        message_id = key[len(prefix):] if prefix and key.startswith(prefix) else key
        if not message_id or message_id.endswith('/'):
            continue

        try:
            raw_email = s3_service.fetch_email_from_s3(bucket, key)
            recipient = email_service.first_recipient_address(raw_email)
            if not recipient:
                logger.warning(f"Could not extract recipient from {key}, skipping.")
                counts['skipped'] += 1
                continue

            result = pipeline.forward(ForwardEvent(message_id=message_id, recipients=(recipient,)))
            if result.success:
                logger.info(f"Successfully resent {key} ({result.state.value})")
                counts['resent'] += 1
            else:
                logger.error(f"Failed to resend {key}: {result.error_message}")
                counts['failed'] += 1
        except Exception as e:
            logger.error(f"Error processing {key}: {e}", exc_info=True)
            counts['failed'] += 1

        if delay_seconds > 0:
            sleep(delay_seconds)

    logger.info(
        f"Resend complete: {len(keys)} key(s), resent={counts['resent']}, "
        f"skipped={counts['skipped']}, failed={counts['failed']}"
    )
    return counts


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resend emails stored by SES through the forwarder"
    )
    parser.add_argument(
        "--bucket",
        help="S3 bucket holding the stored emails (default: MAIL_S3_BUCKET)"
    )
    parser.add_argument(
        "--prefix",
        help="Key prefix of the stored emails (default: MAIL_S3_PREFIX)"
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=DEFAULT_DELAY_SECONDS,
        help="Seconds to wait between two messages (default: %(default)s)"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns the process exit code."""
    logging.basicConfig(level=logging.INFO, format='%(levelname)s - %(message)s')
    args = parse_args(argv)

    try:
        config = ForwarderConfig.from_env()
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    overrides = {}
    if args.bucket:
        overrides['email_bucket'] = args.bucket
    if args.prefix is not None:
        overrides['email_key_prefix'] = args.prefix
    if overrides:
        config = replace(config, **overrides)

    pipeline = ForwardingPipeline(
        config,
        store=S3MessageStore(config.email_bucket, config.email_key_prefix),
        sender=SesMailSender(),
    )
    counts = resend_stored_emails(
        pipeline,
        config.email_bucket,
        config.email_key_prefix,
        delay_seconds=args.delay,
    )
    return 1 if counts['failed'] else 0


if __name__ == '__main__':
    sys.exit(main())
