"""
AWS Lambda handler for forwarding inbound SES email.

Thin orchestration layer that delegates to ForwardingPipeline.
Policy: any failure is raised so Lambda can redeliver the event.
"""

import logging
from typing import Dict, Any

from domain.config import ForwarderConfig
from domain.errors import ForwardingFailedError
from domain.pipeline import ForwardingPipeline
from integrations.aws import S3MessageStore, SesMailSender

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)


def build_pipeline(config: ForwarderConfig) -> ForwardingPipeline:
    """Wire the pipeline to S3 and SES."""
    return ForwardingPipeline(
        config,
        store=S3MessageStore(config.email_bucket, config.email_key_prefix),
        sender=SesMailSender(),
    )


# Configuration and pipeline are built once per process (reused across invocations)
config = ForwarderConfig.from_env()
pipeline = build_pipeline(config)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Forward the inbound email referenced by an SES receipt event.

    Args:
        event: Lambda event with exactly one SES record
        context: Lambda context

    Returns:
        Dict with messageId, final state and number of messages sent

    Raises:
        ForwardingFailedError: If any stage failed
    """
    logger.info("SES Email Forwarder - Started")

    result = pipeline.process_event(event)

    if not result.success:
        logger.error(f"Forwarding failed: {result!r}")
        raise ForwardingFailedError(
            f"Error: Step returned error. {result.error_message}",
            kind=result.failure_kind.value if result.failure_kind else '',
            message_id=result.message_id,
        )

    logger.info(f"Forwarding complete: {result!r}")
    return {
        'messageId': result.message_id,
        'state': result.state.value,
        'sent': result.sent_count,
    }
