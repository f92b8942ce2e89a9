"""
Parsing of the SES receipt event that triggers a forward.
"""

import json
import logging
from typing import Any, Dict, List

from .errors import InvalidTriggerError
from .models import ForwardEvent

logger = logging.getLogger(__name__)

SES_EVENT_SOURCE = 'aws:ses'
SES_EVENT_VERSION = '1.0'


def _address_list(value: Any, field_name: str) -> List[str]:
    # SES sends lists; tolerate a single string like the common headers parser does
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise InvalidTriggerError(f"SES event field '{field_name}' must be a list of addresses")


def parse_ses_event(event: Dict[str, Any]) -> ForwardEvent:
    """
    Validate a Lambda event from an SES receipt rule.

    Args:
        event: Lambda event dict

    Returns:
        ForwardEvent: Message id, recipients and CC list of the event

    Raises:
        InvalidTriggerError: If the event is not exactly one SES 1.0 record
    """
    records = event.get('Records') if isinstance(event, dict) else None
    if not isinstance(records, list) or len(records) != 1:
        count = len(records) if isinstance(records, list) else 0
        logger.error(f"Received invalid SES event with {count} record(s): {json.dumps(event, default=str)[:500]}")
        raise InvalidTriggerError(f"Expected exactly one SES record, got {count}")

    record = records[0]
    if not isinstance(record, dict):
        raise InvalidTriggerError("SES record must be an object")
    if record.get('eventSource') != SES_EVENT_SOURCE or record.get('eventVersion') != SES_EVENT_VERSION:
        logger.error(
            f"Received invalid SES record: eventSource={record.get('eventSource')}, "
            f"eventVersion={record.get('eventVersion')}"
        )
        raise InvalidTriggerError(
            f"Expected eventSource '{SES_EVENT_SOURCE}' version '{SES_EVENT_VERSION}'"
        )

    ses = record.get('ses') or {}
    mail = ses.get('mail') or {}
    receipt = ses.get('receipt') or {}

    message_id = mail.get('messageId')
    if not message_id or not isinstance(message_id, str):
        raise InvalidTriggerError("SES record is missing 'mail.messageId'")

    recipients = _address_list(receipt.get('recipients'), 'receipt.recipients')

    # Only an explicit receipt-level CC list overrides the message's own Cc;
    # mail.commonHeaders.cc is just that Cc header again
    common_headers = receipt.get('commonHeaders') or {}
    cc_recipients = _address_list(common_headers.get('cc'), 'commonHeaders.cc')

    return ForwardEvent(
        message_id=message_id,
        recipients=tuple(recipients),
        cc_recipients=tuple(cc_recipients),
    )
