"""
Email header utilities.

Helpers built on the standard library parser for reading addresses out of
stored raw messages.
"""

import logging
from email import policy
from email.parser import BytesHeaderParser
from typing import Optional

logger = logging.getLogger(__name__)


def first_recipient_address(email_content: bytes) -> Optional[str]:
    """
    Return the first address of the To header.

    Args:
        email_content: Raw email bytes

    Returns:
        The addr-spec of the first To address, or None if there is none
    """
    msg = BytesHeaderParser(policy=policy.default).parsebytes(email_content)
    to_header = msg.get('To')
    if to_header is None:
        return None

    try:
        addresses = to_header.addresses
    except AttributeError:
        # Unstructured fallback when the header could not be parsed as addresses
        logger.warning(f"To header could not be parsed as addresses: {to_header}")
        return None

    for address in addresses:
        if address.addr_spec and '@' in address.addr_spec:
            return address.addr_spec
    return None
