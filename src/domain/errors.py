"""
Exception classes for the forwarding domain.

Every failure the forwarder can surface derives from ForwarderError so the
Lambda handler can tell expected failures apart from programming errors.
"""


class ForwarderError(Exception):
    """Base class for all forwarding failures."""
    pass


class ConfigurationError(ForwarderError):
    """Raised when the forwarder configuration is invalid or missing."""
    pass


class InvalidTriggerError(ForwarderError):
    """Raised when the triggering SES event is structurally wrong."""
    pass


class StoreIOError(ForwarderError):
    """Raised when fetching or deleting the stored raw message fails."""
    pass


class RewriteError(ForwarderError):
    """Raised when a message cannot be rewritten for a recipient."""
    pass


class SendError(ForwarderError):
    """Raised when the mail sender rejects or fails a send."""
    pass


class ForwardingFailedError(ForwarderError):
    """
    Aggregated failure of one forwarding invocation.

    Attributes:
        kind: Failure kind of the first failing stage (e.g. "SendError")
        message_id: Identifier of the stored message being forwarded
    """

    def __init__(self, message: str, kind: str = '', message_id: str = ''):
        super().__init__(message)
        self.kind = kind
        self.message_id = message_id
