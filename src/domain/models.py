"""
Data models for the forwarding domain.

These immutable value objects are passed between pipeline stages; no stage
mutates what it receives.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from .addresses import normalize


class PipelineState(Enum):
    """States of one forwarding invocation."""
    START = 'Start'
    RESOLVED = 'Resolved'
    NO_TARGETS = 'NoTargets'
    REWRITTEN_ALL = 'RewrittenAll'
    DISPATCHED = 'Dispatched'
    FAILED = 'Failed'

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.NO_TARGETS, PipelineState.DISPATCHED, PipelineState.FAILED)


class FailureKind(Enum):
    """Error taxonomy of a failed invocation."""
    INVALID_TRIGGER = 'InvalidTrigger'
    STORE_IO = 'StoreIOError'
    REWRITE = 'RewriteError'
    SEND = 'SendError'


@dataclass(frozen=True)
class ForwardEvent:
    """
    One triggering event, validated.

    Attributes:
        message_id: SES message id (the stored object name)
        recipients: Original envelope recipients
        cc_recipients: CC addresses shared by every forwarded copy
    """
    message_id: str
    recipients: Tuple[str, ...]
    cc_recipients: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ForwardRequest:
    """
    Unit of work for one original recipient.

    Attributes:
        original_recipient: Recipient the message was sent to
        destinations: Addresses the message is forwarded to
        cc_recipients: CC list shared across all recipients of the message
    """
    original_recipient: str
    destinations: Tuple[str, ...]
    cc_recipients: Tuple[str, ...] = ()

    @property
    def sender_key(self) -> str:
        """Verified address the forward is sent from."""
        return normalize(self.original_recipient)

    @property
    def normalized_destinations(self) -> Tuple[str, ...]:
        return tuple(normalize(d) for d in self.destinations)


@dataclass(frozen=True)
class RewrittenMessage:
    """A raw message rewritten for one ForwardRequest."""
    request: ForwardRequest
    raw: bytes = field(repr=False)

    @property
    def envelope_from(self) -> str:
        return self.request.sender_key

    @property
    def envelope_to(self) -> Tuple[str, ...]:
        return self.request.normalized_destinations


@dataclass(frozen=True)
class Failure:
    """
    Description of a failed stage.

    Attributes:
        kind: Error taxonomy entry
        details: Human-readable description (never message content)
        recipient: Recipient key the failure belongs to, if any
    """
    kind: FailureKind
    details: str
    recipient: Optional[str] = None

    def __str__(self) -> str:
        if self.recipient:
            return f"{self.kind.value} for {self.recipient}: {self.details}"
        return f"{self.kind.value}: {self.details}"


@dataclass(frozen=True)
class StageResult:
    """
    Outcome of one pipeline stage: success(state, value) or failed(failure).
    """
    state: PipelineState
    value: Any = None
    failures: Tuple[Failure, ...] = ()

    @classmethod
    def success(cls, state: PipelineState, value: Any = None) -> 'StageResult':
        return cls(state=state, value=value)

    @classmethod
    def failed(cls, *failures: Failure, value: Any = None) -> 'StageResult':
        return cls(state=PipelineState.FAILED, value=value, failures=tuple(failures))

    @property
    def ok(self) -> bool:
        return self.state is not PipelineState.FAILED


@dataclass
class ForwardingResult:
    """
    Result of one forwarding invocation.

    This explicit result type makes success/failure handling clear
    and prevents exceptions from being used for control flow.

    Attributes:
        success: Whether the invocation reached a successful terminal state
        message_id: SES message id
        state: Terminal pipeline state
        sent_count: Number of messages accepted by the mail sender
        failures: Failures collected on the way (empty on success)
    """
    success: bool
    message_id: str
    state: PipelineState
    sent_count: int = 0
    failures: Tuple[Failure, ...] = ()

    @property
    def error_message(self) -> Optional[str]:
        if not self.failures:
            return None
        return '; '.join(str(f) for f in self.failures)

    @property
    def failure_kind(self) -> Optional[FailureKind]:
        return self.failures[0].kind if self.failures else None

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.success:
            return (
                f"ForwardingResult(success=True, message_id={self.message_id}, "
                f"state={self.state.value}, sent={self.sent_count})"
            )
        else:
            return (
                f"ForwardingResult(success=False, message_id={self.message_id}, "
                f"error={self.error_message})"
            )
