"""
Forwarding pipeline - core business logic.

This module drives one forwarding invocation as an explicit state machine:

    Start -> Resolved -> NoTargets
                      -> RewrittenAll -> Dispatched
    (any stage)       -> Failed

1. Resolve the original recipients against the mapping table
2. Fetch the raw message from the message store (once)
3. Rewrite the message for every resolved recipient
4. Send every rewritten message through the mail sender (concurrently)
5. Delete the stored message

Each stage returns a StageResult. Failures are returned as a
ForwardingResult with success=False; no exceptions propagate out of
process_event() or forward().
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import ForwarderConfig
from .errors import InvalidTriggerError, RewriteError
from .events import parse_ses_event
from .models import (
    Failure,
    FailureKind,
    ForwardEvent,
    ForwardingResult,
    ForwardRequest,
    PipelineState,
    RewrittenMessage,
    StageResult,
)
from .recipients import resolve
from .rewriter import parse_message, rewrite_message

logger = logging.getLogger(__name__)


class ForwardingPipeline:
    """
    Forwards one stored message per invocation.

    The message store needs fetch(message_id) -> bytes and
    delete(message_id); the mail sender needs
    send(envelope_from, envelope_to, raw).
    """

    def __init__(self, config: ForwarderConfig, store: Any, sender: Any):
        self.config = config
        self.store = store
        self.sender = sender

    def process_event(self, event: Dict[str, Any]) -> ForwardingResult:
        """
        Validate a Lambda event and forward the message it refers to.

        Args:
            event: SES receipt Lambda event

        Returns:
            ForwardingResult with success=True or success=False (errors logged)
        """
        try:
            trigger = parse_ses_event(event)
        except InvalidTriggerError as e:
            logger.error(f"Rejected triggering event: {e}")
            return ForwardingResult(
                success=False,
                message_id='UNKNOWN',
                state=PipelineState.FAILED,
                failures=(Failure(FailureKind.INVALID_TRIGGER, str(e)),),
            )
        return self.forward(trigger)

    def forward(self, trigger: ForwardEvent) -> ForwardingResult:
        """
        Run the state machine for one validated event.

        Args:
            trigger: Message id, recipients and CC list

        Returns:
            ForwardingResult describing the terminal state
        """
        message_id = trigger.message_id
        logger.info(
            f"Forwarding message {message_id}: "
            f"recipients={len(trigger.recipients)}, cc={len(trigger.cc_recipients)}"
        )
        start_time = time.time()

        stage = self._resolve(trigger)
        if stage.state is PipelineState.NO_TARGETS:
            logger.info(
                f"Finishing process. No new recipients found for original "
                f"destinations: {', '.join(trigger.recipients)}"
            )
            return self._finish(message_id, stage)

        requests: Tuple[ForwardRequest, ...] = stage.value
        stage = self._fetch_and_rewrite(message_id, requests)
        if not stage.ok:
            return self._finish(message_id, stage)

        stage = self._dispatch(message_id, stage.value)
        if not stage.ok:
            return self._finish(message_id, stage, sent_count=stage.value or 0)

        sent_count = stage.value
        delete_failure = self._delete(message_id)
        if delete_failure is not None:
            return self._finish(message_id, StageResult.failed(delete_failure), sent_count=sent_count)

        logger.info(
            f"Process finished successfully for {message_id}: "
            f"sent={sent_count}, time={time.time() - start_time:.3f}s"
        )
        return self._finish(message_id, stage, sent_count=sent_count)

    def _resolve(self, trigger: ForwardEvent) -> StageResult:
        """Start -> Resolved | NoTargets."""
        resolved = resolve(trigger.recipients, self.config.mapping, self.config.allow_plus_sign)
        if not resolved:
            return StageResult.success(PipelineState.NO_TARGETS)

        requests = tuple(
            ForwardRequest(
                original_recipient=recipient,
                destinations=destinations,
                cc_recipients=trigger.cc_recipients,
            )
            for recipient, destinations in resolved.items()
        )
        for request in requests:
            logger.info(
                f"Resolved {request.original_recipient} -> "
                f"{', '.join(request.destinations)}"
            )
        return StageResult.success(PipelineState.RESOLVED, requests)

    def _fetch_and_rewrite(
        self,
        message_id: str,
        requests: Sequence[ForwardRequest]
    ) -> StageResult:
        """Resolved -> RewrittenAll."""
        try:
            raw = self.store.fetch(message_id)
        except Exception as e:
            logger.error(f"Failed to fetch message {message_id}: {e}", exc_info=True)
            return StageResult.failed(Failure(FailureKind.STORE_IO, f"fetch failed: {e}"))
        logger.info(f"Fetched message {message_id}: {len(raw):,} bytes")

        try:
            parsed = parse_message(raw)
        except RewriteError as e:
            logger.error(f"Failed to parse message {message_id}: {e}")
            return StageResult.failed(Failure(FailureKind.REWRITE, str(e)))

        rewritten: List[RewrittenMessage] = []
        failures: List[Failure] = []
        for request in requests:
            try:
                raw_out = rewrite_message(parsed, request, self.config.subject_prefix)
            except RewriteError as e:
                logger.error(
                    f"Failed to rewrite message {message_id} "
                    f"for {request.original_recipient}: {e}"
                )
                failures.append(Failure(FailureKind.REWRITE, str(e), request.original_recipient))
                continue
            rewritten.append(RewrittenMessage(request=request, raw=raw_out))

        # Any rewrite failure aborts the invocation before anything is sent
        if failures:
            return StageResult.failed(*failures)
        return StageResult.success(PipelineState.REWRITTEN_ALL, tuple(rewritten))

    def _send_one(self, message_id: str, message: RewrittenMessage) -> Optional[Failure]:
        envelope_from = message.envelope_from
        envelope_to = list(message.envelope_to)
        logger.info(
            f"Sending message {message_id}. Original recipient: {envelope_from}. "
            f"Transformed recipients: {', '.join(envelope_to)}."
        )
        try:
            self.sender.send(envelope_from, envelope_to, message.raw)
        except Exception as e:
            logger.error(
                f"Send failed for message {message_id}, recipient {envelope_from}: {e}",
                exc_info=True
            )
            return Failure(FailureKind.SEND, str(e), envelope_from)
        return None

    def _dispatch(self, message_id: str, messages: Sequence[RewrittenMessage]) -> StageResult:
        """RewrittenAll -> Dispatched. Every send is attempted before failing."""
        workers = max(1, min(self.config.send_concurrency, len(messages)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(lambda m: self._send_one(message_id, m), messages))

        failures = [f for f in outcomes if f is not None]
        sent_count = len(messages) - len(failures)
        if failures:
            logger.warning(
                f"Message {message_id}: {len(failures)} of {len(messages)} send(s) failed"
            )
            return StageResult.failed(*failures, value=sent_count)
        return StageResult.success(PipelineState.DISPATCHED, sent_count)

    def _delete(self, message_id: str) -> Optional[Failure]:
        try:
            self.store.delete(message_id)
        except Exception as e:
            # Sends already happened and cannot be undone
            logger.error(f"Failed to delete message {message_id} after sending: {e}", exc_info=True)
            return Failure(FailureKind.STORE_IO, f"delete failed: {e}")
        return None

    @staticmethod
    def _finish(message_id: str, stage: StageResult, sent_count: int = 0) -> ForwardingResult:
        return ForwardingResult(
            success=stage.ok,
            message_id=message_id,
            state=stage.state,
            sent_count=sent_count,
            failures=stage.failures,
        )
