"""Captured protocol messages and the one-shot capture slot.

The capture endpoint runs in the HTTP server's request thread while the
dispatcher drives the target from the orchestrator thread. A CaptureSlot is
the only object they share: the endpoint publishes into it, the dispatcher
takes from it once, and a fresh slot is used for every live round trip.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from webssotest.core.errors import CaptureAbsentError, DecodeError, UnsupportedBindingError
from webssotest.core.saml.bindings import Binding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapturedMessage:
    """A protocol message intercepted by the capture endpoint."""

    binding: Binding
    raw_xml: str | None = None
    error: str | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_supported(self) -> bool:
        """Whether the binding can be decoded by the harness."""
        return self.binding != Binding.HTTP_ARTIFACT

    def require_xml(self) -> str:
        """Return the decoded XML.

        Raises:
            UnsupportedBindingError: If the message used the artifact binding.
            DecodeError: If the endpoint could not decode the payload.
        """
        if not self.is_supported:
            raise UnsupportedBindingError(
                f"The message was sent using the {self.binding.short_name} binding, "
                "which is not supported"
            )
        if self.error is not None:
            raise DecodeError(
                f"The message sent using the {self.binding.short_name} binding "
                f"could not be decoded: {self.error}"
            )
        if self.raw_xml is None:
            raise DecodeError("The captured message carried no content")
        return self.raw_xml

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "binding": self.binding.value,
            "raw_xml": self.raw_xml,
            "error": self.error,
            "received_at": self.received_at.isoformat(),
        }


class CaptureSlot:
    """Single-writer, single-reader holding area for one captured message."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._message: CapturedMessage | None = None

    @property
    def is_empty(self) -> bool:
        """Whether no unconsumed message is held."""
        with self._condition:
            return self._message is None

    def reset(self) -> None:
        """Discard any held message."""
        with self._condition:
            if self._message is not None:
                logger.debug("Discarding unconsumed captured message")
            self._message = None

    def publish(self, message: CapturedMessage) -> None:
        """Store a message, replacing any unconsumed one.

        Never blocks on the reader.
        """
        with self._condition:
            if self._message is not None:
                logger.warning(
                    "A second message was captured before the first was consumed; "
                    "keeping the latest one"
                )
            self._message = message
            self._condition.notify_all()

    def take(self, timeout: float | None = 0.0) -> CapturedMessage:
        """Consume the held message.

        Args:
            timeout: Seconds to wait for a message to be published. 0 checks
                without waiting, None waits indefinitely.

        Returns:
            The captured message. The slot is empty afterwards.

        Raises:
            CaptureAbsentError: If no message was published in time.
        """
        with self._condition:
            if not self._condition.wait_for(lambda: self._message is not None, timeout=timeout):
                raise CaptureAbsentError("Could not retrieve the message that was sent by the target")
            message = self._message
            self._message = None
        assert message is not None
        return message
