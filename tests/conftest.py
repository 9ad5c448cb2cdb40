"""Shared pytest fixtures for the mimegate test suite."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from mimegate.models import EmailRequest
from mimegate.transport import AsyncMailTransport, OutboundMessage

# pylint: disable=redefined-outer-name


class RecordingTransport(AsyncMailTransport):
    """In-memory async transport used for assertions in tests."""

    def __init__(self) -> None:
        self.sent: list[OutboundMessage] = []

    async def send(self, message: OutboundMessage) -> None:
        """Store the message in the sent list."""
        self.sent.append(message)


class FailingTransport(AsyncMailTransport):
    """Async transport double that raises on send."""

    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls = 0

    async def send(self, message: OutboundMessage) -> None:
        """Raise the configured error unconditionally."""
        self.calls += 1
        raise self.error


@pytest.fixture
def recording_transport() -> RecordingTransport:
    """Provide a fresh recording transport."""
    return RecordingTransport()


@pytest.fixture
def failing_transport() -> Callable[[Exception], FailingTransport]:
    """Build transports that raise the given error."""

    def _make(error: Exception) -> FailingTransport:
        return FailingTransport(error)

    return _make


@pytest.fixture
def simple_request() -> EmailRequest:
    """Return the minimal valid request with a plain text body."""
    return EmailRequest(from_="a@x.com", to="b@x.com", subject="Hi", text="hello")


@pytest.fixture
def outbound_message() -> OutboundMessage:
    """Return an envelope carrying a tiny raw message."""
    raw = "From: a@x.com\r\nTo: b@x.com\r\nSubject: Hi\r\n\r\nhello\r\n"
    return OutboundMessage(from_address="a@x.com", to_addresses="b@x.com", raw=raw)
