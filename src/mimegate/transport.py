"""Transport contract for outbound mail.

A transport receives an :class:`OutboundMessage`, the envelope sender, the
envelope recipients and the raw MIME payload, and hands it to a delivery
service. Async transports are awaited directly; sync transports are wrapped
with :class:`AsyncTransportWrapper` so the event loop is not blocked.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from mimegate.models import Contact

if TYPE_CHECKING:
    from concurrent.futures import Executor

__all__ = [
    "AnyTransport",
    "AsyncMailTransport",
    "AsyncTransportWrapper",
    "MailEnvironment",
    "MailTransport",
    "OutboundMessage",
]

log = logging.getLogger(__name__)


def _envelope_address(item: Any) -> str:
    if isinstance(item, Contact):
        return item.address
    if isinstance(item, Mapping):
        return Contact.from_mapping(item).address
    return str(item)


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    """Envelope and payload handed to a transport.

    Attributes:
        from_address: Envelope sender.
        to_addresses: Envelope recipients, exactly as supplied by the caller.
        raw: Serialized MIME message.

    Examples:
        >>> OutboundMessage("a@x.com", "b@x.com", "...").recipients
        ['b@x.com']
    """

    from_address: str
    to_addresses: Any
    raw: str

    @property
    def recipients(self) -> list[str]:
        """Return the envelope recipients as a list of address strings."""
        value = self.to_addresses
        if isinstance(value, (str, Contact, Mapping)):
            value = [value]
        return [_envelope_address(item) for item in value]

    def as_bytes(self) -> bytes:
        """Return the raw payload encoded for the wire."""
        return self.raw.encode("utf-8")


class MailTransport(ABC):
    """Synchronous transport interface."""

    @abstractmethod
    def send(self, message: OutboundMessage) -> None:
        """Deliver ``message``, raising on failure."""


class AsyncMailTransport(ABC):
    """Asynchronous transport interface."""

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """Deliver ``message``, raising on failure."""


AnyTransport = Union[MailTransport, AsyncMailTransport]


class AsyncTransportWrapper(AsyncMailTransport):
    """Run a synchronous transport in an executor.

    Args:
        transport: The wrapped sync transport.
        executor: Executor used for the blocking call; ``None`` uses the
            loop's default executor.
    """

    def __init__(self, transport: MailTransport, *, executor: Executor | None = None) -> None:
        self._transport = transport
        self._executor = executor

    @property
    def transport(self) -> MailTransport:
        """Return the wrapped sync transport."""
        return self._transport

    async def send(self, message: OutboundMessage) -> None:
        log.debug("Running %s.send in executor", type(self._transport).__name__)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._transport.send, message)


class MailEnvironment:
    """Environment handle giving access to the transport collaborator.

    Sync transports are wrapped on construction, so :attr:`transport` can
    always be awaited.

    Examples:
        >>> class Null(MailTransport):
        ...     def send(self, message):
        ...         pass
        >>> isinstance(MailEnvironment(Null()).transport, AsyncTransportWrapper)
        True
    """

    def __init__(self, transport: AnyTransport) -> None:
        if isinstance(transport, MailTransport):
            transport = AsyncTransportWrapper(transport)
        elif not isinstance(transport, AsyncMailTransport):
            raise TypeError(f"Expected a mail transport, got {type(transport).__name__}")
        self._transport: AsyncMailTransport = transport

    @property
    def transport(self) -> AsyncMailTransport:
        """Return the async transport."""
        return self._transport

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> MailEnvironment:
        """Build an environment from a loaded configuration.

        See :func:`mimegate.config.build_transport` for the expected layout.
        """
        from mimegate.config import build_transport  # pylint: disable=import-outside-toplevel

        return cls(build_transport(config))
