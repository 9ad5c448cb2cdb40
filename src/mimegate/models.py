"""Data models for mimegate.

This module defines the values flowing through a send:

- MailboxRole: Enum for recipient header roles (To, Cc, Bcc)
- Contact: Structured address with an optional display name
- NormalizedContact: Contact in the shape expected by the MIME builder
- EmailRequest: Generic email description supplied by callers
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from email.utils import formataddr
from enum import Enum
from typing import Any, Union

from mimegate.exceptions import MailValidationError

__all__ = [
    "Contact",
    "ContactLike",
    "EmailRequest",
    "MailboxRole",
    "NormalizedContact",
]


class MailboxRole(str, Enum):
    """Header a recipient is listed under.

    Attributes:
        TO: Primary recipients, rendered in the ``To`` header.
        CC: Carbon copies, rendered in the ``Cc`` header.
        BCC: Blind copies, never rendered in the message headers.
    """

    TO = "To"
    CC = "Cc"
    BCC = "Bcc"


@dataclass(frozen=True, slots=True)
class Contact:
    """An address with an optional display name.

    Attributes:
        address: Email address.
        name: Display name shown by mail clients.

    Examples:
        >>> Contact("ada@example.com", "Ada").address
        'ada@example.com'
    """

    address: str
    name: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Contact:
        """Build a contact from a ``{"address", "name"}`` mapping.

        Raises:
            MailValidationError: If ``address`` is missing.
        """
        address = data.get("address")
        if not address:
            raise MailValidationError("Contact.address is null or undefined")
        return cls(address=str(address), name=data.get("name"))


#: A bare address string or a structured contact.
ContactLike = Union[str, Contact]


@dataclass(slots=True)
class NormalizedContact:
    """Contact in the uniform shape consumed by :class:`mimegate.mime.MimeMessage`.

    Attributes:
        addr: Email address.
        name: Optional display name.
        role: Recipient role; ``None`` for the sender.
    """

    addr: str
    name: str | None = None
    role: MailboxRole | None = None

    @property
    def formatted(self) -> str:
        """Return the RFC 5322 rendering, e.g. ``Ada <ada@example.com>``."""
        return formataddr((self.name or "", self.addr))


def _coerce_contact(value: Any) -> ContactLike:
    if isinstance(value, (str, Contact)):
        return value
    if isinstance(value, Mapping):
        return Contact.from_mapping(value)
    raise MailValidationError(f"Unsupported contact value: {value!r}")


def _coerce_contacts(value: Any) -> ContactLike | list[ContactLike] | None:
    if value is None:
        return None
    if isinstance(value, Sequence) and not isinstance(value, str):
        return [_coerce_contact(item) for item in value]
    return _coerce_contact(value)


@dataclass(slots=True)
class EmailRequest:
    """Generic description of an email to send.

    Field presence is not enforced here. :meth:`mimegate.sender.EmailSender.compose`
    rejects requests missing ``from_``, ``to`` or ``subject``.

    Attributes:
        from_: Sender, as an address string or a :class:`Contact`.
        to: Recipient address(es). Also used verbatim as the envelope
            recipients handed to the transport.
        subject: Subject line.
        text: Optional plain text body.
        html: Optional HTML body.
        cc: Optional carbon-copy contact(s).
        bcc: Optional blind-copy contact(s).

    Examples:
        >>> request = EmailRequest(from_="a@x.com", to="b@x.com", subject="Hi", text="hello")
        >>> request.from_address
        'a@x.com'
    """

    from_: ContactLike | None
    to: str | Sequence[ContactLike] | None
    subject: str | None
    text: str | None = None
    html: str | None = None
    cc: ContactLike | Sequence[ContactLike] | None = None
    bcc: ContactLike | Sequence[ContactLike] | None = None

    @property
    def from_address(self) -> str | None:
        """Return the envelope sender address."""
        if self.from_ is None:
            return None
        if isinstance(self.from_, str):
            return self.from_
        if isinstance(self.from_, Mapping):
            return self.from_.get("address")
        return self.from_.address

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> EmailRequest:
        """Build a request from a decoded JSON payload.

        The payload uses the wire keys ``from``, ``to``, ``subject``, ``text``,
        ``html``, ``cc`` and ``bcc``. Structured contacts are objects with
        ``address`` and an optional ``name``.

        Raises:
            MailValidationError: If the payload is not a mapping or holds an
                unsupported contact value.

        Examples:
            >>> request = EmailRequest.from_mapping(
            ...     {"from": {"address": "a@x.com", "name": "A"}, "to": "b@x.com", "subject": "Hi"}
            ... )
            >>> request.from_
            Contact(address='a@x.com', name='A')
        """
        if not isinstance(data, Mapping):
            raise MailValidationError(f"Email payload must be a mapping, got {type(data).__name__}")

        sender = data.get("from")
        to = _coerce_contacts(data.get("to"))
        if isinstance(to, Contact):
            to = [to]
        return cls(
            from_=_coerce_contact(sender) if sender is not None else None,
            to=to,
            subject=data.get("subject"),
            text=data.get("text"),
            html=data.get("html"),
            cc=_coerce_contacts(data.get("cc")),
            bcc=_coerce_contacts(data.get("bcc")),
        )
