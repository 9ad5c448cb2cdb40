"""Turn an :class:`~mimegate.models.EmailRequest` into a delivered message.

The sender validates the request, normalizes its contacts, composes the MIME
message and makes exactly one transport call per send. Validation happens
before the transport is touched, so a failed send never leaves a partial
delivery behind.

Examples:
    >>> from mimegate import EmailRequest, EmailSender, MailEnvironment
    >>> request = EmailRequest(from_="a@x.com", to="b@x.com", subject="Hi", text="hello")
    >>> await EmailSender.send(request, MailEnvironment(transport))  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from mimegate.exceptions import MailSendError, MailValidationError
from mimegate.logging import TRACE_LEVEL
from mimegate.mime import MimeMessage
from mimegate.models import Contact, MailboxRole, NormalizedContact
from mimegate.transport import OutboundMessage

if TYPE_CHECKING:
    from mimegate.models import ContactLike, EmailRequest
    from mimegate.transport import MailEnvironment

__all__ = ["EmailSender"]

log = logging.getLogger(__name__)


class EmailSender:
    """Stateless email composition and dispatch."""

    @staticmethod
    async def send(request: EmailRequest, environment: MailEnvironment) -> None:
        """Compose ``request`` and hand it to the environment's transport.

        The envelope sender is the ``from_`` address. The envelope recipients
        are ``request.to`` as given; only the ``To`` header goes through
        contact normalization.

        Args:
            request: Email to send.
            environment: Handle exposing the transport collaborator.

        Raises:
            MailValidationError: If the request is incomplete. The transport
                is not called.
            MailSendError: If the transport raised.
        """
        message = EmailSender.compose(request)
        raw = message.as_raw()

        outbound = OutboundMessage(
            from_address=request.from_address or "",
            to_addresses=request.to,
            raw=raw,
        )
        if log.isEnabledFor(TRACE_LEVEL):
            log.log(TRACE_LEVEL, "[SEND] From: %s, To: %s", outbound.from_address, outbound.to_addresses)

        try:
            await environment.transport.send(outbound)
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise MailSendError(str(e)) from e

        log.debug("Email handed to transport: %s", message.subject)

    @staticmethod
    def compose(request: EmailRequest | None) -> MimeMessage:
        """Validate ``request`` and build its MIME message, not yet serialized.

        Raises:
            MailValidationError: If the request, its sender, its recipients
                or its subject is missing.
        """
        if request is None:
            raise MailValidationError("Email is null or undefined")

        sender = EmailSender.convert_contact(request.from_)
        if sender is None or not sender.addr:
            raise MailValidationError("Email.from is null or undefined")

        to_contacts = EmailSender.convert_contacts(request.to, MailboxRole.TO)
        if not to_contacts:
            raise MailValidationError("Email.to is null, undefined, or empty")

        if not request.subject:
            raise MailValidationError("Email.subject is null or undefined")

        msg = MimeMessage()
        msg.set_sender(sender)
        msg.set_recipients(to_contacts)
        msg.set_subject(request.subject)

        if request.cc:
            msg.add_recipients(EmailSender.convert_contacts(request.cc, MailboxRole.CC))
        if request.bcc:
            msg.add_recipients(EmailSender.convert_contacts(request.bcc, MailboxRole.BCC))

        if request.text:
            msg.add_message("text/plain", request.text)
        if request.html:
            msg.add_message("text/html", request.html)

        log.debug("Composed email with %d recipient(s)", len(msg.recipients))
        return msg

    @staticmethod
    def convert_contacts(
        contacts: ContactLike | Mapping[str, Any] | Sequence[ContactLike | Mapping[str, Any]] | None,
        role: MailboxRole | None = None,
    ) -> list[NormalizedContact]:
        """Normalize one contact or a list of them, tagging each with ``role``.

        Contacts with an empty address are dropped.

        Examples:
            >>> EmailSender.convert_contacts("c@x.com", MailboxRole.CC)
            [NormalizedContact(addr='c@x.com', name=None, role=<MailboxRole.CC: 'Cc'>)]
            >>> EmailSender.convert_contacts(None)
            []
        """
        if not contacts:
            return []

        items = [contacts] if isinstance(contacts, (str, Contact, Mapping)) else list(contacts)

        converted: list[NormalizedContact] = []
        for item in items:
            contact = EmailSender.convert_contact(item)
            if contact is None or not contact.addr:
                continue
            if role is not None:
                contact.role = role
            converted.append(contact)
        return converted

    @staticmethod
    def convert_contact(contact: ContactLike | Mapping[str, Any] | None) -> NormalizedContact | None:
        """Normalize a single contact.

        Mappings with ``address`` and an optional ``name`` are accepted.

        Examples:
            >>> EmailSender.convert_contact("a@b.com")
            NormalizedContact(addr='a@b.com', name=None, role=None)
            >>> EmailSender.convert_contact(Contact("a@b.com", "A"))
            NormalizedContact(addr='a@b.com', name='A', role=None)
        """
        if contact is None:
            return None
        if isinstance(contact, str):
            return NormalizedContact(addr=contact)
        if isinstance(contact, Mapping):
            contact = Contact.from_mapping(contact)
        return NormalizedContact(addr=contact.address, name=contact.name)
