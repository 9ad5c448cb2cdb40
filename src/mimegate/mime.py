"""MIME message builder.

:class:`MimeMessage` collects normalized contacts, a subject and body parts,
then renders them with the standard library :mod:`email` package. The raw
output uses CRLF line endings and ASCII-safe transfer encodings, so it can be
handed to SMTP servers or raw-message APIs unchanged.
"""

from __future__ import annotations

import logging
from email import policy
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import TYPE_CHECKING

from mimegate.exceptions import MailValidationError
from mimegate.logging import TRACE_LEVEL
from mimegate.models import MailboxRole, NormalizedContact

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ["CONTENT_TYPES", "MimeMessage"]

log = logging.getLogger(__name__)

#: Body content types accepted by :meth:`MimeMessage.add_message`, in render order.
CONTENT_TYPES = ("text/plain", "text/html")

# CRLF line endings, non-ASCII bodies go out as quoted-printable or base64
_POLICY = policy.SMTP.clone(cte_type="7bit")


def _check_header_value(field: str, value: str) -> None:
    if "\r" in value or "\n" in value:
        raise MailValidationError(f"{field} must not contain line breaks")


class MimeMessage:
    """Builder for a single outgoing message.

    Examples:
        >>> msg = MimeMessage()
        >>> msg.set_sender(NormalizedContact(addr="a@x.com"))
        >>> msg.set_recipients([NormalizedContact(addr="b@x.com", role=MailboxRole.TO)])
        >>> msg.set_subject("Hi")
        >>> msg.add_message("text/plain", "hello")
        >>> "hello" in msg.as_raw()
        True
    """

    def __init__(self) -> None:
        self._sender: NormalizedContact | None = None
        self._recipients: list[NormalizedContact] = []
        self._subject: str | None = None
        self._parts: dict[str, str] = {}

    @property
    def sender(self) -> NormalizedContact | None:
        """Return the sender contact."""
        return self._sender

    @property
    def subject(self) -> str | None:
        """Return the subject line."""
        return self._subject

    @property
    def recipients(self) -> list[NormalizedContact]:
        """Return every recipient (To, Cc and Bcc) in insertion order."""
        return list(self._recipients)

    @property
    def parts(self) -> list[tuple[str, str]]:
        """Return ``(content_type, data)`` body parts, plain text first."""
        return [(ctype, self._parts[ctype]) for ctype in CONTENT_TYPES if ctype in self._parts]

    def recipients_by_role(self, role: MailboxRole) -> list[NormalizedContact]:
        """Return the recipients listed under ``role``."""
        return [contact for contact in self._recipients if contact.role is role]

    def set_sender(self, contact: NormalizedContact) -> None:
        """Set the ``From`` contact."""
        if not contact.addr:
            raise MailValidationError("Sender address must not be empty")
        _check_header_value("Sender address", contact.addr)
        self._sender = contact

    def set_recipients(self, contacts: Iterable[NormalizedContact]) -> None:
        """Replace the ``To`` recipients.

        Contacts without a role are treated as ``To``. Cc and Bcc recipients
        already added are kept.
        """
        kept = [contact for contact in self._recipients if contact.role not in (None, MailboxRole.TO)]
        self._recipients = []
        self.add_recipients(contacts, default_role=MailboxRole.TO)
        self._recipients.extend(kept)

    def add_recipients(
        self,
        contacts: Iterable[NormalizedContact],
        *,
        default_role: MailboxRole = MailboxRole.TO,
    ) -> None:
        """Append recipients, tagging untagged contacts with ``default_role``."""
        for contact in contacts:
            if not contact.addr:
                raise MailValidationError("Recipient address must not be empty")
            _check_header_value("Recipient address", contact.addr)
            if contact.role is None:
                contact.role = default_role
            self._recipients.append(contact)

    def set_subject(self, subject: str) -> None:
        """Set the subject line."""
        _check_header_value("Subject", subject)
        self._subject = subject

    def add_message(self, content_type: str, data: str) -> None:
        """Add a body part.

        Adding the same content type twice replaces the earlier part.

        Raises:
            MailValidationError: If ``content_type`` is not ``text/plain``
                or ``text/html``.
        """
        if content_type not in CONTENT_TYPES:
            raise MailValidationError(
                f"Unsupported content type {content_type!r}. Allowed: {', '.join(CONTENT_TYPES)}"
            )
        self._parts[content_type] = data

    def to_email_message(self) -> EmailMessage:
        """Render the builder state as a standard library message.

        Raises:
            MailValidationError: If the sender, the ``To`` recipients or
                every body part is missing.
        """
        if self._sender is None:
            raise MailValidationError("Message sender is not set")
        to_contacts = self.recipients_by_role(MailboxRole.TO)
        if not to_contacts:
            raise MailValidationError("Message has no To recipient")
        parts = self.parts
        if not parts:
            raise MailValidationError("No content added to the message")

        message = EmailMessage(policy=_POLICY)
        message["From"] = self._sender.formatted
        message["To"] = ", ".join(contact.formatted for contact in to_contacts)
        cc_contacts = self.recipients_by_role(MailboxRole.CC)
        if cc_contacts:
            message["Cc"] = ", ".join(contact.formatted for contact in cc_contacts)
        if self._subject is not None:
            message["Subject"] = self._subject
        message["Date"] = formatdate(usegmt=True)
        _, at, domain = self._sender.addr.rpartition("@")
        message["Message-ID"] = make_msgid(domain=domain if at and domain else None)

        first_type, first_data = parts[0]
        message.set_content(first_data, subtype=first_type.split("/")[1])
        for content_type, data in parts[1:]:
            message.add_alternative(data, subtype=content_type.split("/")[1])
        return message

    def as_raw(self) -> str:
        """Serialize the message with CRLF line endings."""
        raw = self.to_email_message().as_string()
        if log.isEnabledFor(TRACE_LEVEL):
            log.log(TRACE_LEVEL, "[MIME] Rendered %d characters, %d body part(s)", len(raw), len(self._parts))
        return raw
