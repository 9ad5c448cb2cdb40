"""Compose MIME email from a generic description and hand it to a transport.

Examples:
    >>> from mimegate import EmailRequest, EmailSender, MailEnvironment
    >>> from mimegate.transports import SMTPTransport
    >>> env = MailEnvironment(SMTPTransport("smtp.example.com"))
    >>> request = EmailRequest(from_="a@x.com", to="b@x.com", subject="Hi", text="hello")
    >>> await EmailSender.send(request, env)  # doctest: +SKIP
"""

from mimegate.config import build_transport, load_config
from mimegate.exceptions import (
    MailConfigurationError,
    MailSendError,
    MailTransportError,
    MailValidationError,
    MimegateError,
)
from mimegate.logging import TRACE_LEVEL, setup_logging
from mimegate.mime import MimeMessage
from mimegate.models import Contact, EmailRequest, MailboxRole, NormalizedContact
from mimegate.sender import EmailSender
from mimegate.transport import (
    AsyncMailTransport,
    AsyncTransportWrapper,
    MailEnvironment,
    MailTransport,
    OutboundMessage,
)

__version__ = "0.1.0"

__all__ = [
    "TRACE_LEVEL",
    "AsyncMailTransport",
    "AsyncTransportWrapper",
    "Contact",
    "EmailRequest",
    "EmailSender",
    "MailConfigurationError",
    "MailEnvironment",
    "MailSendError",
    "MailTransport",
    "MailTransportError",
    "MailValidationError",
    "MailboxRole",
    "MimeMessage",
    "MimegateError",
    "NormalizedContact",
    "OutboundMessage",
    "__version__",
    "build_transport",
    "load_config",
    "setup_logging",
]
