"""SMTP transport backed by :mod:`smtplib`.

The envelope is passed to ``sendmail`` explicitly instead of being derived
from the message headers, so Bcc recipients and envelope routing stay under
the caller's control.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mimegate.exceptions import MailConfigurationError, MailTransportError
from mimegate.logging import TRACE_LEVEL
from mimegate.transport import MailTransport

if TYPE_CHECKING:
    from mimegate.transport import OutboundMessage

__all__ = ["SMTPCredentials", "SMTPSecurity", "SMTPTransport"]

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SMTPCredentials:
    """Login used after the connection is secured.

    Attributes:
        username: SMTP account name.
        password: SMTP account password.
    """

    username: str | None = None
    password: str | None = None

    @property
    def enabled(self) -> bool:
        """Return True when a username is configured."""
        return bool(self.username)


@dataclass(frozen=True, slots=True)
class SMTPSecurity:
    """Connection security options.

    Attributes:
        use_ssl: Connect with implicit TLS (``SMTP_SSL``, usually port 465).
        use_starttls: Upgrade a plain connection with STARTTLS. Ignored when
            ``use_ssl`` is set.
        verify_certificate: Verify the server certificate.
    """

    use_ssl: bool = False
    use_starttls: bool = True
    verify_certificate: bool = True

    def ssl_context(self) -> ssl.SSLContext:
        """Build the TLS context for SSL or STARTTLS."""
        context = ssl.create_default_context()
        if not self.verify_certificate:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context


class SMTPTransport(MailTransport):
    """Synchronous SMTP delivery.

    Wrap it in :class:`mimegate.transport.MailEnvironment` (or
    :class:`mimegate.transport.AsyncTransportWrapper`) for async senders.

    Args:
        host: SMTP server host name.
        port: Server port (default: 587).
        credentials: Optional login.
        security: TLS options (default: STARTTLS with verification).
        timeout: Socket timeout in seconds (default: 30.0).

    Raises:
        MailConfigurationError: If *host* is empty, *port* is out of range
            or *timeout* is not positive.

    Examples:
        >>> transport = SMTPTransport("smtp.example.com")
        >>> transport.port
        587
    """

    def __init__(
        self,
        host: str,
        *,
        port: int = 587,
        credentials: SMTPCredentials | None = None,
        security: SMTPSecurity | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not host:
            raise MailConfigurationError("SMTP host is required")
        if not 0 < port < 65536:
            raise MailConfigurationError(f"Invalid SMTP port: {port}")
        if timeout <= 0:
            raise MailConfigurationError("Timeout must be greater than 0")

        self.host = host
        self.port = port
        self.credentials = credentials or SMTPCredentials()
        self.security = security or SMTPSecurity()
        self.timeout = timeout

    def send(self, message: OutboundMessage) -> None:
        """Deliver ``message`` to the configured SMTP server.

        Raises:
            MailTransportError: If the connection, the login or the
                delivery fails, or the server refuses every recipient.
        """
        recipients = message.recipients
        if log.isEnabledFor(TRACE_LEVEL):
            log.log(TRACE_LEVEL, "[SMTP] Connecting to %s:%d (ssl=%s)", self.host, self.port, self.security.use_ssl)
            log.log(TRACE_LEVEL, "[SMTP] MAIL FROM: %s, RCPT TO: %s", message.from_address, recipients)

        try:
            with self._connect() as client:
                client.ehlo()
                if not self.security.use_ssl and self.security.use_starttls:
                    if not client.has_extn("STARTTLS"):
                        raise MailTransportError(f"SMTP server {self.host} does not support STARTTLS")
                    client.starttls(context=self.security.ssl_context())
                    client.ehlo()
                if self.credentials.enabled:
                    client.login(self.credentials.username, self.credentials.password)
                refused = client.sendmail(message.from_address, recipients, message.as_bytes())
        except smtplib.SMTPException as e:
            raise MailTransportError(f"SMTP delivery failed: {e}") from e
        except OSError as e:
            raise MailTransportError(f"SMTP connection to {self.host}:{self.port} failed: {e}") from e

        if refused:
            log.warning("SMTP server refused recipients: %s", ", ".join(refused))
        log.debug("Email sent via SMTP to %d recipient(s)", len(recipients) - len(refused or {}))

    def _connect(self) -> smtplib.SMTP:
        if self.security.use_ssl:
            return smtplib.SMTP_SSL(
                host=self.host,
                port=self.port,
                timeout=self.timeout,
                context=self.security.ssl_context(),
            )
        return smtplib.SMTP(host=self.host, port=self.port, timeout=self.timeout)
