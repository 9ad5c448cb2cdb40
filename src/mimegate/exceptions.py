"""Specialized exceptions raised by mimegate.

Exception hierarchy::

    MimegateError
        MailValidationError (invalid request or message, also ValueError)
        MailConfigurationError (invalid transport setup, also ValueError)
        MailTransportError (backend failed to accept the message)
        MailSendError (send aborted by a transport failure)
"""

from __future__ import annotations

__all__ = [
    "MailConfigurationError",
    "MailSendError",
    "MailTransportError",
    "MailValidationError",
    "MimegateError",
]


class MimegateError(Exception):
    """Base exception for all mimegate errors."""


class MailValidationError(MimegateError, ValueError):
    """The email request or the composed message is incomplete.

    Raised before any transport call is attempted.
    """


class MailConfigurationError(MimegateError, ValueError):
    """A transport or configuration file is misconfigured."""


class MailTransportError(MimegateError):
    """A transport backend failed to deliver a message."""


class MailSendError(MimegateError):
    """Sending failed because the transport raised.

    Attributes:
        reason: Message of the underlying transport error.

    Examples:
        >>> raise MailSendError("quota exceeded")
        Traceback (most recent call last):
        ...
        mimegate.exceptions.MailSendError: Error sending email: quota exceeded
    """

    def __init__(self, reason: str) -> None:
        """Initialize MailSendError.

        Args:
            reason: Message of the underlying transport error.
        """
        super().__init__(f"Error sending email: {reason}")
        self.reason = reason
