"""Transport implementations for mail delivery.

Available transports:
    - SMTPTransport: Standard SMTP protocol (sync)
    - SesTransport: AWS SES raw email (async)
"""

from mimegate.transports.ses import SesTransport
from mimegate.transports.smtp import SMTPCredentials, SMTPSecurity, SMTPTransport

__all__ = [
    "SMTPCredentials",
    "SMTPSecurity",
    "SMTPTransport",
    "SesTransport",
]
