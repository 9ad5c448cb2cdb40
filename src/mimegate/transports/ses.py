"""Amazon SES backend.

:class:`SesTransport` forwards an :class:`~mimegate.transport.OutboundMessage`
to ``SendRawEmail``. The envelope travels as ``Source``/``Destinations`` and
the MIME payload is passed through untouched, so Bcc recipients never leak
into headers SES would otherwise rebuild.

boto3 is an optional dependency (``pip install mimegate[ses]``) and is only
imported on the first send.

Examples:
    >>> from mimegate import MailEnvironment
    >>> env = MailEnvironment(SesTransport(region="eu-west-1"))  # doctest: +SKIP
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mimegate.exceptions import MailConfigurationError, MailTransportError
from mimegate.logging import TRACE_LEVEL
from mimegate.transport import AsyncMailTransport

if TYPE_CHECKING:
    from mimegate.transport import OutboundMessage

__all__ = ["SesResponse", "SesTransport"]

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SesResponse:
    """Outcome of an accepted ``SendRawEmail`` call.

    Attributes:
        message_id: Identifier SES assigned to the message.
    """

    message_id: str


def _import_boto() -> tuple[Any, Any, Any]:
    try:
        import boto3  # pylint: disable=import-outside-toplevel
        from botocore import exceptions as boto_errors  # pylint: disable=import-outside-toplevel
        from botocore.config import Config  # pylint: disable=import-outside-toplevel
    except ImportError as e:
        raise MailConfigurationError(
            "boto3 is required for SesTransport. Install with: pip install mimegate[ses]"
        ) from e
    return boto3, Config, boto_errors


def _raw_email_params(message: OutboundMessage) -> dict[str, Any]:
    return {
        "Source": message.from_address,
        "Destinations": message.recipients,
        "RawMessage": {"Data": message.as_bytes()},
    }


def _translate_boto_error(exc: Exception, boto_errors: Any) -> Exception | None:
    """Map a botocore failure onto the mimegate error it stands for."""
    if isinstance(exc, boto_errors.ClientError):
        detail = exc.response.get("Error", {}).get("Message", str(exc))
        return MailTransportError(f"SES API error: {detail}")
    if isinstance(exc, boto_errors.NoCredentialsError):
        return MailConfigurationError(f"AWS credentials not found: {exc}")
    if isinstance(exc, boto_errors.EndpointConnectionError):
        return MailTransportError(f"SES endpoint connection failed: {exc}")
    return None


class SesTransport(AsyncMailTransport):
    """Deliver raw MIME messages through Amazon SES.

    Credentials are optional. When both keys are omitted the boto3 default
    chain applies (environment, shared config, instance role).

    Args:
        region: SES region.
        aws_access_key_id: Access key, paired with ``aws_secret_access_key``.
        aws_secret_access_key: Secret key, paired with ``aws_access_key_id``.
        timeout: Connect and read timeout, in seconds.

    Raises:
        MailConfigurationError: On an empty region, a half-given key pair or
            a non-positive timeout.
    """

    def __init__(
        self,
        *,
        region: str = "eu-west-3",
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not region:
            raise MailConfigurationError("AWS region is required")
        if (aws_access_key_id is None) is not (aws_secret_access_key is None):
            raise MailConfigurationError("Both aws_access_key_id and aws_secret_access_key must be provided together")
        if timeout <= 0:
            raise MailConfigurationError("Timeout must be greater than 0")

        self._region = region
        self._aws_access_key_id = aws_access_key_id
        self._aws_secret_access_key = aws_secret_access_key
        self._timeout = timeout
        self._last_response: SesResponse | None = None

    @property
    def last_response(self) -> SesResponse | None:
        """Return what SES answered to the most recent accepted message."""
        return self._last_response

    async def send(self, message: OutboundMessage) -> None:
        boto3, boto_config_cls, boto_errors = _import_boto()
        params = _raw_email_params(message)
        if log.isEnabledFor(TRACE_LEVEL):
            log.log(
                TRACE_LEVEL,
                "[SES] region=%s Source=%s Destinations=%s",
                self._region,
                params["Source"],
                params["Destinations"],
            )

        client = self._create_client(boto3, boto_config_cls)
        loop = asyncio.get_running_loop()
        try:
            response: dict[str, Any] = await loop.run_in_executor(None, lambda: client.send_raw_email(**params))
        except Exception as e:  # pylint: disable=broad-exception-caught
            translated = _translate_boto_error(e, boto_errors)
            if translated is None:
                raise
            log.log(TRACE_LEVEL, "[SES] %s: %s", type(e).__name__, e)
            raise translated from e

        self._last_response = SesResponse(message_id=response.get("MessageId", ""))
        log.debug("SES accepted message %s", self._last_response.message_id)

    def _create_client(self, boto3_module: Any, boto_config_cls: Any) -> Any:
        credentials: dict[str, str] = {}
        if self._aws_access_key_id is not None and self._aws_secret_access_key is not None:
            credentials = {
                "aws_access_key_id": self._aws_access_key_id,
                "aws_secret_access_key": self._aws_secret_access_key,
            }
        return boto3_module.client(
            service_name="ses",
            region_name=self._region,
            config=boto_config_cls(connect_timeout=self._timeout, read_timeout=self._timeout),
            **credentials,
        )
