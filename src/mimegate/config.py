"""Configuration loading for mimegate.

Transport settings live in a YAML file under ``mail.transport``::

    mail:
      transport:
        backend: smtp          # smtp | ses
        host: smtp.example.com
        port: 587
        security: starttls     # starttls | ssl | none
        username: ${SMTP_USER}
        password: ${SMTP_PASSWORD:-}

String values may reference environment variables with ``${VAR}`` (required)
or ``${VAR:-default}`` (optional), which keeps secrets out of the file.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from box import Box

from mimegate.exceptions import MailConfigurationError
from mimegate.transports.ses import SesTransport
from mimegate.transports.smtp import SMTPCredentials, SMTPSecurity, SMTPTransport

if TYPE_CHECKING:
    from collections.abc import Mapping

    from mimegate.transport import AnyTransport

__all__ = ["build_transport", "load_config"]

log = logging.getLogger(__name__)

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)(?::-([^}]*))?\}")

_SMTP_SECURITY_MODES = {
    "starttls": SMTPSecurity(use_ssl=False, use_starttls=True),
    "ssl": SMTPSecurity(use_ssl=True, use_starttls=False),
    "none": SMTPSecurity(use_ssl=False, use_starttls=False),
}


def _expand_env_vars(value: str, source: str | None = None) -> str:
    """Expand environment variables in a string value.

    Raises:
        MailConfigurationError: If a required variable is not set.

    Examples:
        >>> os.environ["MIMEGATE_DOC_HOST"] = "example.com"
        >>> _expand_env_vars("smtp.${MIMEGATE_DOC_HOST}")
        'smtp.example.com'
        >>> _expand_env_vars("${MIMEGATE_DOC_MISSING:-fallback}")
        'fallback'
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if default_value is not None:
            return default_value

        where = f" (required by {source})" if source else ""
        raise MailConfigurationError(f"Environment variable '{var_name}' is not set{where}")

    return _ENV_VAR_PATTERN.sub(replacer, value)


def _expand_env_vars_recursive(data: Any, source: str | None = None) -> Any:
    if isinstance(data, dict):
        return {k: _expand_env_vars_recursive(v, source) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars_recursive(item, source) for item in data]
    if isinstance(data, str):
        return _expand_env_vars(data, source)
    return data


def load_config(path: str | Path) -> Box:
    """Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        The configuration with environment variables expanded, as a frozen Box.

    Raises:
        MailConfigurationError: If the file is missing, is not valid YAML,
            is not a mapping, or references an unset variable.
    """
    path = Path(path)
    if not path.is_file():
        raise MailConfigurationError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise MailConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MailConfigurationError(f"Configuration root must be a mapping: {path}")

    log.debug("Loaded configuration from %s", path)
    return Box(_expand_env_vars_recursive(data, str(path)), frozen_box=True)


def _as_number(settings: Mapping[str, Any], key: str, default: float, cast: type) -> Any:
    value = settings.get(key, default)
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise MailConfigurationError(f"mail.transport.{key} must be a number, got {value!r}") from e


def build_transport(config: Mapping[str, Any]) -> AnyTransport:
    """Build the transport described by ``config["mail"]["transport"]``.

    Args:
        config: Loaded configuration (a Box or any mapping).

    Returns:
        An :class:`~mimegate.transports.SMTPTransport` or
        :class:`~mimegate.transports.SesTransport`.

    Raises:
        MailConfigurationError: If the section is missing or the backend is
            unknown or misconfigured.

    Examples:
        >>> transport = build_transport({"mail": {"transport": {"backend": "smtp", "host": "localhost"}}})
        >>> type(transport).__name__
        'SMTPTransport'
    """
    mail_section = config.get("mail") or {}
    settings = mail_section.get("transport")
    if not settings:
        raise MailConfigurationError("Missing 'mail.transport' configuration section")

    backend = str(settings.get("backend", "smtp")).lower()
    timeout = _as_number(settings, "timeout", 30.0, float)

    if backend == "ses":
        log.debug("Building SES transport (region=%s)", settings.get("region", "eu-west-3"))
        return SesTransport(
            region=settings.get("region", "eu-west-3"),
            aws_access_key_id=settings.get("aws_access_key_id"),
            aws_secret_access_key=settings.get("aws_secret_access_key"),
            timeout=timeout,
        )

    if backend == "smtp":
        mode = str(settings.get("security", "starttls")).lower()
        if mode not in _SMTP_SECURITY_MODES:
            raise MailConfigurationError(
                f"Invalid mail.transport.security: {mode!r}. Allowed: {sorted(_SMTP_SECURITY_MODES)}"
            )
        security = _SMTP_SECURITY_MODES[mode]
        if settings.get("verify_certificate") is False:
            security = SMTPSecurity(
                use_ssl=security.use_ssl,
                use_starttls=security.use_starttls,
                verify_certificate=False,
            )

        default_port = 465 if security.use_ssl else 587
        log.debug("Building SMTP transport (host=%s, security=%s)", settings.get("host"), mode)
        return SMTPTransport(
            settings.get("host", ""),
            port=_as_number(settings, "port", default_port, int),
            credentials=SMTPCredentials(
                username=settings.get("username") or None,
                password=settings.get("password") or None,
            ),
            security=security,
            timeout=timeout,
        )

    raise MailConfigurationError(f"Unknown mail transport backend: {backend!r}. Allowed: ses, smtp")
