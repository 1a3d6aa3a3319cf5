"""
Warehouse COPY credentials.

The credential string is embedded verbatim into COPY statements, so every
diagnostic path must go through :func:`censor` first.
"""

from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError

from stage_loader.io.loader.models import ConfigurationError
from stage_loader.utils.logging import censor_credentials, get_logger

logger = get_logger(__name__)

CENSORED_VALUE = "***"


@dataclass(frozen=True)
class CredentialSet:
    """Temporary AWS credentials resolved for a single load."""

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"CredentialSet(access_key_id={CENSORED_VALUE!r}, "
            f"secret_access_key={CENSORED_VALUE!r}, "
            f"session_token={'set' if self.session_token else None!r})"
        )


def format_credentials(credentials: CredentialSet) -> str:
    """
    Render credentials as the CREDENTIALS argument of a COPY statement.

    Examples:
        >>> format_credentials(CredentialSet("A", "B"))
        'aws_access_key_id=A;aws_secret_access_key=B'
        >>> format_credentials(CredentialSet("A", "B", "T"))
        'aws_access_key_id=A;aws_secret_access_key=B;token=T'
    """
    rendered = (
        f"aws_access_key_id={credentials.access_key_id};"
        f"aws_secret_access_key={credentials.secret_access_key}"
    )
    if credentials.session_token:
        rendered += f";token={credentials.session_token}"
    return rendered


def censor(text: str) -> str:
    """
    Mask the access key and secret inside ``text``. Idempotent.

    Each value is masked up to the next ``;`` or ``'``, so text after the
    closing quote of a CREDENTIALS argument stays readable. The session token
    is left as is. Only meant for log and error output, never for executed SQL.

    Examples:
        >>> censor("CREDENTIALS 'aws_access_key_id=A;aws_secret_access_key=B'")
        "CREDENTIALS 'aws_access_key_id=***;aws_secret_access_key=***'"
    """
    return censor_credentials(text)


def resolve_credentials(
    profile_name: Optional[str] = None, session: Optional[Any] = None
) -> CredentialSet:
    """
    Resolve the current credentials through the boto3 provider chain.

    Called once per load; the result is never cached so that expiring
    session credentials are refreshed between loads.

    Raises:
        ConfigurationError: If the profile is unknown or no credentials can be found
    """
    try:
        if session is None:
            session = boto3.Session(profile_name=profile_name)
        resolved = session.get_credentials()
        frozen = resolved.get_frozen_credentials() if resolved is not None else None
    except BotoCoreError as exc:
        logger.error(
            "storage.credentials.unavailable", profile=profile_name, error=str(exc)
        )
        raise ConfigurationError(f"Cannot resolve AWS credentials: {exc}") from exc

    if frozen is None:
        raise ConfigurationError(
            "No AWS credentials available for the warehouse COPY command"
        )

    logger.debug(
        "storage.credentials.resolved",
        profile=profile_name,
        session_credentials=bool(frozen.token),
    )
    return CredentialSet(
        access_key_id=frozen.access_key,
        secret_access_key=frozen.secret_key,
        session_token=frozen.token or None,
    )
