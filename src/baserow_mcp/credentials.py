"""Where the Baserow database token comes from.

The server accepts a token from two places, checked in order:

1. ``BASEROW_API_TOKEN`` (environment or ``.env``), for headless, CI and
   Docker setups.
2. The OS credential store via ``keyring``, filled by ``baserow-mcp auth``.

``find_api_token`` reports both the token and its source, so startup and
``baserow-mcp auth --status`` agree on which token is in effect.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import keyring
from keyring.errors import KeyringError, NoKeyringError, PasswordDeleteError

from baserow_mcp.settings import Settings

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "baserow-mcp"
KEYRING_USERNAME = "api_token"


class TokenSource(enum.Enum):
    ENVIRONMENT = "BASEROW_API_TOKEN"
    KEYCHAIN = "system keychain"


@dataclass(frozen=True)
class ApiToken:
    """A resolved database token and the place it was read from."""

    value: str = field(repr=False)
    source: TokenSource


class KeychainUnavailable(Exception):
    """The credential store could not be used."""


def _keyring_call(action: str, func: Callable[..., Any], *args: Any) -> Any:
    """Run *func* against the token entry, normalising backend failures."""
    try:
        return func(KEYRING_SERVICE, KEYRING_USERNAME, *args)
    except NoKeyringError as exc:
        logger.debug("No keyring backend; cannot %s the database token", action)
        raise KeychainUnavailable(str(exc)) from exc
    except PasswordDeleteError:
        raise
    except KeyringError as exc:
        logger.warning("Keyring refused to %s the database token: %s", action, exc)
        raise KeychainUnavailable(str(exc)) from exc


def find_api_token(settings: Settings) -> ApiToken | None:
    """Return the token in effect, or None when neither source has one."""
    if settings.api_token:
        return ApiToken(settings.api_token, TokenSource.ENVIRONMENT)
    try:
        stored = _keyring_call("read", keyring.get_password)
    except KeychainUnavailable:
        return None
    if not stored:
        return None
    return ApiToken(stored, TokenSource.KEYCHAIN)


def save_api_token(token: str) -> bool:
    """Store *token* in the keychain; False when no usable backend exists."""
    try:
        _keyring_call("store", keyring.set_password, token)
    except KeychainUnavailable:
        return False
    return True


def forget_api_token() -> bool:
    """Remove the stored token. An entry that is already gone counts as removed."""
    try:
        _keyring_call("delete", keyring.delete_password)
    except PasswordDeleteError:
        logger.debug("No stored database token to delete")
    except KeychainUnavailable:
        return False
    return True
