"""Charset list parsing and startup configuration."""

from __future__ import annotations

import itertools
import logging
import os
from typing import Mapping, Sequence, Tuple, Union

from .errors import ConfigurationError
from .models import NegotiationConfig
from .negotiate import can_resolve
from .rules import (
    ENV_GUESS,
    ENV_INBOUND_ONLY,
    ENV_LOCAL_CHARSETS,
    ENV_REMOTE_CHARSETS,
    LIST_SEPARATOR,
    USAGE,
)

LOGGER = logging.getLogger(__name__)

CharsetList = Union[str, Sequence[str]]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def parse_charset_list(value: CharsetList, *, role: str) -> Tuple[str, ...]:
    """
    Split a comma-separated charset list.

    Rejects a list with no names at all (including degenerate values like
    "," or " ") and a list with blank entries between names.
    """
    items = value.split(LIST_SEPARATOR) if isinstance(value, str) else list(value)
    names = tuple(item.strip() for item in items)

    if not any(names):
        raise ConfigurationError(f"The {role} charset list is empty. {USAGE}")
    if not all(names):
        raise ConfigurationError(f"The {role} charset list '{LIST_SEPARATOR.join(items)}' has an empty entry.")
    return names


def _check_resolvable(local: Tuple[str, ...], remote: Tuple[str, ...]) -> None:
    # either list can be source or target, so every pair is probed
    resolved = set()
    for name in itertools.chain.from_iterable(itertools.product(local, remote)):
        if name in resolved:
            continue
        if not can_resolve(name):
            raise ConfigurationError(f"Cannot convert '{name}'.")
        resolved.add(name)


def build_config(
    local: CharsetList,
    remote: CharsetList,
    *,
    guess: bool = False,
    inbound_only: bool = False,
) -> NegotiationConfig:
    local_charsets = parse_charset_list(local, role="local")
    remote_charsets = parse_charset_list(remote, role="remote")
    _check_resolvable(local_charsets, remote_charsets)

    return NegotiationConfig(
        local_charsets=local_charsets,
        remote_charsets=remote_charsets,
        guess=guess,
        inbound_only=inbound_only,
    )


def _parse_flag(environ: Mapping[str, str], key: str) -> bool:
    raw = environ.get(key, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got '{raw}'")


def load_config_from_env(environ: Mapping[str, str] = os.environ) -> NegotiationConfig:
    for key in (ENV_LOCAL_CHARSETS, ENV_REMOTE_CHARSETS):
        if key not in environ:
            raise ConfigurationError(f"{key} is not set. {USAGE}")

    config = build_config(
        environ[ENV_LOCAL_CHARSETS],
        environ[ENV_REMOTE_CHARSETS],
        guess=_parse_flag(environ, ENV_GUESS),
        inbound_only=_parse_flag(environ, ENV_INBOUND_ONLY),
    )
    LOGGER.debug("Loaded charset configuration from environment: %s", config)
    return config
