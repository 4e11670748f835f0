"""Stateless configuration tokens.

A token is the user's entire :class:`~app.models.UserConfig` serialised to
JSON, deflated and base64url encoded without padding. Tokens are the only
persistence the addon has, so decoding is fail-soft: anything that cannot be
read back yields a fresh default configuration.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import zlib

from pydantic import ValidationError

from .errors import ConfigDecodeError
from .models import UserConfig

logger = logging.getLogger(__name__)

PLACEHOLDER_TOKENS = frozenset({"", "configure"})

# Accept both zlib and gzip framed streams.
_DECOMPRESS_WBITS = zlib.MAX_WBITS | 32


def compress_config(config: UserConfig) -> str:
    """Return the opaque token for ``config``."""

    payload = config.model_dump(mode="json", by_alias=True, exclude_defaults=True)
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    encoded = base64.urlsafe_b64encode(zlib.compress(raw, 9)).decode("ascii")
    return encoded.rstrip("=")


def decode_config(token: str) -> UserConfig:
    """Strictly decode ``token``, raising :class:`ConfigDecodeError` on failure."""

    text = (token or "").strip()
    if text in PLACEHOLDER_TOKENS:
        raise ConfigDecodeError("No configuration token supplied")
    padded = text + "=" * (-len(text) % 4)
    try:
        compressed = base64.urlsafe_b64decode(padded.encode("ascii"))
        raw = zlib.decompress(compressed, _DECOMPRESS_WBITS)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError, zlib.error) as exc:
        raise ConfigDecodeError(f"Unreadable configuration token: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigDecodeError("Configuration token does not hold an object")
    try:
        return UserConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigDecodeError(f"Malformed configuration: {exc}") from exc


def decompress_config(token: str | None) -> UserConfig:
    """Decode ``token``; any failure falls back to the default configuration."""

    text = (token or "").strip()
    if text in PLACEHOLDER_TOKENS:
        return UserConfig()
    try:
        return decode_config(text)
    except ConfigDecodeError as exc:
        logger.warning("Falling back to default configuration: %s", exc)
        return UserConfig()


def create_shareable_config(config: UserConfig) -> UserConfig:
    """Strip every credential so the layout can be shared safely."""

    return config.without_credentials()


def compress_shareable_config(config: UserConfig) -> str:
    return compress_config(create_shareable_config(config))
