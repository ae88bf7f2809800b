"""
Configuration resolution.

Two kinds of indirection are resolved here: ``${VAR_NAME}`` placeholders in
local configuration files, and private keys stored as objects in the store
(``sftpConfig.s3PrivateKey = "bucket/key"``).
"""

from __future__ import annotations

import os
import re
from typing import Any, Protocol

from sftp_bridge.config.models import RemoteConnectionConfig, StreamConfig
from sftp_bridge.exceptions import ConfigurationError
from sftp_bridge.utils.logging import get_logger

logger = get_logger("sftp_bridge.config.resolver")

PRIVATE_KEY_POINTER = "s3PrivateKey"


class ObjectReader(Protocol):
    def read_bytes(self, bucket: str, key: str) -> bytes: ...


def resolve_placeholders(value: Any) -> Any:
    """Recursively substitute ``${VAR_NAME}`` from the environment; unknown names are kept."""
    if isinstance(value, dict):
        return {k: resolve_placeholders(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [resolve_placeholders(item) for item in value]
    elif isinstance(value, str):
        return re.sub(r"\${([^}]+)}", lambda m: os.getenv(m.group(1), m.group(0)), value)
    else:
        return value


def split_pointer(pointer: str) -> tuple[str, str]:
    """Split a ``bucket/key`` pointer at its first slash."""
    bucket, sep, key = pointer.partition("/")
    if not bucket or not sep or not key:
        raise ConfigurationError(f"Invalid {PRIVATE_KEY_POINTER} pointer: {pointer!r} (expected 'bucket/key')")
    return bucket, key


def resolve_connection_block(stream: StreamConfig, store: ObjectReader) -> dict[str, Any]:
    """
    Return the stream's raw connection block with any key pointer replaced by the key itself.

    The returned dict never contains the pointer field.

    Raises:
        ConfigurationError: If the stream has no connection block
    """
    if stream.connection is None:
        raise ConfigurationError("SFTP config not found", details={"stream": stream.name})

    block = dict(stream.connection)
    pointer = block.pop(PRIVATE_KEY_POINTER, None)
    if pointer:
        bucket, key = split_pointer(pointer)
        logger.debug(f"[{stream.name}]: loading private key from s3://{bucket}/{key}")
        block["privateKey"] = store.read_bytes(bucket, key).decode("utf-8")
    return block


def resolve_connection(stream: StreamConfig, store: ObjectReader) -> RemoteConnectionConfig:
    """Produce the typed remote connection config for a stream (one store read at most)."""
    return RemoteConnectionConfig.from_dict(resolve_connection_block(stream, store))
