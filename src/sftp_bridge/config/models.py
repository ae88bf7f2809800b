"""
Typed stream configuration records.

The configuration document uses camelCase keys (``sftpLocation``,
``s3Location``, ``fileRetentionDays``, ``sftpConfig``); they are parsed once per
invocation into the frozen records below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from sftp_bridge.exceptions import ConfigurationError
from sftp_bridge.paths import join_segments, to_segments

DEFAULT_RETENTION_DAYS = 14
DEFAULT_SFTP_PORT = 22


@dataclass(frozen=True)
class StoreLocation:
    """Object store location: a bucket plus an optional key prefix."""

    bucket: str
    prefix: str = ""

    @classmethod
    def parse(cls, location: str) -> "StoreLocation":
        segments = to_segments(location)
        if not segments:
            raise ConfigurationError(f"Invalid store location: {location!r}")
        return cls(bucket=segments[0], prefix=join_segments(segments[1:]))

    @property
    def segments(self) -> list[str]:
        return [self.bucket] + to_segments(self.prefix)

    def __str__(self) -> str:
        return join_segments(self.segments)


@dataclass(frozen=True)
class RemoteConnectionConfig:
    """Connection parameters for one remote SFTP endpoint.

    ``private_key`` always holds literal key material; pointers into the object
    store are resolved before this record is built.
    """

    host: str
    port: int = DEFAULT_SFTP_PORT
    username: str | None = None
    password: str | None = None
    private_key: str | None = None
    passphrase: str | None = None
    # None means "use the process default" (SFTP_BRIDGE_CONNECT_TIMEOUT)
    connect_timeout_s: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RemoteConnectionConfig":
        timeout = data.get("connectTimeout")
        return cls(
            host=str(data.get("host") or data.get("hostname") or ""),
            port=int(data.get("port", DEFAULT_SFTP_PORT)),
            username=data.get("username"),
            password=data.get("password"),
            private_key=data.get("privateKey"),
            passphrase=data.get("passphrase"),
            connect_timeout_s=float(timeout) if timeout is not None else None,
        )

    def __repr__(self) -> str:
        # Secrets never reach logs or tracebacks.
        return (
            f"RemoteConnectionConfig(host={self.host!r}, port={self.port}, username={self.username!r}, "
            f"password={'***' if self.password else None}, private_key={'***' if self.private_key else None})"
        )


@dataclass(frozen=True)
class StreamConfig:
    """One configured pairing of a remote directory with an object store location."""

    name: str
    remote_root: str = ""
    store_location: StoreLocation | None = None
    retention_days: int = DEFAULT_RETENTION_DAYS
    connection: Mapping[str, Any] | None = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "StreamConfig":
        if not isinstance(data, Mapping):
            raise ConfigurationError(
                f"streamName [{name}] config must be a mapping, got {type(data).__name__}",
                details={"stream": name},
            )
        s3_location = data.get("s3Location")
        connection = data.get("sftpConfig")
        if connection is not None and not isinstance(connection, Mapping):
            raise ConfigurationError(f"streamName [{name}] sftpConfig must be a mapping", details={"stream": name})
        retention = data.get("fileRetentionDays")
        retention_days = DEFAULT_RETENTION_DAYS
        if retention:
            try:
                retention_days = int(retention)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"streamName [{name}] fileRetentionDays must be an integer, got {retention!r}",
                    details={"stream": name},
                ) from None
        return cls(
            name=name,
            remote_root=data.get("sftpLocation") or "",
            store_location=StoreLocation.parse(s3_location) if s3_location else None,
            retention_days=retention_days,
            connection=MappingProxyType(dict(connection)) if connection is not None else None,
        )

    def require_store_location(self) -> StoreLocation:
        if self.store_location is None:
            raise ConfigurationError(f"streamName [{self.name}] has no s3Location", details={"stream": self.name})
        return self.store_location


def parse_streams(document: Any) -> dict[str, StreamConfig]:
    """Parse a whole configuration document into an ordered name -> StreamConfig mapping."""
    if document is None:
        return {}
    if not isinstance(document, Mapping):
        raise ConfigurationError(f"Stream configuration must be a mapping, got {type(document).__name__}")
    return {name: StreamConfig.from_dict(name, data) for name, data in document.items()}
