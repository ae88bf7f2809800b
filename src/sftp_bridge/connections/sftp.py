"""
SFTP connection for the remote side of every stream.

Wraps paramiko with the four primitives the engines need (list, streamed read,
streamed write, delete) plus the archive move used after a pull. Transport
failures are translated into TransportError / ClientTimeoutError.
"""

from __future__ import annotations

import errno
import io
import socket
from contextlib import contextmanager
from typing import Any, BinaryIO, Iterator

import paramiko

from sftp_bridge.config.models import RemoteConnectionConfig
from sftp_bridge.exceptions import ClientTimeoutError, TransportError
from sftp_bridge.paths import child_path, join_segments, to_segments
from sftp_bridge.sync.types import RemoteEntry
from sftp_bridge.utils.logging import get_logger

logger = get_logger("sftp_bridge.connections.sftp")

DEFAULT_CONNECT_TIMEOUT = 15.0

_KEY_TYPES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


def load_private_key(material: str, passphrase: str | None = None) -> paramiko.PKey:
    """Parse literal private key material, trying the common key types in turn."""
    last_error: Exception | None = None
    for key_type in _KEY_TYPES:
        try:
            return key_type.from_private_key(io.StringIO(material), password=passphrase)
        except paramiko.SSHException as e:
            last_error = e
    raise TransportError("Unsupported or unreadable private key", cause=last_error)


@contextmanager
def _translate(operation: str, path: str) -> Iterator[None]:
    try:
        yield
    except TransportError:
        raise
    except (paramiko.SSHException, OSError, EOFError) as e:
        raise TransportError(f"SFTP {operation} failed for {path}: {e}", details={"path": path}, cause=e) from e


def _is_missing(error: OSError) -> bool:
    return isinstance(error, FileNotFoundError) or getattr(error, "errno", None) == errno.ENOENT


def _is_connect_timeout(error: BaseException) -> bool:
    """Whether a connect failure is a timeout anywhere in the TCP, banner or auth phase.

    paramiko re-raises a stalled banner read as ``SSHException("Error reading SSH
    protocol banner")`` and a stalled auth as ``AuthenticationException("Authentication
    timeout.")``; the socket timeout survives only as the exception context.
    """
    if isinstance(error, socket.timeout) or isinstance(error.__context__, socket.timeout):
        return True
    message = str(error)
    if message.startswith("Error reading SSH protocol banner"):
        return True
    return isinstance(error, paramiko.AuthenticationException) and "timeout" in message.lower()


class SFTPConnection:
    """
    Scoped SFTP session for one stream interaction.

    Use as a context manager: the session is opened on entry and the client and
    transport are closed on every exit path.
    """

    def __init__(
        self, config: RemoteConnectionConfig, name: str = "sftp", default_timeout: float = DEFAULT_CONNECT_TIMEOUT
    ):
        self.name = name
        self.config = config
        self.timeout = config.connect_timeout_s or default_timeout
        self._transport: paramiko.Transport | None = None
        self._client: paramiko.SFTPClient | None = None

    def connect(self) -> paramiko.SFTPClient:
        """Connect (lazy) and return a live `paramiko.SFTPClient`."""
        if self._client is not None:
            return self._client

        cfg = self.config
        if not cfg.host:
            raise TransportError(f"SFTP connection '{self.name}' missing host")

        pkey = load_private_key(cfg.private_key, cfg.passphrase) if cfg.private_key else None

        transport: paramiko.Transport | None = None
        try:
            sock = socket.create_connection((cfg.host, cfg.port), timeout=self.timeout)
            transport = paramiko.Transport(sock)
            transport.banner_timeout = self.timeout
            transport.auth_timeout = self.timeout
            transport.connect(username=cfg.username, password=cfg.password, pkey=pkey)
        except (paramiko.SSHException, OSError) as e:
            if transport is not None:
                transport.close()
            if _is_connect_timeout(e):
                raise ClientTimeoutError(
                    f"Timed out connecting to {cfg.host}:{cfg.port}: {e}", details={"host": cfg.host}, cause=e
                ) from e
            raise TransportError(
                f"Failed to connect to {cfg.host}:{cfg.port}: {e}", details={"host": cfg.host}, cause=e
            ) from e

        self._transport = transport
        self._client = paramiko.SFTPClient.from_transport(transport)
        return self._client

    @property
    def client(self) -> paramiko.SFTPClient:
        return self.connect()

    def list_dir(self, path: str) -> list[RemoteEntry]:
        with _translate("listdir", path):
            return [RemoteEntry.from_attributes(attr) for attr in self.client.listdir_attr(path or ".")]

    @contextmanager
    def open_read(self, path: str) -> Iterator[BinaryIO]:
        """Open a remote file for streamed reading."""
        with _translate("read", path):
            handle = self.client.open(path, "rb")
        try:
            handle.prefetch()
            yield handle
        finally:
            handle.close()

    def write_file(self, path: str, data: bytes | BinaryIO) -> None:
        """Write (overwrite) a remote file, creating parent directories as needed."""
        parent = join_segments(to_segments(path)[:-1])
        if parent:
            self.makedirs(("/" + parent) if path.startswith("/") else parent)
        fileobj = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        with _translate("write", path):
            self.client.putfo(fileobj, path, confirm=False)

    def delete(self, path: str) -> None:
        with _translate("remove", path):
            self.client.remove(path)

    def exists(self, path: str) -> bool:
        try:
            self.client.stat(path)
            return True
        except OSError as e:
            if _is_missing(e):
                return False
            raise TransportError(f"SFTP stat failed for {path}: {e}", details={"path": path}, cause=e) from e

    def makedirs(self, path: str) -> None:
        """Create ``path`` and any missing parents (``mkdir -p``)."""
        current = "/" if path.startswith("/") else ""
        for segment in to_segments(path):
            current = child_path(current, segment)
            if not self.exists(current):
                with _translate("mkdir", current):
                    self.client.mkdir(current)

    def archive(self, path: str, archive_dir: str) -> str:
        """
        Move a file into ``archive_dir`` beside it and restart its age clock.

        Returns:
            The archived path
        """
        segments = to_segments(path)
        parent = "/".join(segments[:-1])
        if path.startswith("/"):
            parent = "/" + parent
        target_dir = child_path(parent, archive_dir)
        target = child_path(target_dir, segments[-1])
        if not self.exists(target_dir):
            with _translate("mkdir", target_dir):
                self.client.mkdir(target_dir)
        if self.exists(target):
            self.delete(target)
        with _translate("rename", path):
            self.client.rename(path, target)
            self.client.utime(target, None)
        return target

    def close(self) -> None:
        """Close SFTP client + underlying transport."""
        try:
            if self._client is not None:
                self._client.close()
        finally:
            self._client = None
        try:
            if self._transport is not None:
                self._transport.close()
        finally:
            self._transport = None

    def __enter__(self) -> "SFTPConnection":
        self.connect()
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: Any) -> None:
        self.close()
