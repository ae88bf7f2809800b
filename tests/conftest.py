"""
Shared fixtures: in-memory doubles for the object store, the remote SFTP
endpoint and the retry queue, wired into a Services container.
"""

from __future__ import annotations

import io
import itertools
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from sftp_bridge.config.models import parse_streams
from sftp_bridge.config.settings import InvocationContext, Settings
from sftp_bridge.connections.s3 import StoredObject
from sftp_bridge.connections.sqs import QueueMessage
from sftp_bridge.exceptions import QueueError, TransportError
from sftp_bridge.paths import join_segments, to_segments
from sftp_bridge.services import Services
from sftp_bridge.sync.types import RemoteEntry

NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


class FakeObjectStore:
    """Bucket/key -> (body, metadata); enough of S3Connection for the engines."""

    def __init__(self):
        self.objects: dict[tuple[str, str], StoredObject] = {}
        self.metadata_updates: list[tuple[str, str, dict[str, str]]] = []
        self.fail_reads: set[tuple[str, str]] = set()

    def put(self, bucket: str, key: str, body: bytes | str, metadata: dict[str, str] | None = None) -> None:
        if isinstance(body, str):
            body = body.encode()
        self.objects[(bucket, key)] = StoredObject(bucket=bucket, key=key, body=body, metadata=dict(metadata or {}))

    def body(self, bucket: str, key: str) -> bytes:
        return self.objects[(bucket, key)].body

    def metadata(self, bucket: str, key: str) -> dict[str, str]:
        return self.objects[(bucket, key)].metadata

    def get_object(self, bucket: str, key: str) -> StoredObject:
        if (bucket, key) in self.fail_reads or (bucket, key) not in self.objects:
            raise TransportError(f"Failed to read s3://{bucket}/{key}: NoSuchKey")
        stored = self.objects[(bucket, key)]
        return StoredObject(bucket=bucket, key=key, body=stored.body, metadata=dict(stored.metadata))

    def read_bytes(self, bucket: str, key: str) -> bytes:
        return self.get_object(bucket, key).body

    def upload_fileobj(self, fileobj, bucket: str, key: str, *, metadata=None) -> str:
        self.put(bucket, key, fileobj.read(), metadata)
        return f"s3://{bucket}/{key}"

    def copy_with_metadata(self, bucket: str, key: str, metadata) -> None:
        self.metadata_updates.append((bucket, key, dict(metadata)))
        self.objects[(bucket, key)].metadata = dict(metadata)


class FakeSftpServer:
    """
    A remote file tree keyed by normalized path ("dir/sub/file.txt").

    Directories exist implicitly through their files, or explicitly via ``mkdir``.
    """

    def __init__(self, now: datetime = NOW):
        self.now = now
        self.files: dict[str, tuple[bytes, datetime]] = {}
        self.dirs: set[str] = set()
        self.deleted: list[str] = []
        self.written: list[str] = []
        self.fail_on: dict[str, Exception] = {}

    @staticmethod
    def norm(path: str) -> str:
        return join_segments(to_segments(path))

    def add_file(self, path: str, body: bytes | str = b"", modified: datetime | None = None) -> None:
        if isinstance(body, str):
            body = body.encode()
        self.files[self.norm(path)] = (body, modified or self.now)

    def add_dir(self, path: str) -> None:
        self.dirs.add(self.norm(path))

    def read(self, path: str) -> bytes:
        return self.files[self.norm(path)][0]

    def has(self, path: str) -> bool:
        return self.norm(path) in self.files

    def _check(self, path: str) -> None:
        error = self.fail_on.get(self.norm(path))
        if error is not None:
            raise error

    def list_dir(self, path: str) -> list[RemoteEntry]:
        self._check(path)
        base = to_segments(path)
        children: dict[str, RemoteEntry] = {}
        for candidate in sorted(set(self.files) | self.dirs):
            segments = to_segments(candidate)
            if len(segments) <= len(base) or segments[: len(base)] != base:
                continue
            name = segments[len(base)]
            is_dir = len(segments) > len(base) + 1 or candidate in self.dirs
            if is_dir:
                children.setdefault(name, RemoteEntry(name=name, is_dir=True, modified=self.now))
            else:
                children[name] = RemoteEntry(name=name, is_dir=False, modified=self.files[candidate][1])
        return list(children.values())

    def write(self, path: str, data: bytes) -> None:
        self._check(path)
        self.written.append(self.norm(path))
        self.files[self.norm(path)] = (data, self.now)

    def delete(self, path: str) -> None:
        self._check(path)
        self.deleted.append(self.norm(path))
        del self.files[self.norm(path)]

    def archive(self, path: str, archive_dir: str) -> str:
        segments = to_segments(path)
        target = join_segments(segments[:-1] + [archive_dir, segments[-1]])
        body, _ = self.files.pop(self.norm(path))
        # Archiving restarts the retention clock.
        self.files[target] = (body, self.now)
        return target


class FakeSession:
    """One scoped session against a FakeSftpServer."""

    def __init__(self, server: FakeSftpServer, connection: Any):
        self.server = server
        self.connection = connection
        self.open = False

    def __enter__(self) -> "FakeSession":
        self.open = True
        return self

    def __exit__(self, *exc_info) -> None:
        self.open = False

    def list_dir(self, path: str) -> list[RemoteEntry]:
        return self.server.list_dir(path)

    @contextmanager
    def open_read(self, path: str):
        self.server._check(path)
        yield io.BytesIO(self.server.read(path))

    def write_file(self, path: str, data) -> None:
        self.server.write(path, data if isinstance(data, bytes) else data.read())

    def delete(self, path: str) -> None:
        self.server.delete(path)

    def archive(self, path: str, archive_dir: str) -> str:
        return self.server.archive(path, archive_dir)


class FakeSessionFactory:
    """Session factory handing out FakeSessions; keeps every session for inspection."""

    def __init__(self, server: FakeSftpServer):
        self.server = server
        self.sessions: list[FakeSession] = []
        self.connect_error: Exception | None = None

    def __call__(self, connection: Any) -> FakeSession:
        if self.connect_error is not None:
            raise self.connect_error
        session = FakeSession(self.server, connection)
        self.sessions.append(session)
        return session

    @property
    def connections(self) -> list[Any]:
        return [session.connection for session in self.sessions]


class FakeQueue:
    """Retry queue with visibility: received messages stay hidden until deleted or released."""

    def __init__(self, queue_name: str = "sftp-bridge-fn"):
        self.queue_name = queue_name
        self.messages: list[QueueMessage] = []
        self.in_flight: set[str] = set()
        self.deleted: list[str] = []
        self.receive_calls: list[tuple[int, int | None]] = []
        self.fail_send = False
        self._ids = itertools.count(1)

    def send(self, body: str) -> dict[str, Any]:
        if self.fail_send:
            raise QueueError(f"Send to '{self.queue_name}' failed: AccessDenied")
        number = next(self._ids)
        message_id = f"msg-{number}"
        self.messages.append(
            QueueMessage(message_id=message_id, body=body, receipt_handle=f"rh-{number}", receive_count=0)
        )
        return {"MessageId": message_id}

    def receive(self, max_messages: int = 10, visibility_timeout: int | None = None) -> list[QueueMessage]:
        self.receive_calls.append((max_messages, visibility_timeout))
        visible = [m for m in self.messages if m.receipt_handle not in self.in_flight][:max_messages]
        for message in visible:
            message.receive_count += 1
            self.in_flight.add(message.receipt_handle)
        return visible

    def delete(self, receipt_handle: str) -> None:
        self.deleted.append(receipt_handle)
        self.messages = [m for m in self.messages if m.receipt_handle != receipt_handle]
        self.in_flight.discard(receipt_handle)

    def release(self) -> None:
        """Visibility timeout elapsed: every un-deleted message is visible again."""
        self.in_flight.clear()

    @property
    def bodies(self) -> list[str]:
        return [m.body for m in self.messages]


class StaticConfigSource:
    """Serves one fixed stream configuration document."""

    def __init__(self, document: dict[str, Any] | None = None):
        self.document = document or {}
        self.contexts: list[InvocationContext] = []

    def load(self, context: InvocationContext):
        self.contexts.append(context)
        return parse_streams(self.document)


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def server():
    return FakeSftpServer()


@pytest.fixture
def session_factory(server):
    return FakeSessionFactory(server)


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def config_source():
    return StaticConfigSource()


@pytest.fixture
def context():
    return InvocationContext(
        function_name="sftp-bridge-fn",
        invoked_function_arn="arn:aws:lambda:us-east-1:123456789012:function:sftp-bridge-fn",
    )


@pytest.fixture
def services(store, config_source, queue, session_factory):
    queue_names: list[str] = []

    def queue_factory(name: str) -> FakeQueue:
        queue_names.append(name)
        return queue

    services = Services(
        store=store,
        config_source=config_source,
        queue_factory=queue_factory,
        session_factory=session_factory,
        settings=Settings(),
        clock=lambda: NOW,
    )
    services.queue_names = queue_names  # type: ignore[attr-defined]
    return services
