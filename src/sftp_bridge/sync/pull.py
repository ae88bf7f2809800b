"""
Remote -> object store sync (pull).

Active files are streamed into the store with the delivered flag already set,
then moved into the archive directory beside them. Archived files older than
the stream's retention window are deleted from the remote side. Any failure
aborts the walk and propagates; the next scheduled run retries.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Callable, ContextManager, Mapping, Protocol

from sftp_bridge.config.models import RemoteConnectionConfig, StoreLocation, StreamConfig
from sftp_bridge.config.resolver import resolve_connection
from sftp_bridge.paths import map_destination
from sftp_bridge.sync.types import ARCHIVE_DIR, DELIVERED_METADATA_KEY, EntryKind, SyncOutcome, WalkItem
from sftp_bridge.sync.walker import walk
from sftp_bridge.utils.async_utils import run_blocking
from sftp_bridge.utils.logging import get_logger

logger = get_logger("sftp_bridge.sync.pull")


class PullSession(Protocol):
    def list_dir(self, path: str) -> list[Any]: ...

    def open_read(self, path: str) -> ContextManager[BinaryIO]: ...

    def delete(self, path: str) -> None: ...

    def archive(self, path: str, archive_dir: str) -> str: ...


class PullStore(Protocol):
    def upload_fileobj(
        self, fileobj: BinaryIO, bucket: str, key: str, *, metadata: Mapping[str, str] | None = None
    ) -> str: ...


def purge_cutoff(now: datetime, retention_days: int) -> datetime:
    """The instant before which archived files are purged (calendar-day shift of ``now``)."""
    return now - timedelta(days=retention_days)


def is_expired(modified: datetime, retention_days: int, now: datetime) -> bool:
    """Strictly older than the retention window; a file exactly at the boundary is kept."""
    return modified < purge_cutoff(now, retention_days)


def sync_directory(
    session: PullSession,
    remote_root: str,
    store_location: StoreLocation,
    retention_days: int,
    store: PullStore,
    *,
    now: datetime | None = None,
    archive_after_upload: bool = True,
) -> list[SyncOutcome]:
    """
    Pull every active file under ``remote_root`` into ``store_location``.

    Args:
        session: Open remote session
        remote_root: Remote directory to walk; empty means the remote root
        store_location: Destination bucket and key prefix
        retention_days: Age, in whole days, after which archived files are purged
        store: Object store to write into
        now: Reference time for retention (default: current UTC time)
        archive_after_upload: Move uploaded files into the archive directory

    Returns:
        One SyncOutcome per uploaded or purged file, in walk order
    """
    now = now or datetime.now(timezone.utc)
    root = remote_root or "/"
    outcomes: list[SyncOutcome] = []

    for item in walk(session, root):
        kind = item.kind
        if kind is EntryKind.DIRECTORY:
            continue
        if kind is EntryKind.ARCHIVED:
            if is_expired(item.entry.modified, retention_days, now):
                logger.info(f"Purging {item.path} (older than {retention_days} days)")
                session.delete(item.path)
                outcomes.append(SyncOutcome(action="purged", source=item.path))
            continue
        outcomes.append(_upload(session, item, root, store_location, store, archive_after_upload))

    return outcomes


def _upload(
    session: PullSession,
    item: WalkItem,
    root: str,
    store_location: StoreLocation,
    store: PullStore,
    archive_after_upload: bool,
) -> SyncOutcome:
    key = map_destination(root, item.path, store_location.prefix)
    logger.info(f"Writing {store_location.bucket}/{key}...")
    with session.open_read(item.path) as handle:
        store.upload_fileobj(handle, store_location.bucket, key, metadata={DELIVERED_METADATA_KEY: "true"})
    logger.info("...done")
    if archive_after_upload:
        session.archive(item.path, ARCHIVE_DIR)
    return SyncOutcome(action="uploaded", source=item.path, destination=f"{store_location.bucket}/{key}")


SessionFactory = Callable[[RemoteConnectionConfig], ContextManager[Any]]


def _pull_stream_blocking(
    stream: StreamConfig,
    store: Any,
    session_factory: SessionFactory,
    now: datetime | None,
) -> list[SyncOutcome]:
    store_location = stream.require_store_location()
    connection = resolve_connection(stream, store)
    logger.info(
        f"Attempting connection for [{stream.name}]: host[{connection.host}], username[{connection.username}]"
    )
    with session_factory(connection) as session:
        outcomes = sync_directory(
            session,
            stream.remote_root,
            store_location,
            stream.retention_days,
            store,
            now=now,
        )
    uploaded = sum(1 for outcome in outcomes if outcome.action == "uploaded")
    logger.info(f"[{stream.name}]: Moved {uploaded} files from SFTP to S3")
    return outcomes


async def pull_stream(
    stream: StreamConfig,
    store: Any,
    session_factory: SessionFactory,
    *,
    now: datetime | None = None,
) -> list[SyncOutcome]:
    """
    Run one stream's pull sync inside a scoped remote session.

    Raises:
        ConfigurationError: If the stream has no store location or connection block
        TransportError: On any remote or store failure
    """
    return await run_blocking(_pull_stream_blocking, stream, store, session_factory, now)
