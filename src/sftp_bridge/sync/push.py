"""
Object store -> remote dispatch (push).

For each changed object in a storage notification:

1. read the object; skip it if its delivered flag is already ``"true"``
2. find every stream whose store location is a whole-segment prefix of
   ``bucket/key``
3. write the object to each matching stream's remote directory, concurrently,
   each inside its own scoped remote session
4. only once every write succeeded, set the delivered flag (copy-in-place)

A failed write aborts the record before step 4, so a replay re-attempts every
matching stream. Remote writes overwrite, which keeps replays harmless. Two
concurrent dispatches of one object may both deliver before either sets the
flag; the flag still ends up set.
"""

from __future__ import annotations

from typing import Any, Callable, ContextManager, Mapping
from urllib.parse import unquote_plus

from sftp_bridge.config.models import RemoteConnectionConfig, StreamConfig
from sftp_bridge.config.resolver import resolve_connection
from sftp_bridge.exceptions import BridgeError
from sftp_bridge.paths import has_prefix, join_segments, to_segments
from sftp_bridge.sync.types import DELIVERED_METADATA_KEY, DeliveryOutcome
from sftp_bridge.utils.async_utils import flatten, gather_all, run_blocking
from sftp_bridge.utils.logging import get_logger

logger = get_logger("sftp_bridge.sync.push")

SessionFactory = Callable[[RemoteConnectionConfig], ContextManager[Any]]


def parse_record(record: Mapping[str, Any]) -> tuple[str, str]:
    """Extract ``(bucket, key)`` from one storage notification record."""
    try:
        bucket = record["s3"]["bucket"]["name"]
        key = record["s3"]["object"]["key"]
    except (KeyError, TypeError) as e:
        raise BridgeError(f"Malformed storage notification record: missing {e}") from e
    # Notification keys arrive URL-encoded ("my+file.txt" for "my file.txt").
    return bucket, unquote_plus(key)


def is_delivered(metadata: Mapping[str, str] | None) -> bool:
    """Delivered iff the flag is literally ``"true"``; absence or anything else means not yet."""
    return bool(metadata) and metadata.get(DELIVERED_METADATA_KEY) == "true"


def matching_streams(streams: Mapping[str, StreamConfig], bucket: str, key: str) -> list[StreamConfig]:
    """Streams whose store location is a segment prefix of ``bucket/key``, in config order."""
    object_segments = [bucket] + to_segments(key)
    return [
        stream
        for stream in streams.values()
        if stream.store_location is not None and has_prefix(object_segments, stream.store_location.segments)
    ]


def remote_destination(stream: StreamConfig, bucket: str, key: str) -> str:
    """Remote path for an object: the stream's remote directory plus the key below its store location."""
    object_segments = [bucket] + to_segments(key)
    location = stream.store_location.segments if stream.store_location else []
    return join_segments(to_segments(stream.remote_root) + object_segments[len(location) :])


def mark_delivered(store: Any, bucket: str, key: str, metadata: Mapping[str, str] | None) -> None:
    """Set the delivered flag, keeping every other metadata key."""
    updated = dict(metadata or {})
    updated[DELIVERED_METADATA_KEY] = "true"
    store.copy_with_metadata(bucket, key, updated)


def _deliver_blocking(
    stream: StreamConfig, bucket: str, key: str, body: bytes, store: Any, session_factory: SessionFactory
) -> DeliveryOutcome:
    connection = resolve_connection(stream, store)
    remote_path = remote_destination(stream, bucket, key)
    with session_factory(connection) as session:
        logger.info(f"Writing {remote_path}...")
        session.write_file(remote_path, body)
        logger.info("...done")
    logger.info(f"[{stream.name}]: Moved 1 files from S3 to SFTP")
    return DeliveryOutcome(stream=stream.name, bucket=bucket, key=key, remote_path=remote_path)


async def dispatch_record(
    record: Mapping[str, Any],
    streams: Mapping[str, StreamConfig],
    store: Any,
    session_factory: SessionFactory,
) -> list[DeliveryOutcome]:
    """Deliver one changed object to every matching stream, then mark it delivered."""
    bucket, key = parse_record(record)
    stored = await run_blocking(store.get_object, bucket, key)
    if is_delivered(stored.metadata):
        logger.debug(f"{bucket}/{key} already delivered, skipping")
        return []

    matches = matching_streams(streams, bucket, key)
    if not matches:
        logger.warning(f"No configured SFTP destination for {bucket}/{key}")

    outcomes = await gather_all(
        run_blocking(_deliver_blocking, stream, bucket, key, stored.body, store, session_factory)
        for stream in matches
    )
    await run_blocking(mark_delivered, store, bucket, key, stored.metadata)
    return outcomes


async def dispatch(
    notification: Mapping[str, Any],
    streams: Mapping[str, StreamConfig],
    store: Any,
    session_factory: SessionFactory,
) -> list[DeliveryOutcome]:
    """
    Dispatch every record of a storage notification, concurrently.

    Raises:
        BridgeError: On the first failed record (after all records have settled)
    """
    records = notification.get("Records") or []
    results = await gather_all(dispatch_record(record, streams, store, session_factory) for record in records)
    return flatten(results)
