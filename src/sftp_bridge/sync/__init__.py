"""
Bidirectional sync engines.

Pull: remote tree walk -> object store, with archive purge.
Push: storage notification -> every matching remote destination.
"""

from sftp_bridge.sync.pull import pull_stream, sync_directory
from sftp_bridge.sync.push import dispatch, dispatch_record, is_delivered, matching_streams
from sftp_bridge.sync.types import ARCHIVE_DIR, DeliveryOutcome, EntryKind, RemoteEntry, SyncOutcome, WalkItem
from sftp_bridge.sync.walker import walk

__all__ = [
    "pull_stream",
    "sync_directory",
    "dispatch",
    "dispatch_record",
    "is_delivered",
    "matching_streams",
    "walk",
    "ARCHIVE_DIR",
    "DeliveryOutcome",
    "EntryKind",
    "RemoteEntry",
    "SyncOutcome",
    "WalkItem",
]
