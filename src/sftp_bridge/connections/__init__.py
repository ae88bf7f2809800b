"""
External collaborators: remote SFTP endpoint, object store and retry queue.
"""

from sftp_bridge.connections.s3 import S3Connection, StoredObject
from sftp_bridge.connections.sftp import SFTPConnection
from sftp_bridge.connections.sqs import QueueMessage, SQSConnection

__all__ = [
    "S3Connection",
    "StoredObject",
    "SFTPConnection",
    "QueueMessage",
    "SQSConnection",
]
