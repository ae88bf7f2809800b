"""
sftp-bridge - Bidirectional sync between SFTP directory trees and S3.

Scheduled triggers pull new remote files into S3 and purge expired archives;
S3 notifications push new objects to every matching SFTP destination, with a
durable retry queue behind failed pushes.
"""

__version__ = "0.1.0"

# Entry points
from sftp_bridge.handler import handle, lambda_handler

# Engines
from sftp_bridge.retry import RedeliveryPolicy, RetryQueueCoordinator
from sftp_bridge.sync import dispatch, pull_stream, sync_directory, walk

# Configuration
from sftp_bridge.config import InvocationContext, Settings, StreamConfig

# Exceptions
from sftp_bridge.exceptions import (
    BridgeError,
    ClientTimeoutError,
    ConfigurationError,
    EnqueueError,
    QueueDrainError,
    QueueError,
    TransportError,
)

__all__ = [
    "__version__",
    "handle",
    "lambda_handler",
    "RedeliveryPolicy",
    "RetryQueueCoordinator",
    "dispatch",
    "pull_stream",
    "sync_directory",
    "walk",
    "InvocationContext",
    "Settings",
    "StreamConfig",
    "BridgeError",
    "ClientTimeoutError",
    "ConfigurationError",
    "EnqueueError",
    "QueueDrainError",
    "QueueError",
    "TransportError",
]
