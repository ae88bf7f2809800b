"""
Durable retry queue for failed push dispatches.
"""

from sftp_bridge.retry.coordinator import RetryQueueCoordinator
from sftp_bridge.retry.policy import DEFAULT_REDELIVERY_POLICY, RedeliveryPolicy

__all__ = [
    "RetryQueueCoordinator",
    "RedeliveryPolicy",
    "DEFAULT_REDELIVERY_POLICY",
]
