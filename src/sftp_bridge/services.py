"""
Collaborator wiring for one process.

Bundles the object store, stream configuration source, retry queue and remote
session factory so the router can be driven by real AWS/SFTP clients in the
serverless runtime and by in-memory doubles in tests. boto3 clients are reused
across warm invocations; stream configuration is not.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager

from sftp_bridge.config.loader import ConfigSource, ObjectStoreConfigSource
from sftp_bridge.config.models import RemoteConnectionConfig
from sftp_bridge.config.settings import InvocationContext, Settings
from sftp_bridge.connections.s3 import S3Connection
from sftp_bridge.connections.sftp import SFTPConnection
from sftp_bridge.connections.sqs import SQSConnection
from sftp_bridge.retry.coordinator import RetryQueue, RetryQueueCoordinator
from sftp_bridge.retry.policy import RedeliveryPolicy


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Services:
    """Everything an invocation talks to outside its own process."""

    store: Any
    config_source: ConfigSource
    queue_factory: Callable[[str], RetryQueue]
    session_factory: Callable[[RemoteConnectionConfig], ContextManager[Any]] = SFTPConnection
    settings: Settings = field(default_factory=Settings)
    clock: Callable[[], datetime] = _utcnow

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        store = S3Connection(config={"config": {"region": settings.region}})

        def session_factory(connection: RemoteConnectionConfig) -> SFTPConnection:
            return SFTPConnection(connection, default_timeout=settings.connect_timeout)

        return cls(
            store=store,
            config_source=ObjectStoreConfigSource(store, bucket=settings.config_bucket),
            queue_factory=lambda name: SQSConnection(name, region=settings.region),
            session_factory=session_factory,
            settings=settings,
        )

    @property
    def redelivery_policy(self) -> RedeliveryPolicy:
        return RedeliveryPolicy(
            max_receive_count=self.settings.max_receive_count,
            visibility_timeout=self.settings.visibility_timeout,
        )

    def coordinator(self, context: InvocationContext) -> RetryQueueCoordinator:
        """The retry queue is named after the invocation's own function."""
        return RetryQueueCoordinator(self.queue_factory(context.function_name), self.redelivery_policy)


_default_services: Services | None = None


def get_default_services() -> Services:
    """Get (or create) the process-wide services built from the environment."""
    global _default_services
    if _default_services is None:
        _default_services = Services.from_settings(Settings.from_env())
    return _default_services
