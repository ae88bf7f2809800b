"""
Retry queue coordinator: at-least-once delivery for failed push dispatches.

Producer side: a notification whose dispatch failed is serialized whole and
sent to the durable queue. Consumer side: a drain cycle receives batches and
replays each message strictly in sequence, deleting a message only after its
replay succeeded. A failed replay leaves the message queued for the queue's
own redelivery; there is no backoff or attempt counter here.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Mapping, Protocol

from sftp_bridge.exceptions import EnqueueError, QueueDrainError, QueueError
from sftp_bridge.retry.policy import DEFAULT_REDELIVERY_POLICY, RedeliveryPolicy
from sftp_bridge.utils.async_utils import run_blocking
from sftp_bridge.utils.logging import get_logger

logger = get_logger("sftp_bridge.retry.coordinator")

Replay = Callable[[dict[str, Any]], Awaitable[list[Any]]]


class RetryQueue(Protocol):
    queue_name: str

    def send(self, body: str) -> dict[str, Any]: ...

    def receive(self, max_messages: int = 10, visibility_timeout: int | None = None) -> list[Any]: ...

    def delete(self, receipt_handle: str) -> None: ...


class RetryQueueCoordinator:
    """
    Enqueue failed notifications and drain them back through dispatch.

    Example:
        coordinator = RetryQueueCoordinator(SQSConnection("my-function"))
        coordinator.enqueue_for_retry(event)
        replayed = await coordinator.drain(replay, max_batches=10, batch_size=10)
    """

    def __init__(self, queue: RetryQueue, policy: RedeliveryPolicy | None = None):
        self.queue = queue
        self.policy = policy or DEFAULT_REDELIVERY_POLICY

    def enqueue_for_retry(self, notification: Mapping[str, Any]) -> dict[str, Any]:
        """
        Store the full original notification for a later drain.

        Raises:
            EnqueueError: If the queue rejects the message; there is no further fallback
        """
        logger.info("Writing failed message to queue for later processing.")
        try:
            return self.queue.send(json.dumps(notification))
        except QueueError as e:
            raise EnqueueError(self.queue.queue_name, cause=e) from e

    async def drain(self, replay: Replay, max_batches: int = 10, batch_size: int = 10) -> list[Any]:
        """
        Replay queued notifications, up to ``max_batches`` receives of ``batch_size``.

        Stops early when a receive comes back empty.

        Returns:
            Flattened results of every successful replay
        """
        replayed: list[Any] = []
        for batch in range(max_batches):
            messages = await run_blocking(self.queue.receive, batch_size, self.policy.visibility_timeout)
            if not messages:
                logger.debug(f"Retry queue '{self.queue.queue_name}' empty after {batch} batches")
                break
            for message in messages:
                try:
                    results = await self._replay_one(replay, message)
                except QueueDrainError as e:
                    if self.policy.is_final_attempt(message.receive_count):
                        logger.error(
                            f"{e.message}; receive {message.receive_count} of {self.policy.max_receive_count}, "
                            f"the queue will dead-letter it"
                        )
                    else:
                        logger.warning(f"{e.message}; left on queue for redelivery")
                    continue
                await run_blocking(self.queue.delete, message.receipt_handle)
                replayed.extend(results)
        logger.info(f"Replayed {len(replayed)} deliveries from retry queue '{self.queue.queue_name}'")
        return replayed

    async def _replay_one(self, replay: Replay, message: Any) -> list[Any]:
        try:
            notification = json.loads(message.body)
            return await replay(notification)
        except Exception as e:
            raise QueueDrainError(message.message_id, cause=e) from e
