"""
SQS connection backing the durable retry queue.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from sftp_bridge.exceptions import QueueError
from sftp_bridge.utils.logging import get_logger

logger = get_logger("sftp_bridge.connections.sqs")


@dataclass
class QueueMessage:
    """One received message plus the handle used to acknowledge it."""

    message_id: str
    body: str
    receipt_handle: str
    receive_count: int = 1
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, message: dict[str, Any]) -> "QueueMessage":
        attributes = message.get("Attributes") or {}
        return cls(
            message_id=message.get("MessageId", ""),
            body=message.get("Body", ""),
            receipt_handle=message["ReceiptHandle"],
            receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
            attributes=attributes,
        )


class SQSConnection:
    """
    Retry queue access by queue name.

    The queue URL is resolved once from the name (the invocation's own function
    name) and cached for the lifetime of the connection.
    """

    def __init__(self, queue_name: str, region: Optional[str] = None, client: Any = None):
        self.queue_name = queue_name
        self.region = region
        self._client = client
        self._client_lock = threading.Lock()
        self._queue_url: Optional[str] = None

    @property
    def client(self):
        """Get (or create) the SQS client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    import boto3

                    kwargs: dict[str, Any] = {"config": Config(retries={"max_attempts": 3, "mode": "standard"})}
                    if self.region:
                        kwargs["region_name"] = self.region
                    self._client = boto3.client("sqs", **kwargs)
        return self._client

    @property
    def queue_url(self) -> str:
        if self._queue_url is None:
            try:
                self._queue_url = self.client.get_queue_url(QueueName=self.queue_name)["QueueUrl"]
            except (ClientError, BotoCoreError) as e:
                raise QueueError(
                    f"Could not resolve retry queue '{self.queue_name}': {e}", details={"queue": self.queue_name}
                ) from e
        return self._queue_url

    def send(self, body: str) -> dict[str, Any]:
        try:
            return self.client.send_message(QueueUrl=self.queue_url, MessageBody=body)
        except (ClientError, BotoCoreError) as e:
            raise QueueError(f"Send to '{self.queue_name}' failed: {e}", details={"queue": self.queue_name}) from e

    def receive(self, max_messages: int = 10, visibility_timeout: Optional[int] = None) -> list[QueueMessage]:
        kwargs: dict[str, Any] = {
            "QueueUrl": self.queue_url,
            "MaxNumberOfMessages": max_messages,
            "AttributeNames": ["ApproximateReceiveCount"],
        }
        if visibility_timeout is not None:
            kwargs["VisibilityTimeout"] = visibility_timeout
        try:
            response = self.client.receive_message(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise QueueError(
                f"Receive from '{self.queue_name}' failed: {e}", details={"queue": self.queue_name}
            ) from e
        return [QueueMessage.from_response(m) for m in response.get("Messages") or []]

    def delete(self, receipt_handle: str) -> None:
        try:
            self.client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (ClientError, BotoCoreError) as e:
            raise QueueError(f"Delete from '{self.queue_name}' failed: {e}", details={"queue": self.queue_name}) from e

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(queue='{self.queue_name}')"
