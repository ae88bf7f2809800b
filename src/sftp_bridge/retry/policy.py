"""
Redelivery policy of the durable retry queue.

The coordinator keeps no attempt counter of its own: un-acknowledged messages
come back after the visibility timeout, and the queue's redrive policy
dead-letters them after ``max_receive_count`` receives. This dataclass makes
those provider settings explicit so the coordinator can use and report them.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RedeliveryPolicy:
    """
    Provider-side redelivery settings for the retry queue.

    Examples:
        >>> policy = RedeliveryPolicy(max_receive_count=5, visibility_timeout=300)
        >>> policy.is_final_attempt(5)
        True
    """

    # Receives after which the queue's redrive policy dead-letters a message
    max_receive_count: int = 5

    # Seconds a received message stays hidden before it is redelivered
    visibility_timeout: int = 300

    def __post_init__(self):
        """Validate configuration."""
        if self.max_receive_count < 1:
            raise ValueError("max_receive_count must be >= 1")
        if self.visibility_timeout < 0:
            raise ValueError("visibility_timeout must be >= 0")

    def is_final_attempt(self, receive_count: int) -> bool:
        """Whether a failure on this receive sends the message to the dead-letter queue."""
        return receive_count >= self.max_receive_count


DEFAULT_REDELIVERY_POLICY = RedeliveryPolicy()
