"""
sftp-bridge exception hierarchy.

All domain-specific exceptions inherit from BridgeError, so a caller can catch
any engine failure with one base class and still branch on the concrete kind.

Hierarchy::

    BridgeError
    ├── ConfigurationError        - missing stream, store location or connection block
    ├── TransportError            - remote (SFTP) or object store I/O failure
    │   └── ClientTimeoutError    - transient connect timeout against the remote host
    └── QueueError                - retry queue failures
        ├── EnqueueError          - a failed notification could not be queued
        └── QueueDrainError       - replay of one queued message failed
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all sftp-bridge errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(BridgeError):
    """Raised when stream configuration is missing, malformed or incomplete."""


# --- Transport ---------------------------------------------------------------


class TransportError(BridgeError):
    """Raised when a remote or object store operation fails."""

    def __init__(
        self,
        message: str,
        *,
        details: dict | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, details=details)
        if cause is not None:
            self.__cause__ = cause


class ClientTimeoutError(TransportError):
    """Raised when connecting to the remote host times out.

    A scheduled pull treats this as an empty successful run, since the next
    schedule tick retries naturally.
    """


# --- Retry queue -------------------------------------------------------------


class QueueError(BridgeError):
    """Raised when the durable retry queue cannot be used."""


class EnqueueError(QueueError):
    """Raised when a failed notification cannot be written to the retry queue."""

    def __init__(self, queue_name: str, *, cause: BaseException | None = None) -> None:
        super().__init__(
            f"Could not enqueue notification on retry queue '{queue_name}'",
            details={"queue": queue_name},
        )
        self.queue_name = queue_name
        if cause is not None:
            self.__cause__ = cause


class QueueDrainError(QueueError):
    """Raised when replaying a queued message fails; the message stays queued."""

    def __init__(self, message_id: str, *, cause: BaseException | None = None) -> None:
        reason = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Replay of queued message '{message_id}' failed{reason}",
            details={"message_id": message_id},
        )
        self.message_id = message_id
        if cause is not None:
            self.__cause__ = cause
