"""
Invocation router: the serverless entry point.

Two trigger shapes reach the function:

- a storage notification (``{"Records": [...]}``) runs push dispatch; a failed
  dispatch is stored on the retry queue and the invocation still succeeds
- a scheduled trigger (``{"resources": ["arn:...:rule/stream-a.stream-b"]}``)
  runs a pull sync per named stream, concurrently; the reserved name ``poll``
  drains the retry queue instead
"""

from __future__ import annotations

from typing import Any, Mapping

from sftp_bridge.config.settings import InvocationContext, Settings
from sftp_bridge.exceptions import ClientTimeoutError, ConfigurationError, EnqueueError
from sftp_bridge.services import Services, get_default_services
from sftp_bridge.sync.pull import pull_stream
from sftp_bridge.sync.push import dispatch
from sftp_bridge.utils.async_utils import dual, flatten, gather_all, run_blocking
from sftp_bridge.utils.logging import get_logger, setup_logging

logger = get_logger("sftp_bridge.handler")

RESERVED_DRAIN_STREAM = "poll"
_RULE_MARKER = "rule/"


def stream_names_from_resource(resource: str) -> list[str]:
    """
    Stream names encoded in one schedule rule identifier.

    ``arn:aws:events:us-east-1:123:rule/orders.invoices`` -> ``["orders", "invoices"]``
    """
    start = resource.lower().find(_RULE_MARKER)
    suffix = resource[start + len(_RULE_MARKER) :] if start >= 0 else resource
    return [name.strip() for name in suffix.split(".") if name.strip()]


def stream_names_from_event(event: Mapping[str, Any]) -> list[str]:
    resources = event.get("resources") or []
    if isinstance(resources, str):
        resources = [resources]
    names: list[str] = []
    for resource in resources:
        names.extend(stream_names_from_resource(resource))
    return names


def is_notification(event: Mapping[str, Any]) -> bool:
    return "Records" in event


async def drain_retry_queue(context: InvocationContext, services: Services) -> list[Any]:
    """Replay queued notifications through push dispatch."""
    coordinator = services.coordinator(context)

    async def replay(notification: dict[str, Any]) -> list[Any]:
        return await replay_notification(notification, context, services)

    return await coordinator.drain(
        replay,
        max_batches=services.settings.drain_max_batches,
        batch_size=services.settings.drain_batch_size,
    )


async def pull_sync(event: Mapping[str, Any], context: InvocationContext, services: Services) -> list[Any]:
    """
    Pull every stream named by a scheduled trigger, concurrently.

    Raises:
        ConfigurationError: If no stream names can be derived, or a name is not configured
    """
    names = stream_names_from_event(event)
    if not names:
        raise ConfigurationError("streamNames required for config discovery")

    streams = await run_blocking(services.config_source.load, context)
    now = services.clock()

    async def run(name: str) -> list[Any]:
        if name == RESERVED_DRAIN_STREAM:
            return await drain_retry_queue(context, services)
        stream = streams.get(name)
        if stream is None:
            raise ConfigurationError(f"streamName [{name}] not found in config", details={"stream": name})
        return await pull_stream(stream, services.store, services.session_factory, now=now)

    return flatten(await gather_all(run(name) for name in names))


async def handle_scheduled(event: Mapping[str, Any], context: InvocationContext, services: Services) -> list[Any]:
    """A transient connect timeout reports an empty success; the next schedule retries."""
    try:
        return await pull_sync(event, context, services)
    except ClientTimeoutError as e:
        logger.warning(f"ClientTimeoutError: {e}")
        return []
    except Exception:
        logger.exception("Scheduled sync failed")
        raise


async def replay_notification(
    notification: Mapping[str, Any], context: InvocationContext, services: Services
) -> list[Any]:
    streams = await run_blocking(services.config_source.load, context)
    return await dispatch(notification, streams, services.store, services.session_factory)


async def handle_notification(
    event: Mapping[str, Any], context: InvocationContext, services: Services
) -> list[Any] | dict[str, Any]:
    """
    Dispatch a storage notification; on any failure, store it for a later drain.

    Returns:
        The delivery outcomes, or the retry queue's send response after a failure

    Raises:
        EnqueueError: If the failed notification could not be stored
    """
    try:
        return await replay_notification(event, context, services)
    except Exception as e:
        logger.warning(f"Dispatch failed: {e}")
        try:
            return await run_blocking(services.coordinator(context).enqueue_for_retry, event)
        except EnqueueError:
            logger.exception("Could not store failed notification")
            raise


def _serialize(result: Any) -> Any:
    if isinstance(result, list):
        return [item.to_dict() if hasattr(item, "to_dict") else item for item in result]
    return result


@dual
async def handle(event: Mapping[str, Any], context: Any, services: Services | None = None) -> Any:
    """
    Route one invocation by trigger shape.

    Callable synchronously (serverless runtime) or awaited (tests, async callers).
    """
    services = services or get_default_services()
    invocation = InvocationContext.from_lambda_context(context)
    if is_notification(event):
        result = await handle_notification(event, invocation, services)
    else:
        result = await handle_scheduled(event, invocation, services)
    return _serialize(result)


def lambda_handler(event: Mapping[str, Any], context: Any) -> Any:
    """Entry point configured in the serverless runtime."""
    setup_logging(Settings.from_env().log_level)
    return handle(event, context)
