"""
Process settings and invocation identity.

Settings come from environment variables so the same build runs unchanged in
every deployment; the invocation identity comes from the serverless runtime.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

from sftp_bridge.exceptions import ConfigurationError

ENV_PREFIX = "SFTP_BRIDGE_"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Runtime knobs; every field maps to an ``SFTP_BRIDGE_*`` environment variable."""

    log_level: str = "INFO"
    config_bucket: str | None = None
    drain_max_batches: int = 10
    drain_batch_size: int = 10
    max_receive_count: int = 5
    visibility_timeout: int = 300
    connect_timeout: float = 15.0
    region: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        timeout = env.get(ENV_PREFIX + "CONNECT_TIMEOUT")
        return cls(
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL", "INFO"),
            config_bucket=env.get(ENV_PREFIX + "CONFIG_BUCKET") or None,
            drain_max_batches=_env_int(env, "DRAIN_MAX_BATCHES", 10),
            # The queue provider returns at most 10 messages per receive.
            drain_batch_size=min(_env_int(env, "DRAIN_BATCH_SIZE", 10), 10),
            max_receive_count=_env_int(env, "MAX_RECEIVE_COUNT", 5),
            visibility_timeout=_env_int(env, "VISIBILITY_TIMEOUT", 300),
            connect_timeout=float(timeout) if timeout else 15.0,
            region=env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or None,
        )


@dataclass(frozen=True)
class InvocationContext:
    """Identity of the running invocation.

    ``invoked_function_arn`` looks like
    ``arn:aws:lambda:us-east-1:1234567890:function:my-function``.
    """

    function_name: str
    invoked_function_arn: str = ""

    @classmethod
    def from_lambda_context(cls, context: Any) -> "InvocationContext":
        if isinstance(context, InvocationContext):
            return context
        if isinstance(context, Mapping):
            return cls(
                function_name=context.get("function_name") or context.get("functionName") or "",
                invoked_function_arn=context.get("invoked_function_arn") or context.get("invokedFunctionArn") or "",
            )
        return cls(
            function_name=getattr(context, "function_name", "") or "",
            invoked_function_arn=getattr(context, "invoked_function_arn", "") or "",
        )

    def _arn_part(self, index: int) -> str | None:
        parts = self.invoked_function_arn.split(":")
        return parts[index] if len(parts) > index and parts[index] else None

    @property
    def region(self) -> str | None:
        return self._arn_part(3)

    @property
    def account_id(self) -> str | None:
        return self._arn_part(4)
