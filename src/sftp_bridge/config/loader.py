"""
Stream configuration loading.

Configuration is fetched fresh on every invocation, keyed by the invocation's
identity. In the serverless runtime it is a JSON document in the object store;
from the CLI it is a local config.yaml.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

import yaml

from sftp_bridge.config.models import StreamConfig, parse_streams
from sftp_bridge.config.resolver import resolve_placeholders
from sftp_bridge.config.settings import InvocationContext
from sftp_bridge.exceptions import ConfigurationError
from sftp_bridge.utils.logging import get_logger

logger = get_logger("sftp_bridge.config.loader")


class ConfigSource(Protocol):
    """Produces the full stream-name -> StreamConfig mapping for one invocation."""

    def load(self, context: InvocationContext) -> dict[str, StreamConfig]: ...


def config_bucket_for(context: InvocationContext) -> str:
    """Conventional bucket name: ``aws.lambda.<region>.<account-id>.config``."""
    if not context.region or not context.account_id:
        raise ConfigurationError(
            f"Cannot derive config bucket from function ARN {context.invoked_function_arn!r}",
            details={"function": context.function_name},
        )
    return f"aws.lambda.{context.region}.{context.account_id}.config"


class ObjectStoreConfigSource:
    """Reads ``<function-name>.json`` from the per-account config bucket."""

    def __init__(self, store: Any, bucket: str | None = None):
        self.store = store
        self.bucket = bucket

    def location(self, context: InvocationContext) -> tuple[str, str]:
        if not context.function_name:
            raise ConfigurationError("Invocation context has no function name")
        return self.bucket or config_bucket_for(context), f"{context.function_name}.json"

    def load(self, context: InvocationContext) -> dict[str, StreamConfig]:
        bucket, key = self.location(context)
        raw = self.store.read_bytes(bucket, key)
        try:
            document = json.loads(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"Error parsing stream config s3://{bucket}/{key}: {e}", details={"bucket": bucket, "key": key}
            ) from e
        return parse_streams(document)


class FileConfigSource:
    """Reads the ``streams:`` section of a local config.yaml."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self, context: InvocationContext | None = None) -> dict[str, StreamConfig]:
        return parse_streams(load_config(self.path).get("streams") or {})


def load_config(path: str | Path) -> dict[str, Any]:
    """
    Load a local YAML configuration file with ``${VAR}`` substitution.

    Args:
        path: Path to config.yaml

    Returns:
        Resolved configuration dictionary
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path}\n"
            f"  Suggestion: Create a config.yaml with a top-level 'streams:' mapping"
        )
    if not path.is_file():
        raise ConfigurationError(f"Configuration path is not a file: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            if hasattr(e, "problem_mark"):
                mark = e.problem_mark
                raise ConfigurationError(
                    f"Error parsing {path.name} at line {mark.line + 1}, column {mark.column + 1}:\n"
                    f"  {e}\n"
                    f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes"
                ) from e
            raise ConfigurationError(f"Error parsing {path.name}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration must be a mapping, got {type(data).__name__}")
    return resolve_placeholders(data)
