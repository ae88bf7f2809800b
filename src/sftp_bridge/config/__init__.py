"""
Configuration management: stream records, sources, settings and resolution.
"""

from sftp_bridge.config.loader import ConfigSource, FileConfigSource, ObjectStoreConfigSource, load_config
from sftp_bridge.config.models import RemoteConnectionConfig, StoreLocation, StreamConfig, parse_streams
from sftp_bridge.config.resolver import resolve_connection, resolve_placeholders
from sftp_bridge.config.settings import InvocationContext, Settings

__all__ = [
    "ConfigSource",
    "FileConfigSource",
    "ObjectStoreConfigSource",
    "load_config",
    "RemoteConnectionConfig",
    "StoreLocation",
    "StreamConfig",
    "parse_streams",
    "resolve_connection",
    "resolve_placeholders",
    "InvocationContext",
    "Settings",
]
