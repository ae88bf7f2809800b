"""
Slash-delimited path mapping between the remote tree and the object store.

Comparisons are always done on segment sequences, never on raw strings, so
leading, trailing or doubled separators cannot cause false mismatches.
"""

from __future__ import annotations

from typing import Sequence


def to_segments(path: str | None) -> list[str]:
    """Split a path on ``/`` and drop empty segments.

    >>> to_segments("/path//to/dir/")
    ['path', 'to', 'dir']
    """
    return [segment for segment in (path or "").split("/") if segment]


def join_segments(segments: Sequence[str]) -> str:
    return "/".join(segments)


def has_prefix(path: str | Sequence[str], prefix: str | Sequence[str]) -> bool:
    """Whether ``prefix`` is a whole-segment prefix of ``path``.

    ``"bucket/sub"`` is a prefix of ``"bucket/sub/dir/x"`` but not of
    ``"bucket/subdir/x"``.
    """
    path_segments = to_segments(path) if isinstance(path, str) else list(path)
    prefix_segments = to_segments(prefix) if isinstance(prefix, str) else list(prefix)
    return path_segments[: len(prefix_segments)] == prefix_segments


def relative_segments(source_root: str | None, source_path: str | None) -> list[str]:
    """Segments of ``source_path`` with ``len(segments(source_root))`` leading ones removed."""
    return to_segments(source_path)[len(to_segments(source_root)) :]


def map_destination(source_root: str | None, source_path: str | None, dest_root: str | None) -> str:
    """Re-root ``source_path`` from ``source_root`` under ``dest_root``.

    Malformed input degenerates to empty segment sequences, which maps to
    root-level placement rather than an error.

    >>> map_destination("dir", "dir/sub/file.txt", "prefix/a")
    'prefix/a/sub/file.txt'
    """
    return join_segments(to_segments(dest_root) + relative_segments(source_root, source_path))


def child_path(parent: str, name: str) -> str:
    """Join a remote directory path and an entry name, keeping the parent's anchoring."""
    if not parent:
        return name
    return f"{parent.rstrip('/')}/{name}" if parent.rstrip("/") else f"/{name}"
