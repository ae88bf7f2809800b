"""
Recursive remote directory walk.

Depth-first, pre-order: a directory is yielded, then its whole subtree, before
the next sibling. Entries within one listing are handled strictly in sequence.
Transport failures propagate to the caller unchanged.
"""

from __future__ import annotations

from typing import Iterator, Protocol

from sftp_bridge.paths import child_path
from sftp_bridge.sync.types import RemoteEntry, TraversalContext, WalkItem


class DirectoryLister(Protocol):
    def list_dir(self, path: str) -> list[RemoteEntry]: ...


def walk(session: DirectoryLister, path: str, context: TraversalContext | None = None) -> Iterator[WalkItem]:
    """
    Walk the remote tree under ``path``.

    A directory named like the archive marker marks its entire subtree as
    archived, no matter how deep it sits.

    Args:
        session: Anything with ``list_dir(path) -> list[RemoteEntry]``
        path: Directory to start from
        context: Traversal state; defaults to a fresh context rooted at ``path``

    Yields:
        WalkItem per entry, with its full remote path and archive flag
    """
    context = context or TraversalContext(remote_root=path)
    for entry in session.list_dir(path):
        entry_path = child_path(path, entry.name)
        yield WalkItem(entry=entry, path=entry_path, inside_archive=context.inside_archive)
        if entry.is_dir:
            yield from walk(session, entry_path, context.descend(entry.name))
