"""
Bind mounts that give external tools a stable path to a snapshot.

None of the snap, prune or clone commands use this module.  It is for
callers that hand a snapshot to an outside backup tool (a borg or restic
runner, say) which expects the same directory on every run: they look up
the snapshot with snapshot_dir and hold it at a fixed empty directory with
bind_mount for as long as the tool runs.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from rack.errors import PolicyError
from rack.models import NO_MOUNTPOINT

if TYPE_CHECKING:
    from rack.executor import Executor
    from rack.models import Filesystem


def snapshot_dir(fs: "Filesystem", snapshot: str) -> str:
    """Where zfs exposes a snapshot of a mounted filesystem."""
    if fs.mountpoint in (NO_MOUNTPOINT, "none", "legacy"):
        raise PolicyError(f"{fs.name} has no usable mountpoint ({fs.mountpoint})")
    return os.path.join(fs.mountpoint, ".zfs", "snapshot", snapshot)


def _ensure_empty(path: str) -> None:
    if not os.path.isdir(path):
        raise PolicyError(f"Mount target {path} is not a directory")
    entries = os.listdir(path)
    if entries:
        raise PolicyError(f"Mount target {path} is not empty (has {entries[0]!r})")


@contextmanager
def bind_mount(source: str, target: str, executor: "Executor") -> Iterator[str]:
    """
    Bind mount source on target for the duration of the with block.

    target must be an existing, empty directory.  It is unmounted on the
    way out whether or not the block raised.
    """
    _ensure_empty(target)
    executor.run(["mount", "--bind", source, target])
    try:
        yield target
    finally:
        executor.run(["umount", target])
