"""Take new snapshots of the volumes named in the config file."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from rack import zfs
from rack.zfs import Inventory

if TYPE_CHECKING:
    from rack.executor import Executor
    from rack.models import SnapConfig


def run_snapshots(
    config: "SnapConfig",
    executor: "Executor",
    now: datetime | None = None,
    pretend: bool = False,
    verbose: bool = False,
) -> list[str]:
    """
    Snapshot each configured volume recursively under its convention.

    The index is one past the highest already used anywhere in the volume's
    tree, so every filesystem below it gets the same new name.  Returns the
    full snapshot names taken.
    """
    if now is None:
        now = datetime.now()

    taken = []
    for volume in config.volumes:
        # Fresh listing each time: an earlier volume may share this tree.
        inventory = Inventory.load(volume.convention, executor)
        index = inventory.next_index(volume.zfs)
        name = inventory.snap_name(index, now)
        print(f"{volume.name}: snapshot {volume.zfs}@{name}")
        zfs.take_snapshot(volume.zfs, name, executor, dry_run=pretend, verbose=verbose)
        taken.append(f"{volume.zfs}@{name}")
    return taken
