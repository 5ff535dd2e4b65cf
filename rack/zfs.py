"""ZFS inventory and commands, run through an Executor."""
from __future__ import annotations

import re
import shlex
from datetime import datetime
from typing import TYPE_CHECKING

from rack.executor import run_pipeline
from rack.models import Filesystem, Property, Transfer
from rack.parse import parse_listing, parse_properties, parse_send_size

if TYPE_CHECKING:
    from rack.executor import Executor

LIST_CMD = ["zfs", "list", "-H", "-t", "all", "-o", "name,mountpoint"]

# Never copied to a new replica, so receiving does not mount over the source.
SKIP_PROPERTIES = {"mountpoint"}


class Inventory:
    """
    Every filesystem zfs knows about, as seen under one snapshot prefix.

    Different prefixes give independent snapshot sequences.  Snapshots that
    don't follow `<prefix><4 digit index>-<timestamp>` are still listed on
    their filesystem but are ignored when numbering or pruning.

    An Inventory is a picture taken at load time.  Commands issued afterwards
    are not reflected in it; load a new one to see them.
    """

    def __init__(self, prefix: str, filesystems: list[Filesystem]):
        self.prefix = prefix
        self.filesystems = tuple(filesystems)
        self.snapshot_pattern = re.compile(
            r"^{}(\d{{4}})-([-\d]+)$".format(re.escape(prefix))
        )

    @classmethod
    def load(cls, prefix: str, executor: "Executor") -> "Inventory":
        """Ask zfs for every filesystem and snapshot on the system."""
        return cls(prefix, parse_listing(executor.run(LIST_CMD)))

    def get(self, name: str) -> Filesystem | None:
        for fs in self.filesystems:
            if fs.name == name:
                return fs
        return None

    def filtered(self, under: str) -> list[Filesystem]:
        """Filesystems at `under` and below, in listing order."""
        return [fs for fs in self.filesystems if fs.is_under(under)]

    def snapshot_index(self, snapshot: str) -> int | None:
        """The numeric index of a snapshot name, or None if it isn't ours."""
        m = self.snapshot_pattern.match(snapshot)
        if m is None:
            return None
        return int(m.group(1))

    def indexed_snapshots(self, fs: Filesystem) -> list[tuple[str, int]]:
        """(name, index) for each of our snapshots on fs, oldest first."""
        results = []
        for snap in fs.snapshots:
            index = self.snapshot_index(snap)
            if index is not None:
                results.append((snap, index))
        return results

    def next_index(self, under: str) -> int:
        """One past the highest index used anywhere at or below `under`."""
        next_ = 0
        for fs in self.filtered(under):
            for _, index in self.indexed_snapshots(fs):
                next_ = max(next_, index + 1)
        return next_

    def snap_name(self, index: int, now: datetime) -> str:
        return f"{self.prefix}{index:04d}-{now:%Y%m%d%H%M%S}"


def take_snapshot(
    fs: str,
    snapshot: str,
    executor: "Executor",
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """Make a recursive snapshot of fs and everything below it."""
    cmd = ["zfs", "snapshot", "-r", f"{fs}@{snapshot}"]
    if dry_run or verbose:
        print(f"  [snapshot] {shlex.join(cmd)}")
    if dry_run:
        return
    executor.run(cmd)


def destroy_snapshot(
    fs: str,
    snapshot: str,
    executor: "Executor",
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """Destroy a single snapshot."""
    cmd = ["zfs", "destroy", f"{fs}@{snapshot}"]
    if dry_run or verbose:
        print(f"  [destroy] {shlex.join(cmd)}")
    if dry_run:
        return
    executor.run(cmd)


def get_properties(fs: str, executor: "Executor") -> list[Property]:
    output = executor.run([
        "zfs", "get", "-H", "-o", "name,property,value,source", "all", fs,
    ])
    return parse_properties(output)


def replica_properties(props: list[Property]) -> dict[str, str]:
    """Properties explicitly set on a source that a new replica should carry."""
    return {
        p.name: p.value
        for p in props
        if p.is_explicit and p.name not in SKIP_PROPERTIES
    }


def create_volume(
    fs: str,
    properties: dict[str, str],
    executor: "Executor",
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    cmd = ["zfs", "create"]
    for name, value in properties.items():
        cmd += ["-o", f"{name}={value}"]
    cmd.append(fs)
    if dry_run or verbose:
        print(f"  [create] {shlex.join(cmd)}")
    if dry_run:
        return
    executor.run(cmd)


def estimate_size(transfer: Transfer, executor: "Executor") -> int:
    """Bytes `zfs send` expects to produce for this range (0 if unknown)."""
    output = executor.run(["zfs", "send", "-nP"] + transfer.send_args())
    return parse_send_size(output)


def send_receive(
    transfer: Transfer,
    executor: "Executor",
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """
    Copy a snapshot range into transfer.dest.

    Uses: zfs send [-I @base] fs@newest | pv -s SIZE | zfs receive -F -u dest

    The receive is forced so the destination is rolled back to match, and
    unmounted so the replica never shadows the live filesystem.  pv only
    reports progress; the size comes from a dry-run send beforehand.
    """
    send_cmd = ["zfs", "send"] + transfer.send_args()
    recv_cmd = ["zfs", "receive", "-F", "-u", transfer.dest]

    if dry_run:
        print(f"  [send] {shlex.join(send_cmd)}")
        print(f"  [recv] {shlex.join(recv_cmd)}")
        return

    size = estimate_size(transfer, executor)
    pv_cmd = ["pv", "-s", str(size)]
    if verbose:
        print(f"  [send] {shlex.join(send_cmd)} | {shlex.join(pv_cmd)} | {shlex.join(recv_cmd)}")

    run_pipeline([send_cmd, pv_cmd, recv_cmd], executor)
