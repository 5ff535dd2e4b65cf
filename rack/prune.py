"""Prune old snapshots, thinning history by the bit count of their index."""
from __future__ import annotations

from typing import TYPE_CHECKING

from rack import zfs
from rack.console import GREEN, RESET, RULE, YELLOW

if TYPE_CHECKING:
    from rack.executor import Executor
    from rack.models import Filesystem
    from rack.zfs import Inventory

DEFAULT_KEEP = 10


def prune_candidates(
    inventory: "Inventory",
    fs: "Filesystem",
    keep_recent: int = DEFAULT_KEEP,
) -> list[str]:
    """
    Return the snapshots of fs to destroy, oldest first.

    The newest keep_recent snapshots are always kept.  Going back from
    there, the first snapshot seen for each population count of its index
    is kept and every later one with the same count goes.  Since indexes
    only grow, this leaves roughly one snapshot per power of two as history
    ages, whatever the wall clock says.

    Snapshots outside this inventory's naming convention are not counted
    and never returned.
    """
    ours = inventory.indexed_snapshots(fs)
    newest_first = list(reversed(ours))

    seen: set[int] = set()
    doomed: list[str] = []
    for snap, index in newest_first[keep_recent:]:
        bits = bin(index).count("1")
        if bits in seen:
            doomed.append(snap)
        else:
            seen.add(bits)

    doomed.reverse()
    return doomed


def run_prune(
    under: str,
    inventory: "Inventory",
    executor: "Executor",
    keep_recent: int = DEFAULT_KEEP,
    really: bool = False,
    verbose: bool = False,
) -> int:
    """
    Prune every filesystem at or below `under`.  Returns the number of
    snapshots destroyed (or that would be, without `really`).

    Nothing is destroyed unless `really` is set.  Destroys run one at a
    time in the order prune_candidates gives; the first failure propagates.
    """
    plans: list[tuple["Filesystem", list[str]]] = []
    for fs in inventory.filtered(under):
        doomed = prune_candidates(inventory, fs, keep_recent)
        if verbose:
            kept = len(inventory.indexed_snapshots(fs)) - len(doomed)
            print(f"{fs.name}: keeping {kept}, pruning {len(doomed)}")
        if doomed:
            plans.append((fs, doomed))

    if not plans:
        print(f"{under}: {GREEN}nothing to prune{RESET}")
        return 0

    total = sum(len(doomed) for _, doomed in plans)
    label = "Will destroy" if really else "Would destroy"
    print(RULE)
    print(f"{label} {total} snapshot(s) across {len(plans)} filesystem(s):\n")

    for fs, doomed in plans:
        print(f"  {fs.name}: {len(doomed)} snapshot(s)")
        for snap in doomed:
            zfs.destroy_snapshot(
                fs.name, snap, executor, dry_run=not really, verbose=True,
            )

    if not really:
        print(f"\n{YELLOW}Pass --really to destroy these snapshots.{RESET}")
    return total
