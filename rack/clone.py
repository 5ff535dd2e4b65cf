"""Clone a tree of filesystems, with their snapshot history, to another tree."""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rack import zfs
from rack.console import GREEN, RED, RESET, RULE, YELLOW
from rack.errors import PolicyError, RackError
from rack.models import Transfer
from rack.zfs import Inventory

if TYPE_CHECKING:
    from rack.executor import Executor
    from rack.models import CloneConfig, Filesystem


class CloneError(RackError):
    """One or more filesystems could not be cloned."""
    def __init__(self, failures: list[tuple[str, str]]):
        self.failures = failures
        lines = [f"{name}: {reason}" for name, reason in failures]
        super().__init__(
            f"{len(failures)} filesystem(s) failed to clone:\n  " + "\n  ".join(lines)
        )


@dataclass(frozen=True)
class CloneMapping:
    """A source filesystem and where it lands under the destination tree."""
    source: "Filesystem"
    dest_name: str
    dest: "Filesystem | None" = None


@dataclass
class CloneStep:
    """What has to happen to bring one destination up to its source."""
    mapping: CloneMapping
    # One of: "in_sync", "seed", "update"
    action: str
    create: bool = False
    transfers: list[Transfer] = field(default_factory=list)


def plan_clone(
    inventory: Inventory,
    source: str,
    dest: str,
    excludes: list[str] | tuple[str, ...] = (),
) -> list[CloneMapping]:
    """
    Pair each filesystem under source with its counterpart under dest.

    Filesystems are matched by their name relative to the two roots, so
    source/a pairs with dest/a.  Order follows the source listing, which
    puts every parent before its children.
    """
    if inventory.get(source) is None:
        raise PolicyError(f"Source filesystem does not exist: {source}")
    for outer, inner in ((source, dest), (dest, source)):
        if inner == outer or inner.startswith(outer + "/"):
            raise PolicyError(f"Cannot clone between nested trees {source} and {dest}")

    existing = {
        fs.name[len(dest):]: fs for fs in inventory.filtered(dest)
    }

    mappings = []
    for fs in inventory.filtered(source):
        if any(fs.is_under(excl) for excl in excludes):
            continue
        suffix = fs.name[len(source):]
        mappings.append(CloneMapping(
            source=fs,
            dest_name=dest + suffix,
            dest=existing.get(suffix),
        ))
    return mappings


def reconcile(mapping: CloneMapping) -> CloneStep:
    """
    Decide the transfers one mapping needs.  Raises PolicyError if the
    destination can't be brought in line automatically.
    """
    src = mapping.source
    if not src.snapshots:
        raise PolicyError(f"{src.name} has no snapshots to clone from")

    dest_snaps = mapping.dest.snapshots if mapping.dest is not None else ()

    if not dest_snaps:
        # Seed with the oldest snapshot first so both sides share a base that
        # later incremental runs can build on, then bring over the rest.
        step = CloneStep(mapping, "seed", create=mapping.dest is None)
        step.transfers.append(Transfer(src.name, mapping.dest_name, src.oldest))
        if src.newest != src.oldest:
            step.transfers.append(Transfer(
                src.name, mapping.dest_name, src.newest, base=src.oldest,
            ))
        return step

    dest_newest = dest_snaps[-1]
    if dest_newest not in src.snapshots:
        raise PolicyError(
            f"{mapping.dest_name}@{dest_newest} is not in the history of "
            f"{src.name}; destination has diverged"
        )
    if dest_newest == src.newest:
        return CloneStep(mapping, "in_sync")

    return CloneStep(mapping, "update", transfers=[
        Transfer(src.name, mapping.dest_name, src.newest, base=dest_newest),
    ])


def run_clone(
    source: str,
    dest: str,
    executor: "Executor",
    prefix: str = "",
    excludes: list[str] | tuple[str, ...] = (),
    pretend: bool = False,
    verbose: bool = False,
) -> int:
    """
    Clone the tree at source into dest.  Returns the number of transfers.

    A filesystem whose state rules out a clone is reported and skipped; once
    every other filesystem has been handled a CloneError lists them all.  A
    failing zfs command stops the whole run immediately, since later
    filesystems may depend on what it was creating.
    """
    inventory = Inventory.load(prefix, executor)
    mappings = plan_clone(inventory, source, dest, excludes)

    failures: list[tuple[str, str]] = []
    in_sync = 0
    transfers = 0

    for mapping in mappings:
        src_name = mapping.source.name
        try:
            step = reconcile(mapping)
        except PolicyError as e:
            print(f"\n{RED}ERROR: {e}{RESET}", file=sys.stderr)
            failures.append((src_name, str(e)))
            continue

        if step.action == "in_sync":
            in_sync += 1
            if verbose:
                print(f"\n{src_name}: {GREEN}Up to date{RESET} at @{mapping.source.newest}")
            continue

        print(f"\n{RULE}")
        print(f"Cloning: {src_name} -> {mapping.dest_name}")

        if step.create:
            props = zfs.replica_properties(zfs.get_properties(src_name, executor))
            print(f"  {YELLOW}Creating {mapping.dest_name}{RESET}")
            zfs.create_volume(
                mapping.dest_name, props, executor, dry_run=pretend, verbose=verbose,
            )

        for transfer in step.transfers:
            print(f"  Sending {transfer.describe()}")
            zfs.send_receive(transfer, executor, dry_run=pretend, verbose=verbose)
            transfers += 1
        if not pretend:
            print(f"  {GREEN}Transfer complete.{RESET}")

    print(f"\n{RULE}")
    label = "[pretend] " if pretend else ""
    print(f"{label}Clone {source} -> {dest}: {transfers} transfer(s), "
          f"{in_sync} already up to date")

    if failures:
        raise CloneError(failures)
    return transfers


def run_clone_config(
    config: "CloneConfig",
    executor: "Executor",
    prefix: str = "",
    pretend: bool = False,
    verbose: bool = False,
) -> int:
    """Run every clone volume from the config file that isn't marked skip."""
    failures: list[tuple[str, str]] = []
    transfers = 0
    for volume in config.volumes:
        if volume.skip:
            print(f"\n{volume.name}: skipped")
            continue
        print(f"\n{volume.name}: {volume.source} -> {volume.dest}")
        try:
            transfers += run_clone(
                volume.source, volume.dest, executor,
                prefix=prefix, pretend=pretend, verbose=verbose,
            )
        except CloneError as e:
            failures.extend(e.failures)
        except PolicyError as e:
            # Missing source or nested trees: nothing of this volume ran.
            print(f"\n{RED}ERROR: {e}{RESET}", file=sys.stderr)
            failures.append((volume.source, str(e)))
    if failures:
        raise CloneError(failures)
    return transfers
