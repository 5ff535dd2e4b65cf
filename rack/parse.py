"""Parsers for the tab separated output of `zfs -H` commands.

Knowledge of each command's output format lives here and nowhere else, so
tests can feed captured output directly without running zfs.
"""
from __future__ import annotations

from rack.errors import ListingOrderError, ParseError
from rack.models import Filesystem, Property


def parse_listing(output: str) -> list[Filesystem]:
    """
    Parse `zfs list -H -t all -o name,mountpoint`.

    zfs prints each filesystem followed by its snapshots in creation order,
    so a snapshot line always belongs to the most recent filesystem line.
    Anything else means the listing cannot be trusted.
    """
    # (name, mountpoint, snapshots) while building; frozen at the end
    work: list[tuple[str, str, list[str]]] = []

    for line in output.splitlines():
        if not line:
            continue
        fields = line.split("\t")
        if len(fields) != 2:
            raise ParseError("zfs list line doesn't have two fields", line)
        name, mountpoint = fields

        # Bookmarks share the listing with -t all; nothing here uses them.
        if "#" in name:
            continue

        parts = name.split("@")
        if len(parts) == 1:
            work.append((name, mountpoint, []))
        elif len(parts) == 2:
            volume, snap = parts
            if not work:
                raise ListingOrderError("Snapshot listed before any filesystem", line)
            if volume != work[-1][0]:
                raise ListingOrderError(
                    f"Snapshot does not belong to {work[-1][0]}", line
                )
            work[-1][2].append(snap)
        else:
            raise ParseError("Unexpected zfs list name", line)

    return [
        Filesystem(name=name, mountpoint=mountpoint, snapshots=tuple(snaps))
        for name, mountpoint, snaps in work
    ]


def parse_send_size(output: str) -> int:
    """
    Return the byte count from `zfs send -nP` output, or 0 if none is given.

    Only the `size` line matters; the per-stream lines before it vary across
    zfs versions.
    """
    for line in output.splitlines():
        fields = line.split("\t")
        if fields[0] != "size":
            continue
        if len(fields) < 2:
            raise ParseError("zfs send size line has no value", line)
        try:
            size = int(fields[1])
        except ValueError as e:
            raise ParseError("zfs send size is not a number", line) from e
        if size < 0:
            raise ParseError("zfs send size is negative", line)
        return size
    return 0


def parse_properties(output: str) -> list[Property]:
    """Parse `zfs get -H -o name,property,value,source`."""
    results = []
    for line in output.splitlines():
        if not line:
            continue
        fields = line.split("\t")
        if len(fields) != 4:
            raise ParseError("zfs get line doesn't have four fields", line)
        dataset, name, value, source = fields
        results.append(Property(dataset=dataset, name=name, value=value, source=source))
    return results
