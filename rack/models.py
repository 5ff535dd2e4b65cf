"""Data models for rack."""
from __future__ import annotations

from dataclasses import dataclass, field

# zfs reports "-" for a mountpoint that does not apply.
NO_MOUNTPOINT = "-"


@dataclass(frozen=True)
class Filesystem:
    """A ZFS filesystem and its snapshots, oldest first."""
    name: str  # e.g. lint/home
    mountpoint: str = NO_MOUNTPOINT
    snapshots: tuple[str, ...] = ()  # just the names after '@'

    @property
    def newest(self) -> str | None:
        return self.snapshots[-1] if self.snapshots else None

    @property
    def oldest(self) -> str | None:
        return self.snapshots[0] if self.snapshots else None

    def full_name(self, snapshot: str) -> str:
        return f"{self.name}@{snapshot}"

    def is_under(self, root: str) -> bool:
        """True if this filesystem is root itself or one of its descendants."""
        return self.name == root or self.name.startswith(root + "/")


@dataclass(frozen=True)
class Property:
    """One row of `zfs get` output."""
    dataset: str
    name: str
    value: str
    source: str

    @property
    def is_explicit(self) -> bool:
        """Set on this dataset rather than inherited or defaulted."""
        return self.source in ("local", "received")


@dataclass(frozen=True)
class Transfer:
    """
    A send/receive of one snapshot range.

    With no base this is a full stream of filesystem@newest; otherwise it is
    an incremental stream of every snapshot after base up to newest.
    """
    source: str
    dest: str
    newest: str
    base: str | None = None

    @property
    def is_incremental(self) -> bool:
        return self.base is not None

    def send_args(self) -> list[str]:
        args = []
        if self.base is not None:
            args += ["-I", f"@{self.base}"]
        args.append(f"{self.source}@{self.newest}")
        return args

    def describe(self) -> str:
        if self.base is None:
            return f"full @{self.newest}"
        return f"@{self.base} -> @{self.newest}"


@dataclass
class SnapConvention:
    name: str  # also the snapshot name prefix


@dataclass
class SnapVolume:
    name: str
    convention: str
    zfs: str


@dataclass
class SnapConfig:
    conventions: list[SnapConvention] = field(default_factory=list)
    volumes: list[SnapVolume] = field(default_factory=list)


@dataclass
class CloneVolume:
    name: str
    source: str
    dest: str
    skip: bool = False


@dataclass
class CloneConfig:
    volumes: list[CloneVolume] = field(default_factory=list)


@dataclass
class Config:
    snap: SnapConfig | None = None
    clone: CloneConfig | None = None
