"""Load and validate the YAML configuration file."""
from __future__ import annotations

import os

import yaml

from rack.errors import RackError
from rack.models import (
    CloneConfig,
    CloneVolume,
    Config,
    SnapConfig,
    SnapConvention,
    SnapVolume,
)

DEFAULT_CONFIG = "~/.rack.yaml"


class ConfigError(RackError):
    pass


def default_path() -> str:
    return os.path.expanduser(DEFAULT_CONFIG)


def _require_str(raw: dict, key: str, where: str) -> str:
    value = raw.get(key)
    if value is None or not str(value).strip():
        raise ConfigError(f"{where}.{key} is required")
    return str(value).strip()


def _entries(raw: dict, key: str, where: str) -> list[dict]:
    items = raw.get(key) or []
    if not isinstance(items, list):
        raise ConfigError(f"{where}.{key} must be a list")
    for item in items:
        if not isinstance(item, dict):
            raise ConfigError(f"Invalid {where}.{key} entry: {item!r}")
    return items


def _load_snap(raw) -> SnapConfig:
    if not isinstance(raw, dict):
        raise ConfigError("snap must be a mapping")

    conventions = [
        SnapConvention(name=_require_str(c, "name", "snap.conventions"))
        for c in _entries(raw, "conventions", "snap")
    ]
    known = {c.name for c in conventions}

    volumes = []
    for v in _entries(raw, "volumes", "snap"):
        volume = SnapVolume(
            name=_require_str(v, "name", "snap.volumes"),
            convention=_require_str(v, "convention", "snap.volumes"),
            zfs=_require_str(v, "zfs", "snap.volumes"),
        )
        if volume.convention not in known:
            raise ConfigError(
                f"snap volume {volume.name!r} uses unknown convention {volume.convention!r}"
            )
        volumes.append(volume)

    return SnapConfig(conventions=conventions, volumes=volumes)


def _load_clone(raw) -> CloneConfig:
    if not isinstance(raw, dict):
        raise ConfigError("clone must be a mapping")

    volumes = []
    for v in _entries(raw, "volumes", "clone"):
        skip = v.get("skip", False)
        if not isinstance(skip, bool):
            raise ConfigError(f"clone.volumes.skip must be true or false, got {skip!r}")
        volumes.append(CloneVolume(
            name=_require_str(v, "name", "clone.volumes"),
            source=_require_str(v, "source", "clone.volumes"),
            dest=_require_str(v, "dest", "clone.volumes"),
            skip=skip,
        ))
    return CloneConfig(volumes=volumes)


def load_config(path: str) -> Config:
    with open(path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping: {path}")

    config = Config()
    if raw.get("snap") is not None:
        config.snap = _load_snap(raw["snap"])
    if raw.get("clone") is not None:
        config.clone = _load_clone(raw["clone"])
    return config
