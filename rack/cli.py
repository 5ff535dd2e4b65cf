"""CLI entry point for rack."""
from __future__ import annotations

import argparse
import sys

import yaml

from rack.config import ConfigError, default_path, load_config
from rack.console import RED, RESET
from rack.errors import RackError
from rack.executor import LocalExecutor

DEFAULT_PREFIX = "caz"


def _load(args):
    path = args.config or default_path()
    try:
        return load_config(path)
    except (ConfigError, OSError, yaml.YAMLError) as e:
        print(f"Config error: {e}", file=sys.stderr)
        return None


def cmd_snap(args) -> int:
    from rack.snap import run_snapshots
    config = _load(args)
    if config is None:
        return 1
    if config.snap is None or not config.snap.volumes:
        print("No snap volumes defined in config. Nothing to do.")
        return 0
    run_snapshots(
        config.snap, LocalExecutor(), pretend=args.pretend, verbose=args.verbose,
    )
    return 0


def cmd_prune(args) -> int:
    from rack.prune import run_prune
    from rack.zfs import Inventory
    executor = LocalExecutor()
    inventory = Inventory.load(args.prefix, executor)
    run_prune(
        args.dest, inventory, executor,
        keep_recent=args.keep, really=args.really, verbose=args.verbose,
    )
    return 0


def cmd_cloneone(args) -> int:
    from rack.clone import run_clone
    run_clone(
        args.source, args.dest, LocalExecutor(),
        prefix=args.prefix, excludes=args.exclude,
        pretend=args.pretend, verbose=args.verbose,
    )
    return 0


def cmd_clone(args) -> int:
    from rack.clone import run_clone_config
    config = _load(args)
    if config is None:
        return 1
    if config.clone is None or not config.clone.volumes:
        print("No clone volumes defined in config. Nothing to do.")
        return 0
    run_clone_config(
        config.clone, LocalExecutor(),
        prefix=args.prefix, pretend=args.pretend, verbose=args.verbose,
    )
    return 0


def cmd_list(args) -> int:
    """List filesystems with their snapshot counts under the prefix."""
    from rack.zfs import Inventory
    inventory = Inventory.load(args.prefix, LocalExecutor())
    filesystems = inventory.filtered(args.under) if args.under else inventory.filesystems

    print(f"{'Filesystem':<45} {'Snaps':>6} {args.prefix + ' snaps':>12}")
    print("-" * 65)
    for fs in filesystems:
        ours = len(inventory.indexed_snapshots(fs))
        print(f"{fs.name:<45} {len(fs.snapshots):>6} {ours:>12}")
    if args.under:
        print(f"\nNext index under {args.under}: {inventory.next_index(args.under)}")
    return 0


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="rack",
        description="Snapshot based backups on ZFS",
    )
    parser.add_argument("-p", "--prefix", default=DEFAULT_PREFIX,
                        help=f"Snapshot name prefix (default: {DEFAULT_PREFIX})")
    parser.add_argument("--config",
                        help="Config file (default: ~/.rack.yaml)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show every zfs command as it runs")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_pretend(p, help_text):
        p.add_argument("--pretend", "-n", action="store_true", help=help_text)

    p_snap = sub.add_parser("snap", help="Take a snapshot of each configured volume")
    add_pretend(p_snap, "Show what would be executed, but don't run it")
    p_snap.set_defaults(func=cmd_snap)

    p_prune = sub.add_parser("prune", help="Prune older snapshots")
    p_prune.add_argument("--really", action="store_true",
                         help="Actually destroy the snapshots")
    p_prune.add_argument("--keep", type=int, default=10,
                         help="Newest snapshots always kept (default: 10)")
    p_prune.add_argument("dest", help="Filesystem tree to prune")
    p_prune.set_defaults(func=cmd_prune)

    p_one = sub.add_parser("cloneone", help="Clone one filesystem tree to another")
    p_one.add_argument("--exclude", "-e", action="append", default=[],
                       help="Source tree to leave out (repeatable)")
    add_pretend(p_one, "Show what would be done without doing it")
    p_one.add_argument("source", help="Source zfs filesystem")
    p_one.add_argument("dest", help="Destination zfs filesystem")
    p_one.set_defaults(func=cmd_cloneone)

    p_clone = sub.add_parser("clone", help="Clone every tree listed in the config file")
    add_pretend(p_clone, "Show what would be done without doing it")
    p_clone.set_defaults(func=cmd_clone)

    p_list = sub.add_parser("list", help="List filesystems and snapshot counts")
    p_list.add_argument("under", nargs="?", help="Only show this tree")
    p_list.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)
    if getattr(args, "keep", 0) < 0:
        parser.error("--keep must be >= 0")
    try:
        rc = args.func(args)
    except RackError as e:
        print(f"{RED}ERROR: {e}{RESET}", file=sys.stderr)
        rc = 1
    sys.exit(rc)


if __name__ == "__main__":
    main()
