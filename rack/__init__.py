"""rack: snapshot based backups on ZFS."""

__version__ = "0.1.0"
