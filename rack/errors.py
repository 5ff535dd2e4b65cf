"""Exception types shared across rack."""
from __future__ import annotations


class RackError(Exception):
    """Base class for every error rack reports."""


class ParseError(RackError):
    """Output from a zfs command did not have the expected shape."""
    def __init__(self, message: str, line: str):
        self.line = line
        super().__init__(f"{message}: {line!r}")


class ListingOrderError(ParseError):
    """A snapshot line did not follow the filesystem it belongs to."""


class PolicyError(RackError):
    """A filesystem is in a state rack refuses to act on."""
