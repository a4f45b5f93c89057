"""Exceptions raised while loading documents or planning a swap."""

from __future__ import annotations


class LinkerError(Exception):
    """Base class. The message is shown to the user as-is."""


class NotFoundError(LinkerError):
    """A required file, mapping entry or package entry does not exist."""


class MalformedInputError(LinkerError):
    """A solution, project or config file does not match its expected format."""


class AmbiguousInputError(LinkerError):
    """More than one candidate was found where exactly one is expected."""
