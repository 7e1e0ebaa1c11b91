"""
Exception types raised while mirroring a page.

Reference and asset errors are recoverable and get turned into data close to
where they happen. Page load and output write errors end the job.
"""


class MirrorError(Exception):
    """Base class for all mirroring errors."""


class InvalidReference(MirrorError, ValueError):
    """A raw reference could not be resolved to a fetchable URL."""

    def __init__(self, raw: str, reason: str = "malformed reference"):
        self.raw = raw
        self.reason = reason
        super().__init__(f"{reason}: {raw!r}")


class AssetFetchFailure(MirrorError):
    """A single asset could not be retrieved or saved."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}")


class PageLoadFailure(MirrorError):
    """The target page could not be rendered."""


class OutputWriteFailure(MirrorError):
    """The output folder or one of the final files could not be written."""


class FormatFailure(MirrorError):
    """The formatter rejected a piece of HTML, CSS or JavaScript."""
