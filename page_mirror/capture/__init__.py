"""
Capture module for mirroring a single page.

Contains components for rendering, extracting, downloading, rewriting, and writing.
"""

from .mirror import PageMirror, CaptureState, mirror
from .renderer import PageRenderer
from .extractor import AssetExtractor
from .downloader import AssetDownloader
from .rewrite import LinkRewriter
from .writer import OutputWriter
from .formatter import CodeFormatter
from .models import (
    AssetKind,
    AssetRecord,
    AssetReference,
    AssetRegistry,
    AssetStatus,
    CaptureJob,
    MirrorResult,
)

__all__ = [
    "PageMirror",
    "CaptureState",
    "mirror",
    "PageRenderer",
    "AssetExtractor",
    "AssetDownloader",
    "LinkRewriter",
    "OutputWriter",
    "CodeFormatter",
    "AssetKind",
    "AssetRecord",
    "AssetReference",
    "AssetRegistry",
    "AssetStatus",
    "CaptureJob",
    "MirrorResult",
]
