"""
Data model for a single capture job.

References point back at where they were found so the rewriter can patch the
exact spot later. Records hold the per-URL download outcome and live in a
registry owned by one job.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from bs4 import Tag


class AssetKind(Enum):
    """Kinds of references the extractor produces."""
    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    IMAGE = "image"
    CSS_BACKGROUND_IMAGE = "css_background_image"
    INLINE_STYLE_BACKGROUND_IMAGE = "inline_style_background_image"


class AssetStatus(Enum):
    """Download state of an asset record."""
    PENDING = "pending"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass(frozen=True)
class CaptureJob:
    """A single mirror request."""
    target_url: str
    output_folder: str


@dataclass
class DomAttributeLocation:
    """An attribute of a DOM element, optionally a span inside its value."""
    element: Tag
    attribute: str
    span: Optional[Tuple[int, int]] = None


@dataclass
class CssTextSpanLocation:
    """A character span inside the concatenated stylesheet text."""
    start: int
    end: int


Location = Union[DomAttributeLocation, CssTextSpanLocation]


@dataclass
class AssetReference:
    """One occurrence of an asset reference in the page or its CSS."""
    kind: AssetKind
    raw_value: str
    resolved_url: Optional[str]
    location: Location


@dataclass
class AssetRecord:
    """Outcome of fetching one distinct URL."""
    resolved_url: str
    kind: AssetKind
    local_name: Optional[str] = None
    status: AssetStatus = AssetStatus.PENDING
    error_message: Optional[str] = None
    # Decoded body, only kept for stylesheets and scripts
    content: Optional[str] = None

    @property
    def downloaded(self) -> bool:
        return self.status is AssetStatus.DOWNLOADED

    def mark_downloaded(self, content: Optional[str] = None) -> None:
        self.status = AssetStatus.DOWNLOADED
        self.error_message = None
        self.content = content

    def mark_failed(self, message: str) -> None:
        self.status = AssetStatus.FAILED
        self.error_message = message
        self.content = None


class AssetRegistry:
    """
    Per-job map of resolved URL to AssetRecord.

    Also tracks which local filenames have been claimed, so two different
    URLs never end up writing the same file. Names are compared without
    case to stay safe on case-insensitive filesystems.
    """

    def __init__(self):
        self._records: Dict[str, AssetRecord] = {}
        self._claimed_names: Dict[str, str] = {}  # lowercased name -> URL

    def __contains__(self, url: str) -> bool:
        return url in self._records

    def __iter__(self) -> Iterator[AssetRecord]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def get(self, url: str) -> Optional[AssetRecord]:
        return self._records.get(url)

    def add(self, url: str, kind: AssetKind) -> AssetRecord:
        """Register a URL, returning the existing record if already known."""
        record = self._records.get(url)
        if record is None:
            record = AssetRecord(resolved_url=url, kind=kind)
            self._records[url] = record
        return record

    def claim_name(self, name: str, url: str) -> bool:
        """
        Reserve a local filename for a URL.

        Returns:
            True if the name is now owned by the URL, False if another
            URL already holds it
        """
        key = name.lower()
        owner = self._claimed_names.get(key)
        if owner is not None and owner != url:
            return False
        self._claimed_names[key] = url
        return True

    def downloaded(self) -> List[AssetRecord]:
        return [r for r in self._records.values() if r.downloaded]

    def failed(self) -> List[AssetRecord]:
        return [r for r in self._records.values() if r.status is AssetStatus.FAILED]

    def rewrite_map(self) -> Dict[str, str]:
        """Map resolved URL to local filename for every saved file."""
        return {
            r.resolved_url: r.local_name
            for r in self._records.values()
            if r.downloaded and r.local_name
        }


@dataclass
class ExtractedAssets:
    """References found in the DOM, in discovery order."""
    stylesheets: List[AssetReference] = field(default_factory=list)
    scripts: List[AssetReference] = field(default_factory=list)
    inline_styles: List[AssetReference] = field(default_factory=list)
    images: List[AssetReference] = field(default_factory=list)
    dropped: int = 0

    def all_references(self) -> List[AssetReference]:
        return self.stylesheets + self.scripts + self.inline_styles + self.images

    def image_references(self) -> List[AssetReference]:
        return self.inline_styles + self.images


@dataclass
class MirrorResult:
    """Final outcome of a capture job."""
    output_folder: str
    success: bool
    message: str
    assets_downloaded: int = 0
    assets_failed: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)
    duration_seconds: float = 0.0


def distinct_urls(references: Iterable[AssetReference]) -> List[str]:
    """
    Resolved URLs of the given references, deduplicated in first-seen order.

    Embedded references (resolved_url None) are left out.
    """
    seen: Set[str] = set()
    urls = []
    for ref in references:
        url = ref.resolved_url
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls
