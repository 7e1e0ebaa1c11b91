"""
URL and path utilities for the page mirror.

Resolves raw references against a base URL, classifies them, and turns
asset URLs into safe local filenames.
"""

import hashlib
import mimetypes
import os
import re
from enum import Enum
from typing import Optional
from urllib.parse import urljoin, urlparse, unquote

from .constants import DEFAULT_IMAGE_EXTENSION
from ..errors import InvalidReference


FETCHABLE_SCHEMES = ('http', 'https')

_SCHEME_PATTERN = re.compile(r'^([a-zA-Z][a-zA-Z0-9+.\-]*):')

# Anything that is not safe in both a filename and an unquoted url()
_UNSAFE_FILENAME_CHARS = re.compile(r'[^\w.\-]')

_MAX_FILENAME_LENGTH = 150

# Content types whose registered extension is missing or unhelpful
CONTENT_TYPE_EXTENSIONS = {
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/pjpeg': '.jpg',
    'image/png': '.png',
    'image/gif': '.gif',
    'image/webp': '.webp',
    'image/avif': '.avif',
    'image/svg+xml': '.svg',
    'image/x-icon': '.ico',
    'image/vnd.microsoft.icon': '.ico',
    'image/bmp': '.bmp',
    'image/tiff': '.tiff',
    'font/woff': '.woff',
    'font/woff2': '.woff2',
    'font/ttf': '.ttf',
    'font/otf': '.otf',
}

# Content types that say nothing about the actual format
_OPAQUE_CONTENT_TYPES = ('application/octet-stream', 'binary/octet-stream')


class ReferenceKind(Enum):
    """How a raw reference relates to the page it appears on."""
    ABSOLUTE = "absolute"
    RELATIVE = "relative"
    EMBEDDED = "embedded"
    UNSUPPORTED = "unsupported"


def classify_reference(raw: Optional[str]) -> ReferenceKind:
    """
    Classify a raw reference string.

    Args:
        raw: Attribute value or CSS url() content

    Returns:
        ReferenceKind for the value
    """
    if raw is None:
        return ReferenceKind.UNSUPPORTED

    value = raw.strip()
    if not value or value.startswith('#'):
        return ReferenceKind.UNSUPPORTED

    # Protocol-relative URLs inherit the scheme of the page
    if value.startswith('//'):
        return ReferenceKind.RELATIVE

    match = _SCHEME_PATTERN.match(value)
    if match:
        scheme = match.group(1).lower()
        if scheme == 'data':
            return ReferenceKind.EMBEDDED
        if scheme in FETCHABLE_SCHEMES:
            return ReferenceKind.ABSOLUTE
        # javascript:, mailto:, tel:, blob:, ...
        return ReferenceKind.UNSUPPORTED

    return ReferenceKind.RELATIVE


def is_embedded(raw: Optional[str]) -> bool:
    """Check whether a reference carries its content inline (data: URI)."""
    return classify_reference(raw) is ReferenceKind.EMBEDDED


def resolve_url(base_url: str, raw: str) -> Optional[str]:
    """
    Resolve a raw reference against a base URL.

    Absolute http(s) URLs are returned unchanged apart from surrounding
    whitespace. Embedded data: URIs resolve to None and must never be fetched.

    Args:
        base_url: URL of the document containing the reference
        raw: Raw reference string

    Returns:
        Absolute URL, or None for embedded content

    Raises:
        InvalidReference: If the value is malformed or not fetchable
    """
    kind = classify_reference(raw)

    if kind is ReferenceKind.EMBEDDED:
        return None
    if kind is ReferenceKind.UNSUPPORTED:
        raise InvalidReference(raw or '', "unsupported reference")

    value = raw.strip()

    try:
        if kind is ReferenceKind.ABSOLUTE:
            resolved = value
        elif value.startswith('//'):
            scheme = urlparse(base_url).scheme or 'https'
            resolved = f"{scheme}:{value}"
        else:
            resolved = urljoin(base_url, value)
        parsed = urlparse(resolved)
    except ValueError as e:
        raise InvalidReference(value, str(e)) from e

    if parsed.scheme.lower() not in FETCHABLE_SCHEMES or not parsed.netloc:
        raise InvalidReference(value, "cannot be resolved to an http(s) URL")

    return resolved


def sanitize_filename(filename: str) -> str:
    """
    Replace characters that are unsafe in filenames and URLs.

    Args:
        filename: Raw filename

    Returns:
        Safe filename string
    """
    filename = _UNSAFE_FILENAME_CHARS.sub('_', filename).strip()

    if len(filename) > _MAX_FILENAME_LENGTH:
        stem, ext = os.path.splitext(filename)
        filename = stem[:_MAX_FILENAME_LENGTH - len(ext)] + ext

    return filename


def filename_from_url(url: str, default_name: str = "image") -> str:
    """
    Derive a local filename from the base name of a URL path.

    Args:
        url: Asset URL
        default_name: Name used when the path has no base name

    Returns:
        Safe filename, possibly without an extension
    """
    path = unquote(urlparse(url).path)
    filename = sanitize_filename(path.rsplit('/', 1)[-1])

    if filename in ('', '.', '..'):
        return default_name

    return filename


def has_extension(filename: str) -> bool:
    """Check whether a filename carries a non-empty extension."""
    # "photo." splits into ("photo", "."), which is no extension
    return len(os.path.splitext(filename)[1]) > 1


def extension_for_content_type(content_type: Optional[str]) -> Optional[str]:
    """
    Choose a file extension for a Content-Type header value.

    Args:
        content_type: Header value, e.g. "image/png; charset=binary"

    Returns:
        Extension including the dot, or None if undeterminable
    """
    if not content_type:
        return None

    mime = content_type.split(';')[0].strip().lower()
    if not mime or mime in _OPAQUE_CONTENT_TYPES:
        return None

    if mime in CONTENT_TYPE_EXTENSIONS:
        return CONTENT_TYPE_EXTENSIONS[mime]

    return mimetypes.guess_extension(mime)


def with_extension(filename: str, content_type: Optional[str]) -> str:
    """
    Append an extension chosen from the content type, or the default one.

    Args:
        filename: Filename without an extension
        content_type: Content-Type of the resource, if known

    Returns:
        Filename with an extension
    """
    ext = extension_for_content_type(content_type) or DEFAULT_IMAGE_EXTENSION
    return f"{filename.rstrip('.')}{ext}"


def hashed_filename(filename: str, url: str) -> str:
    """
    Make a filename unique to its source URL with a short stable hash.

    Args:
        filename: Candidate filename
        url: Source URL the file was downloaded from

    Returns:
        Filename of the form <stem>_<hash><ext>
    """
    url_hash = hashlib.sha256(url.encode()).hexdigest()[:8]
    name, ext = os.path.splitext(filename)
    return f"{name}_{url_hash}{ext}"


def default_output_folder(url: str) -> str:
    """
    Build the default output folder name for a target URL.

    Args:
        url: Target page URL

    Returns:
        Folder name like "cloned-example-com"
    """
    hostname = urlparse(url).hostname or 'page'
    return f"cloned-{hostname.replace('.', '-')}"


def ensure_dir(path: str) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists
    """
    os.makedirs(path, exist_ok=True)


def get_relative_path(from_path: str, to_path: str) -> str:
    """
    Calculate the relative path from one file to another.

    Args:
        from_path: Source file path
        to_path: Target file path

    Returns:
        Relative path string
    """
    from_dir = os.path.dirname(from_path) or '.'
    rel_path = os.path.relpath(to_path, from_dir)
    # Use forward slashes for URLs
    return rel_path.replace('\\', '/')
