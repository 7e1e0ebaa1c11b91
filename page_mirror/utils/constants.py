"""
Shared constants for the page mirror.

Contains common configuration values used across multiple modules.
"""

# Default user agent string for all HTTP requests
# Used by both the browser renderer and asset downloader
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Default request timeout in seconds
DEFAULT_TIMEOUT = 30

# Default page load timeout in milliseconds (for Playwright)
DEFAULT_PAGE_TIMEOUT = 30000

# Overall deadline for one capture job in seconds
DEFAULT_JOB_TIMEOUT = 300

# Default concurrent downloads
DEFAULT_CONCURRENCY = 10

# Seconds to wait after scrolling so lazy content can load
DEFAULT_SETTLE_DELAY = 2.0

# Extension used when an image's type cannot be determined
DEFAULT_IMAGE_EXTENSION = ".jpg"

# Chunk size for streamed downloads
DOWNLOAD_CHUNK_SIZE = 64 * 1024

# <img> attributes checked for a source, in priority order
IMAGE_SOURCE_ATTRIBUTES = ("src", "data-src", "data-lazy", "data-original")

# Lazy-load hints removed once an image points at its local copy
LAZY_IMAGE_ATTRIBUTES = ("data-src", "data-lazy", "data-original")

# Output layout
INDEX_FILE = "index.html"
STYLESHEET_FILE = "style.css"
SCRIPT_FILE = "script.js"
IMAGES_DIR = "images"
ERROR_LOG_FILE = "errors.json"
