"""
Asset extractor for finding the references a captured page depends on.

Uses BeautifulSoup to walk the rendered DOM, and a url() tokenizer for
stylesheet and style attribute text.
"""

import re
from bisect import bisect_right
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from .models import (
    AssetKind,
    AssetReference,
    CssTextSpanLocation,
    DomAttributeLocation,
    ExtractedAssets,
)
from ..errors import InvalidReference
from ..utils.constants import IMAGE_SOURCE_ATTRIBUTES, STYLESHEET_FILE
from ..utils.log import get_logger
from ..utils.paths import is_embedded, resolve_url


# (offset in the concatenated CSS, URL the text starting there came from)
CssSegment = Tuple[int, str]


def parse_html(html: str) -> BeautifulSoup:
    """Parse HTML with lxml, falling back to the builtin parser."""
    try:
        return BeautifulSoup(html, 'lxml')
    except Exception:
        # Fallback to html.parser if lxml fails
        return BeautifulSoup(html, 'html.parser')


class UrlToken(NamedTuple):
    """A url(...) function in CSS text."""
    start: int        # offset of "url("
    value_start: int  # value span, quotes excluded
    value_end: int
    end: int          # offset just past ")"


_URL_OPEN = re.compile(r'url\(\s*', re.IGNORECASE)


def iter_css_urls(text: str) -> Iterator[Tuple[UrlToken, str]]:
    """
    Yield every url(...) of a CSS text with its value, in order.

    Each token is consumed whole, so a url() nested inside an embedded
    value such as url("data:image/svg+xml,...fill='url(%23g)'...") is
    never reported on its own.
    """
    pos = 0
    length = len(text)
    while True:
        match = _URL_OPEN.search(text, pos)
        if not match:
            return
        start = match.end()

        if start < length and text[start] in '"\'':
            close = text.find(text[start], start + 1)
            if close == -1:
                return
            value_start, value_end = start + 1, close
            end = text.find(')', close + 1)
            if end == -1:
                return
        else:
            # Unquoted values may nest parentheses in embedded data
            depth = 0
            end = start
            while end < length:
                char = text[end]
                if char == '(':
                    depth += 1
                elif char == ')':
                    if depth == 0:
                        break
                    depth -= 1
                end += 1
            if end >= length:
                return
            value_start, value_end = start, end
            while value_end > value_start and text[value_end - 1].isspace():
                value_end -= 1

        token = UrlToken(match.start(), value_start, value_end, end + 1)
        yield token, text[value_start:value_end]
        pos = token.end


def parse_srcset(srcset: str) -> List[Tuple[str, str]]:
    """
    Split a srcset value into (url, descriptor) candidates.

    Candidates are separated by commas; a URL may itself contain commas,
    so it always runs up to the next whitespace.
    """
    candidates = []
    pos = 0
    length = len(srcset)
    while pos < length:
        while pos < length and (srcset[pos].isspace() or srcset[pos] == ','):
            pos += 1
        if pos >= length:
            break

        end = pos
        while end < length and not srcset[end].isspace():
            end += 1
        url = srcset[pos:end]

        descriptor = ''
        if url.endswith(','):
            url = url.rstrip(',')
        else:
            comma = srcset.find(',', end)
            stop = length if comma == -1 else comma
            descriptor = srcset[end:stop].strip()
            end = stop

        if url:
            candidates.append((url, descriptor))
        pos = end
    return candidates


class AssetExtractor:
    """
    Extracts asset references from a rendered page.

    Stylesheet links and external scripts are pulled out of the DOM so their
    contents can be consolidated. Images and inline background images stay
    in place and are recorded with their location for later rewriting.
    """

    # Declaration prefix that makes a url() a background image
    BACKGROUND_DECLARATION = re.compile(r'\s*background(?:-image)?\s*:', re.IGNORECASE)

    def __init__(self, stylesheet_href: str = STYLESHEET_FILE):
        """
        Initialize the asset extractor.

        Args:
            stylesheet_href: href of the consolidated stylesheet link
        """
        self.stylesheet_href = stylesheet_href
        self.logger = get_logger("extractor")

    def extract(self, soup: BeautifulSoup, base_url: str) -> ExtractedAssets:
        """
        Extract asset references from a parsed page.

        The DOM is modified: stylesheet links and external scripts are
        removed, and a link to the consolidated stylesheet is added.

        Args:
            soup: Parsed page
            base_url: URL of the page (after redirects)

        Returns:
            ExtractedAssets with references in discovery order
        """
        assets = ExtractedAssets()
        base_url = self.document_base(soup, base_url)

        self._extract_stylesheets(soup, base_url, assets)
        self._extract_scripts(soup, base_url, assets)
        self._extract_inline_styles(soup, base_url, assets)
        self._extract_images(soup, base_url, assets)

        self.logger.debug(
            f"Extracted from {base_url}: "
            f"{len(assets.stylesheets)} stylesheets, "
            f"{len(assets.scripts)} scripts, "
            f"{len(assets.image_references())} images, "
            f"{assets.dropped} dropped"
        )

        return assets

    def document_base(self, soup: BeautifulSoup, page_url: str) -> str:
        """Honour a <base href> element when resolving relative references."""
        base = soup.find('base', href=True)
        if not base:
            return page_url
        try:
            return resolve_url(page_url, base['href']) or page_url
        except InvalidReference:
            return page_url

    def _reference(
        self,
        kind: AssetKind,
        raw: str,
        base_url: str,
        location,
        assets: Optional[ExtractedAssets] = None
    ) -> Optional[AssetReference]:
        """Resolve a raw value into a reference, or drop it if invalid."""
        try:
            resolved = resolve_url(base_url, raw)
        except InvalidReference as e:
            self.logger.debug(f"Dropping {kind.value} reference: {e}")
            if assets is not None:
                assets.dropped += 1
            return None
        return AssetReference(
            kind=kind,
            raw_value=raw,
            resolved_url=resolved,
            location=location
        )

    def _extract_stylesheets(
        self,
        soup: BeautifulSoup,
        base_url: str,
        assets: ExtractedAssets
    ) -> None:
        """Collect <link rel="stylesheet"> and replace them with one link."""
        for link in soup.find_all('link', rel=True):
            rel_value = link.get('rel', [])
            # rel is a multi-valued attribute, e.g. ['stylesheet', 'preload']
            if isinstance(rel_value, list):
                rel_values = [v.lower() for v in rel_value]
            else:
                rel_values = rel_value.lower().split()

            if 'stylesheet' not in rel_values:
                continue

            href = link.get('href', '').strip()
            if is_embedded(href):
                continue
            if href:
                ref = self._reference(
                    AssetKind.STYLESHEET,
                    href,
                    base_url,
                    DomAttributeLocation(link, 'href'),
                    assets
                )
                if ref and ref.resolved_url:
                    assets.stylesheets.append(ref)
            link.extract()

        head = soup.head
        if head is None:
            head = soup.new_tag('head')
            if soup.html is not None:
                soup.html.insert(0, head)
            else:
                soup.insert(0, head)
        head.append(soup.new_tag('link', rel='stylesheet', href=self.stylesheet_href))

    def _extract_scripts(
        self,
        soup: BeautifulSoup,
        base_url: str,
        assets: ExtractedAssets
    ) -> None:
        """Collect external scripts; inline scripts stay in the page."""
        for script in soup.find_all('script', src=True):
            src = script.get('src', '').strip()
            if is_embedded(src):
                continue
            if src:
                ref = self._reference(
                    AssetKind.SCRIPT,
                    src,
                    base_url,
                    DomAttributeLocation(script, 'src'),
                    assets
                )
                if ref and ref.resolved_url:
                    assets.scripts.append(ref)
            script.extract()

    def _extract_inline_styles(
        self,
        soup: BeautifulSoup,
        base_url: str,
        assets: ExtractedAssets
    ) -> None:
        """Collect the first background image of each inline style attribute."""
        for elem in soup.find_all(style=True):
            style = elem.get('style', '')
            found = self._first_background_url(style)
            if found is None:
                continue

            token, url = found
            if not url.strip() or is_embedded(url):
                continue

            ref = self._reference(
                AssetKind.INLINE_STYLE_BACKGROUND_IMAGE,
                url,
                base_url,
                DomAttributeLocation(elem, 'style', (token.value_start, token.value_end)),
                assets
            )
            if ref:
                assets.inline_styles.append(ref)

    def _first_background_url(self, style: str) -> Optional[Tuple[UrlToken, str]]:
        """Find the first url() that belongs to a background declaration."""
        declaration_start = 0
        previous_end = 0
        for token, url in iter_css_urls(style):
            # Semicolons inside earlier url() tokens do not end a declaration
            semicolon = style.rfind(';', previous_end, token.start)
            if semicolon != -1:
                declaration_start = semicolon + 1
            previous_end = token.end

            prefix = style[declaration_start:token.start]
            if self.BACKGROUND_DECLARATION.match(prefix):
                return token, url
        return None

    def _extract_images(
        self,
        soup: BeautifulSoup,
        base_url: str,
        assets: ExtractedAssets
    ) -> None:
        """Collect <img> sources, including lazy-load attributes."""
        # srcset candidates are not downloaded, so they must work remotely
        for elem in soup.find_all(['img', 'source'], srcset=True):
            elem['srcset'] = self._absolute_srcset(elem['srcset'], base_url)

        for img in soup.find_all('img'):
            attribute, src = self._image_source(img)
            if not src or is_embedded(src):
                continue

            ref = self._reference(
                AssetKind.IMAGE,
                src,
                base_url,
                DomAttributeLocation(img, attribute),
                assets
            )
            if ref:
                assets.images.append(ref)

    def _absolute_srcset(self, srcset: str, base_url: str) -> str:
        candidates = []
        for url, descriptor in parse_srcset(srcset):
            try:
                resolved = resolve_url(base_url, url)
            except InvalidReference:
                resolved = None
            url = resolved or url
            candidates.append(f"{url} {descriptor}" if descriptor else url)
        return ', '.join(candidates)

    def _image_source(self, img: Tag) -> Tuple[Optional[str], Optional[str]]:
        """Pick the first non-empty source attribute of an image."""
        for attribute in IMAGE_SOURCE_ATTRIBUTES:
            value = img.get(attribute)
            if isinstance(value, str) and value.strip():
                return attribute, value.strip()
        return None, None

    def extract_css(
        self,
        css_text: str,
        segments: Sequence[CssSegment]
    ) -> List[AssetReference]:
        """
        Extract url() references from concatenated stylesheet text.

        Each occurrence is resolved against the stylesheet it came from.

        Args:
            css_text: Concatenated stylesheet text
            segments: Start offsets and source URLs, ordered by offset

        Returns:
            List of references with the span of each URL in css_text
        """
        if not segments:
            return []

        offsets = [offset for offset, _ in segments]
        references = []
        dropped = 0

        for token, url in iter_css_urls(css_text):
            if is_embedded(url):
                continue

            start, end = token.value_start, token.value_end
            index = max(bisect_right(offsets, start) - 1, 0)
            source_url = segments[index][1]

            ref = self._reference(
                AssetKind.CSS_BACKGROUND_IMAGE,
                url,
                source_url,
                CssTextSpanLocation(start, end)
            )
            if ref:
                references.append(ref)
            else:
                dropped += 1

        self.logger.debug(
            f"Found {len(references)} url() references in stylesheets"
            + (f", {dropped} dropped" if dropped else "")
        )

        return references
