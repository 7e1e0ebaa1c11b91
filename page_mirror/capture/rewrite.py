"""
Link rewriter for pointing captured content at local assets.

Patches each recorded reference in place: image attributes, the matched
part of inline style attributes, and url() spans in the stylesheet text.
"""

import posixpath
from typing import Dict, List, Sequence, Tuple

from bs4 import BeautifulSoup

from .models import (
    AssetKind,
    AssetReference,
    AssetRegistry,
    CssTextSpanLocation,
    DomAttributeLocation,
)
from ..utils.constants import (
    IMAGES_DIR,
    INDEX_FILE,
    LAZY_IMAGE_ATTRIBUTES,
    SCRIPT_FILE,
    STYLESHEET_FILE,
)
from ..utils.log import get_logger
from ..utils.paths import get_relative_path


class LinkRewriter:
    """
    Rewrites asset references to local relative paths.

    Only URLs with a downloaded record are localized. Everything else is
    pointed at its absolute remote URL, so a failed download never turns
    into a broken local path.
    """

    def __init__(
        self,
        images_dir: str = IMAGES_DIR,
        page_file: str = INDEX_FILE,
        stylesheet_file: str = STYLESHEET_FILE
    ):
        """
        Initialize the link rewriter.

        Args:
            images_dir: Folder holding downloaded assets, relative to the output
            page_file: Name of the saved HTML file
            stylesheet_file: Name of the consolidated stylesheet
        """
        self.images_dir = images_dir
        self.page_file = page_file
        self.stylesheet_file = stylesheet_file
        self.logger = get_logger("rewriter")

    def rewrite(
        self,
        soup: BeautifulSoup,
        css_text: str,
        references: Sequence[AssetReference],
        registry: AssetRegistry
    ) -> Tuple[str, str]:
        """
        Apply the registry's rewrite map to the page and stylesheet.

        Args:
            soup: Parsed page, modified in place
            css_text: Concatenated stylesheet text
            references: All references found in the page and stylesheet
            registry: Asset registry of the job

        Returns:
            Tuple of (html, css)
        """
        rewrite_map = registry.rewrite_map()

        dom_references = []
        css_references = []
        for ref in references:
            if not ref.resolved_url:
                continue
            if isinstance(ref.location, CssTextSpanLocation):
                css_references.append(ref)
            elif ref.kind is AssetKind.IMAGE:
                dom_references.append(ref)
            elif ref.kind is AssetKind.INLINE_STYLE_BACKGROUND_IMAGE:
                dom_references.append(ref)

        localized = 0
        for ref in dom_references:
            if ref.kind is AssetKind.IMAGE:
                localized += self._rewrite_image(ref, rewrite_map)
            else:
                localized += self._rewrite_inline_style(ref, rewrite_map)

        css = self.rewrite_css(css_text, css_references, rewrite_map)

        # Relative references are resolved now, a <base> would misdirect them
        for base in soup.find_all('base'):
            base.decompose()

        self.logger.debug(
            f"Localized {localized} of {len(dom_references)} page references"
        )

        return str(soup), css

    def local_path(self, local_name: str, from_file: str) -> str:
        """Path of a downloaded asset relative to the file referencing it."""
        target = posixpath.join(self.images_dir, local_name)
        return get_relative_path(from_file, target)

    def _target(
        self,
        ref: AssetReference,
        rewrite_map: Dict[str, str],
        from_file: str
    ) -> Tuple[str, bool]:
        local_name = rewrite_map.get(ref.resolved_url)
        if local_name:
            return self.local_path(local_name, from_file), True
        return ref.resolved_url, False

    def _rewrite_image(
        self,
        ref: AssetReference,
        rewrite_map: Dict[str, str]
    ) -> bool:
        """Point an <img> at its local copy and drop lazy-load and srcset hints."""
        location: DomAttributeLocation = ref.location
        img = location.element
        target, is_local = self._target(ref, rewrite_map, self.page_file)

        if not is_local:
            img[location.attribute] = target
            return False

        img['src'] = target
        # A remote srcset would win over the local src
        for attribute in LAZY_IMAGE_ATTRIBUTES + ('srcset', 'sizes'):
            if attribute in img.attrs:
                del img[attribute]
        return True

    def _rewrite_inline_style(
        self,
        ref: AssetReference,
        rewrite_map: Dict[str, str]
    ) -> bool:
        """Replace the matched url() value inside a style attribute."""
        location: DomAttributeLocation = ref.location
        elem = location.element
        style = elem.get(location.attribute, '')
        start, end = location.span

        if style[start:end] != ref.raw_value:
            self.logger.debug(f"Style attribute changed, not rewriting {ref.raw_value}")
            return False

        target, is_local = self._target(ref, rewrite_map, self.page_file)
        elem[location.attribute] = style[:start] + target + style[end:]
        return is_local

    def rewrite_css(
        self,
        css_text: str,
        references: Sequence[AssetReference],
        rewrite_map: Dict[str, str]
    ) -> str:
        """
        Replace url() values in stylesheet text at their recorded spans.

        Spans are applied from the end of the text backwards so earlier
        offsets stay valid.

        Args:
            css_text: Concatenated stylesheet text
            references: CSS references with CssTextSpanLocation
            rewrite_map: Resolved URL to local filename

        Returns:
            Rewritten stylesheet text
        """
        ordered = sorted(references, key=lambda r: r.location.start, reverse=True)

        parts: List[str] = []
        cursor = len(css_text)
        for ref in ordered:
            start, end = ref.location.start, ref.location.end
            if end > cursor or css_text[start:end] != ref.raw_value:
                self.logger.debug(f"Skipping stale CSS span for {ref.raw_value}")
                continue

            target, _ = self._target(ref, rewrite_map, self.stylesheet_file)
            parts.append(css_text[end:cursor])
            parts.append(target)
            cursor = start

        parts.append(css_text[:cursor])
        return ''.join(reversed(parts))

    def link_script(self, soup: BeautifulSoup, src: str = SCRIPT_FILE) -> None:
        """Append a <script> tag loading the consolidated script file."""
        script = soup.new_tag('script', src=src)
        container = soup.body or soup.html or soup
        container.append(script)
