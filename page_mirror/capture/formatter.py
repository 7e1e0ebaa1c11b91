"""
Source formatter for the saved HTML, CSS and JavaScript.

HTML is pretty-printed with BeautifulSoup, CSS and JavaScript with the
js-beautify port.
"""

import cssbeautifier
import jsbeautifier
from bs4 import BeautifulSoup

from ..errors import FormatFailure


class CodeFormatter:
    """Pretty-prints captured sources. Errors surface as FormatFailure."""

    def __init__(self, indent_size: int = 2, enabled: bool = True):
        """
        Initialize the formatter.

        Args:
            indent_size: Spaces per indentation level for CSS and JavaScript
            enabled: Return input unchanged when False
        """
        self.indent_size = indent_size
        self.enabled = enabled

    def format_html(self, html: str) -> str:
        if not self.enabled or not html.strip():
            return html
        try:
            return BeautifulSoup(html, 'lxml').prettify()
        except Exception as e:
            raise FormatFailure(f"HTML: {e}") from e

    def format_css(self, css: str) -> str:
        if not self.enabled or not css.strip():
            return css
        try:
            options = cssbeautifier.default_options()
            options.indent_size = self.indent_size
            return cssbeautifier.beautify(css, options)
        except Exception as e:
            raise FormatFailure(f"CSS: {e}") from e

    def format_js(self, js: str) -> str:
        if not self.enabled or not js.strip():
            return js
        try:
            options = jsbeautifier.default_options()
            options.indent_size = self.indent_size
            return jsbeautifier.beautify(js, options)
        except Exception as e:
            raise FormatFailure(f"JavaScript: {e}") from e
