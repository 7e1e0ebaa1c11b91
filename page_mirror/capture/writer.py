"""
Output writer for the mirrored page.

Lays out the destination folder and writes the final artifacts.
"""

import json
import os
from typing import Callable, List

from .formatter import CodeFormatter
from .models import AssetRecord, MirrorResult
from ..errors import FormatFailure, OutputWriteFailure
from ..utils.constants import (
    ERROR_LOG_FILE,
    IMAGES_DIR,
    INDEX_FILE,
    SCRIPT_FILE,
    STYLESHEET_FILE,
)
from ..utils.log import get_logger
from ..utils.paths import ensure_dir


class OutputWriter:
    """
    Writes index.html, style.css and script.js into the output folder.

    Formatting is cosmetic: when the formatter fails, the unformatted text
    is written instead.
    """

    def __init__(self, output_dir: str, formatter: CodeFormatter = None):
        """
        Initialize the output writer.

        Args:
            output_dir: Destination folder
            formatter: Formatter applied before writing
        """
        self.output_dir = output_dir
        self.images_path = os.path.join(output_dir, IMAGES_DIR)
        self.formatter = formatter or CodeFormatter()
        self.logger = get_logger("writer")

    def prepare(self) -> None:
        """
        Create the output folder and its images folder.

        Raises:
            OutputWriteFailure: If the folders cannot be created
        """
        try:
            ensure_dir(self.output_dir)
            ensure_dir(self.images_path)
        except OSError as e:
            raise OutputWriteFailure(
                f"Cannot create output folder {self.output_dir}: {e}"
            ) from e

    def materialize(self, html: str, css: str, js: str) -> MirrorResult:
        """
        Format and write the final files.

        Args:
            html: Rewritten page HTML
            css: Rewritten consolidated stylesheet
            js: Consolidated script text

        Returns:
            Successful MirrorResult naming the output folder

        Raises:
            OutputWriteFailure: If any file cannot be written
        """
        self.prepare()

        self._write(INDEX_FILE, self._format(self.formatter.format_html, html, INDEX_FILE))
        self._write(STYLESHEET_FILE, self._format(self.formatter.format_css, css, STYLESHEET_FILE))
        self._write(SCRIPT_FILE, self._format(self.formatter.format_js, js, SCRIPT_FILE))

        return MirrorResult(
            output_folder=self.output_dir,
            success=True,
            message=f"Successfully cloned and saved files to {self.output_dir}"
        )

    def write_error_log(self, records: List[AssetRecord]) -> None:
        """Write errors.json listing failed assets, if there are any."""
        if not records:
            return

        errors = [
            {
                'url': record.resolved_url,
                'kind': record.kind.value,
                'error': record.error_message or 'unknown error',
            }
            for record in records
        ]

        path = os.path.join(self.output_dir, ERROR_LOG_FILE)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(errors, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise OutputWriteFailure(f"Cannot write {path}: {e}") from e

        self.logger.info(f"Generated error log: {path}")

    def _format(self, format_func: Callable[[str], str], text: str, name: str) -> str:
        try:
            return format_func(text)
        except FormatFailure as e:
            self.logger.warning(f"Formatting {name} failed, writing it unformatted: {e}")
            return text

    def _write(self, filename: str, content: str) -> None:
        path = os.path.join(self.output_dir, filename)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content)
        except OSError as e:
            raise OutputWriteFailure(f"Cannot write {path}: {e}") from e

        self.logger.debug(f"Saved {path}")
