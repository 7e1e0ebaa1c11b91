"""
Main page mirror module.

Orchestrates one capture job: page rendering, reference extraction, asset
downloading, link rewriting and writing the output folder.
"""

import asyncio
import os
import time
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .downloader import AssetDownloader
from .extractor import AssetExtractor, CssSegment, parse_html
from .formatter import CodeFormatter
from .models import (
    AssetRecord,
    AssetReference,
    AssetRegistry,
    CaptureJob,
    MirrorResult,
)
from .renderer import PageRenderer
from .rewrite import LinkRewriter
from .writer import OutputWriter
from ..errors import OutputWriteFailure, PageLoadFailure
from ..utils.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_JOB_TIMEOUT,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_SETTLE_DELAY,
    DEFAULT_TIMEOUT,
)
from ..utils.log import get_logger, print_info, print_success, print_warning
from ..utils.paths import default_output_folder


class CaptureState(Enum):
    """Stages of a capture job."""
    START = "start"
    FETCHING_PAGE = "fetching_page"
    EXTRACTING = "extracting"
    DOWNLOADING_ASSETS = "downloading_assets"
    REWRITING = "rewriting"
    WRITING_OUTPUT = "writing_output"
    DONE = "done"
    FAILED = "failed"


class PageMirror:
    """
    Main page mirror class.

    Coordinates all components to capture one page into a local folder.
    Asset failures are absorbed and reported in the result; only a page
    that cannot be loaded or an output folder that cannot be written
    fails the job.
    """

    def __init__(
        self,
        url: str,
        output_dir: Optional[str] = None,
        timeout: int = DEFAULT_PAGE_TIMEOUT,
        job_timeout: Optional[float] = DEFAULT_JOB_TIMEOUT,
        request_timeout: int = DEFAULT_TIMEOUT,
        concurrency: int = DEFAULT_CONCURRENCY,
        headless: bool = True,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        format_output: bool = True,
        link_script: bool = False,
        renderer=None
    ):
        """
        Initialize the page mirror.

        Args:
            url: Page to capture
            output_dir: Destination folder (default: cloned-<host>)
            timeout: Page load timeout in milliseconds
            job_timeout: Deadline for the whole job in seconds, None for no limit
            request_timeout: Per-request timeout for assets in seconds
            concurrency: Maximum concurrent asset downloads
            headless: Run browser in headless mode
            settle_delay: Seconds to wait after scrolling the page
            format_output: Pretty-print the saved HTML, CSS and JavaScript
            link_script: Add a <script> tag loading script.js to the page
            renderer: Object with a render_page(url) coroutine; a Playwright
                renderer is created and managed when omitted
        """
        folder = os.path.abspath(output_dir or default_output_folder(url))
        self.job = CaptureJob(target_url=url, output_folder=folder)
        self.job_timeout = job_timeout
        self.link_script = link_script
        self.state = CaptureState.START

        self.logger = get_logger("mirror")

        # One registry per job, shared by downloader and rewriter
        self.registry = AssetRegistry()

        self._owns_renderer = renderer is None
        self.renderer = renderer or PageRenderer(
            timeout=timeout,
            headless=headless,
            settle_delay=settle_delay
        )
        self.extractor = AssetExtractor()
        self.downloader = AssetDownloader(
            output_dir=folder,
            registry=self.registry,
            timeout=request_timeout,
            concurrency=concurrency
        )
        self.rewriter = LinkRewriter()
        self.writer = OutputWriter(folder, CodeFormatter(enabled=format_output))

    async def mirror(self) -> MirrorResult:
        """
        Run the capture job.

        Returns:
            MirrorResult; success is False only for job-level failures
        """
        start_time = time.time()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.job_timeout if self.job_timeout else None

        print_info(f"Capturing {self.job.target_url}")
        print_info(f"Output directory: {self.job.output_folder}")

        try:
            self.writer.prepare()

            self._transition(CaptureState.FETCHING_PAGE)
            html, final_url = await self._render()

            self._transition(CaptureState.EXTRACTING)
            soup = parse_html(html)
            extracted = self.extractor.extract(soup, final_url or self.job.target_url)

            self._transition(CaptureState.DOWNLOADING_ASSETS)
            stylesheets, scripts = await asyncio.gather(
                self.downloader.fetch_text_assets(extracted.stylesheets, deadline),
                self.downloader.fetch_text_assets(extracted.scripts, deadline)
            )
            css, segments = self._concatenate(stylesheets)
            js, _ = self._concatenate(scripts)

            css_references = self.extractor.extract_css(css, segments)
            await self.downloader.fetch_all(
                extracted.image_references() + css_references,
                deadline
            )

            self._transition(CaptureState.REWRITING)
            if self.link_script:
                self.rewriter.link_script(soup)
            references: List[AssetReference] = extracted.all_references() + css_references
            final_html, final_css = self.rewriter.rewrite(soup, css, references, self.registry)

            self._transition(CaptureState.WRITING_OUTPUT)
            result = self.writer.materialize(final_html, final_css, js)
            failures = self.registry.failed()
            self.writer.write_error_log(failures)

        except (PageLoadFailure, OutputWriteFailure) as e:
            self.logger.error(f"Capture of {self.job.target_url} failed: {e}")
            return self._failed(e, start_time)
        except Exception as e:
            self.logger.exception(
                f"Unexpected error while capturing {self.job.target_url} "
                f"during {self.state.value}"
            )
            return self._failed(e, start_time)

        self._transition(CaptureState.DONE)

        result.assets_downloaded = len(self.registry.downloaded())
        result.assets_failed = len(failures)
        result.failures = [
            {'url': r.resolved_url, 'error': r.error_message or ''}
            for r in failures
        ]
        result.duration_seconds = time.time() - start_time

        if failures:
            result.message += f" ({len(failures)} of {len(self.registry)} assets failed)"
            print_warning(f"{len(failures)} assets could not be fetched")

        print_success(
            f"Capture complete! {result.assets_downloaded} assets "
            f"in {result.duration_seconds:.1f}s"
        )

        return result

    def _failed(self, error: Exception, start_time: float) -> MirrorResult:
        self._transition(CaptureState.FAILED)
        return MirrorResult(
            output_folder=self.job.output_folder,
            success=False,
            message=f"Error in cloning: {error}",
            duration_seconds=time.time() - start_time
        )

    async def _render(self) -> Tuple[str, str]:
        url = self.job.target_url
        if self._owns_renderer:
            async with self.renderer:
                return await self.renderer.render_page(url)
        return await self.renderer.render_page(url)

    def _concatenate(self, records: Sequence[AssetRecord]) -> Tuple[str, List[CssSegment]]:
        """
        Join downloaded text assets in discovery order.

        Returns:
            Tuple of (text, segments) where segments records the offset at
            which each source's text starts
        """
        parts = []
        segments: List[CssSegment] = []
        offset = 0
        for record in records:
            if not record.downloaded or record.content is None:
                continue
            segments.append((offset, record.resolved_url))
            parts.append(record.content)
            offset += len(record.content) + 1
        return '\n'.join(parts), segments

    def _transition(self, state: CaptureState) -> None:
        self.logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state


async def mirror(url: str, output: Optional[str] = None, **options) -> MirrorResult:
    """
    Capture a page into a local folder.

    Args:
        url: Page to capture
        output: Output folder name (default: cloned-<host>)
        **options: Keyword arguments accepted by PageMirror

    Returns:
        MirrorResult of the job
    """
    return await PageMirror(url, output, **options).mirror()
