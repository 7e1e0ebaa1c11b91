"""
Asset downloader for fetching and saving page resources.

Uses aiohttp for parallel asynchronous downloads.
"""

import asyncio
import os
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Set

import aiohttp
from aiohttp import ClientTimeout, ClientError

from .models import (
    AssetKind,
    AssetRecord,
    AssetReference,
    AssetRegistry,
    AssetStatus,
    distinct_urls,
)
from ..errors import AssetFetchFailure
from ..utils.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    DOWNLOAD_CHUNK_SIZE,
    IMAGES_DIR,
)
from ..utils.log import create_progress, get_logger
from ..utils.paths import (
    ensure_dir,
    filename_from_url,
    has_extension,
    hashed_filename,
    with_extension,
)


class AssetDownloader:
    """
    Downloads page assets asynchronously.

    Every distinct URL is fetched at most once per registry. Failures are
    recorded on the asset's record instead of being raised, so one broken
    asset never stops the rest.
    """

    def __init__(
        self,
        output_dir: str,
        registry: Optional[AssetRegistry] = None,
        timeout: int = DEFAULT_TIMEOUT,
        concurrency: int = DEFAULT_CONCURRENCY,
        user_agent: str = DEFAULT_USER_AGENT,
        images_dir: str = IMAGES_DIR
    ):
        """
        Initialize the asset downloader.

        Args:
            output_dir: Output folder of the capture
            registry: Asset registry of the current job
            timeout: Request timeout in seconds
            concurrency: Maximum concurrent downloads
            user_agent: User agent string for requests
            images_dir: Folder under output_dir that receives binary assets
        """
        self.output_dir = output_dir
        self.images_path = os.path.join(output_dir, images_dir)
        self.registry = registry if registry is not None else AssetRegistry()
        self.timeout = ClientTimeout(total=timeout)
        self.concurrency = max(1, concurrency)
        self.user_agent = user_agent
        self.logger = get_logger("downloader")

        self._semaphore: Optional[asyncio.Semaphore] = None
        # URLs already handed to a worker, one worker per URL
        self._claimed: Set[str] = set()

    def _ensure_semaphore(self) -> None:
        # Created lazily so it binds to the running event loop
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.concurrency)

    def _session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent}
        )

    def _register(self, references: Sequence[AssetReference]) -> List[AssetRecord]:
        """Create or look up one record per distinct resolved URL."""
        kinds: Dict[str, AssetKind] = {}
        for ref in references:
            if ref.resolved_url and ref.resolved_url not in kinds:
                kinds[ref.resolved_url] = ref.kind
        return [self.registry.add(url, kinds[url]) for url in distinct_urls(references)]

    def _claim(self, records: List[AssetRecord]) -> List[AssetRecord]:
        """Take the records no worker has picked up yet."""
        pending = []
        for record in records:
            if record.status is AssetStatus.PENDING and record.resolved_url not in self._claimed:
                self._claimed.add(record.resolved_url)
                pending.append(record)
        return pending

    async def fetch_text_assets(
        self,
        references: Sequence[AssetReference],
        deadline: Optional[float] = None
    ) -> List[AssetRecord]:
        """
        Fetch stylesheet or script text.

        Args:
            references: Stylesheet or script references in discovery order
            deadline: Event loop time after which pending fetches are abandoned

        Returns:
            One record per distinct URL, in discovery order. Downloaded
            records carry the decoded text in ``content``.
        """
        records = self._register(references)
        pending = self._claim(records)
        if not pending:
            return records

        self._ensure_semaphore()
        async with self._session() as session:
            await self._run(
                [self._fetch_text(session, record) for record in pending],
                pending,
                deadline
            )

        return records

    async def fetch_all(
        self,
        references: Sequence[AssetReference],
        deadline: Optional[float] = None
    ) -> List[AssetRecord]:
        """
        Download binary assets into the images folder.

        Local names are assigned in discovery order before any download
        starts, so the result does not depend on completion order.

        Args:
            references: Image references in discovery order
            deadline: Event loop time after which pending downloads are abandoned

        Returns:
            One record per distinct URL, in discovery order
        """
        records = self._register(references)
        pending = self._claim(records)
        if not pending:
            return records

        self.logger.info(f"Downloading {len(pending)} assets...")

        try:
            ensure_dir(self.images_path)
        except OSError as e:
            for record in pending:
                record.mark_failed(f"Cannot create {self.images_path}: {e}")
            return records

        self._ensure_semaphore()
        async with self._session() as session:
            await self._assign_names(session, pending, deadline)
            with create_progress() as progress:
                bar = progress.add_task("Downloading assets", total=len(pending))
                await self._run(
                    [self._download_asset(session, record) for record in pending],
                    pending,
                    deadline,
                    on_done=lambda _: progress.advance(bar)
                )

        failed = sum(1 for r in pending if r.status is AssetStatus.FAILED)
        self.logger.info(
            f"Downloaded {len(pending) - failed} assets, {failed} failed"
        )

        return records

    async def _run(
        self,
        coros: List[Awaitable[None]],
        records: List[AssetRecord],
        deadline: Optional[float],
        on_done: Optional[Callable[[asyncio.Future], None]] = None
    ) -> None:
        """Run fetches until they finish or the deadline passes."""
        loop = asyncio.get_running_loop()
        tasks = [asyncio.ensure_future(coro) for coro in coros]
        if on_done is not None:
            for task in tasks:
                task.add_done_callback(on_done)

        timeout = None
        if deadline is not None:
            timeout = max(deadline - loop.time(), 0)

        _, unfinished = await asyncio.wait(tasks, timeout=timeout)

        if unfinished:
            self.logger.warning(
                f"Job deadline reached, abandoning {len(unfinished)} downloads"
            )
            for task in unfinished:
                task.cancel()
            await asyncio.gather(*unfinished, return_exceptions=True)

        for record in records:
            if record.status is AssetStatus.PENDING:
                record.mark_failed("Timed out before the job deadline")

    async def _assign_names(
        self,
        session: aiohttp.ClientSession,
        records: List[AssetRecord],
        deadline: Optional[float]
    ) -> None:
        """Choose a unique local filename for each record."""
        names = [filename_from_url(r.resolved_url) for r in records]

        # Ask the server for the content type of extensionless URLs
        lookup_indexes = [i for i, name in enumerate(names) if not has_extension(name)]
        if lookup_indexes:
            content_types = await self._content_types(
                session,
                [records[i].resolved_url for i in lookup_indexes],
                deadline
            )
            for i, content_type in zip(lookup_indexes, content_types):
                names[i] = with_extension(names[i], content_type)

        for record, name in zip(records, names):
            candidate = name
            attempt = 0
            while not self.registry.claim_name(candidate, record.resolved_url):
                attempt += 1
                salt = record.resolved_url if attempt == 1 else f"{record.resolved_url}#{attempt}"
                candidate = hashed_filename(name, salt)
            if candidate != name:
                self.logger.debug(
                    f"Name collision on {name}, using {candidate} for {record.resolved_url}"
                )
            record.local_name = candidate

    async def _content_types(
        self,
        session: aiohttp.ClientSession,
        urls: List[str],
        deadline: Optional[float]
    ) -> List[Optional[str]]:
        """Look up content types, giving up on all of them at the deadline."""
        lookups = asyncio.gather(*(self._head_content_type(session, url) for url in urls))

        if deadline is None:
            return await lookups

        remaining = max(deadline - asyncio.get_running_loop().time(), 0)
        try:
            return await asyncio.wait_for(lookups, timeout=remaining)
        except asyncio.TimeoutError:
            self.logger.debug("Job deadline reached while looking up content types")
            return [None] * len(urls)

    async def _head_content_type(
        self,
        session: aiohttp.ClientSession,
        url: str
    ) -> Optional[str]:
        """
        Ask the server for the declared content type of a URL.

        Returns:
            Content-Type header value, or None if it could not be determined
        """
        async with self._semaphore:
            try:
                async with session.head(url, allow_redirects=True) as response:
                    if response.status >= 400:
                        self.logger.debug(f"HTTP {response.status} for HEAD {url}")
                        return None
                    return response.headers.get('Content-Type')
            except (ClientError, asyncio.TimeoutError) as e:
                self.logger.debug(f"Could not look up content type of {url}: {e!r}")
                return None

    async def _download_asset(
        self,
        session: aiohttp.ClientSession,
        record: AssetRecord
    ) -> None:
        """
        Stream a single asset to its file under the images folder.

        Args:
            session: aiohttp session
            record: Record with its local name already assigned
        """
        url = record.resolved_url
        local_path = os.path.join(self.images_path, record.local_name)

        async with self._semaphore:
            try:
                async with session.get(url, allow_redirects=True) as response:
                    if not 200 <= response.status < 300:
                        raise AssetFetchFailure(url, f"HTTP {response.status}")

                    with open(local_path, 'wb') as f:
                        async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                            f.write(chunk)

                record.mark_downloaded()
                self.logger.debug(f"Downloaded: {url} -> {record.local_name}")

            except AssetFetchFailure as e:
                self._fail(record, e.reason, local_path)
            except ClientError as e:
                self._fail(record, f"Client error: {e}", local_path)
            except asyncio.TimeoutError:
                self._fail(record, "Timeout", local_path)
            except OSError as e:
                self._fail(record, f"Write error: {e}", local_path)
            except asyncio.CancelledError:
                self._discard(local_path)
                raise
            except Exception as e:
                self._fail(record, f"Unexpected error: {e}", local_path)

    async def _fetch_text(
        self,
        session: aiohttp.ClientSession,
        record: AssetRecord
    ) -> None:
        """Fetch and decode a stylesheet or script."""
        url = record.resolved_url

        async with self._semaphore:
            try:
                async with session.get(url, allow_redirects=True) as response:
                    if not 200 <= response.status < 300:
                        raise AssetFetchFailure(url, f"HTTP {response.status}")
                    body = await response.read()
                    charset = response.charset

                record.mark_downloaded(self._decode(body, charset))
                self.logger.debug(f"Fetched {record.kind.value}: {url}")

            except AssetFetchFailure as e:
                self._fail(record, e.reason)
            except ClientError as e:
                self._fail(record, f"Client error: {e}")
            except asyncio.TimeoutError:
                self._fail(record, "Timeout")
            except Exception as e:
                self._fail(record, f"Unexpected error: {e}")

    @staticmethod
    def _decode(body: bytes, charset: Optional[str]) -> str:
        try:
            return body.decode(charset or 'utf-8', errors='replace')
        except LookupError:
            return body.decode('utf-8', errors='replace')

    def _fail(
        self,
        record: AssetRecord,
        message: str,
        local_path: Optional[str] = None
    ) -> None:
        record.mark_failed(message)
        self.logger.warning(f"Failed to fetch {record.resolved_url}: {message}")
        if local_path:
            self._discard(local_path)

    def _discard(self, local_path: str) -> None:
        """Remove a partially written file."""
        try:
            if os.path.exists(local_path):
                os.remove(local_path)
        except OSError as e:
            self.logger.debug(f"Could not remove partial file {local_path}: {e}")
