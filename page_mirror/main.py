#!/usr/bin/env python3
"""
Page Mirror - capture a rendered web page for offline viewing.

Renders the page in Chromium, merges its stylesheets into style.css and its
external scripts into script.js, saves its images under images/ and points
the saved HTML at the local copies.

Usage:
    page-mirror --url https://example.com --output ./example
    python -m page_mirror.main -u example.com
"""

import argparse
import asyncio
import sys
from urllib.parse import urlparse

from rich.table import Table

from page_mirror.capture import PageMirror
from page_mirror.capture.models import MirrorResult
from page_mirror.utils.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_JOB_TIMEOUT,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_SETTLE_DELAY,
)
from page_mirror.utils.log import (
    console,
    level_for,
    setup_logger,
    print_error,
    print_success,
)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog='page-mirror',
        description='Capture a rendered web page for offline viewing',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s --url https://example.com
    %(prog)s --url https://example.com --output ./example --concurrency 4
    %(prog)s -u example.com -o ./backup --no-format --job-timeout 120
        """
    )

    parser.add_argument(
        '--url', '-u',
        required=True,
        help='Page to capture; https:// is assumed when no scheme is given'
    )
    parser.add_argument(
        '--output', '-o',
        default=None,
        help='Output folder (default: cloned-<host>)'
    )

    timing = parser.add_argument_group('timing')
    timing.add_argument(
        '--timeout',
        type=int,
        default=DEFAULT_PAGE_TIMEOUT,
        help=f'Page load timeout in milliseconds (default: {DEFAULT_PAGE_TIMEOUT})'
    )
    timing.add_argument(
        '--job-timeout',
        type=float,
        default=DEFAULT_JOB_TIMEOUT,
        help=f'Seconds allowed for the whole capture, 0 for no limit (default: {DEFAULT_JOB_TIMEOUT})'
    )
    timing.add_argument(
        '--settle-delay',
        type=float,
        default=DEFAULT_SETTLE_DELAY,
        help=f'Seconds to wait after scrolling for lazy content (default: {DEFAULT_SETTLE_DELAY})'
    )

    output = parser.add_argument_group('output')
    output.add_argument(
        '--concurrency', '-c',
        type=int,
        default=DEFAULT_CONCURRENCY,
        help=f'Maximum parallel asset downloads (default: {DEFAULT_CONCURRENCY})'
    )
    output.add_argument(
        '--no-format',
        action='store_true',
        help='Save HTML, CSS and JavaScript exactly as captured'
    )
    output.add_argument(
        '--link-script',
        action='store_true',
        help='Add a <script src="script.js"> tag to the saved page'
    )
    output.add_argument(
        '--no-headless',
        action='store_true',
        help='Show the browser window while rendering'
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('--verbose', '-v', action='store_true', help='Log every request')
    verbosity.add_argument('--quiet', '-q', action='store_true', help='Only report errors')

    return parser


def validate_url(url: str) -> str:
    """
    Normalize the target URL.

    Raises:
        ValueError: If no host can be found in the URL
    """
    url = url.strip()
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url

    if not urlparse(url).netloc:
        raise ValueError(f"Invalid URL: {url}")

    return url


def print_summary(result: MirrorResult) -> None:
    table = Table(title="Capture summary", show_header=False, title_justify="left")
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Output folder", result.output_folder)
    table.add_row("Assets downloaded", str(result.assets_downloaded))
    table.add_row("Assets failed", str(result.assets_failed))
    table.add_row("Duration", f"{result.duration_seconds:.1f}s")
    console.print(table)

    for failure in result.failures:
        console.print(f"  {failure['url']}: {failure['error']}", style="yellow", markup=False)


async def main(argv=None) -> int:
    """
    Run the CLI.

    Returns:
        Exit status, 1 when the capture job failed
    """
    args = build_parser().parse_args(argv)
    setup_logger(level=level_for(args.verbose, args.quiet))

    try:
        url = validate_url(args.url)
    except ValueError as e:
        print_error(str(e))
        return 1

    page_mirror = PageMirror(
        url=url,
        output_dir=args.output,
        timeout=args.timeout,
        job_timeout=args.job_timeout or None,
        concurrency=args.concurrency,
        headless=not args.no_headless,
        settle_delay=args.settle_delay,
        format_output=not args.no_format,
        link_script=args.link_script
    )

    result = await page_mirror.mirror()

    if not result.success:
        print_error(result.message)
        return 1

    if not args.quiet:
        print_summary(result)
    print_success(result.message)
    return 0


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print_error("Capture interrupted by user")
        sys.exit(130)


if __name__ == '__main__':
    run()
