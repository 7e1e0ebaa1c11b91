"""
Test doubles for the page mirror tests.

AssetServer serves canned responses from a local aiohttp application and
counts requests per path. StaticRenderer stands in for the browser.
"""

import asyncio
from collections import Counter
from typing import Dict, Optional, Union

from aiohttp import web
from aiohttp.test_utils import TestServer


PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


class AssetServer:
    """Local HTTP server with per-path canned responses."""

    def __init__(self):
        self.routes: Dict[str, dict] = {}
        self.hits: Counter = Counter()
        self.head_hits: Counter = Counter()
        self.in_flight = 0
        self.peak = 0
        self.app = web.Application()
        self.app.router.add_route('*', '/{tail:.*}', self._handle)
        self.server: Optional[TestServer] = None
        self._root: Optional[str] = None

    def add(
        self,
        path: str,
        body: Union[str, bytes] = PNG_BYTES,
        content_type: Optional[str] = 'image/png',
        status: int = 200,
        delay: float = 0.0
    ) -> None:
        if isinstance(body, str):
            body = body.encode('utf-8')
        self.routes[path] = {
            'body': body,
            'content_type': content_type,
            'status': status,
            'delay': delay,
        }

    def url(self, path: str) -> str:
        if self.server is not None and not self.server.closed:
            return str(self.server.make_url(path))
        return self._root + path

    async def _handle(self, request: web.Request) -> web.Response:
        if request.method == 'HEAD':
            self.head_hits[request.path] += 1
        else:
            self.hits[request.path] += 1

        route = self.routes.get(request.path)
        if route is None:
            return web.Response(status=404, text='not found')

        if route['delay']:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            try:
                await asyncio.sleep(route['delay'])
            finally:
                self.in_flight -= 1

        response = web.Response(body=route['body'], status=route['status'])
        if route['content_type']:
            response.headers['Content-Type'] = route['content_type']
        else:
            response.headers['Content-Type'] = 'application/octet-stream'
        return response

    async def __aenter__(self) -> 'AssetServer':
        self.server = TestServer(self.app, host='127.0.0.1')
        await self.server.start_server()
        self._root = str(self.server.make_url(''))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.server.close()


class StaticRenderer:
    """Renderer stub returning fixed HTML for any URL."""

    def __init__(self, html: str = '', final_url: Optional[str] = None, error: Exception = None):
        self.html = html
        self.final_url = final_url
        self.error = error
        self.calls = []

    async def render_page(self, url: str):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.html, self.final_url or url
