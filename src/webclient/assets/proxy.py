"""HTTP and WebSocket reverse proxy to the web client's Vite dev server.

Vite starts its own local server for development; in dev mode every asset
request is forwarded to it unchanged. The only custom behavior is the
diagnostic page returned when Vite can't be reached.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import TYPE_CHECKING, Any, cast

import httpx
import websockets
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response, StreamingResponse
from starlette.websockets import WebSocket, WebSocketDisconnect
from websockets.asyncio.client import connect as ws_connect
from websockets.typing import Subprotocol

from webclient.constants import DEV_SERVER_HOST, DEV_SERVER_PORT, WEB_CLIENT_DIR, YARN_TOOL
from webclient.logging import LogComponent, get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Coroutine

    from starlette.types import Receive, Scope, Send

logger = get_logger(LogComponent.PROXY)

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# No longer true of a body httpx has already decoded
_DECODED_BODY_HEADERS = frozenset({"content-encoding", "content-length"})

# Handled by the websockets library itself when connecting upstream
_WS_HANDSHAKE_HEADERS = frozenset(
    {
        "host",
        "upgrade",
        "connection",
        "sec-websocket-key",
        "sec-websocket-version",
        "sec-websocket-protocol",
        "sec-websocket-extensions",
    }
)


def dev_server_down_message(start_command: str) -> str:
    return (
        "The web client development server isn't running. "
        f"Run `{start_command}` from the repo root to start the development server."
    )


class DevProxy:
    """ASGI app forwarding every request to the dev server.

    Attributes:
        target_url: Base URL of the dev server (e.g., "http://127.0.0.1:4000")
        start_command: Command shown to the operator when the dev server is down
    """

    def __init__(
        self,
        target_url: str = f"http://{DEV_SERVER_HOST}:{DEV_SERVER_PORT}",
        *,
        start_command: str = f"./{YARN_TOOL} --cwd {WEB_CLIENT_DIR} start",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.target_url: str = target_url.rstrip("/")
        self.start_command: str = start_command
        self._transport: httpx.AsyncBaseTransport | None = transport

        # Track active WebSocket pumps so aclose() can cancel them
        self._active_websockets: set[asyncio.Task[None]] = set()

        # HTTP client with connection pooling
        self._http_client: httpx.AsyncClient | None = None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            response = await self.proxy_http(Request(scope, receive))
            await response(scope, receive, send)
        elif scope["type"] == "websocket":
            await self.proxy_websocket(WebSocket(scope, receive, send))
        elif scope["type"] == "lifespan":
            # Only seen when served directly rather than mounted in an app
            while True:
                message = await receive()
                if message["type"] == "lifespan.startup":
                    await send({"type": "lifespan.startup.complete"})
                elif message["type"] == "lifespan.shutdown":
                    await self.aclose()
                    await send({"type": "lifespan.shutdown.complete"})
                    return

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(60.0, connect=10.0),
                follow_redirects=False,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._http_client

    def _target_path(self, scope: Scope) -> str:
        """Path plus query exactly as the client sent them (percent-escapes kept)."""
        raw_path: bytes | None = scope.get("raw_path")
        path = raw_path.decode("latin-1") if raw_path else scope["path"]
        query: bytes = scope.get("query_string", b"")
        if query:
            path = f"{path}?{query.decode('latin-1')}"
        return path

    def error_response(self, error: Exception) -> Response:
        """The diagnostic page served when the dev server can't be reached."""
        return PlainTextResponse(
            f"{dev_server_down_message(self.start_command)}\n\nError: {error}",
            status_code=502,
        )

    async def proxy_http(self, request: Request) -> Response:
        """Proxy an HTTP request to the dev server, streaming the response back.

        Args:
            request: The incoming Starlette request

        Returns:
            The upstream response, or a 502 diagnostic if the dev server is unreachable
        """
        target_url = f"{self.target_url}{self._target_path(request.scope)}"

        # Forward headers, excluding hop-by-hop headers; httpx sets Host for the target
        headers = [
            (k, v)
            for k, v in request.headers.items()
            if k.lower() not in HOP_BY_HOP_HEADERS and k.lower() != "host"
        ]

        client_host = request.client.host if request.client else "unknown"
        headers.append(("x-forwarded-for", client_host))
        headers.append(("x-forwarded-proto", request.url.scheme))
        headers.append(("x-forwarded-host", request.headers.get("host", "")))

        body = await request.body()

        try:
            client = await self._get_http_client()
            upstream_request = client.build_request(
                method=request.method,
                url=target_url,
                headers=headers,
                content=body,
            )
            upstream = await client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to reach dev server at {self.target_url}: {e}")
            return self.error_response(e)

        # A transport may hand back a response whose body httpx has already read
        # (and decoded); only an unread stream still has the raw bytes.
        already_read = upstream.is_stream_consumed
        skipped = HOP_BY_HOP_HEADERS | (_DECODED_BODY_HEADERS if already_read else frozenset())

        async def stream_body() -> AsyncIterator[bytes]:
            # Raw bytes: Content-Encoding is relayed, so the body must not be decoded
            try:
                if already_read:
                    yield upstream.content
                else:
                    async for chunk in upstream.aiter_raw():
                        yield chunk
            finally:
                await upstream.aclose()

        response = StreamingResponse(stream_body(), status_code=upstream.status_code)
        # Keep duplicates (e.g. Set-Cookie) and upstream ordering
        response.raw_headers = [
            (key.lower(), value)
            for key, value in upstream.headers.raw
            if key.decode("latin-1").lower() not in skipped
        ]
        return response

    async def proxy_websocket(self, websocket: WebSocket) -> None:
        """Proxy a WebSocket connection (Vite HMR) to the dev server.

        Args:
            websocket: The incoming Starlette WebSocket connection
        """
        ws_target = self.target_url.replace("http://", "ws://").replace(
            "https://", "wss://"
        )
        target_url = f"{ws_target}{self._target_path(websocket.scope)}"

        subprotocols = [
            cast(Subprotocol, p.strip())
            for p in websocket.headers.get("sec-websocket-protocol", "").split(",")
            if p.strip()
        ]
        forward_headers = [
            (k, v)
            for k, v in websocket.headers.items()
            if k.lower() not in _WS_HANDSHAKE_HEADERS
        ]

        # Vite's client insists on getting its own subprotocol back
        await websocket.accept(subprotocol=subprotocols[0] if subprotocols else None)

        current_task = asyncio.current_task()
        if current_task:
            self._active_websockets.add(current_task)

        try:
            async with ws_connect(
                target_url,
                additional_headers=forward_headers,
                subprotocols=subprotocols or None,
                open_timeout=10,
            ) as target_ws:

                async def forward_to_target() -> None:
                    """Forward messages from client to target."""
                    try:
                        while True:
                            data = await websocket.receive()
                            if data["type"] == "websocket.disconnect":
                                break
                            if data.get("text") is not None:
                                await target_ws.send(data["text"])
                            elif data.get("bytes") is not None:
                                await target_ws.send(data["bytes"])
                    except (WebSocketDisconnect, websockets.ConnectionClosed):
                        pass

                async def forward_to_client() -> None:
                    """Forward messages from target to client."""
                    try:
                        async for message in target_ws:
                            if isinstance(message, str):
                                await websocket.send_text(message)
                            else:
                                await websocket.send_bytes(message)
                    except (WebSocketDisconnect, websockets.ConnectionClosed):
                        pass

                await self._run_pumps(forward_to_target(), forward_to_client())

        except (OSError, TimeoutError, websockets.InvalidHandshake) as e:
            logger.warning(f"WebSocket proxy to {target_url} failed: {e}")
            with suppress(RuntimeError, OSError, WebSocketDisconnect):
                await websocket.close(code=1011, reason="Dev server not reachable")
            return
        finally:
            if current_task:
                self._active_websockets.discard(current_task)

        with suppress(RuntimeError, OSError, WebSocketDisconnect):
            await websocket.close()

    async def _run_pumps(self, *pumps: Coroutine[Any, Any, None]) -> None:
        """Run the message pumps until the first one finishes, then cancel the rest."""
        tasks = [asyncio.create_task(pump) for pump in pumps]

        # Whichever side closes first ends the session
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.debug(f"WebSocket pump ended with error: {task.exception()!r}")

    async def aclose(self, timeout: float = 5.0) -> None:
        """Cancel open WebSocket sessions and close the HTTP client.

        Args:
            timeout: Maximum time to wait for WebSocket sessions to finish
        """
        tasks = list(self._active_websockets)
        if tasks:
            logger.info(f"Closing {len(tasks)} active WebSocket connection(s)...")
            for task in tasks:
                task.cancel()
            try:
                await asyncio.wait_for(
                    asyncio.gather(*tasks, return_exceptions=True),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Timeout waiting for WebSocket connections to close")

        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def active_websocket_count(self) -> int:
        """Return the number of active WebSocket connections."""
        return len(self._active_websockets)
