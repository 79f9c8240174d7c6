"""Loopback HTTP listener that receives the authorization redirect.

A short-lived Starlette app served by uvicorn on the redirect URI's host
and port. The socket is bound before the browser is opened, exactly one
callback resolves the attempt, and the socket is released on stop.
"""

from __future__ import annotations

import asyncio
import html
import logging
import os
import socket
from collections.abc import Callable
from urllib.parse import urlparse

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from latchkey.auth.models.errors import CallbackListenerError
from latchkey.auth.models.flow import CallbackResult

logger = logging.getLogger(__name__)

CallbackHandler = Callable[[str], CallbackResult]

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{title}</title>
    <style>
        body {{
            font-family: "Segoe UI", Arial, sans-serif;
            display: flex;
            justify-content: center;
            align-items: center;
            height: 100vh;
            margin: 0;
            background: #f4f5f7;
        }}
        .container {{
            background: white;
            padding: 40px 60px;
            border-radius: 12px;
            box-shadow: 0 10px 30px rgba(0, 0, 0, 0.15);
            text-align: center;
        }}
        .icon {{ font-size: 56px; color: {color}; margin-bottom: 16px; }}
        h1 {{ color: #333; margin: 0 0 10px 0; font-size: 22px; }}
        p {{ color: #666; margin: 0; font-size: 16px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="icon">{icon}</div>
        <h1>{title}</h1>
        <p>{message}</p>
    </div>
</body>
</html>
"""


def render_page(message: str, success: bool) -> str:
    """Render the terminal page shown in the browser after the redirect."""
    return _PAGE_TEMPLATE.format(
        title="Sign-in complete" if success else "Sign-in failed",
        color="#4CAF50" if success else "#f44336",
        icon="&#10003;" if success else "&#10007;",
        message=html.escape(message),
    )


class LoopbackListener:
    """Serves the redirect URI until one callback arrives.

    Args:
        redirect_uri: Loopback URI registered with the provider; its host,
            port and path are what the listener binds and routes
        on_callback: Called with the full callback URL; its CallbackResult
            decides the page sent back and is what ``wait_for_callback``
            returns
    """

    def __init__(self, redirect_uri: str, on_callback: CallbackHandler):
        parsed = urlparse(redirect_uri)
        if parsed.hostname is None or not parsed.port:
            raise CallbackListenerError(
                f"Redirect URI needs an explicit host and port: {redirect_uri}"
            )

        self.redirect_uri = redirect_uri
        self.host = "127.0.0.1" if parsed.hostname == "localhost" else parsed.hostname
        self.port = parsed.port
        self.path = parsed.path or "/"
        self._on_callback = on_callback

        self._app = Starlette(
            routes=[Route(self.path, self._handle_callback, methods=["GET"])]
        )
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None
        self._result: asyncio.Future[CallbackResult] | None = None

    @property
    def is_running(self) -> bool:
        return self._serve_task is not None and not self._serve_task.done()

    async def start(self) -> None:
        """Bind the socket and start serving.

        The socket is listening when this returns, so a redirect that
        arrives immediately afterwards is queued rather than refused.

        Raises:
            CallbackListenerError: If the port cannot be bound or the server
                fails to start
        """
        if self._serve_task is not None:
            raise CallbackListenerError("Loopback listener already started")

        self._result = asyncio.get_running_loop().create_future()
        self._socket = self._bind_socket()

        config = uvicorn.Config(
            app=self._app,
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=5,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(
            self._server.serve(sockets=[self._socket])
        )

        while not self._server.started:
            if self._serve_task.done():
                error = (
                    None if self._serve_task.cancelled() else self._serve_task.exception()
                )
                await self.stop()
                raise CallbackListenerError(
                    f"Loopback listener failed to start: {error}"
                ) from error
            await asyncio.sleep(0.01)

        logger.info(f"Listening for authorization callback on {self.redirect_uri}")

    async def wait_for_callback(self) -> CallbackResult:
        """Wait until the first callback request has been handled."""
        if self._result is None:
            raise CallbackListenerError("Loopback listener not started")
        return await self._result

    async def stop(self) -> None:
        """Stop serving and release the socket. Safe to call repeatedly."""
        if self._server is not None:
            self._server.should_exit = True

        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception as e:
                logger.warning(f"Loopback listener stopped with error: {e}")
            self._serve_task = None

        if self._socket is not None:
            self._socket.close()
            self._socket = None
            logger.debug(f"Loopback listener on {self.host}:{self.port} closed")

        self._server = None

    def _bind_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            if os.name != "nt":
                # Rebind immediately after a previous attempt left TIME_WAIT
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(8)
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise CallbackListenerError(
                f"Cannot listen on {self.host}:{self.port}: {e}"
            ) from e
        return sock

    async def _handle_callback(self, request: Request) -> Response:
        """Resolve the attempt with the first callback; refuse later ones."""
        if self._result is None or self._result.done():
            return HTMLResponse(
                render_page("This sign-in attempt has already finished.", False),
                status_code=409,
            )

        try:
            result = self._on_callback(str(request.url))
        except Exception as e:
            logger.error(f"Error handling authorization callback: {e}")
            self._result.set_exception(e)
            return HTMLResponse(
                render_page("Authentication failed. Please try again.", False),
                status_code=500,
            )

        self._result.set_result(result)
        return HTMLResponse(
            render_page(result.message, result.success),
            status_code=200 if result.success else 400,
        )
