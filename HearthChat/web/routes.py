"""
HTTP surface for HearthChat.

Every request is gated by the same credential check as the WebSocket
handshake. Unauthenticated requests to any path get a 403 carrying the
login page; authenticated ones get the static assets.
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.requests import Request
from starlette.responses import Response

from HearthChat import __version__
from HearthChat.config import config
from HearthChat.core.server.auth import CredentialAuthenticator, TOKEN_COOKIE, parse_cookies

logger = logging.getLogger(__name__)

LOGIN_PAGE = "login.html"


def create_app(authenticator: CredentialAuthenticator, static_dir: str = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        authenticator: Shared with the WebSocket server
        static_dir: Directory holding index.html and login.html
    """
    static_dir = static_dir or config.STATIC_DIR
    login_page = os.path.join(static_dir, LOGIN_PAGE)

    app = FastAPI(title="HearthChat", version=__version__, docs_url=None, redoc_url=None, openapi_url=None)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.middleware("http")
    async def require_credentials(request: Request, call_next) -> Response:
        raw_header = "; ".join(request.headers.getlist("cookie")) or None
        result = await authenticator.authenticate(raw_header)
        if not result.success:
            return FileResponse(login_page, status_code=403, media_type="text/html")

        response = await call_next(request)

        issuer = authenticator.token_issuer
        if issuer is not None and TOKEN_COOKIE not in parse_cookies(raw_header):
            response.set_cookie(TOKEN_COOKIE, issuer.issue(result.user), httponly=True, samesite="strict")
        return response

    app.mount("/", StaticFiles(directory=static_dir, html=True, check_dir=True), name="static")
    return app


def run(app: FastAPI, host: str = "0.0.0.0", port: int = None) -> None:
    """Serve the application with uvicorn (blocking)."""
    import uvicorn

    port = port or config.DEFAULT_SERVER_PORT + 1
    logger.info("HTTP server listening on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
