"""FastAPI entry point for the card tracker API."""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

load_dotenv(Path(__file__).resolve().with_name(".env"))

from tracker_web import schemas
from tracker_web.auth import warn_if_default_secret
from tracker_web.config import Settings, get_settings
from tracker_web.database import check_connection, init_db
from tracker_web.rate_limit import RateLimiter, RateLimitMiddleware
from tracker_web.routes import auth, collection, recognize
from tracker_web.services.recognition import RecognitionClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting card tracker server...")
    init_db()
    warn_if_default_secret()
    logger.info("CORS origin: %s", settings.frontend_url)
    yield
    logger.info("Shutting down card tracker server...")


BODY_TOO_LARGE = "Request entity too large"


class BodySizeLimitMiddleware:
    """Refuse request bodies larger than ``max_bytes``.

    The declared ``Content-Length`` is checked up front; bodies without one
    (chunked uploads) are counted as they are received and fail with a 413
    once the running total passes the limit.
    """

    def __init__(self, app: ASGIApp, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
            response = JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={"error": BODY_TOO_LARGE},
            )
            await response(scope, receive, send)
            return

        received = 0
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    # FastAPI re-raises HTTPExceptions hit while reading the body.
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=BODY_TOO_LARGE,
                    )
            return message

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except HTTPException as exc:
            if response_started or exc.status_code != status.HTTP_413_REQUEST_ENTITY_TOO_LARGE:
                raise
            response = JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
            await response(scope, receive, send)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
        detail = "Not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.debug("Rejected request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request format"},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc) or "Internal server error"},
    )


def create_app(
    settings: Optional[Settings] = None,
    rate_limiter: Optional[RateLimiter] = None,
    recognition_client: Optional[RecognitionClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    if recognition_client is None:
        recognition_client = RecognitionClient(settings)

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.rate_limiter = rate_limiter
    app.state.recognition_client = recognition_client

    # Last added runs first: CORS wraps the size guard, which wraps the limiter.
    app.add_middleware(
        RateLimitMiddleware,
        limiter=rate_limiter,
        trust_proxy_headers=settings.trust_proxy_headers,
    )
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(auth.router)
    app.include_router(collection.router)
    app.include_router(recognize.router)

    @app.get("/api/test", response_model=schemas.HealthStatus)
    def test_endpoint(request: Request):
        return schemas.HealthStatus(
            api_key_set=request.app.state.recognition_client.configured,
            db_connected=check_connection(),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
