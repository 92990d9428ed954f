"""sitedrop - static site host with a zip deploy endpoint.

Endpoints:
    GET  / - Serve index.html from the output directory
    GET  /{path} - Serve any file from the output directory
    GET  /health - Health check
    POST /v1/deploy - Replace the site with the contents of a zip upload
    POST /v1/deploy/generate-key - Issue the deploy key (once)

Security:
    - Deployment requires the DEPLOY_KEY value in the ``deployment_key`` header
    - The key can be generated through the API only while none exists
    - Zip extraction has path traversal protection

Deployment sequence:
    key check -> disc space check (if zip_length given) -> delete output dir
    -> copy placeholder page -> buffer upload -> extract -> respond
    -> report to analytics after a delay

The delete/extract part runs under a lock so two deployments cannot
interleave their writes.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
import shutil
import signal
from collections.abc import Callable
from pathlib import Path

from fastapi import BackgroundTasks, FastAPI, Header, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import FileResponse, PlainTextResponse
from starlette.datastructures import UploadFile

from sitedrop import __version__
from sitedrop.analytics import AnalyticsClient, fire_and_forget, request_event
from sitedrop.config import Settings, load_settings
from sitedrop.deploy_key import DeployKeyStore
from sitedrop.disk_space import has_enough_space
from sitedrop.errors import (
    AuthError,
    BadRequestError,
    ConfigurationError,
    ExtractionError,
    InsufficientStorageError,
    SitedropError,
)
from sitedrop.extract import copy_placeholder, extract_zip

_LOG = logging.getLogger(__name__)

NO_KEY_MESSAGE: str = (
    "No Deploy Key set! Open the .env file and add a DEPLOY_KEY, "
    "or call POST /v1/deploy/generate-key to create one."
)
"""Body returned by /v1/deploy while no key is configured."""

PRECOMPRESSED: tuple[tuple[str, str], ...] = (("br", ".br"), ("gzip", ".gz"))
"""(Content-Encoding, file suffix) pairs tried before the plain file, in order."""

FORM_CONTENT_TYPES: tuple[str, ...] = ("multipart/", "application/x-www-form-urlencoded")
"""Request bodies parsed as forms when looking for the uploaded archive."""


# =============================================================================
# Helpers
# =============================================================================


def request_restart() -> None:
    """Ask the server to shut down so the supervisor restarts it.

    uvicorn handles SIGTERM as a graceful shutdown and exits.
    """
    _LOG.info("Restarting to load the new deploy key")
    os.kill(os.getpid(), signal.SIGTERM)


def parse_zip_length(value: str | None) -> int | None:
    """Parse the optional zip_length header.

    Raises:
        BadRequestError: The header is present but not an integer.
    """
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        raise BadRequestError("Invalid zip_length header") from None


async def read_upload(request: Request) -> bytes:
    """Buffer the uploaded archive.

    Form bodies use their first file field, whatever its name. Any other
    body is taken as the raw archive.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(FORM_CONTENT_TYPES):
        data = await request.body()
        if not data:
            raise ExtractionError("No file uploaded")
        return data

    async with request.form() as form:
        for _, value in form.multi_items():
            if isinstance(value, UploadFile):
                return await value.read()
    raise ExtractionError("No file uploaded")


def resolve_site_file(output_dir: Path, path: str) -> Path:
    """Map a URL path to a file inside the output directory.

    Raises:
        SitedropError: 403 for paths outside the directory, 404 if missing.
    """
    if "\x00" in path:
        raise SitedropError("File not found", status_code=404)

    root = output_dir.resolve()
    file_path = (root / path).resolve()

    if not file_path.is_relative_to(root):
        raise SitedropError("Access denied", status_code=403)

    if file_path.is_dir():
        file_path = file_path / "index.html"

    if not file_path.exists():
        html_path = file_path.with_suffix(".html")
        if html_path.exists():
            file_path = html_path
        else:
            raise SitedropError("File not found", status_code=404)

    if not file_path.is_file():
        raise SitedropError("Not a file", status_code=404)

    return file_path


def file_response(file_path: Path, accept_encoding: str) -> FileResponse:
    """Serve ``file_path``, preferring a pre-compressed sibling the client accepts."""
    media_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    accepted = {part.split(";")[0].strip() for part in accept_encoding.lower().split(",")}

    for encoding, suffix in PRECOMPRESSED:
        compressed = file_path.with_name(file_path.name + suffix)
        if encoding in accepted and compressed.is_file():
            return FileResponse(
                compressed,
                media_type=media_type,
                headers={"Content-Encoding": encoding, "Vary": "Accept-Encoding"},
            )

    return FileResponse(file_path, media_type=media_type)


# =============================================================================
# Application
# =============================================================================


def create_app(
    settings: Settings | None = None,
    deploy_keys: DeployKeyStore | None = None,
    analytics: AnalyticsClient | None = None,
    restart: Callable[[], None] = request_restart,
) -> FastAPI:
    """Build the sitedrop application.

    Args:
        settings: Server settings. Loaded from the environment if omitted.
        deploy_keys: Key store. Built from ``settings.env_file`` if omitted.
        analytics: Analytics client. Built from ``settings.analytics_url`` if omitted.
        restart: Called after a key is generated in "restart" reload mode.
    """
    settings = settings or load_settings()
    deploy_keys = deploy_keys or DeployKeyStore(settings.env_file)
    analytics = analytics or AnalyticsClient(settings.analytics_url)
    output_dir = settings.output_dir
    deploy_lock = asyncio.Lock()

    app = FastAPI(title="sitedrop", version=__version__, docs_url=None, redoc_url=None)
    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.state.settings = settings
    app.state.deploy_keys = deploy_keys

    @app.exception_handler(SitedropError)
    async def sitedrop_error_handler(request: Request, exc: SitedropError) -> PlainTextResponse:
        """Answer handled errors with their status and a plain-text body."""
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    # -------------------------------------------------------------------------
    # Deployment
    # -------------------------------------------------------------------------

    @app.post("/v1/deploy", response_class=PlainTextResponse)
    async def deploy(
        request: Request,
        deployment_key: str | None = Header(None, convert_underscores=False),
        zip_length: str | None = Header(None, convert_underscores=False),
    ) -> PlainTextResponse:
        """Replace the served site with the contents of an uploaded zip."""
        if not deploy_keys.is_configured():
            raise ConfigurationError(NO_KEY_MESSAGE)

        if not deploy_keys.verify(deployment_key):
            raise AuthError("Invalid or missing Deploy Key")

        expected_size = parse_zip_length(zip_length)
        if expected_size is not None and not await has_enough_space(output_dir, expected_size):
            raise InsufficientStorageError(
                "Insufficient Storage: not enough free disc space left for this deployment"
            )

        async with deploy_lock:
            _LOG.info("Starting new deployment")
            if expected_size is not None:
                _LOG.info("Expected file size: %d bytes", expected_size)
            try:
                shutil.rmtree(output_dir, ignore_errors=True)
                copy_placeholder(settings.placeholder_page, output_dir)
                try:
                    data = await read_upload(request)
                except SitedropError:
                    raise
                except Exception as e:
                    raise ExtractionError(f"Failed to read upload: {e}") from e

                extracted = await asyncio.to_thread(extract_zip, data, output_dir)
                if "index.html" not in extracted:
                    (output_dir / "index.html").unlink(missing_ok=True)
            except SitedropError as e:
                _LOG.error("Deployment failed: %s", e.message)
                raise

        _LOG.info("Deployment finished (%d files)", len(extracted))
        event = request_event("deploy", request)
        fire_and_forget(lambda: analytics.on_deploy(event), delay=settings.analytics_delay)
        return PlainTextResponse("Successfully deployed new version")

    @app.post("/v1/deploy/generate-key", response_class=PlainTextResponse)
    async def generate_key(background_tasks: BackgroundTasks) -> PlainTextResponse:
        """Generate the deploy key and return it. This is the only time it is shown."""
        key = deploy_keys.generate()
        if settings.key_reload == "memory":
            deploy_keys.activate(key)
        else:
            background_tasks.add_task(restart)
        return PlainTextResponse(key)

    # -------------------------------------------------------------------------
    # Health check
    # -------------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint for monitoring and load balancers."""
        return {
            "status": "healthy",
            "deploy_key_configured": deploy_keys.is_configured(),
            "site_deployed": (output_dir / "index.html").is_file(),
        }

    # -------------------------------------------------------------------------
    # Static site
    # -------------------------------------------------------------------------

    @app.get("/")
    async def serve_index(request: Request) -> FileResponse:
        """Serve the site's index.html and record a page view."""
        index = output_dir / "index.html"
        if not index.is_file():
            raise SitedropError("Site not deployed", status_code=404)
        event = request_event("ping", request)
        fire_and_forget(lambda: analytics.ping(event))
        return file_response(index, request.headers.get("accept-encoding", ""))

    @app.get("/{path:path}")
    async def serve_site_file(path: str, request: Request) -> FileResponse:
        """Serve a static file from the output directory."""
        file_path = resolve_site_file(output_dir, path)
        return file_response(file_path, request.headers.get("accept-encoding", ""))

    return app
