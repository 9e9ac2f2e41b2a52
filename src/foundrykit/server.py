"""FastAPI relay application for foundrykit.

Browsers cannot call S3-compatible endpoints directly (no CORS until the
bucket exists), so the provisioning front end posts JSON to this relay and
the relay signs and forwards one request per call. It re-signs nothing it
receives and keeps no state between calls.

Routes (POST, JSON body ``{accessKeyId, secretAccessKey, region, bucketName,
allowedOrigin?}``):

    /{family}/validate       check a key pair against a bucket
    /{family}/create-bucket  create a bucket (idempotent for its owner)
    /{family}/set-cors       allow an origin to read the bucket

``family`` is ``s3`` (Hetzner Object Storage) or ``spaces`` (DigitalOcean
Spaces). A ``provider`` field in the body picks a provider explicitly.
"""

import logging
import secrets
import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from foundrykit.config import FoundryKitConfig
from foundrykit.errors import FoundryKitError, InvalidRequest, TransportError
from foundrykit.sigv4 import Credentials
from foundrykit.storage import PROVIDERS, ObjectStorageProvider, create_storage_provider
from foundrykit.storage.provider import CredentialStatus

logger = logging.getLogger(__name__)

# Route family -> default provider id
RELAY_FAMILIES = {
    "s3": "hetzner",
    "spaces": "digitalocean",
}

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization"
CORS_MAX_AGE = "86400"


class BucketRequest(BaseModel):
    """JSON body shared by all relay routes."""

    model_config = ConfigDict(populate_by_name=True)

    access_key_id: str = Field(default="", alias="accessKeyId")
    secret_access_key: str = Field(default="", alias="secretAccessKey", repr=False)
    region: str = ""
    bucket_name: str = Field(default="", alias="bucketName")
    allowed_origin: str | None = Field(default=None, alias="allowedOrigin")
    provider: str | None = None

    def credentials(self) -> Credentials:
        return Credentials(self.access_key_id, self.secret_access_key)

    def require(self, *fields: str) -> None:
        """Raise InvalidRequest naming any empty required field."""
        missing = [name for name in fields if not getattr(self, name)]
        if missing:
            aliases = [type(self).model_fields[name].alias or name for name in missing]
            raise InvalidRequest(f"Missing required fields: {', '.join(aliases)}")


# Module-level singleton so multiple create_app() calls (e.g. in tests)
# don't re-register the same Prometheus collectors in the global registry.
_instrumentator = None


def _get_instrumentator():
    global _instrumentator
    if _instrumentator is None:
        from prometheus_fastapi_instrumentator import Instrumentator

        _instrumentator = Instrumentator(
            excluded_handlers=["/metrics"],
        )
    return _instrumentator


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: FoundryKitConfig) -> FastAPI:
    """Create and configure the relay FastAPI application.

    The lifespan context opens one shared ``httpx.AsyncClient`` for outbound
    storage calls and closes it on shutdown. When the lifespan has not run
    (tests with ASGITransport), providers open a client per call unless a
    test places one on ``app.state.http_client``.

    Args:
        config: The loaded foundrykit configuration.

    Returns:
        A configured FastAPI application ready to run.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = httpx.AsyncClient(timeout=config.storage.timeout_seconds)
        app.state.http_client = client
        logger.info(
            "Relay ready: providers=%s origins=%s",
            ",".join(sorted(PROVIDERS)),
            ",".join(config.server.allowed_origins) or "(none)",
        )

        yield

        await client.aclose()
        app.state.http_client = None
        logger.info("Relay HTTP client closed")

    app = FastAPI(
        title="foundrykit relay",
        version="0.1.0",
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config
    app.state.http_client = None

    _register_exception_handlers(app)
    _register_middleware(app, config)

    if config.observability.metrics:
        import foundrykit.metrics as _metrics

        _metrics.init_metrics()
        _get_instrumentator().instrument(app, metric_namespace="foundrykit").expose(
            app, endpoint="/metrics"
        )

    _setup_routes(app, config)

    return app


def _provider_for(app: FastAPI, family: str, body: BucketRequest) -> ObjectStorageProvider:
    """Resolve the provider for a route family and request body.

    Raises:
        InvalidRequest: If the family or provider is unknown.
    """
    provider_id = body.provider or RELAY_FAMILIES.get(family)
    if provider_id is None:
        raise InvalidRequest(f"Unknown route family: {family}")
    cfg: FoundryKitConfig = app.state.config
    return create_storage_provider(
        provider_id, cfg.storage, client=getattr(app.state, "http_client", None)
    )


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the FastAPI app."""

    @app.exception_handler(FoundryKitError)
    async def foundrykit_error_handler(request: Request, exc: FoundryKitError) -> Response:
        """Render FoundryKitError as ``{"error": message}`` with its status."""
        if exc.http_status >= 500:
            logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.http_status)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        """Map body parsing errors to ``{"error": ...}`` with status 400."""
        messages = []
        for err in exc.errors():
            loc = " -> ".join(str(p) for p in err.get("loc", []) if p != "body")
            msg = err.get("msg", "Invalid value")
            messages.append(f"{loc}: {msg}" if loc else msg)
        combined = "; ".join(messages) or "Invalid JSON body"
        return JSONResponse({"error": combined}, status_code=400)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> Response:
        """Catch unexpected exceptions and return a 500."""
        logger.exception(
            "Unhandled exception in relay handler",
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        return JSONResponse({"error": "Internal error"}, status_code=500)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def _register_middleware(app: FastAPI, config: FoundryKitConfig) -> None:
    """Register middleware on the FastAPI app.

    Starlette runs the most recently registered middleware first, so the
    request log wraps the origin check and rejected requests are logged too.
    """

    # Paths served to any caller (probes and scrapers send no Origin)
    OPEN_PATHS = {"/health", "/healthz", "/metrics"}

    # Paths to suppress from per-request logging
    _QUIET_PATHS = {"/metrics", "/health", "/healthz"}

    allowed_origins = set(config.server.allowed_origins)

    @app.middleware("http")
    async def origin_middleware(request: Request, call_next) -> Response:
        """Enforce the origin allowlist and answer CORS preflights.

        Requests from unlisted origins get 403 before reaching a handler.
        """
        if request.url.path in OPEN_PATHS:
            return await call_next(request)

        origin = request.headers.get("origin", "")
        if origin not in allowed_origins:
            return PlainTextResponse("Forbidden", status_code=403)

        if request.method == "OPTIONS":
            return Response(
                status_code=204,
                headers={
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
                    "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
                    "Access-Control-Max-Age": CORS_MAX_AGE,
                    "Vary": "Origin",
                },
            )

        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
        return response

    def _log_request(request: Request, status: int, start: float, request_id: str) -> None:
        duration_ms = round((time.monotonic() - start) * 1000, 2)
        if request.url.path in _QUIET_PATHS:
            return
        origin = request.headers.get("origin", "")
        logger.info(
            "%s %s %d %.2fms",
            request.method,
            request.url.path,
            status,
            duration_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": duration_ms,
                "request_id": request_id,
                "origin": origin or None,
            },
        )

    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next) -> Response:
        """Tag every response with a request id and log one line per request.

        A handler exception is logged as a 500 before it propagates to the
        server error handler.
        """
        request_id = secrets.token_hex(8).upper()
        request.state.request_id = request_id
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            _log_request(request, 500, start, request_id)
            raise

        _log_request(request, response.status_code, start, request_id)
        response.headers["X-Request-Id"] = request_id
        return response


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


def _setup_routes(app: FastAPI, config: FoundryKitConfig) -> None:
    """Register the health and relay routes on the application.

    Args:
        app: The FastAPI application to attach routes to.
        config: The foundrykit configuration.
    """
    health_check_enabled = config.observability.health_check

    @app.get("/health")
    async def health_check() -> Response:
        """Return health status.

        When health_check is enabled, also lists the served providers.
        When disabled: return static ``{"status": "ok"}``.
        """
        if not health_check_enabled:
            return JSONResponse({"status": "ok"})
        return JSONResponse(
            {
                "status": "ok",
                "providers": sorted(PROVIDERS),
                "families": dict(sorted(RELAY_FAMILIES.items())),
            }
        )

    if health_check_enabled:

        @app.get("/healthz")
        async def healthz() -> Response:
            """Liveness probe. Returns 200 with empty body."""
            return Response(status_code=200)

    @app.post("/{family}/validate")
    async def handle_validate(family: str, body: BucketRequest) -> Response:
        """Check a key pair against a bucket, then apply CORS if asked.

        Provider and transport failures are reported in the body with 200,
        so the caller can show them next to the form field.
        """
        body.require("access_key_id", "secret_access_key", "region", "bucket_name")
        provider = _provider_for(app, family, body)
        credentials = body.credentials()

        try:
            status = await provider.check_credentials(credentials, body.region, body.bucket_name)
        except TransportError as exc:
            return JSONResponse({"valid": False, "error": exc.message})

        valid = status is not CredentialStatus.REJECTED
        if valid and body.allowed_origin:
            try:
                await provider.set_cors(
                    credentials, body.region, body.bucket_name, body.allowed_origin
                )
            except InvalidRequest:
                raise
            except FoundryKitError as exc:
                return JSONResponse({"valid": False, "status": status.value, "error": exc.message})

        return JSONResponse({"valid": valid, "status": status.value})

    @app.post("/{family}/create-bucket")
    async def handle_create_bucket(family: str, body: BucketRequest) -> Response:
        """Create a bucket; succeeds if the caller already owns it."""
        body.require("access_key_id", "secret_access_key", "region", "bucket_name")
        provider = _provider_for(app, family, body)
        await provider.create_bucket(body.credentials(), body.region, body.bucket_name)
        return JSONResponse({"success": True, "bucket": body.bucket_name, "region": body.region})

    @app.post("/{family}/set-cors")
    async def handle_set_cors(family: str, body: BucketRequest) -> Response:
        """Allow an origin to read a bucket."""
        body.require(
            "access_key_id", "secret_access_key", "region", "bucket_name", "allowed_origin"
        )
        provider = _provider_for(app, family, body)
        await provider.set_cors(
            body.credentials(), body.region, body.bucket_name, body.allowed_origin
        )
        return JSONResponse({"success": True})
