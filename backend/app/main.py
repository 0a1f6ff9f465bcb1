"""
Learning Content API: application factory and process entry point.

  - Routes live under /api/v1/content; /health and /ready sit at the root.
  - A submission answers with the pending record straight away. The pipeline
    run happens afterwards on the in-process BackgroundRunner.
  - create_app() accepts a prebuilt AppContainer so tests can wire fakes;
    otherwise the lifespan builds one from settings.
  - Every error leaves as an ErrorResponse body carrying the request id.

Middleware, outermost first: request id + access log, CORS, gzip.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.content import router as content_router
from app.core.config import settings
from app.core.dependencies import AppContainer, build_container
from app.core.exceptions import ContentPipelineError, InvalidInputError
from app.db.session import check_db_health
from app.observability.tracing import TracingConfig
from app.schemas.content import ContentErrors, ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


# ---------------------------------------------------------------------------
# Application lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: build the container unless one was injected (tests), init tracing.
    Shutdown: drain in-flight pipeline runs, dispose the engine we created.
    """
    owns_container = getattr(app.state, "container", None) is None
    if owns_container:
        app.state.container = await build_container(settings)
    container: AppContainer = app.state.container

    TracingConfig.init(container.settings)

    logger.info(
        "Starting Learning Content API | env=%s artifacts=%s llm_model=%s",
        container.settings.app_env,
        container.settings.artifact_backend,
        container.settings.llm_model,
    )

    yield

    logger.info("Shutting down Learning Content API")
    still_running = await container.runner.drain(container.settings.shutdown_drain_seconds)
    if still_running:
        logger.warning("Shutdown with %d pipeline run(s) still in flight", still_running)
    if owns_container and container.engine is not None:
        await container.engine.dispose()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(container: AppContainer | None = None) -> FastAPI:
    app = FastAPI(
        title="Accessible Learning Content API",
        description=(
            "Turns uploaded documents, images and video links into accessible "
            "learning material: extracted text, summaries, narration and quizzes."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order: last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(GZipMiddleware, minimum_size=1024)

    allowed_origins = ["*"] if settings.app_env == "development" else []
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # ----------------------------------------------------------------
    # Request ID + structured logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers: uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(ContentPipelineError)
    async def content_error_handler(request: Request, exc: ContentPipelineError):
        request_id = getattr(request.state, "request_id", None)
        if exc.status_code >= 500:
            logger.error(
                "Request failed | path=%s error_code=%s error=%s request_id=%s",
                request.url.path, exc.error_code, exc.message, request_id,
            )
            body = ContentErrors.internal_error(request_id)
        else:
            logger.info(
                "Request rejected | path=%s error_code=%s message=%s",
                request.url.path, exc.error_code, exc.message,
            )
            body = ContentErrors.from_exception(exc, request_id)
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(mode="json", by_alias=True),
            headers={"X-Request-ID": request_id} if request_id else None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are invalid input, like any other rejected submission."""
        details = []
        for err in exc.errors():
            # drop the "body" / "form" / "path" source prefix
            loc = [str(p) for p in err["loc"][1:]] or [str(p) for p in err["loc"][:1]]
            details.append(
                ErrorDetail(field=".".join(loc), message=err["msg"], code="VALIDATION_ERROR")
            )
        body = ErrorResponse(
            error_code=InvalidInputError.error_code,
            message="The request could not be parsed.",
            details=details,
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(
            status_code=InvalidInputError.status_code,
            content=body.model_dump(mode="json", by_alias=True),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions; never expose stack traces."""
        request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ContentErrors.internal_error(request_id).model_dump(mode="json", by_alias=True),
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(content_router, prefix="/api/v1")

    # ----------------------------------------------------------------
    # Operations: liveness with pipeline counters, readiness on the DB
    # ----------------------------------------------------------------

    @app.get("/health", tags=["Operations"], summary="Process liveness and pipeline counters")
    async def health(request: Request) -> dict:
        container: AppContainer | None = getattr(request.app.state, "container", None)
        body: dict = {"status": "ok", "service": "learning-content-api"}
        if container is not None:
            body["inFlight"] = container.runner.in_flight
            body["metrics"]  = container.metrics.snapshot()
        return body

    @app.get("/ready", tags=["Operations"], summary="503 until the record database answers")
    async def readiness(request: Request) -> JSONResponse:
        container: AppContainer | None = getattr(request.app.state, "container", None)
        if container is None or container.engine is None:
            database = {"status": "error", "detail": "database not configured"}
        else:
            database = await check_db_health(container.engine)

        ready = database["status"] == "ok"
        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "ready" if ready else "not_ready", "database": database},
        )

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
