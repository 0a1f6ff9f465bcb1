"""
Observability Tracing — LangSmith + OpenTelemetry Integration

Traces every pipeline run stage by stage:
  Extraction → Summary → Speech → Quiz → Record update

Supported backends:

  LangSmith (hosted):
    - Set LANGSMITH_API_KEY (and optionally LANGSMITH_PROJECT)
    - Automatic tracing of every ChatOpenAI call made through LLMGateway
    - Activated by environment variables; no code changes needed

  OTEL (OpenTelemetry) generic:
    - For Jaeger, Zipkin, Datadog APM, set OTEL_ENABLED=true and
      OTEL_EXPORTER_OTLP_ENDPOINT

Decorator `@traced(name)`:
  Instruments any async function with timing and error recording.
  Works regardless of backend.

Environment variables:
  LANGSMITH_API_KEY=ls__...
  LANGSMITH_PROJECT=learning-content

  OTEL_ENABLED=false
  OTEL_EXPORTER_OTLP_ENDPOINT=http://otel-collector:4318
"""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Any, Callable, Coroutine, TypeVar

from app.core.config import Settings

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


# ---------------------------------------------------------------------------
# TracingConfig: initialise at app startup
# ---------------------------------------------------------------------------

class TracingConfig:
    """
    Initialise all active tracing backends from settings.

    Call once at application startup::

        from app.observability.tracing import TracingConfig
        TracingConfig.init(settings)
    """

    _initialised: bool = False

    @classmethod
    def init(cls, settings: Settings) -> None:
        if cls._initialised:
            return
        cls._initialised = True

        cls._init_langsmith(settings)
        cls._init_otel(settings)

    @staticmethod
    def _init_langsmith(settings: Settings) -> None:
        """
        LangChain reads these env vars on first model call; we only copy them
        from settings when the process environment does not set them already.
        """
        if settings.langsmith_api_key and not os.environ.get("LANGCHAIN_API_KEY"):
            os.environ["LANGCHAIN_TRACING_V2"] = "true"
            os.environ["LANGCHAIN_API_KEY"]    = settings.langsmith_api_key
            os.environ["LANGCHAIN_PROJECT"]    = settings.langsmith_project
            logger.info("LangSmith tracing enabled | project=%s", settings.langsmith_project)
        elif os.environ.get("LANGCHAIN_TRACING_V2") == "true":
            logger.info(
                "LangSmith tracing active (from env) | project=%s",
                os.environ.get("LANGCHAIN_PROJECT", "default"),
            )
        else:
            logger.debug("LangSmith tracing disabled")

    @staticmethod
    def _init_otel(settings: Settings) -> None:
        """
        Generic OpenTelemetry export.
        Requires the `tracing` extra: opentelemetry-sdk + opentelemetry-exporter-otlp.
        """
        if not settings.otel_enabled or not settings.otel_exporter_otlp_endpoint:
            logger.debug("OTEL tracing disabled")
            return

        try:
            from opentelemetry import trace                                       # type: ignore
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter  # type: ignore
            from opentelemetry.sdk.trace import TracerProvider                    # type: ignore
            from opentelemetry.sdk.trace.export import BatchSpanProcessor        # type: ignore
        except ImportError:
            logger.warning(
                "opentelemetry-sdk / opentelemetry-exporter-otlp not installed; "
                "OTEL tracing disabled. Install the 'tracing' extra."
            )
            return

        provider = TracerProvider()
        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)

        logger.info("OTEL tracing enabled | endpoint=%s", settings.otel_exporter_otlp_endpoint)


# ---------------------------------------------------------------------------
# @traced decorator
# ---------------------------------------------------------------------------

def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Decorator that instruments an async function with timing and error logging.

    Failures are logged at WARNING without a traceback: the caller decides
    whether the error is fatal and logs it accordingly.

    Usage::

        @traced("pipeline.summarize")
        async def _summarize(self, text: str) -> SummaryResult:
            ...
    """
    def decorator(func: F) -> F:
        span_name = name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            t0 = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                elapsed_ms = (time.perf_counter() - t0) * 1000
                logger.warning(
                    "trace | span=%s elapsed_ms=%.1f error=%s",
                    span_name, elapsed_ms, exc,
                )
                raise
            elapsed_ms = (time.perf_counter() - t0) * 1000
            logger.debug("trace | span=%s elapsed_ms=%.1f ok", span_name, elapsed_ms)
            return result

        return wrapper  # type: ignore[return-value]
    return decorator
