"""
Observability Package — Tracing + Pipeline Metrics

Provides:
  TracingConfig    — LangSmith / OTEL initialisation
  traced           — decorator for instrumenting async functions
  PipelineMetrics  — outcome and degradation counters

Usage::

    # At app startup (in main.py lifespan):
    from app.observability.tracing import TracingConfig
    TracingConfig.init(settings)

    # After a pipeline run:
    metrics.increment(ITEMS_COMPLETED)
"""

from app.observability.metrics import PipelineMetrics
from app.observability.tracing import TracingConfig, traced

__all__ = ["PipelineMetrics", "TracingConfig", "traced"]
