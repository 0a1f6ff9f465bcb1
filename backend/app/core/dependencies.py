"""
Application Container + Composed FastAPI Dependencies

Everything a request or a pipeline run needs is built once at startup into an
AppContainer and stored on app.state. Route handlers import the Annotated
aliases from here, never the concrete stores, the runner or the settings
module directly.

This is the single wiring point for the entire application context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import Settings
from app.db.session import build_engine, build_session_factory, create_tables
from app.llm.gateway import LLMGateway
from app.observability.metrics import PipelineMetrics
from app.services.backends import PipelineBackends, build_default_backends
from app.services.ingestion import IngestionService
from app.services.pipeline import ProcessingPipeline
from app.storage.base import ArtifactStore, ContentStore
from app.storage.factory import get_artifact_store
from app.storage.records import SqlAlchemyContentStore
from app.workers.runner import BackgroundRunner, TaskPublisher, reconcile_stale_items

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    settings:  Settings
    store:     ContentStore
    artifacts: ArtifactStore
    metrics:   PipelineMetrics
    runner:    BackgroundRunner
    pipeline:  ProcessingPipeline
    ingestion: IngestionService
    engine:    AsyncEngine | None = None


def assemble_container(
    settings:  Settings,
    store:     ContentStore,
    artifacts: ArtifactStore,
    backends:  PipelineBackends,
    engine:    AsyncEngine | None = None,
) -> AppContainer:
    """Wire pipeline, runner and ingestion service around the given stores."""
    metrics  = PipelineMetrics()
    runner   = BackgroundRunner()
    pipeline = ProcessingPipeline(
        backends, store, artifacts, metrics,
        default_voice_id=settings.default_voice_id,
    )
    ingestion = IngestionService(store, TaskPublisher(runner, pipeline), settings)
    return AppContainer(
        settings=settings,
        store=store,
        artifacts=artifacts,
        metrics=metrics,
        runner=runner,
        pipeline=pipeline,
        ingestion=ingestion,
        engine=engine,
    )


async def build_container(settings: Settings) -> AppContainer:
    """
    Production wiring, run once from the application lifespan:
      1. database engine (+ schema bootstrap when enabled)
      2. record store and artifact store
      3. LLM gateway and the default backend bundle
      4. optional stale-item reconciliation
    """
    engine = build_engine(settings)
    if settings.db_create_tables:
        await create_tables(engine)

    store     = SqlAlchemyContentStore(build_session_factory(engine))
    artifacts = get_artifact_store(settings)
    backends  = build_default_backends(settings, LLMGateway(settings))

    container = assemble_container(settings, store, artifacts, backends, engine=engine)

    if settings.reconcile_stale_on_startup:
        await reconcile_stale_items(store, settings.stale_after_minutes)

    return container


# ---------------------------------------------------------------------------
# Request-scoped accessors
# ---------------------------------------------------------------------------

def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_content_store(container: Annotated[AppContainer, Depends(get_container)]) -> ContentStore:
    return container.store


def get_artifacts(container: Annotated[AppContainer, Depends(get_container)]) -> ArtifactStore:
    return container.artifacts


def get_ingestion_service(
    container: Annotated[AppContainer, Depends(get_container)],
) -> IngestionService:
    return container.ingestion


def get_owner_id(container: Annotated[AppContainer, Depends(get_container)]) -> str:
    """No authentication in scope: every request acts as the configured owner."""
    return container.settings.default_owner_id


# ---------------------------------------------------------------------------
# Type aliases for route handlers
# ---------------------------------------------------------------------------

Container     = Annotated[AppContainer, Depends(get_container)]
Store         = Annotated[ContentStore, Depends(get_content_store)]
Artifacts     = Annotated[ArtifactStore, Depends(get_artifacts)]
Ingestion     = Annotated[IngestionService, Depends(get_ingestion_service)]
CurrentOwner  = Annotated[str, Depends(get_owner_id)]
