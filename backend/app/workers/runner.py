"""
Background Runner — In-Process Pipeline Dispatch
═════════════════════════════════════════════════

Pipeline runs execute as asyncio tasks inside the API process. There is no
broker and no durable queue; the contract is deliberately small:

  - submit() schedules a coroutine and returns immediately.
  - The runner holds a strong reference to every in-flight task until it
    finishes, so tasks are never garbage-collected mid-run.
  - A task that raises is logged with its traceback; nothing is retried.
  - drain(timeout) waits for in-flight tasks at shutdown. Tasks still running
    after the timeout are interrupted with the process.
  - Items interrupted by a restart stay pending/processing; the opt-in
    reconcile_stale_items() sweep marks them failed at the next startup.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Coroutine

from app.core.exceptions import StoreError
from app.models.content import utcnow
from app.schemas.content import ProcessingStatus
from app.storage.base import ContentStore

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Processing was interrupted before completion"


class BackgroundRunner:

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug("Task submitted | name=%s in_flight=%d", name, len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task cancelled | name=%s", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task crashed | name=%s error=%s",
                task.get_name(), exc, exc_info=exc,
            )

    async def drain(self, timeout: float) -> int:
        """
        Wait up to `timeout` seconds for in-flight tasks.
        Returns the number of tasks still running afterwards.
        """
        if not self._tasks:
            return 0

        logger.info("Draining background tasks | in_flight=%d timeout=%.1fs", len(self._tasks), timeout)
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(
                "Drain timeout: tasks still running | pending=%s",
                sorted(t.get_name() for t in pending),
            )
        return len(pending)


class TaskPublisher:
    """
    Hands pipeline runs to the BackgroundRunner.
    Injected into IngestionService so it can be mocked in tests.
    """

    def __init__(self, runner: BackgroundRunner, pipeline) -> None:
        self._runner   = runner
        self._pipeline = pipeline

    def publish_processing_task(self, content_id: str, upload_path: str | None) -> None:
        self._runner.submit(
            f"pipeline:{content_id}",
            self._pipeline.run(content_id, upload_path),
        )
        logger.info("Processing task published | content_id=%s", content_id)


# ---------------------------------------------------------------------------
# Startup reconciliation
# ---------------------------------------------------------------------------

async def reconcile_stale_items(store: ContentStore, stale_after_minutes: int) -> int:
    """
    Mark items stuck in pending/processing for longer than
    `stale_after_minutes` as failed. No re-run is attempted.
    Returns the number of items marked.
    """
    cutoff = utcnow() - timedelta(minutes=stale_after_minutes)
    stale = await store.list_stale(
        (ProcessingStatus.PENDING, ProcessingStatus.PROCESSING),
        updated_before=cutoff,
    )

    marked = 0
    for item in stale:
        try:
            updated = await store.update(
                item.id,
                status=ProcessingStatus.FAILED,
                error_message=INTERRUPTED_MESSAGE,
            )
        except StoreError as exc:
            logger.error("Reconcile failed | content_id=%s error=%s", item.id, exc.message)
            continue
        if updated is not None:
            marked += 1

    logger.info("Reconcile sweep | stale=%d marked_failed=%d cutoff=%s", len(stale), marked, cutoff.isoformat())
    return marked
