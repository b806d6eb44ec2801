"""
Cluster Monitor - Drives cluster builds from task status.

Stages on the cluster run outside any executor, so nothing inside them
can call the build state machine. The monitor polls instead:

    every poll_interval_seconds:
        engines building on the cluster runner
        -> their tasks, fetched in one call
        -> per engine, under the engine writer lock:

    task status   build state   action
    -----------   -----------   ------------------------------------------
    in_progress   pending       build_job_started + build_started
    completed     pending       build_job_started + build_started, then ...
    completed     active        chain postprocess (cpu) with train stats;
                                refused -> build_canceled + finished(False)
    completed     canceling     build_canceled + build_job_finished(False)
    stopped       canceling     build_canceled + build_job_finished(False)
    stopped       active        build_restarting + build_job_restarting
                                + re-enqueue the task
    failed        any           build_faulted + build_job_finished(False)

One engine's failure is logged and does not stop the pass.

Exports:
    ClusterMonitor
"""

import asyncio
from typing import Dict, Optional

from config import ClusterConfig
from core.build_job_service import BuildJobService
from core.models import (
    Build,
    BuildJobRunnerType,
    BuildJobState,
    BuildJobType,
    BuildStage,
    ClusterTaskStatus,
    TranslationEngine,
)
from infrastructure.cluster_client import ClusterClient, ClusterTask
from infrastructure.cluster_runner import ClusterBuildJobRunner
from infrastructure.interface_repository import (
    IDistributedReaderWriterLockFactory,
    IPlatformService,
    ParamNames,
)
from util_logger import LoggerFactory, ComponentType


class ClusterMonitor:
    """
    Polling reconciler for builds on the cluster runner.
    """

    def __init__(
        self,
        client: ClusterClient,
        runner: ClusterBuildJobRunner,
        build_job_service: BuildJobService,
        platform: IPlatformService,
        lock_factory: IDistributedReaderWriterLockFactory,
        config: ClusterConfig
    ):
        self.client = client
        self.runner = runner
        self.build_job_service = build_job_service
        self.platform = platform
        self.lock_factory = lock_factory
        self.config = config
        self.queue_size = 0
        self._task: Optional[asyncio.Task] = None
        self._passes = 0
        self._errors = 0
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ClusterMonitor")

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="cluster-monitor")
            self.logger.info(f"✅ Cluster monitor started (every {self.config.poll_interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        self.logger.info(f"Cluster monitor stopped. Passes: {self._passes}, Errors: {self._errors}")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> None:
        """Poll until cancelled."""
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                self._errors += 1
                self.logger.error(f"❌ Cluster monitor pass failed: {e}", exc_info=True)
            await asyncio.sleep(self.config.poll_interval_seconds)

    # ========================================================================
    # RECONCILIATION
    # ========================================================================

    async def poll_once(self) -> None:
        """One reconciliation pass over every cluster build."""
        self._passes += 1
        self.queue_size = await self.client.get_queue_length(self.config.queue)

        engines = await self.build_job_service.get_building_engines(BuildJobRunnerType.CLUSTER)
        if not engines:
            return

        tasks: Dict[str, ClusterTask] = {
            task.id: task
            for task in await self.client.get_tasks_by_id(e.current_build.job_id for e in engines)
        }
        for engine in engines:
            task = tasks.get(engine.current_build.job_id)
            if task is None:
                self.logger.warning(
                    f"⚠️ Cluster task {engine.current_build.job_id} for build "
                    f"{engine.current_build.build_id} not found"
                )
                continue
            try:
                await self.reconcile(engine, task)
            except Exception as e:
                self._errors += 1
                self.logger.error(
                    f"❌ Reconciling build {engine.current_build.build_id} of engine {engine.engine_id} failed: {e}",
                    exc_info=True
                )

    async def reconcile(self, engine: TranslationEngine, task: ClusterTask) -> None:
        engine_id = engine.engine_id
        lock = await self.lock_factory.create(engine_id)
        async with lock.writer_lock():
            # the snapshot may be stale by the time the lock is ours
            build = await self.build_job_service.get_build(engine_id, engine.current_build.build_id)
            if build is None or build.job_id != task.id:
                return

            status = task.status
            if status == ClusterTaskStatus.FAILED:
                await self._fault(engine_id, build, task)
                return

            if build.job_state == BuildJobState.CANCELING:
                if status in (ClusterTaskStatus.STOPPED, ClusterTaskStatus.COMPLETED):
                    await self._cancel(engine_id, build)
                return

            if build.job_state == BuildJobState.PENDING and status in (
                ClusterTaskStatus.IN_PROGRESS, ClusterTaskStatus.COMPLETED
            ):
                if not await self.build_job_service.build_job_started(engine_id, build.build_id):
                    return
                await self.platform.build_started(build.build_id)
                self.logger.info(f"▶️ Cluster build {build.build_id} started (task {task.id})")
                build = build.model_copy(update={"job_state": BuildJobState.ACTIVE})

            if build.job_state != BuildJobState.ACTIVE:
                return

            if status == ClusterTaskStatus.COMPLETED:
                await self._chain_postprocess(engine, build, task)
            elif status == ClusterTaskStatus.STOPPED:
                await self._restart(engine_id, build, task)

    async def _chain_postprocess(self, engine: TranslationEngine, build: Build, task: ClusterTask) -> None:
        data = {
            ParamNames.TRAIN_SIZE: int(task.runtime.get("train_corpus_size", 0)),
            ParamNames.CONFIDENCE: float(task.runtime.get("confidence", 0.0)),
        }
        started = await self.build_job_service.start_build_job(
            BuildJobType.CPU,
            engine.engine_type,
            engine.engine_id,
            build.build_id,
            BuildStage.POSTPROCESS.value,
            data=data,
            build_options=build.build_options,
        )
        if started:
            self.logger.info(f"✅ Cluster training done for build {build.build_id}, postprocess queued")
        else:
            await self._cancel(engine.engine_id, build)

    async def _cancel(self, engine_id: str, build: Build) -> None:
        await self.platform.build_canceled(build.build_id)
        await self.build_job_service.build_job_finished(engine_id, build.build_id, build_complete=False)
        self.logger.info(f"🛑 Cluster build {build.build_id} canceled")

    async def _restart(self, engine_id: str, build: Build, task: ClusterTask) -> None:
        await self.platform.build_restarting(build.build_id)
        if await self.build_job_service.build_job_restarting(engine_id, build.build_id):
            await self.runner.enqueue_job(task.id)
            self.logger.info(f"🔁 Cluster build {build.build_id} restarting (task {task.id} re-enqueued)")

    async def _fault(self, engine_id: str, build: Build, task: ClusterTask) -> None:
        message = task.status_message or task.status_reason or "Cluster task failed"
        await self.platform.build_faulted(build.build_id, message)
        await self.build_job_service.build_job_finished(engine_id, build.build_id, build_complete=False)
        self.logger.error(f"❌ Cluster build {build.build_id} faulted: {message}")
