"""
Local Build Job Runner - In-Process asyncio Queue.

Runs stage executors inside this process:

    create_job   -> job record (CREATED), job_id = uuid4 hex
    enqueue_job  -> QUEUED, put on the asyncio queue
    worker pool  -> RUNNING, job_factory(engine_type, stage).run(...) in its own task
    outcome      -> record removed

Stopping:
    stop_job on a QUEUED job marks it stopped; the worker drops it.
    stop_job on a RUNNING job cancels its task. The executor then reads
    the build from the store and decides between CANCELED (user cancel)
    and RESTARTING.

Restarts:
    A job that comes back RESTARTING (asyncio.CancelledError re-raised by
    the executor) is queued again, at most max_attempts deliveries in
    total; after that on_give_up finalizes its build. When the runner
    itself is shutting down the job stays QUEUED and the next start() of
    this runner delivers it again. Jobs are held in memory only: builds
    left behind by another process are re-created by LocalBuildRecovery.

Exports:
    LocalBuildJobRunner
    LocalJob
    LocalJobState
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from config.defaults import BuildJobDefaults
from core.models import BuildJobRunnerType, TranslationEngineType
from exceptions import RunnerError
from util_logger import LoggerFactory, ComponentType

from .interface_repository import IBuildJobRunner

if TYPE_CHECKING:
    from core.build_job import BuildJob

JobFactory = Callable[[TranslationEngineType, str], "BuildJob"]
GiveUpHandler = Callable[["LocalJob"], Awaitable[None]]


class LocalJobState(str, Enum):
    CREATED = "created"
    QUEUED = "queued"
    RUNNING = "running"


@dataclass
class LocalJob:
    """A job held by the local runner."""

    job_id: str
    engine_type: TranslationEngineType
    engine_id: str
    build_id: str
    stage: str
    data: Any = None
    build_options: Optional[str] = None
    state: LocalJobState = LocalJobState.CREATED
    attempts: int = 0
    stop_requested: bool = False
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class LocalBuildJobRunner(IBuildJobRunner):
    """
    In-process runner with a fixed pool of worker coroutines.
    """

    def __init__(
        self,
        job_factory: JobFactory,
        workers: int = BuildJobDefaults.LOCAL_RUNNER_WORKERS,
        max_attempts: int = BuildJobDefaults.LOCAL_RUNNER_MAX_ATTEMPTS,
        shutdown_timeout_seconds: float = BuildJobDefaults.SHUTDOWN_TIMEOUT_SECONDS,
        on_give_up: Optional[GiveUpHandler] = None
    ):
        """
        Args:
            job_factory: Builds the stage executor for (engine_type, stage)
            workers: Jobs run concurrently
            max_attempts: Deliveries per job before it is given up
            shutdown_timeout_seconds: How long stop() waits for running jobs
            on_give_up: Awaited with a job dropped after max_attempts
                interruptions; its build is still recorded as pending
        """
        self._job_factory = job_factory
        self.workers = workers
        self.max_attempts = max_attempts
        self.shutdown_timeout_seconds = shutdown_timeout_seconds
        self.on_give_up = on_give_up

        self._jobs: Dict[str, LocalJob] = {}
        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._worker_tasks: List[asyncio.Task] = []
        self._stopping = False
        self._jobs_completed = 0
        self._jobs_failed = 0

        self.logger = LoggerFactory.create_logger(ComponentType.RUNNER, "LocalBuildJobRunner")

    @property
    def runner_type(self) -> BuildJobRunnerType:
        return BuildJobRunnerType.LOCAL

    @property
    def is_running(self) -> bool:
        return bool(self._worker_tasks)

    @property
    def stats(self) -> dict:
        """Runner statistics."""
        return {
            "running": self.is_running,
            "jobs": len(self._jobs),
            "queued": self._queue.qsize(),
            "active": sum(1 for j in self._jobs.values() if j.state == LocalJobState.RUNNING),
            "jobs_completed": self._jobs_completed,
            "jobs_failed": self._jobs_failed,
        }

    def get_job(self, job_id: str) -> Optional[LocalJob]:
        return self._jobs.get(job_id)

    # ========================================================================
    # IBuildJobRunner
    # ========================================================================

    async def create_engine(self, engine_id: str, name: Optional[str] = None) -> None:
        # Nothing is kept per engine in-process
        self.logger.debug(f"No local context needed for engine {engine_id}")

    async def delete_engine(self, engine_id: str) -> None:
        self.logger.debug(f"No local context to delete for engine {engine_id}")

    async def create_job(
        self,
        engine_type: TranslationEngineType,
        engine_id: str,
        build_id: str,
        stage: str,
        data: Any = None,
        build_options: Optional[str] = None
    ) -> str:
        job_id = uuid.uuid4().hex
        self._jobs[job_id] = LocalJob(
            job_id=job_id,
            engine_type=TranslationEngineType(engine_type),
            engine_id=engine_id,
            build_id=build_id,
            stage=stage,
            data=data,
            build_options=build_options,
        )
        self.logger.debug(f"Job {job_id} created: {engine_id}/{build_id}/{stage}")
        return job_id

    async def enqueue_job(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            raise RunnerError(f"Local job {job_id} does not exist")
        job.state = LocalJobState.QUEUED
        self._queue.put_nowait(job_id)
        self.logger.info(f"📥 Job {job_id} queued ({job.engine_id}/{job.build_id}/{job.stage})")

    async def stop_job(self, job_id: str) -> bool:
        job = self._jobs.get(job_id)
        if job is None:
            return False
        job.stop_requested = True
        if job.state == LocalJobState.RUNNING and job.task is not None:
            job.task.cancel()
            self.logger.info(f"🛑 Running job {job_id} signalled to stop")
        else:
            self._jobs.pop(job_id, None)
            self.logger.info(f"🛑 Job {job_id} removed before it ran")
        return True

    async def delete_job(self, job_id: str) -> bool:
        job = self._jobs.get(job_id)
        if job is None:
            return False
        if job.state == LocalJobState.RUNNING and job.task is not None:
            job.stop_requested = True
            job.task.cancel()
        else:
            self._jobs.pop(job_id, None)
        self.logger.debug(f"Job {job_id} deleted")
        return True

    # ========================================================================
    # WORKER POOL
    # ========================================================================

    async def start(self) -> None:
        """Start the worker pool and re-deliver jobs left queued by stop()."""
        if self._worker_tasks:
            return
        self._stopping = False

        # Queue entries from a previous run were drained by stop()
        self._queue = asyncio.Queue()
        requeued = 0
        for job in self._jobs.values():
            if job.state == LocalJobState.QUEUED:
                self._queue.put_nowait(job.job_id)
                requeued += 1

        self._worker_tasks = [
            asyncio.create_task(self._worker_loop(i), name=f"local-runner-worker-{i}")
            for i in range(self.workers)
        ]
        self.logger.info(f"✅ Local runner started: {self.workers} workers, {requeued} jobs re-queued")

    async def stop(self) -> None:
        """
        Stop the pool. Running jobs are interrupted (recorded as
        restarting) and stay queued for the next start().
        """
        if not self._worker_tasks:
            return
        self._stopping = True
        self.logger.info("🛑 Stopping local runner...")

        running = [j.task for j in self._jobs.values() if j.state == LocalJobState.RUNNING and j.task]
        for task in running:
            task.cancel()
        if running:
            _, pending = await asyncio.wait(running, timeout=self.shutdown_timeout_seconds)
            if pending:
                self.logger.warning(f"⚠️ {len(pending)} jobs did not finish within the shutdown timeout")

        for task in self._worker_tasks:
            task.cancel()
        await asyncio.gather(*self._worker_tasks, return_exceptions=True)
        self._worker_tasks = []

        self.logger.info(
            f"Local runner stopped. Completed: {self._jobs_completed}, "
            f"Failed: {self._jobs_failed}, Left queued: {len(self._jobs)}"
        )

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _worker_loop(self, worker_index: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                job = self._jobs.get(job_id)
                if job is None or job.state != LocalJobState.QUEUED or job.stop_requested:
                    self.logger.debug(f"Worker {worker_index} skipping job {job_id}")
                    continue
                await self._execute(job)
            finally:
                self._queue.task_done()

    async def _execute(self, job: LocalJob) -> None:
        job.state = LocalJobState.RUNNING
        job.attempts += 1
        self.logger.info(
            f"▶️ Running job {job.job_id} (attempt {job.attempts}/{self.max_attempts}): "
            f"{job.engine_id}/{job.build_id}/{job.stage}"
        )

        try:
            build_job = self._job_factory(job.engine_type, job.stage)
            job.task = asyncio.create_task(
                build_job.run(job.engine_id, job.build_id, job.data, job.build_options),
                name=f"build-job-{job.job_id}"
            )
            # The job task is cancelled by stop_job/stop(), not through the worker
            status = await asyncio.shield(job.task)
        except asyncio.CancelledError:
            if job.task is not None and not job.task.done():
                # The worker itself was cancelled; let the job finish unwinding first
                await asyncio.wait([job.task], timeout=self.shutdown_timeout_seconds)
                raise
            await self._after_interruption(job)
            return
        except Exception as e:
            self._jobs.pop(job.job_id, None)
            self._jobs_failed += 1
            self.logger.error(f"❌ Job {job.job_id} faulted: {type(e).__name__}: {e}")
            return
        finally:
            job.task = None

        self._jobs.pop(job.job_id, None)
        self._jobs_completed += 1
        self.logger.info(f"🏁 Job {job.job_id} finished: {status.value}")

    async def _after_interruption(self, job: LocalJob) -> None:
        """The executor re-raised cancellation: the build is restarting."""
        if job.stop_requested:
            self._jobs.pop(job.job_id, None)
            self.logger.info(f"Job {job.job_id} stopped")
            return

        job.state = LocalJobState.QUEUED
        if self._stopping:
            self.logger.info(f"🔁 Job {job.job_id} interrupted by shutdown, kept for next start")
            return

        if job.attempts >= self.max_attempts:
            self._jobs.pop(job.job_id, None)
            self._jobs_failed += 1
            self.logger.error(f"❌ Job {job.job_id} gave up after {job.attempts} attempts")
            if self.on_give_up is not None:
                try:
                    await self.on_give_up(job)
                except Exception as e:
                    self.logger.error(f"❌ Finalizing abandoned job {job.job_id} failed: {e}", exc_info=True)
            return

        self._queue.put_nowait(job.job_id)
        self.logger.info(f"🔁 Job {job.job_id} re-queued after interruption")
