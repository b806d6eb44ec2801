"""
Build Job - Stage Executor Lifecycle.

Every stage a runner executes is a BuildJob subclass. run() wraps the
stage body (do_work) with the build state machine:

    writer lock: build_job_started ----False----> CANCELED (body never runs)
         |
       do_work
         |
    success ------------------------------------> COMPLETED
    CancelledError, build canceling --writer lock: build_canceled +
                                       build_job_finished(False)
                                      -----------> CANCELED (swallowed)
    CancelledError, engine still there --writer lock: build_restarting +
                                          build_job_restarting
                                      -----------> RESTARTING (re-raised)
    CancelledError, engine gone -----------------> CANCELED (no write)
    any other exception --writer lock: build_faulted +
                           build_job_finished(False)
                                      -----------> FAULTED (re-raised)

cleanup() always runs last with the outcome.

Finalization writes are shielded: a second cancellation arriving while
they run is held back until they have finished.

Exports:
    BuildJob
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, ClassVar, Optional, TypeVar

from core.build_job_service import BuildJobService
from core.models import (
    BuildJobState,
    BuildJobType,
    JobCompletionStatus,
    TranslationEngine,
    TranslationEngineType,
)
from core.schema.updates import EngineFilter
from infrastructure.interface_repository import (
    IDistributedReaderWriterLock,
    IDistributedReaderWriterLockFactory,
    IEngineRepository,
    IPlatformService,
)
from util_logger import LoggerFactory, ComponentType

T = TypeVar("T")


async def run_shielded(awaitable: Awaitable[T]) -> T:
    """
    Run an awaitable to completion even if the caller is cancelled meanwhile.

    The cancellation is re-raised once the awaitable has finished.
    """
    task = asyncio.ensure_future(awaitable)
    cancelled = False
    while not task.done():
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.done() and task.cancelled():
                raise
            cancelled = True
    result = task.result()
    if cancelled:
        raise asyncio.CancelledError()
    return result


class BuildJob(ABC):
    """
    Abstract base for stage executors.

    Subclasses set engine_type and stage (the job registry keys on them)
    and implement do_work. initialize and cleanup are optional hooks.
    """

    engine_type: ClassVar[TranslationEngineType]
    stage: ClassVar[str]
    job_type: ClassVar[BuildJobType] = BuildJobType.CPU

    def __init__(
        self,
        platform: IPlatformService,
        engines: IEngineRepository,
        lock_factory: IDistributedReaderWriterLockFactory,
        build_job_service: BuildJobService
    ):
        self.platform = platform
        self.engines = engines
        self.lock_factory = lock_factory
        self.build_job_service = build_job_service
        self.logger = LoggerFactory.create_logger(ComponentType.JOB, type(self).__name__)

    async def run(
        self,
        engine_id: str,
        build_id: str,
        data: Any = None,
        build_options: Optional[str] = None
    ) -> JobCompletionStatus:
        """
        Execute the stage for one build.

        Returns:
            COMPLETED or CANCELED

        Raises:
            asyncio.CancelledError: Interrupted involuntarily; the build is
                back to pending and the runner should deliver it again
            Exception: Whatever the stage body raised; the build is cleared
        """
        self.logger = LoggerFactory.create_with_context(
            ComponentType.JOB, type(self).__name__,
            engine_id=engine_id, build_id=build_id, stage=self.stage
        )
        lock = await self.lock_factory.create(engine_id)
        completion_status = JobCompletionStatus.COMPLETED
        try:
            await self.initialize(engine_id, build_id, data, lock)

            async with lock.writer_lock():
                started = await self.build_job_service.build_job_started(engine_id, build_id)
            if not started:
                self.logger.info(f"⏭️ Build {build_id} was canceled before stage {self.stage} started")
                completion_status = JobCompletionStatus.CANCELED
                return completion_status

            self.logger.info(f"▶️ Stage {self.stage} running for build {build_id}")
            await self.do_work(engine_id, build_id, data, build_options, lock)
            self.logger.info(f"✅ Stage {self.stage} completed for build {build_id}")
            return completion_status

        except asyncio.CancelledError:
            # Unknown until the store says otherwise; keep the build's files
            completion_status = JobCompletionStatus.RESTARTING
            engine = await run_shielded(
                self.engines.get(EngineFilter(engine_id=engine_id, build_id=build_id))
            )

            if engine is not None and engine.job_state == BuildJobState.CANCELING:
                completion_status = JobCompletionStatus.CANCELED
                await run_shielded(self._finish_canceled(engine_id, build_id, lock))
                asyncio.current_task().uncancel()
                self.logger.info(f"🛑 Build {build_id} canceled during stage {self.stage}")
                return completion_status

            if engine is not None:
                await run_shielded(self._finish_restarting(engine_id, build_id, lock))
                self.logger.info(f"🔁 Build {build_id} interrupted during stage {self.stage}, restarting")
                raise

            # Engine deleted (or build replaced) underneath us
            completion_status = JobCompletionStatus.CANCELED
            asyncio.current_task().uncancel()
            self.logger.info(f"🛑 Build {build_id} abandoned, engine {engine_id} no longer has it")
            return completion_status

        except Exception as e:
            completion_status = JobCompletionStatus.FAULTED
            self.logger.error(f"❌ Stage {self.stage} faulted for build {build_id}: {e}", exc_info=True)
            await run_shielded(self._finish_faulted(engine_id, build_id, str(e), lock))
            raise

        finally:
            await self.cleanup(engine_id, build_id, data, lock, completion_status)

    # ========================================================================
    # FINALIZATION
    # ========================================================================

    async def _finish_canceled(self, engine_id: str, build_id: str, lock: IDistributedReaderWriterLock) -> None:
        async with lock.writer_lock():
            await self.platform.build_canceled(build_id)
            await self.build_job_service.build_job_finished(engine_id, build_id, build_complete=False)

    async def _finish_restarting(self, engine_id: str, build_id: str, lock: IDistributedReaderWriterLock) -> None:
        async with lock.writer_lock():
            await self.platform.build_restarting(build_id)
            await self.build_job_service.build_job_restarting(engine_id, build_id)

    async def _finish_faulted(
        self,
        engine_id: str,
        build_id: str,
        message: str,
        lock: IDistributedReaderWriterLock
    ) -> None:
        async with lock.writer_lock():
            await self.platform.build_faulted(build_id, message)
            await self.build_job_service.build_job_finished(engine_id, build_id, build_complete=False)

    async def get_engine(self, engine_id: str) -> TranslationEngine:
        """
        Re-read the engine from inside a stage body.

        Raises:
            asyncio.CancelledError: The engine has been deleted
        """
        engine = await self.engines.get(EngineFilter(engine_id=engine_id))
        if engine is None:
            self.logger.info(f"🛑 Engine {engine_id} no longer exists")
            raise asyncio.CancelledError(f"Engine {engine_id} does not exist")
        return engine

    # ========================================================================
    # HOOKS
    # ========================================================================

    async def initialize(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        lock: IDistributedReaderWriterLock
    ) -> None:
        """Runs before the build is marked active."""

    @abstractmethod
    async def do_work(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        build_options: Optional[str],
        lock: IDistributedReaderWriterLock
    ) -> None:
        """Stage body. Cancellation arrives as asyncio.CancelledError."""

    async def cleanup(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        lock: IDistributedReaderWriterLock,
        completion_status: JobCompletionStatus
    ) -> None:
        """Runs last on every path."""
