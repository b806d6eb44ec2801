"""
Local Build Recovery - Builds whose local job no longer exists.

The local runner keeps its jobs in memory. A build recorded on the
local runner whose job this runner does not hold was left behind by a
process that exited (shutdown after `restarting`, or a crash). On
start, under the engine writer lock:

    build state   action
    -----------   -----------------------------------------------------
    pending       re-create the job from the stored stage, data and
                  build options (start_build_job on the same build)
    active        build_restarting + build_job_restarting, then as pending
    canceling     build_canceled + build_job_finished(False)
    unknown stage build_faulted + build_job_finished(False)

The runner also hands jobs it gives up on (max_attempts interruptions)
to fault_abandoned_job, which faults the build they belong to.

Recovery assumes it is the only worker running local jobs against the
engine store; see BuildJobConfig.recover_local_builds.

Exports:
    LocalBuildRecovery
"""

from core.build_job_service import BuildJobService
from core.models import Build, BuildJobRunnerType, BuildJobState, TranslationEngine
from infrastructure.interface_repository import (
    IDistributedReaderWriterLockFactory,
    IPlatformService,
)
from infrastructure.local_runner import LocalBuildJobRunner, LocalJob
from jobs import get_job_class
from util_logger import LoggerFactory, ComponentType


class LocalBuildRecovery:
    """
    Reconciles the engine store with the local runner's jobs.
    """

    def __init__(
        self,
        runner: LocalBuildJobRunner,
        build_job_service: BuildJobService,
        platform: IPlatformService,
        lock_factory: IDistributedReaderWriterLockFactory
    ):
        self.runner = runner
        self.build_job_service = build_job_service
        self.platform = platform
        self.lock_factory = lock_factory
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "LocalBuildRecovery")

    async def recover(self) -> int:
        """
        Re-create or finalize every local build without a job.

        Returns:
            Number of builds that got a new job
        """
        engines = await self.build_job_service.get_building_engines(BuildJobRunnerType.LOCAL)
        resubmitted = 0
        for engine in engines:
            if self.runner.get_job(engine.current_build.job_id) is not None:
                continue
            try:
                if await self._recover_engine(engine):
                    resubmitted += 1
            except Exception as e:
                self.logger.error(
                    f"❌ Recovering build {engine.current_build.build_id} of engine {engine.engine_id} failed: {e}",
                    exc_info=True
                )

        if engines:
            self.logger.info(f"🔁 Local build recovery: {resubmitted} of {len(engines)} builds re-created")
        return resubmitted

    async def _recover_engine(self, engine: TranslationEngine) -> bool:
        engine_id = engine.engine_id
        lock = await self.lock_factory.create(engine_id)
        async with lock.writer_lock():
            build = await self.build_job_service.get_build(engine_id, engine.current_build.build_id)
            if build is None or build.job_runner != BuildJobRunnerType.LOCAL:
                return False
            if self.runner.get_job(build.job_id) is not None:
                return False

            if build.job_state == BuildJobState.CANCELING:
                await self.platform.build_canceled(build.build_id)
                await self.build_job_service.build_job_finished(engine_id, build.build_id, False)
                self.logger.info(f"🛑 Orphaned build {build.build_id} of engine {engine_id} finished as canceled")
                return False

            try:
                job_class = get_job_class(engine.engine_type, build.stage)
            except ValueError as e:
                await self._fault(engine_id, build, f"Cannot resume stage '{build.stage}': {e}")
                return False

            if build.job_state == BuildJobState.ACTIVE:
                await self.platform.build_restarting(build.build_id)
                if not await self.build_job_service.build_job_restarting(engine_id, build.build_id):
                    return False

            started = await self.build_job_service.start_build_job(
                job_class.job_type,
                engine.engine_type,
                engine_id,
                build.build_id,
                build.stage,
                data=build.data,
                build_options=build.build_options,
            )
            if started:
                self.logger.info(
                    f"🔁 Build {build.build_id} of engine {engine_id} resumed at stage {build.stage} "
                    f"(job {build.job_id} was lost)"
                )
            return started

    async def fault_abandoned_job(self, job: LocalJob) -> None:
        """Fault the build of a job the runner gave up on."""
        lock = await self.lock_factory.create(job.engine_id)
        async with lock.writer_lock():
            build = await self.build_job_service.get_build(job.engine_id, job.build_id)
            if build is None or build.job_id != job.job_id:
                return
            await self._fault(job.engine_id, build, f"Gave up after {job.attempts} attempts")

    async def _fault(self, engine_id: str, build: Build, message: str) -> None:
        await self.platform.build_faulted(build.build_id, message)
        await self.build_job_service.build_job_finished(engine_id, build.build_id, False)
        self.logger.error(f"❌ Build {build.build_id} of engine {engine_id} faulted: {message}")
