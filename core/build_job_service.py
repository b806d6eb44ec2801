"""
Build Job Service - Build State Machine.

Owns the lifecycle of an engine's current build:

    none --start--> pending --started--> active --finished--> none
                       |                   |  \\
                       |                   |   +--restarting--> pending
                    cancel              cancel
                       v                   v
                     none              canceling --finished--> none

Every state change is ONE predicate-qualified atomic update against the
engine repository (engine_id, plus build_id and job_state where they
matter), so racing callers on the same engine converge to a single winner
without holding a lock. Multi-step sequences (start -> run -> finish of a
stage) are additionally serialized by the per-engine writer lock, which
is the caller's job (see core.build_job.BuildJob).

Exports:
    BuildJobService
"""

from typing import Any, Iterable, List, Optional, Tuple

from core.logic.transitions import validate_build_transition
from core.models import (
    Build,
    BuildJobRunnerType,
    BuildJobState,
    BuildJobType,
    TranslationEngine,
    TranslationEngineType,
)
from core.runner_registry import BuildJobRunnerRegistry
from core.schema.updates import EngineFilter, EngineUpdateModel
from exceptions import BuildConflictError
from infrastructure.interface_repository import IEngineRepository
from util_logger import LoggerFactory, ComponentType


class BuildJobService:
    """
    Orchestration core for engine builds.

    Fans engine creation/deletion out to runners, starts and cancels
    build jobs, and exposes the conditional transitions the stage
    executor drives.
    """

    # Re-reads allowed when a cancel loses a race against another transition
    CANCEL_MAX_ATTEMPTS = 3

    def __init__(self, registry: BuildJobRunnerRegistry, engines: IEngineRepository):
        self.registry = registry
        self.engines = engines
        self.logger = LoggerFactory.create_logger(ComponentType.CONTROLLER, "BuildJobService")

    # ========================================================================
    # ENGINE CONTEXTS
    # ========================================================================

    async def create_engine(
        self,
        job_types: Iterable[BuildJobType],
        engine_id: str,
        name: Optional[str] = None
    ) -> None:
        """Create the engine context on every distinct runner the job types use."""
        for runner in self.registry.get_runners_for_job_types(job_types):
            await runner.create_engine(engine_id, name)
            self.logger.debug(f"Engine context created on {runner.runner_type.value}: {engine_id}")

    async def delete_engine(self, job_types: Iterable[BuildJobType], engine_id: str) -> None:
        """Delete the engine context from every distinct runner the job types use."""
        for runner in self.registry.get_runners_for_job_types(job_types):
            await runner.delete_engine(engine_id)
            self.logger.debug(f"Engine context deleted on {runner.runner_type.value}: {engine_id}")

    # ========================================================================
    # QUERIES
    # ========================================================================

    async def is_engine_building(self, engine_id: str) -> bool:
        """Fast pre-check; not a correctness guard."""
        return await self.engines.exists(EngineFilter(engine_id=engine_id, has_build=True))

    async def get_build(self, engine_id: str, build_id: str) -> Optional[Build]:
        engine = await self.engines.get(EngineFilter(engine_id=engine_id, build_id=build_id))
        return engine.current_build if engine is not None else None

    async def get_building_engines(self, runner_type: BuildJobRunnerType) -> List[TranslationEngine]:
        return await self.engines.get_all(EngineFilter(has_build=True, job_runner=runner_type))

    # ========================================================================
    # START / CANCEL
    # ========================================================================

    async def start_build_job(
        self,
        job_type: BuildJobType,
        engine_type: TranslationEngineType,
        engine_id: str,
        build_id: str,
        stage: str,
        data: Any = None,
        build_options: Optional[str] = None
    ) -> bool:
        """
        Create a job on the mapped runner and record it as the pending build.

        The record is only written if the engine exists and its current
        build, if any, is not being canceled. A pending or active build is
        overwritten, which is how a stage chains the next one onto the
        same build.

        Returns:
            True if the job was recorded and enqueued. False if the
            conditional update matched nothing; the created job was
            deleted again.
        """
        runner = self.registry.get_runner_for_job_type(job_type)
        validate_build_transition(
            [BuildJobState.NONE, BuildJobState.PENDING, BuildJobState.ACTIVE],
            BuildJobState.PENDING,
            "start_build_job"
        )

        job_id = await runner.create_job(engine_type, engine_id, build_id, stage, data, build_options)
        build = Build(
            build_id=build_id,
            job_id=job_id,
            job_runner=runner.runner_type,
            stage=stage,
            job_state=BuildJobState.PENDING,
            build_options=build_options,
            data=data,
        )
        try:
            engine = await self.engines.update(
                EngineFilter(engine_id=engine_id, job_state_not=BuildJobState.CANCELING),
                EngineUpdateModel(current_build=build)
            )
        except BaseException:
            await runner.delete_job(job_id)
            raise

        if engine is None:
            await runner.delete_job(job_id)
            self.logger.info(
                f"⏭️ Build {build_id} stage {stage} not started for engine {engine_id} "
                f"(engine missing or build canceling)"
            )
            return False

        try:
            await runner.enqueue_job(job_id)
        except BaseException:
            await runner.delete_job(job_id)
            # Do not leave a pending build that points at a deleted job
            await self.engines.update(
                EngineFilter(engine_id=engine_id, build_id=build_id, job_state=BuildJobState.PENDING),
                EngineUpdateModel(unset_current_build=True)
            )
            raise

        self.logger.info(
            f"🚀 Build {build_id} stage {stage} queued on {runner.runner_type.value} "
            f"for engine {engine_id} (job {job_id})",
            extra={'custom_dimensions': {'engine_id': engine_id, 'build_id': build_id, 'stage': stage, 'job_id': job_id}}
        )
        return True

    async def cancel_build_job(self, engine_id: str) -> Tuple[Optional[str], BuildJobState]:
        """
        Cancel the engine's current build.

        Returns:
            (build_id, NONE)       pending build removed, no executor ran
            (build_id, CANCELING)  running build told to stop; the
                                   executor finalizes it
            (None, NONE)           no build in progress

        Raises:
            BuildConflictError: The build kept changing state underneath
                every attempt
        """
        validate_build_transition([BuildJobState.PENDING], BuildJobState.NONE, "cancel_build_job")
        validate_build_transition([BuildJobState.ACTIVE], BuildJobState.CANCELING, "cancel_build_job")

        for attempt in range(1, self.CANCEL_MAX_ATTEMPTS + 1):
            engine = await self.engines.get(EngineFilter(engine_id=engine_id, has_build=True))
            if engine is None or engine.current_build is None:
                return None, BuildJobState.NONE

            build = engine.current_build
            runner = self.registry.get_runner(build.job_runner)

            if build.job_state == BuildJobState.PENDING:
                # cancel a job that hasn't started yet
                original = await self.engines.update(
                    EngineFilter(engine_id=engine_id, build_id=build.build_id, job_state=BuildJobState.PENDING),
                    EngineUpdateModel(unset_current_build=True),
                    return_original=True
                )
                if original is not None and original.current_build is not None:
                    await runner.stop_job(original.current_build.job_id)
                    self.logger.info(f"🛑 Pending build {build.build_id} canceled for engine {engine_id}")
                    return original.current_build.build_id, BuildJobState.NONE

            elif build.job_state == BuildJobState.ACTIVE:
                # cancel a job that is already running
                updated = await self.engines.update(
                    EngineFilter(engine_id=engine_id, build_id=build.build_id, job_state=BuildJobState.ACTIVE),
                    EngineUpdateModel(job_state=BuildJobState.CANCELING)
                )
                if updated is not None and updated.current_build is not None:
                    await runner.stop_job(updated.current_build.job_id)
                    self.logger.info(f"🛑 Active build {build.build_id} canceling for engine {engine_id}")
                    return updated.current_build.build_id, BuildJobState.CANCELING

            else:
                # already being torn down; the stop signal was sent once
                return build.build_id, BuildJobState.CANCELING

            self.logger.debug(
                f"Cancel of build {build.build_id} lost a race (attempt {attempt}/{self.CANCEL_MAX_ATTEMPTS}), re-reading"
            )

        raise BuildConflictError(f"Build state of engine {engine_id} kept changing while canceling")

    # ========================================================================
    # EXECUTOR TRANSITIONS
    # ========================================================================

    async def build_job_started(self, engine_id: str, build_id: str) -> bool:
        """
        pending -> active for exactly this build.

        False means the build was canceled (or replaced) before the
        executor got to run; the executor must not do any work.
        """
        validate_build_transition([BuildJobState.PENDING], BuildJobState.ACTIVE, "build_job_started")
        engine = await self.engines.update(
            EngineFilter(engine_id=engine_id, build_id=build_id, job_state=BuildJobState.PENDING),
            EngineUpdateModel(job_state=BuildJobState.ACTIVE)
        )
        return engine is not None

    async def build_job_finished(self, engine_id: str, build_id: str, build_complete: bool) -> bool:
        """
        Clear the build on every terminal path; bump build_revision only
        when the build completed successfully.
        """
        validate_build_transition(
            [BuildJobState.PENDING, BuildJobState.ACTIVE, BuildJobState.CANCELING],
            BuildJobState.NONE,
            "build_job_finished"
        )
        engine = await self.engines.update(
            EngineFilter(engine_id=engine_id, build_id=build_id),
            EngineUpdateModel(unset_current_build=True, inc_build_revision=build_complete)
        )
        if engine is not None:
            self.logger.info(
                f"🏁 Build {build_id} finished for engine {engine_id} "
                f"(complete={build_complete}, revision={engine.build_revision})"
            )
        return engine is not None

    async def build_job_restarting(self, engine_id: str, build_id: str) -> bool:
        """active -> pending after an involuntary interruption."""
        validate_build_transition([BuildJobState.ACTIVE], BuildJobState.PENDING, "build_job_restarting")
        engine = await self.engines.update(
            EngineFilter(engine_id=engine_id, build_id=build_id, job_state=BuildJobState.ACTIVE),
            EngineUpdateModel(job_state=BuildJobState.PENDING)
        )
        return engine is not None
