"""
Translation Engine Service.

Engine-level operations for one engine type: create and delete engines,
start and cancel builds. Every operation that looks at the build state
and then acts on it runs under the engine's writer lock, so two API
calls for the same engine cannot interleave.

Exports:
    TranslationEngineService
"""

from typing import List, Optional

from core.build_job_service import BuildJobService
from core.models import (
    Build,
    BuildJobState,
    BuildJobType,
    Corpus,
    TranslationEngine,
    TranslationEngineType,
)
from core.runner_registry import ENGINE_JOB_TYPES
from core.schema.updates import EngineFilter
from exceptions import BuildConflictError, EngineNotFoundError
from infrastructure.interface_repository import (
    IDistributedReaderWriterLockFactory,
    IEngineRepository,
    IPlatformService,
)
from jobs import FIRST_STAGE
from util_logger import LoggerFactory, ComponentType


class TranslationEngineService:
    """
    Engine lifecycle for one engine type.
    """

    def __init__(
        self,
        engine_type: TranslationEngineType,
        platform: IPlatformService,
        engines: IEngineRepository,
        lock_factory: IDistributedReaderWriterLockFactory,
        build_job_service: BuildJobService
    ):
        self.engine_type = TranslationEngineType(engine_type)
        self.job_types: List[BuildJobType] = ENGINE_JOB_TYPES[self.engine_type]
        self.platform = platform
        self.engines = engines
        self.lock_factory = lock_factory
        self.build_job_service = build_job_service
        self.logger = LoggerFactory.create_logger(
            ComponentType.SERVICE, f"TranslationEngineService.{self.engine_type.value}"
        )

    async def create(
        self,
        engine_id: str,
        name: Optional[str] = None,
        source_language: str = "",
        target_language: str = ""
    ) -> TranslationEngine:
        """
        Create the engine record and its runner-side contexts.

        Raises:
            DatabaseError: Engine id already exists
        """
        engine = TranslationEngine(
            engine_id=engine_id,
            engine_type=self.engine_type,
            name=name,
            source_language=source_language,
            target_language=target_language,
        )
        await self.engines.insert(engine)
        try:
            await self.build_job_service.create_engine(self.job_types, engine_id, name)
        except BaseException:
            await self.engines.delete(EngineFilter(engine_id=engine_id))
            raise
        self.logger.info(f"✅ Engine {engine_id} created ({source_language} -> {target_language})")
        return engine

    async def delete(self, engine_id: str) -> None:
        """Cancel any build, delete the record and the runner-side contexts."""
        lock = await self.lock_factory.create(engine_id)
        async with lock.writer_lock():
            await self._cancel_build_job(engine_id)
            await self.engines.delete(EngineFilter(engine_id=engine_id))
            await self.build_job_service.delete_engine(self.job_types, engine_id)
        await self.lock_factory.delete(engine_id)
        self.logger.info(f"🗑️ Engine {engine_id} deleted")

    async def start_build(
        self,
        engine_id: str,
        build_id: str,
        corpora: List[Corpus],
        build_options: Optional[str] = None
    ) -> None:
        """
        Queue the first stage of a new build.

        Raises:
            EngineNotFoundError: No such engine
            BuildConflictError: A build is already pending, running or canceling
        """
        lock = await self.lock_factory.create(engine_id)
        async with lock.writer_lock():
            if not await self.engines.exists(EngineFilter(engine_id=engine_id)):
                raise EngineNotFoundError(engine_id)
            if await self.build_job_service.is_engine_building(engine_id):
                raise BuildConflictError("The engine is already building or in the process of canceling.")

            started = await self.build_job_service.start_build_job(
                BuildJobType.CPU,
                self.engine_type,
                engine_id,
                build_id,
                FIRST_STAGE[self.engine_type],
                data=[c.model_dump(mode="json") for c in corpora],
                build_options=build_options,
            )
            if not started:
                raise BuildConflictError(f"Build {build_id} could not be started for engine {engine_id}")
        self.logger.info(f"🚀 Build {build_id} requested for engine {engine_id}")

    async def cancel_build(self, engine_id: str) -> str:
        """
        Cancel the current build.

        Returns:
            The canceled build's id

        Raises:
            BuildConflictError: The engine is not currently building
        """
        lock = await self.lock_factory.create(engine_id)
        async with lock.writer_lock():
            build_id = await self._cancel_build_job(engine_id)
            if build_id is None:
                raise BuildConflictError("The engine is not currently building.")
        return build_id

    async def get_build_status(self, engine_id: str) -> Optional[Build]:
        """
        Current build of the engine, None when idle.

        Raises:
            EngineNotFoundError: No such engine
        """
        lock = await self.lock_factory.create(engine_id)
        async with lock.reader_lock():
            engine = await self.engines.get(EngineFilter(engine_id=engine_id))
        if engine is None:
            raise EngineNotFoundError(engine_id)
        return engine.current_build

    async def _cancel_build_job(self, engine_id: str) -> Optional[str]:
        build_id, job_state = await self.build_job_service.cancel_build_job(engine_id)
        # A pending build never reached an executor, so nobody else reports it
        if build_id is not None and job_state == BuildJobState.NONE:
            await self.platform.build_canceled(build_id)
        return build_id
