"""
Service Factory - Composition Root.

Builds the whole object graph from AppConfig:

    RepositoryFactory  -> engine repository + lock factory, platform notifier
    runners            -> LocalBuildJobRunner (always), ClusterBuildJobRunner
                          (when the cluster is configured)
    registry           -> BuildJobRunnerRegistry(runners, BUILD_JOB_RUNNERS)
    BuildJobService    -> state machine over registry + repository
    StageJobFactory    -> stage executors for the local runner
    engine services    -> one TranslationEngineService per engine type
    ClusterMonitor     -> when the cluster runner is registered
    LocalBuildRecovery -> local builds without a job (on start) and jobs the
                          local runner gives up on

Usage:
    services = await create_build_services(get_config())
    await services.start()
    ...
    await services.stop()

Exports:
    BuildServices
    StageJobFactory
    create_build_services
    create_default_collaborators
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config import AppConfig
from core.build_job_service import BuildJobService
from core.models import BuildJobRunnerType, TranslationEngineType
from core.runner_registry import BuildJobRunnerRegistry
from exceptions import ConfigurationError, ContractViolationError
from infrastructure.cluster_client import ClusterClient
from infrastructure.cluster_runner import ClusterBuildJobRunner, NmtClusterBuildJobFactory
from infrastructure.factory import RepositoryFactory
from infrastructure.interface_repository import (
    IBuildJobRunner,
    IDistributedReaderWriterLockFactory,
    IEngineRepository,
    IPlatformService,
)
from infrastructure.local_runner import LocalBuildJobRunner
from jobs import ALL_JOBS, BuildCollaborators, StageBuildJob, get_job_class
from services.build_files import FilePretranslationWriter, LocalBuildFileStore, TextCorpusPreprocessor
from services.build_recovery import LocalBuildRecovery
from services.cluster_monitor import ClusterMonitor
from services.engine_service import TranslationEngineService
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.FACTORY, "ServiceFactory")


class StageJobFactory:
    """
    Creates the stage executor for (engine_type, stage).

    build_job_service is bound after construction: the local runner
    needs this factory before the service that depends on the runner
    exists.
    """

    def __init__(
        self,
        platform: IPlatformService,
        engines: IEngineRepository,
        lock_factory: IDistributedReaderWriterLockFactory,
        collaborators: BuildCollaborators
    ):
        self.platform = platform
        self.engines = engines
        self.lock_factory = lock_factory
        self.collaborators = collaborators
        self.build_job_service: Optional[BuildJobService] = None

    def __call__(self, engine_type: TranslationEngineType, stage: str) -> StageBuildJob:
        if self.build_job_service is None:
            raise ContractViolationError("StageJobFactory used before a BuildJobService was bound")
        job_class = get_job_class(engine_type, stage)
        return job_class(self.platform, self.engines, self.lock_factory, self.build_job_service, self.collaborators)


@dataclass
class BuildServices:
    """Everything a worker process runs."""

    config: AppConfig
    engines: IEngineRepository
    lock_factory: IDistributedReaderWriterLockFactory
    platform: IPlatformService
    registry: BuildJobRunnerRegistry
    build_job_service: BuildJobService
    collaborators: BuildCollaborators
    local_runner: LocalBuildJobRunner
    recovery: LocalBuildRecovery
    cluster_client: Optional[ClusterClient] = None
    cluster_runner: Optional[ClusterBuildJobRunner] = None
    cluster_monitor: Optional[ClusterMonitor] = None
    engine_services: Dict[TranslationEngineType, TranslationEngineService] = field(default_factory=dict)

    def get_engine_service(self, engine_type: TranslationEngineType) -> TranslationEngineService:
        service = self.engine_services.get(TranslationEngineType(engine_type))
        if service is None:
            raise ConfigurationError(f"Engine type '{TranslationEngineType(engine_type).value}' is not enabled")
        return service

    async def start(self) -> None:
        await self.local_runner.start()
        if self.config.build_jobs.recover_local_builds:
            await self.recovery.recover()
        if self.cluster_monitor is not None:
            await self.cluster_monitor.start()

    async def stop(self) -> None:
        """Stop background work first, then release clients and the pool."""
        if self.cluster_monitor is not None:
            await self.cluster_monitor.stop()
        await self.local_runner.stop()

        close_platform = getattr(self.platform, "close", None)
        if close_platform is not None:
            await close_platform()
        if self.cluster_client is not None:
            await self.cluster_client.close()
        await RepositoryFactory.close()


def create_default_collaborators(config: AppConfig) -> BuildCollaborators:
    """Local-disk collaborators; no trainers."""
    file_store = LocalBuildFileStore(config.build_jobs.build_files_root)
    return BuildCollaborators(
        file_store=file_store,
        corpus_preprocessor=TextCorpusPreprocessor(file_store),
        pretranslation_writer=FilePretranslationWriter(file_store),
    )


def _engine_types(config: AppConfig) -> List[TranslationEngineType]:
    try:
        return [TranslationEngineType(t) for t in config.build_jobs.engine_types]
    except ValueError as e:
        raise ConfigurationError(f"Invalid ENGINE_TYPES: {e}") from e


def _warn_missing_collaborators(
    registry: BuildJobRunnerRegistry,
    engine_types: List[TranslationEngineType],
    collaborators: BuildCollaborators
) -> None:
    for (engine_type, stage), job_class in ALL_JOBS.items():
        if engine_type not in engine_types:
            continue
        if registry.get_runner_type(job_class.job_type) != BuildJobRunnerType.LOCAL:
            continue
        missing = collaborators.missing(job_class.required_collaborators)
        if missing:
            logger.warning(
                f"⚠️ Stage {engine_type.value}/{stage} runs locally but {', '.join(missing)} "
                f"is not configured; its builds will fault"
            )


async def create_build_services(
    config: AppConfig,
    collaborators: Optional[BuildCollaborators] = None
) -> BuildServices:
    """
    Build and validate the object graph.

    Raises:
        ConfigurationError: Unresolvable runner mapping or engine types
    """
    engine_types = _engine_types(config)
    collaborators = collaborators or create_default_collaborators(config)

    engines, lock_factory = await RepositoryFactory.create_engine_store(config)
    platform = RepositoryFactory.create_platform_service(config)

    job_factory = StageJobFactory(platform, engines, lock_factory, collaborators)
    local_runner = LocalBuildJobRunner(
        job_factory,
        workers=config.build_jobs.local_workers,
        max_attempts=config.build_jobs.local_max_attempts,
        shutdown_timeout_seconds=config.build_jobs.shutdown_timeout_seconds,
    )
    runners: List[IBuildJobRunner] = [local_runner]

    cluster_client = RepositoryFactory.create_cluster_client(config)
    cluster_runner = None
    if cluster_client is not None:
        cluster_runner = ClusterBuildJobRunner(
            cluster_client,
            config.cluster,
            [NmtClusterBuildJobFactory(engines, config.cluster)],
        )
        runners.append(cluster_runner)

    registry = BuildJobRunnerRegistry(runners, config.build_jobs.job_type_runners)
    registry.validate(engine_types)

    build_job_service = BuildJobService(registry, engines)
    job_factory.build_job_service = build_job_service

    recovery = LocalBuildRecovery(local_runner, build_job_service, platform, lock_factory)
    local_runner.on_give_up = recovery.fault_abandoned_job

    cluster_monitor = None
    if cluster_runner is not None:
        cluster_monitor = ClusterMonitor(
            cluster_client, cluster_runner, build_job_service, platform, lock_factory, config.cluster
        )

    engine_services = {
        engine_type: TranslationEngineService(engine_type, platform, engines, lock_factory, build_job_service)
        for engine_type in engine_types
    }

    _warn_missing_collaborators(registry, engine_types, collaborators)
    logger.info(
        f"✅ Build services ready: backend={config.storage_backend}, "
        f"engine types={[t.value for t in engine_types]}, "
        f"runners={[r.runner_type.value for r in runners]}"
    )

    return BuildServices(
        config=config,
        engines=engines,
        lock_factory=lock_factory,
        platform=platform,
        registry=registry,
        build_job_service=build_job_service,
        collaborators=collaborators,
        local_runner=local_runner,
        recovery=recovery,
        cluster_client=cluster_client,
        cluster_runner=cluster_runner,
        cluster_monitor=cluster_monitor,
        engine_services=engine_services,
    )
