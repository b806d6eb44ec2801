"""
Cluster Build Job Runner - Remote Scheduler.

Runs stages on the remote GPU scheduler:

    engine  -> project "<project_prefix>/<engine_id>"
    job     -> task named after the build_id inside that project
    script  -> produced by the IClusterBuildJobFactory for the engine type

The runner only submits and stops tasks. Observing them and driving the
build state machine from their status is the cluster monitor's job
(services.cluster_monitor).

Exports:
    IClusterBuildJobFactory
    NmtClusterBuildJobFactory
    ClusterBuildJobRunner
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

from config import ClusterConfig
from core.models import BuildJobRunnerType, BuildStage, TranslationEngineType
from core.schema.updates import EngineFilter
from exceptions import EngineNotFoundError, RunnerError
from util_logger import LoggerFactory, ComponentType

from .cluster_client import ClusterClient
from .interface_repository import IBuildJobRunner, IEngineRepository


class IClusterBuildJobFactory(ABC):
    """
    Produces the task script for one engine type's cluster stages.
    """

    @property
    @abstractmethod
    def engine_type(self) -> TranslationEngineType:
        pass

    @abstractmethod
    async def create_job_script(
        self,
        engine_id: str,
        build_id: str,
        stage: str,
        data: Any = None,
        build_options: Optional[str] = None
    ) -> str:
        pass


class NmtClusterBuildJobFactory(IClusterBuildJobFactory):
    """
    Task script for the NMT train stage.

    Values are embedded with repr() so the script is a valid Python
    literal whatever the engine or build options contain.
    """

    def __init__(self, engines: IEngineRepository, config: ClusterConfig):
        self.engines = engines
        self.config = config

    @property
    def engine_type(self) -> TranslationEngineType:
        return TranslationEngineType.NMT

    async def create_job_script(
        self,
        engine_id: str,
        build_id: str,
        stage: str,
        data: Any = None,
        build_options: Optional[str] = None
    ) -> str:
        if stage != BuildStage.TRAIN.value:
            raise ValueError(f"Unknown cluster build stage for nmt: {stage}")

        engine = await self.engines.get(EngineFilter(engine_id=engine_id))
        if engine is None:
            raise EngineNotFoundError(engine_id)

        args = [
            ("model_type", self.config.model_type),
            ("engine_id", engine_id),
            ("build_id", build_id),
            ("src_lang", engine.source_language),
            ("trg_lang", engine.target_language),
            ("shared_file_uri", self.config.shared_file_uri or ""),
        ]
        if build_options is not None:
            args.append(("build_options", build_options))

        lines = ["from machine.jobs.build_nmt_engine import run", "args = {"]
        lines.extend(f"    {key!r}: {value!r}," for key, value in args)
        lines.append("    'clearml': True,")
        lines.append("}")
        lines.append("run(args)")
        return "\n".join(lines) + "\n"


class ClusterBuildJobRunner(IBuildJobRunner):
    """
    Runner that submits tasks to the remote scheduler.
    """

    def __init__(
        self,
        client: ClusterClient,
        config: ClusterConfig,
        job_factories: Iterable[IClusterBuildJobFactory]
    ):
        self.client = client
        self.config = config
        self._job_factories: Dict[TranslationEngineType, IClusterBuildJobFactory] = {
            f.engine_type: f for f in job_factories
        }
        self.logger = LoggerFactory.create_logger(ComponentType.RUNNER, "ClusterBuildJobRunner")

    @property
    def runner_type(self) -> BuildJobRunnerType:
        return BuildJobRunnerType.CLUSTER

    def project_name(self, engine_id: str) -> str:
        return f"{self.config.project_prefix}/{engine_id}"

    async def get_project_id(self, engine_id: str) -> Optional[str]:
        return await self.client.get_project_id(self.project_name(engine_id))

    async def create_engine(self, engine_id: str, name: Optional[str] = None) -> None:
        project_id = await self.client.create_project(self.project_name(engine_id), description=name)
        self.logger.info(f"✅ Cluster project {project_id} created for engine {engine_id}")

    async def delete_engine(self, engine_id: str) -> None:
        project_id = await self.get_project_id(engine_id)
        if project_id is None:
            self.logger.debug(f"No cluster project for engine {engine_id}")
            return
        await self.client.delete_project(project_id)
        self.logger.info(f"🗑️ Cluster project {project_id} deleted for engine {engine_id}")

    async def create_job(
        self,
        engine_type: TranslationEngineType,
        engine_id: str,
        build_id: str,
        stage: str,
        data: Any = None,
        build_options: Optional[str] = None
    ) -> str:
        job_factory = self._job_factories.get(TranslationEngineType(engine_type))
        if job_factory is None:
            raise RunnerError(f"No cluster job factory for engine type '{TranslationEngineType(engine_type).value}'")

        project_id = await self.get_project_id(engine_id)
        if project_id is None:
            project_id = await self.client.create_project(self.project_name(engine_id))

        # a task for this build may exist from an earlier delivery
        existing = await self.client.get_task_by_name(project_id, build_id)
        if existing is not None:
            self.logger.info(f"♻️ Reusing cluster task {existing.id} for build {build_id}")
            return existing.id

        script = await job_factory.create_job_script(engine_id, build_id, stage, data, build_options)
        task_id = await self.client.create_task(build_id, project_id, script, self.config.docker_image)
        self.logger.info(f"✅ Cluster task {task_id} created for build {build_id} stage {stage}")
        return task_id

    async def enqueue_job(self, job_id: str) -> None:
        if not await self.client.enqueue_task(job_id, self.config.queue):
            raise RunnerError(f"Cluster task {job_id} could not be enqueued on '{self.config.queue}'")
        self.logger.info(f"📥 Cluster task {job_id} enqueued on {self.config.queue}")

    async def stop_job(self, job_id: str) -> bool:
        stopped = await self.client.stop_task(job_id)
        self.logger.info(f"🛑 Cluster task {job_id} stop requested (stopped={stopped})")
        return stopped

    async def delete_job(self, job_id: str) -> bool:
        return await self.client.delete_task(job_id)
