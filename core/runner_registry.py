"""
Build Job Runner Registry.

Two-level lookup built once at start-up:

    BuildJobType (cpu/gpu) --config--> BuildJobRunnerType (local/cluster)
    BuildJobRunnerType --registry--> IBuildJobRunner instance

Engine types declare which job types their pipelines need in
ENGINE_JOB_TYPES; validate() fails fast when one of them cannot be
resolved to a registered runner.

Exports:
    ENGINE_JOB_TYPES: Job types each engine type's pipeline uses
    BuildJobRunnerRegistry: The lookup
"""

from typing import Dict, Iterable, List, Mapping

from core.models import BuildJobRunnerType, BuildJobType, TranslationEngineType
from exceptions import ConfigurationError
from infrastructure.interface_repository import IBuildJobRunner
from util_logger import LoggerFactory, ComponentType


ENGINE_JOB_TYPES: Dict[TranslationEngineType, List[BuildJobType]] = {
    # preprocess/postprocess on CPU, train on GPU
    TranslationEngineType.NMT: [BuildJobType.CPU, BuildJobType.GPU],
    TranslationEngineType.SMT_TRANSFER: [BuildJobType.CPU],
}


class BuildJobRunnerRegistry:
    """
    Pure lookup from logical job type to runner instance.
    """

    def __init__(
        self,
        runners: Iterable[IBuildJobRunner],
        job_type_runners: Mapping[str, str]
    ):
        """
        Args:
            runners: Runner instances (one per runner type)
            job_type_runners: Config mapping, e.g. {"cpu": "local", "gpu": "cluster"}

        Raises:
            ConfigurationError: Unknown names, duplicate runners, or a
                mapping to a runner type that has no instance
        """
        self.logger = LoggerFactory.create_logger(ComponentType.FACTORY, "BuildJobRunnerRegistry")

        self._runners: Dict[BuildJobRunnerType, IBuildJobRunner] = {}
        for runner in runners:
            if runner.runner_type in self._runners:
                raise ConfigurationError(f"Runner '{runner.runner_type.value}' registered twice")
            self._runners[runner.runner_type] = runner

        self._job_type_runners: Dict[BuildJobType, BuildJobRunnerType] = {}
        for job_type_name, runner_name in job_type_runners.items():
            try:
                job_type = BuildJobType(job_type_name)
                runner_type = BuildJobRunnerType(runner_name)
            except ValueError as e:
                raise ConfigurationError(f"Invalid job type mapping {job_type_name}={runner_name}: {e}") from e
            if runner_type not in self._runners:
                raise ConfigurationError(
                    f"Job type '{job_type.value}' is mapped to runner '{runner_type.value}', "
                    f"which is not registered"
                )
            self._job_type_runners[job_type] = runner_type

        self.logger.info(
            "✅ Runner registry: " + ", ".join(
                f"{jt.value}->{rt.value}" for jt, rt in self._job_type_runners.items()
            )
        )

    @property
    def runners(self) -> List[IBuildJobRunner]:
        return list(self._runners.values())

    def get_runner(self, runner_type: BuildJobRunnerType) -> IBuildJobRunner:
        """
        Get the runner registered for a runner type.

        Raises:
            ConfigurationError: If no such runner is registered
        """
        runner = self._runners.get(BuildJobRunnerType(runner_type))
        if runner is None:
            raise ConfigurationError(f"No runner registered for '{BuildJobRunnerType(runner_type).value}'")
        return runner

    def get_runner_type(self, job_type: BuildJobType) -> BuildJobRunnerType:
        """
        Get the runner type a job type is routed to.

        Raises:
            ConfigurationError: If the job type has no mapping
        """
        runner_type = self._job_type_runners.get(BuildJobType(job_type))
        if runner_type is None:
            raise ConfigurationError(f"No runner mapped for job type '{BuildJobType(job_type).value}'")
        return runner_type

    def get_runner_for_job_type(self, job_type: BuildJobType) -> IBuildJobRunner:
        return self._runners[self.get_runner_type(job_type)]

    def get_runners_for_job_types(self, job_types: Iterable[BuildJobType]) -> List[IBuildJobRunner]:
        """Distinct runners for the given job types, in first-seen order."""
        runners: List[IBuildJobRunner] = []
        for job_type in job_types:
            runner = self.get_runner_for_job_type(job_type)
            if runner not in runners:
                runners.append(runner)
        return runners

    def validate(self, engine_types: Iterable[TranslationEngineType]) -> None:
        """
        Fail fast if any job type used by an engine type cannot be resolved.

        Raises:
            ConfigurationError: Listing every unresolved (engine type, job type)
        """
        missing = [
            f"{TranslationEngineType(engine_type).value}:{job_type.value}"
            for engine_type in engine_types
            for job_type in ENGINE_JOB_TYPES[TranslationEngineType(engine_type)]
            if job_type not in self._job_type_runners
        ]
        if missing:
            raise ConfigurationError(f"Job types without a runner mapping: {', '.join(missing)}")
