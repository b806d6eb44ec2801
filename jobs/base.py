"""
StageBuildJob - Base class for the concrete stage jobs.

Adds the stage collaborators to BuildJob and the contract the job
registry checks at start-up:

    engine_type (TranslationEngineType): Engine type the stage belongs to
    stage (str): Stage name (preprocess / train / postprocess)
    job_type (BuildJobType): Resource class the stage is routed by
    description (str): Human-readable description
    required_collaborators (tuple): BuildCollaborators fields do_work uses

Exports:
    StageBuildJob
"""

import json
from typing import Any, ClassVar, Dict, Optional, Tuple

from core.build_job import BuildJob
from core.build_job_service import BuildJobService
from exceptions import ConfigurationError
from infrastructure.interface_repository import (
    IDistributedReaderWriterLockFactory,
    IEngineRepository,
    IPlatformService,
)

from .collaborators import BuildCollaborators


class StageBuildJob(BuildJob):
    """
    Stage job with collaborators.

    Usage:
        @register_job
        class YourStageJob(StageBuildJob):
            engine_type = TranslationEngineType.NMT
            stage = BuildStage.PREPROCESS.value
            description = "What this stage does"
            required_collaborators = ("corpus_preprocessor",)

            async def do_work(self, engine_id, build_id, data, build_options, lock):
                ...
    """

    description: ClassVar[str] = ""
    required_collaborators: ClassVar[Tuple[str, ...]] = ()

    def __init__(
        self,
        platform: IPlatformService,
        engines: IEngineRepository,
        lock_factory: IDistributedReaderWriterLockFactory,
        build_job_service: BuildJobService,
        collaborators: Optional[BuildCollaborators] = None
    ):
        super().__init__(platform, engines, lock_factory, build_job_service)
        self.collaborators = collaborators or BuildCollaborators()

    def require(self, name: str) -> Any:
        """
        Get a collaborator.

        Raises:
            ConfigurationError: Not configured in this deployment
        """
        collaborator = getattr(self.collaborators, name)
        if collaborator is None:
            raise ConfigurationError(
                f"Stage {self.engine_type.value}/{self.stage} needs '{name}', which is not configured"
            )
        return collaborator

    @staticmethod
    def parse_build_options(build_options: Optional[str]) -> Optional[Dict[str, Any]]:
        if not build_options:
            return None
        try:
            options = json.loads(build_options)
        except json.JSONDecodeError as e:
            raise ValueError(f"build_options is not valid JSON: {e}") from e
        if not isinstance(options, dict):
            raise ValueError("build_options must be a JSON object")
        return options

    async def delete_build_files(self, build_id: str) -> None:
        """Remove builds/{build_id}/; failures are logged, never raised."""
        file_store = self.collaborators.file_store
        if file_store is None:
            return
        try:
            await file_store.delete(f"builds/{build_id}/")
        except Exception as e:
            self.logger.warning(f"⚠️ Unable to delete build files for build {build_id}: {e}")
