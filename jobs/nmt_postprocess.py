"""
NMT Postprocess Stage.

Last NMT stage (CPU). Publishes the pretranslations produced by training
and completes the build.

Data: {"train_size": int, "confidence": float}
"""

from typing import Any, Optional

from core.build_job import run_shielded
from core.models import BuildJobType, BuildStage, JobCompletionStatus, TranslationEngineType
from infrastructure.interface_repository import IDistributedReaderWriterLock, ParamNames

from .base import StageBuildJob
from .registry import register_job


@register_job
class NmtPostprocessBuildJob(StageBuildJob):
    engine_type = TranslationEngineType.NMT
    stage = BuildStage.POSTPROCESS.value
    job_type = BuildJobType.CPU
    description = "Publish pretranslations and complete the NMT build"
    required_collaborators = ("pretranslation_writer",)

    async def do_work(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        build_options: Optional[str],
        lock: IDistributedReaderWriterLock
    ) -> None:
        writer = self.require("pretranslation_writer")
        data = data or {}
        train_size = int(data.get(ParamNames.TRAIN_SIZE, 0))
        confidence = round(float(data.get(ParamNames.CONFIDENCE, 0.0)), 2)

        written = await writer.write(engine_id, build_id)
        self.logger.info(f"📝 {written} pretranslations written for build {build_id}")

        async with lock.writer_lock():
            await run_shielded(self._complete(engine_id, build_id, train_size, confidence))

    async def _complete(self, engine_id: str, build_id: str, train_size: int, confidence: float) -> None:
        await self.platform.build_completed(build_id, train_size, confidence)
        await self.build_job_service.build_job_finished(engine_id, build_id, build_complete=True)

    async def cleanup(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        lock: IDistributedReaderWriterLock,
        completion_status: JobCompletionStatus
    ) -> None:
        if completion_status != JobCompletionStatus.RESTARTING:
            await self.delete_build_files(build_id)
