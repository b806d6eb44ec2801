"""
NMT Preprocess Stage.

First NMT stage (CPU). Writes the training and pretranslation source
files for the build, then chains the GPU train stage onto the same build.

Data: list of Corpus (or dicts that validate as Corpus).
"""

import asyncio
from typing import Any, List, Optional

from core.build_job import run_shielded
from core.models import (
    BuildJobType,
    BuildStage,
    Corpus,
    JobCompletionStatus,
    TranslationEngineType,
)
from infrastructure.interface_repository import IDistributedReaderWriterLock

from .base import StageBuildJob
from .registry import register_job


@register_job
class NmtPreprocessBuildJob(StageBuildJob):
    engine_type = TranslationEngineType.NMT
    stage = BuildStage.PREPROCESS.value
    job_type = BuildJobType.CPU
    description = "Write training/pretranslation files and queue NMT training"
    required_collaborators = ("corpus_preprocessor",)

    async def do_work(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        build_options: Optional[str],
        lock: IDistributedReaderWriterLock
    ) -> None:
        preprocessor = self.require("corpus_preprocessor")
        corpora: List[Corpus] = [Corpus.model_validate(c) for c in (data or [])]

        counts = await preprocessor.preprocess(build_id, corpora, self.parse_build_options(build_options))

        engine = await self.get_engine(engine_id)
        summary = {
            "event": "build_preprocess",
            "engine_id": engine_id,
            "build_id": build_id,
            "source_language": engine.source_language,
            "target_language": engine.target_language,
            **counts,
        }
        self.logger.info("📊 Build preprocess summary", extra={'custom_dimensions': summary})

        async with lock.writer_lock():
            started = await run_shielded(self.build_job_service.start_build_job(
                BuildJobType.GPU,
                TranslationEngineType.NMT,
                engine_id,
                build_id,
                BuildStage.TRAIN.value,
                build_options=build_options,
            ))
        if not started:
            raise asyncio.CancelledError(f"Build {build_id} is canceling, train stage not queued")

    async def cleanup(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        lock: IDistributedReaderWriterLock,
        completion_status: JobCompletionStatus
    ) -> None:
        # files are needed by the train stage unless the build ended here
        if completion_status in (JobCompletionStatus.CANCELED, JobCompletionStatus.FAULTED):
            await self.delete_build_files(build_id)
