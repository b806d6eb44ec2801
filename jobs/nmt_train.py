"""
NMT Train Stage (in-process).

Used when the gpu job type is routed to the local runner. Deployments
that route gpu to the cluster train there instead, and the cluster
monitor chains postprocess from the finished task.
"""

import asyncio
from typing import Any, Optional

from core.build_job import run_shielded
from core.models import BuildJobType, BuildStage, TranslationEngineType
from infrastructure.interface_repository import IDistributedReaderWriterLock, ParamNames

from .base import StageBuildJob
from .registry import register_job


@register_job
class NmtTrainBuildJob(StageBuildJob):
    engine_type = TranslationEngineType.NMT
    stage = BuildStage.TRAIN.value
    job_type = BuildJobType.GPU
    description = "Train the NMT model and queue postprocessing"
    required_collaborators = ("nmt_trainer",)

    async def do_work(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        build_options: Optional[str],
        lock: IDistributedReaderWriterLock
    ) -> None:
        trainer = self.require("nmt_trainer")
        engine = await self.get_engine(engine_id)

        await self.platform.build_started(build_id)
        stats = await trainer.train(engine, build_id, self.parse_build_options(build_options))
        self.logger.info(
            f"🧠 NMT training finished for build {build_id}: "
            f"corpus={stats.train_corpus_size}, confidence={stats.confidence:.2f}"
        )

        async with lock.writer_lock():
            started = await run_shielded(self.build_job_service.start_build_job(
                BuildJobType.CPU,
                TranslationEngineType.NMT,
                engine_id,
                build_id,
                BuildStage.POSTPROCESS.value,
                data={ParamNames.TRAIN_SIZE: stats.train_corpus_size, ParamNames.CONFIDENCE: stats.confidence},
                build_options=build_options,
            ))
        if not started:
            raise asyncio.CancelledError(f"Build {build_id} is canceling, postprocess not queued")
