"""
SMT Transfer Train Stage.

Single-stage build (CPU): trains the SMT model from the corpora and, if
the engine still exists, swaps it in and completes the build.

Data: list of Corpus (or dicts that validate as Corpus).
"""

import time
from typing import Any, List, Optional

from core.build_job import run_shielded
from core.models import BuildJobType, BuildStage, Corpus, TranslationEngineType
from infrastructure.interface_repository import IDistributedReaderWriterLock

from .base import StageBuildJob
from .collaborators import ISmtTrainer, TrainStats
from .registry import register_job


@register_job
class SmtTransferBuildJob(StageBuildJob):
    engine_type = TranslationEngineType.SMT_TRANSFER
    stage = BuildStage.TRAIN.value
    job_type = BuildJobType.CPU
    description = "Train and publish an SMT transfer model"
    required_collaborators = ("smt_trainer",)

    async def do_work(
        self,
        engine_id: str,
        build_id: str,
        data: Any,
        build_options: Optional[str],
        lock: IDistributedReaderWriterLock
    ) -> None:
        trainer: ISmtTrainer = self.require("smt_trainer")
        corpora: List[Corpus] = [Corpus.model_validate(c) for c in (data or [])]

        await self.platform.build_started(build_id)
        start_time = time.time()

        stats = await trainer.train(engine_id, corpora, self.parse_build_options(build_options))

        await self.get_engine(engine_id)

        async with lock.writer_lock():
            await run_shielded(self._complete(trainer, engine_id, build_id, stats))

        self.logger.info(f"🏁 SMT build {build_id} completed in {time.time() - start_time:.1f}s")

    async def _complete(self, trainer: ISmtTrainer, engine_id: str, build_id: str, stats: TrainStats) -> None:
        await trainer.save(engine_id)
        await self.platform.build_completed(build_id, stats.train_corpus_size, round(stats.confidence, 2))
        await self.build_job_service.build_job_finished(engine_id, build_id, build_complete=True)
