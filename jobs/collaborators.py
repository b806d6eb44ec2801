"""
Stage Collaborators - What a stage delegates its actual work to.

The stage jobs own the build lifecycle; the text processing and model
training they trigger live behind these interfaces.

Exports:
    TrainStats
    IBuildFileStore
    ICorpusPreprocessor
    INmtTrainer
    ISmtTrainer
    IPretranslationWriter
    BuildCollaborators
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.models import Corpus, TranslationEngine


class TrainStats(BaseModel):
    """Result of a training run, reported to the platform on completion."""

    train_corpus_size: int = Field(..., ge=0)
    confidence: float = Field(..., ge=0)


class IBuildFileStore(ABC):
    """
    Per-build file storage shared by stages. Paths are relative,
    e.g. "builds/{build_id}/train.src.txt".
    """

    @abstractmethod
    async def write_text(self, path: str, content: str) -> None:
        pass

    @abstractmethod
    async def read_text(self, path: str) -> str:
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, prefix: str) -> None:
        """Delete a file or everything under a directory prefix."""
        pass


class ICorpusPreprocessor(ABC):
    @abstractmethod
    async def preprocess(
        self,
        build_id: str,
        corpora: List[Corpus],
        build_options: Optional[Dict[str, Any]] = None
    ) -> Dict[str, int]:
        """
        Write the training and pretranslation source files for a build.

        Returns:
            Row counts: corpus_size, num_train_rows, num_pretranslate_rows
        """
        pass


class INmtTrainer(ABC):
    @abstractmethod
    async def train(
        self,
        engine: TranslationEngine,
        build_id: str,
        build_options: Optional[Dict[str, Any]] = None
    ) -> TrainStats:
        """Train from the build's files and write pretranslate.trg.json."""
        pass


class ISmtTrainer(ABC):
    @abstractmethod
    async def train(
        self,
        engine_id: str,
        corpora: List[Corpus],
        build_options: Optional[Dict[str, Any]] = None
    ) -> TrainStats:
        pass

    @abstractmethod
    async def save(self, engine_id: str) -> None:
        """Replace the engine's live model with the trained one."""
        pass


class IPretranslationWriter(ABC):
    @abstractmethod
    async def write(self, engine_id: str, build_id: str) -> int:
        """Publish the build's pretranslations; returns how many were written."""
        pass


@dataclass
class BuildCollaborators:
    """
    The collaborators available in this deployment. A stage whose
    collaborator is missing faults when it runs.
    """

    file_store: Optional[IBuildFileStore] = None
    corpus_preprocessor: Optional[ICorpusPreprocessor] = None
    nmt_trainer: Optional[INmtTrainer] = None
    smt_trainer: Optional[ISmtTrainer] = None
    pretranslation_writer: Optional[IPretranslationWriter] = None

    def missing(self, names) -> List[str]:
        known = {f.name for f in fields(self)}
        unknown = [n for n in names if n not in known]
        if unknown:
            raise AttributeError(f"Unknown collaborators: {unknown}")
        return [n for n in names if getattr(self, n) is None]
