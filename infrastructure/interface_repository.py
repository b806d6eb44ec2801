"""
Infrastructure Abstract Base Classes - Single Point of Truth.

Enforces exact method signatures across every collaborator the build
orchestration core consumes. All parameter names, return types, and
method signatures are defined here and nowhere else.

Philosophy: "Define once, enforce everywhere"

Exports:
    IEngineRepository: Engine/build state store
    IBuildJobRunner: Execution backend
    IDistributedReaderWriterLock: Per-engine lock handle
    IDistributedReaderWriterLockFactory: Lock handle provider
    IPlatformService: Build lifecycle notification sink
    ParamNames: Canonical keys for stage data payloads
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Final, List, Optional

from core.models import (
    BuildJobRunnerType,
    TranslationEngine,
    TranslationEngineType,
)
from core.schema.updates import EngineFilter, EngineUpdateModel


# ============================================================================
# CANONICAL PARAMETER NAMES - Single source of truth
# ============================================================================

class ParamNames:
    """
    Keys of the JSON payloads passed between stages.
    Using class attributes as constants ensures consistency.
    """

    # Train -> postprocess handoff
    TRAIN_SIZE: Final[str] = "train_size"
    CONFIDENCE: Final[str] = "confidence"


# ============================================================================
# ENGINE REPOSITORY
# ============================================================================

class IEngineRepository(ABC):
    """
    Engine repository interface with EXACT method signatures.

    update() is the only way build state changes: it atomically applies
    `update` to one record matching `engine_filter` and returns the
    record after the update (or before it, with return_original=True).
    None means nothing matched.
    """

    @abstractmethod
    async def get(self, engine_filter: EngineFilter) -> Optional[TranslationEngine]:
        """Get the single engine matching the filter"""
        pass

    @abstractmethod
    async def get_all(self, engine_filter: EngineFilter) -> List[TranslationEngine]:
        """Get every engine matching the filter"""
        pass

    @abstractmethod
    async def exists(self, engine_filter: EngineFilter) -> bool:
        """True if any engine matches the filter"""
        pass

    @abstractmethod
    async def insert(self, engine: TranslationEngine) -> None:
        """Insert a new engine; raises DatabaseError on a duplicate engine_id"""
        pass

    @abstractmethod
    async def update(
        self,
        engine_filter: EngineFilter,
        update: EngineUpdateModel,
        return_original: bool = False
    ) -> Optional[TranslationEngine]:
        """Atomic find-one-and-update"""
        pass

    @abstractmethod
    async def delete(self, engine_filter: EngineFilter) -> Optional[TranslationEngine]:
        """Delete one matching engine and return it"""
        pass


# ============================================================================
# BUILD JOB RUNNER
# ============================================================================

class IBuildJobRunner(ABC):
    """
    Execution backend interface.

    A runner owns per-engine execution contexts and single jobs. Jobs are
    created first (not yet runnable) and enqueued only after the build
    state was recorded, so a lost start race can delete them unseen.
    """

    @property
    @abstractmethod
    def runner_type(self) -> BuildJobRunnerType:
        """Identifier this runner is registered under"""
        pass

    @abstractmethod
    async def create_engine(self, engine_id: str, name: Optional[str] = None) -> None:
        """Create the runner-side engine context (idempotent)"""
        pass

    @abstractmethod
    async def delete_engine(self, engine_id: str) -> None:
        """Delete the runner-side engine context"""
        pass

    @abstractmethod
    async def create_job(
        self,
        engine_type: TranslationEngineType,
        engine_id: str,
        build_id: str,
        stage: str,
        data: Any = None,
        build_options: Optional[str] = None
    ) -> str:
        """Create a job and return its runner-side job_id"""
        pass

    @abstractmethod
    async def enqueue_job(self, job_id: str) -> None:
        """Make a created job runnable"""
        pass

    @abstractmethod
    async def stop_job(self, job_id: str) -> bool:
        """Stop a queued or running job; False if unknown"""
        pass

    @abstractmethod
    async def delete_job(self, job_id: str) -> bool:
        """Delete a job; False if unknown"""
        pass


# ============================================================================
# DISTRIBUTED LOCKS
# ============================================================================

class IDistributedReaderWriterLock(ABC):
    """
    Per-engine reader/writer lock shared by every process.

    Both methods return async context managers; the lock is released on
    every exit path of the `async with` block.
    """

    @abstractmethod
    def reader_lock(self) -> AbstractAsyncContextManager:
        """Shared acquisition"""
        pass

    @abstractmethod
    def writer_lock(self) -> AbstractAsyncContextManager:
        """Exclusive acquisition"""
        pass


class IDistributedReaderWriterLockFactory(ABC):
    """
    Produces lock handles keyed by engine id.
    """

    @abstractmethod
    async def create(self, engine_id: str) -> IDistributedReaderWriterLock:
        """Get the lock handle for an engine"""
        pass

    @abstractmethod
    async def delete(self, engine_id: str) -> bool:
        """Forget the lock for a deleted engine"""
        pass


# ============================================================================
# PLATFORM NOTIFIER
# ============================================================================

class IPlatformService(ABC):
    """
    Build lifecycle notification sink.
    """

    @abstractmethod
    async def build_started(self, build_id: str) -> None:
        pass

    @abstractmethod
    async def build_completed(self, build_id: str, train_size: int, confidence: float) -> None:
        pass

    @abstractmethod
    async def build_canceled(self, build_id: str) -> None:
        pass

    @abstractmethod
    async def build_faulted(self, build_id: str, message: str) -> None:
        pass

    @abstractmethod
    async def build_restarting(self, build_id: str) -> None:
        pass
