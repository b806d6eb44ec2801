"""
Job Registry - Stage Job Registration System

Provides decorator-based registration for stage jobs.
Maps (engine_type, stage) to StageBuildJob classes for instantiation by
the runners' job factory.

Usage:
    @register_job
    class NmtPreprocessBuildJob(StageBuildJob):
        engine_type = TranslationEngineType.NMT
        stage = "preprocess"
        ...

    # Later:
    job_class = get_registered_job(TranslationEngineType.NMT, "preprocess")
"""

from typing import Dict, List, Tuple, Type

from core.models import TranslationEngineType

from .base import StageBuildJob


# ============================================================================
# GLOBAL REGISTRY
# ============================================================================

JobKey = Tuple[TranslationEngineType, str]

JOB_REGISTRY: Dict[JobKey, Type[StageBuildJob]] = {}
"""
Global registry mapping (engine_type, stage) → StageBuildJob class.

Example:
    {
        (TranslationEngineType.NMT, "preprocess"): NmtPreprocessBuildJob,
        (TranslationEngineType.SMT_TRANSFER, "train"): SmtTransferBuildJob,
    }
"""


# ============================================================================
# REGISTRATION DECORATOR
# ============================================================================

def register_job(job_class: Type[StageBuildJob]) -> Type[StageBuildJob]:
    """
    Decorator to register a stage job class in the global registry.

    Args:
        job_class: StageBuildJob subclass to register

    Returns:
        The same class (unchanged, just registered)

    Raises:
        TypeError: If class is not a StageBuildJob subclass
        ValueError: If (engine_type, stage) already registered
    """
    if not isinstance(job_class, type) or not issubclass(job_class, StageBuildJob):
        raise TypeError(f"{getattr(job_class, '__name__', job_class)} must inherit from StageBuildJob")

    key = (TranslationEngineType(job_class.engine_type), job_class.stage)

    if key in JOB_REGISTRY:
        existing = JOB_REGISTRY[key]
        raise ValueError(
            f"Stage '{key[0].value}/{key[1]}' already registered to {existing.__name__}. "
            f"Cannot register {job_class.__name__}."
        )

    JOB_REGISTRY[key] = job_class
    return job_class


# ============================================================================
# LOOKUP FUNCTIONS
# ============================================================================

def get_registered_job(engine_type: TranslationEngineType, stage: str) -> Type[StageBuildJob]:
    """
    Get a stage job class.

    Raises:
        ValueError: If (engine_type, stage) not found in registry
    """
    key = (TranslationEngineType(engine_type), stage)
    if key not in JOB_REGISTRY:
        available = ', '.join(sorted(f"{e.value}/{s}" for e, s in JOB_REGISTRY))
        raise ValueError(
            f"Unknown stage: '{key[0].value}/{stage}'. "
            f"Available: {available or '(none registered)'}"
        )
    return JOB_REGISTRY[key]


def list_registered_jobs() -> List[str]:
    """Sorted "engine_type/stage" strings."""
    return sorted(f"{e.value}/{s}" for e, s in JOB_REGISTRY)
