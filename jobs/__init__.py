"""
Job Registry - Stage job registration.

Every stage job module is imported here, which runs its @register_job
decorator. If it's not imported here, it's not registered.

Registration Process:
    1. Create your stage job class in jobs/your_stage.py
    2. Decorate it with @register_job
    3. Import the module below and list the stage in ENGINE_STAGES
    4. Done

Exports:
    ALL_JOBS: Dict mapping (engine_type, stage) to job class
    ENGINE_STAGES: Stage pipeline per engine type
    StageBuildJob: Base class for stage jobs
    BuildCollaborators: Collaborators handed to stage jobs
"""

from typing import Dict, List, Type

from core.models import BuildStage, TranslationEngineType
from core.runner_registry import ENGINE_JOB_TYPES

from .base import StageBuildJob
from .collaborators import BuildCollaborators
from .registry import JOB_REGISTRY, get_registered_job, register_job

from .nmt_preprocess import NmtPreprocessBuildJob
from .nmt_train import NmtTrainBuildJob
from .nmt_postprocess import NmtPostprocessBuildJob
from .smt_transfer import SmtTransferBuildJob

ALL_JOBS = JOB_REGISTRY

ENGINE_STAGES: Dict[TranslationEngineType, List[str]] = {
    TranslationEngineType.NMT: [
        BuildStage.PREPROCESS.value,
        BuildStage.TRAIN.value,
        BuildStage.POSTPROCESS.value,
    ],
    TranslationEngineType.SMT_TRANSFER: [BuildStage.TRAIN.value],
}

FIRST_STAGE: Dict[TranslationEngineType, str] = {
    engine_type: stages[0] for engine_type, stages in ENGINE_STAGES.items()
}


def validate_job_registry():
    """
    Validate all stage jobs on startup.

    Validates:
        1. Every stage of every engine pipeline has a job class
        2. Required attributes (engine_type, stage, job_type, description)
        3. The job type is one the engine type declares
        4. required_collaborators name real BuildCollaborators fields

    Raises:
        ValueError: Missing stage or invalid attributes
        AttributeError: Unknown collaborator name
    """
    for engine_type, stages in ENGINE_STAGES.items():
        for stage in stages:
            if (engine_type, stage) not in ALL_JOBS:
                raise ValueError(f"Stage {engine_type.value}/{stage} has no registered job class")

    for (engine_type, stage), job_class in ALL_JOBS.items():
        if not job_class.description:
            raise ValueError(f"Job {job_class.__name__} missing 'description'")
        if job_class.job_type not in ENGINE_JOB_TYPES[engine_type]:
            raise ValueError(
                f"Job {job_class.__name__} uses job type '{job_class.job_type.value}', "
                f"which engine type '{engine_type.value}' does not declare"
            )
        BuildCollaborators().missing(job_class.required_collaborators)

    return True


def get_job_class(engine_type: TranslationEngineType, stage: str) -> Type[StageBuildJob]:
    """
    Get stage job class.

    Raises:
        ValueError: If (engine_type, stage) not in registry
    """
    return get_registered_job(engine_type, stage)


# Validate on import - fail fast if something's wrong.
validate_job_registry()

__all__ = [
    'ALL_JOBS',
    'ENGINE_STAGES',
    'FIRST_STAGE',
    'get_job_class',
    'validate_job_registry',
    'register_job',
    'StageBuildJob',
    'BuildCollaborators',
    'NmtPreprocessBuildJob',
    'NmtTrainBuildJob',
    'NmtPostprocessBuildJob',
    'SmtTransferBuildJob',
]
