"""
Translation Engine Models - Persistence Boundary

TranslationEngine is the aggregate stored in the engine repository.
Build is embedded in it (current_build) and never stored on its own.

Invariant:
    current_build is None, or current_build.job_state is one of
    PENDING / ACTIVE / CANCELING. Only predicate-qualified atomic
    updates (core.schema.updates) move it between those states.

Exports:
    Build: Embedded current-build record
    TranslationEngine: Engine aggregate
"""

from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import (
    BuildJobRunnerType,
    BuildJobState,
    TranslationEngineType,
)


class Build(BaseModel):
    """
    The build an engine is currently running.

    job_id is an opaque handle into the runner named by job_runner.
    stage is the pipeline phase the job executes.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    build_id: str = Field(..., min_length=1)
    job_id: str = Field(..., min_length=1, description="Runner-side job handle")
    job_runner: BuildJobRunnerType
    stage: str = Field(..., min_length=1)
    job_state: BuildJobState = BuildJobState.PENDING
    build_options: Optional[str] = Field(
        default=None,
        description="Opaque JSON string handed to every stage"
    )
    data: Optional[Any] = Field(
        default=None,
        description="JSON stage input the job was created with"
    )

    @field_validator("job_state")
    @classmethod
    def _stored_state(cls, value: BuildJobState) -> BuildJobState:
        if value == BuildJobState.NONE:
            raise ValueError("a stored build cannot be in state 'none'")
        return value


class TranslationEngine(BaseModel):
    """
    Database representation of a translation engine.

    build_revision starts at 0 and is only incremented when a build
    finishes successfully.
    """

    model_config = ConfigDict(validate_assignment=True)

    engine_id: str = Field(..., min_length=1)
    engine_type: TranslationEngineType
    name: Optional[str] = None
    source_language: str = Field(default="")
    target_language: str = Field(default="")
    build_revision: int = Field(default=0, ge=0)
    current_build: Optional[Build] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_building(self) -> bool:
        return self.current_build is not None

    @property
    def job_state(self) -> BuildJobState:
        """State of the current build, NONE when idle."""
        if self.current_build is None:
            return BuildJobState.NONE
        return self.current_build.job_state
