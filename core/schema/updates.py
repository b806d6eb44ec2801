"""
Repository Filter and Update Models - Contract Enforcement

Strongly-typed Pydantic models for the engine repository's predicate
and mutation arguments, replacing Dict[str, Any] with type-safe contracts.

Every state change of an engine's current build is expressed as
(EngineFilter, EngineUpdateModel) and applied atomically by the
repository: the update only happens if the filter matches the stored
record at the moment of the write.

Both repositories share these semantics:
    - InMemoryEngineRepository evaluates EngineFilter.matches / apply_update
    - PostgreSQLEngineRepository compiles them to SQL

Exports:
    EngineFilter: Predicate over engine fields
    EngineUpdateModel: Mutation of an engine record
    apply_update: Apply a mutation to an engine (pure)
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, model_validator

from ..models import (
    Build,
    BuildJobRunnerType,
    BuildJobState,
    TranslationEngine,
)


class EngineFilter(BaseModel):
    """
    Predicate over engine fields. Unset fields do not constrain.

    job_state / job_state_not compare against the engine's effective
    state, which is NONE when there is no current build. So:
        job_state=NONE        -> engine is idle
        job_state_not=X       -> no build, or a build not in state X
        job_state_not=NONE    -> engine has a build
    """

    model_config = ConfigDict(
        use_enum_values=True,
        validate_assignment=True,
        extra='forbid'
    )

    engine_id: Optional[str] = None
    has_build: Optional[bool] = None
    build_id: Optional[str] = None
    job_state: Optional[BuildJobState] = None
    job_state_not: Optional[BuildJobState] = None
    job_runner: Optional[BuildJobRunnerType] = None

    def matches(self, engine: TranslationEngine) -> bool:
        """Evaluate the predicate against an engine record."""
        build = engine.current_build
        if self.engine_id is not None and engine.engine_id != self.engine_id:
            return False
        if self.has_build is not None and (build is not None) != self.has_build:
            return False
        if self.build_id is not None and (build is None or build.build_id != self.build_id):
            return False
        if self.job_state is not None and engine.job_state != self.job_state:
            return False
        if self.job_state_not is not None and engine.job_state == self.job_state_not:
            return False
        if self.job_runner is not None and (build is None or build.job_runner != self.job_runner):
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Set fields only, for logging."""
        return self.model_dump(exclude_none=True, mode='json')


class EngineUpdateModel(BaseModel):
    """
    Strongly typed engine update contract.

    current_build replaces the whole build; job_state changes only the
    state of the existing build; unset_current_build clears it.
    updated_at is always refreshed by the repository.
    """

    model_config = ConfigDict(
        use_enum_values=True,
        validate_assignment=True,
        extra='forbid'
    )

    current_build: Optional[Build] = None
    unset_current_build: bool = False
    job_state: Optional[BuildJobState] = None
    inc_build_revision: bool = False

    @model_validator(mode='after')
    def _check_consistency(self) -> 'EngineUpdateModel':
        if self.unset_current_build and (self.current_build is not None or self.job_state is not None):
            raise ValueError("unset_current_build cannot be combined with current_build or job_state")
        if self.current_build is not None and self.job_state is not None:
            raise ValueError("set the state inside current_build instead of job_state")
        if self.job_state == BuildJobState.NONE:
            raise ValueError("use unset_current_build to clear the build")
        return self

    @property
    def target_state(self) -> Optional[BuildJobState]:
        """State the update leaves the build in (None when it does not touch state)."""
        if self.unset_current_build:
            return BuildJobState.NONE
        if self.current_build is not None:
            return BuildJobState(self.current_build.job_state)
        if self.job_state is not None:
            return BuildJobState(self.job_state)
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Set fields only, for logging."""
        return self.model_dump(exclude_defaults=True, mode='json')


def apply_update(engine: TranslationEngine, update: EngineUpdateModel) -> TranslationEngine:
    """
    Return a copy of engine with update applied.

    Setting job_state on an engine without a build leaves it unchanged,
    matching the SQL behaviour of jsonb_set on NULL.
    """
    updated = engine.model_copy(deep=True)
    if update.unset_current_build:
        updated.current_build = None
    elif update.current_build is not None:
        updated.current_build = update.current_build.model_copy(deep=True)
    elif update.job_state is not None and updated.current_build is not None:
        updated.current_build.job_state = BuildJobState(update.job_state)
    if update.inc_build_revision:
        updated.build_revision = engine.build_revision + 1
    updated.updated_at = datetime.now(timezone.utc)
    return updated


__all__ = [
    'EngineFilter',
    'EngineUpdateModel',
    'apply_update',
]
