"""
Core Build Orchestration Components.

Contains the build state machine and the stage executor base, separated
from stage-specific work.

Structure:
    models/: Pure data structures (no business logic)
    logic/: Transition rules separated from models
    schema/: Engine table DDL and update composition
    Core orchestration classes

Exports:
    BuildJobService: Build state machine over runners + repository
    BuildJob: Stage executor base
    BuildJobRunnerRegistry: Job type -> runner lookup
    create_build_services: Composition root
"""

# Make subpackages available first (no circular dependencies)
from . import models
from . import logic
from . import schema

# Lazy imports to avoid circular dependencies
# These are imported on first access via __getattr__
_LAZY_IMPORTS = {
    'BuildJobService': '.build_job_service',
    'BuildJob': '.build_job',
    'run_shielded': '.build_job',
    'BuildJobRunnerRegistry': '.runner_registry',
    'ENGINE_JOB_TYPES': '.runner_registry',
    'BuildServices': '.service_factory',
    'create_build_services': '.service_factory',
}

def __getattr__(name):
    """Lazy import core classes to avoid circular dependencies."""
    if name in _LAZY_IMPORTS:
        from importlib import import_module
        module = import_module(_LAZY_IMPORTS[name], package='core')
        return getattr(module, name)
    raise AttributeError(f"module 'core' has no attribute '{name}'")

__all__ = [
    'BuildJobService',
    'BuildJob',
    'run_shielded',
    'BuildJobRunnerRegistry',
    'ENGINE_JOB_TYPES',
    'BuildServices',
    'create_build_services',
    'models',
    'logic',
    'schema'
]
