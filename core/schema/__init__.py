"""
Core Schema Package.

Contains the repository contract models.

Exports:
    EngineFilter, EngineUpdateModel: Predicate and mutation for engine updates
    apply_update: Pure application of an update to an engine
    build_engines_table_ddl: DDL for the PostgreSQL engines table
"""

from .updates import (
    EngineFilter,
    EngineUpdateModel,
    apply_update
)

from .ddl import build_engines_table_ddl

__all__ = [
    'EngineFilter',
    'EngineUpdateModel',
    'apply_update',
    'build_engines_table_ddl',
]
