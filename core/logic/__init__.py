"""
Core Business Logic Package.

Contains business logic that operates on pure data models.
Separated from models to maintain clean architecture.

Exports:
    State transitions: can_build_transition, validate_build_transition,
    get_build_stored_states, get_build_cancelable_states, is_build_in_progress
"""

from .transitions import (
    can_build_transition,
    validate_build_transition,
    get_build_stored_states,
    get_build_cancelable_states,
    is_build_in_progress
)

__all__ = [
    'can_build_transition',
    'validate_build_transition',
    'get_build_stored_states',
    'get_build_cancelable_states',
    'is_build_in_progress',
]
