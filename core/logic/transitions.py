"""
State Transition Logic for Builds.

Contains business rules for valid build job state transitions.
Separated from data models for clean architecture.

Exports:
    can_build_transition: Check if a build state transition is valid
    validate_build_transition: Raise ContractViolationError on an invalid one
    get_build_stored_states: States a persisted build can be in
    get_build_cancelable_states: States a cancel request acts on
    is_build_in_progress: Check if a state means "engine is building"

Dependencies:
    core.models.enums: BuildJobState
"""

from typing import Iterable, List

from exceptions import ContractViolationError
from ..models.enums import BuildJobState


# NONE means "no current build"; it is a source/target, never stored.
_BUILD_TRANSITIONS = {
    BuildJobState.NONE: [BuildJobState.PENDING],
    BuildJobState.PENDING: [
        BuildJobState.ACTIVE,     # executor started
        BuildJobState.NONE,       # canceled before start / finished
        BuildJobState.PENDING,    # next stage chained onto the build
    ],
    BuildJobState.ACTIVE: [
        BuildJobState.CANCELING,  # cancel requested while running
        BuildJobState.PENDING,    # involuntary interruption / stage chaining
        BuildJobState.NONE,       # finished or faulted
    ],
    BuildJobState.CANCELING: [BuildJobState.NONE],
}


def can_build_transition(current: BuildJobState, target: BuildJobState) -> bool:
    """
    Check if a build can transition from current to target state.

    Args:
        current: Current build state (NONE when the engine is idle)
        target: Target build state (NONE clears the build)

    Returns:
        True if transition is valid, False otherwise
    """
    current = BuildJobState(current)
    target = BuildJobState(target)

    # Same state is always allowed (no-op)
    if current == target:
        return True

    return target in _BUILD_TRANSITIONS.get(current, [])


def validate_build_transition(
    current: Iterable[BuildJobState],
    target: BuildJobState,
    operation: str
) -> None:
    """
    Assert that every source state an update predicate admits may move to target.

    Args:
        current: Source states the update's predicate can match
        target: State the update writes
        operation: Caller name for the error message

    Raises:
        ContractViolationError: If any (source, target) pair is invalid
    """
    for state in current:
        if not can_build_transition(state, target):
            raise ContractViolationError(
                f"{operation}: invalid build transition "
                f"{BuildJobState(state).value} -> {BuildJobState(target).value}"
            )


def get_build_stored_states() -> List[BuildJobState]:
    """
    Get the states a persisted current build may have.

    Returns:
        List of in-progress build states
    """
    return [
        BuildJobState.PENDING,
        BuildJobState.ACTIVE,
        BuildJobState.CANCELING
    ]


def get_build_cancelable_states() -> List[BuildJobState]:
    """
    Get states in which a cancel request changes the build.

    Returns:
        List of cancelable build states
    """
    return [
        BuildJobState.PENDING,
        BuildJobState.ACTIVE
    ]


def is_build_in_progress(state: BuildJobState) -> bool:
    """
    Check if a build state means the engine is building.

    Args:
        state: Build state to check

    Returns:
        True for PENDING, ACTIVE and CANCELING
    """
    return BuildJobState(state) in get_build_stored_states()
