"""
Custom Exception Hierarchy

Distinguishes between:
1. Contract Violations (programming bugs that need fixing)
2. Business Logic Failures (expected runtime issues)

This separation ensures bugs are found quickly while the system
remains robust to expected failures. Cancellation is NOT part of this
hierarchy: it travels as asyncio.CancelledError.

Exports:
    ContractViolationError, BusinessLogicError, DatabaseError,
    ResourceNotFoundError, EngineNotFoundError, BuildConflictError,
    RunnerError, PlatformError, ConfigurationError
"""


class ContractViolationError(TypeError):
    """
    Raised when component contracts are violated (programming bugs).

    These indicate:
    - Wrong types passed to functions
    - Illegal build state transitions requested by orchestration code
    - Interface contract violations

    These should NEVER be caught and handled - they indicate bugs
    that need to be fixed in the code.

    Examples:
        - Orchestrator asks for a canceling -> active transition
        - Repository receives a string instead of an EngineFilter
    """
    pass


class BusinessLogicError(Exception):
    """
    Base class for expected runtime business logic failures.

    These are normal failures that occur during system operation
    and should be handled gracefully without crashing.

    Subclasses represent specific categories of business failures.
    """
    pass


class DatabaseError(BusinessLogicError):
    """
    Database operation failures.

    Examples:
        - Connection lost
        - Deadlock detected
        - Lock wait timeout
        - Constraint violation (duplicate engine id)
    """
    pass


class ResourceNotFoundError(BusinessLogicError):
    """
    Requested resource does not exist.

    Examples:
        - Engine ID not in the store
        - Runner type not registered
        - Stage job not registered
    """
    pass


class EngineNotFoundError(ResourceNotFoundError):
    """Translation engine does not exist."""

    def __init__(self, engine_id: str):
        super().__init__(f"Engine '{engine_id}' does not exist")
        self.engine_id = engine_id


class BuildConflictError(BusinessLogicError):
    """
    Build request conflicts with the engine's current build state.

    Examples:
        - Start requested while the engine is already building
        - Start refused because the previous build is still canceling
        - Cancel requested while no build is in progress
    """
    pass


class RunnerError(BusinessLogicError):
    """
    Execution backend failures.

    Examples:
        - Remote scheduler rejected a task
        - Remote scheduler unreachable
        - Local runner not started
    """
    pass


class PlatformError(BusinessLogicError):
    """
    Platform callback delivery failed after all retries.
    """
    pass


class ConfigurationError(Exception):
    """
    System configuration error.

    These are typically fatal and indicate misconfiguration
    that prevents the system from operating.

    Examples:
        - Missing required environment variables
        - Build job type mapped to an unregistered runner
        - Engine type whose job types have no runner mapping
    """
    pass
