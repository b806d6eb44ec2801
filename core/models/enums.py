"""
Pure Enumeration Types for Core Framework.

Defines engine types, build job states and runner identifiers.
No business logic - pure type definitions only.

Exports:
    TranslationEngineType: Engine family
    BuildJobState: Lifecycle flag of an engine's current build
    BuildJobType: Logical resource class a stage needs
    BuildJobRunnerType: Concrete execution backend
    BuildStage: Pipeline phase names
    JobCompletionStatus: Terminal outcome of one stage execution
    ClusterTaskStatus: Remote scheduler task status
"""

from enum import Enum


class TranslationEngineType(str, Enum):
    """
    Engine families.

    NMT pipelines run preprocess (CPU) -> train (GPU) -> postprocess (CPU).
    SMT transfer pipelines run a single train stage on CPU.
    """

    NMT = "nmt"
    SMT_TRANSFER = "smt_transfer"


class BuildJobState(str, Enum):
    """
    Lifecycle flag of an engine's current build.

    State transitions:
    - NONE -> PENDING (build started)
    - PENDING -> ACTIVE (executor picked the job up)
    - PENDING -> NONE (canceled before any executor ran)
    - ACTIVE -> CANCELING (cancel requested while running)
    - CANCELING -> NONE (executor finalized the cancel)
    - ACTIVE -> PENDING (involuntary interruption, job rescheduled)
    - ACTIVE -> NONE (build finished or faulted)
    - PENDING -> PENDING (next stage chained onto the same build)

    NONE is a result value meaning "no build"; it is never stored.
    """

    NONE = "none"
    PENDING = "pending"
    ACTIVE = "active"
    CANCELING = "canceling"


class BuildJobType(str, Enum):
    """Logical resource class of a stage."""

    CPU = "cpu"
    GPU = "gpu"


class BuildJobRunnerType(str, Enum):
    """Concrete execution backends."""

    LOCAL = "local"      # In-process asyncio queue
    CLUSTER = "cluster"  # Remote scheduler over HTTP


class BuildStage(str, Enum):
    """Pipeline phase names."""

    PREPROCESS = "preprocess"
    TRAIN = "train"
    POSTPROCESS = "postprocess"


class JobCompletionStatus(str, Enum):
    """
    Terminal outcome of one stage execution attempt.

    RESTARTING means the attempt was interrupted involuntarily and the
    build was put back to PENDING for the runner to retry.
    """

    COMPLETED = "completed"
    FAULTED = "faulted"
    CANCELED = "canceled"
    RESTARTING = "restarting"


class ClusterTaskStatus(str, Enum):
    """
    Remote scheduler task status (ClearML task states).
    """

    CREATED = "created"
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    STOPPED = "stopped"
    PUBLISHED = "published"
    PUBLISHING = "publishing"
    CLOSED = "closed"
    FAILED = "failed"
    COMPLETED = "completed"
    UNKNOWN = "unknown"
