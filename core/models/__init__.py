"""
Core Data Models Package.

Contains pure data structures without business logic.
All business logic is in the core.logic package.

Exports:
    TranslationEngine, Build: Engine aggregate and embedded build
    Corpus, CorpusFile: Build input
    TranslationEngineType, BuildJobState, BuildJobType, BuildJobRunnerType,
    BuildStage, JobCompletionStatus, ClusterTaskStatus: Enums
"""

from .enums import (
    TranslationEngineType,
    BuildJobState,
    BuildJobType,
    BuildJobRunnerType,
    BuildStage,
    JobCompletionStatus,
    ClusterTaskStatus,
)

from .engine import (
    Build,
    TranslationEngine,
)

from .corpus import (
    Corpus,
    CorpusFile,
)

__all__ = [
    'TranslationEngineType',
    'BuildJobState',
    'BuildJobType',
    'BuildJobRunnerType',
    'BuildStage',
    'JobCompletionStatus',
    'ClusterTaskStatus',
    'Build',
    'TranslationEngine',
    'Corpus',
    'CorpusFile',
]
