"""
Unified Logger System.

JSON-only structured logging for the build orchestrator workers.

Design Principles:
    - Strong typing with dataclasses (stdlib only)
    - Enum safety for categories
    - Component-specific loggers
    - Clean factory pattern

Exports:
    ComponentType: Enum for component types
    LogContext: Logging context dataclass (engine/build correlation)
    JSONFormatter: JSON log formatter
    LoggerFactory: Factory for creating loggers
    BuildContextAdapter: LoggerAdapter that carries a LogContext

Dependencies:
    Standard library only (logging, enum, dataclasses, json)
"""

from enum import Enum
from typing import Optional, Dict, Any, MutableMapping, Tuple
from datetime import datetime, timezone
from dataclasses import dataclass
import logging
import sys
import os
import json


# ============================================================================
# COMPONENT TYPES - Architectural layers
# ============================================================================

class ComponentType(Enum):
    """
    Component types aligned with the orchestrator layers.

    Each layer has specific logging needs and levels.
    """
    CONTROLLER = "controller"  # Build state machine / orchestration
    SERVICE = "service"        # Engine-level services, monitors
    REPOSITORY = "repository"  # Data access layer
    FACTORY = "factory"        # Object creation layer
    RUNNER = "runner"          # Execution backends
    ADAPTER = "adapter"        # External integration layer (platform, cluster API)
    JOB = "job"                # Stage jobs


# ============================================================================
# LOG CONTEXT - Correlation and tracking
# ============================================================================

@dataclass
class LogContext:
    """
    Context for log correlation across a build.

    A build is identified by (engine_id, build_id); the stage and the
    runner-side job id narrow it down to one execution attempt.
    """
    engine_id: Optional[str] = None
    build_id: Optional[str] = None
    stage: Optional[str] = None
    job_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            k: v for k, v in {
                'engine_id': self.engine_id,
                'build_id': self.build_id,
                'stage': self.stage,
                'job_id': self.job_id,
            }.items() if v is not None
        }


# ============================================================================
# JSON FORMATTER - Structured logging
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    One JSON object per line so log shippers can parse it without a schema.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Python LogRecord to format

        Returns:
            JSON string with structured log data
        """
        log_obj = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'custom_dimensions'):
            log_obj['customDimensions'] = record.custom_dimensions

        if record.exc_info:
            log_obj['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_obj, default=str)


# ============================================================================
# CONTEXT ADAPTER - Per-build correlation
# ============================================================================

class BuildContextAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges a LogContext into custom dimensions.

    The underlying component logger is shared; the adapter is cheap and
    is created per build execution.
    """

    def __init__(self, logger: logging.Logger, context: LogContext):
        super().__init__(logger, {})
        self.context = context

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = kwargs.setdefault('extra', {})
        dims = dict(self.context.to_dict())
        dims.update(extra.get('custom_dimensions', {}))
        extra['custom_dimensions'] = dims
        return msg, kwargs


# ============================================================================
# LOGGER FACTORY - Creates component-specific loggers
# ============================================================================

class LoggerFactory:
    """
    Factory for creating component-specific loggers.

    Example:
        logger = LoggerFactory.create_logger(
            ComponentType.CONTROLLER,
            "BuildJobService"
        )
        logger.info("Starting build")
    """

    # DEBUG_LOGGING wins over LOG_LEVEL so a single flag turns everything up
    if os.getenv('DEBUG_LOGGING', '').lower() == 'true':
        DEFAULT_LEVEL = logging.DEBUG
    else:
        DEFAULT_LEVEL = logging.getLevelNamesMapping().get(
            os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO
        )

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str
    ) -> logging.Logger:
        """
        Create a logger for a specific component.

        Args:
            component_type: Type of component
            name: Component name (e.g., "BuildJobService")

        Returns:
            Configured Python logger
        """
        logger_name = f"{component_type.value}.{name}"
        logger = logging.getLogger(logger_name)

        log_level = cls.DEFAULT_LEVEL
        logger.setLevel(log_level)

        # Only add our JSON handler once per logger name
        has_json_handler = any(
            isinstance(h.formatter, JSONFormatter) for h in logger.handlers
        )
        if not has_json_handler:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(log_level)
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)

        # Keep propagation so pytest caplog and host log collectors see records
        logger.propagate = True

        if not hasattr(logger, '_context_wrapped'):
            original_log = logger._log

            def log_with_context(level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
                """Wrapper to inject component identity as custom dimensions."""
                if extra is None:
                    extra = {}

                custom_dims = {
                    'component_type': component_type.value,
                    'component_name': name
                }
                if 'custom_dimensions' in extra:
                    custom_dims.update(extra['custom_dimensions'])
                extra['custom_dimensions'] = custom_dims

                original_log(level, msg, args, exc_info=exc_info, extra=extra,
                             stack_info=stack_info, stacklevel=stacklevel + 1)

            logger._log = log_with_context
            logger._context_wrapped = True

        return logger

    @classmethod
    def create_with_context(
        cls,
        component_type: ComponentType,
        name: str,
        engine_id: Optional[str] = None,
        build_id: Optional[str] = None,
        stage: Optional[str] = None,
        job_id: Optional[str] = None
    ) -> BuildContextAdapter:
        """
        Create logger bound to an engine/build context.

        Args:
            component_type: Type of component
            name: Component name
            engine_id: Optional engine ID
            build_id: Optional build ID
            stage: Optional stage name
            job_id: Optional runner-side job ID

        Returns:
            LoggerAdapter that adds the context to every record
        """
        context = LogContext(
            engine_id=engine_id,
            build_id=build_id,
            stage=stage,
            job_id=job_id
        )
        return BuildContextAdapter(cls.create_logger(component_type, name), context)
