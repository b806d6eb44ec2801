"""
Build Job Configuration.

Maps logical build job types (cpu, gpu) to concrete runners
(local, cluster) and sizes the in-process local runner.

Environment Variables:
    BUILD_JOB_RUNNERS: "cpu=local,gpu=cluster"
    LOCAL_RUNNER_WORKERS: Concurrent local jobs per process
    LOCAL_RUNNER_MAX_ATTEMPTS: Executions per job before it is given up
    SHUTDOWN_TIMEOUT_SECONDS: Grace period for draining workers
    ENGINE_TYPES: "nmt,smt_transfer"
    BUILD_FILES_ROOT: Directory for per-build files

Exports:
    BuildJobConfig
    parse_runner_mapping
"""

import os
from typing import Dict, List
from pydantic import BaseModel, Field, field_validator

from .defaults import BuildJobDefaults


def parse_runner_mapping(value: str) -> Dict[str, str]:
    """
    Parse "cpu=local,gpu=cluster" into {"cpu": "local", "gpu": "cluster"}.

    Raises:
        ValueError: On malformed pairs or a job type listed twice
    """
    mapping: Dict[str, str] = {}
    for pair in value.split(","):
        pair = pair.strip()
        if not pair:
            continue
        if "=" not in pair:
            raise ValueError(f"Invalid BUILD_JOB_RUNNERS entry '{pair}' (expected job_type=runner)")
        job_type, runner = (part.strip().lower() for part in pair.split("=", 1))
        if not job_type or not runner:
            raise ValueError(f"Invalid BUILD_JOB_RUNNERS entry '{pair}' (empty side)")
        if job_type in mapping:
            raise ValueError(f"Job type '{job_type}' mapped more than once")
        mapping[job_type] = runner
    return mapping


class BuildJobConfig(BaseModel):
    """
    Build job routing configuration.
    """

    job_type_runners: Dict[str, str] = Field(
        default_factory=lambda: parse_runner_mapping(BuildJobDefaults.BUILD_JOB_RUNNERS),
        description="Logical job type -> runner type"
    )

    local_workers: int = Field(
        default=BuildJobDefaults.LOCAL_RUNNER_WORKERS,
        ge=1,
        description="Concurrent jobs executed by the local runner"
    )

    local_max_attempts: int = Field(
        default=BuildJobDefaults.LOCAL_RUNNER_MAX_ATTEMPTS,
        ge=1,
        description="Executions of one local job before it is abandoned"
    )

    recover_local_builds: bool = Field(
        default=BuildJobDefaults.LOCAL_RUNNER_RECOVER,
        description="On start, re-create jobs for local builds this runner does not hold. "
                    "Only one worker per engine store may run with this enabled"
    )

    shutdown_timeout_seconds: float = Field(
        default=BuildJobDefaults.SHUTDOWN_TIMEOUT_SECONDS,
        gt=0,
        description="Seconds to wait for interrupted jobs to finalize on shutdown"
    )

    engine_types: List[str] = Field(
        default_factory=lambda: BuildJobDefaults.ENGINE_TYPES.split(","),
        description="Engine types this deployment builds"
    )

    build_files_root: str = Field(
        default=BuildJobDefaults.BUILD_FILES_ROOT,
        description="Directory holding per-build files for in-process stages"
    )

    @field_validator("job_type_runners", mode="before")
    @classmethod
    def _parse_mapping(cls, value):
        if isinstance(value, str):
            return parse_runner_mapping(value)
        return value

    @field_validator("engine_types", mode="before")
    @classmethod
    def _parse_engine_types(cls, value):
        if isinstance(value, str):
            return [t.strip().lower() for t in value.split(",") if t.strip()]
        return value

    @property
    def uses_cluster(self) -> bool:
        """True when any job type is routed to the remote cluster."""
        return "cluster" in self.job_type_runners.values()

    @classmethod
    def from_environment(cls) -> "BuildJobConfig":
        """Load from environment variables."""
        return cls(
            job_type_runners=os.environ.get("BUILD_JOB_RUNNERS", BuildJobDefaults.BUILD_JOB_RUNNERS),
            local_workers=int(os.environ.get("LOCAL_RUNNER_WORKERS", str(BuildJobDefaults.LOCAL_RUNNER_WORKERS))),
            local_max_attempts=int(os.environ.get("LOCAL_RUNNER_MAX_ATTEMPTS", str(BuildJobDefaults.LOCAL_RUNNER_MAX_ATTEMPTS))),
            recover_local_builds=os.environ.get(
                "LOCAL_RUNNER_RECOVER", str(BuildJobDefaults.LOCAL_RUNNER_RECOVER).lower()
            ).lower() == "true",
            shutdown_timeout_seconds=float(os.environ.get("SHUTDOWN_TIMEOUT_SECONDS", str(BuildJobDefaults.SHUTDOWN_TIMEOUT_SECONDS))),
            engine_types=os.environ.get("ENGINE_TYPES", BuildJobDefaults.ENGINE_TYPES),
            build_files_root=os.environ.get("BUILD_FILES_ROOT", BuildJobDefaults.BUILD_FILES_ROOT),
        )
