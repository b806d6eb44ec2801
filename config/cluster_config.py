"""
Remote Cluster Configuration.

Settings for the ClearML-style scheduler that runs GPU training stages.
Only required when BUILD_JOB_RUNNERS routes a job type to "cluster".

Exports:
    ClusterConfig
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import ClusterDefaults


class ClusterConfig(BaseModel):
    """
    Remote cluster scheduler configuration.
    """

    api_url: Optional[str] = Field(
        default=None,
        description="Base URL of the scheduler REST API",
        examples=["https://api.clearml.example.org"]
    )

    access_key: Optional[str] = Field(default=None, description="API access key")

    secret_key: Optional[str] = Field(default=None, repr=False, description="API secret key")

    queue: str = Field(
        default=ClusterDefaults.QUEUE,
        description="Scheduler queue that GPU tasks are enqueued on"
    )

    model_type: str = Field(
        default=ClusterDefaults.MODEL_TYPE,
        description="NMT model family passed to the training script"
    )

    project_prefix: str = Field(
        default=ClusterDefaults.PROJECT_PREFIX,
        description="Parent project; each engine gets <prefix>/<engine_id>"
    )

    docker_image: str = Field(
        default=ClusterDefaults.DOCKER_IMAGE,
        description="Container image the training task runs in"
    )

    shared_file_uri: Optional[str] = Field(
        default=None,
        description="Storage location where training tasks find build files"
    )

    poll_interval_seconds: float = Field(
        default=ClusterDefaults.POLL_INTERVAL_SECONDS,
        gt=0,
        description="Cluster monitor polling interval"
    )

    request_timeout_seconds: float = Field(
        default=ClusterDefaults.REQUEST_TIMEOUT_SECONDS,
        gt=0
    )

    max_retries: int = Field(default=ClusterDefaults.MAX_RETRIES, ge=1)

    @property
    def is_configured(self) -> bool:
        """True when the API URL and credentials are all present."""
        return bool(self.api_url and self.access_key and self.secret_key)

    def debug_dict(self) -> dict:
        """Debug output with masked secret."""
        return {
            "api_url": self.api_url,
            "access_key": self.access_key,
            "secret_key": "***MASKED***" if self.secret_key else None,
            "queue": self.queue,
            "model_type": self.model_type,
            "poll_interval_seconds": self.poll_interval_seconds,
        }

    @classmethod
    def from_environment(cls) -> "ClusterConfig":
        """Load from environment variables."""
        return cls(
            api_url=os.environ.get("CLUSTER_API_URL"),
            access_key=os.environ.get("CLUSTER_ACCESS_KEY"),
            secret_key=os.environ.get("CLUSTER_SECRET_KEY"),
            queue=os.environ.get("CLUSTER_QUEUE", ClusterDefaults.QUEUE),
            model_type=os.environ.get("CLUSTER_MODEL_TYPE", ClusterDefaults.MODEL_TYPE),
            project_prefix=os.environ.get("CLUSTER_PROJECT_PREFIX", ClusterDefaults.PROJECT_PREFIX),
            docker_image=os.environ.get("CLUSTER_DOCKER_IMAGE", ClusterDefaults.DOCKER_IMAGE),
            shared_file_uri=os.environ.get("CLUSTER_SHARED_FILE_URI"),
            poll_interval_seconds=float(os.environ.get("CLUSTER_POLL_INTERVAL", str(ClusterDefaults.POLL_INTERVAL_SECONDS))),
            request_timeout_seconds=float(os.environ.get("CLUSTER_REQUEST_TIMEOUT", str(ClusterDefaults.REQUEST_TIMEOUT_SECONDS))),
            max_retries=int(os.environ.get("CLUSTER_MAX_RETRIES", str(ClusterDefaults.MAX_RETRIES))),
        )
