"""
Cluster Client - Remote Scheduler REST API.

Thin async client for a ClearML-style scheduler:

    POST {api_url}/auth.login          basic auth -> bearer token
    POST {api_url}/projects.create     {name, description}
    POST {api_url}/projects.get_all    {name}
    POST {api_url}/projects.delete     {project, delete_contents}
    POST {api_url}/tasks.create        {name, project, type, script, container}
    POST {api_url}/tasks.enqueue       {task, queue_name}
    POST {api_url}/tasks.stop          {task, force}
    POST {api_url}/tasks.delete        {task, force}
    POST {api_url}/tasks.get_all_ex    {id | project + name, only_fields}

Every response is an envelope {"meta": {...}, "data": {...}}. Transient
failures (timeouts, transport errors, 5xx, 429) are retried with
exponential backoff; anything else raises RunnerError at once.

Exports:
    ClusterClient
    ClusterTask
"""

import asyncio
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import ClusterConfig
from core.models import ClusterTaskStatus
from exceptions import RunnerError
from util_logger import LoggerFactory, ComponentType


_RETRYABLE_STATUS = {429, 500, 502, 503, 504}

_TASK_FIELDS = [
    "id", "name", "status", "status_reason", "status_message", "project", "last_iteration", "runtime",
]


class ClusterTask(BaseModel):
    """Scheduler task as returned by tasks.get_all_ex."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    status: ClusterTaskStatus = ClusterTaskStatus.UNKNOWN
    project: Optional[str] = None
    last_iteration: Optional[int] = 0
    runtime: Dict[str, Any] = Field(default_factory=dict)
    status_reason: Optional[str] = None
    status_message: Optional[str] = None

    @field_validator("runtime", mode="before")
    @classmethod
    def _empty_runtime(cls, value: Any) -> Any:
        return value or {}

    @field_validator("status", mode="before")
    @classmethod
    def _known_status(cls, value: Any) -> Any:
        try:
            return ClusterTaskStatus(value)
        except ValueError:
            return ClusterTaskStatus.UNKNOWN


class ClusterClient:
    """
    Remote scheduler client.
    """

    RETRY_BASE_DELAY_SECONDS = 1.0

    def __init__(self, config: ClusterConfig, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize client.

        Args:
            config: Cluster configuration (api_url and keys required)
            client: Optional pre-built client (tests inject a MockTransport)
        """
        if not config.is_configured:
            raise ValueError("ClusterClient requires CLUSTER_API_URL, CLUSTER_ACCESS_KEY and CLUSTER_SECRET_KEY")
        self.config = config
        self.base_url = config.api_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._token: Optional[str] = None
        self.logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "ClusterClient")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.config.request_timeout_seconds))
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ClusterClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ========================================================================
    # TRANSPORT
    # ========================================================================

    async def _login(self) -> str:
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/auth.login",
                auth=httpx.BasicAuth(self.config.access_key, self.config.secret_key),
            )
        except httpx.RequestError as e:
            raise RunnerError(f"Cluster login failed: {e}") from e
        if not response.is_success:
            raise RunnerError(f"Cluster login failed: HTTP {response.status_code}")
        self._token = response.json()["data"]["token"]
        self.logger.debug("Cluster API token acquired")
        return self._token

    async def _call(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call one API endpoint and return the envelope's data.

        Raises:
            RunnerError: Non-retryable error or retries exhausted
        """
        client = await self._get_client()
        url = f"{self.base_url}/{endpoint}"

        last_error = None
        relogged = False
        attempt = 0
        while attempt < self.config.max_retries:
            attempt += 1
            token = self._token or await self._login()
            try:
                response = await client.post(url, json=body, headers={"Authorization": f"Bearer {token}"})
                if response.is_success:
                    return response.json().get("data") or {}
                if response.status_code == 401 and not relogged:
                    # token expired
                    self._token = None
                    relogged = True
                    attempt -= 1
                    continue
                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                if response.status_code not in _RETRYABLE_STATUS:
                    break
            except httpx.TimeoutException as e:
                last_error = f"Timeout: {e}"
            except httpx.RequestError as e:
                last_error = f"Request error: {e}"

            self.logger.warning(
                f"⚠️ Cluster call {endpoint} failed (attempt {attempt}/{self.config.max_retries}): {last_error}"
            )
            if attempt < self.config.max_retries:
                await asyncio.sleep(self.RETRY_BASE_DELAY_SECONDS * 2 ** (attempt - 1))

        raise RunnerError(f"Cluster call {endpoint} failed: {last_error}")

    # ========================================================================
    # PROJECTS
    # ========================================================================

    async def create_project(self, name: str, description: Optional[str] = None) -> str:
        data = await self._call("projects.create", {"name": name, "description": description or ""})
        return data["id"]

    async def get_project_id(self, name: str) -> Optional[str]:
        data = await self._call("projects.get_all", {"name": f"^{re.escape(name)}$", "only_fields": ["id"]})
        projects = data.get("projects", [])
        return projects[0]["id"] if projects else None

    async def delete_project(self, project_id: str) -> bool:
        data = await self._call(
            "projects.delete",
            {"project": project_id, "delete_contents": True, "force": True}
        )
        return data.get("deleted", 0) == 1

    # ========================================================================
    # TASKS
    # ========================================================================

    async def create_task(self, name: str, project_id: str, script: str, docker_image: str) -> str:
        data = await self._call(
            "tasks.create",
            {
                "name": name,
                "project": project_id,
                "type": "training",
                "script": {"diff": script},
                "container": {"image": docker_image},
            }
        )
        return data["id"]

    async def enqueue_task(self, task_id: str, queue: str) -> bool:
        data = await self._call("tasks.enqueue", {"task": task_id, "queue_name": queue})
        return data.get("queued", 0) == 1

    async def stop_task(self, task_id: str) -> bool:
        data = await self._call("tasks.stop", {"task": task_id, "force": True})
        return data.get("updated", 0) == 1

    async def delete_task(self, task_id: str) -> bool:
        data = await self._call("tasks.delete", {"task": task_id, "force": True})
        return data.get("deleted", 0) == 1

    async def get_task(self, task_id: str) -> Optional[ClusterTask]:
        tasks = await self.get_tasks_by_id([task_id])
        return tasks[0] if tasks else None

    async def get_task_by_name(self, project_id: str, name: str) -> Optional[ClusterTask]:
        data = await self._call(
            "tasks.get_all_ex",
            {"project": [project_id], "name": f"^{re.escape(name)}$", "only_fields": _TASK_FIELDS}
        )
        tasks = data.get("tasks", [])
        return ClusterTask(**tasks[0]) if tasks else None

    async def get_tasks_by_id(self, task_ids: Iterable[str]) -> List[ClusterTask]:
        ids = list(task_ids)
        if not ids:
            return []
        data = await self._call("tasks.get_all_ex", {"id": ids, "only_fields": _TASK_FIELDS})
        return [ClusterTask(**task) for task in data.get("tasks", [])]

    async def get_queue_length(self, queue: str) -> int:
        """Number of tasks waiting in a queue."""
        data = await self._call("queues.get_all_ex", {"name": f"^{re.escape(queue)}$", "only_fields": ["entries"]})
        queues = data.get("queues", [])
        return len(queues[0].get("entries", [])) if queues else 0
