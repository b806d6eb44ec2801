"""
ClusterBuildJobRunner and NmtClusterBuildJobFactory tests.
"""

import ast

import pytest

from config import ClusterConfig
from core.models import BuildJobRunnerType, TranslationEngineType
from exceptions import EngineNotFoundError, RunnerError
from infrastructure.cluster_runner import ClusterBuildJobRunner, NmtClusterBuildJobFactory
from tests.factories.fakes import FakeClusterClient
from tests.factories.model_factories import make_engine

pytestmark = pytest.mark.asyncio


@pytest.fixture
def cluster_config():
    return ClusterConfig(
        api_url="https://cluster.test", access_key="ak", secret_key="sk",
        queue="gpu_q", project_prefix="engines", docker_image="trainer:2",
        model_type="hf_nllb", shared_file_uri="s3://builds",
    )


@pytest.fixture
def client():
    return FakeClusterClient()


@pytest.fixture
def runner(client, cluster_config, engines):
    return ClusterBuildJobRunner(client, cluster_config, [NmtClusterBuildJobFactory(engines, cluster_config)])


def _script_args(script: str) -> dict:
    """Evaluate the args literal of a generated script."""
    tree = ast.parse(script)
    assign = next(node for node in tree.body if isinstance(node, ast.Assign))
    return ast.literal_eval(assign.value)


async def test_runner_type(runner):
    assert runner.runner_type == BuildJobRunnerType.CLUSTER


async def test_engine_maps_to_project(runner, client):
    await runner.create_engine("e1", "My Engine")
    assert "engines/e1" in client.projects

    await runner.delete_engine("e1")
    assert client.projects == {}


async def test_delete_engine_without_project_is_noop(runner, client):
    await runner.delete_engine("e1")
    assert client.projects == {}


async def test_create_job_writes_train_script(runner, client, engines):
    engine = make_engine(engine_id="e1", source_language="en", target_language="swh")
    await engines.insert(engine)
    await runner.create_engine("e1")

    task_id = await runner.create_job(
        TranslationEngineType.NMT, "e1", "b1", "train", build_options='{"max_steps": 10}'
    )

    task = client.tasks[task_id]
    assert task.name == "b1"
    assert task.project == client.projects["engines/e1"]
    script = client.scripts[task_id]
    assert script.startswith("from machine.jobs.build_nmt_engine import run\n")
    args = _script_args(script)
    assert args["model_type"] == "hf_nllb"
    assert args["src_lang"] == "en"
    assert args["trg_lang"] == "swh"
    assert args["shared_file_uri"] == "s3://builds"
    assert args["build_options"] == '{"max_steps": 10}'
    assert args["clearml"] is True


async def test_script_survives_awkward_values(runner, client, engines):
    await engines.insert(make_engine(engine_id="e1", source_language="en'\n", target_language='sw"h'))
    task_id = await runner.create_job(TranslationEngineType.NMT, "e1", "b1", "train")
    args = _script_args(client.scripts[task_id])
    assert args["src_lang"] == "en'\n"
    assert "build_options" not in args


async def test_create_job_creates_missing_project(runner, client, engines):
    await engines.insert(make_engine(engine_id="e1"))
    await runner.create_job(TranslationEngineType.NMT, "e1", "b1", "train")
    assert "engines/e1" in client.projects


async def test_create_job_reuses_task_for_same_build(runner, client, engines):
    await engines.insert(make_engine(engine_id="e1"))
    first = await runner.create_job(TranslationEngineType.NMT, "e1", "b1", "train")
    second = await runner.create_job(TranslationEngineType.NMT, "e1", "b1", "train")
    assert first == second
    assert len(client.tasks) == 1


async def test_create_job_unknown_engine_type(runner):
    with pytest.raises(RunnerError):
        await runner.create_job(TranslationEngineType.SMT_TRANSFER, "e1", "b1", "train")


async def test_create_job_missing_engine(runner):
    with pytest.raises(EngineNotFoundError):
        await runner.create_job(TranslationEngineType.NMT, "missing", "b1", "train")


async def test_create_job_unknown_stage(runner, engines):
    await engines.insert(make_engine(engine_id="e1"))
    with pytest.raises(ValueError, match="Unknown cluster build stage"):
        await runner.create_job(TranslationEngineType.NMT, "e1", "b1", "postprocess")


async def test_enqueue_uses_configured_queue(runner, client):
    await runner.enqueue_job("t1")
    assert client.enqueued == [("t1", "gpu_q")]


async def test_enqueue_refused_raises(runner, client):
    client.enqueue_result = False
    with pytest.raises(RunnerError):
        await runner.enqueue_job("t1")


async def test_stop_and_delete(runner, client, engines):
    await engines.insert(make_engine(engine_id="e1"))
    task_id = await runner.create_job(TranslationEngineType.NMT, "e1", "b1", "train")
    assert await runner.stop_job(task_id)
    assert client.stopped == [task_id]
    assert await runner.delete_job(task_id)
    assert not await runner.delete_job(task_id)
