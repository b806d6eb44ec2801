"""
TranslationEngineService tests (fake runners, in-memory store).
"""

import pytest

from core.models import BuildJobState, BuildJobType, TranslationEngineType
from core.schema.updates import EngineFilter, EngineUpdateModel
from exceptions import BuildConflictError, DatabaseError, EngineNotFoundError, RunnerError
from services.engine_service import TranslationEngineService
from tests.factories.model_factories import make_corpus

pytestmark = pytest.mark.asyncio


@pytest.fixture
def nmt_service(platform, engines, lock_factory, build_job_service):
    return TranslationEngineService(TranslationEngineType.NMT, platform, engines, lock_factory, build_job_service)


@pytest.fixture
def smt_service(platform, engines, lock_factory, build_job_service):
    return TranslationEngineService(
        TranslationEngineType.SMT_TRANSFER, platform, engines, lock_factory, build_job_service
    )


async def test_create_inserts_engine_and_runner_contexts(nmt_service, engines, local_fake_runner, cluster_fake_runner):
    engine = await nmt_service.create("e1", "My Engine", "en", "swh")
    assert engine.build_revision == 0
    stored = await engines.get(EngineFilter(engine_id="e1"))
    assert stored.engine_type == TranslationEngineType.NMT
    assert stored.source_language == "en"
    # nmt uses cpu and gpu, i.e. both runners
    assert local_fake_runner.created_engines == ["e1"]
    assert cluster_fake_runner.created_engines == ["e1"]


async def test_smt_engine_only_uses_cpu_runner(smt_service, local_fake_runner, cluster_fake_runner):
    await smt_service.create("e1")
    assert local_fake_runner.created_engines == ["e1"]
    assert cluster_fake_runner.created_engines == []


async def test_create_duplicate_raises(nmt_service):
    await nmt_service.create("e1")
    with pytest.raises(DatabaseError):
        await nmt_service.create("e1")


async def test_create_rolls_back_record_when_runner_fails(nmt_service, engines, cluster_fake_runner):
    cluster_fake_runner.fail_create_engine = RunnerError("cluster down")
    with pytest.raises(RunnerError):
        await nmt_service.create("e1")
    assert not await engines.exists(EngineFilter(engine_id="e1"))


async def test_start_build_queues_first_stage_on_cpu(nmt_service, engines, local_fake_runner):
    await nmt_service.create("e1")
    corpus = make_corpus()
    await nmt_service.start_build("e1", "b1", [corpus], build_options='{"x": 1}')

    build = (await engines.get(EngineFilter(engine_id="e1"))).current_build
    _, job = local_fake_runner.last_job
    assert build.stage == "preprocess"
    assert build.job_state == BuildJobState.PENDING
    assert job["data"] == [corpus.model_dump(mode="json")]
    assert job["build_options"] == '{"x": 1}'


async def test_smt_first_stage_is_train(smt_service, engines):
    await smt_service.create("e1")
    await smt_service.start_build("e1", "b1", [])
    assert (await engines.get(EngineFilter(engine_id="e1"))).current_build.stage == "train"


async def test_start_build_unknown_engine(nmt_service):
    with pytest.raises(EngineNotFoundError):
        await nmt_service.start_build("missing", "b1", [])


async def test_start_build_while_building_conflicts(nmt_service):
    await nmt_service.create("e1")
    await nmt_service.start_build("e1", "b1", [])
    with pytest.raises(BuildConflictError, match="already building"):
        await nmt_service.start_build("e1", "b2", [])


async def test_start_build_while_canceling_conflicts(nmt_service, engines):
    await nmt_service.create("e1")
    await nmt_service.start_build("e1", "b1", [])
    await engines.update(EngineFilter(engine_id="e1"), EngineUpdateModel(job_state=BuildJobState.CANCELING))
    with pytest.raises(BuildConflictError):
        await nmt_service.start_build("e1", "b2", [])


async def test_cancel_pending_build_notifies_platform(nmt_service, platform, engines):
    await nmt_service.create("e1")
    await nmt_service.start_build("e1", "b1", [])

    assert await nmt_service.cancel_build("e1") == "b1"
    assert platform.names("b1") == ["canceled"]
    assert (await engines.get(EngineFilter(engine_id="e1"))).current_build is None


async def test_cancel_active_build_leaves_notification_to_executor(nmt_service, platform, engines):
    await nmt_service.create("e1")
    await nmt_service.start_build("e1", "b1", [])
    await engines.update(EngineFilter(engine_id="e1"), EngineUpdateModel(job_state=BuildJobState.ACTIVE))

    assert await nmt_service.cancel_build("e1") == "b1"
    assert platform.events == []
    assert (await engines.get(EngineFilter(engine_id="e1"))).job_state == BuildJobState.CANCELING


async def test_cancel_without_build_conflicts(nmt_service):
    await nmt_service.create("e1")
    with pytest.raises(BuildConflictError, match="not currently building"):
        await nmt_service.cancel_build("e1")


async def test_delete_cancels_and_removes(nmt_service, engines, platform, local_fake_runner, cluster_fake_runner):
    await nmt_service.create("e1")
    await nmt_service.start_build("e1", "b1", [])

    await nmt_service.delete("e1")

    assert not await engines.exists(EngineFilter(engine_id="e1"))
    assert platform.names("b1") == ["canceled"]
    assert local_fake_runner.deleted_engines == ["e1"]
    assert cluster_fake_runner.deleted_engines == ["e1"]


async def test_get_build_status(nmt_service):
    await nmt_service.create("e1")
    assert await nmt_service.get_build_status("e1") is None
    await nmt_service.start_build("e1", "b1", [])
    assert (await nmt_service.get_build_status("e1")).build_id == "b1"
    with pytest.raises(EngineNotFoundError):
        await nmt_service.get_build_status("missing")


async def test_job_types_come_from_engine_type(nmt_service, smt_service):
    assert nmt_service.job_types == [BuildJobType.CPU, BuildJobType.GPU]
    assert smt_service.job_types == [BuildJobType.CPU]
