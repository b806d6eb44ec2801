"""
BuildJobService tests - the build state machine over fake runners.

cpu is routed to the local fake runner, gpu to the cluster fake runner
(see tests/conftest.py).
"""

import asyncio

import pytest

from core.models import (
    BuildJobRunnerType,
    BuildJobState,
    BuildJobType,
    TranslationEngineType,
)
from core.schema.updates import EngineFilter, EngineUpdateModel
from exceptions import BuildConflictError, RunnerError
from tests.factories.model_factories import make_build, make_engine

pytestmark = pytest.mark.asyncio


async def _engine(engines, **kwargs):
    engine = make_engine(**kwargs)
    await engines.insert(engine)
    return engine


async def _current(engines, engine_id):
    return (await engines.get(EngineFilter(engine_id=engine_id))).current_build


async def _start(service, engine_id, build_id="b1", job_type=BuildJobType.CPU, stage="preprocess", **kwargs):
    return await service.start_build_job(
        job_type, TranslationEngineType.NMT, engine_id, build_id, stage, **kwargs
    )


class TestEngineContexts:

    async def test_create_engine_fans_out_to_distinct_runners(self, build_job_service, local_fake_runner, cluster_fake_runner):
        await build_job_service.create_engine([BuildJobType.CPU, BuildJobType.GPU, BuildJobType.CPU], "e1", "Engine")
        assert local_fake_runner.created_engines == ["e1"]
        assert cluster_fake_runner.created_engines == ["e1"]

    async def test_cpu_only_engine_touches_local_runner_only(self, build_job_service, local_fake_runner, cluster_fake_runner):
        await build_job_service.create_engine([BuildJobType.CPU], "e1")
        await build_job_service.delete_engine([BuildJobType.CPU], "e1")
        assert local_fake_runner.deleted_engines == ["e1"]
        assert cluster_fake_runner.created_engines == []


class TestStartBuildJob:

    async def test_records_pending_build_and_enqueues(self, build_job_service, engines, local_fake_runner):
        engine = await _engine(engines)
        assert await _start(build_job_service, engine.engine_id, data=[1], build_options='{"a": 1}')

        build = await _current(engines, engine.engine_id)
        job_id, job = local_fake_runner.last_job
        assert build.job_state == BuildJobState.PENDING
        assert build.job_id == job_id
        assert build.job_runner == BuildJobRunnerType.LOCAL
        assert build.stage == "preprocess"
        assert build.build_options == '{"a": 1}'
        assert build.data == [1]
        assert job["data"] == [1]
        assert local_fake_runner.enqueued == [job_id]

    async def test_gpu_routes_to_cluster_runner(self, build_job_service, engines, cluster_fake_runner):
        engine = await _engine(engines)
        assert await _start(build_job_service, engine.engine_id, job_type=BuildJobType.GPU, stage="train")
        build = await _current(engines, engine.engine_id)
        assert build.job_runner == BuildJobRunnerType.CLUSTER
        assert cluster_fake_runner.enqueued == [build.job_id]

    async def test_missing_engine_deletes_job(self, build_job_service, local_fake_runner):
        assert not await _start(build_job_service, "no-such-engine")
        assert local_fake_runner.enqueued == []
        assert len(local_fake_runner.deleted_jobs) == 1
        assert local_fake_runner.jobs == {}

    async def test_canceling_build_refuses_start(self, build_job_service, engines, local_fake_runner):
        engine = await _engine(engines, current_build=make_build(build_id="b1", job_state=BuildJobState.CANCELING))
        assert not await _start(build_job_service, engine.engine_id, stage="train")
        assert (await _current(engines, engine.engine_id)).job_state == BuildJobState.CANCELING
        assert local_fake_runner.enqueued == []

    async def test_active_build_is_replaced_by_next_stage(self, build_job_service, engines, cluster_fake_runner):
        engine = await _engine(engines, current_build=make_build(build_id="b1", job_state=BuildJobState.ACTIVE))
        assert await _start(build_job_service, engine.engine_id, job_type=BuildJobType.GPU, stage="train")
        build = await _current(engines, engine.engine_id)
        assert build.build_id == "b1"
        assert build.stage == "train"
        assert build.job_state == BuildJobState.PENDING

    async def test_enqueue_failure_clears_pending_build(self, build_job_service, engines, local_fake_runner):
        engine = await _engine(engines)
        local_fake_runner.fail_enqueue = RunnerError("queue down")
        with pytest.raises(RunnerError):
            await _start(build_job_service, engine.engine_id)
        assert await _current(engines, engine.engine_id) is None
        assert len(local_fake_runner.deleted_jobs) == 1

    async def test_repository_failure_deletes_job(self, build_job_service, engines, local_fake_runner, monkeypatch):
        engine = await _engine(engines)

        async def broken_update(*args, **kwargs):
            raise RuntimeError("db down")

        monkeypatch.setattr(engines, "update", broken_update)
        with pytest.raises(RuntimeError):
            await _start(build_job_service, engine.engine_id)
        assert local_fake_runner.jobs == {}


class TestCancelBuildJob:

    async def test_no_build(self, build_job_service, engines):
        engine = await _engine(engines)
        assert await build_job_service.cancel_build_job(engine.engine_id) == (None, BuildJobState.NONE)

    async def test_unknown_engine(self, build_job_service):
        assert await build_job_service.cancel_build_job("missing") == (None, BuildJobState.NONE)

    async def test_pending_build_removed_and_job_stopped(self, build_job_service, engines, local_fake_runner):
        engine = await _engine(engines)
        await _start(build_job_service, engine.engine_id, build_id="b1")
        job_id = (await _current(engines, engine.engine_id)).job_id

        assert await build_job_service.cancel_build_job(engine.engine_id) == ("b1", BuildJobState.NONE)
        assert await _current(engines, engine.engine_id) is None
        assert local_fake_runner.stopped == [job_id]

    async def test_active_build_marked_canceling(self, build_job_service, engines, local_fake_runner):
        build = make_build(build_id="b1", job_state=BuildJobState.ACTIVE)
        engine = await _engine(engines, current_build=build)

        assert await build_job_service.cancel_build_job(engine.engine_id) == ("b1", BuildJobState.CANCELING)
        assert (await _current(engines, engine.engine_id)).job_state == BuildJobState.CANCELING
        assert local_fake_runner.stopped == [build.job_id]

    async def test_canceling_build_not_stopped_twice(self, build_job_service, engines, local_fake_runner):
        engine = await _engine(engines, current_build=make_build(build_id="b1", job_state=BuildJobState.CANCELING))
        assert await build_job_service.cancel_build_job(engine.engine_id) == ("b1", BuildJobState.CANCELING)
        assert local_fake_runner.stopped == []

    async def test_cancel_retries_after_losing_race(self, build_job_service, engines, local_fake_runner, monkeypatch):
        engine = await _engine(engines, current_build=make_build(build_id="b1", job_state=BuildJobState.PENDING))
        original_get = engines.get
        calls = {"n": 0}

        async def racing_get(engine_filter):
            result = await original_get(engine_filter)
            calls["n"] += 1
            if calls["n"] == 1:
                # an executor starts the build between the read and the update
                await engines.update(
                    EngineFilter(engine_id=engine.engine_id),
                    EngineUpdateModel(job_state=BuildJobState.ACTIVE)
                )
            return result

        monkeypatch.setattr(engines, "get", racing_get)
        build_id, state = await build_job_service.cancel_build_job(engine.engine_id)
        assert (build_id, state) == ("b1", BuildJobState.CANCELING)
        assert calls["n"] == 2

    async def test_cancel_gives_up_when_state_keeps_changing(self, build_job_service, engines, monkeypatch):
        engine = await _engine(engines, current_build=make_build(build_id="b1", job_state=BuildJobState.PENDING))

        async def always_miss(*args, **kwargs):
            return None

        monkeypatch.setattr(engines, "update", always_miss)
        with pytest.raises(BuildConflictError):
            await build_job_service.cancel_build_job(engine.engine_id)


class TestExecutorTransitions:

    async def test_started_only_from_pending_of_same_build(self, build_job_service, engines):
        engine = await _engine(engines, current_build=make_build(build_id="b1", job_state=BuildJobState.PENDING))
        assert not await build_job_service.build_job_started(engine.engine_id, "other-build")
        assert await build_job_service.build_job_started(engine.engine_id, "b1")
        assert not await build_job_service.build_job_started(engine.engine_id, "b1")
        assert (await _current(engines, engine.engine_id)).job_state == BuildJobState.ACTIVE

    async def test_finished_complete_increments_revision(self, build_job_service, engines):
        engine = await _engine(engines, build_revision=2,
                               current_build=make_build(build_id="b1", job_state=BuildJobState.ACTIVE))
        assert await build_job_service.build_job_finished(engine.engine_id, "b1", build_complete=True)
        stored = await engines.get(EngineFilter(engine_id=engine.engine_id))
        assert stored.current_build is None
        assert stored.build_revision == 3

    async def test_finished_incomplete_keeps_revision(self, build_job_service, engines):
        engine = await _engine(engines, build_revision=2,
                               current_build=make_build(build_id="b1", job_state=BuildJobState.CANCELING))
        assert await build_job_service.build_job_finished(engine.engine_id, "b1", build_complete=False)
        assert (await engines.get(EngineFilter(engine_id=engine.engine_id))).build_revision == 2

    async def test_finished_ignores_other_build(self, build_job_service, engines):
        engine = await _engine(engines, current_build=make_build(build_id="b2", job_state=BuildJobState.ACTIVE))
        assert not await build_job_service.build_job_finished(engine.engine_id, "b1", build_complete=True)
        assert (await _current(engines, engine.engine_id)).build_id == "b2"

    async def test_restarting_only_from_active(self, build_job_service, engines):
        engine = await _engine(engines, current_build=make_build(build_id="b1", job_state=BuildJobState.CANCELING))
        assert not await build_job_service.build_job_restarting(engine.engine_id, "b1")
        await engines.update(EngineFilter(engine_id=engine.engine_id),
                             EngineUpdateModel(job_state=BuildJobState.ACTIVE))
        assert await build_job_service.build_job_restarting(engine.engine_id, "b1")
        assert (await _current(engines, engine.engine_id)).job_state == BuildJobState.PENDING


class TestQueries:

    async def test_is_engine_building(self, build_job_service, engines):
        idle = await _engine(engines)
        busy = await _engine(engines, current_build=make_build())
        assert not await build_job_service.is_engine_building(idle.engine_id)
        assert await build_job_service.is_engine_building(busy.engine_id)

    async def test_get_building_engines_by_runner(self, build_job_service, engines):
        local = await _engine(engines, current_build=make_build(job_runner=BuildJobRunnerType.LOCAL))
        cluster = await _engine(engines, current_build=make_build(job_runner=BuildJobRunnerType.CLUSTER))
        await _engine(engines)
        found = await build_job_service.get_building_engines(BuildJobRunnerType.CLUSTER)
        assert [e.engine_id for e in found] == [cluster.engine_id]
        assert local.engine_id not in [e.engine_id for e in found]

    async def test_get_build(self, build_job_service, engines):
        engine = await _engine(engines, current_build=make_build(build_id="b1"))
        assert (await build_job_service.get_build(engine.engine_id, "b1")).build_id == "b1"
        assert await build_job_service.get_build(engine.engine_id, "b2") is None


class TestRaces:

    async def test_cancel_racing_started_leaves_consistent_state(self, build_job_service, engines):
        """Whichever wins, the build is either removed or canceling - never active."""
        engine = await _engine(engines)
        await _start(build_job_service, engine.engine_id, build_id="b1")

        started, (build_id, state) = await asyncio.gather(
            build_job_service.build_job_started(engine.engine_id, "b1"),
            build_job_service.cancel_build_job(engine.engine_id),
        )
        current = await _current(engines, engine.engine_id)
        assert build_id == "b1"
        if started:
            assert state == BuildJobState.CANCELING
            assert current.job_state == BuildJobState.CANCELING
        else:
            assert state == BuildJobState.NONE
            assert current is None
