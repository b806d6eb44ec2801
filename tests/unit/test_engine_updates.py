"""
EngineFilter / EngineUpdateModel / apply_update tests.

These are the semantics both repositories implement, so the filter
matrix here is the reference for the PostgreSQL compilation too.
"""

import pytest
from pydantic import ValidationError

from core.models import BuildJobRunnerType, BuildJobState
from core.schema.updates import EngineFilter, EngineUpdateModel, apply_update
from tests.factories.model_factories import make_build, make_engine


@pytest.fixture
def idle():
    return make_engine(engine_id="idle-engine", current_build=None)


@pytest.fixture
def active():
    return make_engine(
        engine_id="active-engine",
        current_build=make_build(build_id="b-active", job_state=BuildJobState.ACTIVE,
                                 job_runner=BuildJobRunnerType.CLUSTER),
    )


@pytest.fixture
def canceling():
    return make_engine(
        engine_id="canceling-engine",
        current_build=make_build(build_id="b-cancel", job_state=BuildJobState.CANCELING),
    )


class TestEngineFilter:

    def test_empty_filter_matches_everything(self, idle, active):
        assert EngineFilter().matches(idle)
        assert EngineFilter().matches(active)

    def test_engine_id(self, idle):
        assert EngineFilter(engine_id="idle-engine").matches(idle)
        assert not EngineFilter(engine_id="other").matches(idle)

    def test_has_build(self, idle, active):
        assert EngineFilter(has_build=True).matches(active)
        assert not EngineFilter(has_build=True).matches(idle)
        assert EngineFilter(has_build=False).matches(idle)

    def test_build_id_requires_a_build(self, idle, active):
        assert EngineFilter(build_id="b-active").matches(active)
        assert not EngineFilter(build_id="b-active").matches(idle)
        assert not EngineFilter(build_id="other").matches(active)

    def test_job_state_none_means_idle(self, idle, active):
        assert EngineFilter(job_state=BuildJobState.NONE).matches(idle)
        assert not EngineFilter(job_state=BuildJobState.NONE).matches(active)

    def test_job_state_not_canceling_admits_idle_engines(self, idle, active, canceling):
        f = EngineFilter(job_state_not=BuildJobState.CANCELING)
        assert f.matches(idle)
        assert f.matches(active)
        assert not f.matches(canceling)

    def test_job_runner(self, idle, active):
        assert EngineFilter(job_runner=BuildJobRunnerType.CLUSTER).matches(active)
        assert not EngineFilter(job_runner=BuildJobRunnerType.LOCAL).matches(active)
        assert not EngineFilter(job_runner=BuildJobRunnerType.CLUSTER).matches(idle)

    def test_all_conditions_must_hold(self, active):
        f = EngineFilter(engine_id="active-engine", build_id="b-active", job_state=BuildJobState.PENDING)
        assert not f.matches(active)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            EngineFilter(stage="train")

    def test_to_dict_only_set_fields(self):
        assert EngineFilter(engine_id="e", job_state=BuildJobState.ACTIVE).to_dict() == {
            "engine_id": "e", "job_state": "active"
        }


class TestEngineUpdateModel:

    def test_unset_cannot_combine_with_state(self):
        with pytest.raises(ValidationError):
            EngineUpdateModel(unset_current_build=True, job_state=BuildJobState.ACTIVE)

    def test_unset_cannot_combine_with_build(self):
        with pytest.raises(ValidationError):
            EngineUpdateModel(unset_current_build=True, current_build=make_build())

    def test_state_none_rejected(self):
        with pytest.raises(ValidationError):
            EngineUpdateModel(job_state=BuildJobState.NONE)

    def test_target_state(self):
        assert EngineUpdateModel(unset_current_build=True).target_state == BuildJobState.NONE
        assert EngineUpdateModel(job_state=BuildJobState.CANCELING).target_state == BuildJobState.CANCELING
        assert EngineUpdateModel(current_build=make_build()).target_state == BuildJobState.PENDING
        assert EngineUpdateModel(inc_build_revision=True).target_state is None


class TestApplyUpdate:

    def test_set_build(self, idle):
        build = make_build()
        updated = apply_update(idle, EngineUpdateModel(current_build=build))
        assert updated.current_build == build
        assert idle.current_build is None

    def test_set_state_keeps_other_fields(self, active):
        updated = apply_update(active, EngineUpdateModel(job_state=BuildJobState.CANCELING))
        assert updated.job_state == BuildJobState.CANCELING
        assert updated.current_build.job_id == active.current_build.job_id

    def test_set_state_without_build_is_noop(self, idle):
        updated = apply_update(idle, EngineUpdateModel(job_state=BuildJobState.ACTIVE))
        assert updated.current_build is None

    def test_unset_with_revision_increment(self, active):
        updated = apply_update(active, EngineUpdateModel(unset_current_build=True, inc_build_revision=True))
        assert updated.current_build is None
        assert updated.build_revision == active.build_revision + 1

    def test_unset_without_increment_keeps_revision(self, active):
        updated = apply_update(active, EngineUpdateModel(unset_current_build=True))
        assert updated.build_revision == active.build_revision

    def test_updated_at_refreshed(self, active):
        updated = apply_update(active, EngineUpdateModel(job_state=BuildJobState.PENDING))
        assert updated.updated_at >= active.updated_at
