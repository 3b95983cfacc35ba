"""
Unit tests for ModelSet loading and readiness.
"""
import asyncio

import pytest

from core.errors import LoadFailureReason, ModelLoadFailure, ModelsNotReady
from core.model_set import ModelSet, ModelStatus


class TestModelSetLoad:
    """Tests for ModelSet.load"""

    @pytest.mark.asyncio
    async def test_all_engines_load(self, make_engines):
        engines = make_engines()
        models = ModelSet(engines)
        assert models.status is ModelStatus.PENDING
        await models.load()
        assert models.ready
        assert all(e.load_calls == 1 for e in engines.values())
        assert set(models.load_durations_ms) == {"age", "gender", "emotion"}
        assert models.input_shapes()["emotion"] == (48, 48, 1)

    @pytest.mark.asyncio
    async def test_one_failure_marks_whole_set_unusable(self, make_engines):
        engines = make_engines(overrides={"gender": {"fail_load": LoadFailureReason.NOT_FOUND}})
        models = ModelSet(engines)
        with pytest.raises(ModelLoadFailure) as exc_info:
            await models.load()
        assert exc_info.value.attribute == "gender"
        assert exc_info.value.reason is LoadFailureReason.NOT_FOUND
        assert models.status is ModelStatus.FAILED
        assert models.error is exc_info.value
        # Engines that did load are dropped too
        assert all(not e.loaded for e in engines.values())
        with pytest.raises(ModelsNotReady):
            models.require_ready()

    @pytest.mark.asyncio
    async def test_unexpected_error_reported_as_malformed(self, make_engines):
        engines = make_engines()

        def _boom():
            raise RuntimeError("bad weights")

        engines["age"].load = _boom
        models = ModelSet(engines)
        with pytest.raises(ModelLoadFailure) as exc_info:
            await models.load()
        assert exc_info.value.reason is LoadFailureReason.MALFORMED

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, make_engines):
        engines = make_engines(overrides={"emotion": {"fail_load": LoadFailureReason.NETWORK_ERROR}})
        models = ModelSet(engines)
        with pytest.raises(ModelLoadFailure):
            await models.load()
        engines["emotion"].fail_load = None
        await models.load()
        assert models.ready
        assert models.error is None

    @pytest.mark.asyncio
    async def test_load_when_ready_is_noop(self, make_engines):
        engines = make_engines()
        models = ModelSet(engines)
        await models.load()
        await models.load()
        assert engines["age"].load_calls == 1

    def test_not_ready_before_load(self, make_engines):
        models = ModelSet(make_engines())
        with pytest.raises(ModelsNotReady):
            models.require_ready()


def _block_load(engine, gate):
    """Make engine.load wait on `gate` before loading."""
    original = engine.load

    def _load():
        assert gate.wait(timeout=5), "gate never opened"
        original()

    engine.load = _load


class TestConcurrentLoad:
    """A second load() while one is running shares the running load"""

    @pytest.mark.asyncio
    async def test_second_caller_waits_until_ready(self, make_engines, gate):
        engines = make_engines()
        _block_load(engines["age"], gate)
        models = ModelSet(engines)
        first = asyncio.create_task(models.load())
        second = asyncio.create_task(models.load())
        await asyncio.sleep(0.05)
        assert models.status is ModelStatus.LOADING
        assert not second.done()
        gate.set()
        await asyncio.wait_for(asyncio.gather(first, second), timeout=5)
        assert models.ready
        assert engines["age"].load_calls == 1
        assert engines["gender"].load_calls == 1

    @pytest.mark.asyncio
    async def test_second_caller_sees_the_failure(self, make_engines, gate):
        engines = make_engines(overrides={"gender": {"fail_load": LoadFailureReason.MALFORMED}})
        _block_load(engines["age"], gate)
        models = ModelSet(engines)
        first = asyncio.create_task(models.load())
        second = asyncio.create_task(models.load())
        await asyncio.sleep(0.05)
        gate.set()
        outcomes = await asyncio.wait_for(
            asyncio.gather(first, second, return_exceptions=True), timeout=5
        )
        assert all(isinstance(o, ModelLoadFailure) for o in outcomes)
        assert outcomes[0] is outcomes[1]
        assert models.status is ModelStatus.FAILED
        assert engines["gender"].load_calls == 1
