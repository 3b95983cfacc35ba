"""
Shared pytest fixtures: fake engines, a fake frame source and a pipeline builder.
"""
import threading

import numpy as np
import pytest

from core.buffers import BufferRegistry, Tensor
from core.errors import ModelLoadFailure
from core.model_set import ModelSet
from core.orchestrator import PipelineState, PredictionOrchestrator
from core.sampler import FrameSampler
from engines.base import InferenceEngine

INPUT_SHAPES = {
    "age": (224, 224, 3),
    "gender": (224, 224, 3),
    "emotion": (48, 48, 1),
}


class FakeEngine(InferenceEngine):
    """Returns a fixed probability; can fail on load or classify, or block on a gate."""

    def __init__(
        self,
        attribute,
        probability=0.5,
        input_shape=None,
        fail_load=None,
        fail_classify=False,
        gate=None,
        barrier=None,
    ):
        super().__init__(input_shape or INPUT_SHAPES[attribute])
        self.attribute = attribute
        self.display_name = attribute.capitalize()
        self.probability = probability
        self.fail_load = fail_load
        self.fail_classify = fail_classify
        self.gate = gate
        self.barrier = barrier
        self.load_calls = 0
        self.closed = False
        self.seen_shapes = []
        self.outputs = []
        self._loaded = False

    @property
    def loaded(self):
        return self._loaded

    def load(self):
        self.load_calls += 1
        if self.fail_load is not None:
            raise ModelLoadFailure(self.attribute, self.fail_load, "fake")
        self._loaded = True
        self.closed = False

    def _predict(self, batch):
        self.seen_shapes.append(batch.shape)
        if self.barrier is not None:
            self.barrier.wait()
        if self.gate is not None:
            assert self.gate.wait(timeout=5), "gate never opened"
        if self.fail_classify:
            raise RuntimeError(f"{self.attribute} backend crashed")
        return np.array([[self.probability]], dtype=np.float32)

    def classify(self, tensor: Tensor) -> Tensor:
        output = super().classify(tensor)
        self.outputs.append(output)
        return output

    def close(self):
        self._loaded = False
        self.closed = True


class FakeFrameSource:
    """Stands in for VideoCaptureSource: a fixed BGR frame, or none."""

    def __init__(self, frame=None):
        self.frame = frame

    def has_frame(self):
        return self.frame is not None

    def latest_frame(self):
        return self.frame


def gradient_frame(height=240, width=320):
    """Deterministic BGR test image with distinct values per pixel."""
    ys, xs = np.mgrid[0:height, 0:width]
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[..., 0] = (xs * 255 // max(width - 1, 1)).astype(np.uint8)
    frame[..., 1] = (ys * 255 // max(height - 1, 1)).astype(np.uint8)
    frame[..., 2] = ((xs + ys) % 256).astype(np.uint8)
    return frame


@pytest.fixture
def registry():
    return BufferRegistry()


@pytest.fixture
def bgr_frame():
    return gradient_frame()


@pytest.fixture
def frame_source(bgr_frame):
    return FakeFrameSource(bgr_frame)


@pytest.fixture
def sample_frame(frame_source):
    return FrameSampler(320, 240).sample(frame_source)


@pytest.fixture
def make_engines():
    """Factory: make_engines(age=0.7, overrides={"gender": {"fail_classify": True}})."""

    def _make(age=0.5, gender=0.5, emotion=0.5, overrides=None):
        overrides = overrides or {}
        probabilities = {"age": age, "gender": gender, "emotion": emotion}
        return {
            attribute: FakeEngine(attribute, probabilities[attribute], **overrides.get(attribute, {}))
            for attribute in ("age", "gender", "emotion")
        }

    return _make


@pytest.fixture
def build_pipeline(frame_source, make_engines):
    """Async factory returning a PredictionOrchestrator over fake engines."""

    async def _build(engines=None, ready=True, source=None, recorder=None):
        engines = engines or make_engines()
        models = ModelSet(engines)
        if ready:
            await models.load()
        state = PipelineState(
            capture=source if source is not None else frame_source,
            models=models,
            recorder=recorder,
        )
        return PredictionOrchestrator(state, FrameSampler(320, 240))

    return _build


@pytest.fixture
def gate():
    return threading.Event()
